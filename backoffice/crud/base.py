from typing import Any, Dict, Generic, Optional, Type, TypeVar, Union
from pydantic import BaseModel
from sqlalchemy.orm import Session
from sqlalchemy import inspect

from backoffice.database.session import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    Base class for CRUD operations.

    Writes only flush; the calling service owns the transaction and commits.
    """
    def __init__(self, model: Type[ModelType]):
        self.model = model

    def _columns(self) -> set:
        return {attr.key for attr in inspect(self.model).column_attrs}

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        """
        Get an object by primary key
        """
        return db.get(self.model, id)

    def create(self, db: Session, *, obj_in: Union[CreateSchemaType, Dict[str, Any]]) -> ModelType:
        """
        Create a new object from the column fields of obj_in; relation id lists are ignored
        """
        obj_in_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        columns = self._columns()
        db_obj = self.model(**{k: v for k, v in obj_in_data.items() if k in columns})
        db.add(db_obj)
        db.flush()
        return db_obj

    def update(self, db: Session, *, db_obj: ModelType, obj_in: Union[UpdateSchemaType, Dict[str, Any]]) -> Dict[str, Any]:
        """
        Update an object and return {field: (old, new)} for the fields that changed
        """
        update_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)

        changes = {}
        for field in self._columns():
            if field in update_data and getattr(db_obj, field) != update_data[field]:
                changes[field] = (getattr(db_obj, field), update_data[field])
                setattr(db_obj, field, update_data[field])

        if changes:
            db.flush()
        return changes

    def remove(self, db: Session, *, db_obj: ModelType) -> ModelType:
        db.delete(db_obj)
        db.flush()
        return db_obj
