from typing import List
from sqlalchemy import select
from sqlalchemy.orm import Session
from backoffice.models.iam import Role
from backoffice.models.associations import user_roles, group_roles, group_user
from backoffice.schemas.iam import RoleCreate, RoleUpdate
from backoffice.crud.base import CRUDBase

class CRUDRole(CRUDBase[Role, RoleCreate, RoleUpdate]):

    def user_ids(self, db: Session, *, role_id: int) -> List[int]:
        """Users holding the role directly"""
        return list(db.execute(
            select(user_roles.c.user_id).where(user_roles.c.role_id == role_id)
        ).scalars())

    def group_member_ids(self, db: Session, *, role_id: int) -> List[int]:
        """Users inheriting the role through a group"""
        return list(db.execute(
            select(group_user.c.user_id)
            .join(group_roles, group_roles.c.group_id == group_user.c.group_id)
            .where(group_roles.c.role_id == role_id)
            .distinct()
        ).scalars())

role_crud = CRUDRole(Role)
