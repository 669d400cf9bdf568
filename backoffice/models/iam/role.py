from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship
from backoffice.database.session import Base
from backoffice.models.associations import role_permissions, user_roles
from backoffice.core.constants import Roles


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    permissions = relationship("Permission", secondary=role_permissions, viewonly=True)
    users = relationship("User", secondary=user_roles, viewonly=True)

    @property
    def is_super_admin(self) -> bool:
        return self.name == Roles.SUPER_ADMIN
