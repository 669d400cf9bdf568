from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship
from backoffice.database.session import Base
from backoffice.models.associations import group_user, user_roles, user_permissions


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Read-only views; writes go through the join tables directly
    groups = relationship("Group", secondary=group_user, back_populates="users", viewonly=True)
    roles = relationship("Role", secondary=user_roles, viewonly=True)
    permissions = relationship("Permission", secondary=user_permissions, viewonly=True)
