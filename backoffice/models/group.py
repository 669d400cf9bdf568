import uuid

from slugify import slugify as transliterate_slug
from sqlalchemy import Column, Integer, String, Text, DateTime, func, event
from sqlalchemy.orm import relationship
from backoffice.database.session import Base
from backoffice.models.associations import group_user, group_roles, group_permissions


def slugify(value: str) -> str:
    """
    'Content Editors' -> 'content-editors', 'Редакторы' -> 'redaktory'.

    Names with nothing to transliterate (only symbols or emoji) get a
    random 'group-xxxxxxxx' slug so the unique index is never hit by ''.
    """
    return transliterate_slug(value or "", max_length=255) or f"group-{uuid.uuid4().hex[:8]}"


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Read-only views; membership and grants are written through the join tables
    users = relationship("User", secondary=group_user, back_populates="groups", viewonly=True)
    roles = relationship("Role", secondary=group_roles, viewonly=True)
    permissions = relationship("Permission", secondary=group_permissions, viewonly=True)


@event.listens_for(Group, "before_insert")
def _group_default_slug(mapper, connection, target):
    if not target.slug:
        target.slug = slugify(target.name)
