from typing import List, Optional, Tuple
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session
from backoffice.models.group import Group
from backoffice.models.associations import group_user, group_permissions
from backoffice.schemas.group import GroupCreate, GroupUpdate
from backoffice.crud.base import CRUDBase


class CRUDGroup(CRUDBase[Group, GroupCreate, GroupUpdate]):
    def get_multi_with_counts(
        self, db: Session, *, search: Optional[str] = None, skip: int = 0, limit: int = 20
    ) -> Tuple[List[dict], int]:
        """
        Groups newest first with users_count and permissions_count
        """
        users_count = (
            select(func.count()).select_from(group_user)
            .where(group_user.c.group_id == Group.id)
            .scalar_subquery()
        )
        permissions_count = (
            select(func.count()).select_from(group_permissions)
            .where(group_permissions.c.group_id == Group.id)
            .scalar_subquery()
        )
        query = db.query(Group, users_count.label("users_count"), permissions_count.label("permissions_count"))

        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Group.name.ilike(pattern),
                Group.slug.ilike(pattern),
                Group.description.ilike(pattern),
            ))

        total = query.count()
        rows = query.order_by(Group.created_at.desc(), Group.id.desc()).offset(skip).limit(limit).all()
        return [
            {"group": group, "users_count": users, "permissions_count": permissions}
            for group, users, permissions in rows
        ], total

group_crud = CRUDGroup(Group)
