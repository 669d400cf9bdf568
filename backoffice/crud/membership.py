"""
Direct access to the group_user join table.

Bulk membership changes bypass the ORM relationship collections so that
adding or removing members never loads a full roster into the session.
"""
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, insert, or_, select
from sqlalchemy.orm import Session

from backoffice.models.associations import group_user
from backoffice.models.user import User


class CRUDMembership:
    def count(self, db: Session, *, group_id: int) -> int:
        return db.execute(
            select(func.count()).select_from(group_user).where(group_user.c.group_id == group_id)
        ).scalar_one()

    def existing_user_ids(self, db: Session, *, group_id: int, user_ids: Sequence[int]) -> List[int]:
        """The subset of user_ids that are already members of the group"""
        if not user_ids:
            return []
        return list(
            db.execute(
                select(group_user.c.user_id).where(
                    group_user.c.group_id == group_id,
                    group_user.c.user_id.in_(user_ids),
                )
            ).scalars()
        )

    def member_ids(self, db: Session, *, group_id: int) -> List[int]:
        return list(
            db.execute(
                select(group_user.c.user_id)
                .where(group_user.c.group_id == group_id)
                .order_by(group_user.c.user_id)
            ).scalars()
        )

    def iter_member_rows(self, db: Session, *, group_id: int, chunk_size: int) -> Iterator[List[Tuple[int, str]]]:
        """
        Yield (user_id, name) rows of a group's members in chunks of chunk_size,
        paginating on user id so each query stays bounded.
        """
        last_id = 0
        while True:
            rows = db.execute(
                select(User.id, User.name)
                .join(group_user, group_user.c.user_id == User.id)
                .where(group_user.c.group_id == group_id, User.id > last_id)
                .order_by(User.id)
                .limit(chunk_size)
            ).all()
            if not rows:
                return
            yield [(row.id, row.name) for row in rows]
            if len(rows) < chunk_size:
                return
            last_id = rows[-1].id

    def _user_page(
        self, db: Session, query, *, search: Optional[str], sort: str, direction: str, skip: int, limit: int
    ) -> Tuple[List[User], int]:
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

        total = db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        column = getattr(User, sort)
        order = column.desc() if direction == "desc" else column.asc()
        users = list(db.execute(query.order_by(order, User.id).offset(skip).limit(limit)).scalars())
        return users, total

    def list_members(
        self,
        db: Session,
        *,
        group_id: int,
        search: Optional[str] = None,
        sort: str = "name",
        direction: str = "asc",
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[User], int]:
        """One page of a group's members, searchable by name or email"""
        query = select(User).join(group_user, group_user.c.user_id == User.id).where(group_user.c.group_id == group_id)
        return self._user_page(db, query, search=search, sort=sort, direction=direction, skip=skip, limit=limit)

    def list_available_users(
        self,
        db: Session,
        *,
        group_id: int,
        search: Optional[str] = None,
        sort: str = "name",
        direction: str = "asc",
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[User], int]:
        """One page of users who are not members of the group"""
        members = select(group_user.c.user_id).where(group_user.c.group_id == group_id)
        query = select(User).where(User.id.not_in(members))
        return self._user_page(db, query, search=search, sort=sort, direction=direction, skip=skip, limit=limit)

    def bulk_insert(self, db: Session, *, group_id: int, user_ids: Sequence[int]) -> int:
        if not user_ids:
            return 0
        now = datetime.now(timezone.utc)
        db.execute(
            insert(group_user),
            [
                {"group_id": group_id, "user_id": user_id, "created_at": now, "updated_at": now}
                for user_id in user_ids
            ],
        )
        return len(user_ids)

    def bulk_delete(self, db: Session, *, group_id: int, user_ids: Sequence[int]) -> int:
        """Delete the given memberships; returns the number of rows removed"""
        if not user_ids:
            return 0
        result = db.execute(
            delete(group_user).where(
                group_user.c.group_id == group_id,
                group_user.c.user_id.in_(user_ids),
            )
        )
        return result.rowcount

    def user_names(self, db: Session, *, user_ids: Sequence[int]) -> Dict[int, str]:
        """Map of id -> name for the users that exist among user_ids"""
        if not user_ids:
            return {}
        rows = db.execute(select(User.id, User.name).where(User.id.in_(user_ids))).all()
        return {row.id: row.name for row in rows}


membership_crud = CRUDMembership()
