"""
Generic many-to-many sync over explicit join tables.

Groups, users and roles all replace their related id sets the same way:
diff the desired ids against the current rows, delete what is gone and insert
what is new. The audited variant records the before/after names and ids.
"""
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type

from sqlalchemy import Table, delete, insert, select
from sqlalchemy.orm import Session

from backoffice.core.constants import Roles
from backoffice.core.logging_config import get_logger
from backoffice.models.associations import (
    group_permissions,
    group_roles,
    group_user,
    role_permissions,
    user_permissions,
    user_roles,
)
from backoffice.models.group import Group
from backoffice.models.iam import Permission, Role
from backoffice.models.user import User
from backoffice.schemas.audit_log import AuditContext
from backoffice.services.audit_service import AuditService
from backoffice.utils.response_utils import not_found

logger = get_logger(__name__)


@dataclass(frozen=True)
class JoinSpec:
    table: Table
    owner_column: str
    related_column: str
    related_model: Type


@dataclass
class SyncResult:
    added: List[int] = field(default_factory=list)
    removed: List[int] = field(default_factory=list)
    old_ids: List[int] = field(default_factory=list)
    new_ids: List[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


RELATIONS: Dict[Tuple[Type, str], JoinSpec] = {
    (Group, "users"): JoinSpec(group_user, "group_id", "user_id", User),
    (Group, "roles"): JoinSpec(group_roles, "group_id", "role_id", Role),
    (Group, "permissions"): JoinSpec(group_permissions, "group_id", "permission_id", Permission),
    (User, "roles"): JoinSpec(user_roles, "user_id", "role_id", Role),
    (User, "permissions"): JoinSpec(user_permissions, "user_id", "permission_id", Permission),
    (Role, "permissions"): JoinSpec(role_permissions, "role_id", "permission_id", Permission),
}


def get_relation(model: Any, relation_name: str) -> JoinSpec:
    try:
        return RELATIONS[(type(model), relation_name)]
    except KeyError:
        raise ValueError(f"No join table registered for {type(model).__name__}.{relation_name}")


def current_ids(db: Session, relation: JoinSpec, owner_id: int) -> List[int]:
    owner = relation.table.c[relation.owner_column]
    related = relation.table.c[relation.related_column]
    return sorted(db.execute(select(related).where(owner == owner_id)).scalars())


def sync_many_to_many(db: Session, relation: JoinSpec, owner_id: int, desired_ids: Iterable[int]) -> SyncResult:
    """
    Make the owner's related ids equal desired_ids, touching only the
    difference. Flushes but does not commit.
    """
    owner = relation.table.c[relation.owner_column]
    related = relation.table.c[relation.related_column]

    old_ids = current_ids(db, relation, owner_id)
    desired = sorted(set(desired_ids))
    to_remove = sorted(set(old_ids) - set(desired))
    to_add = sorted(set(desired) - set(old_ids))

    if to_remove:
        db.execute(delete(relation.table).where(owner == owner_id, related.in_(to_remove)))
    if to_add:
        db.execute(
            insert(relation.table),
            [{relation.owner_column: owner_id, relation.related_column: related_id} for related_id in to_add],
        )
    db.flush()

    return SyncResult(added=to_add, removed=to_remove, old_ids=old_ids, new_ids=desired)


def related_names(db: Session, related_model: Type, ids: List[int]) -> List[str]:
    if not ids:
        return []
    return sorted(db.execute(select(related_model.name).where(related_model.id.in_(ids))).scalars())


def normalize_ids(ids: Optional[Iterable[Any]]) -> List[int]:
    """Drop None/empty values, cast, dedupe and sort"""
    return sorted({int(i) for i in (ids or []) if i is not None and i != ""})


class RelationshipSyncService:
    def __init__(self, db: Session, audit_service: AuditService):
        self.db = db
        self.audit_service = audit_service

    def validate_ids(self, related_model: Type, ids: List[int]) -> None:
        """Raise 404 listing any ids with no matching row"""
        if not ids:
            return
        found = set(self.db.execute(select(related_model.id).where(related_model.id.in_(ids))).scalars())
        missing = sorted(set(ids) - found)
        if missing:
            raise not_found(related_model.__name__, missing)

    def sync_with_audit(
        self,
        model: Any,
        relation_name: str,
        new_ids: Optional[Iterable[Any]],
        display_name: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> SyncResult:
        """
        Replace model.<relation_name> with new_ids, commit, and record a
        relationship_synced audit entry when the id list changed.
        """
        relation = get_relation(model, relation_name)
        display_name = display_name or relation_name
        ids = normalize_ids(new_ids)
        self.validate_ids(relation.related_model, ids)

        old_names = related_names(self.db, relation.related_model, current_ids(self.db, relation, model.id))
        try:
            result = sync_many_to_many(self.db, relation, model.id, ids)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if result.old_ids != result.new_ids:
            new_names = related_names(self.db, relation.related_model, result.new_ids)
            self.audit_service.log_relationship_sync(
                model,
                display_name,
                old_names,
                result.old_ids,
                new_names,
                result.new_ids,
                context=context,
            )
            logger.info(
                f"Synced {type(model).__name__}#{model.id}.{relation_name}: "
                f"+{len(result.added)} -{len(result.removed)}"
            )
        return result


class SuperAdminRoleLookup:
    """
    Process-wide read-through holder of the Super Admin role id.

    Passed explicitly to the services that need it; reset() forgets the
    cached id.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory
        self._role_id: Optional[int] = None
        self._loaded = False
        self._lock = threading.Lock()

    def get_id(self) -> Optional[int]:
        if self._loaded:
            return self._role_id
        with self._lock:
            if not self._loaded:
                db = self.session_factory()
                try:
                    self._role_id = db.execute(
                        select(Role.id).where(Role.name == Roles.SUPER_ADMIN)
                    ).scalar_one_or_none()
                finally:
                    db.close()
                # An absent role is not cached so it is picked up once seeded
                self._loaded = self._role_id is not None
        return self._role_id

    def without_super_admin(self, role_ids: Iterable[int]) -> List[int]:
        super_admin_id = self.get_id()
        return [role_id for role_id in role_ids if role_id != super_admin_id]

    def reset(self) -> None:
        with self._lock:
            self._role_id = None
            self._loaded = False
