"""
Bulk add, remove and transfer of group members, and paginated member listings.

Each operation diffs the request against the current membership, writes
only the difference straight to the group_user table inside one transaction,
and after commit records a before/after audit snapshot per changed group and
clears the caches of every affected user. Groups above the large-group
threshold are audited as "[N members]" placeholders instead of full rosters.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.core.constants import (
    AVAILABLE_USERS_PER_PAGE_KEY,
    LARGE_GROUP_THRESHOLD_KEY,
    MEMBER_DATA_CHUNK_SIZE_KEY,
    MEMBERS_DEFAULT_SORT_DIRECTION_KEY,
    MEMBERS_DEFAULT_SORT_KEY,
    MEMBERS_PER_PAGE_KEY,
)
from backoffice.core.logging_config import get_logger
from backoffice.crud.membership import membership_crud
from backoffice.models.group import Group
from backoffice.models.user import User
from backoffice.schemas.audit_log import AuditContext
from backoffice.services.audit_service import AuditService
from backoffice.services.group_cache_service import GroupCacheService
from backoffice.services.settings_service import SettingsService
from backoffice.utils.response_utils import not_found, unprocessable

logger = get_logger(__name__)

MEMBER_SORTS = ("name", "email")
PER_PAGE_CHOICES = (10, 20, 30, 50)


@dataclass
class MemberChangeResult:
    count: int
    message: str
    skipped: int = 0


@dataclass
class TransferResult:
    count: int
    removed: int
    already_in_target: int
    message: str


@dataclass
class MemberPage:
    users: List[User]
    total: int
    page: int
    per_page: int


def placeholder(count: int) -> List[str]:
    return [f"[{count} members]"]


def plural(count: int, singular: str, many: str) -> str:
    return singular if count == 1 else many


@dataclass
class MemberSnapshot:
    """
    A group's membership as recorded in audit values.

    Small groups keep the full id -> name roster; large groups only the count.
    """
    count: int
    roster: Optional[Dict[int, str]] = None

    @property
    def is_large(self) -> bool:
        return self.roster is None

    @property
    def ids(self) -> List:
        return placeholder(self.count) if self.is_large else sorted(self.roster)

    @property
    def names(self) -> List[str]:
        return placeholder(self.count) if self.is_large else sorted(self.roster.values())

    def apply(self, removed_ids: Sequence[int] = (), added: Dict[int, str] = None) -> "MemberSnapshot":
        """
        The snapshot after a known diff. removed_ids and added must be the rows
        that actually changed, so the new count stays exact.
        """
        added = added or {}
        new_count = self.count - len(removed_ids) + len(added)
        if self.is_large:
            return MemberSnapshot(new_count)

        removed = set(removed_ids)
        roster = {user_id: name for user_id, name in self.roster.items() if user_id not in removed}
        roster.update(added)
        return MemberSnapshot(new_count, roster)


@dataclass
class _PendingAudit:
    group: Group
    before: MemberSnapshot
    after: MemberSnapshot


@dataclass
class _Outcome:
    audits: List[_PendingAudit] = field(default_factory=list)
    affected_user_ids: List[int] = field(default_factory=list)


class GroupMemberService:
    def __init__(
        self,
        db: Session,
        cache_service: GroupCacheService,
        audit_service: AuditService,
        settings_service: SettingsService,
    ):
        self.db = db
        self.cache_service = cache_service
        self.audit_service = audit_service
        self.settings_service = settings_service

    @property
    def large_group_threshold(self) -> int:
        return self.settings_service.get_int(LARGE_GROUP_THRESHOLD_KEY, settings.GROUPS_LARGE_GROUP_THRESHOLD)

    @property
    def chunk_size(self) -> int:
        return max(1, self.settings_service.get_int(MEMBER_DATA_CHUNK_SIZE_KEY, settings.GROUPS_MEMBER_DATA_CHUNK_SIZE))

    @staticmethod
    def _dedupe(user_ids: Iterable[int]) -> List[int]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            raise unprocessable("At least one user must be selected.", "EMPTY_USER_IDS")
        return ids

    def _require_users(self, user_ids: Sequence[int]) -> Dict[int, str]:
        names = membership_crud.user_names(self.db, user_ids=user_ids)
        missing = [user_id for user_id in user_ids if user_id not in names]
        if missing:
            raise not_found("User", missing)
        return names

    def _snapshot(self, group: Group, threshold: int, chunk_size: int) -> MemberSnapshot:
        count = membership_crud.count(self.db, group_id=group.id)
        if count > threshold:
            return MemberSnapshot(count)

        roster: Dict[int, str] = {}
        for rows in membership_crud.iter_member_rows(self.db, group_id=group.id, chunk_size=chunk_size):
            roster.update(rows)
        return MemberSnapshot(count, roster)

    def _commit(self, outcome: _Outcome, context: Optional[AuditContext]) -> None:
        """Commit, then emit audit records and clear caches; roll back on failure"""
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        for pending in outcome.audits:
            self.audit_service.log_member_change(
                pending.group,
                pending.before.names,
                pending.before.ids,
                pending.after.names,
                pending.after.ids,
                context=context,
            )
        self.cache_service.clear_for_membership_change(outcome.affected_user_ids)

    def add_members(
        self, group: Group, user_ids: Iterable[int], context: Optional[AuditContext] = None
    ) -> MemberChangeResult:
        """Add the users that are not members yet; existing members are skipped"""
        ids = self._dedupe(user_ids)
        try:
            names = self._require_users(ids)
            existing = set(membership_crud.existing_user_ids(self.db, group_id=group.id, user_ids=ids))
            new_ids = [user_id for user_id in ids if user_id not in existing]

            if not new_ids:
                self.db.rollback()
                logger.debug(f"Group {group.id}: all {len(ids)} users already members, nothing to add")
                return MemberChangeResult(
                    count=0,
                    skipped=len(ids),
                    message="All selected users are already members of this group.",
                )

            before = self._snapshot(group, self.large_group_threshold, self.chunk_size)
            inserted = membership_crud.bulk_insert(self.db, group_id=group.id, user_ids=new_ids)
            after = before.apply(added={user_id: names[user_id] for user_id in new_ids})
        except Exception:
            self.db.rollback()
            raise

        self._commit(_Outcome([_PendingAudit(group, before, after)], new_ids), context)

        skipped = len(ids) - inserted
        message = f"{inserted} {plural(inserted, 'member', 'members')} added successfully."
        if skipped > 0:
            message += f" {skipped} {plural(skipped, 'was', 'were')} already a member of this group."
        logger.info(f"Added {inserted} members to group {group.id} ({skipped} skipped)")
        return MemberChangeResult(count=inserted, skipped=skipped, message=message)

    def remove_members(
        self, group: Group, user_ids: Iterable[int], context: Optional[AuditContext] = None
    ) -> MemberChangeResult:
        """Remove the users that are actually members; others are ignored"""
        ids = self._dedupe(user_ids)
        try:
            existing = set(membership_crud.existing_user_ids(self.db, group_id=group.id, user_ids=ids))
            to_remove = [user_id for user_id in ids if user_id in existing]

            if not to_remove:
                self.db.rollback()
                logger.debug(f"Group {group.id}: none of {len(ids)} users are members, nothing to remove")
                return MemberChangeResult(
                    count=0,
                    skipped=len(ids),
                    message="None of the selected users are members of this group.",
                )

            before = self._snapshot(group, self.large_group_threshold, self.chunk_size)
            removed = membership_crud.bulk_delete(self.db, group_id=group.id, user_ids=to_remove)
            after = before.apply(removed_ids=to_remove)
        except Exception:
            self.db.rollback()
            raise

        self._commit(_Outcome([_PendingAudit(group, before, after)], to_remove), context)

        logger.info(f"Removed {removed} members from group {group.id}")
        return MemberChangeResult(
            count=removed,
            skipped=len(ids) - removed,
            message=f"{removed} {plural(removed, 'member', 'members')} removed successfully.",
        )

    def transfer_members(
        self,
        source: Group,
        target: Group,
        user_ids: Iterable[int],
        context: Optional[AuditContext] = None,
    ) -> TransferResult:
        """
        Remove the users from source and add those not yet in target.

        count is the number of users added to target, removed the number
        taken out of source. Each group is audited only if it changed.
        """
        ids = self._dedupe(user_ids)
        if source.id == target.id:
            raise unprocessable(
                "Source and target group must be different.",
                "SAME_GROUP_TRANSFER",
                details={"group_id": source.id},
            )

        try:
            names = self._require_users(ids)
            in_source = set(membership_crud.existing_user_ids(self.db, group_id=source.id, user_ids=ids))
            in_target = set(membership_crud.existing_user_ids(self.db, group_id=target.id, user_ids=ids))
            to_remove = [user_id for user_id in ids if user_id in in_source]
            to_add = [user_id for user_id in ids if user_id not in in_target]
            already_in_target = len(ids) - len(to_add)

            if not to_remove and not to_add:
                self.db.rollback()
                logger.debug(f"Transfer {source.id} -> {target.id}: nothing to change")
                return TransferResult(
                    count=0,
                    removed=0,
                    already_in_target=already_in_target,
                    message="All selected users are already in the target group.",
                )

            threshold = self.large_group_threshold
            chunk_size = self.chunk_size
            outcome = _Outcome(affected_user_ids=sorted(set(to_remove) | set(to_add)))

            removed = 0
            if to_remove:
                source_before = self._snapshot(source, threshold, chunk_size)
                removed = membership_crud.bulk_delete(self.db, group_id=source.id, user_ids=to_remove)
                outcome.audits.append(
                    _PendingAudit(source, source_before, source_before.apply(removed_ids=to_remove))
                )

            inserted = 0
            if to_add:
                target_before = self._snapshot(target, threshold, chunk_size)
                inserted = membership_crud.bulk_insert(self.db, group_id=target.id, user_ids=to_add)
                outcome.audits.append(
                    _PendingAudit(
                        target,
                        target_before,
                        target_before.apply(added={user_id: names[user_id] for user_id in to_add}),
                    )
                )
        except Exception:
            self.db.rollback()
            raise

        self._commit(outcome, context)

        message = f"{inserted} {plural(inserted, 'member', 'members')} transferred successfully."
        if already_in_target > 0:
            message += f" {already_in_target} {plural(already_in_target, 'was', 'were')} already in the target group."
        logger.info(
            f"Transferred members {source.id} -> {target.id}: {removed} removed, "
            f"{inserted} added, {already_in_target} already in target"
        )
        return TransferResult(
            count=inserted,
            removed=removed,
            already_in_target=already_in_target,
            message=message,
        )

    # ---------------------------
    # Listings
    # ---------------------------
    def _page_options(
        self, per_page_key: str, default_per_page: int, sort: Optional[str], direction: Optional[str], per_page: Optional[int]
    ) -> Tuple[str, str, int]:
        """Unknown sorts, directions and page sizes fall back to the configured defaults"""
        if sort not in MEMBER_SORTS:
            sort = self.settings_service.get(MEMBERS_DEFAULT_SORT_KEY, "name")
            if sort not in MEMBER_SORTS:
                sort = "name"
        if direction not in ("asc", "desc"):
            direction = self.settings_service.get(MEMBERS_DEFAULT_SORT_DIRECTION_KEY, "asc")
            if direction not in ("asc", "desc"):
                direction = "asc"
        if per_page not in PER_PAGE_CHOICES:
            per_page = max(1, self.settings_service.get_int(per_page_key, default_per_page))
        return sort, direction, per_page

    def list_members(
        self,
        group: Group,
        search: Optional[str] = None,
        sort: Optional[str] = None,
        direction: Optional[str] = None,
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> MemberPage:
        sort, direction, per_page = self._page_options(
            MEMBERS_PER_PAGE_KEY, settings.GROUPS_MEMBERS_PER_PAGE, sort, direction, per_page
        )
        users, total = membership_crud.list_members(
            self.db,
            group_id=group.id,
            search=search,
            sort=sort,
            direction=direction,
            skip=(page - 1) * per_page,
            limit=per_page,
        )
        return MemberPage(users=users, total=total, page=page, per_page=per_page)

    def list_available_users(
        self,
        group: Group,
        search: Optional[str] = None,
        sort: Optional[str] = None,
        direction: Optional[str] = None,
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> MemberPage:
        """Users who can still be added to the group"""
        sort, direction, per_page = self._page_options(
            AVAILABLE_USERS_PER_PAGE_KEY, settings.GROUPS_AVAILABLE_USERS_PER_PAGE, sort, direction, per_page
        )
        users, total = membership_crud.list_available_users(
            self.db,
            group_id=group.id,
            search=search,
            sort=sort,
            direction=direction,
            skip=(page - 1) * per_page,
            limit=per_page,
        )
        return MemberPage(users=users, total=total, page=page, per_page=per_page)
