from sqlalchemy.orm import Session
from sqlalchemy import and_
from typing import Optional, List
from datetime import datetime, timedelta, timezone
from backoffice.models.audit_log import AuditLog
from backoffice.schemas.audit_log import AuditLogCreate, AuditLogFilter
from backoffice.core.logging_config import get_logger

logger = get_logger(__name__)


class CRUDAuditLog:
    def create(self, db: Session, *, audit_log_data: AuditLogCreate) -> AuditLog:
        """
        Create a new audit log entry
        """
        data = audit_log_data.model_dump()
        data["event"] = audit_log_data.event.value
        db_audit_log = AuditLog(**data)
        db.add(db_audit_log)
        db.commit()
        db.refresh(db_audit_log)
        return db_audit_log

    def get_by_id(self, db: Session, *, audit_id: int) -> Optional[AuditLog]:
        """
        Get a specific audit log by ID
        """
        return db.query(AuditLog).filter(AuditLog.id == audit_id).first()

    def get_filtered(
        self,
        db: Session,
        *,
        filters: AuditLogFilter
    ) -> tuple[List[AuditLog], int]:
        """
        Get audit logs with filters and pagination
        Returns tuple of (records, total_count)
        """
        query = db.query(AuditLog)

        conditions = []

        if filters.event:
            conditions.append(AuditLog.event == filters.event.value)

        if filters.auditable_type:
            conditions.append(AuditLog.auditable_type == filters.auditable_type)

        if filters.auditable_id is not None:
            conditions.append(AuditLog.auditable_id == filters.auditable_id)

        if filters.user_id is not None:
            conditions.append(AuditLog.user_id == filters.user_id)

        if filters.tag:
            conditions.append(AuditLog.tags.like(f"%{filters.tag}%"))

        if filters.start_date:
            conditions.append(AuditLog.created_at >= filters.start_date)

        if filters.end_date:
            conditions.append(AuditLog.created_at <= filters.end_date)

        if conditions:
            query = query.filter(and_(*conditions))

        total_count = query.count()

        skip = (filters.page - 1) * filters.page_size
        records = (
            query
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset(skip)
            .limit(filters.page_size)
            .all()
        )

        return records, total_count

    def get_for_model(
        self,
        db: Session,
        *,
        auditable_type: str,
        auditable_id: int,
        skip: int = 0,
        limit: int = 100
    ) -> List[AuditLog]:
        """
        Get the audit trail of one record, oldest first
        """
        return (
            db.query(AuditLog)
            .filter(
                and_(
                    AuditLog.auditable_type == auditable_type,
                    AuditLog.auditable_id == auditable_id
                )
            )
            .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def delete_older_than(self, db: Session, *, days: int, dry_run: bool = False) -> int:
        """
        Delete entries created more than `days` days ago; returns how many
        were (or, with dry_run, would be) deleted
        """
        cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=days)
        query = db.query(AuditLog).filter(AuditLog.created_at < cutoff)
        count = query.count()
        if dry_run or count == 0:
            return count

        deleted = query.delete(synchronize_session=False)
        db.commit()
        logger.info(f"Deleted {deleted} audit log entries older than {days} days")
        return deleted


audit_log = CRUDAuditLog()
