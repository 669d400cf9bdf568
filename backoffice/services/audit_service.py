"""
Audit log recording.

Services build AuditLogCreate records and hand them to an AuditDispatcher.
Delivery is fire-and-forget for the caller: the queued dispatcher writes on a
worker pool with retries, the inline dispatcher writes immediately. A record
that still fails after the last attempt is logged and dropped; membership
state is never rolled back because of it.
"""
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Set

from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.core.logging_config import get_logger
from backoffice.crud.audit_log import audit_log
from backoffice.models.audit_log import AuditLogEvent
from backoffice.schemas.audit_log import AuditContext, AuditLogCreate

logger = get_logger(__name__)

SessionFactory = Callable[[], Session]


class AuditDispatcher:
    """Port for submitting audit records"""

    def dispatch(self, record: AuditLogCreate) -> None:
        raise NotImplementedError

    def drain(self, timeout: Optional[float] = None) -> None:
        """Block until every submitted record has been handled"""

    def shutdown(self) -> None:
        pass


def write_audit_record(session_factory: SessionFactory, record: AuditLogCreate) -> None:
    db = session_factory()
    try:
        audit_log.create(db=db, audit_log_data=record)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


class InlineAuditDispatcher(AuditDispatcher):
    """Writes each record synchronously in its own session"""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def dispatch(self, record: AuditLogCreate) -> None:
        try:
            write_audit_record(self.session_factory, record)
        except Exception as e:
            logger.error(
                f"AuditLog: failed to create entry event={record.event.value} "
                f"auditable={record.auditable_type}#{record.auditable_id}: {e}",
                exc_info=True,
            )


class QueuedAuditDispatcher(AuditDispatcher):
    """
    Worker-pool dispatcher with at-least-once delivery.

    Each job opens its own session, retries with linear backoff up to
    max_attempts and reports a final failure through failed().
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        workers: int = settings.AUDIT_QUEUE_WORKERS,
        max_attempts: int = settings.AUDIT_MAX_ATTEMPTS,
        retry_delay: float = settings.AUDIT_RETRY_DELAY,
    ):
        self.session_factory = session_factory
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="audit")
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()

    def dispatch(self, record: AuditLogCreate) -> None:
        future = self._executor.submit(self._deliver, record)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _deliver(self, record: AuditLogCreate) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            try:
                write_audit_record(self.session_factory, record)
                return True
            except Exception as e:
                logger.warning(
                    f"AuditLog: attempt {attempt}/{self.max_attempts} failed for "
                    f"{record.auditable_type}#{record.auditable_id}: {e}"
                )
                if attempt < self.max_attempts:
                    time.sleep(self.retry_delay * attempt)
                else:
                    self.failed(record, e)
        return False

    def failed(self, record: AuditLogCreate, error: Exception) -> None:
        logger.error(
            f"AuditLog: job failed after all retry attempts event={record.event.value} "
            f"auditable={record.auditable_type}#{record.auditable_id}: {error}",
            exc_info=error,
        )

    def drain(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
        logger.info("Audit dispatcher stopped")


class AuditService:
    """
    Builds audit records for model and relationship changes
    """

    def __init__(self, dispatcher: AuditDispatcher):
        self.dispatcher = dispatcher

    def log(
        self,
        event: AuditLogEvent,
        model: Any,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        context: Optional[AuditContext] = None,
        tags: Optional[str] = None,
    ) -> AuditLogCreate:
        """
        Submit an audit record. The model's type and id are captured here,
        so a deleted model can still be audited.
        """
        context = context or AuditContext()
        record = AuditLogCreate(
            event=event,
            auditable_type=type(model).__name__,
            auditable_id=getattr(model, "id", None),
            old_values=self.sanitize_data(old_values) if old_values is not None else None,
            new_values=self.sanitize_data(new_values) if new_values is not None else None,
            user_id=context.user_id,
            url=context.url,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            tags=tags,
        )
        self.dispatcher.dispatch(record)
        return record

    def log_member_change(
        self,
        group: Any,
        old_names: List[str],
        old_ids: List[int],
        new_names: List[str],
        new_ids: List[int],
        context: Optional[AuditContext] = None,
    ) -> AuditLogCreate:
        return self.log(
            AuditLogEvent.UPDATED,
            group,
            old_values={"members": old_names, "member_ids": old_ids},
            new_values={"members": new_names, "member_ids": new_ids},
            context=context,
            tags="group,members",
        )

    def log_relationship_sync(
        self,
        model: Any,
        display_name: str,
        old_names: List[str],
        old_ids: List[int],
        new_names: List[str],
        new_ids: List[int],
        context: Optional[AuditContext] = None,
    ) -> AuditLogCreate:
        return self.log(
            AuditLogEvent.RELATIONSHIP_SYNCED,
            model,
            old_values={display_name: old_names, f"{display_name}_ids": old_ids},
            new_values={display_name: new_names, f"{display_name}_ids": new_ids},
            context=context,
            tags=f"relationship,sync,{display_name}",
        )

    @staticmethod
    def sanitize_data(data: Dict[str, Any], fields_to_exclude: list = None) -> Dict[str, Any]:
        """
        Sanitize data before logging (remove sensitive fields like passwords)
        """
        if fields_to_exclude is None:
            fields_to_exclude = ['password', 'password_hash', 'token', 'secret', 'api_key']

        sanitized = data.copy()
        for field in fields_to_exclude:
            if field in sanitized:
                sanitized[field] = "***REDACTED***"

        return sanitized


def build_audit_dispatcher(session_factory: SessionFactory) -> AuditDispatcher:
    if settings.AUDIT_QUEUE_ENABLED:
        return QueuedAuditDispatcher(session_factory)
    return InlineAuditDispatcher(session_factory)
