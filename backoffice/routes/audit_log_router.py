from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime
from backoffice.database.session import get_db
from backoffice.models.audit_log import AuditLogEvent
from backoffice.schemas.audit_log import AuditLogResponse, AuditLogFilter
from backoffice.crud.audit_log import audit_log
from backoffice.utils.response_utils import ResponseWrapper, handle_db_error, handle_http_error
from sqlalchemy.exc import SQLAlchemyError
from backoffice.core.logging_config import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/audit-logs", tags=["audit-logs"])


@router.get("/", status_code=status.HTTP_200_OK)
def list_audit_logs(
    event: Optional[AuditLogEvent] = Query(None, description="Event name"),
    auditable_type: Optional[str] = Query(None, description="Model class, e.g. Group"),
    auditable_id: Optional[int] = Query(None),
    user_id: Optional[int] = Query(None, description="Acting user"),
    tag: Optional[str] = Query(None, description="Substring of the comma separated tags"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=200, description="Items per page"),
    db: Session = Depends(get_db),
):
    """
    Audit trail, newest first.

    Example: GET /api/v1/audit-logs/?auditable_type=Group&tag=members
    """
    try:
        filters = AuditLogFilter(
            event=event,
            auditable_type=auditable_type,
            auditable_id=auditable_id,
            user_id=user_id,
            tag=tag,
            start_date=start_date,
            end_date=end_date,
            page=page,
            page_size=page_size,
        )
        logs, total_count = audit_log.get_filtered(db=db, filters=filters)
        logs_response = [AuditLogResponse.model_validate(log, from_attributes=True) for log in logs]

        logger.info(f"Retrieved {len(logs_response)} audit logs (page {page}, total {total_count})")

        return ResponseWrapper.success(
            data={
                "audit_logs": logs_response,
                "pagination": {
                    "page": page,
                    "page_size": page_size,
                    "total_count": total_count,
                    "total_pages": (total_count + page_size - 1) // page_size
                }
            },
            message="Audit logs retrieved successfully",
        )

    except SQLAlchemyError as e:
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while fetching audit logs: {str(e)}")
        raise handle_http_error(e)


@router.get("/{audit_id}", status_code=status.HTTP_200_OK)
def get_audit_log(audit_id: int, db: Session = Depends(get_db)):
    try:
        entry = audit_log.get_by_id(db=db, audit_id=audit_id)
        if not entry:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=ResponseWrapper.error(
                    message=f"Audit log {audit_id} not found",
                    error_code="AUDIT_LOG_NOT_FOUND",
                ),
            )
        return ResponseWrapper.success(data=AuditLogResponse.model_validate(entry, from_attributes=True))

    except SQLAlchemyError as e:
        raise handle_db_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error while fetching audit log {audit_id}: {str(e)}")
        raise handle_http_error(e)
