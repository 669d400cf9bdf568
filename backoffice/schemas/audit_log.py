from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any
from datetime import datetime

from backoffice.models.audit_log import AuditLogEvent


class AuditContext(BaseModel):
    """Who/where of an administrative action, captured at request time"""
    user_id: Optional[int] = None
    url: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls, request, user_id: Optional[int] = None) -> "AuditContext":
        if request is None:
            return cls(user_id=user_id)
        return cls(
            user_id=user_id,
            url=str(request.url),
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )


class AuditLogCreate(BaseModel):
    event: AuditLogEvent
    auditable_type: str
    auditable_id: Optional[int] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    user_id: Optional[int] = None
    url: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    tags: Optional[str] = None


class AuditLogResponse(BaseModel):
    id: int
    event: str
    auditable_type: str
    auditable_id: Optional[int] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    user_id: Optional[int] = None
    url: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    tags: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogFilter(BaseModel):
    event: Optional[AuditLogEvent] = None
    auditable_type: Optional[str] = None
    auditable_id: Optional[int] = None
    user_id: Optional[int] = None
    tag: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=50, ge=1, le=200)
