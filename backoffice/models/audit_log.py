import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, func, Index
from backoffice.database.session import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    event = Column(String(50), nullable=False, index=True)  # 'created', 'updated', 'relationship_synced', ...
    auditable_type = Column(String(100), nullable=False)
    auditable_id = Column(Integer, nullable=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    url = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    tags = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False, index=True)

    __table_args__ = (
        Index('idx_auditable', 'auditable_type', 'auditable_id'),
    )


class AuditLogEvent(str, enum.Enum):
    """Audit event names stored in AuditLog.event"""
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    LOGIN = "login"
    LOGOUT = "logout"
    PASSWORD_CHANGED = "password_changed"
    RELATIONSHIP_SYNCED = "relationship_synced"
    EXPORT = "export"
