# Import all models here so they register on Base.metadata
from backoffice.models.associations import (
    group_user,
    group_roles,
    group_permissions,
    user_roles,
    user_permissions,
    role_permissions,
)
from backoffice.models.user import User
from backoffice.models.group import Group
from backoffice.models.audit_log import AuditLog, AuditLogEvent
from backoffice.models.setting import Setting

# IAM models
from backoffice.models.iam.permission import Permission
from backoffice.models.iam.role import Role
