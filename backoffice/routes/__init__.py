from .group_router import router as group_router
from .role_router import router as role_router
from .user_router import router as user_router
from .audit_log_router import router as audit_log_router
