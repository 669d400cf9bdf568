from .role import RoleCreate, RoleUpdate, RoleResponse
from .user_access import RoleIdsRequest, PermissionIdsRequest
