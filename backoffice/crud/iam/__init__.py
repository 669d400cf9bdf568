from .role import role_crud
