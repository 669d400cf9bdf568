from pydantic import BaseModel
from typing import List


class RoleIdsRequest(BaseModel):
    role_ids: List[int]


class PermissionIdsRequest(BaseModel):
    permission_ids: List[int]
