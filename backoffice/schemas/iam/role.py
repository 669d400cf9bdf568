from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    permissions: Optional[List[int]] = None


class RoleUpdate(RoleCreate):
    pass


class RoleResponse(BaseModel):
    id: int
    name: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
