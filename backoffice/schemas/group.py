from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime


class GroupBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None


class GroupCreate(GroupBase):
    members: Optional[List[int]] = None
    roles: Optional[List[int]] = None
    permissions: Optional[List[int]] = None


class GroupUpdate(GroupCreate):
    pass


class GroupResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MemberIdsRequest(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)


class TransferMembersRequest(MemberIdsRequest):
    target_group_id: int
