from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


class GroupCreate(BaseModel):
    name: str

class GroupUpdate(BaseModel):
    name: Optional[str] = None
    archived: Optional[bool] = None

class GroupOut(BaseModel):
    id: int
    name: str
    archived: bool

    model_config = {"from_attributes": True}


class GroupMemberCreate(BaseModel):
    user_id: int

# Members see each other's names only; contact details are shared through rides
class GroupMemberUser(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}

class GroupMemberOut(BaseModel):
    id: int
    group_id: int
    user_id: int
    user: GroupMemberUser
    joined_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

class GroupMembersResponse(BaseModel):
    group_id: int
    members: List[GroupMemberOut]
