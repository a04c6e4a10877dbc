from pydantic import BaseModel
from typing import Dict


class AdminUserUpdate(BaseModel):
    is_admin: bool


class AdminSummaryResponse(BaseModel):
    total_users: int
    pending_users: int
    total_groups: int
    active_pois: int
    rides_by_status: Dict[str, int]
