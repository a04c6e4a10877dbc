from pydantic import BaseModel
from typing import Optional


class ChildCreate(BaseModel):
    name: str
    phone: Optional[str] = None

class ChildUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None

class ChildOut(BaseModel):
    id: int
    parent_id: int
    name: str
    phone: Optional[str] = None

    model_config = {
        "from_attributes": True
    }
