from pydantic import BaseModel
from typing import Optional


class POIBase(BaseModel):
    name: str
    address: str

class POICreate(POIBase):
    pass

class POIUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    archived: Optional[bool] = None

class POIOut(POIBase):
    id: int
    archived: bool

    class Config:
        from_attributes = True
