from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    name: str
    phone: str
    home_address: str


class UserLogin(BaseModel):
    email: EmailStr
    password: str

class UserOut(BaseModel):
    id: int
    email: EmailStr
    name: str
    is_approved: bool
    is_admin: bool

    class Config:
        from_attributes = True

# Own profile, includes the contact fields only the owner sees outside of rides
class ProfileOut(UserOut):
    phone: Optional[str] = None
    home_address: Optional[str] = None
    auth_type: str
    created_at: Optional[datetime] = None

class UserUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    home_address: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    is_admin: bool = False


class RefreshRequest(BaseModel):
    refresh_token: str
