from pydantic import BaseModel, EmailStr
from typing import Optional, List
from datetime import datetime


class UserCreate(BaseModel):
    clerk_user_id: str
    name: str
    email: EmailStr
    avatar_url: Optional[str] = None


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    avatar_url: Optional[str] = None


class UserResponse(BaseModel):
    user_id: int
    clerk_user_id: str
    name: str
    email: str
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserSearchResult(BaseModel):
    user_id: int
    name: str
    email: str
    avatar_url: Optional[str] = None


class UserEnvelope(BaseModel):
    success: bool = True
    user: UserResponse


class UserListEnvelope(BaseModel):
    success: bool = True
    users: List[UserResponse]


class UserSearchEnvelope(BaseModel):
    success: bool = True
    users: List[UserSearchResult]
