from typing import Optional
from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    name: str = Field(..., min_length=1, max_length=200)
    user_type: str
    company: Optional[str] = Field(None, max_length=200)
    country: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    company: Optional[str] = Field(None, max_length=200)
    country: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    company: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None
    user_type: str
    profile_completed: bool
    verification_status: str
    created_at: str

    model_config = {"from_attributes": True}
