from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal


Role = Literal["admin", "manager", "user"]


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    display_name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=4)

    @field_validator("username", "display_name", mode="before")
    @classmethod
    def strip(cls, v):
        return str(v).strip() if v is not None else v


class LoginRequest(BaseModel):
    username: str
    password: str


class UserCreateRequest(RegisterRequest):
    role: Role = "user"


class UserUpdateRequest(BaseModel):
    display_name: str = Field(min_length=1, max_length=100)
    role: Role


class ApproveRequest(BaseModel):
    role: Role = "user"


class PasswordChangeRequest(BaseModel):
    currentPassword: Optional[str] = None
    newPassword: str = Field(min_length=4)


class UserResponse(BaseModel):
    username: str
    display_name: str
    role: str
    approval_status: str
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    user: UserResponse
    token: str
    message: str = "Login successful"
