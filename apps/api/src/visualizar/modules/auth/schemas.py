"""Authentication schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from visualizar.modules.users.models import UserRole


class SendOtpRequest(BaseModel):
    email: EmailStr


class SendOtpResponse(BaseModel):
    message: str
    email: str


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    token: str = Field(..., min_length=1, max_length=20)


class SessionUser(BaseModel):
    """User summary returned after login. Shape depends on role."""

    id: str
    email: str
    name: str | None = None
    role: UserRole
    supabase_user_id: str
    teacher_id: str | None = None
    student_id: str | None = None
    avatar: str | None = None


class VerifyOtpResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: SessionUser
    attempts: int
    retry_at: datetime | None = None


class UserProfile(BaseModel):
    """Authenticated-user projection."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str | None = None
    role: UserRole
    supabase_user_id: str | None = None


class ValidateResponse(BaseModel):
    valid: bool = True
    user: UserProfile


class CreateUserRequest(BaseModel):
    """Request body for POST /auth/create-user."""

    email: EmailStr
    dni: str = Field(..., min_length=1, max_length=50)
    role: UserRole
    name: str | None = Field(None, max_length=200)


class CreatedUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str | None = None
    dni: str
    role: UserRole
    supabase_user_id: str


class CreateUserResponse(BaseModel):
    message: str
    user: CreatedUser
