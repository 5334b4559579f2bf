"""Pydantic schemas for registration and login."""

from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from .base import OnboardingBaseModel


class RegisterRequest(BaseModel):
    """Partner self-registration."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    organization_name: str = Field(..., min_length=1, max_length=255)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    sector: str | None = Field(default=None, max_length=100)
    country: str | None = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    """Login request with email and password."""

    email: EmailStr
    password: str


class TokenResponse(OnboardingBaseModel):
    """Token response after registration or login."""

    access_token: str
    token_type: str = "bearer"
    user_id: UUID
    role: str
    organization_id: UUID | None = None
    organization_status: str | None = None
    next_step: str


class ResendVerificationRequest(LoginRequest):
    """Credentials of an account whose email is still unverified."""

    pass


class ResendVerificationResponse(OnboardingBaseModel):
    organization_id: UUID
    notification_delivered: bool = True
    warning: str | None = None
