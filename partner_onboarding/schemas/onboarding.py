"""Pydantic schemas for partner onboarding progression."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .base import OnboardingBaseModel


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1)


class ProgressResponse(OnboardingBaseModel):
    organization_id: UUID
    previous_status: str
    status: str
    updated_at: datetime
    next_step: str
    notification_delivered: bool = True
    warning: str | None = None


class ReviewStatusResponse(OnboardingBaseModel):
    organization_status: str
    can_proceed: bool
