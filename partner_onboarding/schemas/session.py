"""Pydantic schemas for the session and access gate endpoints."""

from uuid import UUID

from pydantic import BaseModel, Field

from .base import OnboardingBaseModel
from .review import QueueSummaryResponse


class SessionUser(OnboardingBaseModel):
    id: UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None
    role: str
    email_verified: bool
    organization_id: UUID | None = None


class SessionOrganization(OnboardingBaseModel):
    id: UUID
    name: str
    status: str


class SessionResponse(OnboardingBaseModel):
    """Everything a client needs to route the caller."""

    user: SessionUser
    organization: SessionOrganization | None = None
    next_step: str
    onboarding_locked: bool
    reviewer: QueueSummaryResponse | None = None


class AccessRequest(BaseModel):
    """
    Destination to evaluate.

    Known onboarding paths use their catalog guards. For any other path
    the guards given here are used.
    """

    path: str = Field(..., min_length=1)
    required_role: str | None = None
    requires_email_verified: bool = False
    required_status: list[str] | None = None
    partner_area: bool = True


class AccessResponse(OnboardingBaseModel):
    allowed: bool
    redirect_to: str | None = None
