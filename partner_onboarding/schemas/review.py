"""Pydantic schemas for review queues and decisions."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from .base import OnboardingBaseModel


class QueueItemResponse(OnboardingBaseModel):
    id: UUID
    name: str
    status: str
    owner_email: str
    owner_first_name: str | None = None
    owner_last_name: str | None = None
    sector: str | None = None
    country: str | None = None
    document_count: int = 0
    created_at: datetime
    updated_at: datetime
    days_waiting: int
    urgency: Literal["normal", "aging", "urgent"]
    gm_approved_at: datetime | None = None


class SectorCountResponse(OnboardingBaseModel):
    sector: str
    count: int


class QueueSummaryResponse(OnboardingBaseModel):
    total: int
    aging_3_days: int
    aging_7_days: int
    aging_14_days: int
    sectors: list[SectorCountResponse]


class QueueResponse(OnboardingBaseModel):
    role: str
    items: list[QueueItemResponse]
    summary: QueueSummaryResponse


class DecisionRequest(BaseModel):
    """A reviewer's decision on one organization."""

    decision: Literal["approve", "changes_requested", "reject"]
    reason: str | None = Field(default=None, max_length=5000)
    sections: list[Literal["a", "b", "c"]] | None = Field(
        default=None,
        description="Sections the owner must revise; used with changes_requested",
    )


class DecisionResponse(OnboardingBaseModel):
    """
    Result of a decision.

    ``notification_delivered`` is false (with ``warning`` set) when the
    decision was recorded but its notification could not be sent. Such a
    decision must not be resubmitted.
    """

    organization_id: UUID
    previous_status: str
    status: str
    decided_at: datetime
    notification_delivered: bool
    warning: str | None = None
