"""Pydantic schemas for the organization audit trail."""

from datetime import datetime
from typing import Any
from uuid import UUID

from .base import OnboardingBaseModel, PaginatedResponse


class AuditEntryResponse(OnboardingBaseModel):
    id: UUID
    organization_id: UUID
    actor_user_id: UUID | None = None
    actor_role: str | None = None
    action: str
    previous_status: str | None = None
    new_status: str
    details: dict[str, Any] = {}
    created_at: datetime


class AuditHistoryResponse(PaginatedResponse):
    items: list[AuditEntryResponse]
