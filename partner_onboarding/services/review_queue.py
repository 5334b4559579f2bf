"""
Review Queue: organizations awaiting a reviewer role's decision.

Items and summary are computed from one snapshot read so that the counts
always agree with the listed items. Aging buckets are inclusive: an item
waiting 10 days counts toward the 3 and 7 day buckets as well as its own.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings
from ..models import AuditAction, AuditLog, Organization, OrgStatus, Role, as_utc, utc_now
from .organizations import UNAVAILABLE_ERRORS
from .workflow import (
    OrganizationNotFoundError,
    PersistenceUnavailableError,
    ReviewTier,
    WorkflowError,
    get_review_tier,
)

logger = logging.getLogger(__name__)

AGING_THRESHOLDS = (3, 7, 14)

QueueOrder = Literal["oldest_first", "newest_first"]
Urgency = Literal["normal", "aging", "urgent"]


class UnknownQueueError(WorkflowError):
    """The role has no review queue."""
    pass


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class QueueItem:
    """An organization in a review queue, annotated with its wait time."""
    id: UUID
    name: str
    status: OrgStatus
    owner_email: str
    owner_first_name: str | None
    owner_last_name: str | None
    sector: str | None
    country: str | None
    document_count: int
    created_at: datetime
    updated_at: datetime
    days_waiting: int
    urgency: Urgency
    gm_approved_at: datetime | None = None


@dataclass
class SectorCount:
    sector: str
    count: int


@dataclass
class QueueSummary:
    total: int = 0
    aging_3_days: int = 0
    aging_7_days: int = 0
    aging_14_days: int = 0
    sectors: list[SectorCount] = field(default_factory=list)


@dataclass
class ReviewQueueSnapshot:
    tier: ReviewTier
    items: list[QueueItem]
    summary: QueueSummary
    generated_at: datetime


# =============================================================================
# AGING
# =============================================================================


def days_waiting(created_at: datetime, now: datetime) -> int:
    """Whole days elapsed since ``created_at``, floored, never negative."""
    elapsed = as_utc(now) - as_utc(created_at)
    return max(elapsed.days, 0)


def urgency_for(days: int, aging_days: int = 3, urgent_days: int = 7) -> Urgency:
    if days >= urgent_days:
        return "urgent"
    if days >= aging_days:
        return "aging"
    return "normal"


def summarize(items: Sequence[QueueItem]) -> QueueSummary:
    """Aggregate counts for a queue listing."""
    aging = {
        threshold: sum(1 for item in items if item.days_waiting >= threshold)
        for threshold in AGING_THRESHOLDS
    }
    sectors = Counter(item.sector for item in items if item.sector)
    return QueueSummary(
        total=len(items),
        aging_3_days=aging[3],
        aging_7_days=aging[7],
        aging_14_days=aging[14],
        sectors=[
            SectorCount(sector=sector, count=count)
            for sector, count in sorted(sectors.items(), key=lambda kv: (-kv[1], kv[0]))
        ],
    )


# =============================================================================
# REVIEW QUEUE
# =============================================================================


class ReviewQueue:
    """Read side of the review workflow."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    def resolve_tier(self, role: Role | str) -> ReviewTier:
        tier = get_review_tier(role)
        if tier is None:
            raise UnknownQueueError(f"No review queue for role '{role}'")
        return tier

    def _to_item(self, organization: Organization, now: datetime) -> QueueItem:
        waited = days_waiting(organization.created_at, now)
        return QueueItem(
            id=organization.id,
            name=organization.name,
            status=organization.status,
            owner_email=organization.owner_email,
            owner_first_name=organization.owner_first_name,
            owner_last_name=organization.owner_last_name,
            sector=organization.sector,
            country=organization.country,
            document_count=organization.document_count,
            created_at=as_utc(organization.created_at),
            updated_at=as_utc(organization.updated_at),
            days_waiting=waited,
            urgency=urgency_for(
                waited,
                aging_days=self.settings.queue_aging_days,
                urgent_days=self.settings.queue_urgent_days,
            ),
        )

    async def _load(self, tier: ReviewTier) -> Sequence[Organization]:
        query = (
            select(Organization)
            .where(Organization.status == tier.queue_status)
            .order_by(Organization.created_at.asc())
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.session.execute(query)
        except UNAVAILABLE_ERRORS as e:
            await self.session.rollback()
            logger.error(f"Database unavailable listing {tier.role.value} queue: {e}")
            raise PersistenceUnavailableError("Review queue is unavailable") from e
        return result.scalars().all()

    async def list_queue(
        self,
        role: Role | str,
        now: datetime | None = None,
        order: QueueOrder = "oldest_first",
    ) -> ReviewQueueSnapshot:
        """
        List organizations awaiting ``role``'s decision with a summary.

        Oldest first by default so the longest-waiting items are triaged
        first.
        """
        tier = self.resolve_tier(role)
        now = now or utc_now()

        items = [self._to_item(org, now) for org in await self._load(tier)]
        items.sort(key=lambda item: (item.created_at, str(item.id)), reverse=order == "newest_first")

        summary = summarize(items)
        logger.debug(
            f"{tier.role.value} queue: {summary.total} items, "
            f"{summary.aging_7_days} waiting 7+ days"
        )

        return ReviewQueueSnapshot(tier=tier, items=items, summary=summary, generated_at=now)

    async def summary(self, role: Role | str, now: datetime | None = None) -> QueueSummary:
        return (await self.list_queue(role, now=now)).summary

    async def gm_approved_at(self, organization_id: UUID) -> datetime | None:
        """When the Grants Manager last escalated the organization to the COO."""
        query = (
            select(AuditLog.created_at)
            .where(
                AuditLog.organization_id == organization_id,
                AuditLog.action == AuditAction.DECISION,
                AuditLog.previous_status == OrgStatus.UNDER_REVIEW_GM.value,
                AuditLog.new_status == OrgStatus.UNDER_REVIEW_COO.value,
            )
            .order_by(AuditLog.created_at.desc())
            .limit(1)
        )
        try:
            approved_at = (await self.session.execute(query)).scalar_one_or_none()
        except UNAVAILABLE_ERRORS as e:
            await self.session.rollback()
            raise PersistenceUnavailableError("Review queue is unavailable") from e
        return as_utc(approved_at) if approved_at else None

    async def get_item(
        self,
        role: Role | str,
        organization_id: UUID,
        now: datetime | None = None,
    ) -> QueueItem:
        """
        Return one organization if it is currently in ``role``'s queue.

        COO items carry ``gm_approved_at`` from the audit trail.

        Raises:
            UnknownQueueError: role has no queue
            OrganizationNotFoundError: organization missing or not in this queue
        """
        tier = self.resolve_tier(role)
        query = (
            select(Organization)
            .where(
                Organization.id == organization_id,
                Organization.status == tier.queue_status,
            )
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.session.execute(query)
        except UNAVAILABLE_ERRORS as e:
            await self.session.rollback()
            raise PersistenceUnavailableError("Review queue is unavailable") from e

        organization = result.scalar_one_or_none()
        if not organization:
            raise OrganizationNotFoundError(
                f"Organization {organization_id} is not in the {tier.label} queue"
            )

        item = self._to_item(organization, now or utc_now())
        if tier.queue_status == OrgStatus.UNDER_REVIEW_COO:
            item.gm_approved_at = await self.gm_approved_at(organization.id)
        return item
