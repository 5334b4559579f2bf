"""
Decision Processor: applies a reviewer's decision to one organization.

Order of effects:
1. Validate the decision against the organization's current status
2. Compare-and-swap the status, stage audit and notification rows
3. Commit (the transition is now authoritative)
4. Deliver the notification; failure is reported, never rolled back

Replaying a decision fails with ``InvalidStateError`` because the
organization has already left the reviewer's queue.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import AuditAction, OrgStatus, Role
from .notification_service import NotificationService, transition_message
from .organizations import OrganizationStore
from .workflow import (
    DecisionOutcome,
    ForbiddenError,
    NotificationDeliveryError,
    TransitionTable,
    get_review_tier,
)

logger = logging.getLogger(__name__)


@dataclass
class DecisionResult:
    """Outcome of a decision. ``warning`` is set for a degraded success."""
    organization_id: UUID
    previous_status: OrgStatus
    new_status: OrgStatus
    reviewer_role: Role
    decided_at: datetime
    notification_delivered: bool = True
    warning: str | None = None

    @property
    def degraded(self) -> bool:
        return not self.notification_delivered


class DecisionProcessor:
    """Write side of the review workflow."""

    def __init__(
        self,
        session: AsyncSession,
        notifications: NotificationService | None = None,
        transitions: TransitionTable | None = None,
    ):
        self.session = session
        self.store = OrganizationStore(session, transitions)
        self.notifications = notifications or NotificationService(session)

    async def decide(
        self,
        organization_id: UUID,
        reviewer_role: Role | str,
        outcome: DecisionOutcome | str,
        actor_user_id: UUID | None = None,
        reason: str | None = None,
        sections: list[str] | None = None,
    ) -> DecisionResult:
        """
        Apply ``outcome`` to an organization awaiting ``reviewer_role``.

        ``sections`` flags which onboarding sections (a, b, c) the owner must
        revise; it is only recorded for ``changes_requested``.

        Raises:
            OrganizationNotFoundError: unknown organization
            InvalidStateError: organization is not in this reviewer's queue,
                or another decision landed first
            ForbiddenError: role is not a reviewer
            PersistenceUnavailableError: nothing was persisted
        """
        try:
            role = Role.parse(reviewer_role)
        except ValueError as e:
            raise ForbiddenError(str(e)) from None
        outcome = DecisionOutcome(outcome)

        tier = get_review_tier(role)
        if tier is None:
            raise ForbiddenError(f"Role '{role.value}' does not review organizations")

        details = {"outcome": outcome.value}
        if reason:
            details["reason"] = reason
        if outcome == DecisionOutcome.CHANGES_REQUESTED and sections:
            sections = sorted({s.lower() for s in sections})
            details["sections"] = sections
        else:
            sections = None

        result = await self.store.apply_transition(
            organization_id,
            outcome.event,
            role,
            AuditAction.DECISION,
            actor_user_id=actor_user_id,
            expected_status=tier.queue_status,
            details=details,
        )

        message = transition_message(
            result.organization,
            result.previous_status,
            result.new_status,
            role,
            result.occurred_at,
            reason=reason,
            sections=sections,
        )
        notification = (
            self.notifications.enqueue(organization_id, message) if message else None
        )

        await self.store.commit()

        decision = DecisionResult(
            organization_id=organization_id,
            previous_status=result.previous_status,
            new_status=result.new_status,
            reviewer_role=role,
            decided_at=result.occurred_at,
        )

        if notification is not None:
            try:
                await self.notifications.deliver(notification)
            except NotificationDeliveryError as e:
                logger.warning(
                    f"Decision on organization {organization_id} persisted but "
                    f"notification failed: {e}"
                )
                decision.notification_delivered = False
                decision.warning = (
                    f"Decision recorded; notification could not be delivered ({e})"
                )

        return decision
