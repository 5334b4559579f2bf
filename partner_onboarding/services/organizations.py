"""
Organization store: reads and compare-and-swap status writes.

Every status change is an ``UPDATE ... WHERE id = :id AND status =
:expected``. Losing that race yields ``InvalidStateError``; it never
overwrites a status someone else already moved.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import InterfaceError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from ..core.config import get_settings
from ..models import AuditAction, Organization, OrgStatus, Role, utc_now
from .audit import AuditService
from .workflow import (
    InvalidStateError,
    OrganizationNotFoundError,
    PersistenceUnavailableError,
    TransitionTable,
    WorkflowEvent,
    build_transition_table,
    transition,
)

logger = logging.getLogger(__name__)

# Connection-level failures; the transaction is rolled back and may be retried
UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


@dataclass
class TransitionResult:
    """Outcome of one persisted status transition."""
    organization: Organization
    previous_status: OrgStatus
    new_status: OrgStatus
    occurred_at: datetime


def default_transition_table() -> TransitionTable:
    settings = get_settings()
    return build_transition_table(escalate_to_coo=settings.gm_approval_escalates_to_coo)


class OrganizationStore:
    """Persistence access for organizations, scoped to one session."""

    def __init__(self, session: AsyncSession, transitions: TransitionTable | None = None):
        self.session = session
        self.transitions = transitions if transitions is not None else default_transition_table()

    async def get(self, organization_id: UUID) -> Organization:
        """
        Load an organization with its latest persisted status.

        Raises:
            OrganizationNotFoundError: unknown id
            PersistenceUnavailableError: database unreachable
        """
        query = (
            select(Organization)
            .where(Organization.id == organization_id)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.session.execute(query)
        except UNAVAILABLE_ERRORS as e:
            await self.session.rollback()
            logger.error(f"Database unavailable loading organization {organization_id}: {e}")
            raise PersistenceUnavailableError("Organization store is unavailable") from e

        organization = result.scalar_one_or_none()
        if not organization:
            raise OrganizationNotFoundError(f"Organization {organization_id} not found")
        return organization

    async def compare_and_set_status(
        self,
        organization_id: UUID,
        expected: OrgStatus,
        new_status: OrgStatus,
        at: datetime | None = None,
    ) -> bool:
        """Atomically move ``expected`` to ``new_status``. False if the row had moved on."""
        stmt = (
            update(Organization)
            .where(
                Organization.id == organization_id,
                Organization.status == expected,
            )
            .values(status=new_status, updated_at=at or utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def apply_transition(
        self,
        organization_id: UUID,
        event: WorkflowEvent,
        actor_role: Role,
        action: AuditAction,
        actor_user_id: UUID | None = None,
        expected_status: OrgStatus | None = None,
        details: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """
        Validate an event, persist the transition and stage its audit row.

        The caller owns the transaction and must commit.

        Raises:
            OrganizationNotFoundError: unknown id
            InvalidStateError: illegal transition or lost race
            ForbiddenError: actor role may not trigger the event
            PersistenceUnavailableError: database unreachable
        """
        organization = await self.get(organization_id)
        previous = organization.status

        if expected_status is not None and previous != expected_status:
            raise InvalidStateError(
                f"Organization is '{previous.value}', expected '{expected_status.value}'"
            )

        try:
            new_status = transition(previous, event, actor_role, table=self.transitions)
        except InvalidStateError:
            logger.warning(
                f"Rejected '{event.value}' by {actor_role.value} on organization "
                f"{organization_id} in status '{previous.value}'"
            )
            raise

        now = utc_now()
        try:
            swapped = await self.compare_and_set_status(organization_id, previous, new_status, now)
        except UNAVAILABLE_ERRORS as e:
            await self.session.rollback()
            logger.error(f"Database unavailable updating organization {organization_id}: {e}")
            raise PersistenceUnavailableError("Organization store is unavailable") from e

        if not swapped:
            logger.warning(
                f"Organization {organization_id} left '{previous.value}' before "
                f"'{event.value}' could be applied"
            )
            raise InvalidStateError(
                f"Organization {organization_id} is no longer '{previous.value}'"
            )

        # Reflect the swapped row without scheduling a second UPDATE
        set_committed_value(organization, "status", new_status)
        set_committed_value(organization, "updated_at", now)

        AuditService(self.session).log_transition(
            organization_id=organization_id,
            action=action,
            previous_status=previous,
            new_status=new_status,
            actor_user_id=actor_user_id,
            actor_role=actor_role,
            details={"event": event.value, **(details or {})},
        )

        logger.info(
            f"Organization {organization_id}: {previous.value} -> {new_status.value} "
            f"({event.value} by {actor_role.value})"
        )

        return TransitionResult(
            organization=organization,
            previous_status=previous,
            new_status=new_status,
            occurred_at=now,
        )

    async def commit(self) -> None:
        """Commit the open transaction, mapping connection failures."""
        try:
            await self.session.commit()
        except UNAVAILABLE_ERRORS as e:
            await self.session.rollback()
            logger.error(f"Database unavailable on commit, transaction rolled back: {e}")
            raise PersistenceUnavailableError("Organization store is unavailable") from e
