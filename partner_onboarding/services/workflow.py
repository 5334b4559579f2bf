"""
Workflow: the organization status state machine.

This module is the single authority for transition legality:
- Every status change goes through ``transition()``
- Unknown (status, event) pairs are rejected, never guessed
- Terminal statuses accept no further events
- Actor roles are checked per event

It has no I/O; persistence and notification live in the services that
call it.
"""

from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Mapping

from ..models import OrgStatus, Role


# =============================================================================
# EXCEPTIONS
# =============================================================================


class WorkflowError(Exception):
    """Base exception for onboarding workflow operations."""
    pass


class OrganizationNotFoundError(WorkflowError):
    """Organization does not exist."""
    pass


class InvalidStateError(WorkflowError):
    """Operation not legal for the organization's current status."""
    pass


class ForbiddenError(WorkflowError):
    """Caller's role or authentication is insufficient for the operation."""
    pass


class UnreachableError(WorkflowError):
    """A collaborator (database, notification sink) could not be reached."""
    pass


class PersistenceUnavailableError(UnreachableError):
    """The database failed; nothing was persisted and the call may be retried."""
    pass


class NotificationDeliveryError(UnreachableError):
    """The notification sink failed after the transition was persisted."""
    pass


# =============================================================================
# EVENTS
# =============================================================================


class WorkflowEvent(str, PyEnum):
    VERIFY_EMAIL = "verify_email"
    SUBMIT_SECTION_A = "submit_section_a"
    SUBMIT_SECTION_B = "submit_section_b"
    SUBMIT_SECTION_C = "submit_section_c"
    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"
    REJECT = "reject"
    RESTART = "restart"


class DecisionOutcome(str, PyEnum):
    """Outcome a reviewer may record for an organization under review."""
    APPROVE = "approve"
    CHANGES_REQUESTED = "changes_requested"
    REJECT = "reject"

    @property
    def event(self) -> WorkflowEvent:
        return _OUTCOME_EVENTS[self]


_OUTCOME_EVENTS = {
    DecisionOutcome.APPROVE: WorkflowEvent.APPROVE,
    DecisionOutcome.CHANGES_REQUESTED: WorkflowEvent.REQUEST_CHANGES,
    DecisionOutcome.REJECT: WorkflowEvent.REJECT,
}


# Derived alias for either review stage; used for matching, never stored
UNDER_REVIEW = "under_review"


def normalize_status(status: OrgStatus | str) -> str:
    """Collapse under_review_gm / under_review_coo into ``under_review``."""
    value = status.value if isinstance(status, OrgStatus) else str(status)
    if value in (OrgStatus.UNDER_REVIEW_GM.value, OrgStatus.UNDER_REVIEW_COO.value):
        return UNDER_REVIEW
    return value


# =============================================================================
# TRANSITION TABLE
# =============================================================================


@dataclass(frozen=True)
class TransitionRule:
    destination: OrgStatus
    allowed_roles: frozenset[Role]


TransitionTable = Mapping[tuple[OrgStatus, WorkflowEvent], TransitionRule]

_PARTNER = frozenset({Role.PARTNER_USER})
_GM = frozenset({Role.GRANTS_MANAGER})
_COO = frozenset({Role.CHIEF_OPERATIONS_OFFICER})


def build_transition_table(escalate_to_coo: bool = True) -> dict[
    tuple[OrgStatus, WorkflowEvent], TransitionRule
]:
    """
    Build the legal transition table.

    A GM approval escalates to COO review when ``escalate_to_coo`` is set,
    otherwise it finalizes the organization directly. ``approved`` is
    never stored: approval always lands on the next reviewer's stage or on
    ``finalized``.
    """
    gm_approve_destination = (
        OrgStatus.UNDER_REVIEW_COO if escalate_to_coo else OrgStatus.FINALIZED
    )
    return {
        # Partner progression
        (OrgStatus.EMAIL_PENDING, WorkflowEvent.VERIFY_EMAIL): TransitionRule(
            OrgStatus.A_PENDING, _PARTNER
        ),
        (OrgStatus.A_PENDING, WorkflowEvent.SUBMIT_SECTION_A): TransitionRule(
            OrgStatus.B_PENDING, _PARTNER
        ),
        (OrgStatus.B_PENDING, WorkflowEvent.SUBMIT_SECTION_B): TransitionRule(
            OrgStatus.C_PENDING, _PARTNER
        ),
        (OrgStatus.C_PENDING, WorkflowEvent.SUBMIT_SECTION_C): TransitionRule(
            OrgStatus.UNDER_REVIEW_GM, _PARTNER
        ),
        (OrgStatus.CHANGES_REQUESTED, WorkflowEvent.RESTART): TransitionRule(
            OrgStatus.A_PENDING, _PARTNER
        ),
        # Grants Manager review
        (OrgStatus.UNDER_REVIEW_GM, WorkflowEvent.APPROVE): TransitionRule(
            gm_approve_destination, _GM
        ),
        (OrgStatus.UNDER_REVIEW_GM, WorkflowEvent.REQUEST_CHANGES): TransitionRule(
            OrgStatus.CHANGES_REQUESTED, _GM
        ),
        (OrgStatus.UNDER_REVIEW_GM, WorkflowEvent.REJECT): TransitionRule(
            OrgStatus.REJECTED, _GM
        ),
        # COO review
        (OrgStatus.UNDER_REVIEW_COO, WorkflowEvent.APPROVE): TransitionRule(
            OrgStatus.FINALIZED, _COO
        ),
        (OrgStatus.UNDER_REVIEW_COO, WorkflowEvent.REQUEST_CHANGES): TransitionRule(
            OrgStatus.CHANGES_REQUESTED, _COO
        ),
        (OrgStatus.UNDER_REVIEW_COO, WorkflowEvent.REJECT): TransitionRule(
            OrgStatus.REJECTED, _COO
        ),
    }


DEFAULT_TRANSITIONS = build_transition_table(escalate_to_coo=True)


def transition(
    current: OrgStatus | str,
    event: WorkflowEvent | str,
    actor_role: Role | str,
    table: TransitionTable | None = None,
) -> OrgStatus:
    """
    Compute the destination status for an event.

    Raises:
        InvalidStateError: unknown status or event, terminal status, or an
            event that is not legal from ``current``
        ForbiddenError: the actor's role may not trigger this event
    """
    rules = DEFAULT_TRANSITIONS if table is None else table

    try:
        current = OrgStatus(current)
    except ValueError:
        raise InvalidStateError(f"Unknown status: {current}") from None
    try:
        event = WorkflowEvent(event)
    except ValueError:
        raise InvalidStateError(f"Unknown event: {event}") from None
    try:
        actor_role = Role.parse(actor_role)
    except ValueError as e:
        raise ForbiddenError(str(e)) from None

    if current.is_terminal:
        raise InvalidStateError(
            f"Organization is {current.value}; no further transitions are allowed"
        )

    rule = rules.get((current, event))
    if rule is None:
        raise InvalidStateError(
            f"Event '{event.value}' is not allowed from status '{current.value}'"
        )

    if actor_role not in rule.allowed_roles:
        raise ForbiddenError(
            f"Role '{actor_role.value}' may not trigger '{event.value}' "
            f"from status '{current.value}'"
        )

    return rule.destination


# =============================================================================
# REVIEW TIERS
# =============================================================================


@dataclass(frozen=True)
class ReviewTier:
    """Binding of a reviewer role to the status its queue holds."""
    role: Role
    queue_status: OrgStatus
    label: str


REVIEW_TIERS: dict[Role, ReviewTier] = {
    Role.GRANTS_MANAGER: ReviewTier(
        Role.GRANTS_MANAGER, OrgStatus.UNDER_REVIEW_GM, "Grants Manager"
    ),
    Role.CHIEF_OPERATIONS_OFFICER: ReviewTier(
        Role.CHIEF_OPERATIONS_OFFICER, OrgStatus.UNDER_REVIEW_COO, "Chief Operations Officer"
    ),
}


def get_review_tier(role: Role | str) -> ReviewTier | None:
    """Return the review tier for a role, or None when the role reviews nothing."""
    try:
        return REVIEW_TIERS.get(Role.parse(role))
    except ValueError:
        return None
