"""
Onboarding: partner registration and partner-driven stage progression.

Each stage move goes through the same transition table and
compare-and-swap store as reviewer decisions.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..core.security import (
    create_email_verification_token,
    decode_token,
    hash_password,
    verify_password,
)
from ..models import AuditAction, Organization, OrgStatus, Role, User, utc_now
from .access_gate import redirect_path_for_status
from .audit import AuditService
from .notification_service import (
    NotificationService,
    registration_message,
    transition_message,
)
from .organizations import OrganizationStore
from .workflow import (
    ForbiddenError,
    InvalidStateError,
    NotificationDeliveryError,
    TransitionTable,
    WorkflowError,
    WorkflowEvent,
    normalize_status,
)

logger = logging.getLogger(__name__)


class EmailAlreadyRegisteredError(WorkflowError):
    """A user with this email already exists."""
    pass


class InvalidVerificationTokenError(WorkflowError):
    """Email verification token is malformed, expired or unknown."""
    pass


class InvalidCredentialsError(WorkflowError):
    """Email and password do not match an account."""
    pass


SECTION_EVENTS = {
    "a": WorkflowEvent.SUBMIT_SECTION_A,
    "b": WorkflowEvent.SUBMIT_SECTION_B,
    "c": WorkflowEvent.SUBMIT_SECTION_C,
}


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class RegistrationInput:
    email: str
    password: str
    organization_name: str
    first_name: str | None = None
    last_name: str | None = None
    sector: str | None = None
    country: str | None = None


@dataclass
class RegistrationResult:
    user: User
    organization: Organization
    verification_token: str
    notification_delivered: bool = True


@dataclass
class VerificationResent:
    organization_id: UUID
    notification_delivered: bool = True
    warning: str | None = None


@dataclass
class ProgressResult:
    """Outcome of a partner-driven stage move."""
    organization_id: UUID
    previous_status: OrgStatus
    new_status: OrgStatus
    occurred_at: datetime
    next_step: str
    notification_delivered: bool = True
    warning: str | None = None


@dataclass
class ReviewStatus:
    organization_status: str
    can_proceed: bool


# =============================================================================
# ONBOARDING SERVICE
# =============================================================================


class OnboardingService:
    def __init__(
        self,
        session: AsyncSession,
        notifications: NotificationService | None = None,
        transitions: TransitionTable | None = None,
    ):
        self.session = session
        self.store = OrganizationStore(session, transitions)
        self.notifications = notifications or NotificationService(session)

    async def _email_taken(self, email: str) -> bool:
        result = await self.session.execute(
            select(func.count()).select_from(User).where(func.lower(User.email) == email.lower())
        )
        return result.scalar_one() > 0

    async def _deliver(self, notification) -> tuple[bool, str | None]:
        try:
            await self.notifications.deliver(notification)
        except NotificationDeliveryError as e:
            logger.warning(
                f"Notification {notification.id} for organization "
                f"{notification.organization_id} failed: {e}"
            )
            return False, f"Notification could not be delivered ({e})"
        return True, None

    async def register(self, data: RegistrationInput) -> RegistrationResult:
        """
        Create a partner user and its organization in ``email_pending``.

        Raises:
            EmailAlreadyRegisteredError: email already in use
        """
        email = data.email.strip().lower()
        if await self._email_taken(email):
            raise EmailAlreadyRegisteredError(f"{email} is already registered")

        organization = Organization(
            name=data.organization_name.strip(),
            status=OrgStatus.EMAIL_PENDING,
            owner_email=email,
            owner_first_name=data.first_name,
            owner_last_name=data.last_name,
            sector=data.sector,
            country=data.country,
        )
        self.session.add(organization)
        await self.session.flush()

        user = User(
            email=email,
            first_name=data.first_name,
            last_name=data.last_name,
            password_hash=hash_password(data.password),
            role=Role.PARTNER_USER,
            organization_id=organization.id,
        )
        self.session.add(user)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise EmailAlreadyRegisteredError(f"{email} is already registered") from e

        AuditService(self.session).log_transition(
            organization_id=organization.id,
            action=AuditAction.REGISTER,
            new_status=OrgStatus.EMAIL_PENDING,
            actor_user_id=user.id,
            actor_role=Role.PARTNER_USER,
        )

        token = create_email_verification_token(user.id)
        notification = self.notifications.enqueue(
            organization.id,
            registration_message(organization, token, get_settings().frontend_url),
        )

        await self.store.commit()
        logger.info(f"Registered organization {organization.id} for {email}")

        delivered, _ = await self._deliver(notification)

        return RegistrationResult(
            user=user,
            organization=organization,
            verification_token=token,
            notification_delivered=delivered,
        )

    async def resend_verification(self, email: str, password: str) -> VerificationResent:
        """
        Mail a fresh verification link to a partner that has not verified yet.

        Raises:
            InvalidCredentialsError: unknown email or wrong password
            InvalidStateError: email already verified, or the organization
                is past ``email_pending``
        """
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        user = result.scalar_one_or_none()
        if not user or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Invalid email or password")

        if user.email_verified or not user.organization_id:
            raise InvalidStateError("Email is already verified")

        organization = await self.store.get(user.organization_id)
        if organization.status != OrgStatus.EMAIL_PENDING:
            raise InvalidStateError(
                f"Organization is {organization.status.value}; email verification is complete"
            )

        token = create_email_verification_token(user.id)
        notification = self.notifications.enqueue(
            organization.id,
            registration_message(organization, token, get_settings().frontend_url),
        )
        await self.store.commit()
        logger.info(f"Resent verification link for organization {organization.id}")

        delivered, warning = await self._deliver(notification)
        return VerificationResent(
            organization_id=organization.id,
            notification_delivered=delivered,
            warning=warning,
        )

    async def verify_email(self, token: str) -> ProgressResult:
        """
        Confirm a partner's email: ``email_pending`` -> ``a_pending``.

        Raises:
            InvalidVerificationTokenError: bad, expired or unknown token
            InvalidStateError: organization already past email verification
        """
        payload = decode_token(token)
        if not payload or payload.type != "email_verify":
            raise InvalidVerificationTokenError("Invalid or expired verification token")

        try:
            user_id = UUID(payload.sub)
        except ValueError:
            raise InvalidVerificationTokenError("Invalid verification token") from None

        user = await self.session.get(User, user_id)
        if not user or not user.organization_id:
            raise InvalidVerificationTokenError("Verification token does not match an account")

        result = await self.store.apply_transition(
            user.organization_id,
            WorkflowEvent.VERIFY_EMAIL,
            user.role,
            AuditAction.EMAIL_VERIFY,
            actor_user_id=user.id,
        )
        user.email_verified_at = result.occurred_at

        await self.store.commit()

        return ProgressResult(
            organization_id=result.organization.id,
            previous_status=result.previous_status,
            new_status=result.new_status,
            occurred_at=result.occurred_at,
            next_step=redirect_path_for_status(result.new_status),
        )

    async def _advance(self, user: User, event: WorkflowEvent) -> ProgressResult:
        if not user.organization_id:
            raise ForbiddenError("No organization is attached to this account")

        result = await self.store.apply_transition(
            user.organization_id,
            event,
            user.role,
            AuditAction.STATUS_CHANGE,
            actor_user_id=user.id,
        )

        message = transition_message(
            result.organization,
            result.previous_status,
            result.new_status,
            user.role,
            result.occurred_at,
        )
        notification = (
            self.notifications.enqueue(user.organization_id, message) if message else None
        )

        await self.store.commit()

        progress = ProgressResult(
            organization_id=result.organization.id,
            previous_status=result.previous_status,
            new_status=result.new_status,
            occurred_at=result.occurred_at,
            next_step=redirect_path_for_status(result.new_status),
        )
        if notification is not None:
            progress.notification_delivered, progress.warning = await self._deliver(notification)
        return progress

    async def submit_section(self, user: User, section: str) -> ProgressResult:
        """Submit Section A, B or C, advancing one stage."""
        event = SECTION_EVENTS.get(section.lower())
        if event is None:
            raise ValueError(f"Unknown section: {section}")
        return await self._advance(user, event)

    async def restart(self, user: User) -> ProgressResult:
        """Re-enter the submission pipeline at Section A after changes were requested."""
        return await self._advance(user, WorkflowEvent.RESTART)

    async def review_status(self, organization_id: UUID) -> ReviewStatus:
        organization = await self.store.get(organization_id)
        return ReviewStatus(
            organization_status=normalize_status(organization.status),
            can_proceed=organization.status == OrgStatus.FINALIZED,
        )
