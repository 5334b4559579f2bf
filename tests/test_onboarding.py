"""
Tests for partner onboarding progression.

These tests verify:
1. Registration creates an email_pending organization
2. Email verification moves it to a_pending, and the link can be resent
3. Sections advance one stage at a time, Section C hands off to the GM
4. Restart after requested changes re-enters at Section A
"""

from datetime import timedelta

import jwt
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from partner_onboarding.core.config import get_settings
from partner_onboarding.core.security import ALGORITHM, create_access_token
from partner_onboarding.models import AuditAction, AuditLog, Organization, OrgStatus, Role, User, utc_now
from partner_onboarding.services import NotificationService
from partner_onboarding.services.onboarding import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    InvalidVerificationTokenError,
    OnboardingService,
    RegistrationInput,
)
from partner_onboarding.services.workflow import ForbiddenError, InvalidStateError


@pytest.fixture
def service(session: AsyncSession, recording_channel) -> OnboardingService:
    return OnboardingService(session, NotificationService(session, channel=recording_channel))


@pytest.fixture
def registration() -> RegistrationInput:
    return RegistrationInput(
        email="Director@Hope-Foundation.org",
        password="s3cure-passphrase",
        organization_name="Hope Foundation",
        first_name="Amara",
        last_name="Diallo",
        sector="Health",
        country="Senegal",
    )


async def load_user(session_factory, user_id) -> User:
    async with session_factory() as s:
        return await s.get(User, user_id)


# =============================================================================
# TEST: REGISTRATION AND VERIFICATION
# =============================================================================


class TestRegistration:
    async def test_register_creates_email_pending_organization(self, service, registration):
        result = await service.register(registration)

        assert result.organization.status == OrgStatus.EMAIL_PENDING
        assert result.organization.owner_email == "director@hope-foundation.org"
        assert result.user.role == Role.PARTNER_USER
        assert result.user.organization_id == result.organization.id
        assert result.user.email_verified is False
        assert result.user.password_hash != registration.password

    async def test_register_sends_verification_link(self, service, registration, recording_channel):
        result = await service.register(registration)

        assert result.notification_delivered is True
        sent = recording_channel.sent[0]
        assert sent["event_type"] == "partner.email_verification"
        assert sent["recipient"] == "director@hope-foundation.org"
        assert result.verification_token in sent["content"]["verification_url"]

    async def test_register_is_audited(self, service, registration, session_factory):
        result = await service.register(registration)

        async with session_factory() as s:
            entry = (
                await s.execute(
                    select(AuditLog).where(AuditLog.organization_id == result.organization.id)
                )
            ).scalar_one()
        assert entry.action == AuditAction.REGISTER
        assert entry.new_status == "email_pending"
        assert entry.previous_status is None

    async def test_duplicate_email_rejected(self, service, registration):
        await service.register(registration)

        registration.email = "director@HOPE-foundation.org"
        with pytest.raises(EmailAlreadyRegisteredError):
            await service.register(registration)


class TestVerifyEmail:
    async def test_verification_moves_to_section_a(self, service, registration, session_factory):
        registered = await service.register(registration)

        result = await service.verify_email(registered.verification_token)

        assert result.previous_status == OrgStatus.EMAIL_PENDING
        assert result.new_status == OrgStatus.A_PENDING
        assert result.next_step == "/onboarding/section-a"
        user = await load_user(session_factory, registered.user.id)
        assert user.email_verified_at is not None

    async def test_second_verification_is_invalid_state(self, service, registration):
        registered = await service.register(registration)
        await service.verify_email(registered.verification_token)

        with pytest.raises(InvalidStateError):
            await service.verify_email(registered.verification_token)

    async def test_garbage_token(self, service):
        with pytest.raises(InvalidVerificationTokenError):
            await service.verify_email("not-a-token")

    async def test_access_token_is_not_a_verification_token(self, service, registration):
        registered = await service.register(registration)
        token = create_access_token(registered.user.id, registered.organization.id)

        with pytest.raises(InvalidVerificationTokenError):
            await service.verify_email(token)

    async def test_expired_token(self, service, registration):
        registered = await service.register(registration)
        issued = utc_now() - timedelta(days=10)
        token = jwt.encode(
            {
                "sub": str(registered.user.id),
                "iat": issued,
                "exp": issued + timedelta(hours=1),
                "type": "email_verify",
            },
            get_settings().secret_key,
            algorithm=ALGORITHM,
        )

        with pytest.raises(InvalidVerificationTokenError):
            await service.verify_email(token)


class TestResendVerification:
    async def test_resend_mails_a_working_link(self, service, registration, recording_channel):
        registered = await service.register(registration)

        result = await service.resend_verification(registration.email, registration.password)

        assert result.organization_id == registered.organization.id
        assert result.notification_delivered is True
        assert len(recording_channel.sent) == 2
        resent = recording_channel.sent[-1]
        assert resent["event_type"] == "partner.email_verification"
        assert resent["recipient"] == "director@hope-foundation.org"
        token = resent["content"]["verification_url"].rsplit("token=", 1)[-1]
        verified = await service.verify_email(token)
        assert verified.new_status == OrgStatus.A_PENDING

    async def test_wrong_password(self, service, registration, recording_channel):
        await service.register(registration)

        with pytest.raises(InvalidCredentialsError):
            await service.resend_verification(registration.email, "not-the-password")
        assert len(recording_channel.sent) == 1

    async def test_unknown_email(self, service):
        with pytest.raises(InvalidCredentialsError):
            await service.resend_verification("nobody@example.org", "whatever-password")

    async def test_already_verified(self, service, registration, recording_channel):
        registered = await service.register(registration)
        await service.verify_email(registered.verification_token)

        with pytest.raises(InvalidStateError):
            await service.resend_verification(registration.email, registration.password)
        assert len(recording_channel.sent) == 1

    async def test_delivery_failure_is_reported(
        self, session: AsyncSession, failing_channel, make_organization, make_user
    ):
        org = await make_organization(OrgStatus.EMAIL_PENDING)
        user = await make_user(Role.PARTNER_USER, organization=org, email_verified=False)
        service = OnboardingService(session, NotificationService(session, channel=failing_channel))

        result = await service.resend_verification(user.email, "correct-horse-battery")

        assert result.notification_delivered is False
        assert result.warning


# =============================================================================
# TEST: SECTION PROGRESSION
# =============================================================================


class TestProgression:
    async def test_sections_advance_to_gm_review(
        self, service, make_organization, make_user, session: AsyncSession, recording_channel
    ):
        org = await make_organization(OrgStatus.A_PENDING)
        user = await session.get(User, (await make_user(Role.PARTNER_USER, org)).id)

        a = await service.submit_section(user, "a")
        b = await service.submit_section(user, "b")
        c = await service.submit_section(user, "c")

        assert (a.new_status, b.new_status, c.new_status) == (
            OrgStatus.B_PENDING,
            OrgStatus.C_PENDING,
            OrgStatus.UNDER_REVIEW_GM,
        )
        assert c.next_step == "/onboarding/review-status"
        assert recording_channel.sent[-1]["recipient"] == "role:grants_manager"
        assert recording_channel.sent[-1]["event_type"] == "organization.submitted"

    async def test_sections_cannot_be_skipped(self, service, make_organization, make_user, session: AsyncSession):
        org = await make_organization(OrgStatus.A_PENDING)
        user = await session.get(User, (await make_user(Role.PARTNER_USER, org)).id)

        with pytest.raises(InvalidStateError):
            await service.submit_section(user, "c")

    async def test_unknown_section(self, service, make_organization, make_user, session: AsyncSession):
        org = await make_organization(OrgStatus.A_PENDING)
        user = await session.get(User, (await make_user(Role.PARTNER_USER, org)).id)

        with pytest.raises(ValueError):
            await service.submit_section(user, "d")

    async def test_restart_after_changes_requested(
        self, service, make_organization, make_user, session: AsyncSession, session_factory
    ):
        org = await make_organization(OrgStatus.CHANGES_REQUESTED)
        user = await session.get(User, (await make_user(Role.PARTNER_USER, org)).id)

        result = await service.restart(user)

        assert result.new_status == OrgStatus.A_PENDING
        assert result.next_step == "/onboarding/section-a"
        async with session_factory() as s:
            assert (await s.get(Organization, org.id)).status == OrgStatus.A_PENDING

    async def test_restart_only_from_changes_requested(
        self, service, make_organization, make_user, session: AsyncSession
    ):
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM)
        user = await session.get(User, (await make_user(Role.PARTNER_USER, org)).id)

        with pytest.raises(InvalidStateError):
            await service.restart(user)

    async def test_user_without_organization(self, service, make_user, session: AsyncSession):
        user = await session.get(User, (await make_user(Role.GRANTS_MANAGER)).id)

        with pytest.raises(ForbiddenError):
            await service.submit_section(user, "a")


class TestReviewStatus:
    @pytest.mark.parametrize(
        "status,expected,can_proceed",
        [
            (OrgStatus.UNDER_REVIEW_GM, "under_review", False),
            (OrgStatus.UNDER_REVIEW_COO, "under_review", False),
            (OrgStatus.CHANGES_REQUESTED, "changes_requested", False),
            (OrgStatus.FINALIZED, "finalized", True),
        ],
    )
    async def test_review_status(self, service, make_organization, status, expected, can_proceed):
        org = await make_organization(status)

        result = await service.review_status(org.id)

        assert result.organization_status == expected
        assert result.can_proceed is can_proceed
