"""
Tests for the Decision Processor.

These tests verify:
1. GM approval escalates, COO approval finalizes
2. Replayed decisions fail with InvalidStateError
3. A lost compare-and-swap is a conflict, not an overwrite
4. Notification failure is a degraded success, never a rollback
5. Database failure persists nothing
"""

from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from partner_onboarding.models import (
    AuditAction,
    AuditLog,
    NotificationLog,
    NotificationStatus,
    Organization,
    OrgStatus,
    Role,
)
from partner_onboarding.services import NotificationService
from partner_onboarding.services.decision_processor import DecisionProcessor
from partner_onboarding.services.organizations import OrganizationStore
from partner_onboarding.services.review_queue import ReviewQueue
from partner_onboarding.services.workflow import (
    ForbiddenError,
    InvalidStateError,
    OrganizationNotFoundError,
    PersistenceUnavailableError,
    build_transition_table,
)


async def current_status(session_factory, organization_id) -> OrgStatus:
    async with session_factory() as s:
        organization = await s.get(Organization, organization_id)
        return organization.status


@pytest.fixture
def processor(session: AsyncSession, recording_channel) -> DecisionProcessor:
    return DecisionProcessor(session, NotificationService(session, channel=recording_channel))


# =============================================================================
# TEST: OUTCOMES
# =============================================================================


class TestDecide:
    async def test_gm_approval_escalates_to_coo(self, processor, make_organization, session_factory):
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM)

        result = await processor.decide(org.id, Role.GRANTS_MANAGER, "approve")

        assert result.previous_status == OrgStatus.UNDER_REVIEW_GM
        assert result.new_status == OrgStatus.UNDER_REVIEW_COO
        assert result.notification_delivered is True
        assert result.warning is None
        assert await current_status(session_factory, org.id) == OrgStatus.UNDER_REVIEW_COO

    async def test_coo_approval_finalizes(self, processor, make_organization, session_factory):
        org = await make_organization(OrgStatus.UNDER_REVIEW_COO)

        result = await processor.decide(org.id, "coo", "approve")

        assert result.new_status == OrgStatus.FINALIZED
        assert await current_status(session_factory, org.id) == OrgStatus.FINALIZED

    @pytest.mark.parametrize(
        "stage,role",
        [
            (OrgStatus.UNDER_REVIEW_GM, Role.GRANTS_MANAGER),
            (OrgStatus.UNDER_REVIEW_COO, Role.CHIEF_OPERATIONS_OFFICER),
        ],
    )
    async def test_changes_requested_from_either_stage(self, processor, make_organization, stage, role):
        org = await make_organization(stage)

        result = await processor.decide(org.id, role, "changes_requested")

        assert result.new_status == OrgStatus.CHANGES_REQUESTED

    @pytest.mark.parametrize(
        "stage,role",
        [
            (OrgStatus.UNDER_REVIEW_GM, Role.GRANTS_MANAGER),
            (OrgStatus.UNDER_REVIEW_COO, Role.CHIEF_OPERATIONS_OFFICER),
        ],
    )
    async def test_reject_from_either_stage(self, processor, make_organization, stage, role):
        org = await make_organization(stage)

        result = await processor.decide(org.id, role, "reject")

        assert result.new_status == OrgStatus.REJECTED

    async def test_updated_at_advances_and_created_at_is_kept(
        self, processor, make_organization, session_factory
    ):
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM, days_old=5)

        result = await processor.decide(org.id, Role.GRANTS_MANAGER, "approve")

        async with session_factory() as s:
            stored = await s.get(Organization, org.id)
            assert stored.created_at.replace(tzinfo=None) == org.created_at.replace(tzinfo=None)
            assert stored.updated_at.replace(tzinfo=None) == result.decided_at.replace(tzinfo=None)

    async def test_decided_item_leaves_queue(self, processor, session: AsyncSession, make_organization):
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM)

        await processor.decide(org.id, Role.GRANTS_MANAGER, "approve")

        gm_queue = await ReviewQueue(session).list_queue("gm")
        coo_queue = await ReviewQueue(session).list_queue("coo")
        assert org.id not in [item.id for item in gm_queue.items]
        assert org.id in [item.id for item in coo_queue.items]

    async def test_single_tier_policy(self, session: AsyncSession, recording_channel, make_organization):
        processor = DecisionProcessor(
            session,
            NotificationService(session, channel=recording_channel),
            transitions=build_transition_table(escalate_to_coo=False),
        )
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM)

        result = await processor.decide(org.id, Role.GRANTS_MANAGER, "approve")

        assert result.new_status == OrgStatus.FINALIZED


# =============================================================================
# TEST: REJECTED DECISIONS
# =============================================================================


class TestDecideErrors:
    async def test_unknown_organization(self, processor):
        with pytest.raises(OrganizationNotFoundError):
            await processor.decide(uuid4(), Role.GRANTS_MANAGER, "approve")

    async def test_gm_cannot_decide_coo_stage(self, processor, make_organization):
        org = await make_organization(OrgStatus.UNDER_REVIEW_COO)

        with pytest.raises(InvalidStateError):
            await processor.decide(org.id, Role.GRANTS_MANAGER, "approve")

    async def test_coo_cannot_decide_gm_stage(self, processor, make_organization):
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM)

        with pytest.raises(InvalidStateError):
            await processor.decide(org.id, Role.CHIEF_OPERATIONS_OFFICER, "reject")

    @pytest.mark.parametrize(
        "status",
        [OrgStatus.C_PENDING, OrgStatus.CHANGES_REQUESTED, OrgStatus.FINALIZED, OrgStatus.REJECTED],
    )
    async def test_not_under_review(self, processor, make_organization, status):
        org = await make_organization(status)

        with pytest.raises(InvalidStateError):
            await processor.decide(org.id, Role.GRANTS_MANAGER, "approve")

    async def test_non_reviewer_role(self, processor, make_organization):
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM)

        with pytest.raises(ForbiddenError):
            await processor.decide(org.id, Role.DONOR, "approve")

    async def test_replayed_decision_fails(self, processor, make_organization, session_factory):
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM)

        await processor.decide(org.id, Role.GRANTS_MANAGER, "approve")
        with pytest.raises(InvalidStateError):
            await processor.decide(org.id, Role.GRANTS_MANAGER, "approve")

        assert await current_status(session_factory, org.id) == OrgStatus.UNDER_REVIEW_COO

    async def test_lost_race_is_invalid_state(self, processor, make_organization, session_factory, monkeypatch):
        """Another reviewer's write lands between our read and our swap."""
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM)
        real_swap = OrganizationStore.compare_and_set_status

        async def competing_swap(self, organization_id, expected, new_status, at=None):
            async with session_factory() as other:
                await real_swap(OrganizationStore(other), organization_id, expected, OrgStatus.REJECTED)
                await other.commit()
            return await real_swap(self, organization_id, expected, new_status, at)

        monkeypatch.setattr(OrganizationStore, "compare_and_set_status", competing_swap)

        with pytest.raises(InvalidStateError):
            await processor.decide(org.id, Role.GRANTS_MANAGER, "approve")

        assert await current_status(session_factory, org.id) == OrgStatus.REJECTED


class TestCompareAndSet:
    async def test_second_swap_from_same_state_fails(self, session: AsyncSession, make_organization):
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM)
        store = OrganizationStore(session)

        first = await store.compare_and_set_status(
            org.id, OrgStatus.UNDER_REVIEW_GM, OrgStatus.UNDER_REVIEW_COO
        )
        second = await store.compare_and_set_status(
            org.id, OrgStatus.UNDER_REVIEW_GM, OrgStatus.REJECTED
        )

        assert first is True
        assert second is False


# =============================================================================
# TEST: AUDIT AND NOTIFICATION
# =============================================================================


class TestSideEffects:
    async def test_audit_row_written(self, processor, make_organization, session_factory):
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM)

        await processor.decide(org.id, Role.GRANTS_MANAGER, "reject", reason="Incomplete budget")

        async with session_factory() as s:
            entries = (
                await s.execute(select(AuditLog).where(AuditLog.organization_id == org.id))
            ).scalars().all()
        assert len(entries) == 1
        entry = entries[0]
        assert entry.action == AuditAction.DECISION
        assert entry.previous_status == "under_review_gm"
        assert entry.new_status == "rejected"
        assert entry.actor_role == "grants_manager"
        assert entry.details["outcome"] == "reject"
        assert entry.details["reason"] == "Incomplete budget"

    async def test_changes_requested_flags_sections(
        self, processor, recording_channel, make_organization, session_factory
    ):
        org = await make_organization(OrgStatus.UNDER_REVIEW_COO)

        await processor.decide(
            org.id,
            Role.CHIEF_OPERATIONS_OFFICER,
            "changes_requested",
            reason="Budget annex is unsigned",
            sections=["c", "B", "c"],
        )

        async with session_factory() as s:
            entry = (
                await s.execute(select(AuditLog).where(AuditLog.organization_id == org.id))
            ).scalar_one()
        assert entry.details["sections"] == ["b", "c"]
        sent = recording_channel.sent[0]
        assert sent["event_type"] == "organization.changes_requested"
        assert sent["content"]["sections"] == ["b", "c"]
        assert sent["content"]["reason"] == "Budget annex is unsigned"

    async def test_sections_ignored_for_other_outcomes(
        self, processor, recording_channel, make_organization, session_factory
    ):
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM)

        await processor.decide(org.id, Role.GRANTS_MANAGER, "reject", sections=["a"])

        async with session_factory() as s:
            entry = (
                await s.execute(select(AuditLog).where(AuditLog.organization_id == org.id))
            ).scalar_one()
        assert "sections" not in entry.details
        assert "sections" not in recording_channel.sent[0]["content"]

    async def test_escalation_notifies_coo_role(self, processor, recording_channel, make_organization):
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM)

        await processor.decide(org.id, Role.GRANTS_MANAGER, "approve")

        assert len(recording_channel.sent) == 1
        sent = recording_channel.sent[0]
        assert sent["recipient"] == "role:chief_operations_officer"
        assert sent["event_type"] == "organization.escalated"
        assert sent["content"]["organization_id"] == str(org.id)
        assert sent["content"]["previous_status"] == "under_review_gm"
        assert sent["content"]["new_status"] == "under_review_coo"
        assert sent["content"]["reviewer_role"] == "grants_manager"
        assert "decided_at" in sent["content"]

    @pytest.mark.parametrize("outcome", ["changes_requested", "reject"])
    async def test_owner_notified_of_outcome(self, processor, recording_channel, make_organization, outcome):
        org = await make_organization(OrgStatus.UNDER_REVIEW_COO)

        await processor.decide(org.id, Role.CHIEF_OPERATIONS_OFFICER, outcome)

        assert recording_channel.sent[0]["recipient"] == org.owner_email

    async def test_notification_marked_sent(self, processor, make_organization, session_factory):
        org = await make_organization(OrgStatus.UNDER_REVIEW_COO)

        await processor.decide(org.id, Role.CHIEF_OPERATIONS_OFFICER, "approve")

        async with session_factory() as s:
            notification = (
                await s.execute(select(NotificationLog).where(NotificationLog.organization_id == org.id))
            ).scalar_one()
        assert notification.status == NotificationStatus.SENT
        assert notification.event_type == "organization.finalized"
        assert notification.sent_at is not None

    async def test_notification_failure_is_degraded_success(
        self, session: AsyncSession, failing_channel, make_organization, session_factory
    ):
        processor = DecisionProcessor(session, NotificationService(session, channel=failing_channel))
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM)

        result = await processor.decide(org.id, Role.GRANTS_MANAGER, "approve")

        assert result.new_status == OrgStatus.UNDER_REVIEW_COO
        assert result.notification_delivered is False
        assert result.degraded is True
        assert "notification sink unreachable" in result.warning
        assert await current_status(session_factory, org.id) == OrgStatus.UNDER_REVIEW_COO

        async with session_factory() as s:
            notification = (
                await s.execute(select(NotificationLog).where(NotificationLog.organization_id == org.id))
            ).scalar_one()
        assert notification.status == NotificationStatus.FAILED
        assert notification.error_message == "notification sink unreachable"

    async def test_database_failure_persists_nothing(
        self, processor, make_organization, session_factory, monkeypatch
    ):
        org = await make_organization(OrgStatus.UNDER_REVIEW_GM)

        async def unavailable(self, *args, **kwargs):
            raise OperationalError("UPDATE organizations", {}, ConnectionError("database is down"))

        monkeypatch.setattr(OrganizationStore, "compare_and_set_status", unavailable)

        with pytest.raises(PersistenceUnavailableError):
            await processor.decide(org.id, Role.GRANTS_MANAGER, "approve")

        assert await current_status(session_factory, org.id) == OrgStatus.UNDER_REVIEW_GM
        async with session_factory() as s:
            audit = (
                await s.execute(select(AuditLog).where(AuditLog.organization_id == org.id))
            ).scalars().all()
        assert audit == []
