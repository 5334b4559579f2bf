"""
Notification Service: Handles delivery of workflow notifications.

This module is responsible for:
1. Staging notification rows (outbox) in the transition transaction
2. Delivering them after commit through a channel (log or webhook)
3. Updating notification status in the database

Delivery failures never undo the transition they describe; they are
reported to the caller as ``NotificationDeliveryError``.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings
from ..models import NotificationLog, NotificationStatus, Organization, OrgStatus, Role, utc_now
from .workflow import NotificationDeliveryError


logger = logging.getLogger(__name__)

ROLE_RECIPIENT_PREFIX = "role:"


def role_recipient(role: Role) -> str:
    return f"{ROLE_RECIPIENT_PREFIX}{role.value}"


# =============================================================================
# MESSAGES
# =============================================================================


@dataclass
class NotificationMessage:
    """A notification to stage in the outbox."""
    event_type: str
    recipient: str
    subject: str
    content: dict[str, Any] = field(default_factory=dict)


def registration_message(
    organization: Organization, verification_token: str, frontend_url: str
) -> NotificationMessage:
    return NotificationMessage(
        event_type="partner.email_verification",
        recipient=organization.owner_email,
        subject=f"Verify your email to start onboarding {organization.name}",
        content={
            "organization_id": str(organization.id),
            "verification_url": f"{frontend_url}/auth/verify-email?token={verification_token}",
        },
    )


def transition_message(
    organization: Organization,
    previous_status: OrgStatus,
    new_status: OrgStatus,
    actor_role: Role,
    occurred_at: datetime,
    reason: str | None = None,
    sections: list[str] | None = None,
) -> NotificationMessage | None:
    """
    Build the notification for a status transition, or None if the
    transition has no audience.

    Submissions go to the next reviewer role; reviewer outcomes that end
    or pause the review go to the organization owner.
    """
    content = {
        "organization_id": str(organization.id),
        "organization_name": organization.name,
        "previous_status": previous_status.value,
        "new_status": new_status.value,
        "reviewer_role": actor_role.value,
        "decided_at": occurred_at.isoformat(),
    }
    if reason:
        content["reason"] = reason
    if sections:
        content["sections"] = list(sections)

    if new_status == OrgStatus.UNDER_REVIEW_GM:
        return NotificationMessage(
            event_type="organization.submitted",
            recipient=role_recipient(Role.GRANTS_MANAGER),
            subject=f"{organization.name} is ready for Grants Manager review",
            content=content,
        )
    if new_status == OrgStatus.UNDER_REVIEW_COO:
        return NotificationMessage(
            event_type="organization.escalated",
            recipient=role_recipient(Role.CHIEF_OPERATIONS_OFFICER),
            subject=f"{organization.name} approved by Grants Manager, awaiting COO review",
            content=content,
        )
    if new_status == OrgStatus.CHANGES_REQUESTED:
        return NotificationMessage(
            event_type="organization.changes_requested",
            recipient=organization.owner_email,
            subject=f"Changes requested for {organization.name}",
            content=content,
        )
    if new_status == OrgStatus.REJECTED:
        return NotificationMessage(
            event_type="organization.rejected",
            recipient=organization.owner_email,
            subject=f"Onboarding application for {organization.name} was not approved",
            content=content,
        )
    if new_status == OrgStatus.FINALIZED:
        return NotificationMessage(
            event_type="organization.finalized",
            recipient=organization.owner_email,
            subject=f"{organization.name} onboarding approved",
            content=content,
        )
    return None


# =============================================================================
# NOTIFICATION CHANNELS (Abstract)
# =============================================================================


class NotificationChannel(ABC):
    """Abstract base for notification delivery channels."""

    name: str = "abstract"

    @abstractmethod
    async def send(
        self,
        recipient: str,
        subject: str,
        content: dict,
        event_type: str,
    ) -> tuple[bool, str | None]:
        """
        Send a notification.

        Returns:
            (success, error_message)
        """
        pass


class LoggingChannel(NotificationChannel):
    """Writes notifications to the application log."""

    name = "log"

    async def send(
        self,
        recipient: str,
        subject: str,
        content: dict,
        event_type: str,
    ) -> tuple[bool, str | None]:
        logger.info(
            f"[NOTIFY] To: {recipient}, Subject: {subject}, "
            f"Type: {event_type}, Organization: {content.get('organization_id')}"
        )
        return True, None


class WebhookChannel(NotificationChannel):
    """POSTs notifications as JSON to a configured endpoint."""

    name = "webhook"

    def __init__(self, url: str, timeout_seconds: float = 10.0):
        self._url = url
        self._timeout = timeout_seconds

    async def send(
        self,
        recipient: str,
        subject: str,
        content: dict,
        event_type: str,
    ) -> tuple[bool, str | None]:
        payload = {
            "event_type": event_type,
            "recipient": recipient,
            "subject": subject,
            "content": content,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            return False, f"Webhook returned {e.response.status_code}"
        except httpx.HTTPError as e:
            return False, f"Webhook delivery failed: {e}"

        return True, None


def build_channel(settings: Settings | None = None) -> NotificationChannel:
    """Select the delivery channel from configuration."""
    settings = settings or get_settings()
    if settings.webhook_enabled:
        return WebhookChannel(
            settings.notification_webhook_url,
            timeout_seconds=settings.notification_timeout_seconds,
        )
    if settings.notification_channel == "webhook":
        logger.warning(
            "NOTIFICATION_CHANNEL is webhook but NOTIFICATION_WEBHOOK_URL is not set; "
            "notifications will only be logged"
        )
    return LoggingChannel()


# =============================================================================
# NOTIFICATION SERVICE
# =============================================================================


class NotificationService:
    """
    Main service for staging and delivering notifications.

    This service:
    1. Stages NotificationLog rows alongside a transition
    2. Sends via the configured channel once the transition is committed
    3. Updates delivery status
    """

    def __init__(
        self,
        session: AsyncSession,
        channel: NotificationChannel | None = None,
    ):
        self._session = session
        self._channel = channel or build_channel()

    @property
    def channel(self) -> NotificationChannel:
        return self._channel

    def enqueue(self, organization_id: UUID, message: NotificationMessage) -> NotificationLog:
        """Stage a pending notification in the current transaction."""
        notification = NotificationLog(
            organization_id=organization_id,
            event_type=message.event_type,
            recipient=message.recipient,
            channel=self._channel.name,
            subject=message.subject,
            content=message.content,
            status=NotificationStatus.PENDING,
        )
        self._session.add(notification)
        return notification

    async def _send(self, notification: NotificationLog) -> tuple[bool, str | None]:
        try:
            return await self._channel.send(
                recipient=notification.recipient,
                subject=notification.subject,
                content=notification.content,
                event_type=notification.event_type,
            )
        except Exception as e:
            return False, str(e)

    async def deliver(self, notification: NotificationLog) -> None:
        """
        Deliver one committed notification and record the outcome.

        Raises:
            NotificationDeliveryError: if the channel failed
        """
        success, error = await self._send(notification)

        if success:
            notification.status = NotificationStatus.SENT
            notification.sent_at = utc_now()
        else:
            notification.status = NotificationStatus.FAILED
            notification.error_message = error

        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            logger.error(f"Could not record delivery status for notification {notification.id}: {e}")

        if not success:
            raise NotificationDeliveryError(error or "Notification delivery failed")

        logger.debug(f"Notification {notification.id} delivered via {self._channel.name}")

    async def process_pending_notifications(
        self,
        batch_size: int = 100,
    ) -> tuple[int, int, list[str]]:
        """
        Retry delivery of notifications still pending in the outbox.

        Returns:
            (sent_count, failed_count, errors)
        """
        query = (
            select(NotificationLog)
            .where(NotificationLog.status == NotificationStatus.PENDING)
            .order_by(NotificationLog.created_at.asc())
            .limit(batch_size)
        )

        result = await self._session.execute(query)
        notifications = result.scalars().all()

        sent_count = 0
        failed_count = 0
        errors = []

        for notification in notifications:
            success, error = await self._send(notification)

            if success:
                notification.status = NotificationStatus.SENT
                notification.sent_at = utc_now()
                sent_count += 1
            else:
                notification.status = NotificationStatus.FAILED
                notification.error_message = error
                failed_count += 1
                errors.append(f"Notification {notification.id}: {error}")

        await self._session.flush()

        return sent_count, failed_count, errors
