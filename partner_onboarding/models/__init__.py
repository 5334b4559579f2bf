"""SQLAlchemy ORM Models for Partner Onboarding."""

from .base import Base, TimestampMixin, UUIDMixin, as_utc, utc_now
from .models import (
    # Enums
    AuditAction,
    NotificationStatus,
    OrgStatus,
    Role,
    # Organization & User
    Organization,
    User,
    # Audit
    AuditLog,
    # Notifications
    NotificationLog,
)

__all__ = [
    # Base
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "as_utc",
    "utc_now",
    # Enums
    "OrgStatus",
    "Role",
    "AuditAction",
    "NotificationStatus",
    # Organization & User
    "Organization",
    "User",
    # Audit
    "AuditLog",
    # Notifications
    "NotificationLog",
]
