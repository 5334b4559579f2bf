"""SQLAlchemy ORM Models for Partner Onboarding."""

from datetime import datetime
from enum import Enum as PyEnum
from uuid import UUID

from sqlalchemy import (
    JSON,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDMixin, utc_now

JSONType = JSON().with_variant(JSONB(), "postgresql")


# =============================================================================
# ENUMS
# =============================================================================


class OrgStatus(str, PyEnum):
    """Organization lifecycle states, in order of normal progression."""
    EMAIL_PENDING = "email_pending"
    A_PENDING = "a_pending"
    B_PENDING = "b_pending"
    C_PENDING = "c_pending"
    UNDER_REVIEW_GM = "under_review_gm"
    UNDER_REVIEW_COO = "under_review_coo"
    CHANGES_REQUESTED = "changes_requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    FINALIZED = "finalized"

    @property
    def is_terminal(self) -> bool:
        return self in (OrgStatus.REJECTED, OrgStatus.FINALIZED)


class Role(str, PyEnum):
    ADMIN = "admin"
    GRANTS_MANAGER = "grants_manager"
    CHIEF_OPERATIONS_OFFICER = "chief_operations_officer"
    DONOR = "donor"
    PARTNER_USER = "partner_user"
    ACCOUNTANT = "accountant"
    BUDGET_HOLDER = "budget_holder"
    FINANCE_MANAGER = "finance_manager"

    @classmethod
    def parse(cls, value: "str | Role") -> "Role":
        """Normalize a role string, accepting short aliases (gm, coo, partner)."""
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Unknown role: {value!r}")
        key = value.strip().lower().replace("-", "_")
        key = ROLE_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown role: {value}") from None


ROLE_ALIASES = {
    "gm": Role.GRANTS_MANAGER.value,
    "coo": Role.CHIEF_OPERATIONS_OFFICER.value,
    "partner": Role.PARTNER_USER.value,
}


class AuditAction(str, PyEnum):
    REGISTER = "register"
    EMAIL_VERIFY = "email_verify"
    STATUS_CHANGE = "status_change"  # Partner-driven stage progression
    DECISION = "decision"  # Reviewer decision


class NotificationStatus(str, PyEnum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


# =============================================================================
# ORGANIZATION & USER MODELS
# =============================================================================


class Organization(Base, UUIDMixin, TimestampMixin):
    """Partner organization moving through onboarding and review.

    ``created_at`` is the aging anchor for the review queue and is never
    modified after insert.
    """

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[OrgStatus] = mapped_column(
        Enum(
            OrgStatus,
            name="organization_status",
            values_callable=lambda x: [e.value for e in x],
            validate_strings=True,
        ),
        default=OrgStatus.EMAIL_PENDING,
        nullable=False,
    )
    owner_email: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_first_name: Mapped[str | None] = mapped_column(String(100))
    owner_last_name: Mapped[str | None] = mapped_column(String(100))
    sector: Mapped[str | None] = mapped_column(String(100))
    country: Mapped[str | None] = mapped_column(String(100))
    document_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    members: Mapped[list["User"]] = relationship(back_populates="organization")

    __table_args__ = (
        Index("idx_organizations_status_created", "status", "created_at"),
    )


class User(Base, UUIDMixin):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role, name="user_role", values_callable=lambda x: [e.value for e in x]),
        default=Role.PARTNER_USER,
        nullable=False,
    )
    email_verified_at: Mapped[datetime | None] = mapped_column()
    organization_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("organizations.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    # Relationships
    organization: Mapped["Organization | None"] = relationship(
        back_populates="members"
    )

    @property
    def email_verified(self) -> bool:
        return self.email_verified_at is not None

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or self.email


# =============================================================================
# AUDIT MODEL
# =============================================================================


class AuditLog(Base, UUIDMixin):
    """Append-only audit trail of organization status transitions."""

    __tablename__ = "audit_log"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    actor_user_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    actor_role: Mapped[str | None] = mapped_column(String(50))
    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction, name="audit_action", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    previous_status: Mapped[str | None] = mapped_column(String(50))
    new_status: Mapped[str] = mapped_column(String(50), nullable=False)
    details: Mapped[dict] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    # Relationships
    organization: Mapped["Organization"] = relationship()
    actor: Mapped["User | None"] = relationship()

    __table_args__ = (
        Index("idx_audit_log_org_time", "organization_id", "created_at"),
        Index("idx_audit_log_action", "action", "created_at"),
    )


# =============================================================================
# NOTIFICATION MODEL
# =============================================================================


class NotificationLog(Base, UUIDMixin):
    """Outbox of notifications; rows are written with the transition they describe."""

    __tablename__ = "notification_log"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    recipient: Mapped[str] = mapped_column(
        String(255), nullable=False,
        comment="Email address or role:<role> for role-wide delivery",
    )
    channel: Mapped[str] = mapped_column(String(50), default="log")
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[dict] = mapped_column(JSONType, default=dict)
    status: Mapped[NotificationStatus] = mapped_column(
        Enum(NotificationStatus, name="notification_status", values_callable=lambda x: [e.value for e in x]),
        default=NotificationStatus.PENDING,
        nullable=False,
    )
    error_message: Mapped[str | None] = mapped_column(Text)
    sent_at: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    # Relationships
    organization: Mapped["Organization"] = relationship()

    __table_args__ = (
        Index("idx_notification_log_org", "organization_id", "created_at"),
        Index("idx_notification_log_status", "status"),
    )
