"""
Access Gate: decides whether a caller may reach a protected destination.

``evaluate_access`` is a pure function of the session context and the
destination. Callers build the context from the latest persisted status
on every request; nothing here caches status.
"""

from dataclasses import dataclass

from ..models import OrgStatus, Role
from .workflow import UNDER_REVIEW, normalize_status


# =============================================================================
# PATHS
# =============================================================================

PARTNER_LOGIN_PATH = "/partner/login"
STAFF_LOGIN_PATH = "/login"
VERIFY_EMAIL_PATH = "/auth/verify-email"
SECTION_A_PATH = "/onboarding/section-a"
SECTION_B_PATH = "/onboarding/section-b"
SECTION_C_PATH = "/onboarding/section-c"
REVIEW_STATUS_PATH = "/onboarding/review-status"
PARTNER_HOME_PATH = "/partner/dashboard"

ROLE_LANDINGS: dict[Role, str] = {
    Role.ADMIN: "/admin/dashboard",
    Role.GRANTS_MANAGER: "/gm/dashboard",
    Role.CHIEF_OPERATIONS_OFFICER: "/coo/dashboard",
    Role.DONOR: "/donor/dashboard",
}

_STATUS_REDIRECTS: dict[str, str] = {
    OrgStatus.EMAIL_PENDING.value: VERIFY_EMAIL_PATH,
    OrgStatus.A_PENDING.value: SECTION_A_PATH,
    OrgStatus.B_PENDING.value: SECTION_B_PATH,
    OrgStatus.C_PENDING.value: SECTION_C_PATH,
    UNDER_REVIEW: REVIEW_STATUS_PATH,
    OrgStatus.CHANGES_REQUESTED.value: REVIEW_STATUS_PATH,
    OrgStatus.FINALIZED.value: PARTNER_HOME_PATH,
}


def role_landing(role: Role | str | None) -> str:
    """Home path for a role. Every role, including unknown ones, has a landing."""
    if role is None:
        return PARTNER_HOME_PATH
    try:
        role = Role.parse(role)
    except ValueError:
        return PARTNER_HOME_PATH
    return ROLE_LANDINGS.get(role, PARTNER_HOME_PATH)


def redirect_path_for_status(status: OrgStatus | str | None) -> str:
    """Canonical onboarding path for an organization status.

    Unmapped or unknown statuses fall back to Section A.
    """
    if status is None:
        return SECTION_A_PATH
    return _STATUS_REDIRECTS.get(normalize_status(status), SECTION_A_PATH)


# =============================================================================
# INPUTS / OUTPUT
# =============================================================================


@dataclass(frozen=True)
class SessionContext:
    """What the identity layer knows about the caller for this request."""
    authenticated: bool
    role: Role | None = None
    organization_status: str | None = None
    email_verified: bool = False


@dataclass(frozen=True)
class Destination:
    """A protected destination and the guards it declares."""
    path: str
    required_role: Role | None = None
    requires_email_verified: bool = False
    required_status: frozenset[str] | None = None
    partner_area: bool = True

    @property
    def login_path(self) -> str:
        return PARTNER_LOGIN_PATH if self.partner_area else STAFF_LOGIN_PATH


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    redirect_to: str | None = None

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(allowed=True)

    @classmethod
    def redirect(cls, path: str) -> "AccessDecision":
        return cls(allowed=False, redirect_to=path)


def status_matches(status: str | None, required: frozenset[str]) -> bool:
    """Match a status against a required set, honoring the under_review alias."""
    if status is None:
        return False
    return status in required or normalize_status(status) in required


def evaluate_access(context: SessionContext, destination: Destination) -> AccessDecision:
    """
    Decide allow or redirect for a destination.

    Checks run in order: authentication, role, email verification, status.
    The first failing check determines the redirect.

    A catalog destination that is the canonical path for the caller's own
    status is always allowed, so rejected and approved organizations can
    land on the section A form. Destinations built outside ROUTE_CATALOG
    get no such exemption and redirect whenever the status does not match.
    """
    if not context.authenticated:
        return AccessDecision.redirect(destination.login_path)

    if destination.required_role is not None and context.role != destination.required_role:
        return AccessDecision.redirect(role_landing(context.role))

    if destination.requires_email_verified and not context.email_verified:
        return AccessDecision.redirect(VERIFY_EMAIL_PATH)

    if destination.required_status is not None and not status_matches(
        context.organization_status, destination.required_status
    ):
        target = redirect_path_for_status(context.organization_status)
        if target != destination.path or ROUTE_CATALOG.get(destination.path) != destination:
            return AccessDecision.redirect(target)

    return AccessDecision.allow()


# =============================================================================
# ROUTE CATALOG
# =============================================================================


def _partner_route(path: str, statuses: set[str], requires_email_verified: bool = True) -> Destination:
    return Destination(
        path=path,
        required_role=Role.PARTNER_USER,
        requires_email_verified=requires_email_verified,
        required_status=frozenset(statuses),
    )


ROUTE_CATALOG: dict[str, Destination] = {
    VERIFY_EMAIL_PATH: _partner_route(
        VERIFY_EMAIL_PATH, {OrgStatus.EMAIL_PENDING.value}, requires_email_verified=False
    ),
    SECTION_A_PATH: _partner_route(
        SECTION_A_PATH,
        {OrgStatus.A_PENDING.value, OrgStatus.CHANGES_REQUESTED.value},
    ),
    SECTION_B_PATH: _partner_route(
        SECTION_B_PATH,
        {OrgStatus.B_PENDING.value, OrgStatus.CHANGES_REQUESTED.value},
    ),
    SECTION_C_PATH: _partner_route(
        SECTION_C_PATH,
        {"attachments_pending", OrgStatus.C_PENDING.value, OrgStatus.CHANGES_REQUESTED.value},
    ),
    REVIEW_STATUS_PATH: _partner_route(
        REVIEW_STATUS_PATH,
        {
            UNDER_REVIEW,
            OrgStatus.CHANGES_REQUESTED.value,
            OrgStatus.REJECTED.value,
            OrgStatus.FINALIZED.value,
        },
    ),
    PARTNER_HOME_PATH: _partner_route(PARTNER_HOME_PATH, {OrgStatus.FINALIZED.value}),
}


def get_destination(path: str) -> Destination | None:
    return ROUTE_CATALOG.get(path.rstrip("/") or "/")
