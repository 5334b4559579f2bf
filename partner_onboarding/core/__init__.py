"""Core application utilities."""

from .config import Settings, get_settings
from .database import (
    async_session_factory,
    close_db,
    engine,
    get_session,
    get_session_context,
    init_db,
)
from .dependencies import (
    CurrentUser,
    CurrentUserDep,
    OptionalUserDep,
    PartnerDep,
    SessionDep,
    StaffDep,
    get_current_user,
    get_current_user_optional,
    require_partner,
    require_staff,
)
from .security import (
    create_access_token,
    create_email_verification_token,
    decode_token,
    hash_password,
    verify_password,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "engine",
    "async_session_factory",
    "get_session",
    "get_session_context",
    "init_db",
    "close_db",
    # Dependencies
    "CurrentUser",
    "get_current_user",
    "get_current_user_optional",
    "require_partner",
    "require_staff",
    "CurrentUserDep",
    "OptionalUserDep",
    "PartnerDep",
    "StaffDep",
    "SessionDep",
    # Security
    "hash_password",
    "verify_password",
    "create_access_token",
    "create_email_verification_token",
    "decode_token",
]
