"""Pydantic models for the membership lifecycle."""

from amafut.models.notification import Notification, NotificationStatus, NotificationType
from amafut.models.profile import (
    AuthEvent,
    Credentials,
    MembershipSnapshot,
    MembershipStatus,
    OAuthProvider,
    Profile,
    Role,
    Session,
)
from amafut.models.team import (
    DEFAULT_PRIMARY_COLOR,
    DEFAULT_SECONDARY_COLOR,
    Team,
    TeamDetails,
    TeamMember,
)

__all__ = [
    # Notification
    "Notification",
    "NotificationStatus",
    "NotificationType",
    # Profile
    "AuthEvent",
    "Credentials",
    "MembershipSnapshot",
    "MembershipStatus",
    "OAuthProvider",
    "Profile",
    "Role",
    "Session",
    # Team
    "DEFAULT_PRIMARY_COLOR",
    "DEFAULT_SECONDARY_COLOR",
    "Team",
    "TeamDetails",
    "TeamMember",
]
