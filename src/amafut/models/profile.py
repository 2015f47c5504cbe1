"""User profile, session and membership snapshot models."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, EmailStr, Field

from amafut.models.team import TeamDetails


class Role(StrEnum):
    """Roles a profile can hold within a team.

    President and vice-president are single-occupancy offices per team.
    Everyone starts as a player until promoted.
    """

    PRESIDENT = "president"
    VICE_PRESIDENT = "vice_president"
    ADMIN = "admin"
    PLAYER = "player"


class MembershipStatus(StrEnum):
    """Approval state of a profile within its team."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AuthEvent(StrEnum):
    """Authorization events delivered by the backend."""

    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"


class OAuthProvider(StrEnum):
    GOOGLE = "google"
    APPLE = "apple"
    FACEBOOK = "facebook"


class Session(BaseModel):
    """Authenticated session as seen by the membership layer."""

    user_id: str
    email: str | None = None
    access_token: str | None = None


class Credentials(BaseModel):
    """Email/password pair used by login and registration."""

    email: EmailStr
    password: str = Field(min_length=6)
    name: str | None = None


class Profile(BaseModel):
    """One profile per user (the `profiles` table)."""

    id: str
    email: str | None = None
    name: str | None = None
    role: Role = Role.PLAYER
    intended_role: Role | None = None
    team_id: str | None = None
    status: MembershipStatus = MembershipStatus.APPROVED
    is_first_manager: bool = False
    is_setup_complete: bool = False

    # Profile details; avatar and position also count toward legacy setup completion
    avatar: str | None = None
    position: str | None = None
    stats: dict[str, Any] | None = None

    # Joined from `teams` by the full-profile fetch
    team: TeamDetails | None = None

    @property
    def is_officer(self) -> bool:
        return self.role in (Role.PRESIDENT, Role.VICE_PRESIDENT)

    @property
    def is_approved(self) -> bool:
        return self.status == MembershipStatus.APPROVED


class MembershipSnapshot(BaseModel):
    """Read-only view of the membership store at one point in time."""

    model_config = {"frozen": True}

    user_id: str | None = None
    email: str | None = None
    name: str | None = None
    role: Role | None = None
    intended_role: Role | None = None
    team_id: str | None = None
    team: TeamDetails | None = None
    status: MembershipStatus = MembershipStatus.APPROVED
    is_first_manager: bool = False
    is_setup_complete: bool = False
    avatar: str | None = None
    position: str | None = None
    is_loading: bool = False
    is_initialized: bool = False
    error: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None
