"""Ports to the managed backend.

The membership store only talks to storage and auth through these two
interfaces. `amafut.dao` implements them on Supabase; tests use in-memory
fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from amafut.models import (
        AuthEvent,
        Notification,
        NotificationStatus,
        OAuthProvider,
        Profile,
        Role,
        Session,
        Team,
        TeamMember,
    )

AuthListener = Callable[["AuthEvent", "Session | None"], None]


class Subscription(Protocol):
    """Handle returned by an auth event subscription."""

    def unsubscribe(self) -> None: ...


class AuthorizationPort(ABC):
    """Port: session, credentials and the signed-in user's own profile."""

    @abstractmethod
    async def get_session(self) -> Session | None:
        """Return the current session, or None when signed out."""

    @abstractmethod
    async def get_full_profile(self, user_id: str) -> Profile | None:
        """Load a profile with its team details joined in.

        Returns:
            The profile, or None when no profile row exists yet.
        """

    @abstractmethod
    def on_auth_state_change(self, callback: AuthListener) -> Subscription:
        """Subscribe to auth events. The callback runs synchronously."""

    @abstractmethod
    async def update_profile(self, patch: dict[str, Any]) -> None:
        """Patch the signed-in user's own profile. Raises on failure."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Session:
        """Sign in with email and password."""

    @abstractmethod
    async def sign_up(self, email: str, password: str, name: str | None = None) -> Session:
        """Register a new account. The backend creates the profile row."""

    @abstractmethod
    async def sign_in_with_oauth(
        self, provider: OAuthProvider, redirect_to: str | None = None
    ) -> str:
        """Start an OAuth sign-in.

        Returns:
            The provider URL the user has to open. The session arrives
            later as a SIGNED_IN event.
        """

    @abstractmethod
    async def sign_out(self) -> None:
        """End the current session."""

    @abstractmethod
    async def reset_password(self, email: str) -> None:
        """Send a password reset e-mail."""


class MembershipRepository(ABC):
    """Port: team rows, roster rows and other members' profiles."""

    @abstractmethod
    async def get_team(self, team_id: str) -> Team | None:
        """Fetch a team by id."""

    @abstractmethod
    async def insert_team(self, team: Team) -> Team:
        """Insert a team and return it with its id populated."""

    @abstractmethod
    async def update_team_flags(
        self,
        team_id: str,
        *,
        has_first_manager: bool | None = None,
        member_count: int | None = None,
    ) -> None:
        """Update the lifecycle flags of a team. None leaves a flag unchanged."""

    @abstractmethod
    async def update_team_details(self, team_id: str, fields: dict[str, Any]) -> None:
        """Update display fields of a team."""

    @abstractmethod
    async def search_teams(self, name: str) -> list[Team]:
        """Find teams by partial name."""

    @abstractmethod
    async def list_team_members(self, team_id: str) -> list[TeamMember]:
        """Roster rows of a team."""

    @abstractmethod
    async def get_member(self, profile_id: str) -> Profile | None:
        """Fetch another user's profile."""

    @abstractmethod
    async def update_member(self, profile_id: str, patch: dict[str, Any]) -> None:
        """Patch another user's profile (officer actions)."""

    @abstractmethod
    async def read_team_officer_holder(
        self, team_id: str, role: Role, *, exclude_id: str | None = None
    ) -> Profile | None:
        """Find the approved holder of an office on a team, if any."""

    @abstractmethod
    async def demote_to_admin(self, profile_id: str) -> None:
        """Set a profile's role to admin."""

    @abstractmethod
    async def upsert_team_member(self, member: TeamMember) -> None:
        """Create or update a roster row keyed on (team_id, profile_id)."""

    @abstractmethod
    async def delete_team_member(self, team_id: str, profile_id: str) -> None:
        """Remove a roster row."""

    @abstractmethod
    async def create_notification(self, notification: Notification) -> Notification:
        """Insert a notification for another user and return it with its id."""

    @abstractmethod
    async def list_notifications(self, user_id: str) -> list[Notification]:
        """Notifications addressed to a user, newest first."""

    @abstractmethod
    async def update_notification_status(
        self, notification_id: str, status: NotificationStatus
    ) -> None:
        """Set the status of one notification."""

    @abstractmethod
    async def confirm_promotion(self, notification_id: str) -> Role:
        """Accept a promotion invite addressed to the signed-in user.

        The backend grants the offered role, demotes the approved holder of
        a taken office to admin and marks the invite accepted, all at once.

        Returns:
            The role now held
        """
