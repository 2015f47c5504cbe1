"""Supabase implementations of the Authorization Port and the Membership Repository.

Usage:
    auth, repository = await create_backend(settings)
    store = MembershipStore(auth, repository)
"""

from typing import Any

from supabase import AsyncClient
from supabase_auth import AsyncSupportedStorage

from amafut.config import Settings, get_settings
from amafut.dao.base import SupabaseClient
from amafut.dao.notification_dao import NotificationDAO
from amafut.dao.profile_dao import ProfileDAO
from amafut.dao.team_dao import TeamDAO, TeamMemberDAO
from amafut.logging import get_logger
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
from amafut.ports import AuthListener, AuthorizationPort, MembershipRepository, Subscription

logger = get_logger(__name__)


def to_session(raw: Any) -> Session | None:
    """Convert a supabase_auth Session into ours."""
    if raw is None or getattr(raw, "user", None) is None:
        return None
    return Session(
        user_id=str(raw.user.id),
        email=raw.user.email,
        access_token=raw.access_token,
    )


def to_auth_event(raw: str) -> AuthEvent | str:
    try:
        return AuthEvent(raw)
    except ValueError:
        return raw


class SupabaseAuthGateway(AuthorizationPort):
    """Authorization Port backed by Supabase Auth and the `profiles` table."""

    def __init__(
        self,
        client: AsyncClient,
        *,
        profiles: ProfileDAO | None = None,
        teams: TeamDAO | None = None,
        password_reset_redirect_url: str | None = None,
        oauth_redirect_url: str | None = None,
    ):
        self.client = client
        self.profiles = profiles or ProfileDAO(client)
        self.teams = teams or TeamDAO(client)
        self.password_reset_redirect_url = password_reset_redirect_url
        self.oauth_redirect_url = oauth_redirect_url

    async def get_session(self) -> Session | None:
        return to_session(await self.client.auth.get_session())

    async def get_full_profile(self, user_id: str) -> Profile | None:
        profile = await self.profiles.get_by_id(user_id)
        if profile is None:
            logger.warning("profile_not_found", user_id=user_id)
            return None
        if profile.team_id is None:
            return profile

        team = await self.teams.get_by_id(profile.team_id)
        if team is None:
            # Keep the team id even when its row is not readable yet
            logger.warning("profile_team_missing", user_id=user_id, team_id=profile.team_id)
            return profile
        return profile.model_copy(update={"team": team.details})

    def on_auth_state_change(self, callback: AuthListener) -> Subscription:
        def listener(event: str, session: Any) -> None:
            callback(to_auth_event(event), to_session(session))

        return self.client.auth.on_auth_state_change(listener)

    async def update_profile(self, patch: dict[str, Any]) -> None:
        session = await self.get_session()
        if session is None:
            raise RuntimeError("Not signed in")
        await self.profiles.update(session.user_id, patch)

    async def sign_in(self, email: str, password: str) -> Session:
        response = await self.client.auth.sign_in_with_password(
            {"email": email, "password": password}
        )
        session = to_session(response.session)
        if session is None:
            raise RuntimeError("Invalid session. Please try again.")
        return session

    async def sign_up(self, email: str, password: str, name: str | None = None) -> Session:
        response = await self.client.auth.sign_up(
            {
                "email": email,
                "password": password,
                "options": {"data": {"name": name or "", "full_name": name or ""}},
            }
        )
        if response.user is None:
            raise RuntimeError("Failed to create account")
        # Without a session the e-mail still has to be confirmed
        return Session(
            user_id=str(response.user.id),
            email=response.user.email,
            access_token=response.session.access_token if response.session else None,
        )

    async def sign_in_with_oauth(
        self, provider: OAuthProvider, redirect_to: str | None = None
    ) -> str:
        credentials: dict[str, Any] = {"provider": provider.value}
        redirect_to = redirect_to or self.oauth_redirect_url
        if redirect_to:
            credentials["options"] = {"redirect_to": redirect_to}
        response = await self.client.auth.sign_in_with_oauth(credentials)
        if not response.url:
            raise RuntimeError(f"Could not start {provider.value} sign-in")
        return response.url

    async def sign_out(self) -> None:
        await self.client.auth.sign_out()

    async def reset_password(self, email: str) -> None:
        if self.password_reset_redirect_url:
            await self.client.auth.reset_password_for_email(
                email, {"redirect_to": self.password_reset_redirect_url}
            )
        else:
            await self.client.auth.reset_password_for_email(email)


class SupabaseMembershipRepository(MembershipRepository):
    """Membership Repository backed by the profile, team, roster and notification tables."""

    def __init__(
        self,
        client: AsyncClient,
        *,
        profiles: ProfileDAO | None = None,
        teams: TeamDAO | None = None,
        members: TeamMemberDAO | None = None,
        notifications: NotificationDAO | None = None,
    ):
        self.profiles = profiles or ProfileDAO(client)
        self.teams = teams or TeamDAO(client)
        self.members = members or TeamMemberDAO(client)
        self.notifications = notifications or NotificationDAO(client)

    async def get_team(self, team_id: str) -> Team | None:
        return await self.teams.get_by_id(team_id)

    async def insert_team(self, team: Team) -> Team:
        return await self.teams.insert(team)

    async def update_team_flags(
        self,
        team_id: str,
        *,
        has_first_manager: bool | None = None,
        member_count: int | None = None,
    ) -> None:
        await self.teams.update_flags(
            team_id, has_first_manager=has_first_manager, member_count=member_count
        )

    async def update_team_details(self, team_id: str, fields: dict[str, Any]) -> None:
        await self.teams.update(team_id, fields)

    async def search_teams(self, name: str) -> list[Team]:
        return await self.teams.find_by_name(name)

    async def list_team_members(self, team_id: str) -> list[TeamMember]:
        return await self.members.find_by_team(team_id)

    async def get_member(self, profile_id: str) -> Profile | None:
        return await self.profiles.get_by_id(profile_id)

    async def update_member(self, profile_id: str, patch: dict[str, Any]) -> None:
        await self.profiles.update(profile_id, patch)

    async def read_team_officer_holder(
        self, team_id: str, role: Role, *, exclude_id: str | None = None
    ) -> Profile | None:
        return await self.profiles.find_officer_holder(team_id, role, exclude_id)

    async def demote_to_admin(self, profile_id: str) -> None:
        await self.profiles.demote_to_admin(profile_id)

    async def upsert_team_member(self, member: TeamMember) -> None:
        await self.members.upsert(member)

    async def delete_team_member(self, team_id: str, profile_id: str) -> None:
        await self.members.delete(team_id, profile_id)

    async def create_notification(self, notification: Notification) -> Notification:
        return await self.notifications.insert(notification)

    async def list_notifications(self, user_id: str) -> list[Notification]:
        return await self.notifications.find_by_user(user_id)

    async def update_notification_status(
        self, notification_id: str, status: NotificationStatus
    ) -> None:
        await self.notifications.set_status(notification_id, status)

    async def confirm_promotion(self, notification_id: str) -> Role:
        return await self.notifications.confirm_promotion(notification_id)


async def create_backend(
    settings: Settings | None = None,
    storage: AsyncSupportedStorage | None = None,
) -> tuple[SupabaseAuthGateway, SupabaseMembershipRepository]:
    """Build both ports on one shared Supabase client."""
    settings = settings or get_settings()
    client = await SupabaseClient.get_client(settings, storage)
    profiles = ProfileDAO(client)
    teams = TeamDAO(client)
    auth = SupabaseAuthGateway(
        client,
        profiles=profiles,
        teams=teams,
        password_reset_redirect_url=settings.password_reset_redirect_url,
        oauth_redirect_url=settings.oauth_redirect_url,
    )
    repository = SupabaseMembershipRepository(client, profiles=profiles, teams=teams)
    return auth, repository
