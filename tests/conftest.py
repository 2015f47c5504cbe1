"""Shared fixtures: an in-memory backend behind both ports."""

import asyncio
from typing import Any

import pytest

from amafut.membership import MembershipStore
from amafut.membership.roles import is_officer
from amafut.models import (
    AuthEvent,
    Notification,
    NotificationStatus,
    NotificationType,
    OAuthProvider,
    Profile,
    Role,
    Session,
    Team,
    TeamDetails,
    TeamMember,
)
from amafut.ports import AuthListener, AuthorizationPort, MembershipRepository


class FakeBackend:
    """Tables shared by every fake port built on it.

    `fail(operation)` makes every later call to that operation raise;
    `delay(operation, seconds)` makes it sleep first.
    """

    def __init__(self):
        self.profiles: dict[str, Profile] = {}
        self.teams: dict[str, Team] = {}
        self.roster: dict[tuple[str, str], TeamMember] = {}
        self.accounts: dict[str, tuple[str, str]] = {}
        self.reset_requests: list[str] = []
        self.oauth_requests: list[tuple[OAuthProvider, str | None]] = []
        self.notifications: dict[str, Notification] = {}
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}
        self.delays: dict[str, float] = {}
        self._next_team = 0
        self._next_notification = 0

    def fail(self, operation: str, error: Exception | None = None) -> None:
        self.failures[operation] = error or RuntimeError(f"{operation} exploded")

    def delay(self, operation: str, seconds: float) -> None:
        self.delays[operation] = seconds

    def heal(self) -> None:
        self.failures.clear()
        self.delays.clear()

    async def gate(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.delays:
            await asyncio.sleep(self.delays[operation])
        if operation in self.failures:
            raise self.failures[operation]

    def count(self, operation: str) -> int:
        return self.calls.count(operation)

    # Seeding and inspection helpers

    def add_user(self, user_id: str, **fields: Any) -> Profile:
        profile = Profile(id=user_id, email=f"{user_id}@example.com", name=user_id, **fields)
        self.profiles[user_id] = profile
        self.accounts[profile.email] = ("secret123", user_id)
        return profile

    def add_team(self, name: str, **fields: Any) -> Team:
        self._next_team += 1
        team = Team(id=f"team-{self._next_team}", name=name, **fields)
        self.teams[team.id] = team
        return team

    def patch_profile(self, user_id: str, patch: dict[str, Any]) -> None:
        current = self.profiles[user_id]
        self.profiles[user_id] = Profile.model_validate({**current.model_dump(), **patch})

    def full_profile(self, user_id: str) -> Profile | None:
        profile = self.profiles.get(user_id)
        if profile is None:
            return None
        team = self.teams.get(profile.team_id) if profile.team_id else None
        return profile.model_copy(update={"team": team.details if team else None})

    def add_notification(self, user_id: str, **fields: Any) -> Notification:
        self._next_notification += 1
        notification = Notification(id=f"note-{self._next_notification}", user_id=user_id, **fields)
        self.notifications[notification.id] = notification
        return notification

    def approved_holders(self, team_id: str, role: Role) -> list[str]:
        return [
            p.id
            for p in self.profiles.values()
            if p.team_id == team_id and p.role == role and p.is_approved
        ]


class FakeSubscription:
    def __init__(self, listeners: list[AuthListener], callback: AuthListener):
        self._listeners = listeners
        self._callback = callback

    def unsubscribe(self) -> None:
        if self._callback in self._listeners:
            self._listeners.remove(self._callback)


class FakeAuth(AuthorizationPort):
    """Authorization Port for one client session."""

    def __init__(self, backend: FakeBackend, user_id: str | None = None):
        self.backend = backend
        self.user_id = user_id
        self.listeners: list[AuthListener] = []

    def emit(self, event: AuthEvent, session: Session | None) -> None:
        for listener in list(self.listeners):
            listener(event, session)

    def _session(self) -> Session | None:
        if self.user_id is None:
            return None
        return Session(user_id=self.user_id, email=f"{self.user_id}@example.com")

    async def get_session(self) -> Session | None:
        await self.backend.gate("get_session")
        return self._session()

    async def get_full_profile(self, user_id: str) -> Profile | None:
        await self.backend.gate("get_full_profile")
        return self.backend.full_profile(user_id)

    def on_auth_state_change(self, callback: AuthListener) -> FakeSubscription:
        self.listeners.append(callback)
        return FakeSubscription(self.listeners, callback)

    async def update_profile(self, patch: dict[str, Any]) -> None:
        await self.backend.gate("update_profile")
        if self.user_id is None:
            raise RuntimeError("Not signed in")
        self.backend.patch_profile(self.user_id, patch)

    async def sign_in(self, email: str, password: str) -> Session:
        await self.backend.gate("sign_in")
        account = self.backend.accounts.get(email)
        if account is None or account[0] != password:
            raise RuntimeError("Invalid login credentials")
        self.user_id = account[1]
        session = self._session()
        self.emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_up(self, email: str, password: str, name: str | None = None) -> Session:
        await self.backend.gate("sign_up")
        if email in self.backend.accounts:
            raise RuntimeError("User already registered")
        user_id = email.split("@")[0]
        self.backend.accounts[email] = (password, user_id)
        self.backend.profiles[user_id] = Profile(id=user_id, email=email, name=name)
        self.user_id = user_id
        session = self._session()
        self.emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_in_with_oauth(
        self, provider: OAuthProvider, redirect_to: str | None = None
    ) -> str:
        await self.backend.gate("sign_in_with_oauth")
        self.backend.oauth_requests.append((provider, redirect_to))
        return f"https://auth.example.com/authorize?provider={provider.value}"

    async def sign_out(self) -> None:
        await self.backend.gate("sign_out")
        self.user_id = None
        self.emit(AuthEvent.SIGNED_OUT, None)

    async def reset_password(self, email: str) -> None:
        await self.backend.gate("reset_password")
        self.backend.reset_requests.append(email)


class FakeRepository(MembershipRepository):
    def __init__(self, backend: FakeBackend):
        self.backend = backend

    async def get_team(self, team_id: str) -> Team | None:
        await self.backend.gate("get_team")
        team = self.backend.teams.get(team_id)
        return team.model_copy() if team else None

    async def insert_team(self, team: Team) -> Team:
        await self.backend.gate("insert_team")
        created = self.backend.add_team(
            team.name,
            primary_color=team.primary_color,
            secondary_color=team.secondary_color,
            logo=team.logo,
            creator_id=team.creator_id,
            member_count=team.member_count,
            has_first_manager=team.has_first_manager,
        )
        return created.model_copy()

    async def update_team_flags(
        self,
        team_id: str,
        *,
        has_first_manager: bool | None = None,
        member_count: int | None = None,
    ) -> None:
        await self.backend.gate("update_team_flags")
        patch: dict[str, Any] = {}
        if has_first_manager is not None:
            patch["has_first_manager"] = has_first_manager
        if member_count is not None:
            patch["member_count"] = member_count
        team = self.backend.teams[team_id]
        self.backend.teams[team_id] = team.model_copy(update=patch)

    async def update_team_details(self, team_id: str, fields: dict[str, Any]) -> None:
        await self.backend.gate("update_team_details")
        team = self.backend.teams[team_id]
        self.backend.teams[team_id] = team.model_copy(update=fields)

    async def search_teams(self, name: str) -> list[Team]:
        await self.backend.gate("search_teams")
        return [t for t in self.backend.teams.values() if name.lower() in t.name.lower()]

    async def list_team_members(self, team_id: str) -> list[TeamMember]:
        await self.backend.gate("list_team_members")
        return [m for (tid, _), m in self.backend.roster.items() if tid == team_id]

    async def get_member(self, profile_id: str) -> Profile | None:
        await self.backend.gate("get_member")
        profile = self.backend.profiles.get(profile_id)
        return profile.model_copy() if profile else None

    async def update_member(self, profile_id: str, patch: dict[str, Any]) -> None:
        await self.backend.gate("update_member")
        self.backend.patch_profile(profile_id, patch)

    async def read_team_officer_holder(
        self, team_id: str, role: Role, *, exclude_id: str | None = None
    ) -> Profile | None:
        await self.backend.gate("read_team_officer_holder")
        for profile in self.backend.profiles.values():
            if (
                profile.team_id == team_id
                and profile.role == role
                and profile.is_approved
                and profile.id != exclude_id
            ):
                return profile.model_copy()
        return None

    async def demote_to_admin(self, profile_id: str) -> None:
        await self.backend.gate("demote_to_admin")
        self.backend.patch_profile(profile_id, {"role": Role.ADMIN.value})

    async def upsert_team_member(self, member: TeamMember) -> None:
        await self.backend.gate("upsert_team_member")
        self.backend.roster[(member.team_id, member.profile_id)] = member

    async def delete_team_member(self, team_id: str, profile_id: str) -> None:
        await self.backend.gate("delete_team_member")
        self.backend.roster.pop((team_id, profile_id), None)

    async def create_notification(self, notification: Notification) -> Notification:
        await self.backend.gate("create_notification")
        created = self.backend.add_notification(
            notification.user_id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            data=notification.data,
            status=notification.status,
        )
        return created.model_copy()

    async def list_notifications(self, user_id: str) -> list[Notification]:
        await self.backend.gate("list_notifications")
        mine = [n.model_copy() for n in self.backend.notifications.values() if n.user_id == user_id]
        return list(reversed(mine))

    async def update_notification_status(
        self, notification_id: str, status: NotificationStatus
    ) -> None:
        await self.backend.gate("update_notification_status")
        note = self.backend.notifications[notification_id]
        self.backend.notifications[notification_id] = note.model_copy(update={"status": status})

    async def confirm_promotion(self, notification_id: str) -> Role:
        """Mirrors the database function: grant, demote the incumbent, mark accepted."""
        await self.backend.gate("confirm_promotion")
        invite = self.backend.notifications.get(notification_id)
        if (
            invite is None
            or invite.type != NotificationType.PROMOTION_INVITE
            or invite.is_answered
            or invite.offered_role is None
        ):
            raise RuntimeError("Invite not found or already answered")

        role = invite.offered_role
        team_id = invite.data.get("team_id")
        if is_officer(role):
            for holder_id in self.backend.approved_holders(team_id, role):
                if holder_id != invite.user_id:
                    self.backend.patch_profile(holder_id, {"role": Role.ADMIN.value})
        self.backend.patch_profile(
            invite.user_id, {"role": role.value, "intended_role": role.value}
        )
        self.backend.notifications[notification_id] = invite.model_copy(
            update={"status": NotificationStatus.ACCEPTED}
        )
        return role


@pytest.fixture
def backend() -> FakeBackend:
    """Provide an empty in-memory backend."""
    return FakeBackend()


@pytest.fixture
def make_store(backend: FakeBackend):
    """Build a store signed in as an existing backend user, already initialized."""

    def factory(user_id: str | None = None, *, timeout: float = 1.0) -> MembershipStore:
        store = MembershipStore(
            FakeAuth(backend, user_id),
            FakeRepository(backend),
            timeout=timeout,
            profile_retry_attempts=3,
            profile_retry_delay=0.01,
        )
        if user_id is not None:
            store.apply_profile(backend.full_profile(user_id))
        store.mark_initialized()
        return store

    return factory


@pytest.fixture
def founded_team(backend: FakeBackend, make_store):
    """A team founded by president "ana"; returns (ana's store, team id)."""

    async def found(role: Role = Role.PRESIDENT, name: str = "FC Test"):
        backend.add_user("ana")
        store = make_store("ana")
        await store.set_intended_role(role)
        team_id = await store.create_team(TeamDetails(name=name))
        return store, team_id

    return found


@pytest.fixture
def make_auth(backend: FakeBackend):
    """Build an Authorization Port for one client session."""

    def factory(user_id: str | None = None) -> FakeAuth:
        return FakeAuth(backend, user_id)

    return factory


@pytest.fixture
def repository(backend: FakeBackend) -> FakeRepository:
    return FakeRepository(backend)
