"""Membership state store.

Holds the signed-in user's profile snapshot and exposes the mutators that
move a user through the membership lifecycle. Every mutator persists first
and only then updates local state, so the router never reacts to a write
that did not happen.

Usage:
    store = MembershipStore(auth, repository, timeout=settings.request_timeout_seconds)
    unsubscribe = store.subscribe(lambda snapshot: print(snapshot.status))

    await store.set_intended_role(Role.PRESIDENT)
    team_id = await store.create_team(TeamDetails(name="FC Test"))

    if not await store.approve_member(member_id):
        print(store.error)
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from amafut.errors import (
    BackendError,
    ConflictError,
    MembershipError,
    NotFound,
    PermissionDenied,
    Unauthenticated,
)
from amafut.logging import get_logger
from amafut.membership.roles import effective_role, is_officer, resolve_approval_role
from amafut.models import (
    MembershipSnapshot,
    MembershipStatus,
    Notification,
    NotificationStatus,
    NotificationType,
    OAuthProvider,
    Profile,
    Role,
    Team,
    TeamDetails,
    TeamMember,
)
from amafut.ports import AuthorizationPort, MembershipRepository

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 15.0

Listener = Callable[[MembershipSnapshot], None]


async def call_backend(operation: str, awaitable: Awaitable[T], timeout: float) -> T:
    """Await a port call, bounding it by `timeout` seconds.

    Raises:
        BackendError: The call failed or timed out. Membership errors raised
            by the port itself pass through unchanged.
    """
    try:
        async with asyncio.timeout(timeout):
            return await awaitable
    except MembershipError:
        raise
    except TimeoutError as e:
        raise BackendError(f"{operation} timed out after {timeout:g}s") from e
    except Exception as e:
        raise BackendError(str(e) or f"{operation} failed") from e


class MembershipStore:
    """Authoritative in-memory snapshot of the current user's membership."""

    def __init__(
        self,
        auth: AuthorizationPort,
        repository: MembershipRepository,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        profile_retry_attempts: int = 5,
        profile_retry_delay: float = 0.5,
    ):
        self._auth = auth
        self._repo = repository
        self.timeout = timeout
        self._profile_retry_attempts = profile_retry_attempts
        self._profile_retry_delay = profile_retry_delay

        self._profile: Profile | None = None
        self._pending_calls = 0
        self._is_initialized = False
        self._failure: MembershipError | None = None
        self._notifications: list[Notification] = []
        self._listeners: list[Listener] = []

    # =========================================================================
    # SNAPSHOT
    # =========================================================================

    @property
    def profile(self) -> Profile | None:
        return self._profile

    @property
    def user_id(self) -> str | None:
        return self._profile.id if self._profile else None

    @property
    def role(self) -> Role | None:
        return self._profile.role if self._profile else None

    @property
    def intended_role(self) -> Role | None:
        return self._profile.intended_role if self._profile else None

    @property
    def team_id(self) -> str | None:
        return self._profile.team_id if self._profile else None

    @property
    def status(self) -> MembershipStatus:
        return self._profile.status if self._profile else MembershipStatus.APPROVED

    @property
    def is_first_manager(self) -> bool:
        return bool(self._profile and self._profile.is_first_manager)

    @property
    def is_setup_complete(self) -> bool:
        return bool(self._profile and self._profile.is_setup_complete)

    @property
    def is_loading(self) -> bool:
        return self._pending_calls > 0

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def error(self) -> str | None:
        return str(self._failure) if self._failure else None

    @property
    def last_failure(self) -> MembershipError | None:
        """The exception behind `error`, for callers that branch on its type."""
        return self._failure

    @property
    def snapshot(self) -> MembershipSnapshot:
        profile = self._profile
        if profile is None:
            return MembershipSnapshot(
                is_loading=self.is_loading,
                is_initialized=self._is_initialized,
                error=self.error,
            )
        return MembershipSnapshot(
            user_id=profile.id,
            email=profile.email,
            name=profile.name,
            role=profile.role,
            intended_role=profile.intended_role,
            team_id=profile.team_id,
            team=profile.team,
            status=profile.status,
            is_first_manager=profile.is_first_manager,
            is_setup_complete=profile.is_setup_complete,
            avatar=profile.avatar,
            position=profile.position,
            is_loading=self.is_loading,
            is_initialized=self._is_initialized,
            error=self.error,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` with a fresh snapshot after every change.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot
        for listener in list(self._listeners):
            listener(snapshot)

    # =========================================================================
    # LOCAL STATE (used by the bootstrapper)
    # =========================================================================

    def apply_profile(self, profile: Profile) -> None:
        """Replace the local snapshot with a freshly fetched profile."""
        self._profile = profile
        self._notify()

    def reset(self) -> None:
        """Return to the anonymous default."""
        self._profile = None
        self._failure = None
        self._notifications = []
        self._notify()

    def mark_initialized(self, initialized: bool = True) -> None:
        if self._is_initialized != initialized:
            self._is_initialized = initialized
            self._notify()

    def clear_error(self) -> None:
        if self._failure is not None:
            self._failure = None
            self._notify()

    def _patch_local(self, **fields: Any) -> None:
        # Fields are applied individually so the last resolved write per field wins
        if self._profile is None:
            return
        self._profile = self._profile.model_copy(update=fields)
        self._notify()

    def _backend(self, operation: str, awaitable: Awaitable[T]) -> Awaitable[T]:
        return call_backend(operation, awaitable, self.timeout)

    @asynccontextmanager
    async def _mutation(self, operation: str) -> AsyncIterator[None]:
        """Track loading state and record failures for one mutator call."""
        self._pending_calls += 1
        self._failure = None
        self._notify()
        try:
            yield
        except MembershipError as e:
            self._failure = e
            logger.warning(
                "membership_mutation_failed",
                operation=operation,
                error_code=e.code,
                error=str(e),
                user_id=self.user_id,
            )
            raise
        finally:
            self._pending_calls -= 1
            self._notify()

    def _require_user(self) -> Profile:
        if self._profile is None:
            raise Unauthenticated()
        return self._profile

    def _require_officer(self, action: str) -> Profile:
        caller = self._require_user()
        if not is_officer(caller.role):
            raise PermissionDenied(f"Only a president or vice-president can {action}.")
        if caller.team_id is None:
            raise PermissionDenied(f"You need a team before you can {action}.")
        return caller

    async def _load_member(self, caller: Profile, member_id: str) -> Profile:
        member = await self._backend("get_member", self._repo.get_member(member_id))
        if member is None:
            raise NotFound(f"Member {member_id} no longer exists.")
        if member.team_id != caller.team_id:
            raise PermissionDenied("That member does not belong to your team.")
        return member

    async def _sync_roster(self, operation: str, awaitable: Awaitable[None]) -> None:
        # The roster mirrors profiles; a failed sync is logged, not fatal
        try:
            await self._backend(operation, awaitable)
        except BackendError as e:
            logger.warning("roster_sync_failed", operation=operation, error=str(e))

    # =========================================================================
    # ONBOARDING
    # =========================================================================

    async def set_intended_role(self, role: Role) -> None:
        """Persist the role the user asked for without granting it."""
        self._require_user()
        async with self._mutation("set_intended_role"):
            await self._backend(
                "update_profile", self._auth.update_profile({"intended_role": role.value})
            )
            self._patch_local(intended_role=role)
            logger.info("intended_role_set", user_id=self.user_id, intended_role=role.value)

    async def create_team(self, details: TeamDetails) -> str:
        """Found a team and become its first manager.

        Returns:
            The new team's id

        Raises:
            PermissionDenied: The effective role is not an officer role
            BackendError: The backend rejected one of the writes
        """
        profile = self._require_user()
        async with self._mutation("create_team"):
            role = effective_role(profile)
            if not is_officer(role):
                raise PermissionDenied("Only a president or vice-president can create a team.")

            team = await self._backend(
                "insert_team",
                self._repo.insert_team(
                    Team(
                        name=details.name,
                        primary_color=details.primary_color,
                        secondary_color=details.secondary_color,
                        logo=details.logo,
                        creator_id=profile.id,
                        member_count=1,
                        has_first_manager=True,
                    )
                ),
            )
            if team.id is None:
                raise BackendError("Team was created without an id.")

            # Last required write; nothing is patched locally before it lands
            await self._backend(
                "update_profile",
                self._auth.update_profile(
                    {
                        "team_id": team.id,
                        "role": role.value,
                        "intended_role": role.value,
                        "status": MembershipStatus.APPROVED.value,
                        "is_first_manager": True,
                        "is_setup_complete": True,
                    }
                ),
            )
            self._patch_local(
                team_id=team.id,
                team=details,
                role=role,
                intended_role=role,
                status=MembershipStatus.APPROVED,
                is_first_manager=True,
                is_setup_complete=True,
            )

            await self._sync_roster(
                "upsert_team_member",
                self._repo.upsert_team_member(
                    TeamMember(
                        team_id=team.id,
                        profile_id=profile.id,
                        role=role.value,
                        is_team_approved=True,
                    )
                ),
            )

            logger.info("team_created", team_id=team.id, user_id=profile.id, role=role.value)
            return team.id

    async def join_team(self, team_id: str) -> None:
        """Ask to join an existing team.

        An officer joining a team that has never had a first manager becomes
        it and is approved at once. Everyone else waits as a pending player
        with their requested role kept in `intended_role`.
        """
        profile = self._require_user()
        async with self._mutation("join_team"):
            team = await self._backend("get_team", self._repo.get_team(team_id))
            if team is None:
                raise NotFound(f"Team {team_id} no longer exists.")

            requested = effective_role(profile) or Role.PLAYER
            becomes_first_manager = is_officer(requested) and not team.has_first_manager
            role = requested if becomes_first_manager else Role.PLAYER
            status = (
                MembershipStatus.APPROVED if becomes_first_manager else MembershipStatus.PENDING
            )

            # Claim the team before granting the role so a failed flag write never
            # leaves an approved officer on a team still open to another first manager
            if becomes_first_manager:
                await self._backend(
                    "update_team_flags",
                    self._repo.update_team_flags(team_id, has_first_manager=True),
                )
            await self._backend(
                "update_profile",
                self._auth.update_profile(
                    {
                        "team_id": team_id,
                        "role": role.value,
                        "intended_role": requested.value,
                        "status": status.value,
                        "is_first_manager": becomes_first_manager,
                        "is_setup_complete": False,
                    }
                ),
            )
            self._patch_local(
                team_id=team_id,
                team=team.details,
                role=role,
                intended_role=requested,
                status=status,
                is_first_manager=becomes_first_manager,
                is_setup_complete=False,
            )

            await self._sync_roster(
                "upsert_team_member",
                self._repo.upsert_team_member(
                    TeamMember(
                        team_id=team_id,
                        profile_id=profile.id,
                        role=role.value,
                        is_team_approved=becomes_first_manager,
                    )
                ),
            )

            logger.info(
                "team_joined",
                team_id=team_id,
                user_id=profile.id,
                requested_role=requested.value,
                status=status.value,
                is_first_manager=becomes_first_manager,
            )

    async def mark_setup_complete(self) -> None:
        """Finish the onboarding wizard. Approval status is left alone."""
        self._require_user()
        async with self._mutation("mark_setup_complete"):
            await self._backend(
                "update_profile", self._auth.update_profile({"is_setup_complete": True})
            )
            self._patch_local(is_setup_complete=True)
            logger.info("setup_completed", user_id=self.user_id, status=self.status.value)

    async def update_team_details(self, details: TeamDetails) -> None:
        """Rename or recolour the caller's team."""
        self._require_user()
        async with self._mutation("update_team_details"):
            caller = self._require_officer("edit the team")
            await self._backend(
                "update_team_details",
                self._repo.update_team_details(caller.team_id, details.model_dump()),
            )
            self._patch_local(team=details)
            logger.info("team_details_updated", team_id=caller.team_id, name=details.name)

    async def search_teams(self, name: str) -> list[Team]:
        """Teams whose name contains `name`, for the join step."""
        self._require_user()
        return await self._backend("search_teams", self._repo.search_teams(name))

    async def list_roster(self) -> list[TeamMember]:
        """Roster of the caller's team; empty without a team."""
        profile = self._require_user()
        if profile.team_id is None:
            return []
        return await self._backend(
            "list_team_members", self._repo.list_team_members(profile.team_id)
        )

    # =========================================================================
    # OFFICER ACTIONS
    # =========================================================================

    async def update_member_role(
        self, target_user_id: str, target_current_role: Role | None, new_role: Role
    ) -> bool:
        """Change a member's role, demoting the incumbent of a taken office.

        Returns:
            True on success; on failure `error` and `last_failure` are set
        """
        try:
            async with self._mutation("update_member_role"):
                caller = self._require_officer("change roles")
                target = await self._load_member(caller, target_user_id)

                if is_officer(new_role):
                    holder = await self._backend(
                        "read_team_officer_holder",
                        self._repo.read_team_officer_holder(
                            caller.team_id, new_role, exclude_id=target_user_id
                        ),
                    )
                    if holder is not None:
                        await self._backend("demote_to_admin", self._repo.demote_to_admin(holder.id))
                        logger.info(
                            "officer_demoted",
                            team_id=caller.team_id,
                            profile_id=holder.id,
                            office=new_role.value,
                        )
                        if holder.id == caller.id:
                            self._patch_local(role=Role.ADMIN)

                await self._backend(
                    "update_member",
                    self._repo.update_member(target_user_id, {"role": new_role.value}),
                )
                if target_user_id == caller.id:
                    self._patch_local(role=new_role)

                await self._sync_roster(
                    "upsert_team_member",
                    self._repo.upsert_team_member(
                        TeamMember(
                            team_id=caller.team_id,
                            profile_id=target_user_id,
                            role=new_role.value,
                            is_team_approved=target.is_approved,
                        )
                    ),
                )
                logger.info(
                    "member_role_updated",
                    team_id=caller.team_id,
                    target_user_id=target_user_id,
                    previous_role=target_current_role.value if target_current_role else None,
                    new_role=new_role.value,
                )
        except MembershipError:
            return False
        return True

    async def approve_member(self, member_id: str) -> bool:
        """Approve a pending member into the role they asked for.

        Either the member ends up approved with their role granted and the
        team's member count bumped, or nothing changes.
        """
        try:
            async with self._mutation("approve_member"):
                caller = self._require_officer("approve members")
                member = await self._load_member(caller, member_id)
                if member.status == MembershipStatus.APPROVED:
                    raise ConflictError("That member is already approved.")

                granted = resolve_approval_role(member)
                if is_officer(granted):
                    holder = await self._backend(
                        "read_team_officer_holder",
                        self._repo.read_team_officer_holder(
                            caller.team_id, granted, exclude_id=member_id
                        ),
                    )
                    if holder is not None:
                        logger.info(
                            "member_approval_conflict",
                            team_id=caller.team_id,
                            member_id=member_id,
                            office=granted.value,
                            holder_id=holder.id,
                        )
                        raise ConflictError(
                            f"Cannot approve as {granted.value}: that office is already held. "
                            "Change the current holder's role first."
                        )

                team = await self._backend("get_team", self._repo.get_team(caller.team_id))
                if team is None:
                    raise NotFound(f"Team {caller.team_id} no longer exists.")

                previous = {
                    "status": member.status.value,
                    "role": member.role.value,
                    "intended_role": member.intended_role.value if member.intended_role else None,
                }
                await self._backend(
                    "update_member",
                    self._repo.update_member(
                        member_id,
                        {
                            "status": MembershipStatus.APPROVED.value,
                            "role": granted.value,
                            "intended_role": granted.value,
                        },
                    ),
                )
                try:
                    await self._backend(
                        "update_team_flags",
                        self._repo.update_team_flags(
                            caller.team_id, member_count=team.member_count + 1
                        ),
                    )
                except BackendError:
                    try:
                        await self._backend(
                            "update_member", self._repo.update_member(member_id, previous)
                        )
                    except BackendError as rollback_error:
                        logger.error(
                            "approval_rollback_failed",
                            member_id=member_id,
                            error=str(rollback_error),
                        )
                    raise

                await self._sync_roster(
                    "upsert_team_member",
                    self._repo.upsert_team_member(
                        TeamMember(
                            team_id=caller.team_id,
                            profile_id=member_id,
                            role=granted.value,
                            is_team_approved=True,
                        )
                    ),
                )
                logger.info(
                    "member_approved",
                    team_id=caller.team_id,
                    member_id=member_id,
                    role=granted.value,
                    member_count=team.member_count + 1,
                )
        except MembershipError:
            return False
        return True

    async def reject_member(self, member_id: str) -> bool:
        """Reject a member and release them to apply elsewhere.

        The member's `intended_role` is kept so a later join reconstructs
        their request.
        """
        try:
            async with self._mutation("reject_member"):
                caller = self._require_officer("reject members")
                member = await self._load_member(caller, member_id)
                if member.is_first_manager:
                    raise PermissionDenied("The team's first manager cannot be rejected.")

                await self._backend(
                    "update_member",
                    self._repo.update_member(
                        member_id,
                        {"status": MembershipStatus.REJECTED.value, "team_id": None},
                    ),
                )
                await self._sync_roster(
                    "delete_team_member",
                    self._repo.delete_team_member(caller.team_id, member_id),
                )
                logger.info("member_rejected", team_id=caller.team_id, member_id=member_id)
        except MembershipError:
            return False
        return True

    async def remove_member(self, member_id: str) -> bool:
        """Take a member off the team and reset them to a fresh player."""
        try:
            async with self._mutation("remove_member"):
                caller = self._require_officer("remove members")
                member = await self._load_member(caller, member_id)
                if member.is_first_manager:
                    raise PermissionDenied("The team's first manager cannot be removed.")

                await self._backend(
                    "update_member",
                    self._repo.update_member(
                        member_id,
                        {
                            "team_id": None,
                            "status": MembershipStatus.APPROVED.value,
                            "role": Role.PLAYER.value,
                            "intended_role": None,
                            "is_first_manager": False,
                        },
                    ),
                )
                await self._sync_roster(
                    "delete_team_member",
                    self._repo.delete_team_member(caller.team_id, member_id),
                )
                logger.info("member_removed", team_id=caller.team_id, member_id=member_id)
        except MembershipError:
            return False
        return True

    # =========================================================================
    # NOTIFICATIONS AND PROMOTIONS
    # =========================================================================

    @property
    def notifications(self) -> list[Notification]:
        return list(self._notifications)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._notifications if n.is_unread)

    async def fetch_notifications(self) -> list[Notification]:
        """Load the caller's notifications, newest first."""
        profile = self._require_user()
        self._notifications = await self._backend(
            "list_notifications", self._repo.list_notifications(profile.id)
        )
        return self.notifications

    async def promote_member(self, member_id: str, new_role: Role) -> bool:
        """Invite an approved member to take on a new role.

        Nothing about the member changes until they accept the invite.

        Returns:
            True once the invite is sent; on failure `error` and `last_failure` are set
        """
        try:
            async with self._mutation("promote_member"):
                caller = self._require_officer("promote members")
                member = await self._load_member(caller, member_id)
                if not member.is_approved:
                    raise ConflictError("Approve the member before promoting them.")
                if member.role == new_role:
                    raise ConflictError(f"That member already holds the {new_role.value} role.")

                invite = await self._backend(
                    "create_notification",
                    self._repo.create_notification(
                        Notification(
                            user_id=member_id,
                            type=NotificationType.PROMOTION_INVITE,
                            title="You have been promoted!",
                            message=(
                                f"You are invited to take on the {new_role.value} role. "
                                "Do you accept?"
                            ),
                            data={
                                "new_role": new_role.value,
                                "promoter_name": caller.name,
                                "team_id": caller.team_id,
                            },
                        )
                    ),
                )
                logger.info(
                    "promotion_invited",
                    team_id=caller.team_id,
                    member_id=member_id,
                    role=new_role.value,
                    notification_id=invite.id,
                )
        except MembershipError:
            return False
        return True

    async def respond_to_promotion(self, notification_id: str, accept: bool) -> Role | None:
        """Accept or decline a promotion invite addressed to the caller.

        Returns:
            The role now held after accepting, None after declining

        Raises:
            ConflictError: The invite was already answered
            BackendError: The backend refused the promotion
        """
        self._require_user()
        async with self._mutation("respond_to_promotion"):
            known = next((n for n in self._notifications if n.id == notification_id), None)
            if known is not None and known.is_answered:
                raise ConflictError("That invite was already answered.")

            if not accept:
                await self._backend(
                    "update_notification_status",
                    self._repo.update_notification_status(
                        notification_id, NotificationStatus.REJECTED
                    ),
                )
                self._set_notification_status(notification_id, NotificationStatus.REJECTED)
                logger.info("promotion_declined", notification_id=notification_id)
                return None

            role = await self._backend(
                "confirm_promotion", self._repo.confirm_promotion(notification_id)
            )
            self._set_notification_status(notification_id, NotificationStatus.ACCEPTED)
            self._patch_local(role=role, intended_role=role)
            logger.info(
                "promotion_accepted",
                notification_id=notification_id,
                user_id=self.user_id,
                role=role.value,
            )
            return role

    def _set_notification_status(self, notification_id: str, status: NotificationStatus) -> None:
        self._notifications = [
            n.model_copy(update={"status": status}) if n.id == notification_id else n
            for n in self._notifications
        ]

    # =========================================================================
    # AUTH PASS-THROUGHS
    # =========================================================================

    async def login(self, email: str, password: str) -> Profile:
        """Sign in and load the full profile."""
        async with self._mutation("login"):
            session = await self._backend("sign_in", self._auth.sign_in(email, password))
            profile = await self._backend(
                "get_full_profile", self._auth.get_full_profile(session.user_id)
            )
            if profile is None:
                raise NotFound("No profile exists for this account.")
            self.apply_profile(profile)
            logger.info("user_logged_in", user_id=profile.id)
            return profile

    async def register(self, email: str, password: str, name: str | None = None) -> Profile:
        """Create an account and wait for the backend to create its profile."""
        async with self._mutation("register"):
            session = await self._backend("sign_up", self._auth.sign_up(email, password, name))
            profile = await self._await_profile(session.user_id)
            self.apply_profile(profile)
            logger.info("user_registered", user_id=profile.id)
            return profile

    async def _await_profile(self, user_id: str) -> Profile:
        for attempt in range(1, self._profile_retry_attempts + 1):
            profile = await self._backend(
                "get_full_profile", self._auth.get_full_profile(user_id)
            )
            if profile is not None:
                return profile
            logger.debug("profile_not_ready", user_id=user_id, attempt=attempt)
            await asyncio.sleep(self._profile_retry_delay * attempt)
        raise BackendError(
            "The account was created but its profile is not ready yet. Sign in to finish."
        )

    async def login_with_oauth(
        self, provider: OAuthProvider, redirect_to: str | None = None
    ) -> str:
        """Start a sign-in with an external provider.

        Returns:
            The URL to open. The session is picked up from the SIGNED_IN
            event once the provider redirects back.
        """
        async with self._mutation("login_with_oauth"):
            url = await self._backend(
                "sign_in_with_oauth", self._auth.sign_in_with_oauth(provider, redirect_to)
            )
            logger.info("oauth_login_started", provider=provider.value)
            return url

    async def logout(self) -> None:
        """Sign out and return to the anonymous default."""
        async with self._mutation("logout"):
            user_id = self.user_id
            try:
                await self._backend("sign_out", self._auth.sign_out())
            except BackendError as e:
                logger.warning("logout_error", user_id=user_id, error=str(e))
            self.reset()
            logger.info("user_logged_out", user_id=user_id)

    async def reset_password(self, email: str) -> None:
        """Send a password reset e-mail."""
        async with self._mutation("reset_password"):
            await self._backend("reset_password", self._auth.reset_password(email))
            logger.info("password_reset_requested", email=email)
