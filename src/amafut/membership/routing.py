"""Smart routing: keeps the user on the screen their lifecycle stage calls for.

The decision is a pure function of the membership snapshot and the current
path (`compute_lifecycle_state`, `compute_ideal_route`, `decide_navigation`).
`SmartRouter` is the thin side-effecting part: it re-evaluates on every store
change and navigates only when the current path disagrees.

Usage:
    navigator = InMemoryNavigator()
    router = SmartRouter(store, navigator)
    router.start()

    router.go(Route.REGISTER_PROFILE)  # explicit user navigation
    print(navigator.current_path, router.is_redirecting)
"""

import asyncio
from enum import StrEnum
from typing import Protocol

from amafut.logging import get_logger
from amafut.membership.store import MembershipStore
from amafut.models import MembershipSnapshot, MembershipStatus

logger = get_logger(__name__)


class Route(StrEnum):
    """Screens the lifecycle knows about."""

    LOGIN = "/"
    REGISTER_ACCOUNT = "/register-account"
    FORGOT_PASSWORD = "/forgot-password"
    RESET_PASSWORD = "/reset-password"
    REGISTER_ROLE = "/register-role"
    REGISTER_TEAM = "/register-team"
    REGISTER_PRIVACY = "/register-privacy"
    REGISTER_PROFILE = "/register-profile"
    PRE_DASH = "/pre-dash"
    DASHBOARD = "/dashboard"
    PLAYER_STATS = "/player-stats"


PUBLIC_ROUTES = frozenset(
    {Route.LOGIN, Route.REGISTER_ACCOUNT, Route.FORGOT_PASSWORD, Route.RESET_PASSWORD}
)
ONBOARDING_ROUTES = frozenset(
    {Route.REGISTER_ROLE, Route.REGISTER_TEAM, Route.REGISTER_PRIVACY, Route.REGISTER_PROFILE}
)

# Reachable in any lifecycle state once signed in
ESCAPE_ROUTE = Route.PLAYER_STATS


class LifecycleState(StrEnum):
    AUTH_PENDING = "auth_pending"
    ANONYMOUS = "anonymous"
    ONBOARD_ROLE = "onboard_role"
    ONBOARD_TEAM = "onboard_team"
    ONBOARD_PRIVACY = "onboard_privacy"
    ONBOARD_PROFILE = "onboard_profile"
    AWAITING_APPROVAL = "awaiting_approval"
    ACTIVE = "active"


STATE_ROUTES: dict[LifecycleState, Route] = {
    LifecycleState.ANONYMOUS: Route.LOGIN,
    LifecycleState.ONBOARD_ROLE: Route.REGISTER_ROLE,
    LifecycleState.ONBOARD_TEAM: Route.REGISTER_TEAM,
    LifecycleState.ONBOARD_PRIVACY: Route.REGISTER_PRIVACY,
    LifecycleState.ONBOARD_PROFILE: Route.REGISTER_PROFILE,
    LifecycleState.AWAITING_APPROVAL: Route.PRE_DASH,
    LifecycleState.ACTIVE: Route.DASHBOARD,
}


# Name the app stores for accounts that never filled in the profile step
PLACEHOLDER_NAMES = frozenset({"", "Visitante"})


def has_completed_setup(snapshot: MembershipSnapshot) -> bool:
    """Whether the onboarding wizard counts as finished.

    Profiles created before `is_setup_complete` existed never got the flag.
    They count as finished once they have a role, a team, a real name, a
    position and an avatar.
    """
    if snapshot.is_setup_complete:
        return True
    return (
        (snapshot.role or snapshot.intended_role) is not None
        and snapshot.team_id is not None
        and (snapshot.name or "") not in PLACEHOLDER_NAMES
        and bool(snapshot.position)
        and bool(snapshot.avatar)
    )


def compute_lifecycle_state(snapshot: MembershipSnapshot, current_path: str) -> LifecycleState:
    """Derive the lifecycle stage from a snapshot.

    Combinations the mutators never produce (a team but no requested role,
    a finished wizard but no team) fall back to the earliest onboarding
    step that is still unsatisfied.
    """
    if not snapshot.is_initialized:
        return LifecycleState.AUTH_PENDING
    if snapshot.user_id is None:
        return LifecycleState.ANONYMOUS

    has_team = snapshot.team_id is not None
    if has_completed_setup(snapshot) and (has_team or snapshot.is_first_manager):
        if snapshot.status == MembershipStatus.APPROVED or snapshot.is_first_manager:
            return LifecycleState.ACTIVE
        return LifecycleState.AWAITING_APPROVAL

    if snapshot.intended_role is None:
        return LifecycleState.ONBOARD_ROLE
    if not has_team:
        return LifecycleState.ONBOARD_TEAM
    # Reaching the profile step is the user's own doing; the router never moves them there
    if current_path == Route.REGISTER_PROFILE:
        return LifecycleState.ONBOARD_PROFILE
    return LifecycleState.ONBOARD_PRIVACY


def compute_ideal_route(snapshot: MembershipSnapshot, current_path: str) -> Route | None:
    """The single correct screen for the snapshot, or None while auth is pending."""
    state = compute_lifecycle_state(snapshot, current_path)
    return STATE_ROUTES.get(state)


def decide_navigation(snapshot: MembershipSnapshot, current_path: str) -> Route | None:
    """Where to send the user, or None to leave them where they are."""
    state = compute_lifecycle_state(snapshot, current_path)
    if state == LifecycleState.AUTH_PENDING:
        return None

    if state == LifecycleState.ANONYMOUS:
        return None if current_path in PUBLIC_ROUTES else Route.LOGIN

    if current_path == ESCAPE_ROUTE:
        return None

    ideal = STATE_ROUTES[state]
    if current_path == ideal:
        return None

    if current_path in (Route.LOGIN, Route.DASHBOARD, Route.PRE_DASH):
        return ideal

    if current_path in ONBOARDING_ROUTES:
        if current_path == Route.REGISTER_PRIVACY and ideal == Route.REGISTER_PROFILE:
            return None
        return ideal

    # Until the wizard is done every other screen is off limits
    if not has_completed_setup(snapshot):
        return ideal
    return None


class Navigator(Protocol):
    """Whatever owns the current screen (a UI router, the CLI, a test double)."""

    @property
    def current_path(self) -> str: ...

    def navigate(self, path: str) -> None: ...


class InMemoryNavigator:
    """Navigator that keeps its path and history in memory."""

    def __init__(self, start: str = Route.LOGIN):
        self._path = str(start)
        self.history: list[str] = []

    @property
    def current_path(self) -> str:
        return self._path

    def navigate(self, path: str) -> None:
        self._path = str(path)
        self.history.append(self._path)


class SmartRouter:
    """Re-evaluates routing on every store change and navigates when needed."""

    def __init__(
        self,
        store: MembershipStore,
        navigator: Navigator,
        *,
        debounce_seconds: float = 0.3,
    ):
        self._store = store
        self._navigator = navigator
        self._debounce_seconds = debounce_seconds
        self._is_redirecting = False
        self._reset_handle: asyncio.TimerHandle | None = None
        self._unsubscribe = None

    @property
    def is_redirecting(self) -> bool:
        """Set briefly after each redirect so screens can suppress flicker."""
        return self._is_redirecting

    @property
    def state(self) -> LifecycleState:
        return compute_lifecycle_state(self._store.snapshot, self._navigator.current_path)

    @property
    def ideal_route(self) -> Route | None:
        return compute_ideal_route(self._store.snapshot, self._navigator.current_path)

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(lambda _snapshot: self.sync())
        self.sync()

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None
        self._is_redirecting = False

    def go(self, path: str) -> str:
        """Navigate on the user's behalf, then let the router correct it."""
        self._navigator.navigate(path)
        self.sync()
        return self._navigator.current_path

    def sync(self) -> Route | None:
        """Compare the current path with the ideal one and redirect if needed.

        Returns:
            The route navigated to, or None if no navigation happened
        """
        current_path = self._navigator.current_path
        try:
            target = decide_navigation(self._store.snapshot, current_path)
        except Exception:
            logger.exception("routing_decision_failed", current_path=current_path)
            return None

        if target is None or target == current_path:
            return None

        logger.info("redirect", from_path=current_path, to_path=target.value)
        self._mark_redirecting()
        self._navigator.navigate(target)
        return target

    def _mark_redirecting(self) -> None:
        self._is_redirecting = True
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._is_redirecting = False
            return
        self._reset_handle = loop.call_later(self._debounce_seconds, self._clear_redirecting)

    def _clear_redirecting(self) -> None:
        self._is_redirecting = False
        self._reset_handle = None
