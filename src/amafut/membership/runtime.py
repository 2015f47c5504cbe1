"""Wires store, bootstrapper and router together for one app session."""

from dataclasses import dataclass

from amafut.config import Settings
from amafut.membership.bootstrap import SessionBootstrapper
from amafut.membership.routing import InMemoryNavigator, Navigator, Route, SmartRouter
from amafut.membership.store import DEFAULT_TIMEOUT_SECONDS, MembershipStore
from amafut.ports import AuthorizationPort, MembershipRepository


@dataclass
class MembershipRuntime:
    """The objects an app constructs once at startup and hands to its screens."""

    store: MembershipStore
    bootstrapper: SessionBootstrapper
    router: SmartRouter
    navigator: Navigator

    @classmethod
    def create(
        cls,
        auth: AuthorizationPort,
        repository: MembershipRepository,
        *,
        settings: Settings | None = None,
        navigator: Navigator | None = None,
    ) -> "MembershipRuntime":
        timeout = settings.request_timeout_seconds if settings else DEFAULT_TIMEOUT_SECONDS
        debounce = settings.redirect_debounce_seconds if settings else 0.3

        store = MembershipStore(auth, repository, timeout=timeout)
        navigator = navigator or InMemoryNavigator(Route.LOGIN)
        return cls(
            store=store,
            bootstrapper=SessionBootstrapper(store, auth),
            router=SmartRouter(store, navigator, debounce_seconds=debounce),
            navigator=navigator,
        )

    async def start(self) -> None:
        """Start routing, then bootstrap; the router holds off until initialized."""
        self.router.start()
        await self.bootstrapper.start()

    async def settle(self) -> None:
        """Wait for queued auth events to be applied."""
        await self.bootstrapper.drain()

    def stop(self) -> None:
        self.bootstrapper.stop()
        self.router.stop()
