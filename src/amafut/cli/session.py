"""CLI session handling - one membership runtime per command.

The Supabase session lives in ~/.amafut/session.json and the last screen the
router settled on in ~/.amafut/route, so consecutive commands behave like
one continuous app session.
"""

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

from amafut.config import Settings, get_settings
from amafut.dao import FileSessionStorage, create_backend
from amafut.logging import get_logger
from amafut.membership import InMemoryNavigator, MembershipRuntime, Route

logger = get_logger(__name__)

T = TypeVar("T")

SESSION_FILE = "session.json"
ROUTE_FILE = "route"


def _route_file(settings: Settings) -> Path:
    return settings.session_dir / ROUTE_FILE


def load_route(settings: Settings) -> str:
    """Last screen the router settled on, or the login screen."""
    path = _route_file(settings)
    if not path.exists():
        return Route.LOGIN.value
    return path.read_text().strip() or Route.LOGIN.value


def save_route(settings: Settings, route: str) -> None:
    path = _route_file(settings)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(route)


def clear_session(settings: Settings) -> None:
    """Forget the stored session and route."""
    FileSessionStorage(settings.session_dir / SESSION_FILE).clear()
    route = _route_file(settings)
    if route.exists():
        route.unlink()


async def open_runtime(settings: Settings) -> MembershipRuntime:
    """Connect to the backend and bootstrap the stored session."""
    storage = FileSessionStorage(settings.session_dir / SESSION_FILE)
    auth, repository = await create_backend(settings, storage)
    runtime = MembershipRuntime.create(
        auth,
        repository,
        settings=settings,
        navigator=InMemoryNavigator(load_route(settings)),
    )
    await runtime.start()
    return runtime


async def run(
    operation: Callable[[MembershipRuntime], Awaitable[T]],
    settings: Settings | None = None,
) -> tuple[MembershipRuntime, T]:
    """Run one operation against a freshly bootstrapped runtime.

    Returns:
        The runtime (for printing its final snapshot) and the operation's result
    """
    settings = settings or get_settings()
    runtime = await open_runtime(settings)
    try:
        result = await operation(runtime)
        await runtime.settle()
        return runtime, result
    finally:
        runtime.stop()
        save_route(settings, runtime.navigator.current_path)
        logger.debug("cli_route_saved", route=runtime.navigator.current_path)
