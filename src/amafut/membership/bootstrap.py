"""Session bootstrapper.

Resolves the current session on startup, loads the full profile into the
store and keeps it fresh as auth events arrive. Only one profile fetch is
in flight at a time. A fetch that completes after `stop()`, after a sign-out
or after the signed-in user changed is discarded.

Usage:
    bootstrapper = SessionBootstrapper(store, auth)
    await bootstrapper.start()
    ...
    bootstrapper.stop()
"""

import asyncio

from amafut.errors import BackendError
from amafut.logging import bind_context, clear_context, get_logger
from amafut.membership.store import MembershipStore, call_backend
from amafut.models import AuthEvent, Session
from amafut.ports import AuthorizationPort, Subscription

logger = get_logger(__name__)

REFRESH_EVENTS = frozenset({AuthEvent.SIGNED_IN, AuthEvent.USER_UPDATED})


class SessionBootstrapper:
    """Populates a MembershipStore from the Authorization Port."""

    def __init__(
        self,
        store: MembershipStore,
        auth: AuthorizationPort,
        *,
        timeout: float | None = None,
    ):
        self._store = store
        self._auth = auth
        self._timeout = timeout if timeout is not None else store.timeout
        self._mounted = False
        self._in_flight = False
        self._subscription: Subscription | None = None
        self._last_user_id: str | None = None
        # Bumped on sign-out and user change; fetches from an older epoch are stale
        self._epoch = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    @property
    def is_fetching(self) -> bool:
        return self._in_flight

    async def start(self) -> None:
        """Subscribe to auth events and run the initial bootstrap."""
        if self._mounted:
            return
        self._mounted = True
        self._subscription = self._auth.on_auth_state_change(self._on_auth_state_change)
        await self.bootstrap()

    def stop(self) -> None:
        """Unsubscribe. Fetches still in flight will not touch the store."""
        self._mounted = False
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def drain(self) -> None:
        """Wait for auth events that are still being handled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def bootstrap(self) -> bool:
        """Resolve the session once and apply its profile.

        Returns:
            False if skipped because another fetch was already in flight
        """
        if self._in_flight:
            logger.debug("bootstrap_skipped_in_flight")
            return False

        self._in_flight = True
        epoch = self._epoch
        try:
            session = await call_backend("get_session", self._auth.get_session(), self._timeout)
            if session is not None:
                await self._load_profile(session.user_id, epoch)
        except BackendError as e:
            logger.error("bootstrap_failed", error=str(e))
        finally:
            self._in_flight = False
            if self._mounted:
                self._store.mark_initialized()
        return True

    def _on_auth_state_change(self, event: AuthEvent | str, session: Session | None) -> None:
        if not self._mounted:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("auth_event_without_loop", auth_event=str(event))
            return
        task = loop.create_task(self.handle_auth_event(event, session))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def handle_auth_event(self, event: AuthEvent | str, session: Session | None) -> None:
        """Apply one auth event to the store."""
        if not self._mounted:
            return

        try:
            kind: AuthEvent | None = AuthEvent(str(event))
        except ValueError:
            kind = None
        logger.debug("auth_event", auth_event=str(event), has_session=session is not None)

        if kind == AuthEvent.SIGNED_OUT:
            self._epoch += 1
            self._store.reset()
            self._store.mark_initialized()
            self._last_user_id = None
            clear_context()
            return

        if kind in REFRESH_EVENTS and session is not None:
            await self._refresh(session.user_id)
            return

        self._store.mark_initialized()

    async def _refresh(self, user_id: str) -> None:
        if self._in_flight:
            logger.debug("profile_refresh_skipped_in_flight", user_id=user_id)
            return

        if user_id != self._last_user_id:
            # A different user: hold routing until their profile is in
            self._epoch += 1
            self._store.mark_initialized(False)

        self._in_flight = True
        epoch = self._epoch
        try:
            await self._load_profile(user_id, epoch)
        except BackendError as e:
            logger.error("profile_refresh_failed", user_id=user_id, error=str(e))
        finally:
            self._in_flight = False
            if self._mounted:
                self._store.mark_initialized()

    async def _load_profile(self, user_id: str, epoch: int) -> None:
        profile = await call_backend(
            "get_full_profile", self._auth.get_full_profile(user_id), self._timeout
        )
        if not self._mounted:
            logger.debug("profile_discarded_after_stop", user_id=user_id)
            return
        if epoch != self._epoch:
            logger.debug("profile_discarded_stale", user_id=user_id)
            return
        if profile is None:
            logger.warning("profile_missing", user_id=user_id)
            return

        self._store.apply_profile(profile)
        self._last_user_id = user_id
        bind_context(user_id=user_id)
        logger.info(
            "profile_loaded",
            team_id=profile.team_id,
            role=profile.role.value,
            status=profile.status.value,
        )
