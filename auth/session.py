"""
auth/session.py -- The session store: single source of truth for who is
logged in, with what credential, and whether that is still being determined.

State machine (SessionStatus):

    INITIALIZING --start()--> UNAUTHENTICATED          (no stored credential)
                 --start()--> RESOLVING                (stored credential found)
    RESOLVING    --resolved--> AUTHENTICATED
                 --failed-->   UNAUTHENTICATED + error (credential discarded)
    any          --login(c)--> RESOLVING
    any          --logout()--> UNAUTHENTICATED
    any          --invalidate()--> INVALID --(same call)--> UNAUTHENTICATED

Concurrency model:
  The store lives on one asyncio event loop. Identity resolution is a
  blocking HTTP call, so it runs in a worker thread via asyncio.to_thread and
  the result is applied back on the loop. Every resolution remembers the
  credential it was started for; if the store has moved on (a newer login, a
  logout) by the time it completes, the result is dropped. That check is what
  stops a slow resolution for an old credential from overwriting a newer one.

Failure policy:
  Public operations never raise. Resolution failures land in Session.error.
  StorageError from the durable store switches the store to memory-only for
  the rest of the process lifetime; the session keeps working but will not
  survive a restart.

Layer rule: no imports from gateway/. Imports from core/ and storage/ are
allowed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from auth.identity import resolve_identity
from core.config import Settings, get_settings
from core.errors import NexusError, StorageError
from core.models import Identity, Session, SessionStatus
from storage.store import ClientStorage

logger = logging.getLogger("nexus.session")

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please log in again."
EMPTY_CREDENTIAL_MESSAGE = "Login did not produce a credential."
NO_EVENT_LOOP_MESSAGE = "Login needs a running event loop to resolve the identity."

Listener = Callable[[Session], None]
Resolver = Callable[[str], Identity]


class SessionStore:
    """Owns the credential, the resolved identity, and the loading/error state.

    Usage:
        store = SessionStore.from_settings()
        store.subscribe(lambda s: print(s.status))
        store.start()
        session = await store.wait_until_settled()
        store.login(token)            # -> RESOLVING, then AUTHENTICATED or UNAUTHENTICATED
        store.logout()

    start() and login() schedule work on the running event loop. Outside a
    loop, start() leaves the store INITIALIZING and login() settles
    UNAUTHENTICATED with an error; neither touches storage.
    """

    def __init__(
        self,
        storage: ClientStorage | None = None,
        resolver: Resolver | None = None,
        credential_key: str | None = None,
    ) -> None:
        self._storage = storage
        self._resolver: Resolver = resolver or resolve_identity
        self._key = credential_key or get_settings().credential_key
        self._state = Session(status=SessionStatus.INITIALIZING)
        self._listeners: list[Listener] = []
        self._pending: asyncio.Task | None = None
        # Strong references so superseded resolutions are not garbage collected mid-flight.
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings | None = None, resolver: Resolver | None = None) -> SessionStore:
        """Build a store wired to durable storage unless persistence is disabled or unavailable."""
        settings = settings or get_settings()
        storage: ClientStorage | None = None
        if settings.persist_credential:
            try:
                storage = ClientStorage(settings.storage_url)
            except StorageError as e:
                logger.warning("Client storage unavailable, session will not survive a restart: %s", e)
        return cls(storage=storage, resolver=resolver, credential_key=settings.credential_key)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get_snapshot(self) -> Session:
        return self._state

    @property
    def persistent(self) -> bool:
        """True while the credential is being written to durable storage."""
        return self._storage is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener for every transition. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait_until_settled(self) -> Session:
        """Wait until no identity resolution is pending and return the snapshot.

        Returns immediately when start() has not been called yet.
        """
        while not self._state.is_settled:
            task = self._pending
            if task is None or task.done():
                break
            await asyncio.wait({task})
        return self._state

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Leave INITIALIZING: restore a stored credential or settle unauthenticated."""
        if self._state.status is not SessionStatus.INITIALIZING:
            return
        loop = _running_loop()
        if loop is None:
            logger.error("start() called outside a running event loop, staying INITIALIZING")
            return
        credential = self._read_credential()
        if credential:
            logger.info("Stored credential found, resolving identity")
            self._begin_resolution(loop, credential)
        else:
            self._set(Session(status=SessionStatus.UNAUTHENTICATED))

    def login(self, credential: str) -> None:
        """Adopt credential, persist it, and start resolving its identity.

        Supersedes any resolution still in flight. Never raises.
        """
        if not credential:
            logger.warning("login() called without a credential")
            self._discard_credential()
            self._set(Session(status=SessionStatus.UNAUTHENTICATED, error=EMPTY_CREDENTIAL_MESSAGE))
            return
        loop = _running_loop()
        if loop is None:
            logger.error("login() called outside a running event loop")
            self._set(Session(status=SessionStatus.UNAUTHENTICATED, error=NO_EVENT_LOOP_MESSAGE))
            return
        self._write_credential(credential)
        self._begin_resolution(loop, credential)

    def logout(self) -> None:
        """Drop the credential and identity. Idempotent."""
        self._discard_credential()
        cleared = Session(status=SessionStatus.UNAUTHENTICATED)
        if self._state != cleared:
            logger.info("Session logged out")
            self._set(cleared)

    def invalidate(self, reason: str = "") -> None:
        """Force-terminate the session after the API rejected its credential.

        INVALID is published to listeners and replaced by UNAUTHENTICATED
        before this call returns.
        """
        logger.warning("Session invalidated%s", f": {reason}" if reason else "")
        self._set(Session(status=SessionStatus.INVALID))
        self.logout()

    def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._storage is not None:
            self._storage.close()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _begin_resolution(self, loop: asyncio.AbstractEventLoop, credential: str) -> None:
        self._set(Session(status=SessionStatus.RESOLVING, credential=credential))
        task = loop.create_task(self._resolve(credential))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._pending = task

    def _is_current(self, credential: str) -> bool:
        return self._state.status is SessionStatus.RESOLVING and self._state.credential == credential

    async def _resolve(self, credential: str) -> None:
        try:
            identity = await asyncio.to_thread(self._resolver, credential)
        except Exception as e:
            if not self._is_current(credential):
                logger.debug("Discarding failed resolution for a superseded credential")
                return
            if isinstance(e, NexusError):
                logger.warning("Identity resolution failed: %s", e)
            else:
                logger.exception("Unexpected error during identity resolution")
            self._discard_credential()
            self._set(Session(status=SessionStatus.UNAUTHENTICATED, error=SESSION_EXPIRED_MESSAGE))
            return

        if not self._is_current(credential):
            logger.debug("Discarding resolution for a superseded credential")
            return
        logger.info("Session authenticated as id=%d", identity.id)
        self._set(Session(status=SessionStatus.AUTHENTICATED, credential=credential, identity=identity))

    # ------------------------------------------------------------------
    # Durable storage -- StorageError degrades to memory-only
    # ------------------------------------------------------------------

    def _read_credential(self) -> str | None:
        if self._storage is None:
            return None
        try:
            return self._storage.get(self._key)
        except StorageError as e:
            self._degrade(e)
            return None

    def _write_credential(self, credential: str) -> None:
        if self._storage is None:
            return
        try:
            self._storage.set(self._key, credential)
        except StorageError as e:
            self._degrade(e)

    def _discard_credential(self) -> None:
        if self._storage is None:
            return
        try:
            self._storage.remove(self._key)
        except StorageError as e:
            self._degrade(e)

    def _degrade(self, error: StorageError) -> None:
        logger.warning("Client storage failed, keeping the session in memory only: %s", error)
        storage, self._storage = self._storage, None
        if storage is not None:
            storage.close()

    # ------------------------------------------------------------------
    # Notification
    # ------------------------------------------------------------------

    def _set(self, state: Session) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session listener failed")


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
