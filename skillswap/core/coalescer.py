"""Turn ledger change notifications into refresh passes.

Notifications only mark work as due. A single pump task runs one pass at a
time and, when it finishes, runs again if anything became due meanwhile, so
any burst of notifications costs at most the pass in flight plus one more.
Nothing is dropped: a notification either lands in the pass that has not
started yet or causes the next one.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from skillswap import events
from skillswap.errors import RemoteUnavailable
from skillswap.models import ChangeKind, ChangeNotification, normalize_identity

logger = logging.getLogger(__name__)

Refresh = Callable[[], Awaitable[None]]
MatchRefresh = Callable[[Sequence[int] | None], Awaitable[None]]


class ChangeCoalescer:
    def __init__(
        self,
        refresh_table: Refresh,
        refresh_self: Refresh | None = None,
        refresh_matches: MatchRefresh | None = None,
        local_identity: str | None = None,
        window: float = 0.0,
        retry_delay: float | None = None,
    ):
        self._refresh_table = refresh_table
        self._refresh_self = refresh_self
        self._refresh_matches = refresh_matches
        self.local_identity = normalize_identity(local_identity) or None
        self.window = window
        self.retry_delay = retry_delay

        self._table_due = False
        self._self_due = False
        self._matches_due = False
        self._matched_ids: tuple[int, ...] | None = None

        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task | None = None
        self._retry: asyncio.TimerHandle | None = None
        self._closed = False

        self.notifications_seen = 0
        self.passes_started = 0
        self.passes_failed = 0

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> bool:
        return self._table_due or self._self_due or self._matches_due

    def notify(self, notification: ChangeNotification) -> None:
        """Record a notification. Must run on the event loop thread."""
        if self._closed:
            return
        self.notifications_seen += 1
        identity = normalize_identity(notification.identity)
        is_self = self.local_identity is not None and identity == self.local_identity
        logger.debug(f"{notification.kind.value} for {identity} (self={is_self})")

        matched_ids = None
        if is_self and notification.kind == ChangeKind.MATCHED and notification.affected_ids:
            matched_ids = tuple(notification.affected_ids)

        self.request(
            table=True,
            own=is_self,
            matches=is_self and notification.kind == ChangeKind.MATCHED,
            matched_ids=matched_ids,
        )

    def attach(self) -> None:
        """Bind to the running loop so other threads can hand notifications over."""
        self._loop = asyncio.get_running_loop()

    def notify_threadsafe(self, notification: ChangeNotification) -> None:
        """Hand a notification over from a source callback thread."""
        if self._loop is None:
            raise RuntimeError("Coalescer is not attached to an event loop")
        self._loop.call_soon_threadsafe(self.notify, notification)

    def request(
        self,
        table: bool = True,
        own: bool = False,
        matches: bool = False,
        matched_ids: Sequence[int] | None = None,
    ) -> None:
        """Mark work as due and make sure the pump is running."""
        if self._closed:
            return
        self._table_due = self._table_due or table
        self._self_due = self._self_due or own
        if matches:
            self._matches_due = True
            if matched_ids is not None:
                self._matched_ids = tuple(matched_ids)
        self._ensure_running()

    async def drain(self) -> None:
        """Wait until no pass is in flight or due."""
        while self.in_flight:
            await self._task

    async def close(self) -> None:
        self._closed = True
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None
        await self.drain()

    def _ensure_running(self) -> None:
        if self.in_flight:
            return
        self._loop = asyncio.get_running_loop()
        self._task = self._loop.create_task(self._run())

    async def _run(self) -> None:
        while self.pending:
            # Let notifications already queued on the loop join this pass.
            await asyncio.sleep(self.window)
            table, own, matches, matched_ids = self._take()
            await self._pass(table, own, matches, matched_ids)

    def _take(self) -> tuple[bool, bool, bool, tuple[int, ...] | None]:
        due = (self._table_due, self._self_due, self._matches_due, self._matched_ids)
        self._table_due = self._self_due = self._matches_due = False
        self._matched_ids = None
        return due

    async def _pass(
        self, table: bool, own: bool, matches: bool, matched_ids: tuple[int, ...] | None
    ) -> None:
        self.passes_started += 1
        try:
            if table:
                await self._refresh_table()
            if own and self._refresh_self is not None:
                await self._refresh_self()
            if matches and self._refresh_matches is not None:
                await self._refresh_matches(matched_ids)
        except RemoteUnavailable as e:
            self._failed(e, table, own, matches)
        except Exception as e:
            logger.error(f"Refresh pass failed unexpectedly: {e}", exc_info=True)
            self._failed(e, table, own, matches)
        else:
            if self._retry is not None:
                self._retry.cancel()
                self._retry = None

    def _failed(
        self,
        error: Exception,
        table: bool,
        own: bool,
        matches: bool,
    ) -> None:
        self.passes_failed += 1
        logger.warning(f"Refresh failed, keeping previous views: {error}")
        events.emit(
            events.REFRESH_FAILED,
            self.local_identity,
            error=str(error),
            retry_in=self.retry_delay,
        )

        if self.retry_delay is None or self._closed:
            return
        if self._retry is not None:
            self._retry.cancel()
        # Ids from a failed MATCHED may be outdated by the time the retry fires;
        # without ids the match refresh reads the ledger's current list.
        self._retry = asyncio.get_running_loop().call_later(
            self.retry_delay,
            lambda: self.request(table, own, matches, matched_ids=None),
        )
