import asyncio
import threading

import pytest

from skillswap import events
from skillswap.core.coalescer import ChangeCoalescer
from skillswap.errors import RemoteUnavailable
from skillswap.models import ChangeKind, ChangeNotification


class Recorder:
    """Counts refresh calls; the first table refresh can be held open with a gate."""

    def __init__(self, gated: bool = False):
        self.table = 0
        self.own = 0
        self.matches = []
        self.started = asyncio.Event()
        self.gate = asyncio.Event()
        if not gated:
            self.gate.set()

    async def refresh_table(self):
        self.table += 1
        self.started.set()
        if self.table == 1:
            await self.gate.wait()

    async def refresh_self(self):
        self.own += 1

    async def refresh_matches(self, matched_ids):
        self.matches.append(matched_ids)

    def coalescer(self, **kwargs) -> ChangeCoalescer:
        return ChangeCoalescer(
            self.refresh_table,
            refresh_self=self.refresh_self,
            refresh_matches=self.refresh_matches,
            local_identity="0xA",
            **kwargs,
        )


def _note(kind: ChangeKind, identity: str, *ids: int) -> ChangeNotification:
    return ChangeNotification(kind, identity, ids)


@pytest.mark.asyncio
async def test_burst_collapses_to_one_pass():
    recorder = Recorder()
    coalescer = recorder.coalescer()

    for i in range(10):
        coalescer.notify(_note(ChangeKind.UPDATED, f"0x{i}"))
    await coalescer.drain()

    assert coalescer.notifications_seen == 10
    assert coalescer.passes_started == 1
    assert recorder.table == 1
    assert recorder.own == 0


@pytest.mark.asyncio
async def test_matched_during_pass_causes_exactly_one_more():
    recorder = Recorder(gated=True)
    coalescer = recorder.coalescer()

    coalescer.notify(_note(ChangeKind.REGISTERED, "0xb", 2))
    await recorder.started.wait()
    assert coalescer.in_flight

    coalescer.notify(_note(ChangeKind.MATCHED, "0xa", 2, 3))
    coalescer.notify(_note(ChangeKind.UPDATED, "0xc", 4))
    recorder.gate.set()
    await coalescer.drain()

    assert coalescer.passes_started == 2
    assert recorder.table == 2
    assert recorder.own == 1
    assert recorder.matches == [(2, 3)]
    assert not coalescer.pending


@pytest.mark.asyncio
async def test_matched_for_someone_else_refreshes_table_only():
    recorder = Recorder()
    coalescer = recorder.coalescer()

    coalescer.notify(_note(ChangeKind.MATCHED, "0xb", 1))
    await coalescer.drain()

    assert recorder.table == 1
    assert recorder.matches == []


@pytest.mark.asyncio
async def test_own_notification_refreshes_own_row():
    recorder = Recorder()
    coalescer = recorder.coalescer()

    coalescer.notify(_note(ChangeKind.UPDATED, "0xA"))
    await coalescer.drain()

    assert recorder.own == 1


@pytest.mark.asyncio
async def test_failed_pass_is_reported():
    failures = []
    events.on(events.REFRESH_FAILED)(failures.append)

    async def refresh():
        raise RemoteUnavailable("rpc down")

    coalescer = ChangeCoalescer(refresh)
    coalescer.request()
    await coalescer.drain()

    assert coalescer.passes_failed == 1
    assert failures[0].data["error"] == "rpc down"
    assert not coalescer.in_flight


@pytest.mark.asyncio
async def test_unexpected_error_does_not_kill_the_pump():
    calls = []

    async def refresh():
        calls.append(1)
        if len(calls) == 1:
            raise ValueError("bad payload")

    coalescer = ChangeCoalescer(refresh)
    coalescer.request()
    await coalescer.drain()
    coalescer.request()
    await coalescer.drain()

    assert len(calls) == 2
    assert coalescer.passes_failed == 1


@pytest.mark.asyncio
async def test_failed_pass_is_retried():
    calls = []

    async def refresh():
        calls.append(1)
        if len(calls) == 1:
            raise RemoteUnavailable("rpc down")

    coalescer = ChangeCoalescer(refresh, retry_delay=0.01)
    coalescer.request()
    await coalescer.drain()
    await asyncio.sleep(0.05)
    await coalescer.drain()

    assert len(calls) == 2
    assert coalescer.passes_failed == 1
    await coalescer.close()


@pytest.mark.asyncio
async def test_closed_coalescer_ignores_notifications():
    recorder = Recorder()
    coalescer = recorder.coalescer()
    await coalescer.close()

    coalescer.notify(_note(ChangeKind.UPDATED, "0xb"))

    assert coalescer.notifications_seen == 0
    assert not coalescer.in_flight
    assert recorder.table == 0


@pytest.mark.asyncio
async def test_notifications_from_another_thread():
    recorder = Recorder()
    coalescer = recorder.coalescer()
    coalescer.attach()

    worker = threading.Thread(
        target=coalescer.notify_threadsafe, args=(_note(ChangeKind.UPDATED, "0xb"),)
    )
    worker.start()
    worker.join()
    await asyncio.sleep(0)
    await coalescer.drain()

    assert coalescer.notifications_seen == 1
    assert recorder.table == 1


def test_threadsafe_requires_attach():
    coalescer = ChangeCoalescer(Recorder().refresh_table)

    with pytest.raises(RuntimeError, match="not attached"):
        coalescer.notify_threadsafe(_note(ChangeKind.UPDATED, "0xb"))


@pytest.mark.asyncio
async def test_retry_does_not_replay_outdated_match_ids():
    table_calls = []
    matches = []
    started = asyncio.Event()
    gate = asyncio.Event()

    async def refresh_table():
        table_calls.append(1)
        if len(table_calls) == 1:
            raise RemoteUnavailable("rpc down")
        if len(table_calls) == 2:
            started.set()
            await gate.wait()

    async def refresh_matches(matched_ids):
        matches.append(matched_ids)

    coalescer = ChangeCoalescer(
        refresh_table,
        refresh_matches=refresh_matches,
        local_identity="0xa",
        retry_delay=0.02,
    )
    coalescer.notify(_note(ChangeKind.MATCHED, "0xa", 1))
    await coalescer.drain()
    assert coalescer.passes_failed == 1

    coalescer.notify(_note(ChangeKind.MATCHED, "0xa", 2))
    await started.wait()
    await asyncio.sleep(0.05)
    gate.set()
    await coalescer.drain()

    assert (1,) not in matches
    assert matches[0] == (2,)
    assert matches[-1] is None
    await coalescer.close()
