"""In-process ledger with the same contract as the on-chain SkillSwap registry.

Used to drive the engine in tests and as the base of the snapshot source.
It assigns ids, fingerprints skills, keeps persisted matches and emits
change notifications to subscribers.
"""

import asyncio
import itertools
import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import replace

from skillswap.core import matching
from skillswap.core.source import NotificationHandler
from skillswap.errors import NotFound, RemoteUnavailable, ValidationError
from skillswap.lib import fingerprint as fp
from skillswap.models import (
    ChangeKind,
    ChangeNotification,
    ContactChannels,
    Fingerprint,
    ParticipantRecord,
    normalize_identity,
)

logger = logging.getLogger(__name__)


class InMemoryRecordSource:
    def __init__(self, packed: bool = True, latency: float = 0.0):
        self.packed = packed
        self.latency = latency
        self.available = True
        self.calls: Counter[str] = Counter()

        self._records: dict[int, ParticipantRecord] = {}
        self._by_identity: dict[str, int] = {}
        self._matches: dict[int, list[int]] = {}
        self._listeners: dict[int, NotificationHandler] = {}
        self._handles = itertools.count(1)
        self._ids = itertools.count(1)

    # Reads

    async def read_all(self) -> list[ParticipantRecord]:
        await self._io("read_all")
        return list(self._records.values())

    async def read_by_id(self, participant_id: int) -> ParticipantRecord:
        await self._io("read_by_id")
        record = self._records.get(participant_id)
        if record is None:
            raise NotFound(f"No participant with id {participant_id}")
        return record

    async def read_by_identity(self, identity: str) -> ParticipantRecord:
        await self._io("read_by_identity")
        participant_id = self._by_identity.get(normalize_identity(identity))
        if participant_id is None:
            raise NotFound(f"No participant with identity {normalize_identity(identity)}")
        return self._records[participant_id]

    async def read_matches(self, participant_id: int) -> list[int]:
        await self._io("read_matches")
        if participant_id not in self._records:
            raise NotFound(f"No participant with id {participant_id}")
        return list(self._matches.get(participant_id, []))

    async def decode(self, fingerprint: Fingerprint) -> str:
        return fp.decode_bytes32_string(fingerprint)

    # Notifications

    def subscribe(self, handler: NotificationHandler) -> int:
        handle = next(self._handles)
        self._listeners[handle] = handler
        return handle

    def unsubscribe(self, handle: int) -> None:
        self._listeners.pop(handle, None)

    def emit(self, notification: ChangeNotification) -> None:
        for handler in list(self._listeners.values()):
            handler(notification)

    # Writes

    def fingerprint(self, text: str) -> str:
        return fp.fingerprint_text(text, packed=self.packed)

    async def register(
        self,
        identity: str,
        name: str,
        teach: str,
        learn: str,
        contacts: ContactChannels,
        bio: str = "",
    ) -> ParticipantRecord:
        await self._io("register")
        identity = normalize_identity(identity)
        if identity in self._by_identity:
            raise ValidationError("Already registered")

        teach_fp, learn_fp = self.fingerprint(teach), self.fingerprint(learn)
        if teach_fp == learn_fp:
            raise ValidationError("Teach and learn skills must differ")

        record = ParticipantRecord(
            id=next(self._ids),
            identity=identity,
            display_name=name,
            teach_fingerprint=teach_fp,
            learn_fingerprint=learn_fp,
            bio=bio,
            contacts=contacts,
        )
        self._store(record)
        self.emit(ChangeNotification(ChangeKind.REGISTERED, identity, (record.id,)))
        return record

    async def update_profile(
        self,
        identity: str,
        bio: str | None = None,
        teach: str | None = None,
        learn: str | None = None,
        contacts: ContactChannels | None = None,
    ) -> ParticipantRecord:
        await self._io("update_profile")
        identity = normalize_identity(identity)
        participant_id = self._by_identity.get(identity)
        if participant_id is None:
            raise NotFound(f"No participant with identity {identity}")

        current = self._records[participant_id]
        teach_fp = self.fingerprint(teach) if teach else current.teach_fingerprint
        learn_fp = self.fingerprint(learn) if learn else current.learn_fingerprint
        if teach_fp == learn_fp:
            raise ValidationError("Teach and learn skills must differ")

        record = ParticipantRecord(
            id=current.id,
            identity=current.identity,
            display_name=current.display_name,
            teach_fingerprint=teach_fp,
            learn_fingerprint=learn_fp,
            bio=current.bio if bio is None else bio,
            contacts=contacts or current.contacts,
        )
        self._records[record.id] = record
        self.emit(ChangeNotification(ChangeKind.UPDATED, identity, (record.id,)))
        return record

    async def find_matches(self, participant_id: int) -> list[int]:
        """Compute and persist matches for participant_id, then emit MATCHED."""
        await self._io("find_matches")
        me = self._records.get(participant_id)
        if me is None:
            raise NotFound(f"No participant with id {participant_id}")

        matched = [
            other.id for other in self._records.values() if matching.is_complementary(me, other)
        ]
        self._matches[participant_id] = matched
        self.emit(ChangeNotification(ChangeKind.MATCHED, me.identity, tuple(matched)))
        return matched

    def seed(self, records: Iterable[ParticipantRecord], matches: dict[int, list[int]] | None = None):
        """Load records as-is, bypassing the write checks and notifications."""
        for record in records:
            self._store(replace(record, identity=normalize_identity(record.identity)))
        for participant_id, matched in (matches or {}).items():
            self._matches[int(participant_id)] = [int(i) for i in matched]
        if self._records:
            self._ids = itertools.count(max(self._records) + 1)

    def _store(self, record: ParticipantRecord) -> None:
        self._records[record.id] = record
        self._by_identity[record.identity] = record.id

    async def _io(self, operation: str) -> None:
        self.calls[operation] += 1
        await asyncio.sleep(self.latency)
        if not self.available:
            logger.debug(f"{operation} refused: source offline")
            raise RemoteUnavailable(f"{operation}: record source unavailable")
