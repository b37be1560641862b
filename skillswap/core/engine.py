"""Engine: the surface the presentation layer talks to.

Wires the pipeline source -> reconciler -> view cache -> matcher, with the
coalescer as its only feedback edge, and owns the local participant's
register/update flows (the only writers of the annotation store).
"""

import asyncio
import logging

from skillswap import config, events
from skillswap.core import matching, source as sources, validation
from skillswap.core.annotations import AnnotationStore
from skillswap.core.coalescer import ChangeCoalescer
from skillswap.core.reconciler import Reconciler
from skillswap.core.source import RemoteRecordSource, WritableRecordSource
from skillswap.core.views import ViewCache
from skillswap.errors import NotFound, RemoteUnavailable, SkillSwapError, ValidationError
from skillswap.models import (
    AnnotationEntry,
    MatchResult,
    MergedView,
    ParticipantRecord,
    normalize_identity,
)

logger = logging.getLogger(__name__)


class Engine:
    def __init__(
        self,
        source: RemoteRecordSource | WritableRecordSource,
        annotations: AnnotationStore | None = None,
        local_identity: str | None = None,
        coalesce_window: float = 0.0,
        retry_delay: float | None = None,
    ):
        self.source = source
        self.annotations = annotations or AnnotationStore()
        self.local_identity = normalize_identity(local_identity) or None
        self.reconciler = Reconciler(self.annotations, decode=source.decode)
        self.views = ViewCache()
        self.coalescer = ChangeCoalescer(
            refresh_table=self.refresh,
            refresh_self=self.refresh_self,
            refresh_matches=self.refresh_matches,
            local_identity=self.local_identity,
            window=coalesce_window,
            retry_delay=retry_delay,
        )
        self._subscription = None
        self._self_matches: list[MatchResult] = []

    @classmethod
    def from_config(cls, source: RemoteRecordSource, local_identity: str | None = None):
        cfg = config.load_config()
        return cls(
            source,
            annotations=AnnotationStore(config.annotations_db()),
            local_identity=local_identity or cfg.get("local_identity"),
            coalesce_window=cfg.get("coalesce_window") or 0.0,
            retry_delay=cfg.get("retry_delay"),
        )

    async def start(self) -> None:
        """Subscribe to change notifications and load the initial table."""
        self.coalescer.attach()
        if self._subscription is None:
            self._subscription = self.source.subscribe(self.coalescer.notify)
        self.coalescer.request(table=True, own=self.local_identity is not None)
        await self.coalescer.drain()

    async def stop(self) -> None:
        if self._subscription is not None:
            self.source.unsubscribe(self._subscription)
            self._subscription = None
        await self.coalescer.close()
        self.annotations.close()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    # Presentation surface

    @property
    def is_stale(self) -> bool:
        return self.views.is_stale

    @property
    def last_error(self) -> Exception | None:
        return self.views.last_error

    @property
    def self_view(self) -> MergedView | None:
        if self.local_identity is None:
            return None
        return self.views.get_by_identity(self.local_identity)

    @property
    def self_matches(self) -> list[MatchResult]:
        return list(self._self_matches)

    def get_merged_view(self, participant_id: int) -> MergedView:
        return self.views.get(participant_id)

    def list_merged_views(self) -> list[MergedView]:
        return self.views.views()

    async def find_matches_for(self, participant_id: int) -> list[MatchResult]:
        """Preview matches by evaluating the predicate over the cached table.

        Raises:
            NotFound: participant_id has no record.
        """
        if self.views.applied_sequence == 0:
            await self.refresh()
        self_view = await self._view_for(participant_id)
        return await matching.find_matches(self_view, self.views.views())

    async def persisted_matches_for(self, participant_id: int) -> list[MatchResult]:
        """Matches the ledger has persisted for participant_id, in ledger order."""
        await self._view_for(participant_id)
        matched_ids = await sources.read_matches(self.source, participant_id)
        return await matching.resolve_matches(participant_id, matched_ids, self._resolve_id)

    def record_own_annotation(
        self, identity: str, teach_text: str | None = None, learn_text: str | None = None
    ) -> None:
        """Remember plaintext for the local participant's own skills.

        Call only after the participant's register/update succeeded remotely.
        """
        key = normalize_identity(identity)
        if not key:
            raise ValidationError("Identity is required")
        if self.local_identity is not None and key != self.local_identity:
            raise ValidationError(f"Annotations are only kept for {self.local_identity}")

        entry = AnnotationEntry(
            teach_text=(teach_text or "").strip() or None,
            learn_text=(learn_text or "").strip() or None,
        )
        self.annotations.put(key, entry)

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self.coalescer.request(table=False, own=key == self.local_identity)

    # Local participant write flows

    async def register(
        self,
        name: str,
        teach: str,
        learn: str,
        twitter: str = "",
        farcaster: str = "",
        email: str = "",
        bio: str = "",
    ) -> MergedView:
        identity = self._require_local_identity()
        reg = validation.validate_registration(name, teach, learn, twitter, farcaster, email, bio)
        writer = self._writer("register")

        record = await writer(identity, reg.name, reg.teach, reg.learn, reg.contacts, reg.bio)
        logger.info(f"Registered {identity} as participant {record.id}")
        self.record_own_annotation(identity, reg.teach, reg.learn)
        return await self._install(record)

    async def update_profile(
        self,
        bio: str | None = None,
        teach: str | None = None,
        learn: str | None = None,
        twitter: str | None = None,
        farcaster: str | None = None,
        email: str | None = None,
    ) -> MergedView:
        identity = self._require_local_identity()
        try:
            current = await sources.read_by_identity(self.source, identity)
        except NotFound as e:
            raise ValidationError("Register before updating your profile") from e

        teach = (teach or "").strip() or None
        learn = (learn or "").strip() or None
        self._validate_skill_update(identity, teach, learn)

        contacts = None
        if any(value is not None for value in (twitter, farcaster, email)):
            contacts = validation.clean_contacts(
                current.contacts.twitter if twitter is None else twitter,
                current.contacts.farcaster if farcaster is None else farcaster,
                current.contacts.email if email is None else email,
            )
            validation.validate_contacts(contacts)

        writer = self._writer("update_profile")
        record = await writer(
            identity,
            bio=bio.strip() if bio is not None else None,
            teach=teach,
            learn=learn,
            contacts=contacts,
        )
        if teach or learn:
            self.record_own_annotation(identity, teach, learn)
        return await self._install(record)

    async def compute_matches(self) -> list[MatchResult]:
        """Have the ledger compute and persist the local participant's matches.

        Returns the persisted matches, resolved in ledger order.
        """
        identity = self._require_local_identity()
        try:
            current = await sources.read_by_identity(self.source, identity)
        except NotFound as e:
            raise ValidationError("Register before finding matches") from e

        writer = self._writer("find_matches")
        matched_ids = await writer(current.id)
        logger.info(f"Ledger recorded {len(matched_ids)} matches for participant {current.id}")

        if self.self_view is None:
            await self.refresh_self()
        return await self.refresh_matches(matched_ids)

    # Refresh passes, driven by the coalescer

    async def refresh(self) -> bool:
        """Rebuild the table from read_all. Returns False if a newer pass won."""
        seq = self.views.next_sequence()
        try:
            records = await self.source.read_all()
        except RemoteUnavailable as e:
            self.views.mark_stale(e, seq)
            raise

        merged = await self.reconciler.merge_all(records)
        applied = self.views.apply_table(seq, merged)
        if applied:
            events.emit(events.TABLE_REFRESHED, self.local_identity, sequence=seq, count=len(merged))
        return applied

    async def refresh_self(self) -> bool:
        if self.local_identity is None:
            return False

        seq = self.views.next_sequence()
        try:
            record = await sources.read_by_identity(self.source, self.local_identity)
        except NotFound:
            self._self_matches = []
            return self.views.remove_row(seq, self.local_identity)
        except RemoteUnavailable as e:
            self.views.mark_stale(e, seq)
            raise

        applied = self.views.apply_row(seq, await self.reconciler.merge(record))
        if applied:
            events.emit(events.SELF_REFRESHED, self.local_identity, sequence=seq)
        return applied

    async def refresh_matches(self, matched_ids=None) -> list[MatchResult]:
        """Reload the local participant's persisted matches."""
        self_view = self.self_view
        if self_view is None:
            self._self_matches = []
            return []

        if matched_ids is None:
            matched_ids = await sources.read_matches(self.source, self_view.id)
        results = await matching.resolve_matches(self_view.id, matched_ids, self._resolve_id)
        self._self_matches = results
        events.emit(events.MATCHES_REFRESHED, self.local_identity, count=len(results))
        return results

    # Internals

    async def _view_for(self, participant_id: int) -> MergedView:
        try:
            return self.views.get(participant_id)
        except NotFound:
            record = await self.source.read_by_id(participant_id)
            return await self.reconciler.merge(record)

    async def _resolve_id(self, participant_id: int) -> MergedView:
        record = await self.source.read_by_id(participant_id)
        return await self.reconciler.merge(record)

    async def _install(self, record: ParticipantRecord) -> MergedView:
        seq = self.views.next_sequence()
        view = await self.reconciler.merge(record)
        self.views.apply_row(seq, view)
        self.coalescer.request(table=True)
        return view

    def _require_local_identity(self) -> str:
        if self.local_identity is None:
            raise ValidationError("No local identity configured")
        return self.local_identity

    def _writer(self, operation: str):
        writer = getattr(self.source, operation, None)
        if writer is None:
            raise SkillSwapError(f"Record source does not support {operation}")
        return writer

    def _validate_skill_update(self, identity: str, teach: str | None, learn: str | None) -> None:
        if teach and learn:
            validation.validate_skill_pair(teach, learn)
            return
        entry = self.annotations.get(identity)
        if teach and entry and entry.learn_text:
            validation.validate_skill_pair(teach, entry.learn_text)
        if learn and entry and entry.teach_text:
            validation.validate_skill_pair(entry.teach_text, learn)


__all__ = ["Engine"]
