"""Merge ledger records with local annotations into display-ready views.

Display text follows a fixed trust order per skill field:

1. annotation text written by this machine for its own participant,
2. text decoded from the fingerprint, for ledger eras that packed plain text,
3. the canonical hex rendering of the raw fingerprint.

The last tier always succeeds, so merge() is total and never yields an empty
display string.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable

from skillswap.core.annotations import AnnotationStore
from skillswap.lib import fingerprint as fp
from skillswap.models import (
    DisplaySource,
    Fingerprint,
    MergedView,
    ParticipantRecord,
    normalize_identity,
)

logger = logging.getLogger(__name__)

Decoder = Callable[[Fingerprint], str | Awaitable[str]]


class Reconciler:
    def __init__(self, annotations: AnnotationStore, decode: Decoder | None = None):
        self.annotations = annotations
        self._decode = decode or fp.decode_bytes32_string

    async def merge(self, record: ParticipantRecord) -> MergedView:
        identity = normalize_identity(record.identity)
        entry = self.annotations.get(identity)

        teach_display, teach_source = await self._resolve(
            entry.teach_text if entry else None, record.teach_fingerprint
        )
        learn_display, learn_source = await self._resolve(
            entry.learn_text if entry else None, record.learn_fingerprint
        )

        return MergedView(
            id=record.id,
            identity=identity,
            display_name=record.display_name,
            bio=record.bio,
            contacts=record.contacts,
            teach_fingerprint=record.teach_fingerprint,
            learn_fingerprint=record.learn_fingerprint,
            teach_display=teach_display,
            learn_display=learn_display,
            teach_source=teach_source,
            learn_source=learn_source,
        )

    async def merge_all(self, records) -> list[MergedView]:
        return [await self.merge(record) for record in records]

    async def _resolve(
        self, annotated: str | None, fingerprint: Fingerprint
    ) -> tuple[str, DisplaySource]:
        if annotated and annotated.strip():
            return annotated, DisplaySource.ANNOTATION

        decoded = await self._try_decode(fingerprint)
        if decoded:
            return decoded, DisplaySource.DECODED

        return fp.canonical(fingerprint), DisplaySource.RAW

    async def _try_decode(self, fingerprint: Fingerprint) -> str | None:
        """Decode or None. Every fault here means undecodable, never a merge failure."""
        if not fingerprint:
            return None
        try:
            result = self._decode(fingerprint)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.debug(f"Undecodable fingerprint {fp.canonical(fingerprint)}: {e}")
            return None

        if not isinstance(result, str) or not result.strip():
            return None
        return result
