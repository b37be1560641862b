"""Complementary-skill matching.

Two participants match when each teaches what the other wants to learn.
The predicate only ever looks at fingerprints: display text may come from an
unauthenticated annotation and must not influence who matches whom.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence

from skillswap import events
from skillswap.errors import InvariantViolation, NotFound
from skillswap.lib import fingerprint as fp
from skillswap.models import MatchResult, MergedView, ParticipantRecord, normalize_identity

logger = logging.getLogger(__name__)

Candidate = ParticipantRecord | MergedView


def check_invariants(participant: Candidate) -> None:
    """Raise InvariantViolation for a record the ledger should have rejected."""
    if fp.canonical(participant.teach_fingerprint) == fp.canonical(participant.learn_fingerprint):
        raise InvariantViolation(
            f"Participant {participant.id} teaches and learns the same skill"
        )


def is_complementary(a: Candidate, b: Candidate) -> bool:
    """a and b are distinct participants with mirrored fingerprints."""
    if normalize_identity(a.identity) == normalize_identity(b.identity):
        return False
    return fp.canonical(a.teach_fingerprint) == fp.canonical(
        b.learn_fingerprint
    ) and fp.canonical(a.learn_fingerprint) == fp.canonical(b.teach_fingerprint)


def _report(participant: Candidate, error: InvariantViolation) -> None:
    logger.warning(f"Excluding participant {participant.id} from matching: {error}")
    events.emit(
        events.INVARIANT_VIOLATION,
        normalize_identity(participant.identity),
        participant_id=participant.id,
        error=str(error),
    )


async def find_matches(
    self_view: MergedView,
    candidates: Iterable[Candidate],
    resolve: Callable[[ParticipantRecord], Awaitable[MergedView]] | None = None,
) -> list[MatchResult]:
    """Preview matches for self_view among candidates, in candidate order.

    Records are turned into views with resolve; candidates that are already
    views are used as they are. A self_view that breaks the ledger invariant
    matches nobody.
    """
    try:
        check_invariants(self_view)
    except InvariantViolation as e:
        _report(self_view, e)
        return []

    self_identity = normalize_identity(self_view.identity)
    results: list[MatchResult] = []
    seen: set[int] = set()
    for candidate in candidates:
        if normalize_identity(candidate.identity) == self_identity:
            continue
        try:
            check_invariants(candidate)
        except InvariantViolation as e:
            _report(candidate, e)
            continue

        if candidate.id in seen or not is_complementary(self_view, candidate):
            continue
        seen.add(candidate.id)

        other = candidate
        if not isinstance(candidate, MergedView):
            if resolve is None:
                raise TypeError("resolve is required for ParticipantRecord candidates")
            other = await resolve(candidate)
        results.append(MatchResult(self_id=self_view.id, other_id=candidate.id, other=other))

    return results


async def resolve_matches(
    self_id: int,
    matched_ids: Sequence[int],
    resolve: Callable[[int], Awaitable[MergedView]],
) -> list[MatchResult]:
    """Resolve a persisted match list in its authoritative order.

    The ledger is the source of truth for persisted matches, so nothing is
    re-validated here. Ids that no longer resolve are skipped.
    """
    results: list[MatchResult] = []
    for other_id in matched_ids:
        try:
            other = await resolve(other_id)
        except NotFound:
            logger.info(f"Persisted match {other_id} for {self_id} no longer resolves")
            continue
        results.append(MatchResult(self_id=self_id, other_id=other_id, other=other))
    return results
