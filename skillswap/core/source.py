"""The authoritative ledger as the engine sees it.

The engine only ever talks to a RemoteRecordSource. Implementations raise
NotFound for absent records, RemoteUnavailable for transport failures, and
DecodeFailure from decode().
"""

from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from skillswap.errors import NotFound
from skillswap.models import (
    ChangeNotification,
    ContactChannels,
    Fingerprint,
    ParticipantRecord,
    normalize_identity,
)

NotificationHandler = Callable[[ChangeNotification], None]


@runtime_checkable
class RemoteRecordSource(Protocol):
    async def read_all(self) -> Sequence[ParticipantRecord]: ...

    async def read_by_id(self, participant_id: int) -> ParticipantRecord: ...

    def subscribe(self, handler: NotificationHandler) -> Any: ...

    def unsubscribe(self, handle: Any) -> None: ...

    async def decode(self, fingerprint: Fingerprint) -> str: ...


class WritableRecordSource(RemoteRecordSource, Protocol):
    """Write side, used only for the local participant's own profile."""

    async def register(
        self,
        identity: str,
        name: str,
        teach: str,
        learn: str,
        contacts: ContactChannels,
        bio: str = "",
    ) -> ParticipantRecord: ...

    async def update_profile(
        self,
        identity: str,
        bio: str | None = None,
        teach: str | None = None,
        learn: str | None = None,
        contacts: ContactChannels | None = None,
    ) -> ParticipantRecord: ...

    async def find_matches(self, participant_id: int) -> Sequence[int]: ...


async def read_by_identity(source: RemoteRecordSource, identity: str) -> ParticipantRecord:
    """Look a record up by identity, scanning read_all when the source has no index.

    Raises:
        NotFound: No record carries identity.
    """
    key = normalize_identity(identity)
    lookup = getattr(source, "read_by_identity", None)
    if lookup is not None:
        return await lookup(key)

    for record in await source.read_all():
        if normalize_identity(record.identity) == key:
            return record
    raise NotFound(f"No participant with identity {key}")


async def read_matches(source: RemoteRecordSource, participant_id: int) -> list[int]:
    """Persisted match ids for a participant, empty when the source keeps none."""
    lookup = getattr(source, "read_matches", None)
    if lookup is None:
        return []
    return list(await lookup(participant_id))
