"""Read-only ledger backed by a YAML snapshot file.

Layout::

    participants:
      - id: 1
        identity: "0xAbC..."
        name: Ada
        teach: "0x4775697461720000..."   # bytes32 fingerprint
        learn: "0x5061696e74696e6700..."
        bio: ""
        contacts: {twitter: "", farcaster: "", email: "ada@example.com"}
    matches:
      1: [2]
"""

import logging
from pathlib import Path

import yaml

from skillswap.errors import RemoteUnavailable, SkillSwapError
from skillswap.models import ContactChannels, ParticipantRecord
from skillswap.sources.memory import InMemoryRecordSource

logger = logging.getLogger(__name__)


class SnapshotRecordSource(InMemoryRecordSource):
    def __init__(self, path: Path):
        super().__init__()
        self.path = path

    @classmethod
    def load(cls, path: Path) -> "SnapshotRecordSource":
        """Read the snapshot, raising RemoteUnavailable if it cannot be read."""
        source = cls(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            raise RemoteUnavailable(f"Snapshot not found at {path}") from e
        except (OSError, yaml.YAMLError) as e:
            raise RemoteUnavailable(f"Snapshot unreadable: {e}") from e

        if not isinstance(data, dict):
            raise RemoteUnavailable(f"Snapshot must be a mapping, got {type(data).__name__}")

        records = [_parse_participant(entry) for entry in data.get("participants") or []]
        source.seed(records, data.get("matches") or {})
        logger.info(f"Loaded {len(records)} participants from {path}")
        return source

    async def register(self, *args, **kwargs):
        raise SkillSwapError("Snapshot ledger is read-only")

    async def update_profile(self, *args, **kwargs):
        raise SkillSwapError("Snapshot ledger is read-only")

    async def find_matches(self, participant_id: int) -> list[int]:
        raise SkillSwapError("Snapshot ledger is read-only")


def _hex_scalar(value, width: int) -> str:
    # Unquoted 0x... scalars come back from YAML as ints.
    if isinstance(value, int) and not isinstance(value, bool):
        return f"0x{value:0{width}x}"
    return str(value)


def _parse_participant(entry: dict) -> ParticipantRecord:
    try:
        contacts = entry.get("contacts") or {}
        return ParticipantRecord(
            id=int(entry["id"]),
            identity=_hex_scalar(entry["identity"], 40),
            display_name=str(entry.get("name", "")),
            teach_fingerprint=_hex_scalar(entry["teach"], 64),
            learn_fingerprint=_hex_scalar(entry["learn"], 64),
            bio=str(entry.get("bio") or ""),
            contacts=ContactChannels(
                twitter=str(contacts.get("twitter") or ""),
                farcaster=str(contacts.get("farcaster") or ""),
                email=str(contacts.get("email") or ""),
            ),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise RemoteUnavailable(f"Malformed snapshot participant {entry!r}: {e}") from e


def dump(path: Path, records: list[ParticipantRecord], matches: dict[int, list[int]] | None = None):
    """Write records in the snapshot layout."""
    data = {
        "participants": [
            {
                "id": r.id,
                "identity": r.identity,
                "name": r.display_name,
                "teach": r.teach_fingerprint,
                "learn": r.learn_fingerprint,
                "bio": r.bio,
                "contacts": r.contacts.as_dict(),
            }
            for r in records
        ],
        "matches": {int(k): list(v) for k, v in (matches or {}).items()},
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(data, f, sort_keys=False)
