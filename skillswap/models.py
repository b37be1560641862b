from dataclasses import dataclass, field, replace
from enum import Enum

Fingerprint = str | bytes


def normalize_identity(identity: str | None) -> str:
    """Wallet addresses compare case-insensitively: trim and lower-case."""
    return (identity or "").strip().lower()


class ChangeKind(str, Enum):
    REGISTERED = "registered"
    UPDATED = "updated"
    MATCHED = "matched"


class DisplaySource(str, Enum):
    ANNOTATION = "annotation"
    DECODED = "decoded"
    RAW = "raw"


@dataclass(frozen=True)
class ContactChannels:
    twitter: str = ""
    farcaster: str = ""
    email: str = ""

    def any(self) -> bool:
        return bool(self.twitter or self.farcaster or self.email)

    def as_dict(self) -> dict[str, str]:
        return {"twitter": self.twitter, "farcaster": self.farcaster, "email": self.email}


@dataclass(frozen=True)
class ParticipantRecord:
    id: int
    identity: str
    display_name: str
    teach_fingerprint: Fingerprint
    learn_fingerprint: Fingerprint
    bio: str = ""
    contacts: ContactChannels = field(default_factory=ContactChannels)


@dataclass(frozen=True)
class AnnotationEntry:
    """Plaintext the local participant submitted for its own skills."""

    teach_text: str | None = None
    learn_text: str | None = None

    def is_empty(self) -> bool:
        return not self.teach_text and not self.learn_text

    def merged(self, other: "AnnotationEntry") -> "AnnotationEntry":
        """Overlay other's set fields; unset fields keep their current value."""
        return replace(
            self,
            teach_text=other.teach_text or self.teach_text,
            learn_text=other.learn_text or self.learn_text,
        )


@dataclass(frozen=True)
class MergedView:
    id: int
    identity: str
    display_name: str
    bio: str
    contacts: ContactChannels
    teach_fingerprint: Fingerprint
    learn_fingerprint: Fingerprint
    teach_display: str
    learn_display: str
    teach_source: DisplaySource = DisplaySource.RAW
    learn_source: DisplaySource = DisplaySource.RAW

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "identity": self.identity,
            "name": self.display_name,
            "bio": self.bio,
            "contacts": self.contacts.as_dict(),
            "teach": self.teach_display,
            "learn": self.learn_display,
            "teach_source": self.teach_source.value,
            "learn_source": self.learn_source.value,
        }


@dataclass(frozen=True)
class MatchResult:
    self_id: int
    other_id: int
    other: MergedView

    @property
    def pair(self) -> tuple[int, int]:
        return (self.self_id, self.other_id)


@dataclass(frozen=True)
class ChangeNotification:
    kind: ChangeKind
    identity: str
    affected_ids: tuple[int, ...] = ()
