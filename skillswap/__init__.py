"""Profile reconciliation and complementary-skill matching for SkillSwap."""

from skillswap.core import (
    AnnotationStore,
    ChangeCoalescer,
    Engine,
    Reconciler,
    RemoteRecordSource,
    ViewCache,
)
from skillswap.models import (
    AnnotationEntry,
    ChangeKind,
    ChangeNotification,
    ContactChannels,
    MatchResult,
    MergedView,
    ParticipantRecord,
)

__all__ = [
    "AnnotationEntry",
    "AnnotationStore",
    "ChangeCoalescer",
    "ChangeKind",
    "ChangeNotification",
    "ContactChannels",
    "Engine",
    "MatchResult",
    "MergedView",
    "ParticipantRecord",
    "Reconciler",
    "RemoteRecordSource",
    "ViewCache",
]
