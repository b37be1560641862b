from skillswap.core.annotations import AnnotationStore
from skillswap.core.coalescer import ChangeCoalescer
from skillswap.core.engine import Engine
from skillswap.core.matching import find_matches, is_complementary, resolve_matches
from skillswap.core.reconciler import Reconciler
from skillswap.core.source import RemoteRecordSource
from skillswap.core.views import ViewCache

__all__ = [
    "AnnotationStore",
    "ChangeCoalescer",
    "Engine",
    "Reconciler",
    "RemoteRecordSource",
    "ViewCache",
    "find_matches",
    "is_complementary",
    "resolve_matches",
]
