from skillswap.sources.memory import InMemoryRecordSource
from skillswap.sources.snapshot import SnapshotRecordSource

__all__ = ["InMemoryRecordSource", "SnapshotRecordSource"]
