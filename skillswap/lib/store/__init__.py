"""SQLite connection and schema utilities."""

from skillswap.lib.store.migrations import migrate, read_schema_tag, write_schema_tag
from skillswap.lib.store.sqlite import connect

__all__ = [
    "connect",
    "migrate",
    "read_schema_tag",
    "write_schema_tag",
]
