"""Local plaintext cache for the participant's own skill text.

Entries are advisory display hints keyed by normalized identity. The store
never fails a caller: any persistence problem drops it to session memory.
"""

import contextlib
import logging
import sqlite3
import threading
import time
from pathlib import Path

from skillswap import events
from skillswap.errors import CachePersistenceFailure
from skillswap.lib import store
from skillswap.models import AnnotationEntry, normalize_identity

logger = logging.getLogger(__name__)

SCHEMA_TAG = "skillswap_profiles_v1"

_MIGRATIONS = [
    (
        "001_annotations",
        """
        CREATE TABLE IF NOT EXISTS annotations (
            identity TEXT PRIMARY KEY,
            teach_text TEXT,
            learn_text TEXT,
            updated_at INTEGER NOT NULL
        )
        """,
    ),
]


class AnnotationStore:
    def __init__(self, db_path: Path | None = None):
        self._db_path = db_path
        self._memory: dict[str, AnnotationEntry] = {}
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None
        self._degraded = db_path is None
        self._reported = False

    @property
    def degraded(self) -> bool:
        """True when the store runs in-memory only for this session."""
        return self._degraded

    def get(self, identity: str) -> AnnotationEntry | None:
        key = normalize_identity(identity)
        if not key:
            return None

        with self._lock:
            if key in self._memory:
                return self._memory[key]
            entry = self._load(key)
            if entry is not None:
                self._memory[key] = entry
            return entry

    def put(self, identity: str, entry: AnnotationEntry) -> None:
        """Merge entry's set fields into the stored entry. Never raises."""
        key = normalize_identity(identity)
        if not key or entry.is_empty():
            return

        with self._lock:
            current = self._memory.get(key) or self._load(key) or AnnotationEntry()
            merged = current.merged(entry)
            self._memory[key] = merged
            self._save(key, merged)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = store.connect(self._db_path)
        try:
            tag = store.read_schema_tag(conn)
            if tag is None:
                store.migrate(conn, _MIGRATIONS)
                store.write_schema_tag(conn, SCHEMA_TAG)
            elif tag != SCHEMA_TAG:
                raise CachePersistenceFailure(
                    f"{self._db_path.name} has schema '{tag}', expected '{SCHEMA_TAG}'"
                )
            else:
                store.migrate(conn, _MIGRATIONS)
        except Exception:
            conn.close()
            raise

        self._conn = conn
        return conn

    def _load(self, key: str) -> AnnotationEntry | None:
        if self._degraded:
            return None
        try:
            row = (
                self._connection()
                .execute(
                    "SELECT teach_text, learn_text FROM annotations WHERE identity = ?",
                    (key,),
                )
                .fetchone()
            )
        except (sqlite3.Error, OSError, ValueError, CachePersistenceFailure) as e:
            self._degrade(e)
            return None

        if row is None:
            return None
        entry = AnnotationEntry(teach_text=row["teach_text"], learn_text=row["learn_text"])
        return None if entry.is_empty() else entry

    def _save(self, key: str, entry: AnnotationEntry) -> None:
        if self._degraded:
            return
        try:
            self._connection().execute(
                """
                INSERT INTO annotations (identity, teach_text, learn_text, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(identity) DO UPDATE SET
                    teach_text = excluded.teach_text,
                    learn_text = excluded.learn_text,
                    updated_at = excluded.updated_at
                """,
                (key, entry.teach_text, entry.learn_text, int(time.time())),
            )
        except (sqlite3.Error, OSError, ValueError, CachePersistenceFailure) as e:
            self._degrade(e)

    def _degrade(self, error: Exception) -> None:
        self._degraded = True
        if self._conn is not None:
            with contextlib.suppress(sqlite3.Error):
                self._conn.close()
            self._conn = None

        if self._reported:
            return
        self._reported = True
        logger.warning(f"Annotation cache unavailable, keeping annotations in memory: {error}")
        events.emit(events.ANNOTATION_DEGRADED, path=str(self._db_path), error=str(error))
