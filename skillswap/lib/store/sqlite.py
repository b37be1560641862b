import logging
import sqlite3
import time
from pathlib import Path

logger = logging.getLogger(__name__)

ATTEMPTS = 5
BUSY_TIMEOUT_MS = 5000
SLOW_CONNECT_SECONDS = 0.1


def _open(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.isolation_level = None
    try:
        conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.Error:
        conn.close()
        raise
    return conn


def connect(db_path: Path) -> sqlite3.Connection:
    """Open the annotation database in autocommit mode.

    WAL lets a second process read the cache while this one writes. Opening
    retries with a short backoff when another writer holds the lock.
    """
    start = time.perf_counter()

    for attempt in range(1, ATTEMPTS + 1):
        try:
            conn = _open(db_path)
            break
        except sqlite3.OperationalError as err:
            if "locked" not in str(err).lower() or attempt == ATTEMPTS:
                raise
            logger.debug(f"{db_path.name} locked, retry {attempt}/{ATTEMPTS - 1}")
            time.sleep(0.05 * attempt)

    elapsed = time.perf_counter() - start
    if elapsed > SLOW_CONNECT_SECONDS:
        logger.warning(f"Opening {db_path.name} took {elapsed:.3f}s (lock contention?)")

    return conn
