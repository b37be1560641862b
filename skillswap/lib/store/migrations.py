"""Schema migrations and schema tag checks."""

import logging
import sqlite3
from collections.abc import Callable

logger = logging.getLogger(__name__)

Migration = tuple[str, str | Callable[[sqlite3.Connection], None]]


def migrate(conn: sqlite3.Connection, migs: list[Migration]) -> None:
    """Apply unapplied migrations in order, guarding against row loss."""
    conn.execute("CREATE TABLE IF NOT EXISTS _migrations (name TEXT PRIMARY KEY)")

    for name, migration in migs:
        applied = conn.execute("SELECT 1 FROM _migrations WHERE name = ?", (name,)).fetchone()
        if applied:
            continue

        before = {t: _get_table_count(conn, t) for t in _tables(conn)}
        try:
            conn.execute("BEGIN")
            if callable(migration):
                migration(conn)
            else:
                for statement in migration.split(";"):
                    if statement.strip():
                        conn.execute(statement)

            for table, count_before in before.items():
                _check_migration_safety(conn, table, count_before)

            conn.execute("INSERT OR IGNORE INTO _migrations (name) VALUES (?)", (name,))
            conn.execute("COMMIT")
        except Exception as e:
            conn.execute("ROLLBACK")
            logger.error(f"Migration '{name}' failed: {e}")
            raise


def read_schema_tag(conn: sqlite3.Connection) -> str | None:
    """Return the stored schema tag, None for a database without one."""
    if "meta" not in _tables(conn):
        return None
    row = conn.execute("SELECT value FROM meta WHERE key = 'schema'").fetchone()
    return row[0] if row else None


def write_schema_tag(conn: sqlite3.Connection, tag: str) -> None:
    conn.execute("CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
    conn.execute("INSERT OR REPLACE INTO meta (key, value) VALUES ('schema', ?)", (tag,))


def _tables(conn: sqlite3.Connection) -> list[str]:
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name != '_migrations' AND name != 'sqlite_sequence'"
    )
    return [row[0] for row in cursor.fetchall()]


def _get_table_count(conn: sqlite3.Connection, table: str) -> int:
    """Get row count for table, returns 0 if table doesn't exist."""
    try:
        result = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return result[0] if result else 0
    except sqlite3.OperationalError:
        return 0


def _check_migration_safety(conn: sqlite3.Connection, table: str, before: int) -> None:
    """Raise ValueError if a migration dropped rows from table."""
    after = _get_table_count(conn, table)
    lost = before - after
    if lost > 0:
        msg = f"Migration {table}: {lost} rows lost (before: {before}, after: {after})"
        logger.error(msg)
        raise ValueError(msg)
