"""Materialized table of merged views.

Every reconciliation pass takes a sequence number when it starts and hands
it back when it applies. A pass that started earlier than the one already
applied is dropped, so the table reflects start order, not completion
order. Readers get a whole immutable snapshot; rows are only ever replaced.
"""

import itertools
import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field

from skillswap.errors import NotFound
from skillswap.models import MergedView, normalize_identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    order: tuple[str, ...] = ()
    rows: dict[str, MergedView] = field(default_factory=dict)

    def views(self) -> list[MergedView]:
        return [self.rows[identity] for identity in self.order]


class ViewCache:
    def __init__(self):
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self._snapshot = Snapshot()
        self._table_seq = 0
        self._row_seq: dict[str, int] = {}
        self._stale_error: Exception | None = None

    def next_sequence(self) -> int:
        """Tag a pass at start."""
        with self._lock:
            return next(self._counter)

    @property
    def applied_sequence(self) -> int:
        return self._table_seq

    @property
    def is_stale(self) -> bool:
        return self._stale_error is not None

    @property
    def last_error(self) -> Exception | None:
        return self._stale_error

    def snapshot(self) -> Snapshot:
        return self._snapshot

    def views(self) -> list[MergedView]:
        return self._snapshot.views()

    def get(self, participant_id: int) -> MergedView:
        for view in self._snapshot.rows.values():
            if view.id == participant_id:
                return view
        raise NotFound(f"No participant with id {participant_id}")

    def get_by_identity(self, identity: str) -> MergedView | None:
        return self._snapshot.rows.get(normalize_identity(identity))

    def apply_table(self, seq: int, views: Sequence[MergedView]) -> bool:
        """Replace the whole table with the output of pass seq.

        Rows installed by a row pass that started after seq survive, even if
        the table pass never saw them. Returns False when the pass was
        superseded.
        """
        with self._lock:
            if seq < self._table_seq:
                logger.debug(f"Discarding table pass {seq}, pass {self._table_seq} already applied")
                return False

            current = self._snapshot.rows
            rows: dict[str, MergedView] = {}
            order: list[str] = []
            for view in views:
                identity = view.identity
                if identity in rows:
                    continue
                if self._row_seq.get(identity, 0) > seq:
                    # A later row pass owns this identity; absent means it removed it.
                    if identity not in current:
                        continue
                    rows[identity] = current[identity]
                else:
                    rows[identity] = view
                    self._row_seq[identity] = seq
                order.append(identity)

            for identity, row_seq in self._row_seq.items():
                if identity not in rows and row_seq > seq and identity in current:
                    rows[identity] = current[identity]
                    order.append(identity)

            for identity in list(self._row_seq):
                if identity not in rows and self._row_seq[identity] <= seq:
                    del self._row_seq[identity]

            self._snapshot = Snapshot(order=tuple(order), rows=rows)
            self._table_seq = seq
            self._stale_error = None
            return True

    def apply_row(self, seq: int, view: MergedView) -> bool:
        """Replace a single row with the output of pass seq."""
        identity = view.identity
        with self._lock:
            if seq < self._table_seq or seq < self._row_seq.get(identity, 0):
                logger.debug(f"Discarding row pass {seq} for {identity}")
                return False

            rows = dict(self._snapshot.rows)
            order = self._snapshot.order
            if identity not in rows:
                order = (*order, identity)
            rows[identity] = view
            self._row_seq[identity] = seq
            self._snapshot = Snapshot(order=order, rows=rows)
            return True

    def remove_row(self, seq: int, identity: str) -> bool:
        """Drop a row whose record no longer exists at the source."""
        identity = normalize_identity(identity)
        with self._lock:
            if seq < self._table_seq or seq < self._row_seq.get(identity, 0):
                return False
            self._row_seq[identity] = seq
            if identity not in self._snapshot.rows:
                return True
            rows = {k: v for k, v in self._snapshot.rows.items() if k != identity}
            order = tuple(k for k in self._snapshot.order if k != identity)
            self._snapshot = Snapshot(order=order, rows=rows)
            return True

    def mark_stale(self, error: Exception, seq: int | None = None) -> bool:
        """Keep the last-known-good table but flag it as out of date.

        A failure from a pass that started before the applied table is ignored.
        """
        with self._lock:
            if seq is not None and seq < self._table_seq:
                logger.debug(f"Ignoring failure of pass {seq}, pass {self._table_seq} applied")
                return False
            self._stale_error = error
            return True

    def clear(self) -> None:
        with self._lock:
            self._snapshot = Snapshot()
            self._table_seq = 0
            self._row_seq.clear()
            self._stale_error = None
