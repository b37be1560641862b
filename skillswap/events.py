"""In-process report bus: refresh outcomes and degradations for the presentation layer."""

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

TABLE_REFRESHED = "table_refreshed"
SELF_REFRESHED = "self_refreshed"
MATCHES_REFRESHED = "matches_refreshed"
REFRESH_FAILED = "refresh_failed"
ANNOTATION_DEGRADED = "annotation_degraded"
INVARIANT_VIOLATION = "invariant_violation"


@dataclass(frozen=True)
class Report:
    event_type: str
    identity: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


# In-memory listener registry (Pub/Sub)
_listeners: dict[str | None, list[Callable[[Report], None]]] = defaultdict(list)


def on(event_type: str | None = None) -> Callable:
    """Decorator to register a function as a report listener. None listens to everything."""

    def decorator(func: Callable[[Report], None]):
        _listeners[event_type].append(func)
        return func

    return decorator


def off(func: Callable[[Report], None], event_type: str | None = None) -> None:
    if func in _listeners[event_type]:
        _listeners[event_type].remove(func)


def emit(event_type: str, identity: str | None = None, **data: Any) -> Report:
    """Dispatch a report to specific listeners, then to global ones.

    A failing listener is logged and skipped; reports never break the pipeline.
    """
    report = Report(event_type=event_type, identity=identity, data=data)
    for listener in [*_listeners[event_type], *_listeners[None]]:
        try:
            listener(report)
        except Exception as e:
            logger.error(f"Listener {getattr(listener, '__name__', listener)} failed: {e}")
    return report


def clear() -> None:
    _listeners.clear()


__all__ = [
    "ANNOTATION_DEGRADED",
    "INVARIANT_VIOLATION",
    "MATCHES_REFRESHED",
    "REFRESH_FAILED",
    "SELF_REFRESHED",
    "TABLE_REFRESHED",
    "Report",
    "clear",
    "emit",
    "off",
    "on",
]
