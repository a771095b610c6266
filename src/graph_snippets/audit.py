from __future__ import annotations

import json
import logging
import sys
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Deque, Dict, List, Optional

# Keyword arguments promoted to first-class AuditEvent fields.
_EVENT_FIELDS = ("snippet_id", "correlation_id", "outcome", "error_kind")


@dataclass
class AuditEvent:
    """One snippet or Graph request event, as shown on the audit page.

    ``outcome`` is ``"succeeded"``/``"failed"`` for terminal snippet events and
    ``error_kind`` mirrors :attr:`SnippetError.kind` for failures.
    """

    timestamp: str
    level: str
    message: str
    snippet_id: Optional[str] = None
    correlation_id: Optional[str] = None
    outcome: Optional[str] = None
    error_kind: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: logging.LogRecord) -> "AuditEvent":
        fields: Dict[str, Any] = dict(getattr(record, "audit", {}))
        promoted = {name: fields.pop(name, None) for name in _EVENT_FIELDS}
        return cls(
            timestamp=_isoformat(record.created),
            level=record.levelname,
            message=record.getMessage(),
            extra=fields,
            **promoted,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class InMemoryAuditStore:
    """Bounded, thread-safe event buffer for the web page, newest first."""

    def __init__(self, max_events: int = 1000):
        self._events: Deque[AuditEvent] = deque(maxlen=max_events)
        self._lock = Lock()

    def append(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.appendleft(event)

    def list(self, limit: int = 100) -> List[AuditEvent]:
        with self._lock:
            return list(self._events)[:limit]


class JsonAuditLogger:
    """Structured logger for snippet runs and Graph requests.

    Each call produces a single ``LogRecord``: it is emitted as one JSON line on
    stderr (stdout belongs to the CLI's outcome document) and, when a store is
    attached, converted into an :class:`AuditEvent` with the same timestamp.
    """

    def __init__(
        self,
        name: str = "graph_snippets",
        level: int = logging.INFO,
        store: Optional[InMemoryAuditStore] = None,
    ):
        self.logger = logging.getLogger(name)
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(_JsonFormatter())
            self.logger.addHandler(handler)
        self.logger.setLevel(level)
        self.logger.propagate = False
        self.store = store

    def _log(self, level: int, message: str, exc_info: Any = None, **kwargs: Any) -> None:
        if exc_info is True:
            exc_info = sys.exc_info()
        elif isinstance(exc_info, BaseException):
            exc_info = (type(exc_info), exc_info, exc_info.__traceback__)
        record = self.logger.makeRecord(
            self.logger.name,
            level,
            "(audit)",
            0,
            message,
            None,
            exc_info or None,
            extra={"audit": kwargs},
        )
        if self.store:
            self.store.append(AuditEvent.from_record(record))
        if self.logger.isEnabledFor(level):
            self.logger.handle(record)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: Any = None, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)


def _isoformat(created: float) -> str:
    return datetime.fromtimestamp(created, tz=timezone.utc).isoformat()


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": _isoformat(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        fields: Optional[Dict[str, Any]] = getattr(record, "audit", None)
        if fields:
            payload.update(fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)
