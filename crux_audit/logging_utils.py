"""
Structured logging helpers and the ordered, user-visible audit log.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Literal

LogSource = Literal["Assistant", "Query Agent", "Historian", "Interpreter"]
LogSeverity = Literal["info", "success", "warning", "error"]

_LEVEL_BY_SEVERITY: dict[str, int] = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

INITIAL_MESSAGE = "System initialized. Waiting for target domain..."


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.
    """

    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))


@dataclass(frozen=True)
class LogEntry:
    """
    One timestamped progress entry.
    """

    timestamp: str
    source: LogSource
    message: str
    severity: LogSeverity = "info"

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


class AuditLog:
    """
    Append-only run log. Every entry is mirrored to the stdlib logger.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("crux_audit.audit")
        self._entries: list[LogEntry] = []
        self.reset()

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def reset(self) -> None:
        self._entries = []
        self.add("Assistant", INITIAL_MESSAGE)

    def add(
        self,
        source: LogSource,
        message: str,
        severity: LogSeverity = "info",
    ) -> LogEntry:
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            source=source,
            message=message,
            severity=severity,
        )
        self._entries.append(entry)
        log_event(
            self._logger,
            _LEVEL_BY_SEVERITY.get(severity, logging.INFO),
            "audit_log",
            source=source,
            message=message,
            severity=severity,
        )
        return entry

    def messages(self, severity: LogSeverity | None = None) -> list[str]:
        return [
            entry.message
            for entry in self._entries
            if severity is None or entry.severity == severity
        ]
