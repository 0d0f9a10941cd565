from __future__ import annotations

import logging
from collections import Counter, deque
from datetime import datetime, timezone
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field

from mcp_safezone.errors import DenialKind


def setup_logging(log_dir: Path, log_level: str, max_size_mb: int) -> None:
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "security-audit.log"

    file_handler = RotatingFileHandler(
        log_file, maxBytes=max_size_mb * 1024 * 1024, backupCount=5
    )
    file_handler.setFormatter(logging.Formatter("%(message)s"))

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        handlers=[file_handler, logging.StreamHandler()],
        force=True,
    )

    # Routed through stdlib so audit records land in the rotating file.
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def truncate_for_log(text: str, max_len: int = 500) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len] + f"... [truncated, total {len(text)} chars]"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SecurityEventType(str, Enum):
    PATH_DENIED = "path_denied"
    COMMAND_BLOCKED = "command_blocked"
    PATTERN_DETECTED = "pattern_detected"
    DIALECT_FEATURE_BLOCKED = "dialect_feature_blocked"
    ARGUMENT_REJECTED = "argument_rejected"
    ALL_COMMANDS_ALLOWED = "all_commands_allowed"


_DENIAL_EVENTS: dict[DenialKind, tuple[SecurityEventType, Severity]] = {
    DenialKind.PATH_DENIED: (SecurityEventType.PATH_DENIED, Severity.HIGH),
    DenialKind.COMMAND_NOT_ALLOWED: (SecurityEventType.COMMAND_BLOCKED, Severity.HIGH),
    DenialKind.DANGEROUS_PATTERN_BLOCKED: (
        SecurityEventType.PATTERN_DETECTED,
        Severity.HIGH,
    ),
    DenialKind.SHELL_DIALECT_FEATURE_BLOCKED: (
        SecurityEventType.DIALECT_FEATURE_BLOCKED,
        Severity.HIGH,
    ),
    DenialKind.WSL_ESCAPE_BLOCKED: (
        SecurityEventType.DIALECT_FEATURE_BLOCKED,
        Severity.HIGH,
    ),
    DenialKind.UNSAFE_ARGUMENT_MATCHED: (
        SecurityEventType.PATTERN_DETECTED,
        Severity.HIGH,
    ),
    DenialKind.PATH_TRAVERSAL_IN_ARGUMENT: (
        SecurityEventType.ARGUMENT_REJECTED,
        Severity.MEDIUM,
    ),
    DenialKind.NULL_BYTE_IN_ARGUMENT: (
        SecurityEventType.ARGUMENT_REJECTED,
        Severity.MEDIUM,
    ),
    DenialKind.ARGUMENT_TOO_LONG: (
        SecurityEventType.ARGUMENT_REJECTED,
        Severity.MEDIUM,
    ),
    DenialKind.SHELL_METACHARACTER_BLOCKED: (
        SecurityEventType.ARGUMENT_REJECTED,
        Severity.MEDIUM,
    ),
}


class SecurityEvent(BaseModel):
    """Immutable audit record for a denial or an accepted risk."""

    model_config = ConfigDict(frozen=True)

    type: SecurityEventType
    severity: Severity
    subject: str
    detail: str
    denial: DenialKind | None = None
    pattern: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def for_denial(
        cls,
        kind: DenialKind,
        subject: str,
        detail: str,
        pattern: str | None = None,
    ) -> SecurityEvent:
        event_type, severity = _DENIAL_EVENTS[kind]
        return cls(
            type=event_type,
            severity=severity,
            subject=truncate_for_log(subject),
            detail=detail,
            denial=kind,
            pattern=pattern,
        )


AuditSink = Callable[[SecurityEvent], None]

# stdlib logging reports its own handler errors instead of raising
_fallback_logger = logging.getLogger(__name__)

_LOG_METHOD = {
    Severity.LOW: "info",
    Severity.MEDIUM: "warning",
    Severity.HIGH: "warning",
    Severity.CRITICAL: "error",
}


class SecurityEventAuditor:
    """Hands security events to structlog and to any extra sinks.

    ``emit`` never raises: a broken sink is logged and skipped so that
    auditing can not turn a denial into a different failure.
    """

    def __init__(self, sinks: Sequence[AuditSink] = ()) -> None:
        self._sinks = tuple(sinks)
        self._logger = get_logger("security_audit")

    def emit(self, event: SecurityEvent) -> None:
        try:
            log = getattr(self._logger, _LOG_METHOD[event.severity])
            log(
                "security_event",
                security_event=event.model_dump(mode="json"),
            )
        except Exception:
            _fallback_logger.exception(
                "failed to log security event %s", event.type.value
            )
        for sink in self._sinks:
            try:
                sink(event)
            except Exception:
                _fallback_logger.exception("audit sink %r failed", sink)


class InMemoryAuditTrail:
    """Bounded in-process sink keeping the most recent events."""

    def __init__(self, max_events: int = 1000) -> None:
        self._events: deque[SecurityEvent] = deque(maxlen=max_events)

    def __call__(self, event: SecurityEvent) -> None:
        self._events.append(event)

    def recent(self, limit: int = 100) -> list[SecurityEvent]:
        if limit <= 0:
            return []
        return list(self._events)[-limit:]

    def summary(self) -> dict[str, object]:
        events = list(self._events)
        return {
            "total": len(events),
            "by_type": dict(Counter(e.type.value for e in events)),
            "by_severity": dict(Counter(e.severity.value for e in events)),
        }
