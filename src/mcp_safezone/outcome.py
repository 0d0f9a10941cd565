from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from mcp_safezone.audit import SecurityEvent
from mcp_safezone.errors import DenialKind, SecurityViolation, error_for


@dataclass(frozen=True)
class Allowed:
    canonical_path: str | None = None


@dataclass(frozen=True)
class Denied:
    kind: DenialKind
    reason: str
    event: SecurityEvent

    @classmethod
    def build(
        cls,
        kind: DenialKind,
        reason: str,
        subject: str,
        pattern: str | None = None,
    ) -> Denied:
        return cls(
            kind=kind,
            reason=reason,
            event=SecurityEvent.for_denial(kind, subject, reason, pattern),
        )

    def to_error(self) -> SecurityViolation:
        return error_for(self.kind, self.reason)


ValidationOutcome = Union[Allowed, Denied]
