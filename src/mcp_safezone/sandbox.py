from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Sequence

from mcp_safezone.audit import (
    AuditSink,
    SecurityEvent,
    SecurityEventAuditor,
    SecurityEventType,
    Severity,
)
from mcp_safezone.commands import (
    AllCommands,
    AllowedCommands,
    CommandValidator,
    SpecificCommands,
)
from mcp_safezone.outcome import Allowed, Denied, ValidationOutcome
from mcp_safezone.paths import (
    FilesystemProvider,
    PathAccessReport,
    PathCanonicalizer,
    PathValidator,
)
from mcp_safezone.patterns import PatternCatalog
from mcp_safezone.zones import ZoneRegistry

if TYPE_CHECKING:
    from mcp_safezone.config import Settings

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_HOSTILE_PUNCTUATION = re.compile(r"[<>:\"'|?*;&$`]")
_TRAVERSAL_RUN = re.compile(r"\.{2,}[\\/]*")


def sanitize_input(raw: str) -> str:
    """Best-effort cleanup of free text before it becomes part of a path.

    Not a replacement for ``SecurityValidator.validate_path``.
    """
    text = _CONTROL_CHARS.sub("", raw)
    text = _HOSTILE_PUNCTUATION.sub("", text)
    text = _TRAVERSAL_RUN.sub("", text)
    return text.strip()


class SecurityValidator:
    """The one entry point tools use before touching files or commands.

    Every denial is audited once and then raised as a
    ``SecurityViolation`` whose message is the reason to report.
    Instances are immutable snapshots of the configuration; build a new
    one when the configuration changes.
    """

    def __init__(
        self,
        registry: ZoneRegistry,
        allowed_commands: AllowedCommands,
        catalog: PatternCatalog | None = None,
        auditor: SecurityEventAuditor | None = None,
        canonicalizer: PathCanonicalizer | None = None,
    ) -> None:
        self._paths = PathValidator(registry, canonicalizer or PathCanonicalizer())
        self._commands = CommandValidator(allowed_commands, catalog or PatternCatalog())
        self._auditor = auditor or SecurityEventAuditor()

        if isinstance(allowed_commands, AllCommands):
            self._auditor.emit(
                SecurityEvent(
                    type=SecurityEventType.ALL_COMMANDS_ALLOWED,
                    severity=Severity.HIGH,
                    subject="*",
                    detail="SECURITY_RISK: All commands are allowed by configuration; "
                    "the command allow-list is disabled.",
                )
            )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        sinks: Sequence[AuditSink] = (),
        filesystem: FilesystemProvider | None = None,
    ) -> SecurityValidator:
        canonicalizer = PathCanonicalizer(filesystem)
        registry = ZoneRegistry.build(
            settings.safe_zones,
            settings.restricted_zones,
            settings.safe_zone_mode,
            canonicalizer.resolve,
        )
        return cls(
            registry,
            settings.allowed_commands,
            PatternCatalog.build(settings.unsafe_argument_patterns),
            SecurityEventAuditor(sinks),
            canonicalizer,
        )

    def _settle(self, outcome: ValidationOutcome) -> Allowed:
        if isinstance(outcome, Denied):
            self._auditor.emit(outcome.event)
            raise outcome.to_error()
        return outcome

    def validate_path(self, path: str) -> str:
        """Return the canonical form of ``path`` or raise ``PathDenied``."""
        allowed = self._settle(self._paths.check(path))
        if allowed.canonical_path is None:
            raise TypeError(f"Path check allowed {path!r} without a canonical path")
        return allowed.canonical_path

    def validate_command(self, command: str, args: Sequence[str] = ()) -> None:
        self._settle(self._commands.check(command, list(args)))

    def is_path_in_safe_zone(self, path: str) -> bool:
        """Advisory check: never raises and is not audited."""
        return isinstance(self._paths.check(path), Allowed)

    def sanitize_input(self, raw: str) -> str:
        return sanitize_input(raw)

    def test_path_access(self, path: str) -> PathAccessReport:
        """Diagnostic variant of ``validate_path``: never raises, not audited."""
        return self._paths.report(path)

    def security_info(self) -> dict[str, Any]:
        registry = self._paths.registry
        allowed = self._commands.allowed
        catalog = self._commands.catalog
        if isinstance(allowed, SpecificCommands):
            commands: str | list[str] = sorted(allowed.names)
        else:
            commands = "all"
        return {
            "safe_zones": [
                {"root": z.root, "mode": z.mode.value} for z in registry.safe_zones
            ],
            "restricted_zones": [z.pattern for z in registry.restricted_zones],
            "allowed_commands": commands,
            "global_patterns": len(catalog.global_rules),
            "dialect_patterns": {
                d.value: len(rules) for d, rules in catalog.dialect_rules.items() if rules
            },
            "unsafe_argument_patterns": [r.pattern for r in catalog.unsafe_argument_rules],
        }
