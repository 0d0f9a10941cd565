from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Union

from mcp_safezone.errors import DenialKind
from mcp_safezone.outcome import Allowed, Denied, ValidationOutcome
from mcp_safezone.patterns import Dialect, PatternCatalog

MAX_ARGUMENT_LENGTH = 4096

SHELL_METACHARACTERS = (";", "&", "|", "<", ">", "`", "\n", "\r")

_TRAVERSAL = re.compile(r"(?:^|[\\/])\.\.(?:[\\/]|$)|%2e%2e", re.IGNORECASE)

_DIALECT_REASONS = {
    Dialect.POWERSHELL: "Blocked PowerShell cmdlet/feature",
    Dialect.BASH: "Blocked shell feature",
    Dialect.CMD: "Blocked CMD feature",
    Dialect.WSL: "WSL escape to Windows system directories or shells blocked",
}


@dataclass(frozen=True)
class AllCommands:
    """Allow-listing switched off. Always audited when a validator is built."""


@dataclass(frozen=True)
class SpecificCommands:
    names: frozenset[str]


AllowedCommands = Union[AllCommands, SpecificCommands]


def parse_allowed_commands(raw: str | Iterable[str]) -> AllowedCommands:
    if isinstance(raw, str):
        if raw.strip().lower() == "all":
            return AllCommands()
        raw = raw.split(",")
    return SpecificCommands(frozenset(name.strip() for name in raw if name.strip()))


def command_line(command: str, args: Sequence[str]) -> str:
    return " ".join([command, *args])


Check = Callable[[str, Sequence[str]], Optional[Denied]]


class CommandValidator:
    """Allow-list, pattern scans and per-argument checks, in that order.

    The first failing check decides the denial.
    """

    def __init__(self, allowed: AllowedCommands, catalog: PatternCatalog) -> None:
        self._allowed = allowed
        self._catalog = catalog
        self._checks: tuple[Check, ...] = (
            self._check_null_bytes,
            self._check_allow_list,
            self._check_global_patterns,
            self._check_dialect,
            self._check_argument_structure,
            self._check_unsafe_arguments,
        )

    @property
    def allowed(self) -> AllowedCommands:
        return self._allowed

    @property
    def catalog(self) -> PatternCatalog:
        return self._catalog

    def check(self, command: str, args: Sequence[str]) -> ValidationOutcome:
        for check in self._checks:
            denied = check(command, args)
            if denied is not None:
                return denied
        return Allowed()

    def _check_null_bytes(self, command: str, args: Sequence[str]) -> Denied | None:
        # Runs before the allow-list so the verdict never depends on the command.
        if "\x00" in command or any("\x00" in arg for arg in args):
            return Denied.build(
                DenialKind.NULL_BYTE_IN_ARGUMENT,
                "Null bytes in arguments are not allowed",
                command_line(command, args).replace("\x00", "\\0"),
            )
        return None

    def _check_allow_list(self, command: str, args: Sequence[str]) -> Denied | None:
        allowed = self._allowed
        if isinstance(allowed, AllCommands):
            return None
        if isinstance(allowed, SpecificCommands):
            if command in allowed.names:
                return None
            return Denied.build(
                DenialKind.COMMAND_NOT_ALLOWED,
                f"Command not allowed: {command}",
                command_line(command, args),
            )
        raise TypeError(f"Unsupported allow-list: {allowed!r}")

    def _check_global_patterns(self, command: str, args: Sequence[str]) -> Denied | None:
        full = command_line(command, args)
        for rule in self._catalog.global_rules:
            if rule.search(full):
                return Denied.build(
                    DenialKind.DANGEROUS_PATTERN_BLOCKED,
                    f"Potentially dangerous command pattern blocked: {rule.label} "
                    f"({rule.pattern}) in command \"{command}\"",
                    full,
                    pattern=rule.pattern,
                )
        return None

    def _check_dialect(self, command: str, args: Sequence[str]) -> Denied | None:
        dialect = Dialect.from_command(command)
        joined = " ".join(args)
        for rule in self._catalog.rules_for(dialect):
            if rule.search(joined):
                kind = (
                    DenialKind.WSL_ESCAPE_BLOCKED
                    if dialect is Dialect.WSL
                    else DenialKind.SHELL_DIALECT_FEATURE_BLOCKED
                )
                return Denied.build(
                    kind,
                    f"{_DIALECT_REASONS[dialect]}: {rule.label} ({rule.pattern})",
                    command_line(command, args),
                    pattern=rule.pattern,
                )
        return None

    def _check_argument_structure(
        self, command: str, args: Sequence[str]
    ) -> Denied | None:
        full = command_line(command, args)
        for arg in args:
            if _TRAVERSAL.search(arg):
                return Denied.build(
                    DenialKind.PATH_TRAVERSAL_IN_ARGUMENT,
                    f"Path traversal attempts in arguments are blocked: {arg}",
                    full,
                )
            if len(arg) > MAX_ARGUMENT_LENGTH:
                return Denied.build(
                    DenialKind.ARGUMENT_TOO_LONG,
                    f"Argument too long (max {MAX_ARGUMENT_LENGTH} chars): "
                    f"got {len(arg)} chars",
                    full,
                )
            for char in SHELL_METACHARACTERS:
                if char in arg:
                    return Denied.build(
                        DenialKind.SHELL_METACHARACTER_BLOCKED,
                        f"Potentially dangerous shell metacharacter {char!r} "
                        f"in argument: {arg}",
                        full,
                        pattern=char,
                    )
        return None

    def _check_unsafe_arguments(
        self, command: str, args: Sequence[str]
    ) -> Denied | None:
        for arg in args:
            for rule in self._catalog.unsafe_argument_rules:
                if rule.search(arg):
                    return Denied.build(
                        DenialKind.UNSAFE_ARGUMENT_MATCHED,
                        f"Unsafe argument content detected (pattern: {rule.pattern}): "
                        f"{arg}",
                        command_line(command, args),
                        pattern=rule.pattern,
                    )
        return None
