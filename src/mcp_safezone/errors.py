from __future__ import annotations

from enum import Enum


class DenialKind(str, Enum):
    PATH_DENIED = "path_denied"
    COMMAND_NOT_ALLOWED = "command_not_allowed"
    DANGEROUS_PATTERN_BLOCKED = "dangerous_pattern_blocked"
    SHELL_DIALECT_FEATURE_BLOCKED = "shell_dialect_feature_blocked"
    WSL_ESCAPE_BLOCKED = "wsl_escape_blocked"
    UNSAFE_ARGUMENT_MATCHED = "unsafe_argument_matched"
    PATH_TRAVERSAL_IN_ARGUMENT = "path_traversal_in_argument"
    NULL_BYTE_IN_ARGUMENT = "null_byte_in_argument"
    ARGUMENT_TOO_LONG = "argument_too_long"
    SHELL_METACHARACTER_BLOCKED = "shell_metacharacter_blocked"


class SecurityViolation(ValueError):
    """Base class for every denial raised by the validator.

    The message is the denial reason and is meant to be shown to the
    caller verbatim.
    """

    kind: DenialKind

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class PathDenied(SecurityViolation):
    kind = DenialKind.PATH_DENIED


class CommandNotAllowed(SecurityViolation):
    kind = DenialKind.COMMAND_NOT_ALLOWED


class DangerousPatternBlocked(SecurityViolation):
    kind = DenialKind.DANGEROUS_PATTERN_BLOCKED


class ShellDialectFeatureBlocked(SecurityViolation):
    kind = DenialKind.SHELL_DIALECT_FEATURE_BLOCKED


class WSLEscapeBlocked(SecurityViolation):
    kind = DenialKind.WSL_ESCAPE_BLOCKED


class UnsafeArgumentMatched(SecurityViolation):
    kind = DenialKind.UNSAFE_ARGUMENT_MATCHED


class PathTraversalInArgument(SecurityViolation):
    kind = DenialKind.PATH_TRAVERSAL_IN_ARGUMENT


class NullByteInArgument(SecurityViolation):
    kind = DenialKind.NULL_BYTE_IN_ARGUMENT


class ArgumentTooLong(SecurityViolation):
    kind = DenialKind.ARGUMENT_TOO_LONG


class ShellMetacharacterBlocked(SecurityViolation):
    kind = DenialKind.SHELL_METACHARACTER_BLOCKED


_ERRORS: dict[DenialKind, type[SecurityViolation]] = {
    cls.kind: cls
    for cls in (
        PathDenied,
        CommandNotAllowed,
        DangerousPatternBlocked,
        ShellDialectFeatureBlocked,
        WSLEscapeBlocked,
        UnsafeArgumentMatched,
        PathTraversalInArgument,
        NullByteInArgument,
        ArgumentTooLong,
        ShellMetacharacterBlocked,
    )
}


def error_for(kind: DenialKind, reason: str) -> SecurityViolation:
    return _ERRORS[kind](reason)
