"""Precompiled dangerous-pattern rules.

Everything here is compiled once: the fixed rules at import time and the
configured unsafe-argument rules when a catalog is built. Validation only
ever runs ``search`` on ready regexes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping


@dataclass(frozen=True)
class PatternRule:
    pattern: str
    label: str
    flags: int = 0
    regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "regex", re.compile(self.pattern, self.flags))

    def search(self, text: str) -> bool:
        return self.regex.search(text) is not None


class Dialect(str, Enum):
    POWERSHELL = "powershell"
    BASH = "bash"
    CMD = "cmd"
    WSL = "wsl"
    NONE = "none"

    @classmethod
    def from_command(cls, command: str) -> Dialect:
        """Resolve the dialect from the invoked program's basename."""
        name = re.split(r"[\\/]", command.strip())[-1].lower()
        if name.endswith(".exe"):
            name = name[: -len(".exe")]
        return _DIALECT_COMMANDS.get(name, cls.NONE)


_DIALECT_COMMANDS = {
    "powershell": Dialect.POWERSHELL,
    "pwsh": Dialect.POWERSHELL,
    "bash": Dialect.BASH,
    "sh": Dialect.BASH,
    "zsh": Dialect.BASH,
    "dash": Dialect.BASH,
    "ksh": Dialect.BASH,
    "cmd": Dialect.CMD,
    "wsl": Dialect.WSL,
}


# Quoting or escaping a builtin does not stop the shell from running it
_WORD_BEFORE = r"\s;&|('\"\\"
_WORD_AFTER = r"\s;&|)'\""


def _word(name: str, before: str = _WORD_BEFORE, after: str = _WORD_AFTER) -> str:
    return rf"(?:^|[{before}]){name}(?=$|[{after}])"


GLOBAL_RULES: tuple[PatternRule, ...] = (
    PatternRule(r"\$\(", "command substitution $(...)"),
    PatternRule(r"`[^`]*`", "backtick command substitution"),
    PatternRule(r"\$\{[^}]*\}", "parameter expansion ${...}"),
    PatternRule(
        r"(?:^|\s)--?(?:exec|execute|command|eval|source|run|call|start|invoke|delegate)"
        r"(?=$|\s|=)",
        "execution flag",
        re.IGNORECASE,
    ),
    PatternRule(r"(?:^|\s)(?:https?|ftps?)://\S+", "standalone URL argument", re.IGNORECASE),
    PatternRule(r"\brm\s+-(?:rf|fr)\b", "recursive forced delete", re.IGNORECASE),
    PatternRule(r"\bdel\s+/s\b", "recursive delete", re.IGNORECASE),
    PatternRule(r"\bformat\s+[a-z]:", "drive format", re.IGNORECASE),
    PatternRule(r"\bsudo\s", "privilege escalation"),
    PatternRule(r"\bchmod\s+-?R?\s*777\b", "world-writable permissions"),
    PatternRule(r"\bdd\s+if=", "raw disk copy"),
    PatternRule(r"\bmkfs(?:\.\w+)?\b", "filesystem creation"),
    PatternRule(r"\|\s*(?:ba|z|da|k)?sh\b", "pipe into shell"),
    PatternRule(r">\s*/dev/(?!null\b)", "write to device file"),
)

_PS_BEFORE = r"\s;&|(){}'\""
_PS_AFTER = r"\s;&|(){}'\""

POWERSHELL_RULES: tuple[PatternRule, ...] = tuple(
    PatternRule(_word(re.escape(name), _PS_BEFORE, _PS_AFTER), name, re.IGNORECASE)
    for name in (
        "Invoke-Expression",
        "iex",
        "Invoke-Command",
        "Start-Process",
        "Remove-Item",
        "Set-ExecutionPolicy",
        "Invoke-WebRequest",
        "Add-Type",
    )
) + (
    PatternRule(r"\.DownloadString\s*\(", "DownloadString", re.IGNORECASE),
    PatternRule(
        r"(?:^|\s)-(?:e|ec|enc|encodedcommand)(?=$|\s)",
        "-EncodedCommand",
        re.IGNORECASE,
    ),
)

BASH_RULES: tuple[PatternRule, ...] = (
    PatternRule(_word("eval"), "eval"),
    PatternRule(_word("exec"), "exec"),
    PatternRule(_word("source"), "source"),
    PatternRule(r"(?:^|[\s;&|])\.(?=\s)", ". (source)"),
    PatternRule(r"\$\(\(", "arithmetic expansion $(("),
    PatternRule(r"\$\[", "arithmetic expansion $["),
    PatternRule(r"/dev/(?:tcp|udp)/", "network redirection /dev/tcp"),
)

CMD_RULES: tuple[PatternRule, ...] = (
    PatternRule(_word("start"), "start", re.IGNORECASE),
    PatternRule(_word("call"), "call", re.IGNORECASE),
    PatternRule(_word("reg"), "reg", re.IGNORECASE),
    PatternRule(_word("(?:del|erase)"), "del", re.IGNORECASE),
    PatternRule(rf"(?:^|[{_WORD_BEFORE}])(?:rd|rmdir)\s+/s\b", "rd /s", re.IGNORECASE),
    PatternRule(_word("format"), "format", re.IGNORECASE),
    PatternRule(_word(r"(?:powershell|pwsh)(?:\.exe)?"), "nested PowerShell", re.IGNORECASE),
)

WSL_RULES: tuple[PatternRule, ...] = (
    PatternRule(r"/mnt/[a-z]/windows(?=/|$|\s)", "/mnt/<drive>/Windows", re.IGNORECASE),
    PatternRule(
        r"/mnt/[a-z]/program files", "/mnt/<drive>/Program Files", re.IGNORECASE
    ),
    PatternRule(
        _word(r"(?:cmd|powershell|pwsh)(?:\.exe)?"), "nested Windows shell", re.IGNORECASE
    ),
    PatternRule(_word(r"(?:ba|z|da|k)?sh"), "nested shell"),
)

_DIALECT_RULES: Mapping[Dialect, tuple[PatternRule, ...]] = MappingProxyType(
    {
        Dialect.POWERSHELL: POWERSHELL_RULES,
        Dialect.BASH: BASH_RULES,
        Dialect.CMD: CMD_RULES,
        Dialect.WSL: WSL_RULES,
        Dialect.NONE: (),
    }
)


@dataclass(frozen=True)
class PatternCatalog:
    global_rules: tuple[PatternRule, ...] = GLOBAL_RULES
    dialect_rules: Mapping[Dialect, tuple[PatternRule, ...]] = field(
        default_factory=lambda: _DIALECT_RULES
    )
    unsafe_argument_rules: tuple[PatternRule, ...] = ()

    @classmethod
    def build(cls, unsafe_argument_patterns: Iterable[str] = ()) -> PatternCatalog:
        """Raises ``re.error`` for an invalid configured pattern."""
        return cls(
            unsafe_argument_rules=tuple(
                PatternRule(p, p, re.IGNORECASE) for p in unsafe_argument_patterns
            )
        )

    def rules_for(self, dialect: Dialect) -> tuple[PatternRule, ...]:
        # KeyError rather than silently skipping an unmapped dialect
        return self.dialect_rules[dialect]
