from __future__ import annotations

import os
import posixpath
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable

_GLOB_CHARS = frozenset("*?[")


class ContainmentMode(str, Enum):
    STRICT = "strict"
    RECURSIVE = "recursive"


def comparable(path: str) -> str:
    """Case-folded (where the platform folds case), forward-slash form."""
    return os.path.normcase(path).replace("\\", "/")


def is_glob(pattern: str) -> bool:
    return any(c in _GLOB_CHARS for c in pattern)


def _is_within(path: str, root: str) -> bool:
    if path == root:
        return True
    prefix = root if root.endswith("/") else root + "/"
    return path.startswith(prefix)


def _translate_glob(pattern: str) -> str:
    """Translate a glob to a regex body.

    ``**/`` matches zero or more whole directories, ``**`` anything,
    ``*`` and ``?`` never cross a ``/``.
    """
    out: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
            continue
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        c = pattern[i]
        i += 1
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 1 if pattern[i : i + 1] in ("!", "]") else i)
            if end == -1:
                out.append(re.escape(c))
                continue
            body = pattern[i:end].replace("\\", "\\\\")
            if body.startswith("!"):
                body = "^" + body[1:]
            elif body.startswith("^"):
                body = "\\" + body
            out.append(f"[{body}]")
            i = end + 1
        else:
            out.append(re.escape(c))
    return "".join(out)


def compile_restricted(pattern: str) -> re.Pattern[str]:
    normalized = comparable(pattern)
    if not is_glob(normalized):
        body = re.escape(normalized.rstrip("/") or "/")
        if body == "/":
            return re.compile(".*", re.DOTALL)
    else:
        body = _translate_glob(normalized)
        # Relative globs like "*.pem" match at any depth.
        if not normalized.startswith(("/", "**")) and not re.match(r"^[a-zA-Z]:/", normalized):
            body = "(?:.*/)?" + body
    # A restricted entry also covers everything beneath what it matches.
    return re.compile(body + "(?:/.*)?", re.DOTALL)


@dataclass(frozen=True)
class SafeZone:
    root: str
    mode: ContainmentMode = ContainmentMode.RECURSIVE
    _key: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not os.path.isabs(self.root):
            raise ValueError(f"Safe zone root must be an absolute path: {self.root!r}")
        object.__setattr__(self, "_key", comparable(self.root))

    def contains(self, canonical_path: str) -> bool:
        path = comparable(canonical_path)
        if self.mode is ContainmentMode.STRICT:
            # root itself plus its direct children
            root = self._key.rstrip("/") or "/"
            return path == self._key or posixpath.dirname(path) == root
        return _is_within(path, self._key)


@dataclass(frozen=True)
class RestrictedZone:
    pattern: str
    _matcher: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_matcher", compile_restricted(self.pattern))

    def matches(self, canonical_path: str) -> bool:
        return self._matcher.fullmatch(comparable(canonical_path)) is not None


class ZoneRegistry:
    """Resolved safe and restricted zones.

    A path is contained when some safe zone holds it and no restricted
    zone matches it. Restricted zones always win.
    """

    def __init__(
        self,
        safe_zones: Iterable[SafeZone],
        restricted_zones: Iterable[RestrictedZone] = (),
    ) -> None:
        self._safe_zones = tuple(safe_zones)
        self._restricted_zones = tuple(restricted_zones)

    @classmethod
    def build(
        cls,
        safe_roots: Iterable[str],
        restricted_patterns: Iterable[str],
        mode: ContainmentMode,
        canonicalize: Callable[[str], str],
    ) -> ZoneRegistry:
        """Canonicalize configured entries and drop duplicates.

        Safe zone roots that can not be resolved are a configuration error.
        Restricted prefixes that can not be resolved are kept in absolute
        lexical form.
        """
        safe: dict[str, SafeZone] = {}
        for root in safe_roots:
            try:
                canonical = canonicalize(root)
            except OSError as exc:
                raise ValueError(f"Cannot resolve safe zone {root!r}: {exc}") from exc
            safe.setdefault(comparable(canonical), SafeZone(canonical, mode))

        restricted: dict[str, RestrictedZone] = {}
        for pattern in restricted_patterns:
            pattern = os.path.expanduser(pattern.strip())
            if not pattern:
                continue
            if not is_glob(pattern):
                try:
                    pattern = canonicalize(pattern)
                except OSError:
                    pattern = os.path.abspath(pattern)
            restricted.setdefault(comparable(pattern), RestrictedZone(pattern))

        return cls(safe.values(), restricted.values())

    @property
    def safe_zones(self) -> tuple[SafeZone, ...]:
        return self._safe_zones

    @property
    def restricted_zones(self) -> tuple[RestrictedZone, ...]:
        return self._restricted_zones

    def matching_safe_zone(self, canonical_path: str) -> SafeZone | None:
        for zone in self._safe_zones:
            if zone.contains(canonical_path):
                return zone
        return None

    def matching_restricted_zone(self, canonical_path: str) -> RestrictedZone | None:
        for zone in self._restricted_zones:
            if zone.matches(canonical_path):
                return zone
        return None

    def in_safe_zone(self, canonical_path: str) -> bool:
        return self.matching_safe_zone(canonical_path) is not None

    def is_contained(self, canonical_path: str) -> bool:
        return (
            self.in_safe_zone(canonical_path)
            and self.matching_restricted_zone(canonical_path) is None
        )
