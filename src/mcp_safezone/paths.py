from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Protocol

from mcp_safezone.errors import DenialKind
from mcp_safezone.outcome import Allowed, Denied, ValidationOutcome
from mcp_safezone.zones import ZoneRegistry


class FilesystemProvider(Protocol):
    def realpath(self, path: str) -> str:
        """Resolve every symlink in ``path``.

        Must raise ``FileNotFoundError`` when a component does not exist
        and any other ``OSError`` for every other failure.
        """
        ...


class OSFilesystem:
    def realpath(self, path: str) -> str:
        return os.path.realpath(path, strict=True)


class PathCanonicalizer:
    """Turn a requested path into its canonical absolute form.

    Symlinks are resolved for the longest existing prefix of the path. The
    part that does not exist yet is re-appended and normalized lexically,
    so only that tail is trusted without touching the filesystem.
    """

    def __init__(self, filesystem: FilesystemProvider | None = None) -> None:
        self._fs = filesystem or OSFilesystem()

    @staticmethod
    def absolute(path: str) -> str:
        # No lexical ".." collapsing here: "link/.." must follow the link.
        expanded = os.path.expanduser(path)
        if not os.path.isabs(expanded):
            expanded = os.path.join(os.getcwd(), expanded)
        return expanded

    def resolve(self, path: str) -> str:
        """Raises ``OSError`` for anything other than a missing tail."""
        current = self.absolute(path)
        missing: list[str] = []
        while True:
            try:
                real = self._fs.realpath(current)
                break
            except FileNotFoundError:
                parent, name = os.path.split(current)
                if parent == current:
                    raise
                missing.append(name)
                current = parent
        if not missing:
            return real
        candidate = os.path.normpath(os.path.join(real, *reversed(missing)))
        if os.pardir in missing:
            # ".." may have stepped back onto existing, unresolved components.
            # The candidate has no ".." left, so this recurses at most once.
            return self.resolve(candidate)
        return candidate


@dataclass(frozen=True)
class PathAccessReport:
    input_path: str
    allowed: bool
    reason: str
    resolved_path: str | None = None
    matched_safe_zone: str | None = None
    matched_restricted_zone: str | None = None


class PathValidator:
    def __init__(self, registry: ZoneRegistry, canonicalizer: PathCanonicalizer) -> None:
        self._registry = registry
        self._canonicalizer = canonicalizer

    @property
    def registry(self) -> ZoneRegistry:
        return self._registry

    def check(self, path: str) -> ValidationOutcome:
        if not path or not path.strip():
            return Denied.build(
                DenialKind.PATH_DENIED, "Path access denied: empty path", path
            )
        if "\x00" in path:
            return Denied.build(
                DenialKind.PATH_DENIED,
                "Path access denied: path contains a null byte",
                path.replace("\x00", "\\0"),
            )

        try:
            canonical = self._canonicalizer.resolve(path)
        except OSError as exc:
            return Denied.build(
                DenialKind.PATH_DENIED,
                f"Path access denied: {path} could not be resolved "
                f"({exc.strerror or exc})",
                path,
            )

        if not self._registry.in_safe_zone(canonical):
            return Denied.build(
                DenialKind.PATH_DENIED,
                f"Path access denied: {path} is not within configured safe zones "
                f"(resolved to {canonical})",
                path,
            )

        restricted = self._registry.matching_restricted_zone(canonical)
        if restricted is not None:
            return Denied.build(
                DenialKind.PATH_DENIED,
                f"Path access denied: {path} is inside restricted zone "
                f"{restricted.pattern} (resolved to {canonical})",
                path,
                pattern=restricted.pattern,
            )

        return Allowed(canonical)

    def report(self, path: str) -> PathAccessReport:
        outcome = self.check(path)
        resolved: str | None = None
        if isinstance(outcome, Allowed):
            resolved = outcome.canonical_path
        elif path and path.strip() and "\x00" not in path:
            try:
                resolved = self._canonicalizer.resolve(path)
            except OSError:
                resolved = None

        safe_zone = restricted = None
        if resolved is not None:
            zone = self._registry.matching_safe_zone(resolved)
            safe_zone = zone.root if zone else None
            rzone = self._registry.matching_restricted_zone(resolved)
            restricted = rzone.pattern if rzone else None

        if isinstance(outcome, Allowed):
            reason = "Path is within a safe zone and not restricted."
        else:
            reason = outcome.reason
        return PathAccessReport(
            input_path=path,
            allowed=isinstance(outcome, Allowed),
            reason=reason,
            resolved_path=resolved,
            matched_safe_zone=safe_zone,
            matched_restricted_zone=restricted,
        )
