"""Host-specific defaults fed into the validator at construction time.

This is the only place that looks at the host OS. The validator itself
works on whatever static lists it is handed.
"""

from __future__ import annotations

import platform
from pathlib import Path

_WINDOWS_RESTRICTED = [
    "C:\\Windows\\System32",
    "C:\\Windows\\SysWOW64",
    "C:\\Program Files\\WindowsApps",
    "C:\\ProgramData\\Microsoft\\Windows\\Start Menu",
    "**/AppData/Roaming/Microsoft/Credentials",
    "**/AppData/Roaming/Microsoft/Crypto",
]

_POSIX_RESTRICTED = [
    "/bin",
    "/boot",
    "/dev",
    "/etc/passwd",
    "/etc/shadow",
    "/etc/sudoers*",
    "/lib",
    "/proc",
    "/root",
    "/sbin",
    "/sys",
    "/usr/bin",
    "/usr/sbin",
    "/var/log/auth*",
    "/var/log/secure*",
]

_DARWIN_RESTRICTED = [
    "/System",
    "/Library/Keychains",
    "/private/etc",
    "/private/var/root",
]

# key material and credential stores, on every platform
_CROSS_PLATFORM_RESTRICTED = [
    "**/.ssh",
    "**/.gnupg",
    "**/Library/Keychains",
    "**/.aws/credentials",
    "**/.docker/config.json",
    "**/id_rsa*",
    "**/id_ed25519*",
    "**/*.pem",
    "**/*.key",
    "**/*.p12",
    "**/*.pfx",
]

_DEV_DIRECTORY_NAMES = ("projects", "workspace", "dev", "code", "src")


def default_restricted_zones(system: str | None = None) -> list[str]:
    system = system or platform.system()
    if system == "Windows":
        zones = list(_WINDOWS_RESTRICTED)
    else:
        zones = list(_POSIX_RESTRICTED)
        if system == "Darwin":
            zones.extend(_DARWIN_RESTRICTED)
    zones.extend(_CROSS_PLATFORM_RESTRICTED)
    return zones


def common_dev_directories(home: Path | None = None) -> list[str]:
    """Existing conventional development directories under ``home``."""
    home = home or Path.home()
    return [
        str(home / name) for name in _DEV_DIRECTORY_NAMES if (home / name).is_dir()
    ]
