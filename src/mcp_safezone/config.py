from __future__ import annotations

import re
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mcp_safezone.commands import AllowedCommands, parse_allowed_commands
from mcp_safezone.platform_defaults import (
    common_dev_directories,
    default_restricted_zones,
)
from mcp_safezone.zones import ContainmentMode


def _split(raw: str) -> list[str]:
    return [p.strip() for p in raw.split(",") if p.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Zones: raw comma-separated strings, parsed in model_post_init
    safe_zones_raw: str = "."
    restricted_zones_raw: str = ""
    include_platform_restricted_zones: bool = True
    auto_expand_safe_zones: bool = False
    safe_zone_mode: ContainmentMode = ContainmentMode.RECURSIVE

    # Parsed versions (set in model_post_init)
    safe_zones: list[str] = []
    restricted_zones: list[str] = []

    # Commands: "all" or a comma-separated allow-list
    allowed_commands_raw: str = "echo,ls,cat"
    # Regexes contain commas and pipes, so this one is a JSON list in the env
    unsafe_argument_patterns: list[str] = []

    # Limits
    max_execution_time_ms: int = 30_000
    max_file_size_bytes: int = 10 * 1024 * 1024

    # Server
    host: str = "127.0.0.1"
    port: int = 8787
    log_level: str = "INFO"

    # Audit
    log_dir: Path = Path.home() / ".local/share/mcp-safezone"
    max_log_size_mb: int = 50

    @field_validator("unsafe_argument_patterns")
    @classmethod
    def _patterns_compile(cls, patterns: list[str]) -> list[str]:
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(
                    f"Invalid unsafe argument pattern {pattern!r}: {exc}"
                ) from exc
        return patterns

    @field_validator("max_execution_time_ms", "max_file_size_bytes")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    def model_post_init(self, __context: object) -> None:
        if not self.safe_zones:
            zones = _split(self.safe_zones_raw)
            if self.auto_expand_safe_zones:
                zones.extend(common_dev_directories())
            self.safe_zones = zones
        if not self.restricted_zones:
            zones = []
            if self.include_platform_restricted_zones:
                zones.extend(default_restricted_zones())
            zones.extend(_split(self.restricted_zones_raw))
            self.restricted_zones = zones

    @property
    def allowed_commands(self) -> AllowedCommands:
        return parse_allowed_commands(self.allowed_commands_raw)


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
