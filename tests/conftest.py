import pytest

from fakes import FakeFilesystem, RecordingSink
from mcp_safezone.audit import SecurityEventAuditor
from mcp_safezone.commands import parse_allowed_commands
from mcp_safezone.paths import PathCanonicalizer
from mcp_safezone.patterns import PatternCatalog
from mcp_safezone.sandbox import SecurityValidator
from mcp_safezone.zones import ContainmentMode, ZoneRegistry


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_validator(sink):
    def _make(
        safe_zones=("/repo",),
        restricted=(),
        mode=ContainmentMode.RECURSIVE,
        allowed="ls,cat,echo,bash,powershell,cmd,wsl",
        unsafe_patterns=(),
        filesystem=None,
    ):
        canonicalizer = PathCanonicalizer(
            filesystem or FakeFilesystem(existing=list(safe_zones))
        )
        registry = ZoneRegistry.build(
            safe_zones, restricted, mode, canonicalizer.resolve
        )
        return SecurityValidator(
            registry,
            parse_allowed_commands(allowed),
            PatternCatalog.build(unsafe_patterns),
            SecurityEventAuditor([sink]),
            canonicalizer,
        )

    return _make
