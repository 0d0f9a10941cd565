from __future__ import annotations

import json
from dataclasses import asdict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from mcp_safezone.audit import InMemoryAuditTrail
    from mcp_safezone.sandbox import SecurityValidator


def register(
    mcp: FastMCP,
    validator: SecurityValidator,
    audit_trail: InMemoryAuditTrail,
) -> None:

    @mcp.tool()
    async def security_info() -> str:
        """Show the active safe zones, restricted zones, allow-list and pattern counts."""
        return json.dumps(validator.security_info(), indent=2)

    @mcp.tool()
    async def test_path_access(path: str) -> str:
        """Explain whether a path would be allowed, without raising.

        Args:
            path: Path to check
        """
        return json.dumps(asdict(validator.test_path_access(path)), indent=2)

    @mcp.tool()
    async def audit_log(limit: int = 20) -> str:
        """Recent security events and totals by type and severity.

        Args:
            limit: Number of most recent events to include (default 20, max 500)
        """
        limit = max(0, min(limit, 500))
        return json.dumps(
            {
                "summary": audit_trail.summary(),
                "events": [
                    e.model_dump(mode="json") for e in audit_trail.recent(limit)
                ],
            },
            indent=2,
        )
