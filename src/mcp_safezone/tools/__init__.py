from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from mcp_safezone.audit import InMemoryAuditTrail
    from mcp_safezone.config import Settings
    from mcp_safezone.sandbox import SecurityValidator


def register_all_tools(
    mcp: FastMCP,
    settings: Settings,
    validator: SecurityValidator,
    audit_trail: InMemoryAuditTrail,
) -> None:
    """Register all MCP tools with the server."""
    from mcp_safezone.tools.command_check import register as reg_command
    from mcp_safezone.tools.file_ops import register as reg_file
    from mcp_safezone.tools.security_diagnostics import register as reg_diagnostics

    reg_file(mcp, settings, validator)
    reg_command(mcp, validator)
    reg_diagnostics(mcp, validator, audit_trail)
