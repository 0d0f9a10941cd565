from __future__ import annotations

from typing import TYPE_CHECKING

from mcp_safezone.audit import get_logger

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from mcp_safezone.sandbox import SecurityValidator


def register(mcp: FastMCP, validator: SecurityValidator) -> None:

    @mcp.tool()
    async def check_command(command: str, args: list[str] | None = None) -> str:
        """Check whether a command line would be allowed to run.

        Nothing is executed. A denied command raises an error whose
        message is the denial reason.

        Args:
            command: Program name, e.g. "ls"
            args: Arguments, one list item per argument
        """
        args = args or []
        validator.validate_command(command, args)
        get_logger("check_command").info(
            "command_allowed", command=command, arg_count=len(args)
        )
        return f"OK: '{command}' with {len(args)} argument(s) passed validation"
