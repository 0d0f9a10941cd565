"""MCP Safezone server entry point."""

from __future__ import annotations

import uvicorn
from dotenv import load_dotenv
from starlette.requests import Request
from starlette.responses import JSONResponse

from mcp.server.fastmcp import FastMCP

from mcp_safezone.audit import InMemoryAuditTrail, get_logger, setup_logging
from mcp_safezone.config import get_settings
from mcp_safezone.sandbox import SecurityValidator
from mcp_safezone.tools import register_all_tools


def create_app() -> tuple:
    """Create and configure the MCP server application."""
    load_dotenv()
    settings = get_settings()

    setup_logging(settings.log_dir, settings.log_level, settings.max_log_size_mb)
    logger = get_logger("server")
    logger.info("server_starting", host=settings.host, port=settings.port)

    # Immutable snapshot; a config change means a restart
    audit_trail = InMemoryAuditTrail()
    validator = SecurityValidator.from_settings(settings, sinks=[audit_trail])

    mcp = FastMCP(
        name="mcp-safezone",
        instructions=(
            "This server exposes file tools confined to configured safe zones. "
            "Use check_command to learn whether a command line would be allowed "
            "and test_path_access to learn why a path is or is not reachable."
        ),
        host=settings.host,
        port=settings.port,
    )

    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> JSONResponse:
        return JSONResponse({
            "status": "ok",
            "server": "mcp-safezone",
            "version": "0.1.0",
        })

    register_all_tools(mcp, settings, validator, audit_trail)

    app = mcp.streamable_http_app()

    info = validator.security_info()
    logger.info(
        "server_configured",
        safe_zones=[z["root"] for z in info["safe_zones"]],
        restricted_zone_count=len(info["restricted_zones"]),
        allowed_commands=info["allowed_commands"],
        max_execution_time_ms=settings.max_execution_time_ms,
        max_file_size_bytes=settings.max_file_size_bytes,
    )

    return app, settings


def main() -> None:
    """Entry point for the server."""
    app, settings = create_app()
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
