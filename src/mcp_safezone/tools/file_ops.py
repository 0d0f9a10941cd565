from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from mcp_safezone.config import Settings
    from mcp_safezone.sandbox import SecurityValidator


def register(
    mcp: FastMCP,
    settings: Settings,
    validator: SecurityValidator,
) -> None:

    @mcp.tool()
    async def file_read(
        path: str,
        line_start: int | None = None,
        line_end: int | None = None,
    ) -> str:
        """Read a text file inside a safe zone.

        Args:
            path: Absolute, relative or ~ path to the file
            line_start: Optional start line (1-based, inclusive)
            line_end: Optional end line (1-based, inclusive)
        """
        resolved = Path(validator.validate_path(path))

        if not resolved.is_file():
            return f"ERROR: '{resolved}' is not a file or does not exist"

        size = resolved.stat().st_size
        if size > settings.max_file_size_bytes:
            return (
                f"ERROR: File too large ({size} bytes, "
                f"max {settings.max_file_size_bytes})"
            )

        content = resolved.read_text(encoding="utf-8", errors="replace")

        if line_start is not None or line_end is not None:
            lines = content.splitlines(keepends=True)
            start = (line_start or 1) - 1
            end = line_end or len(lines)
            content = "".join(lines[start:end])

        return content

    @mcp.tool()
    async def file_write(
        path: str,
        content: str,
        mode: str = "overwrite",
    ) -> str:
        """Write content to a file inside a safe zone.

        Args:
            path: Absolute, relative or ~ path to the file
            content: Content to write
            mode: "overwrite" (default) or "append"
        """
        resolved = Path(validator.validate_path(path))

        size = len(content.encode("utf-8"))
        if mode == "append" and resolved.is_file():
            size += resolved.stat().st_size
        if size > settings.max_file_size_bytes:
            return (
                f"ERROR: Resulting file too large ({size} bytes, "
                f"max {settings.max_file_size_bytes})"
            )

        resolved.parent.mkdir(parents=True, exist_ok=True)

        if mode == "append":
            with open(resolved, "a", encoding="utf-8") as f:
                f.write(content)
        else:
            resolved.write_text(content, encoding="utf-8")

        return f"OK: Written {len(content)} chars to {resolved}"

    @mcp.tool()
    async def list_directory(path: str = ".") -> str:
        """List a directory inside a safe zone, directories first.

        Args:
            path: Directory to list
        """
        resolved = Path(validator.validate_path(path))

        if not resolved.is_dir():
            return f"ERROR: '{resolved}' is not a directory"

        entries = sorted(resolved.iterdir(), key=lambda p: (not p.is_dir(), p.name))
        lines = [f"{e.name}/" if e.is_dir() else e.name for e in entries]
        return "\n".join(lines) if lines else "(empty)"
