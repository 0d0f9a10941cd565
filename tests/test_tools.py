import json

import pytest
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from mcp_safezone.audit import InMemoryAuditTrail
from mcp_safezone.config import Settings
from mcp_safezone.sandbox import SecurityValidator
from mcp_safezone.tools import register_all_tools


def _text(result):
    # call_tool returns (content, structured) on newer SDKs
    if isinstance(result, tuple):
        result = result[0]
    return "".join(block.text for block in result)


@pytest.fixture
def workspace(tmp_path):
    base = tmp_path.resolve() / "work"
    base.mkdir()
    return base


@pytest.fixture
def trail():
    return InMemoryAuditTrail()


@pytest.fixture
def mcp(workspace, trail):
    settings = Settings(
        _env_file=None,
        safe_zones_raw=str(workspace),
        restricted_zones_raw="**/.ssh",
        include_platform_restricted_zones=False,
        allowed_commands_raw="ls,git",
        max_file_size_bytes=100,
    )
    server = FastMCP("test")
    validator = SecurityValidator.from_settings(settings, sinks=[trail])
    register_all_tools(server, settings, validator, trail)
    return server


@pytest.mark.asyncio
async def test_tools_registered(mcp):
    names = {tool.name for tool in await mcp.list_tools()}
    assert names == {
        "file_read",
        "file_write",
        "list_directory",
        "check_command",
        "security_info",
        "test_path_access",
        "audit_log",
    }


@pytest.mark.asyncio
async def test_write_then_read(mcp, workspace):
    target = workspace / "notes" / "todo.txt"
    result = await mcp.call_tool(
        "file_write", {"path": str(target), "content": "one\ntwo\nthree\n"}
    )
    assert "OK: Written 14 chars" in _text(result)
    assert target.read_text() == "one\ntwo\nthree\n"

    result = await mcp.call_tool(
        "file_read", {"path": str(target), "line_start": 2, "line_end": 2}
    )
    assert "two" in _text(result)
    assert "three" not in _text(result)


@pytest.mark.asyncio
async def test_append_respects_size_limit(mcp, workspace):
    target = workspace / "log.txt"
    target.write_text("x" * 90)
    result = await mcp.call_tool(
        "file_write", {"path": str(target), "content": "y" * 20, "mode": "append"}
    )
    assert "ERROR: Resulting file too large (110 bytes, max 100)" in _text(result)
    assert target.read_text() == "x" * 90


@pytest.mark.asyncio
async def test_read_too_large(mcp, workspace):
    (workspace / "big.bin").write_text("z" * 500)
    result = await mcp.call_tool("file_read", {"path": str(workspace / "big.bin")})
    assert "ERROR: File too large" in _text(result)


@pytest.mark.asyncio
async def test_read_outside_safe_zone_denied(mcp, workspace, trail):
    outside = workspace.parent / "outside.txt"
    outside.write_text("secret")
    with pytest.raises(ToolError, match="not within configured safe zones"):
        await mcp.call_tool("file_read", {"path": str(outside)})
    assert trail.summary()["by_type"] == {"path_denied": 1}


@pytest.mark.asyncio
async def test_write_into_restricted_zone_denied(mcp, workspace):
    with pytest.raises(ToolError, match="restricted zone"):
        await mcp.call_tool(
            "file_write",
            {"path": str(workspace / ".ssh" / "authorized_keys"), "content": "k"},
        )
    assert not (workspace / ".ssh").exists()


@pytest.mark.asyncio
async def test_write_through_symlink_after_traversal_denied(mcp, workspace):
    outside = workspace.parent / "outside"
    outside.mkdir()
    (workspace / "link").symlink_to(outside)
    with pytest.raises(ToolError, match="not within configured safe zones"):
        await mcp.call_tool(
            "file_write",
            {"path": str(workspace) + "/missing/../link/pwned.txt", "content": "x"},
        )
    assert not (outside / "pwned.txt").exists()


@pytest.mark.asyncio
async def test_list_directory(mcp, workspace):
    (workspace / "sub").mkdir()
    (workspace / "a.txt").write_text("a")
    result = _text(await mcp.call_tool("list_directory", {"path": str(workspace)}))
    assert "sub/" in result
    assert "a.txt" in result


@pytest.mark.asyncio
async def test_check_command(mcp):
    result = await mcp.call_tool("check_command", {"command": "git", "args": ["status"]})
    assert "OK: 'git' with 1 argument(s) passed validation" in _text(result)

    with pytest.raises(ToolError, match="Command not allowed: curl"):
        await mcp.call_tool("check_command", {"command": "curl", "args": ["x"]})


@pytest.mark.asyncio
async def test_security_info(mcp, workspace):
    result = _text(await mcp.call_tool("security_info", {}))
    assert str(workspace) in result
    assert "**/.ssh" in result


@pytest.mark.asyncio
async def test_path_access_diagnostic(mcp, workspace, trail):
    report = json.loads(
        _text(
            await mcp.call_tool(
                "test_path_access", {"path": str(workspace / ".ssh" / "id")}
            )
        )
    )
    assert report["allowed"] is False
    assert report["matched_restricted_zone"] == "**/.ssh"
    assert trail.recent() == []


@pytest.mark.asyncio
async def test_audit_log(mcp, workspace, trail):
    with pytest.raises(ToolError):
        await mcp.call_tool("check_command", {"command": "git", "args": ["a;b"]})

    report = json.loads(_text(await mcp.call_tool("audit_log", {"limit": 5})))
    assert report["summary"]["total"] == 1
    assert report["events"][0]["denial"] == "shell_metacharacter_blocked"
