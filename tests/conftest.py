# conftest.py - Shared pytest fixtures for all tests
"""Shared pytest fixtures for the clibridge test suite.

The external CLI is replaced by small executable /bin/sh scripts written to
tmp_path, so subprocess tests exercise real pipes, exit codes and signals
without needing the actual tool installed.

Usage:
    def test_something(make_tool, make_config):
        tool = make_tool('echo hello')
        config = make_config(tool)
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import pytest

from clibridge.config import BridgeConfig

# Standard fake CLI: answers --version, passes the live auth probe, and
# prints its arguments one per line for everything else.
FAKE_CLI = """
case "$1" in
  --version) echo "1.0.42 (Claude Code)"; exit 0 ;;
  -p) if [ "$2" = "test" ]; then echo '{"result": "ok"}'; exit 0; fi ;;
esac
printf '%s\\n' "$@"
"""


def pytest_collection_modifyitems(config, items):
    if sys.platform == "win32":
        skip = pytest.mark.skip(reason="fake CLI scripts need a POSIX shell")
        for item in items:
            if "subprocess" in item.keywords:
                item.add_marker(skip)


# =============================================================================
# Fake CLI Fixtures
# =============================================================================


@pytest.fixture
def make_tool(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing an executable shell script that stands in for the CLI.

    Returns:
        Callable taking the script body (and optional name), returning its path.
    """

    def _make(body: str, name: str = "fake-claude") -> Path:
        script = tmp_path / "bin" / name
        script.parent.mkdir(exist_ok=True)
        script.write_text("#!/bin/sh\n" + body.lstrip("\n"))
        script.chmod(0o755)
        return script

    return _make


@pytest.fixture
def fake_cli(make_tool) -> Path:
    """Well-behaved, authenticated CLI that echoes its arguments."""
    return make_tool(FAKE_CLI)


@pytest.fixture
def claude_dir(tmp_path: Path) -> Path:
    """Per-user CLI config directory (created, empty)."""
    path = tmp_path / ".claude"
    path.mkdir()
    return path


@pytest.fixture
def make_config(claude_dir: Path) -> Callable[..., BridgeConfig]:
    """Factory for a BridgeConfig pointing at a fake tool and tmp credentials."""

    def _make(tool: Path | str | None = None, **overrides: Any) -> BridgeConfig:
        values: dict[str, Any] = {
            "tool": str(tool) if tool is not None else str(claude_dir / "missing-cli"),
            "config_dir": claude_dir,
            "probe_timeout": 10.0,
        }
        values.update(overrides)
        return BridgeConfig(**values)

    return _make


@pytest.fixture
def write_token(claude_dir: Path) -> Callable[[str], Path]:
    """Write raw content to the OAuth token file."""

    def _write(content: str) -> Path:
        path = claude_dir / "oauth_token.json"
        path.write_text(content)
        return path

    return _write


@pytest.fixture(autouse=True)
def _no_inherited_token(monkeypatch):
    """Keep a developer's real token out of child environments."""
    monkeypatch.delenv("CLAUDE_CODE_OAUTH_TOKEN", raising=False)
