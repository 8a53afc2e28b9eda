"""Tests for BridgeService, the IPC-facing handler layer."""

from __future__ import annotations

import pytest

from clibridge.core.facade import ExecutionFacade
from clibridge.core.service import BridgeService

pytestmark = pytest.mark.subprocess

UNAUTHENTICATED_CLI = """
case "$1" in
  --version) echo "1.0.42"; exit 0 ;;
  -p) if [ "$2" = "test" ]; then echo "Error: not authenticated" >&2; exit 1; fi ;;
esac
echo "should not run"
"""

PROBE_BROKEN_CLI = """
case "$1" in
  --version) echo "1.0.42"; exit 0 ;;
esac
echo "network unreachable" >&2
exit 1
"""

FAILING_CLI = """
case "$1" in
  --version) echo "1.0.42"; exit 0 ;;
  -p) if [ "$2" = "test" ]; then exit 0; fi ;;
esac
echo "model overloaded" >&2
exit 5
"""


class TestExecute:
    """Tests for the gated buffered execute()."""

    @pytest.mark.asyncio
    async def test_missing_tool_short_circuits(self, make_config, mocker):
        config = make_config()
        service = BridgeService(config)
        live = mocker.spy(service.resolver, "check_authentication")
        run = mocker.spy(service.facade, "execute")

        response = await service.execute("-p hi")

        assert response.success is False
        assert config.install_command in response.error
        assert response.error_type == "ToolNotInstalledError"
        live.assert_not_called()
        run.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_authenticated_never_spawns(self, make_tool, make_config, mocker):
        config = make_config(make_tool(UNAUTHENTICATED_CLI))
        service = BridgeService(config)
        run = mocker.spy(service.facade, "execute")

        response = await service.execute("-p hi")

        assert response.success is False
        assert response.error == f"Not authenticated. Please run: {config.login_command}"
        assert response.error_type == "NotAuthenticatedError"
        run.assert_not_called()

    @pytest.mark.asyncio
    async def test_probe_failure_never_spawns(self, make_tool, make_config, mocker):
        config = make_config(make_tool(PROBE_BROKEN_CLI))
        service = BridgeService(config)
        run = mocker.spy(service.facade, "execute")

        response = await service.execute("-p hi")

        assert response.success is False
        assert response.error_type == "ProcessExitError"
        assert response.error == "CLI error: network unreachable"
        run.assert_not_called()

    @pytest.mark.asyncio
    async def test_success(self, fake_cli, make_config):
        response = await BridgeService(make_config(fake_cli)).execute("-p hello")

        assert response.success is True
        assert response.output == "-p\nhello\n"
        assert response.code == 0

    @pytest.mark.asyncio
    async def test_exit_failure(self, make_tool, make_config):
        response = await BridgeService(make_config(make_tool(FAILING_CLI))).execute("-p hi")

        assert response.success is False
        assert response.code == 5
        assert response.error_type == "ProcessExitError"
        assert response.error == "model overloaded\n"


class TestExecuteStream:
    """Tests for channel-based streaming."""

    @pytest.mark.asyncio
    async def test_channels(self, make_tool, make_config):
        tool = make_tool("""printf '%s\\n' '{"type":"content","content":"Hi"}'""")
        emitted = []
        service = BridgeService(make_config(tool))

        response = await service.execute_stream(
            "-p hi", "r1", lambda channel, payload: emitted.append((channel, payload))
        )

        assert response.success is True
        assert emitted == [
            (f"{tool.name}:stream-data:r1", "Hi"),
            (f"{tool.name}:stream-complete:r1", None),
        ]

    @pytest.mark.asyncio
    async def test_failure_goes_to_error_channel(self, make_tool, make_config):
        tool = make_tool("exit 9")
        emitted = []
        service = BridgeService(make_config(tool))

        response = await service.execute_stream(
            "", "r2", lambda channel, payload: emitted.append((channel, payload))
        )

        assert response.success is False
        assert response.code == 9
        assert emitted == [(f"{tool.name}:stream-error:r2", "Process exited with code 9")]

    @pytest.mark.asyncio
    async def test_async_emitter(self, fake_cli, make_config):
        emitted = []

        async def emit(channel, payload):
            emitted.append(channel)

        await BridgeService(make_config(fake_cli)).execute_stream("-p x", "r3", emit)
        assert emitted[-1] == f"{fake_cli.name}:stream-complete:r3"


class TestStatusAndLogin:
    """Tests for check_cli(), check_oauth(), kill() and the login handlers."""

    @pytest.mark.asyncio
    async def test_check_cli(self, fake_cli, make_config):
        state = await BridgeService(make_config(fake_cli)).check_cli()
        assert state.installed is True
        assert state.authenticated is True

    @pytest.mark.asyncio
    async def test_check_oauth(self, make_config, write_token):
        write_token('{"access_token": "abc"}')
        status = await BridgeService(make_config()).check_oauth()
        assert status.exists is True

    def test_kill_without_session(self, make_config):
        assert BridgeService(make_config()).kill() is False

    def test_shared_facade(self, make_config):
        facade = ExecutionFacade(make_config())
        service = BridgeService(facade=facade)
        assert service.config is facade.config
        assert service.resolver is facade.resolver

    @pytest.mark.asyncio
    async def test_setup_oauth_failure(self, make_config):
        result = await BridgeService(make_config()).setup_oauth()
        assert result.success is False
        assert result.error

    @pytest.mark.asyncio
    async def test_open_auth_without_terminal(self, make_config, mocker):
        mocker.patch("clibridge.core.login.shutil.which", return_value=None)
        result = await BridgeService(make_config()).open_auth(platform="linux")

        assert result.success is False
        assert "No terminal emulator found" in result.error
