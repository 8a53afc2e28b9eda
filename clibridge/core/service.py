"""Handler layer between the bridge and an outer IPC transport.

Every method returns a structured model; ExecutionError never escapes, so
the transport can forward results to the UI process as-is.

Streaming events go out through an `emit(channel, payload)` callable with
per-request channels:

    <tool>:stream-data:<request_id>      text of Content/RawText events
    <tool>:stream-error:<request_id>     text of Error events
    <tool>:stream-complete:<request_id>  None
"""

import logging
from collections.abc import Callable
from typing import Any

from clibridge.config import BridgeConfig
from clibridge.core.auth import auth_error
from clibridge.core.errors import ExecutionError, ProcessExitError, ToolNotInstalledError
from clibridge.core.facade import ExecutionFacade, StreamSinks
from clibridge.core.login import open_authentication_terminal, setup_oauth_token
from clibridge.core.models import (
    AuthState,
    ExecuteResponse,
    LoginResult,
    OAuthTokenStatus,
)

logger = logging.getLogger(__name__)

Emitter = Callable[[str, Any], Any]


class BridgeService:
    """One service per UI window; owns one ExecutionFacade."""

    def __init__(
        self,
        config: BridgeConfig | None = None,
        facade: ExecutionFacade | None = None,
    ):
        self.config = config or (facade.config if facade else BridgeConfig())
        self.facade = facade or ExecutionFacade(self.config)

    @property
    def resolver(self):
        return self.facade.resolver

    def channel(self, kind: str, request_id: str) -> str:
        return f"{self.config.tool_name}:stream-{kind}:{request_id}"

    async def check_cli(self) -> AuthState:
        """Installation status, merged with auth status when installed."""
        return await self.resolver.resolve()

    async def check_oauth(self) -> OAuthTokenStatus:
        return await self.resolver.check_oauth_token()

    async def execute(self, command: str) -> ExecuteResponse:
        """Gated buffered execution.

        Checks installation, then authentication, and only then spawns.
        A missing CLI short-circuits before the live auth probe.
        """
        install = await self.resolver.check_installation()
        if not install.installed:
            return self._failure(ToolNotInstalledError(install.error, install.install_command))

        auth = await self.resolver.check_authentication()
        error = auth_error(auth, self.config.login_command)
        if error is not None:
            return self._failure(error)

        try:
            result = await self.facade.execute(command)
        except ExecutionError as e:
            return self._failure(e)
        return ExecuteResponse(success=True, output=result.output, code=result.code)

    async def execute_stream(
        self,
        command: str,
        request_id: str,
        emit: Emitter,
    ) -> ExecuteResponse:
        """Streaming execution forwarding events to per-request channels.

        Not gated on authentication: the UI checks status before offering
        the prompt.
        """
        sinks = StreamSinks(
            on_data=lambda text: emit(self.channel("data", request_id), text),
            on_error=lambda text: emit(self.channel("error", request_id), text),
            on_complete=lambda _output: emit(self.channel("complete", request_id), None),
        )
        try:
            result = await self.facade.execute_command(command, sinks)
        except ExecutionError as e:
            return self._failure(e)
        return ExecuteResponse(success=True, output=result.output, code=result.code)

    def kill(self) -> bool:
        return self.facade.kill_active_process()

    async def setup_oauth(self) -> LoginResult:
        try:
            return await setup_oauth_token(self.config, self.resolver)
        except ExecutionError as e:
            logger.warning(f"setup-token failed: {e}")
            return LoginResult(success=False, error=str(e))

    async def open_auth(self, platform: str | None = None) -> LoginResult:
        try:
            return await open_authentication_terminal(self.config, platform)
        except ExecutionError as e:
            logger.warning(f"Could not open authentication terminal: {e}")
            return LoginResult(success=False, error=str(e))

    @staticmethod
    def _failure(error: ExecutionError) -> ExecuteResponse:
        code = error.exit_code if isinstance(error, ProcessExitError) else None
        return ExecuteResponse(
            success=False,
            error=str(error),
            error_type=type(error).__name__,
            code=code,
        )
