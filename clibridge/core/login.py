"""Login flow: the recovery path for NotAuthenticatedError.

Either run `<tool> setup-token` attached to the current terminal, or open a
new terminal window running the login command for GUI callers.
"""

import asyncio
import logging
import shutil
import sys

from clibridge.config import BridgeConfig
from clibridge.core.auth import AuthenticationResolver
from clibridge.core.errors import ProcessExitError, SpawnError
from clibridge.core.models import LoginResult
from clibridge.core.tokenizer import tokenize_command

logger = logging.getLogger(__name__)

# Linux terminal emulators in preference order, with the flag that
# introduces the command to run
LINUX_TERMINALS: list[tuple[str, str]] = [
    ("x-terminal-emulator", "-e"),
    ("gnome-terminal", "--"),
    ("konsole", "-e"),
    ("xterm", "-e"),
]


def terminal_command(login_command: str, platform: str | None = None) -> list[str]:
    """Build the argv that opens a terminal running login_command.

    Raises:
        SpawnError: If no supported terminal emulator is installed (Linux)
    """
    platform = platform or sys.platform

    if platform == "darwin":
        return ["osascript", "-e", f'tell app "Terminal" to do script "{login_command}"']

    if platform == "win32":
        return ["cmd", "/c", "start", "cmd", "/k", login_command]

    for terminal, flag in LINUX_TERMINALS:
        path = shutil.which(terminal)
        if path:
            return [path, flag, *tokenize_command(login_command)]

    raise SpawnError(
        "No terminal emulator found. "
        f"Run `{login_command}` in a terminal to authenticate."
    )


async def open_authentication_terminal(
    config: BridgeConfig | None = None,
    platform: str | None = None,
) -> LoginResult:
    """Open a terminal window running the CLI's login command.

    Resolves when the launcher exits. Launchers that hand off to a running
    terminal (osascript, gnome-terminal) return at once; xterm-style
    emulators return when the window is closed.

    Raises:
        SpawnError: If no terminal can be started
        ProcessExitError: If the launcher fails
    """
    config = config or BridgeConfig()
    argv = terminal_command(config.login_command, platform)

    try:
        process = await asyncio.create_subprocess_exec(*argv)
    except OSError as e:
        raise SpawnError(f"Failed to open terminal: {e}") from e

    returncode = await process.wait()
    if returncode != 0:
        raise ProcessExitError(returncode, message=f"Terminal launcher exited with code {returncode}")

    logger.info(f"Opened terminal for `{config.login_command}`")
    return LoginResult(success=True)


async def setup_oauth_token(
    config: BridgeConfig | None = None,
    resolver: AuthenticationResolver | None = None,
) -> LoginResult:
    """Run `<tool> setup-token` interactively, then re-check the token file.

    stdio is inherited so the user can complete the CLI's prompts.

    Raises:
        SpawnError: If the CLI cannot be started
        ProcessExitError: If setup-token exits non-zero
    """
    config = config or BridgeConfig()
    resolver = resolver or AuthenticationResolver(config)

    try:
        process = await asyncio.create_subprocess_exec(config.tool, "setup-token")
    except OSError as e:
        raise SpawnError(f"Failed to start {config.tool_name}: {e}") from e

    returncode = await process.wait()
    if returncode != 0:
        raise ProcessExitError(
            returncode,
            message=f"{config.tool_name} setup-token exited with code {returncode}",
        )

    oauth = await resolver.check_oauth_token()
    return LoginResult(success=True, has_token=oauth.exists, token_path=oauth.path)
