"""Spawn/kill ownership for the wrapped CLI process.

A ProcessSupervisor tracks at most one live child. The child belongs to the
OS; the supervisor only keeps a handle so it can be signalled. There is no
module-level process state: every facade owns its own supervisor.
"""

import asyncio
import logging
import os
from pathlib import Path

from clibridge.config import BridgeConfig
from clibridge.core.errors import SessionBusyError, SpawnError

logger = logging.getLogger(__name__)


class ProcessSupervisor:
    """Launch and terminate the external CLI."""

    def __init__(self, config: BridgeConfig | None = None):
        self.config = config or BridgeConfig()
        self._process: asyncio.subprocess.Process | None = None

    @property
    def process(self) -> asyncio.subprocess.Process | None:
        """The tracked child, if any."""
        return self._process

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def spawn(
        self,
        args: list[str],
        env_overrides: dict[str, str] | None = None,
        cwd: Path | str | None = None,
    ) -> asyncio.subprocess.Process:
        """Start `<tool> *args` with piped stdout/stderr.

        SECURITY: env_overrides are merged into the child's environment only
        and are never logged. The parent environment is left untouched.

        Args:
            args: Tokenized arguments (the tool itself is prepended)
            env_overrides: Extra variables for the child (e.g. the OAuth token)
            cwd: Working directory for the child

        Raises:
            SessionBusyError: If a live process is already tracked
            SpawnError: If the OS cannot create the process
        """
        if self.is_running:
            raise SessionBusyError(
                f"A {self.config.tool_name} process is already running "
                f"(pid {self._process.pid}); kill it or wait for it to finish"
            )

        env = dict(os.environ)
        if env_overrides:
            env.update(env_overrides)

        try:
            process = await asyncio.create_subprocess_exec(
                self.config.tool,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                cwd=cwd,
            )
        except OSError as e:
            logger.warning(f"Failed to start {self.config.tool_name}: {e}")
            raise SpawnError(f"Failed to start {self.config.tool_name}: {e}") from e

        self._process = process
        # Log argument count only: prompts can carry sensitive text
        logger.info(f"Started {self.config.tool_name} (pid {process.pid}, {len(args)} args)")
        return process

    def kill(self, process: asyncio.subprocess.Process | None = None) -> bool:
        """Signal a process to terminate. Idempotent, never raises.

        Args:
            process: Process to signal (defaults to the tracked one)

        Returns:
            True if a signal was delivered to a live process, False if there
            was nothing to kill.
        """
        target = process or self._process
        if target is None or target.returncode is not None:
            return False

        try:
            target.send_signal(self.config.kill_signal)
        except OSError as e:  # ProcessLookupError: already reaped
            logger.debug(f"Kill of pid {target.pid} skipped: {e}")
            return False

        logger.info(f"Sent signal {self.config.kill_signal} to pid {target.pid}")
        return True

    def release(self, process: asyncio.subprocess.Process) -> None:
        """Stop tracking a process once it has exited."""
        if self._process is process:
            self._process = None
