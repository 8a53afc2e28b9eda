"""Execution facade: tokenize, spawn, stream, resolve.

Two public shapes over one pipeline:

- execute(): buffered, resolves with the full stdout on exit
- execute_command() / stream_command(): every StreamEvent is forwarded as
  it is parsed, either to StreamSinks callbacks or through an async
  iterator

Authentication is NOT checked here. Callers that want a gate run the
AuthenticationResolver first (see BridgeService).
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from clibridge.config import BridgeConfig, BusyPolicy
from clibridge.core.auth import AuthenticationResolver
from clibridge.core.errors import (
    ExecutionError,
    ProcessExitError,
    ProcessKilledError,
    SessionBusyError,
)
from clibridge.core.models import CommandOutput, SessionState, StreamEvent
from clibridge.core.stream import StreamingResponseParser
from clibridge.core.tokenizer import ensure_flag, tokenize_command
from clibridge.process.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

EventSink = Callable[[StreamEvent], Awaitable[None]]


async def _maybe_await(value: Any) -> None:
    if inspect.isawaitable(value):
        await value


@dataclass
class StreamSinks:
    """Callbacks consumed by the IPC layer. Each may be sync or async.

    on_data receives Content and RawText text, on_error receives Error text
    (including stderr chunks and the final failure message), on_complete
    receives the aggregated stdout once the process exits cleanly.
    """

    on_data: Callable[[str], Any] | None = None
    on_error: Callable[[str], Any] | None = None
    on_complete: Callable[[str], Any] | None = None

    async def dispatch(self, event: StreamEvent) -> None:
        handler = self.on_error if event.is_error else self.on_data
        if handler is not None:
            await _maybe_await(handler(event.text))

    async def complete(self, output: str) -> None:
        if self.on_complete is not None:
            await _maybe_await(self.on_complete(output))

    async def fail(self, message: str) -> None:
        if self.on_error is not None:
            await _maybe_await(self.on_error(message))


@dataclass
class ExecutionSession:
    """State of the one live invocation a facade may own."""

    process: asyncio.subprocess.Process
    parser: StreamingResponseParser
    sink: EventSink | None = None
    killed: bool = False


_DONE = object()


def _consume_result(task: "asyncio.Future[CommandOutput]") -> None:
    # Marks the outcome retrieved for callers that never await result()
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"Command stream ended with {type(error).__name__}")


class CommandStream:
    """Async iterator over the events of one invocation.

    USAGE:
        stream = facade.stream_command("-p 'hello'")
        async for event in stream:
            ...
        result = await stream.result()  # CommandOutput, or raises
    """

    def __init__(self, runner: Callable[[EventSink], Awaitable[CommandOutput]]):
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._exhausted = False
        self._task = asyncio.ensure_future(self._drive(runner))
        self._task.add_done_callback(_consume_result)

    async def _drive(self, runner: Callable[[EventSink], Awaitable[CommandOutput]]) -> CommandOutput:
        try:
            return await runner(self._queue.put)
        finally:
            self._queue.put_nowait(_DONE)

    def __aiter__(self) -> "CommandStream":
        return self

    async def __anext__(self) -> StreamEvent:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _DONE:
            self._exhausted = True
            raise StopAsyncIteration
        return item

    async def result(self) -> CommandOutput:
        """Wait for the process to exit. Raises the execution's ExecutionError."""
        return await self._task


class ExecutionFacade:
    """Run the CLI and bridge its output. Owns at most one live session.

    Concurrent calls follow config.busy_policy: REJECT raises
    SessionBusyError, SERIALIZE waits for the running call to finish.
    """

    def __init__(
        self,
        config: BridgeConfig | None = None,
        resolver: AuthenticationResolver | None = None,
        supervisor: ProcessSupervisor | None = None,
    ):
        self.config = config or BridgeConfig()
        self.resolver = resolver or AuthenticationResolver(self.config)
        self.supervisor = supervisor or ProcessSupervisor(self.config)
        self._lock = asyncio.Lock()
        self._session: ExecutionSession | None = None
        self._kill_pending = False
        self._state = SessionState.IDLE
        self.last_outcome: SessionState | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    # --- Public operations ---

    async def execute(self, command_text: str, cwd: Path | str | None = None) -> CommandOutput:
        """Run a command and return its full stdout. No incremental output.

        Raises:
            SpawnError: If the CLI cannot be started
            ProcessExitError: If it exits non-zero (ProcessKilledError if killed)
            SessionBusyError: If another call is active under the reject policy
        """
        args = tokenize_command(command_text)
        return await self._run(args, None, cwd)

    async def execute_command(
        self,
        command_text: str,
        sinks: StreamSinks | None = None,
        cwd: Path | str | None = None,
    ) -> CommandOutput:
        """Run a command, forwarding each StreamEvent to sinks as it arrives.

        Appends the default streaming output format when the command does
        not choose one. Raises the same errors as execute(), after reporting
        the failure message to sinks.on_error.
        """
        sinks = sinks or StreamSinks()
        args = self._streaming_args(command_text)
        try:
            result = await self._run(args, sinks.dispatch, cwd)
        except ExecutionError as e:
            await sinks.fail(str(e))
            raise
        await sinks.complete(result.output)
        return result

    def stream_command(self, command_text: str, cwd: Path | str | None = None) -> CommandStream:
        """Start a command and iterate its events. Must be called inside a running loop."""
        args = self._streaming_args(command_text)
        return CommandStream(lambda sink: self._run(args, sink, cwd))

    def kill_active_process(self) -> bool:
        """Terminate the running session. Returns False if nothing was running.

        A call made while the process is still being spawned is recorded and
        applied as soon as the spawn returns.
        """
        session = self._session
        if session is None:
            if self._state == SessionState.SPAWNING:
                # Applied as soon as spawn returns
                self._kill_pending = True
                return True
            return False
        if not self.supervisor.kill(session.process):
            return False
        session.killed = True
        self._state = SessionState.KILLED
        return True

    # --- Pipeline ---

    def _streaming_args(self, command_text: str) -> list[str]:
        return ensure_flag(
            tokenize_command(command_text),
            self.config.output_format_flag,
            self.config.default_output_format,
        )

    async def _run(
        self,
        args: list[str],
        sink: EventSink | None,
        cwd: Path | str | None,
    ) -> CommandOutput:
        # Check and acquire happen without yielding, so two callers can't
        # both see an idle facade.
        if self.config.busy_policy == BusyPolicy.REJECT and self._lock.locked():
            raise SessionBusyError(
                "A command is already running; kill it or wait for it to finish"
            )
        async with self._lock:
            return await self._run_session(args, sink, cwd)

    async def _run_session(
        self,
        args: list[str],
        sink: EventSink | None,
        cwd: Path | str | None,
    ) -> CommandOutput:
        self._state = SessionState.SPAWNING
        self._kill_pending = False
        try:
            env = await self._token_env()
            process = await self.supervisor.spawn(args, env, cwd)
        except ExecutionError:
            self._kill_pending = False
            self._finish(SessionState.FAILED)
            raise

        parser = StreamingResponseParser()
        session = ExecutionSession(process=process, parser=parser, sink=sink)
        self._session = session
        self._state = SessionState.STREAMING
        if self._kill_pending:
            self._kill_pending = False
            self.kill_active_process()

        try:
            await self._drain(process, parser, sink)
            await self._emit(parser.finish(), sink)
            returncode = await process.wait()
        except Exception:
            # A sink raised: don't leave the child running
            self.supervisor.kill(process)
            await process.wait()
            self._finish(SessionState.FAILED)
            raise
        except BaseException:
            # Cancelled: signal only, the loop may be shutting down
            self.supervisor.kill(process)
            self._finish(SessionState.FAILED)
            raise
        finally:
            self.supervisor.release(process)
            self._session = None

        if session.killed and returncode != 0:
            self._finish(SessionState.KILLED)
            raise ProcessKilledError(returncode, parser.error_output)

        if returncode != 0:
            logger.info(f"{self.config.tool_name} exited with code {returncode}")
            self._finish(SessionState.FAILED)
            raise ProcessExitError(returncode, parser.error_output)

        self._finish(SessionState.COMPLETED)
        return CommandOutput(output=parser.output, code=returncode)

    async def _drain(
        self,
        process: asyncio.subprocess.Process,
        parser: StreamingResponseParser,
        sink: EventSink | None,
    ) -> None:
        """Pump stdout and stderr concurrently until both reach EOF.

        If either pump fails, the other is cancelled and awaited so it can't
        reach the sink after the session is torn down.
        """
        pumps = [
            asyncio.ensure_future(self._pump(process.stdout, parser.feed_stdout, sink)),
            asyncio.ensure_future(self._pump(process.stderr, parser.feed_stderr, sink)),
        ]
        try:
            await asyncio.gather(*pumps)
        except BaseException:
            for pump in pumps:
                pump.cancel()
            await asyncio.gather(*pumps, return_exceptions=True)
            raise

    async def _pump(
        self,
        stream: asyncio.StreamReader,
        feed: Callable[[bytes], list[StreamEvent]],
        sink: EventSink | None,
    ) -> None:
        while True:
            chunk = await stream.read(self.config.read_chunk_size)
            if not chunk:
                return
            await self._emit(feed(chunk), sink)

    @staticmethod
    async def _emit(events: list[StreamEvent], sink: EventSink | None) -> None:
        if sink is None:
            return
        for event in events:
            await sink(event)

    async def _token_env(self) -> dict[str, str]:
        """Child-only env carrying the cached OAuth token, if there is one."""
        oauth = await self.resolver.check_oauth_token()
        if oauth.exists and oauth.token:
            logger.info(f"Using OAuth token from {oauth.path}")
            return {self.config.token_env_var: oauth.token}
        return {}

    def _finish(self, outcome: SessionState) -> None:
        self.last_outcome = outcome
        self._state = SessionState.IDLE
