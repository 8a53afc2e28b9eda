"""Core modules for the CLI bridge."""

from clibridge.core.auth import AuthenticationResolver, auth_error
from clibridge.core.errors import (
    ExecutionError,
    NotAuthenticatedError,
    ProcessExitError,
    ProcessKilledError,
    SessionBusyError,
    SpawnError,
    ToolNotInstalledError,
)
from clibridge.core.facade import CommandStream, ExecutionFacade, StreamSinks
from clibridge.core.models import AuthState, CommandOutput, StreamEvent, StreamEventType
from clibridge.core.service import BridgeService
from clibridge.core.tokenizer import tokenize_command

__all__ = [
    "AuthState",
    "AuthenticationResolver",
    "BridgeService",
    "CommandOutput",
    "CommandStream",
    "ExecutionError",
    "ExecutionFacade",
    "NotAuthenticatedError",
    "ProcessExitError",
    "ProcessKilledError",
    "SessionBusyError",
    "SpawnError",
    "StreamEvent",
    "StreamEventType",
    "StreamSinks",
    "ToolNotInstalledError",
    "auth_error",
    "tokenize_command",
]
