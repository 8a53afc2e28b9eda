"""Data models for the CLI bridge.

Uses Pydantic so every record handed to the UI layer is validated and
serializes cleanly over IPC.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class StreamEventType(str, Enum):
    """Classification of one unit of CLI output."""

    CONTENT = "content"
    ERROR = "error"
    RAW_TEXT = "raw_text"


class StreamSource(str, Enum):
    """Pipe an event was read from."""

    STDOUT = "stdout"
    STDERR = "stderr"


class SessionState(str, Enum):
    """Lifecycle of one facade invocation."""

    IDLE = "idle"
    SPAWNING = "spawning"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    KILLED = "killed"


class AuthFailureKind(str, Enum):
    """Why an AuthState is not usable."""

    NOT_INSTALLED = "not_installed"
    NOT_AUTHENTICATED = "not_authenticated"
    PROBE_FAILED = "probe_failed"


# --- Stream Models ---


class StreamEvent(BaseModel):
    """One classified unit of incremental output."""

    type: StreamEventType
    text: str
    source: StreamSource = StreamSource.STDOUT

    @classmethod
    def content(cls, text: str) -> "StreamEvent":
        return cls(type=StreamEventType.CONTENT, text=text)

    @classmethod
    def error(cls, text: str, source: StreamSource = StreamSource.STDOUT) -> "StreamEvent":
        return cls(type=StreamEventType.ERROR, text=text, source=source)

    @classmethod
    def raw(cls, text: str) -> "StreamEvent":
        return cls(type=StreamEventType.RAW_TEXT, text=text)

    @property
    def is_error(self) -> bool:
        return self.type == StreamEventType.ERROR


class CommandOutput(BaseModel):
    """Successful result of an execution."""

    success: bool = True
    output: str
    code: int = 0


class ExecuteResponse(BaseModel):
    """Structured result handed to the IPC layer. Never raised."""

    success: bool
    output: str | None = None
    error: str | None = None
    error_type: str | None = None  # ExecutionError subclass name, e.g. "NotAuthenticatedError"
    code: int | None = None


# --- Authentication Models ---


class InstallStatus(BaseModel):
    """Result of the installation probe."""

    installed: bool
    version: str | None = None
    path: str | None = None
    error: str | None = None
    install_command: str | None = None


class OAuthTokenStatus(BaseModel):
    """Result of the OAuth token file lookup.

    SECURITY: the token itself is excluded from repr and serialization so it
    never ends up in logs or IPC payloads.
    """

    exists: bool = False
    token: str | None = Field(default=None, repr=False, exclude=True)
    path: str | None = None


class AuthState(BaseModel):
    """Installed/authenticated state, computed fresh per call."""

    installed: bool
    version: str | None = None
    authenticated: bool = False
    has_oauth_token: bool = False
    oauth_token_path: str | None = None
    error: str | None = None
    failure: AuthFailureKind | None = None
    install_command: str | None = None


class LoginResult(BaseModel):
    """Outcome of the login flow."""

    success: bool
    has_token: bool = False
    token_path: str | None = None
    error: str | None = None


# --- Prompt Models ---


class ChatMessage(BaseModel):
    """A single message of a conversation being turned into a prompt."""

    role: str
    content: str


class PromptContext(BaseModel):
    """Editor context prepended to a formatted prompt."""

    model_config = {"extra": "allow"}

    project_name: str | None = None
    current_file: str | None = None
    selected_code: str | None = None

    @classmethod
    def from_any(cls, value: "PromptContext | dict[str, Any] | None") -> "PromptContext":
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        return cls.model_validate(value)
