"""Tests for data models."""

from clibridge.core.errors import ProcessExitError, ProcessKilledError, ToolNotInstalledError
from clibridge.core.models import (
    AuthState,
    OAuthTokenStatus,
    StreamEvent,
    StreamEventType,
    StreamSource,
)


class TestStreamEvent:
    """Tests for StreamEvent constructors."""

    def test_content(self):
        event = StreamEvent.content("Hi")
        assert event.type == StreamEventType.CONTENT
        assert event.source == StreamSource.STDOUT
        assert event.is_error is False

    def test_stderr_error(self):
        event = StreamEvent.error("oops", source=StreamSource.STDERR)
        assert event.is_error is True
        assert event.model_dump(mode="json") == {
            "type": "error",
            "text": "oops",
            "source": "stderr",
        }


class TestOAuthTokenStatus:
    """The token must never leave the process."""

    def test_token_hidden(self):
        status = OAuthTokenStatus(exists=True, token="s3cret", path="/tmp/t.json")

        assert status.token == "s3cret"
        assert "s3cret" not in repr(status)
        assert "token" not in status.model_dump()


class TestAuthState:
    def test_json_roundtrip_keeps_failure(self):
        state = AuthState(installed=False, failure="not_installed", error="missing")
        restored = AuthState.model_validate_json(state.model_dump_json())
        assert restored == state


class TestErrors:
    """Tests for exception messages and attributes."""

    def test_exit_message_priority(self):
        assert str(ProcessExitError(1, "stderr text")) == "stderr text"
        assert str(ProcessExitError(1, "stderr text", message="custom")) == "custom"
        assert str(ProcessExitError(1)) == "Process exited with code 1"

    def test_killed(self):
        error = ProcessKilledError(-15)
        assert isinstance(error, ProcessExitError)
        assert error.exit_code == -15
        assert str(error) == "Process was killed (exit code -15)"

    def test_not_installed_keeps_command(self):
        error = ToolNotInstalledError("missing", install_command="npm i -g x")
        assert error.install_command == "npm i -g x"
