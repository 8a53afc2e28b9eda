"""Exception taxonomy for CLI execution.

Probes never raise these; only the execution operations and the login flow
do. The service layer converts them into structured responses.
"""


class ExecutionError(Exception):
    """Base error for a failed CLI invocation."""

    pass


class SpawnError(ExecutionError):
    """The OS could not start the CLI process (missing binary, permissions)."""

    pass


class ToolNotInstalledError(SpawnError):
    """The installation probe found no usable CLI binary."""

    def __init__(self, message: str, install_command: str | None = None):
        super().__init__(message)
        self.install_command = install_command


class NotAuthenticatedError(ExecutionError):
    """The CLI reported missing credentials. Recoverable via the login flow."""

    def __init__(self, message: str, login_command: str | None = None):
        super().__init__(message)
        self.login_command = login_command


class ProcessExitError(ExecutionError):
    """The CLI exited with a non-zero status."""

    def __init__(self, exit_code: int | None, stderr: str = "", message: str | None = None):
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message or stderr or f"Process exited with code {exit_code}")


class ProcessKilledError(ProcessExitError):
    """The CLI was terminated by kill_active_process()."""

    def __init__(self, exit_code: int | None, stderr: str = ""):
        super().__init__(exit_code, stderr, message=f"Process was killed (exit code {exit_code})")


class SessionBusyError(ExecutionError):
    """A second invocation was attempted while a session is still streaming."""

    pass


class TokenFileError(Exception):
    """OAuth token file is unreadable or malformed.

    Internal only: the authentication resolver swallows it and reports the
    token as absent.
    """

    pass
