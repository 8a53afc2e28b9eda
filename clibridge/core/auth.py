"""Authentication state resolution for the wrapped CLI.

Three independent probes, each returning a structured result:

1. Installation probe - `<tool> --version`
2. OAuth token probe - per-user token file, then the credentials file
3. Live auth probe - `<tool> -p test --output-format json`

NOTE: Nothing in this module raises. Every failure (missing binary,
unreadable token file, timeout) is folded into the returned model so UI
layers can render status without exception handling.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from clibridge.config import BridgeConfig
from clibridge.core.errors import (
    ExecutionError,
    NotAuthenticatedError,
    ProcessExitError,
    TokenFileError,
    ToolNotInstalledError,
)
from clibridge.core.models import (
    AuthFailureKind,
    AuthState,
    InstallStatus,
    OAuthTokenStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    """Outcome of a short-lived probe subprocess.

    returncode is None when the process could not be started or timed out;
    error then holds the reason.
    """

    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def classify_auth_failure(text: str, keywords: list[str]) -> AuthFailureKind:
    """Decide whether a failed live probe means "not logged in".

    Best-effort heuristic: case-insensitive substring match of the CLI's
    error text against keywords. CLI wording changes between versions and
    locales, so keep all of that knowledge in this one function.
    """
    lowered = text.lower()
    if any(keyword.lower() in lowered for keyword in keywords):
        return AuthFailureKind.NOT_AUTHENTICATED
    return AuthFailureKind.PROBE_FAILED


def read_oauth_token(path: Path) -> str:
    """Return the access token stored in a JSON token file.

    Raises:
        TokenFileError: If the file is unreadable, not JSON, or has no
            non-empty string "access_token"
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise TokenFileError(f"Cannot read token file {path}: {e}") from e

    token = data.get("access_token") if isinstance(data, dict) else None
    if not isinstance(token, str) or not token:
        raise TokenFileError(f"No access_token in {path}")
    return token


def _credentials_mention_token(path: Path, marker: str) -> bool:
    try:
        return marker in path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False


class AuthenticationResolver:
    """Compute AuthState for the configured CLI.

    Results are never cached: every call spawns fresh probes and re-reads the
    credential files.
    """

    def __init__(self, config: BridgeConfig | None = None):
        self.config = config or BridgeConfig()

    # --- Probe 1: installation ---

    async def check_installation(self) -> InstallStatus:
        """Run `<tool> --version` and report whether the CLI is usable."""
        result = await self._run_probe("--version")
        if result.ok:
            version = result.stdout.strip() or None
            logger.debug(f"{self.config.tool_name} installed, version {version}")
            return InstallStatus(installed=True, version=version, path=self.config.tool)

        reason = result.error or result.stderr.strip() or f"exit code {result.returncode}"
        logger.info(f"{self.config.tool_name} installation probe failed: {reason}")
        return InstallStatus(
            installed=False,
            error=self._not_installed_message(),
            install_command=self.config.install_command,
        )

    # --- Probe 2: OAuth token files ---

    async def check_oauth_token(self) -> OAuthTokenStatus:
        """Look for a cached OAuth token.

        Token file first; a readable access_token is returned for env
        injection. Otherwise the credentials file counts as "has token" when
        it mentions the configured marker (no token value is extracted).
        """
        token_path = self.config.oauth_token_path
        try:
            token = await asyncio.to_thread(read_oauth_token, token_path)
            return OAuthTokenStatus(exists=True, token=token, path=str(token_path))
        except TokenFileError as e:
            logger.debug(f"OAuth token unavailable: {e}")

        credentials_path = self.config.credentials_path
        found = await asyncio.to_thread(
            _credentials_mention_token, credentials_path, self.config.credentials_marker
        )
        if found:
            return OAuthTokenStatus(exists=True, path=str(credentials_path))

        return OAuthTokenStatus(exists=False)

    # --- Probe 3: live authentication ---

    async def check_authentication(self) -> AuthState:
        """Run a minimal request and infer auth state from its exit behavior.

        Assumes the CLI is installed; use resolve() to include the
        installation probe.
        """
        oauth = await self.check_oauth_token()
        result = await self._run_probe(
            "-p",
            self.config.probe_prompt,
            self.config.output_format_flag,
            "json",
        )

        state = AuthState(
            installed=True,
            has_oauth_token=oauth.exists,
            oauth_token_path=oauth.path,
        )
        if result.ok:
            state.authenticated = True
            return state

        # Only stderr is classified: the JSON result on stdout carries
        # fields like usage.input_tokens that would match "token"
        stderr = result.stderr.strip()
        state.failure = classify_auth_failure(stderr, self.config.auth_keywords)
        if state.failure == AuthFailureKind.NOT_AUTHENTICATED:
            state.error = f"Not authenticated. Please run: {self.config.login_command}"
        else:
            detail = stderr or result.stdout.strip() or result.error
            state.error = f"CLI error: {detail or f'exit code {result.returncode}'}"

        logger.info(f"Live auth probe failed ({state.failure.value})")
        return state

    async def resolve(self) -> AuthState:
        """Full check: installation first, then OAuth lookup and live probe.

        The live probe is skipped entirely when the CLI is not installed.
        """
        install = await self.check_installation()
        if not install.installed:
            oauth = await self.check_oauth_token()
            return AuthState(
                installed=False,
                has_oauth_token=oauth.exists,
                oauth_token_path=oauth.path,
                error=install.error,
                failure=AuthFailureKind.NOT_INSTALLED,
                install_command=install.install_command,
            )

        state = await self.check_authentication()
        state.version = install.version
        return state

    # --- Legacy helpers ---

    def get_config_dir(self) -> Path | None:
        """Return the CLI's per-user config dir, or None if it doesn't exist."""
        config_dir = self.config.config_dir
        return config_dir if config_dir.is_dir() else None

    def has_token(self) -> bool:
        """Return True if the legacy plain `token` file exists."""
        if self.get_config_dir() is None:
            return False
        return self.config.legacy_token_path.exists()

    # --- Internals ---

    def _not_installed_message(self) -> str:
        return (
            f"{self.config.tool_name} CLI not found. "
            f"Install it with: {self.config.install_command}"
        )

    async def _run_probe(self, *args: str) -> ProbeResult:
        """Run `<tool> *args` to completion. Never raises."""
        try:
            process = await asyncio.create_subprocess_exec(
                self.config.tool,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return ProbeResult(returncode=None, error=str(e))

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.config.probe_timeout
            )
        except asyncio.TimeoutError:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
            return ProbeResult(
                returncode=None,
                error=f"Probe timed out after {self.config.probe_timeout}s",
            )

        return ProbeResult(
            returncode=process.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )


def auth_error(state: AuthState, login_command: str | None = None) -> ExecutionError | None:
    """Map a failed AuthState to the matching exception instance.

    Returns None when the state is usable (installed and authenticated).
    """
    if state.failure == AuthFailureKind.NOT_INSTALLED or not state.installed:
        return ToolNotInstalledError(state.error or "CLI not installed", state.install_command)
    if state.failure == AuthFailureKind.NOT_AUTHENTICATED:
        return NotAuthenticatedError(state.error or "Not authenticated", login_command)
    if not state.authenticated:
        return ProcessExitError(None, state.error or "Authentication probe failed")
    return None
