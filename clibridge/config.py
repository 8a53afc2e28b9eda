"""Configuration for the CLI bridge.

Defaults target Claude Code. Values can be overridden per user
(~/.clibridge/config.yaml), per project (.clibridge/config.yaml) and via
CLIBRIDGE_* environment variables, in that order of priority.
"""

import dataclasses
import logging
import os
import signal
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIRNAME = ".clibridge"
CONFIG_FILENAME = "config.yaml"


class ConfigError(Exception):
    """Configuration file is invalid."""

    pass


class BusyPolicy(str, Enum):
    """What a facade does with a call that arrives while one is streaming."""

    REJECT = "reject"
    SERIALIZE = "serialize"


def _default_config_dir() -> Path:
    return Path.home() / ".claude"


@dataclass
class BridgeConfig:
    """Configuration for the wrapped CLI and its credentials."""

    # Executable name or absolute path
    tool: str = "claude"

    # Per-user credential directory and the files checked inside it
    config_dir: Path = field(default_factory=_default_config_dir)
    oauth_token_file: str = "oauth_token.json"
    credentials_file: str = "credentials"
    credentials_marker: str = "oauth_token"
    legacy_token_file: str = "token"

    # Child-only environment variable that receives the OAuth token
    token_env_var: str = "CLAUDE_CODE_OAUTH_TOKEN"

    # Remediation shown to the user
    install_command: str = "npm install -g @anthropic-ai/claude-code"
    login_command: str = "claude setup-token"

    # Live auth probe
    probe_prompt: str = "test"
    probe_timeout: float | None = 60.0  # None disables the probe timeout
    auth_keywords: list[str] = field(
        default_factory=lambda: [
            "not authenticated",
            "authentication",
            "authenticate",
            "token",
        ]
    )

    # Streaming execution
    output_format_flag: str = "--output-format"
    default_output_format: str = "stream-json"
    busy_policy: BusyPolicy = BusyPolicy.REJECT
    kill_signal: int = signal.SIGTERM
    read_chunk_size: int = 64 * 1024

    def __post_init__(self) -> None:
        self.config_dir = Path(self.config_dir).expanduser()
        self.busy_policy = BusyPolicy(self.busy_policy)
        if isinstance(self.kill_signal, str):
            self.kill_signal = int(getattr(signal, self.kill_signal.upper()))

    @property
    def tool_name(self) -> str:
        """Executable name without directories, for messages and channels."""
        return Path(self.tool).name

    @property
    def oauth_token_path(self) -> Path:
        return self.config_dir / self.oauth_token_file

    @property
    def credentials_path(self) -> Path:
        return self.config_dir / self.credentials_file

    @property
    def legacy_token_path(self) -> Path:
        return self.config_dir / self.legacy_token_file


_FIELD_NAMES = {f.name for f in dataclasses.fields(BridgeConfig)}

# Environment variable -> config field
_ENV_OVERRIDES = {
    "CLIBRIDGE_TOOL": "tool",
    "CLIBRIDGE_CONFIG_DIR": "config_dir",
    "CLIBRIDGE_BUSY_POLICY": "busy_policy",
}


def _read_yaml(path: Path) -> dict[str, Any]:
    """Read one config file. Missing files yield an empty mapping."""
    if not path.exists():
        return {}

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")

    unknown = sorted(set(data) - _FIELD_NAMES)
    if unknown:
        raise ConfigError(f"Unknown keys in {path}: {', '.join(unknown)}")

    logger.debug(f"Loaded config from {path}")
    return data


def load_config(
    repo_path: Path | None = None,
    user_dir: Path | None = None,
    environ: dict[str, str] | None = None,
) -> BridgeConfig:
    """Build a BridgeConfig from defaults, YAML files and the environment.

    Args:
        repo_path: Project directory holding .clibridge/config.yaml
            (defaults to the current directory)
        user_dir: Home directory holding the user-level .clibridge/
            (defaults to Path.home())
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigError: If a config file is malformed or has unknown keys
    """
    repo_path = repo_path or Path.cwd()
    user_dir = user_dir or Path.home()
    environ = os.environ if environ is None else environ

    values: dict[str, Any] = {}
    values.update(_read_yaml(user_dir / CONFIG_DIRNAME / CONFIG_FILENAME))
    values.update(_read_yaml(repo_path / CONFIG_DIRNAME / CONFIG_FILENAME))

    for env_name, field_name in _ENV_OVERRIDES.items():
        if environ.get(env_name):
            values[field_name] = environ[env_name]

    try:
        return BridgeConfig(**values)
    except (TypeError, ValueError, AttributeError) as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


DEFAULT_CONFIG_YAML = """# clibridge configuration for this project

# CLI executable (name on PATH or absolute path)
tool: claude

# Where the CLI keeps its per-user credentials
# config_dir: ~/.claude

# reject: refuse a second command while one is streaming
# serialize: queue it until the running one finishes
busy_policy: reject

# Seconds before an installation/auth probe is abandoned
probe_timeout: 60
"""
