"""Driver configuration management.

Settings are loaded from a single YAML file:
- $DEVENV_DRIVER_CONFIG: explicit path (must exist)
- ~/.config/devenv-driver/config.yaml: per-user defaults (optional)

Missing files fall back to built-in defaults. CLI flags override
individual values after loading.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml


class ConfigError(Exception):
    """Configuration error."""


CONFIG_ENV_VAR = 'DEVENV_DRIVER_CONFIG'

# Polling defaults: one tick per second, five minutes total
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_MAX_TICKS = 300
DEFAULT_MAX_QUERY_FAILURES = 3
DEFAULT_WATCH_INTERVAL = 5.0

# Oldest orchestrator release the driver knows how to talk to
DEFAULT_MIN_VERSION = '1.8.0'


@dataclass
class DriverSettings:
    """Settings for the orchestrator client and activation loop.

    Attributes:
        binary: Explicit orchestrator binary path (empty = discover)
        install_dir: Where install/upgrade places the binary
        okteto_home: Orchestrator home holding per-environment state files
        state_dir: Driver state (active environments, launch logs)
        kubeconfig: Kubeconfig override (empty = $KUBECONFIG or ~/.kube/config)
        poll_interval: Seconds between activation ticks
        max_ticks: Ticks before an activation times out
        max_query_failures: Consecutive failed queries tolerated
        watch_interval: Seconds between post-ready failure checks
        min_version: Oldest acceptable orchestrator version
        command_timeout: Timeout for blocking orchestrator commands (seconds)
    """
    binary: str = ''
    install_dir: Path = field(default_factory=lambda: Path.home() / '.local' / 'bin')
    okteto_home: Path = field(default_factory=lambda: Path.home() / '.okteto')
    state_dir: Path = field(default_factory=lambda: Path.home() / '.devenv-driver')
    kubeconfig: str = ''
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_ticks: int = DEFAULT_MAX_TICKS
    max_query_failures: int = DEFAULT_MAX_QUERY_FAILURES
    watch_interval: float = DEFAULT_WATCH_INTERVAL
    min_version: str = DEFAULT_MIN_VERSION
    command_timeout: int = 300

    def __post_init__(self):
        for name in ('install_dir', 'okteto_home', 'state_dir'):
            value = getattr(self, name)
            if isinstance(value, str):
                setattr(self, name, Path(value).expanduser())

    @property
    def log_dir(self) -> Path:
        """Directory holding launch logs."""
        return self.state_dir / 'logs'

    @classmethod
    def from_dict(cls, data: dict, source: Optional[Path] = None) -> 'DriverSettings':
        """Create settings from a dictionary, validating keys and types.

        Raises:
            ConfigError: On unknown keys or values of the wrong type
        """
        where = f" in {source}" if source else ''
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown settings{where}: {', '.join(unknown)}")

        kwargs = {}
        for key, value in data.items():
            if value is None:
                continue
            if key in ('poll_interval', 'watch_interval'):
                if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                    raise ConfigError(f"Setting '{key}'{where} must be a positive number")
                value = float(value)
            elif key in ('max_ticks', 'max_query_failures', 'command_timeout'):
                if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                    raise ConfigError(f"Setting '{key}'{where} must be a positive integer")
            elif not isinstance(value, str):
                raise ConfigError(f"Setting '{key}'{where} must be a string")
            kwargs[key] = value

        return cls(**kwargs)


def get_config_file() -> Optional[Path]:
    """Discover the settings file.

    Resolution order:
    1. $DEVENV_DRIVER_CONFIG environment variable (must exist)
    2. ~/.config/devenv-driver/config.yaml (optional)
    """
    if env_path := os.environ.get(CONFIG_ENV_VAR):
        path = Path(env_path).expanduser()
        if path.is_file():
            return path
        raise ConfigError(f"{CONFIG_ENV_VAR}={env_path} does not exist")

    user_file = Path.home() / '.config' / 'devenv-driver' / 'config.yaml'
    if user_file.is_file():
        return user_file

    return None


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file and return contents."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must be a YAML object (dict)")
    return data


def load_settings(path: Optional[Path] = None) -> DriverSettings:
    """Load driver settings.

    Args:
        path: Explicit settings file. If None, uses auto-discovery.

    Returns:
        DriverSettings (defaults when no settings file exists)

    Raises:
        ConfigError: If the file is invalid
    """
    if path is None:
        path = get_config_file()
    if path is None:
        return DriverSettings()
    return DriverSettings.from_dict(_parse_yaml(path), source=path)
