"""Client for the okteto orchestrator CLI.

The orchestrator runs detached: `launch` only starts `okteto up`, and the
driver learns what happened by reading the state file okteto keeps for
each environment:

    <okteto_home>/<namespace>/<name>/okteto.state

The file holds a single tag (e.g. `pulling`), or `failed:<message>`.
"""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from common import run_command, spawn_detached, tail_file
from config import DriverSettings
from orchestrator.errors import (
    DependencyError,
    InitError,
    InstallError,
    LaunchError,
    PollTransportError,
    TeardownError,
)
from orchestrator.install import binary_name, download_binary, parse_version
from orchestrator.states import INITIAL_TAG, PollResult

logger = logging.getLogger(__name__)

STATE_FILENAME = 'okteto.state'

# Runtimes offered by the create flow: (label, okteto language)
RUNTIMES = [
    ('Java (Maven)', 'maven'),
    ('Java (Gradle)', 'gradle'),
    ('Node.js', 'javascript'),
    ('Go', 'golang'),
    ('Python', 'python'),
    ('Ruby', 'ruby'),
    ('C#', 'csharp'),
    ('PHP', 'php'),
]


def runtime_values() -> list[str]:
    """Runtime identifiers accepted by init."""
    return [value for _label, value in RUNTIMES]


class OrchestratorClient:
    """Thin wrapper over the okteto CLI.

    Every method is blocking; the activation loop runs them in worker
    threads.
    """

    def __init__(self, settings: Optional[DriverSettings] = None):
        self.settings = settings or DriverSettings()

    # -- binary discovery -------------------------------------------------

    def binary(self) -> Optional[str]:
        """Locate the orchestrator binary.

        Resolution order:
        1. settings.binary (explicit path)
        2. settings.install_dir (where install() puts it)
        3. PATH
        """
        if self.settings.binary:
            path = Path(self.settings.binary).expanduser()
            return str(path) if path.is_file() else None

        installed = self.settings.install_dir / binary_name()
        if installed.is_file() and os.access(installed, os.X_OK):
            return str(installed)

        return shutil.which('okteto')

    def _require_binary(self) -> str:
        binary = self.binary()
        if binary is None:
            raise DependencyError("okteto is not installed")
        return binary

    def version(self) -> Optional[tuple[int, int, int]]:
        """Installed orchestrator version, or None if unknown."""
        binary = self.binary()
        if binary is None:
            return None
        rc, out, err = run_command([binary, 'version'], timeout=30)
        if rc != 0:
            logger.warning(f"okteto version failed: {err.strip()}")
            return None
        return parse_version(out)

    def is_installed(self) -> bool:
        return self.binary() is not None

    def needs_upgrade(self) -> bool:
        """True if the installed binary is older than settings.min_version."""
        current = self.version()
        if current is None:
            # Dev builds print no semantic version; don't force an upgrade
            logger.debug("Could not determine okteto version")
            return False
        minimum = parse_version(self.settings.min_version)
        return minimum is not None and current < minimum

    def needs_install(self) -> tuple[bool, bool]:
        """Check the orchestrator bootstrap.

        Returns:
            (install, upgrade): install is True when anything must be
            installed; upgrade is True when an existing binary is outdated.
        """
        if not self.is_installed():
            return True, False
        if self.needs_upgrade():
            return True, True
        return False, False

    def install(self) -> Path:
        """Install the orchestrator into settings.install_dir.

        Raises:
            InstallError: If the download fails
        """
        dest = self.settings.install_dir / binary_name()
        download_binary(dest, timeout=self.settings.command_timeout)
        if not self.is_installed():
            raise InstallError(f"okteto still not found after installing to {dest}")
        return dest

    def upgrade(self) -> Path:
        """Replace an outdated orchestrator with the latest release.

        Raises:
            InstallError: If the download fails or the binary is still outdated
        """
        dest = self.install()
        if self.needs_upgrade():
            raise InstallError(
                f"okteto at {self.binary()} is still older than {self.settings.min_version}"
            )
        return dest

    # -- environment lifecycle --------------------------------------------

    def state_file(self, namespace: str, name: str) -> Path:
        return self.settings.okteto_home / namespace / name / STATE_FILENAME

    def log_file(self, namespace: str, name: str) -> Path:
        return self.settings.log_dir / f'{namespace}-{name}.log'

    def _env(self, kubeconfig: Path) -> dict:
        return {**os.environ, 'KUBECONFIG': str(kubeconfig)}

    def launch(self, manifest_path: Path, namespace: str, name: str, kubeconfig: Path) -> subprocess.Popen:
        """Start `okteto up` detached and return immediately.

        Any state file left by a previous session is removed first so the
        new attempt never reads a stale `ready`.

        Raises:
            DependencyError: If the orchestrator is not installed
            LaunchError: If the process cannot be started
        """
        binary = self._require_binary()

        state_file = self.state_file(namespace, name)
        try:
            state_file.unlink()
            logger.debug(f"Removed stale state file {state_file}")
        except FileNotFoundError:
            pass
        except OSError as e:
            raise LaunchError(f"Cannot reset state file {state_file}: {e}")

        cmd = [binary, 'up', '--namespace', namespace, '--file', str(manifest_path)]
        log_file = self.log_file(namespace, name)
        logger.info(f"Launching {name} in namespace {namespace} (log: {log_file})")
        try:
            return spawn_detached(
                cmd,
                log_file=log_file,
                cwd=Path(manifest_path).parent,
                env=self._env(kubeconfig),
            )
        except OSError as e:
            raise LaunchError(f"okteto up failed to start: {e}")

    def query(self, namespace: str, name: str) -> PollResult:
        """Read the environment's current state once.

        Raises:
            PollTransportError: If the state file exists but cannot be read
        """
        state_file = self.state_file(namespace, name)
        try:
            content = state_file.read_text(encoding='utf-8')
        except FileNotFoundError:
            return PollResult.from_tag(INITIAL_TAG)
        except (OSError, UnicodeDecodeError) as e:
            raise PollTransportError(f"Cannot read {state_file}: {e}")

        if not content.strip():
            # okteto truncates before writing; treat as not yet written
            return PollResult.from_tag(INITIAL_TAG)
        return PollResult.parse(content)

    def teardown(self, manifest_path: Path, namespace: str, kubeconfig: Path) -> None:
        """Run `okteto down` for the manifest.

        Raises:
            DependencyError: If the orchestrator is not installed
            TeardownError: If okteto down fails
        """
        binary = self._require_binary()
        cmd = [binary, 'down', '--namespace', namespace, '--file', str(manifest_path)]
        logger.info(f"Tearing down {manifest_path} in namespace {namespace}")
        rc, _out, err = run_command(
            cmd,
            cwd=Path(manifest_path).parent,
            timeout=self.settings.command_timeout,
            env=self._env(kubeconfig),
        )
        if rc != 0:
            raise TeardownError(f"okteto down failed: {err.strip()}")

    def init(self, manifest_path: Path, runtime: str) -> None:
        """Scaffold a manifest with `okteto init`.

        Raises:
            DependencyError: If the orchestrator is not installed
            InitError: If okteto init fails
        """
        binary = self._require_binary()
        cmd = [binary, 'init', '--overwrite', '--file', str(manifest_path), '--language', runtime]
        rc, _out, err = run_command(
            cmd,
            cwd=Path(manifest_path).parent,
            timeout=self.settings.command_timeout,
        )
        if rc != 0:
            raise InitError(f"okteto init failed: {err.strip()}")

    def log_tail(self, namespace: str, name: str, lines: int = 20) -> str:
        """Last lines of the launch log for an environment."""
        return tail_file(self.log_file(namespace, name), lines)
