"""Common utilities for driving external command-line tools."""

import logging
import subprocess
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def run_command(
    cmd: list[str],
    cwd: Optional[Path] = None,
    timeout: int = 600,
    capture: bool = True,
    env: Optional[dict] = None
) -> tuple[int, str, str]:
    """Run a command and return (returncode, stdout, stderr)."""
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=capture,
            text=True,
            timeout=timeout,
            env=env,
            check=False  # We handle return codes explicitly
        )
        return result.returncode, result.stdout, result.stderr
    except subprocess.TimeoutExpired:
        return -1, '', f'Command timed out after {timeout}s'
    except Exception as e:
        return -1, '', str(e)


def spawn_detached(
    cmd: list[str],
    log_file: Path,
    cwd: Optional[Path] = None,
    env: Optional[dict] = None
) -> subprocess.Popen:
    """Start a command in its own session and return without waiting.

    Output (stdout and stderr) is appended to log_file. The child keeps
    running if the driver exits.

    Raises:
        OSError: If the command cannot be started
    """
    logger.debug(f"Spawning: {' '.join(cmd)} (log: {log_file})")
    log_file.parent.mkdir(parents=True, exist_ok=True)
    with open(log_file, 'ab') as log:
        return subprocess.Popen(
            cmd,
            cwd=cwd,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=log,
            stderr=subprocess.STDOUT,
            start_new_session=True,
        )


def tail_file(path: Path, lines: int = 20) -> str:
    """Return the last lines of a text file ('' if it doesn't exist)."""
    try:
        content = path.read_text(encoding='utf-8', errors='replace')
    except FileNotFoundError:
        return ''
    return '\n'.join(content.splitlines()[-lines:])
