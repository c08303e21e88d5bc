"""Orchestrator binary installation and version checks."""

import logging
import os
import platform
import re
import stat
import tempfile
from pathlib import Path
from typing import Optional

import requests

from orchestrator.errors import InstallError

logger = logging.getLogger(__name__)

RELEASE_URL = 'https://github.com/okteto/okteto/releases/latest/download/{asset}'

_VERSION_RE = re.compile(r'(\d+)\.(\d+)\.(\d+)')

# platform.system() -> release asset OS name
_ASSET_SYSTEMS = {
    'Linux': 'Linux',
    'Darwin': 'Darwin',
    'Windows': 'Windows',
}

# platform.machine() -> release asset architecture
_ASSET_MACHINES = {
    'x86_64': 'x86_64',
    'amd64': 'x86_64',
    'AMD64': 'x86_64',
    'arm64': 'arm64',
    'aarch64': 'arm64',
}


def parse_version(output: str) -> Optional[tuple[int, int, int]]:
    """Extract the first semantic version from command output.

    Returns:
        (major, minor, patch) or None if no version is present
    """
    match = _VERSION_RE.search(output or '')
    if not match:
        return None
    major, minor, patch = match.groups()
    return int(major), int(minor), int(patch)


def binary_name(system: Optional[str] = None) -> str:
    """Orchestrator executable name for the platform."""
    system = system or platform.system()
    return 'okteto.exe' if system == 'Windows' else 'okteto'


def asset_name(system: Optional[str] = None, machine: Optional[str] = None) -> str:
    """Release asset for a platform (e.g., okteto-Linux-x86_64).

    Raises:
        InstallError: If the platform has no published binary
    """
    system = system or platform.system()
    machine = machine or platform.machine()
    os_name = _ASSET_SYSTEMS.get(system)
    arch = _ASSET_MACHINES.get(machine)
    if os_name is None or arch is None:
        raise InstallError(f"No okteto release for platform {system}/{machine}")
    suffix = '.exe' if os_name == 'Windows' else ''
    return f'okteto-{os_name}-{arch}{suffix}'


def download_binary(dest: Path, timeout: int = 120) -> Path:
    """Download the latest orchestrator release to dest.

    The download goes to a temporary file next to dest and is moved into
    place once complete, so a failed download never replaces a working
    binary.

    Raises:
        InstallError: On network or filesystem errors
    """
    url = RELEASE_URL.format(asset=asset_name())
    logger.info(f"Downloading {url}...")

    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise InstallError(f"Cannot create {dest.parent}: {e}")

    tmp_path = None
    try:
        with requests.get(url, stream=True, timeout=timeout) as resp:
            resp.raise_for_status()
            fd, tmp_name = tempfile.mkstemp(prefix='.okteto-', dir=dest.parent)
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, 'wb') as f:
                for chunk in resp.iter_content(chunk_size=1024 * 1024):
                    f.write(chunk)
        tmp_path.chmod(tmp_path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        os.replace(tmp_path, dest)
    except requests.exceptions.Timeout:
        raise InstallError(f"Timeout downloading {url}")
    except requests.exceptions.RequestException as e:
        raise InstallError(f"Cannot download {url}: {e}")
    except OSError as e:
        raise InstallError(f"Cannot write {dest}: {e}")
    finally:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()

    logger.info(f"Installed okteto to {dest}")
    return dest
