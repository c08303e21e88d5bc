"""Orchestrator bootstrap: install or upgrade okteto before using it."""

import logging
from typing import Callable, TypeVar

from orchestrator.errors import DependencyError, InstallError

logger = logging.getLogger(__name__)

T = TypeVar('T')


def ensure_installed(client) -> None:
    """Install or upgrade the orchestrator when needed.

    Raises:
        DependencyError: If install/upgrade fails
    """
    install, upgrade = client.needs_install()
    if not install:
        return

    if upgrade:
        logger.info("okteto is out of date, upgrading")
    else:
        logger.info("Installing okteto")
    try:
        if upgrade:
            client.upgrade()
        else:
            client.install()
    except InstallError as e:
        raise DependencyError(f"okteto was not installed: {e.message}")
    logger.info(f"okteto was successfully {'upgraded' if upgrade else 'installed'}")


def with_dependency_retry(client, operation: Callable[[], T]) -> T:
    """Run operation, installing the orchestrator and retrying once.

    A second DependencyError is fatal and propagates.
    """
    ensure_installed(client)
    try:
        return operation()
    except DependencyError as e:
        logger.warning(f"{e.message}; installing and retrying once")
    ensure_installed(client)
    return operation()
