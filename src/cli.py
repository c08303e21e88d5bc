#!/usr/bin/env python3
"""CLI entry point for devenv-driver.

Verbs:
- up: Activate a development environment (okteto up, then poll to ready)
- down: Deactivate a development environment
- create: Scaffold an okteto manifest
- install: Install or upgrade okteto
- status: Show the state of an environment
- open: Activate from an activation link
"""

import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

# Verb commands
VERB_COMMANDS = {
    "up": "Activate a development environment",
    "down": "Deactivate a development environment",
    "create": "Create a manifest for the project",
    "install": "Install or upgrade okteto",
    "status": "Show the state of a development environment",
    "open": "Activate from an activation link",
}


def get_version() -> str:
    """Get version from installed package metadata."""
    try:
        return version('devenv-driver')
    except PackageNotFoundError:
        return 'dev'


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def dispatch_verb(verb: str, argv: list) -> int:
    """Dispatch to verb-specific CLI handler.

    Args:
        verb: The verb command (e.g., "up", "down")
        argv: Remaining command line arguments

    Returns:
        Exit code
    """
    from activation import cli as activation_cli

    handlers = {
        "up": activation_cli.up_main,
        "down": activation_cli.down_main,
        "create": activation_cli.create_main,
        "install": activation_cli.install_main,
        "status": activation_cli.status_main,
        "open": activation_cli.open_main,
    }
    rc: int = handlers[verb](argv)
    return rc


def print_usage():
    """Print top-level usage showing verb commands."""
    print(f"devenv-driver {get_version()}")
    print()
    print("Usage: devenv <verb> [options]")
    print()
    print("Commands:")
    for verb, desc in VERB_COMMANDS.items():
        print(f"  {verb:<10} {desc}")
    print()
    print("Run 'devenv <verb> --help' for command-specific options.")
    print()
    print("Examples:")
    print("  devenv up")
    print("  devenv up -f frontend/okteto.yml -n dev --watch")
    print("  devenv down")
    print("  devenv create --runtime python")
    print("  devenv open 'vscode://okteto.remote-kubernetes/up?manifest=okteto.yml'")


def main(argv: Optional[list] = None) -> int:
    """CLI entry point: dispatch to verb handlers."""
    if argv is None:
        argv = sys.argv[1:]

    if not argv or argv[0] in ('-h', '--help'):
        print_usage()
        return 0

    if argv[0] == '--version':
        print(f"devenv-driver {get_version()}")
        return 0

    verb = argv[0]
    if verb not in VERB_COMMANDS:
        print(f"Error: Unknown command '{verb}'")
        print_usage()
        return 1

    return dispatch_verb(verb, argv[1:])


if __name__ == '__main__':
    sys.exit(main())
