"""CLI handlers for environment verbs (up, down, create, install, status, open).

Usage:
    devenv up [-f okteto.yml] [-n namespace] [--watch] [--json-output] [--verbose]
    devenv down [-f okteto.yml] [-n namespace]
    devenv create --runtime <runtime> [--workspace DIR]
    devenv install [--upgrade]
    devenv status [-f okteto.yml] [-n namespace] [--json-output]
    devenv open <activation-link> [--workspace DIR]
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from activation.links import parse_activation_uri
from activation.machine import CancellationToken, OutcomeStatus
from activation.monitor import watch_for_failure
from activation.registry import ActivationInProgressError, ActivationRegistry, EnvironmentStore
from activation.workflow import (
    create,
    down,
    ensure_installed,
    resolve_request,
    select_manifest,
    up,
)
from config import ConfigError, DriverSettings, load_settings
from kubeconfig import get_kubeconfig
from manifest import ManifestNotFoundError, ManifestParseError, load_manifest
from orchestrator.client import RUNTIMES, OrchestratorClient, runtime_values
from orchestrator.errors import InstallError, LaunchError, OrchestratorError
from reporting.report import ActivationReport, outcome_summary

logger = logging.getLogger(__name__)

# Exit code for an activation cancelled with Ctrl-C
EXIT_CANCELLED = 130


def _common_parser(verb: str, description: str) -> argparse.ArgumentParser:
    """Build argument parser with common options for all verbs."""
    parser = argparse.ArgumentParser(prog=f'devenv {verb}', description=description)
    parser.add_argument(
        '--config',
        type=Path,
        help='Driver settings file (default: $DEVENV_DRIVER_CONFIG or ~/.config/devenv-driver/config.yaml)',
    )
    parser.add_argument(
        '--kubeconfig',
        type=Path,
        help='Kubeconfig file (default: $KUBECONFIG or ~/.kube/config)',
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging',
    )
    parser.add_argument(
        '--json-output',
        action='store_true',
        help='Output structured JSON to stdout (logs to stderr)',
    )
    return parser


def _add_manifest_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--file', '-f',
        type=Path,
        help='Manifest path (default: the single okteto.yml under --workspace)',
    )
    parser.add_argument(
        '--namespace', '-n',
        help='Namespace override (default: manifest, then current kubeconfig context)',
    )
    parser.add_argument(
        '--workspace', '-w',
        type=Path,
        help='Project directory searched for manifests (default: current directory)',
    )


def _add_up_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--watch',
        action='store_true',
        help='After the environment is ready, keep watching until it fails or Ctrl-C',
    )
    parser.add_argument(
        '--interval',
        type=float,
        help='Seconds between state checks (overrides settings)',
    )
    parser.add_argument(
        '--max-ticks',
        type=int,
        help='State checks before giving up (overrides settings)',
    )
    parser.add_argument(
        '--report-dir', '-r',
        type=Path,
        help='Write JSON and markdown activation reports to this directory',
    )


def _setup_logging(verbose: bool, json_output: bool) -> None:
    """Configure logging based on flags."""
    if json_output:
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))
        root_logger.addHandler(stderr_handler)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _load_settings(args) -> DriverSettings:
    """Load settings and apply CLI overrides."""
    settings = load_settings(args.config)
    if getattr(args, 'interval', None) is not None:
        if args.interval <= 0:
            raise ConfigError("--interval must be positive")
        settings.poll_interval = args.interval
    if getattr(args, 'max_ticks', None) is not None:
        if args.max_ticks < 1:
            raise ConfigError("--max-ticks must be at least 1")
        settings.max_ticks = args.max_ticks
    return settings


def _resolve_kubeconfig(args, settings: DriverSettings) -> Path:
    if args.kubeconfig:
        return args.kubeconfig
    if settings.kubeconfig:
        return Path(settings.kubeconfig).expanduser()
    return get_kubeconfig()


def _print_error(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)


def _print_log_tail(client: OrchestratorClient, namespace: str, name: str) -> None:
    """Show the end of the launch log after a failure."""
    tail = client.log_tail(namespace, name)
    if tail:
        print(f"\nLast lines of {client.log_file(namespace, name)}:", file=sys.stderr)
        print(tail, file=sys.stderr)


def _install_cancel_handler(token: CancellationToken) -> None:
    """Cancel the token on Ctrl-C (where the loop supports signal handlers)."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError):
        logger.debug("Signal handlers unavailable; Ctrl-C will abort without teardown")


async def _activate(args, settings: DriverSettings, manifest_path: Path) -> int:
    """Run one activation and report the outcome."""
    client = OrchestratorClient(settings)
    kubeconfig = _resolve_kubeconfig(args, settings)
    store = EnvironmentStore(settings.state_dir)
    registry = ActivationRegistry()
    token = CancellationToken()
    _install_cancel_handler(token)

    echo = None if args.json_output else (lambda message: print(message, flush=True))
    report = ActivationReport(manifest_path=manifest_path, echo=echo)
    report.start()

    try:
        result = await up(
            manifest_path,
            client,
            settings,
            kubeconfig,
            registry,
            store,
            namespace=args.namespace,
            token=token,
            progress=report.progress,
        )
    except (ManifestNotFoundError, ManifestParseError) as e:
        _print_error(f"Up failed to load your manifest: {e}")
        return 1
    except ConfigError as e:
        _print_error(str(e))
        return 1
    except ActivationInProgressError as e:
        _print_error(str(e))
        return 1
    except LaunchError as e:
        _print_error(f"Up failed: {e.message}")
        return 1
    except OrchestratorError as e:
        _print_error(e.message)
        return 1

    request = result.request
    report.namespace, report.name = request.namespace, request.name
    report.finish(result.outcome)

    if args.json_output:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(outcome_summary(result.outcome))
    if args.report_dir:
        json_path, _md_path = report.write(args.report_dir)
        logger.info(f"Wrote activation report {json_path}")

    status = result.outcome.status
    if status is OutcomeStatus.CANCELLED:
        await result.machine.wait_for_teardown()
        return EXIT_CANCELLED
    if status is not OutcomeStatus.READY:
        _print_log_tail(client, request.namespace, request.name)
        return 1

    if args.watch:
        print("Watching for failures (Ctrl-C to stop)...", flush=True)
        message = await watch_for_failure(
            client,
            request,
            token,
            interval=settings.watch_interval,
            max_query_failures=settings.max_query_failures,
            process=result.machine.process,
        )
        if message is not None:
            _print_error(f"Your development container failed: {message}")
            _print_log_tail(client, request.namespace, request.name)
            return 1
    return 0


def up_main(argv: list) -> int:
    """Handle 'up' verb: activate a development environment."""
    parser = _common_parser('up', 'Activate a development environment')
    _add_manifest_args(parser)
    _add_up_args(parser)
    args = parser.parse_args(argv)
    _setup_logging(args.verbose, args.json_output)

    try:
        settings = _load_settings(args)
        manifest_path = select_manifest(args.file, args.workspace)
    except ConfigError as e:
        _print_error(str(e))
        return 1

    logger.info(f"Manifest selected: {manifest_path}")
    return asyncio.run(_activate(args, settings, manifest_path))


def open_main(argv: list) -> int:
    """Handle 'open' verb: activate from an activation link."""
    parser = _common_parser('open', 'Activate a development environment from an activation link')
    parser.add_argument('uri', help='Activation link, e.g. vscode://okteto.remote-kubernetes/up?manifest=okteto.yml')
    parser.add_argument(
        '--workspace', '-w',
        type=Path,
        help='Project directory the link refers to (default: current directory)',
    )
    _add_up_args(parser)
    args = parser.parse_args(argv)
    args.namespace = None
    _setup_logging(args.verbose, args.json_output)

    link = parse_activation_uri(args.uri)
    if link is None:
        _print_error(f"Unsupported activation link: {args.uri}")
        return 1
    if link.repository:
        logger.info(f"Activation link for repository {link.repository}")

    try:
        settings = _load_settings(args)
        manifest_path = select_manifest(root=args.workspace, pattern=link.manifest)
    except ConfigError as e:
        _print_error(str(e))
        return 1

    logger.info(f"Manifest selected: {manifest_path}")
    return asyncio.run(_activate(args, settings, manifest_path))


def down_main(argv: list) -> int:
    """Handle 'down' verb: tear down a development environment."""
    parser = _common_parser('down', 'Deactivate a development environment')
    _add_manifest_args(parser)
    args = parser.parse_args(argv)
    _setup_logging(args.verbose, args.json_output)

    try:
        settings = _load_settings(args)
        client = OrchestratorClient(settings)
        store = EnvironmentStore(settings.state_dir)
        manifest_path: Optional[Path] = args.file
        if manifest_path is None and args.workspace is not None:
            manifest_path = select_manifest(root=args.workspace)
        request = down(
            client,
            store,
            _resolve_kubeconfig(args, settings),
            manifest_path=manifest_path,
            namespace=args.namespace,
        )
    except (ManifestNotFoundError, ManifestParseError) as e:
        _print_error(f"Down failed to load your manifest: {e}")
        return 1
    except ConfigError as e:
        _print_error(str(e))
        return 1
    except OrchestratorError as e:
        _print_error(f"Down failed: {e.message}")
        return 1

    if args.json_output:
        print(json.dumps({'namespace': request.namespace, 'name': request.name, 'status': 'deactivated'}))
    else:
        print(f"Environment {request} deactivated")
    return 0


def create_main(argv: list) -> int:
    """Handle 'create' verb: scaffold a manifest."""
    parser = _common_parser('create', 'Create a manifest for the project')
    parser.add_argument(
        '--runtime',
        required=True,
        choices=runtime_values(),
        help='Development runtime: ' + ', '.join(f'{value} ({label})' for label, value in RUNTIMES),
    )
    parser.add_argument(
        '--workspace', '-w',
        type=Path,
        help='Project directory (default: current directory)',
    )
    args = parser.parse_args(argv)
    _setup_logging(args.verbose, args.json_output)

    try:
        settings = _load_settings(args)
        manifest_path = create(OrchestratorClient(settings), args.runtime, args.workspace)
    except ConfigError as e:
        _print_error(f"Create failed: {e}")
        return 1
    except OrchestratorError as e:
        _print_error(f"Create failed: {e.message}")
        return 1

    if args.json_output:
        print(json.dumps({'manifest': str(manifest_path), 'runtime': args.runtime}))
    else:
        print(f"Created {manifest_path}")
    return 0


def install_main(argv: list) -> int:
    """Handle 'install' verb: install or upgrade the orchestrator."""
    parser = _common_parser('install', 'Install or upgrade okteto')
    parser.add_argument(
        '--upgrade',
        action='store_true',
        help='Download the latest release even if the installed one is current',
    )
    args = parser.parse_args(argv)
    _setup_logging(args.verbose, args.json_output)

    try:
        settings = _load_settings(args)
        client = OrchestratorClient(settings)
        if args.upgrade:
            client.upgrade()
        else:
            ensure_installed(client)
    except ConfigError as e:
        _print_error(str(e))
        return 1
    except InstallError as e:
        _print_error(f"okteto was not installed: {e.message}")
        return 1
    except OrchestratorError as e:
        _print_error(e.message)
        return 1

    version = client.version()
    version_str = '.'.join(str(v) for v in version) if version else 'unknown'
    if args.json_output:
        print(json.dumps({'binary': client.binary(), 'version': version_str}))
    else:
        print(f"okteto {version_str} at {client.binary()}")
    return 0


def status_main(argv: list) -> int:
    """Handle 'status' verb: show the current state of an environment."""
    parser = _common_parser('status', 'Show the state of a development environment')
    _add_manifest_args(parser)
    args = parser.parse_args(argv)
    _setup_logging(args.verbose, args.json_output)

    try:
        settings = _load_settings(args)
        client = OrchestratorClient(settings)
        manifest_path = select_manifest(args.file, args.workspace)
        manifest = load_manifest(manifest_path)
        _manifest, request = resolve_request(
            manifest, _resolve_kubeconfig(args, settings), args.namespace
        )
        result = client.query(request.namespace, request.name)
    except ConfigError as e:
        _print_error(str(e))
        return 1
    except OrchestratorError as e:
        _print_error(e.message)
        return 1

    if args.json_output:
        print(json.dumps({
            'namespace': request.namespace,
            'name': request.name,
            'state': result.state.value,
            'raw_state': result.raw_state,
            'message': result.message,
        }))
    else:
        line = f"{request}: {result.state.value} ({result.raw_state})"
        if result.message:
            line += f" - {result.message}"
        print(line)
    return 0
