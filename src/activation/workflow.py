"""Caller flows around the activation state machine.

Everything that must succeed before polling starts lives here: the
orchestrator bootstrap, manifest selection and namespace resolution.
Configuration and dependency errors are raised from these helpers, never
from inside the polling loop.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from activation.machine import (
    ActivationMachine,
    ActivationOutcome,
    ActivationRequest,
    CancellationToken,
    OutcomeStatus,
    ProgressCallback,
)
from activation.registry import ActivationRegistry, EnvironmentStore
from config import ConfigError, DriverSettings
from kubeconfig import current_namespace
from manifest import Manifest, find_manifests, get_default_location, load_manifest
from orchestrator.bootstrap import ensure_installed, with_dependency_retry
from orchestrator.client import runtime_values
from orchestrator.errors import DependencyError

logger = logging.getLogger(__name__)

NO_CONTEXT_MESSAGE = "Couldn't detect your current Kubernetes context."


def select_manifest(
    path: Optional[Path] = None,
    root: Optional[Path] = None,
    pattern: Optional[str] = None,
) -> Path:
    """Pick the manifest to operate on.

    Precedence: explicit path, first match of pattern under root, the
    single manifest found under root.

    Raises:
        ConfigError: If no manifest (or more than one) is found
    """
    if path is not None:
        return Path(path)

    root = Path(root) if root is not None else Path.cwd()

    if pattern:
        if Path(pattern).is_absolute():
            matches = [Path(pattern)] if Path(pattern).is_file() else []
        else:
            matches = sorted(p for p in root.glob(pattern) if p.is_file())
        if matches:
            return matches[0]
        logger.info(f"No manifest matches '{pattern}' in {root}, searching workspace")

    found = find_manifests(root)
    if not found:
        raise ConfigError(
            f"No manifests found in {root}.\n"
            "Run the 'create' command to create one and then try again."
        )
    if len(found) > 1:
        listing = '\n'.join(f"  {p.relative_to(root)}" for p in found)
        raise ConfigError(f"Multiple manifests found, choose one with --file:\n{listing}")
    return found[0]


def resolve_request(
    manifest: Manifest,
    kubeconfig: Path,
    namespace: Optional[str] = None,
) -> tuple[Manifest, ActivationRequest]:
    """Bind a manifest to a namespace.

    Precedence: explicit namespace, manifest namespace, kubeconfig
    current context.

    Raises:
        ConfigError: If no namespace can be determined
    """
    if namespace:
        manifest = manifest.with_namespace(namespace)
    elif not manifest.is_resolved:
        detected = current_namespace(kubeconfig)
        if not detected:
            raise ConfigError(NO_CONTEXT_MESSAGE)
        logger.info(f"Using namespace '{detected}' from {kubeconfig}")
        manifest = manifest.with_namespace(detected)

    assert manifest.namespace is not None
    return manifest, ActivationRequest(namespace=manifest.namespace, name=manifest.name)


@dataclass
class ActivationResult:
    """What `up` hands back to its caller."""
    manifest: Manifest
    manifest_path: Path
    request: ActivationRequest
    outcome: ActivationOutcome
    machine: ActivationMachine


async def up(
    manifest_path: Path,
    client,
    settings: DriverSettings,
    kubeconfig: Path,
    registry: ActivationRegistry,
    store: EnvironmentStore,
    namespace: Optional[str] = None,
    token: Optional[CancellationToken] = None,
    progress: Optional[ProgressCallback] = None,
) -> ActivationResult:
    """Activate the environment described by a manifest.

    Raises:
        ConfigError: Manifest missing/invalid or no namespace (before launch)
        DependencyError: Orchestrator could not be installed (before launch)
        ActivationInProgressError: Identity already being activated
        LaunchError: Orchestrator rejected the launch
    """
    await asyncio.to_thread(ensure_installed, client)

    manifest = load_manifest(manifest_path)
    manifest, request = resolve_request(manifest, kubeconfig, namespace)

    with registry.activation(request, manifest_path):
        for attempt in (1, 2):
            machine = ActivationMachine(
                client,
                request,
                manifest_path,
                kubeconfig,
                progress=progress,
                interval=settings.poll_interval,
                max_ticks=settings.max_ticks,
                max_query_failures=settings.max_query_failures,
            )
            try:
                outcome = await machine.run(token)
                break
            except DependencyError as e:
                if attempt == 2:
                    raise
                logger.warning(f"{e.message}; installing and retrying once")
                await asyncio.to_thread(ensure_installed, client)

        if outcome.status is OutcomeStatus.CANCELLED:
            store.remove(request)
        else:
            store.record(request, manifest_path, kubeconfig)

    return ActivationResult(
        manifest=manifest,
        manifest_path=Path(manifest_path),
        request=request,
        outcome=outcome,
        machine=machine,
    )


def down(
    client,
    store: EnvironmentStore,
    kubeconfig: Path,
    manifest_path: Optional[Path] = None,
    namespace: Optional[str] = None,
) -> ActivationRequest:
    """Tear down an environment.

    Without manifest_path, the most recently launched environment is used.

    Raises:
        ConfigError: No manifest, invalid manifest, or no namespace
        DependencyError: Orchestrator could not be installed
        TeardownError: Orchestrator failed to tear down
    """
    if manifest_path is None:
        record = store.latest()
        if record is None:
            raise ConfigError("No active environment found, pass the manifest with --file")
        manifest_path = Path(record.manifest_path)
        namespace = namespace or record.namespace
        logger.info(f"Using active environment {record.request} ({manifest_path})")

    manifest = load_manifest(manifest_path)
    manifest, request = resolve_request(manifest, kubeconfig, namespace)

    with_dependency_retry(
        client,
        lambda: client.teardown(manifest_path, request.namespace, kubeconfig),
    )
    store.remove(request)
    return request


def create(client, runtime: str, root: Optional[Path] = None) -> Path:
    """Scaffold a manifest for the project at root.

    Raises:
        ConfigError: No project directory or unknown runtime
        DependencyError: Orchestrator could not be installed
        InitError: Orchestrator failed to scaffold
    """
    manifest_path = get_default_location(root)
    if manifest_path is None:
        raise ConfigError("Couldn't detect your project's path")

    if runtime not in runtime_values():
        raise ConfigError(
            f"Unknown runtime '{runtime}'. Available: {', '.join(runtime_values())}"
        )

    with_dependency_retry(client, lambda: client.init(manifest_path, runtime))
    logger.info(f"Created {manifest_path}")
    return manifest_path
