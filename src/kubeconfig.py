"""Kubernetes context discovery.

Only two things are read from a kubeconfig: the current-context name and
the namespace of that context. Credentials are left to the orchestrator.
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

# kubectl's namespace when a context doesn't name one
DEFAULT_NAMESPACE = 'default'


def get_kubeconfig() -> Path:
    """Resolve the kubeconfig path.

    Resolution order:
    1. First entry of $KUBECONFIG
    2. ~/.kube/config
    """
    if env_value := os.environ.get('KUBECONFIG'):
        first = next((p for p in env_value.split(os.pathsep) if p), '')
        if first:
            return Path(first).expanduser()
    return Path.home() / '.kube' / 'config'


def current_namespace(kubeconfig: Path) -> Optional[str]:
    """Namespace of the active context.

    Returns None (never raises) when the kubeconfig is missing or invalid,
    has no current-context, or the current context is not defined.
    """
    try:
        with open(kubeconfig, encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Cannot read kubeconfig {kubeconfig}: {e}")
        return None
    except yaml.YAMLError as e:
        logger.debug(f"Invalid kubeconfig {kubeconfig}: {e}")
        return None

    if not isinstance(data, dict):
        return None

    current = data.get('current-context')
    if not current:
        logger.debug(f"No current-context in {kubeconfig}")
        return None

    for entry in data.get('contexts') or []:
        if not isinstance(entry, dict) or entry.get('name') != current:
            continue
        context = entry.get('context') or {}
        namespace = context.get('namespace') if isinstance(context, dict) else None
        return namespace or DEFAULT_NAMESPACE

    logger.debug(f"Context '{current}' not defined in {kubeconfig}")
    return None
