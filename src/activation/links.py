"""Activation links.

An activation link seeds `up` without any manual picking:

    vscode://okteto.remote-kubernetes/up?repository=localhost&manifest=frontend/okteto.yml
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlsplit


@dataclass(frozen=True)
class ActivationLink:
    """Parsed activation link."""
    command: str
    repository: Optional[str] = None
    manifest: Optional[str] = None


def _param(query: dict, key: str) -> Optional[str]:
    # Repeated parameters are joined with commas
    values = query.get(key)
    if not values:
        return None
    return ','.join(values)


def parse_activation_uri(uri: str) -> Optional[ActivationLink]:
    """Parse an activation link.

    Returns:
        ActivationLink for `up` links, None for any other command
    """
    parts = urlsplit(uri)
    segments = [s for s in parts.path.split('/') if s]
    if not segments or segments[0] != 'up':
        return None

    query = parse_qs(parts.query)
    return ActivationLink(
        command='up',
        repository=_param(query, 'repository'),
        manifest=_param(query, 'manifest'),
    )
