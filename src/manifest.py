"""Manifest loading and validation for development environments.

A manifest describes one development environment: its name, the
Kubernetes namespace it runs in, and the runtime used to scaffold it.

Example okteto.yml:

    name: frontend
    namespace: dev        # optional, resolved from kubeconfig when absent
    runtime: javascript   # optional, used by the create flow
"""

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

import yaml

from config import ConfigError

logger = logging.getLogger(__name__)

# Conventional manifest file names
MANIFEST_FILENAME = 'okteto.yml'
MANIFEST_FILENAMES = ('okteto.yml', 'okteto.yaml')

# Directories never searched for manifests
SKIP_DIRS = {'node_modules'}


class ManifestNotFoundError(ConfigError):
    """Manifest file does not exist."""


class ManifestParseError(ConfigError):
    """Manifest file is not valid YAML or fails validation."""


@dataclass(frozen=True)
class Manifest:
    """Development environment manifest.

    Attributes:
        name: Environment name (required)
        namespace: Kubernetes namespace (None until resolved)
        runtime: Runtime/language tag for the create flow
        source_path: Path where manifest was loaded from
    """
    name: str
    namespace: Optional[str] = None
    runtime: Optional[str] = None
    source_path: Optional[Path] = None

    @property
    def is_resolved(self) -> bool:
        """True once a namespace is known."""
        return bool(self.namespace)

    def with_namespace(self, namespace: str) -> 'Manifest':
        """Return a copy bound to namespace."""
        return replace(self, namespace=namespace)

    @classmethod
    def from_dict(cls, data: dict, source_path: Optional[Path] = None) -> 'Manifest':
        """Create Manifest from dictionary.

        Raises:
            ManifestParseError: If a field is missing or has the wrong type
        """
        where = f" ({source_path})" if source_path else ''

        name = data.get('name')
        if name is None or name == '':
            raise ManifestParseError(f"Manifest missing required field: name{where}")
        if not isinstance(name, str):
            raise ManifestParseError(f"Manifest field 'name' must be a string{where}")

        namespace = data.get('namespace')
        if namespace is not None and not isinstance(namespace, str):
            raise ManifestParseError(f"Manifest field 'namespace' must be a string{where}")

        runtime = data.get('runtime', data.get('language'))
        if runtime is not None and not isinstance(runtime, str):
            raise ManifestParseError(f"Manifest field 'runtime' must be a string{where}")

        return cls(
            name=name,
            namespace=namespace or None,
            runtime=runtime or None,
            source_path=source_path,
        )


def load_manifest(path: Path) -> Manifest:
    """Load manifest from a file path.

    Args:
        path: Path to manifest YAML file

    Returns:
        Manifest instance (namespace may still be unresolved)

    Raises:
        ManifestNotFoundError: If the file does not exist
        ManifestParseError: If the file is invalid
    """
    path = Path(path)
    if not path.is_file():
        raise ManifestNotFoundError(f"Manifest file not found: {path}")

    try:
        with open(path, encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ManifestParseError(f"Invalid YAML in manifest {path}: {e}")
    except UnicodeDecodeError as e:
        raise ManifestParseError(f"Manifest {path} is not valid UTF-8: {e}")
    except OSError as e:
        raise ManifestNotFoundError(f"Cannot read manifest {path}: {e}")

    if not isinstance(data, dict):
        raise ManifestParseError(f"Manifest {path} must be a YAML object (dict)")

    manifest = Manifest.from_dict(data, source_path=path)
    logger.debug(f"Loaded manifest {manifest.name} from {path}")
    return manifest


def get_default_location(root: Optional[Path] = None) -> Optional[Path]:
    """Conventional manifest location for a project root.

    Args:
        root: Project directory. Defaults to the current working directory.

    Returns:
        root/okteto.yml, or None if no project directory is resolvable
    """
    if root is None:
        try:
            root = Path.cwd()
        except FileNotFoundError:
            # cwd was deleted under us
            return None
    if not root.is_dir():
        return None
    return root / MANIFEST_FILENAME


def find_manifests(root: Path) -> list[Path]:
    """Find every manifest below root.

    Skips node_modules and hidden directories.

    Returns:
        Sorted list of manifest paths
    """
    found = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in SKIP_DIRS and not d.startswith('.')]
        for filename in filenames:
            if filename in MANIFEST_FILENAMES:
                found.append(Path(dirpath) / filename)
    return sorted(found)
