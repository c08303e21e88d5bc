"""Activation bookkeeping keyed by (namespace, name).

ActivationRegistry is the in-process single-flight guard: at most one
polling loop per identity. EnvironmentStore persists which environments
were launched so a later `down` can find the manifest without asking.
"""

import json
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional

from activation.machine import ActivationRequest

logger = logging.getLogger(__name__)


class ActivationInProgressError(Exception):
    """An activation for this identity is already running."""

    def __init__(self, request: ActivationRequest):
        self.request = request
        super().__init__(f"An activation for {request} is already in progress")


@dataclass
class ActiveActivation:
    """An in-flight activation."""
    request: ActivationRequest
    manifest_path: Path
    started_at: float


class ActivationRegistry:
    """In-flight activations, one per (namespace, name)."""

    def __init__(self):
        self._active: dict[tuple[str, str], ActiveActivation] = {}

    def acquire(self, request: ActivationRequest, manifest_path: Path) -> ActiveActivation:
        """Claim an identity.

        Raises:
            ActivationInProgressError: If the identity is already claimed
        """
        if request.identity in self._active:
            raise ActivationInProgressError(request)
        entry = ActiveActivation(request=request, manifest_path=Path(manifest_path), started_at=time.time())
        self._active[request.identity] = entry
        return entry

    def release(self, request: ActivationRequest) -> None:
        self._active.pop(request.identity, None)

    def get(self, request: ActivationRequest) -> Optional[ActiveActivation]:
        return self._active.get(request.identity)

    def is_active(self, request: ActivationRequest) -> bool:
        return request.identity in self._active

    def __len__(self) -> int:
        return len(self._active)

    @contextmanager
    def activation(self, request: ActivationRequest, manifest_path: Path) -> Iterator[ActiveActivation]:
        """Hold an identity for the duration of a with-block."""
        entry = self.acquire(request, manifest_path)
        try:
            yield entry
        finally:
            self.release(request)


@dataclass
class EnvironmentRecord:
    """A launched environment, as persisted for `down`."""
    namespace: str
    name: str
    manifest_path: str
    kubeconfig: str = ''
    launched_at: float = 0.0

    @property
    def request(self) -> ActivationRequest:
        return ActivationRequest(namespace=self.namespace, name=self.name)

    def to_dict(self) -> dict[str, Any]:
        return {
            'namespace': self.namespace,
            'name': self.name,
            'manifest_path': self.manifest_path,
            'kubeconfig': self.kubeconfig,
            'launched_at': self.launched_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'EnvironmentRecord':
        return cls(
            namespace=data['namespace'],
            name=data['name'],
            manifest_path=data['manifest_path'],
            kubeconfig=data.get('kubeconfig', ''),
            launched_at=data.get('launched_at', 0.0),
        )


class EnvironmentStore:
    """Launched environments, persisted to <state_dir>/active.json."""

    def __init__(self, state_dir: Path):
        self.path = Path(state_dir) / 'active.json'

    def _load(self) -> dict[str, EnvironmentRecord]:
        try:
            with open(self.path, encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable environment store {self.path}: {e}")
            return {}

        environments = data.get('environments', {}) if isinstance(data, dict) else None
        if not isinstance(environments, dict):
            logger.warning(f"Ignoring environment store {self.path}: expected an object of environments")
            return {}

        records = {}
        for key, entry in environments.items():
            try:
                records[key] = EnvironmentRecord.from_dict(entry)
            except (KeyError, TypeError):
                logger.warning(f"Skipping malformed environment record '{key}'")
        return records

    def _save(self, records: dict[str, EnvironmentRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {'environments': {key: r.to_dict() for key, r in records.items()}}
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        logger.debug(f"Saved environment store to {self.path}")

    @staticmethod
    def _key(request: ActivationRequest) -> str:
        return str(request)

    def record(self, request: ActivationRequest, manifest_path: Path, kubeconfig: Path) -> EnvironmentRecord:
        """Remember a launched environment."""
        records = self._load()
        entry = EnvironmentRecord(
            namespace=request.namespace,
            name=request.name,
            manifest_path=str(manifest_path),
            kubeconfig=str(kubeconfig),
            launched_at=time.time(),
        )
        records[self._key(request)] = entry
        self._save(records)
        return entry

    def remove(self, request: ActivationRequest) -> None:
        records = self._load()
        if records.pop(self._key(request), None) is not None:
            self._save(records)

    def get(self, request: ActivationRequest) -> Optional[EnvironmentRecord]:
        return self._load().get(self._key(request))

    def latest(self) -> Optional[EnvironmentRecord]:
        """Most recently launched environment."""
        records = self._load()
        if not records:
            return None
        return max(records.values(), key=lambda r: r.launched_at)

    def all(self) -> list[EnvironmentRecord]:
        return sorted(self._load().values(), key=lambda r: r.launched_at)
