"""Shared pytest fixtures for devenv-driver tests."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from config import DriverSettings  # noqa: E402
from orchestrator.errors import PollTransportError  # noqa: E402
from orchestrator.states import PollResult  # noqa: E402


@pytest.fixture
def manifest_file(tmp_path):
    """Manifest without a namespace (resolved from kubeconfig)."""
    path = tmp_path / 'project' / 'okteto.yml'
    path.parent.mkdir(parents=True)
    path.write_text("""
name: frontend
runtime: javascript
""")
    return path


@pytest.fixture
def kubeconfig_file(tmp_path):
    """Kubeconfig whose current context uses namespace 'dev'."""
    path = tmp_path / 'kubeconfig'
    path.write_text("""
apiVersion: v1
kind: Config
current-context: dev-cluster
contexts:
  - name: dev-cluster
    context:
      cluster: dev
      namespace: dev
  - name: prod-cluster
    context:
      cluster: prod
      namespace: prod
""")
    return path


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in tmp_path with a fast poll interval."""
    return DriverSettings(
        install_dir=tmp_path / 'bin',
        okteto_home=tmp_path / 'okteto-home',
        state_dir=tmp_path / 'state',
        poll_interval=0.001,
        max_ticks=50,
        watch_interval=0.001,
    )


def scripted_query(*steps):
    """Build a query side effect from a script of steps.

    Each step is a raw tag string ('pulling'), a 'failed:<message>' string,
    or an exception instance to raise. The last step repeats forever.
    """
    calls = {'n': 0}

    def query(namespace, name):
        step = steps[min(calls['n'], len(steps) - 1)]
        calls['n'] += 1
        if isinstance(step, Exception):
            raise step
        return PollResult.parse(step)

    return query


@pytest.fixture
def fake_client():
    """Orchestrator client double; set query.side_effect with scripted_query."""
    client = MagicMock()
    client.launch.return_value = None
    client.teardown.return_value = None
    client.needs_install.return_value = (False, False)
    client.query.side_effect = scripted_query('ready')
    return client


def transport_error(message='state file unreadable'):
    return PollTransportError(message)
