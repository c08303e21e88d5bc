"""Orchestrator client: launch, query, and tear down okteto environments."""

from orchestrator.client import RUNTIMES, OrchestratorClient, runtime_values
from orchestrator.errors import (
    DependencyError,
    InitError,
    InstallError,
    LaunchError,
    OrchestratorError,
    PollTransportError,
    TeardownError,
)
from orchestrator.states import LifecycleState, PollResult, map_state, state_message

__all__ = [
    'RUNTIMES',
    'OrchestratorClient',
    'runtime_values',
    'DependencyError',
    'InitError',
    'InstallError',
    'LaunchError',
    'OrchestratorError',
    'PollTransportError',
    'TeardownError',
    'LifecycleState',
    'PollResult',
    'map_state',
    'state_message',
]
