"""Environment activation: the state machine and the flows around it.

Drives the orchestrator from an `up` request to a terminal outcome
(ready, failed, timed out, cancelled).
"""

from activation.machine import (
    ActivationMachine,
    ActivationOutcome,
    ActivationRequest,
    CancellationToken,
    OutcomeStatus,
    Phase,
)
from activation.registry import ActivationInProgressError, ActivationRegistry, EnvironmentStore

__all__ = [
    'ActivationMachine',
    'ActivationOutcome',
    'ActivationRequest',
    'CancellationToken',
    'OutcomeStatus',
    'Phase',
    'ActivationInProgressError',
    'ActivationRegistry',
    'EnvironmentStore',
]
