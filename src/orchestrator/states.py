"""Orchestrator lifecycle states.

The orchestrator reports a raw state tag per environment. The driver maps
those tags onto a small finite lifecycle; tags it doesn't know map to
UNKNOWN and keep their raw value for messaging.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LifecycleState(Enum):
    """Mapped lifecycle of a development environment."""
    LAUNCHING = 'launching'
    PROVISIONING = 'provisioning'
    SYNCING = 'syncing'
    READY = 'ready'
    FAILED = 'failed'
    UNKNOWN = 'unknown'

    @property
    def is_terminal(self) -> bool:
        return self in (LifecycleState.READY, LifecycleState.FAILED)


# Raw tag written by the orchestrator -> lifecycle state
STATE_TABLE = {
    'activating': LifecycleState.LAUNCHING,
    'starting': LifecycleState.LAUNCHING,
    'attaching': LifecycleState.PROVISIONING,
    'pulling': LifecycleState.PROVISIONING,
    'startingSync': LifecycleState.SYNCING,
    'synchronizing': LifecycleState.SYNCING,
    'ready': LifecycleState.READY,
    'failed': LifecycleState.FAILED,
}

# Raw tag -> progress message shown the first time the tag is seen
STATE_MESSAGES = {
    'activating': 'Activating your development container...',
    'starting': 'Starting your development container...',
    'attaching': 'Attaching your persistent volume...',
    'pulling': 'Pulling your image...',
    'startingSync': 'Starting the file synchronization service...',
    'synchronizing': 'Synchronizing your files...',
    'ready': 'Your development container is ready!',
}

# Tag reported before the orchestrator has written any state
INITIAL_TAG = 'activating'


def map_state(raw_state: str) -> LifecycleState:
    """Map a raw tag to a lifecycle state (UNKNOWN if unrecognized)."""
    return STATE_TABLE.get(raw_state, LifecycleState.UNKNOWN)


def state_message(raw_state: str) -> Optional[str]:
    """Friendly progress message for a raw tag, if there is one."""
    return STATE_MESSAGES.get(raw_state)


@dataclass(frozen=True)
class PollResult:
    """One snapshot of an environment's state.

    Attributes:
        state: Mapped lifecycle state
        raw_state: Tag as reported by the orchestrator
        message: Failure detail (only meaningful when state is FAILED)
    """
    state: LifecycleState
    raw_state: str
    message: str = ''

    @classmethod
    def from_tag(cls, raw_state: str, message: str = '') -> 'PollResult':
        return cls(state=map_state(raw_state), raw_state=raw_state, message=message)

    @classmethod
    def parse(cls, content: str) -> 'PollResult':
        """Parse state file content: '<tag>' or '<tag>:<message>'."""
        raw_state, _, message = content.strip().partition(':')
        return cls.from_tag(raw_state.strip(), message.strip())
