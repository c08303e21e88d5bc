"""Activation state machine.

Drives one activation attempt from launch to a terminal outcome:

    IDLE -> LAUNCHING -> POLLING -> READY | FAILED | TIMED_OUT | CANCELLED

The loop runs as a single asyncio task. Blocking orchestrator calls run in
worker threads, and each tick sleeps for a fixed interval. Cancellation is
cooperative: it is observed at tick boundaries, never in the middle of a
query, and triggers a fire-and-forget teardown.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from config import DEFAULT_MAX_QUERY_FAILURES, DEFAULT_MAX_TICKS, DEFAULT_POLL_INTERVAL
from orchestrator.bootstrap import with_dependency_retry
from orchestrator.errors import PollTransportError
from orchestrator.states import LifecycleState, state_message

logger = logging.getLogger(__name__)

LAUNCH_MESSAGE = 'Launching your development environment...'
TIMEOUT_MESSAGE = "task didn't finish in 5 minutes"

ProgressCallback = Callable[[str], None]


class Phase(Enum):
    """Phase of an activation attempt."""
    IDLE = 'idle'
    LAUNCHING = 'launching'
    POLLING = 'polling'
    READY = 'ready'
    FAILED = 'failed'
    TIMED_OUT = 'timed_out'
    CANCELLED = 'cancelled'

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_PHASES


TERMINAL_PHASES = frozenset({Phase.READY, Phase.FAILED, Phase.TIMED_OUT, Phase.CANCELLED})


class OutcomeStatus(Enum):
    """Terminal result of an activation attempt."""
    READY = 'ready'
    FAILED = 'failed'
    TIMED_OUT = 'timed_out'
    CANCELLED = 'cancelled'


_OUTCOME_PHASES = {
    OutcomeStatus.READY: Phase.READY,
    OutcomeStatus.FAILED: Phase.FAILED,
    OutcomeStatus.TIMED_OUT: Phase.TIMED_OUT,
    OutcomeStatus.CANCELLED: Phase.CANCELLED,
}


@dataclass(frozen=True)
class ActivationRequest:
    """Identity of one activation: the (namespace, name) pair."""
    namespace: str
    name: str

    @property
    def identity(self) -> tuple[str, str]:
        return (self.namespace, self.name)

    def __str__(self) -> str:
        return f'{self.namespace}/{self.name}'


@dataclass(frozen=True)
class ActivationOutcome:
    """The single terminal value of an activation attempt."""
    status: OutcomeStatus
    message: str = ''

    @property
    def success(self) -> bool:
        return self.status is OutcomeStatus.READY

    def to_dict(self) -> dict:
        return {'status': self.status.value, 'message': self.message}


class CancellationToken:
    """Cooperative cancellation flag for an activation loop.

    cancel() may be called from any coroutine or from a signal handler
    registered with loop.add_signal_handler.
    """

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait up to timeout seconds for cancellation.

        Returns:
            True if cancelled, False if the timeout elapsed first
        """
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True


class ActivationMachine:
    """Runs one activation attempt against the orchestrator.

    A machine owns all mutable loop state (tick counter, seen tags, query
    failures), so independent identities can run concurrently on separate
    machines. Serializing attempts for the same identity is the caller's
    job (see ActivationRegistry).

    Attributes:
        client: Orchestrator client (launch/query/teardown)
        request: Identity being activated
        manifest_path: Manifest passed to launch and teardown
        kubeconfig: Kubeconfig passed to launch and teardown
        progress: Receives human-readable progress messages
        interval: Seconds between ticks
        max_ticks: Ticks before TIMED_OUT
        max_query_failures: Consecutive failed queries tolerated
    """

    def __init__(
        self,
        client,
        request: ActivationRequest,
        manifest_path: Path,
        kubeconfig: Path,
        progress: Optional[ProgressCallback] = None,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_ticks: int = DEFAULT_MAX_TICKS,
        max_query_failures: int = DEFAULT_MAX_QUERY_FAILURES,
    ):
        if max_ticks < 1:
            raise ValueError("max_ticks must be at least 1")
        self.client = client
        self.request = request
        self.manifest_path = manifest_path
        self.kubeconfig = kubeconfig
        self.progress = progress
        self.interval = interval
        self.max_ticks = max_ticks
        self.max_query_failures = max_query_failures

        self._phase = Phase.IDLE
        self._outcome: Optional[ActivationOutcome] = None
        self._ticks = 0
        self._seen: set[str] = set()
        self._teardown_tasks: set[asyncio.Task] = set()
        self._process = None

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def outcome(self) -> Optional[ActivationOutcome]:
        return self._outcome

    @property
    def ticks(self) -> int:
        """Ticks elapsed in this attempt."""
        return self._ticks

    @property
    def process(self):
        """Handle of the launched orchestrator process, if launch returned one."""
        return self._process

    def reap(self) -> Optional[int]:
        """Collect the launched process if it has exited.

        Returns:
            Its exit code, or None while it is still running
        """
        if self._process is None:
            return None
        exited = self._process.returncode is not None
        returncode = self._process.poll()
        if returncode is not None and not exited:
            logger.debug(f"okteto up for {self.request} exited with code {returncode}")
        return returncode

    def _emit(self, message: str) -> None:
        if self.progress is not None:
            self.progress(message)

    def _finish(self, status: OutcomeStatus, message: str = '') -> ActivationOutcome:
        self._phase = _OUTCOME_PHASES[status]
        self._outcome = ActivationOutcome(status=status, message=message)
        logger.info(f"Activation {self.request} finished: {status.value}"
                    + (f" ({message})" if message else ''))
        return self._outcome

    async def run(self, token: Optional[CancellationToken] = None) -> ActivationOutcome:
        """Launch the environment and poll until a terminal outcome.

        Args:
            token: Cancellation token observed at tick boundaries

        Returns:
            The terminal ActivationOutcome

        Raises:
            LaunchError: If the orchestrator rejects the launch
            DependencyError: If the orchestrator is missing at launch time
            RuntimeError: If this machine has already run
        """
        if self._phase is not Phase.IDLE:
            raise RuntimeError(f"Activation {self.request} already started ({self._phase.value})")
        if token is None:
            token = CancellationToken()

        self._phase = Phase.LAUNCHING
        logger.debug(f"Activation {self.request}: launching")
        try:
            self._process = await asyncio.to_thread(
                self.client.launch,
                self.manifest_path,
                self.request.namespace,
                self.request.name,
                self.kubeconfig,
            )
        except Exception:
            self._phase = Phase.FAILED
            raise

        self._phase = Phase.POLLING
        self._emit(LAUNCH_MESSAGE)
        return await self._poll(token)

    async def _poll(self, token: CancellationToken) -> ActivationOutcome:
        namespace, name = self.request.identity
        failures = 0

        while True:
            self.reap()
            result = None
            try:
                result = await asyncio.to_thread(self.client.query, namespace, name)
            except PollTransportError as e:
                failures += 1
                logger.warning(
                    f"State query for {self.request} failed "
                    f"({failures}/{self.max_query_failures}): {e.message}"
                )
                if failures > self.max_query_failures:
                    return self._finish(
                        OutcomeStatus.FAILED,
                        f"lost contact with the orchestrator: {e.message}",
                    )
            else:
                failures = 0

            if result is not None:
                if result.raw_state not in self._seen:
                    self._seen.add(result.raw_state)
                    logger.info(f"okteto is {result.raw_state or 'unknown'}")
                    message = state_message(result.raw_state)
                    if message:
                        self._emit(message)

                if result.state is LifecycleState.READY:
                    return self._finish(OutcomeStatus.READY)
                if result.state is LifecycleState.FAILED:
                    return self._finish(OutcomeStatus.FAILED, result.message)

            self._ticks += 1
            if self._ticks >= self.max_ticks:
                return self._finish(OutcomeStatus.TIMED_OUT, TIMEOUT_MESSAGE)

            if token.cancelled or await token.wait(self.interval):
                return self._cancel()

    def _cancel(self) -> ActivationOutcome:
        logger.info(f"Activation {self.request} cancelled, tearing down")
        task = asyncio.get_running_loop().create_task(self._teardown())
        self._teardown_tasks.add(task)
        task.add_done_callback(self._teardown_tasks.discard)
        return self._finish(OutcomeStatus.CANCELLED)

    async def _teardown(self) -> None:
        try:
            await asyncio.to_thread(
                with_dependency_retry,
                self.client,
                lambda: self.client.teardown(
                    self.manifest_path, self.request.namespace, self.kubeconfig
                ),
            )
        except Exception as e:
            logger.error(f"Teardown of {self.request} after cancel failed: {e}")
        else:
            logger.info(f"Teardown of {self.request} finished")

    async def wait_for_teardown(self) -> None:
        """Wait for any teardown scheduled by cancellation."""
        if self._teardown_tasks:
            await asyncio.gather(*list(self._teardown_tasks))
