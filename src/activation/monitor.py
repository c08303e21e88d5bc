"""Post-activation failure monitor.

Once an environment is ready it can still fail later (e.g. the container
is evicted). watch_for_failure keeps polling until that happens or the
caller cancels.
"""

import asyncio
import logging
from typing import Optional

from activation.machine import ActivationRequest, CancellationToken
from config import DEFAULT_MAX_QUERY_FAILURES, DEFAULT_WATCH_INTERVAL
from orchestrator.errors import PollTransportError
from orchestrator.states import LifecycleState

logger = logging.getLogger(__name__)


async def watch_for_failure(
    client,
    request: ActivationRequest,
    token: CancellationToken,
    interval: float = DEFAULT_WATCH_INTERVAL,
    max_query_failures: int = DEFAULT_MAX_QUERY_FAILURES,
    process=None,
) -> Optional[str]:
    """Poll a ready environment until it fails.

    process is the launched `okteto up` handle; it is polled each round so
    the child is collected as soon as it exits.

    Returns:
        The failure message, or None if the token was cancelled first
    """
    failures = 0
    while not token.cancelled:
        if process is not None:
            process.poll()
        try:
            result = await asyncio.to_thread(client.query, request.namespace, request.name)
        except PollTransportError as e:
            failures += 1
            logger.warning(f"State query for {request} failed: {e.message}")
            if failures > max_query_failures:
                return f"lost contact with the orchestrator: {e.message}"
        else:
            failures = 0
            if result.state is LifecycleState.FAILED:
                logger.error(f"Environment {request} failed: {result.message}")
                return result.message or f"{request} failed"
            if result.state is not LifecycleState.READY:
                logger.debug(f"Environment {request} is {result.raw_state}")

        if await token.wait(interval):
            break

    return None
