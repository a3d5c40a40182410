"""
Bounded retry policy shared by the gate, capture waits and the collector.

Every loop in the engine is bounded by an attempt ceiling with a fixed delay
between attempts. There is no exponential backoff: the latency being waited
out is page render and network time, not contention.

Usage:
    from harvest_core.retry import RetryPolicy, poll

    policy = RetryPolicy(max_attempts=30, interval_ms=1000)
    payload = await poll(host, lambda: host.read_capture("profileResponse"), policy)
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from .errors import CollaboratorError

logger = logging.getLogger(__name__)

# (previous, current) -> True when the loop made no progress
StallDetector = Callable[[Any, Any], bool]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt ceiling plus fixed inter-attempt delay.

    Args:
        max_attempts: Maximum number of attempts (>= 1)
        interval_ms: Delay between attempts
        stall_detector: Optional progress check used by looping consumers
        wait_first: Sleep before the first attempt as well
    """
    max_attempts: int = 3
    interval_ms: int = 1000
    stall_detector: Optional[StallDetector] = None
    wait_first: bool = False

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval_ms < 0:
            raise ValueError("interval_ms must not be negative")

    def is_stalled(self, previous: Any, current: Any) -> bool:
        if self.stall_detector is None:
            return False
        return bool(self.stall_detector(previous, current))


async def poll(
    host,
    fn: Callable[[], Awaitable[Any]],
    policy: RetryPolicy,
    accept: Callable[[Any], bool] = bool,
    label: str = "",
) -> Optional[Any]:
    """
    Call fn until accept(result) holds or the policy is exhausted.

    Collaborator failures count as a failed attempt. Exhaustion is not an
    error: the caller gets None and decides what absence means.

    Args:
        host: Host providing wait(ms)
        fn: Async zero-argument callable
        policy: Attempt ceiling and delay
        accept: Predicate deciding whether a result ends the loop
        label: Name used in debug logs

    Returns:
        The first accepted result, or None
    """
    for attempt in range(1, policy.max_attempts + 1):
        if attempt > 1 or policy.wait_first:
            await host.wait(policy.interval_ms)
        try:
            result = await fn()
        except CollaboratorError as e:
            logger.debug(f"{label or 'poll'} attempt {attempt}/{policy.max_attempts} failed: {e}")
            continue
        if accept(result):
            if attempt > 1:
                logger.debug(f"{label or 'poll'} succeeded on attempt {attempt}")
            return result
    logger.debug(f"{label or 'poll'} exhausted after {policy.max_attempts} attempts")
    return None
