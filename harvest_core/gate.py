"""
Authentication Gate - observes login state and waits for the human.

The gate never logs in. It asks a probe whether the session is
authenticated, re-checks once after a settle delay (probes give false
negatives while pages are still loading), and otherwise hands the operator an
instruction through the host's confirmation wait. The result of that wait is
never trusted blindly: the probe is re-run afterwards and only a true
re-check counts.

    CHECKING -> AUTHENTICATED
    CHECKING -> AWAITING_HUMAN -> AUTHENTICATED | FAILED
"""

import logging
from enum import Enum
from typing import List, Optional

from .errors import HarvestError
from .host import emit_progress
from .probe import Probe, run_probe
from .retry import RetryPolicy, poll

logger = logging.getLogger(__name__)


class GateState(Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    AWAITING_HUMAN = "awaiting_human"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (GateState.AUTHENTICATED, GateState.FAILED)


class AuthenticationGate:
    """
    One gate per connector run.

    Args:
        host: SidecarHost
        settle_policy: Re-checks applied before a negative probe is trusted.
            The default re-checks once after 2 seconds.
    """

    def __init__(self, host, settle_policy: Optional[RetryPolicy] = None):
        self.host = host
        self.settle_policy = settle_policy or RetryPolicy(max_attempts=1, interval_ms=2000, wait_first=True)
        self.state = GateState.UNKNOWN
        self.history: List[GateState] = [self.state]
        self.confirmations = 0

    def _transition(self, state: GateState) -> GateState:
        logger.debug(f"Gate: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)
        return state

    async def _check(self, probe: Probe) -> bool:
        return bool(await run_probe(probe))

    async def ensure_authenticated(
        self,
        probe: Probe,
        human_prompt: str,
        poll_interval_ms: int = 2000,
    ) -> GateState:
        """
        Drive the gate to a terminal state.

        Args:
            probe: Async check returning a truthy ProbeResult when logged in
            human_prompt: Instruction shown to the operator
            poll_interval_ms: How often the host re-runs the probe while waiting

        Returns:
            GateState.AUTHENTICATED or GateState.FAILED
        """
        self._transition(GateState.CHECKING)
        await emit_progress(self.host, "status", "Checking login status...")

        if await self._check(probe):
            await emit_progress(self.host, "status", "Already logged in")
            return self._transition(GateState.AUTHENTICATED)

        settled = await poll(self.host, lambda: self._check(probe), self.settle_policy, label="login settle")
        if settled:
            await emit_progress(self.host, "status", "Already logged in")
            return self._transition(GateState.AUTHENTICATED)

        self._transition(GateState.AWAITING_HUMAN)
        await emit_progress(self.host, "status", human_prompt)
        self.confirmations += 1
        try:
            confirmed = await self.host.await_human_confirmation(
                human_prompt,
                lambda: self._check(probe),
                poll_interval_ms,
            )
        except (HarvestError, TimeoutError) as e:
            logger.warning(f"Human confirmation wait failed: {e}")
            confirmed = False

        if not confirmed:
            await emit_progress(self.host, "status", "Login was not completed")
            return self._transition(GateState.FAILED)

        if not await self._check(probe):
            logger.warning("Confirmation reported success but the login check still fails")
            await emit_progress(self.host, "status", "Login could not be verified")
            return self._transition(GateState.FAILED)

        await emit_progress(self.host, "status", "Login completed")
        return self._transition(GateState.AUTHENTICATED)
