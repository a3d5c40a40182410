"""
Probe Evaluator - point-in-time checks against the current page.

A probe is a zero-argument coroutine returning a ProbeResult (or anything
truthy/falsy). Probes are recomputed on demand and never cached.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from .errors import CollaboratorError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one check. Truthy when the check ran and its value is truthy."""
    ok: bool
    value: Any = None
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok and bool(self.value)

    @classmethod
    def from_raw(cls, raw: Any) -> "ProbeResult":
        """
        Normalize a script result.

        Scripts report their own failures as {"ok": false, "error": "..."};
        any other value is taken as the probe value.
        """
        if isinstance(raw, ProbeResult):
            return raw
        if isinstance(raw, dict) and "ok" in raw:
            return cls(ok=bool(raw.get("ok")), value=raw.get("value"), error=raw.get("error"))
        return cls(ok=True, value=raw)

    @classmethod
    def failed(cls, error: str) -> "ProbeResult":
        return cls(ok=False, error=error)


Probe = Callable[[], Awaitable[Union[ProbeResult, Any]]]


async def run_probe(probe: Probe) -> ProbeResult:
    """Run a probe, folding host failures into a failed result."""
    try:
        return ProbeResult.from_raw(await probe())
    except CollaboratorError as e:
        logger.debug(f"Probe failed: {e}")
        return ProbeResult.failed(str(e))


class ProbeEvaluator:
    """Builds probes from page scripts run through the host."""

    def __init__(self, host):
        self.host = host

    async def check(self, script: str, arg: Any = None) -> ProbeResult:
        try:
            raw = await self.host.evaluate(script, arg)
        except CollaboratorError as e:
            logger.debug(f"Probe script failed: {e}")
            return ProbeResult.failed(str(e))
        return ProbeResult.from_raw(raw)

    def probe(self, script: str, arg: Any = None) -> Probe:
        async def _probe() -> ProbeResult:
            return await self.check(script, arg)
        return _probe
