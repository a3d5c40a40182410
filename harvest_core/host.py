"""
Host contract - the browser-automation surface every connector drives.

The engine never talks to a browser directly. It depends on this small
contract only; PlaywrightHost is the production implementation and the test
suite ships an in-memory fake.

Failures of any host call are raised as CollaboratorError. Scripts passed to
evaluate() are expected to catch their own errors and return a structured
{"ok": False, "error": ...} value instead.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, List, Optional

from .capture import CapturedPayload, CaptureSubscription
from .errors import HarvestError

logger = logging.getLogger(__name__)

# Zero-argument async check, re-run by the host while it waits for a human
ConfirmationProbe = Callable[[], Awaitable[bool]]


class SidecarHost(ABC):
    """Browser-automation host used by one connector run."""

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """Load a URL and return once navigation settles."""
        ...

    @abstractmethod
    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run a JS function in the page context and return its JSON result."""
        ...

    @abstractmethod
    async def wait(self, ms: int) -> None:
        """Cooperative delay."""
        ...

    @abstractmethod
    async def report_progress(self, key: str, value: Any) -> None:
        """Fire-and-forget status emission."""
        ...

    @abstractmethod
    async def await_human_confirmation(
        self,
        message: str,
        probe: ConfirmationProbe,
        poll_interval_ms: int,
    ) -> bool:
        """
        Block until probe() succeeds or the operator aborts.

        Returns True on success, False on timeout. An operator abort
        raises ConfirmationAborted.
        """
        ...

    @abstractmethod
    async def arm_capture(self, subscriptions: List[CaptureSubscription]) -> None:
        ...

    @abstractmethod
    async def clear_captures(self) -> None:
        ...

    @abstractmethod
    async def read_capture(self, key: str) -> Optional[CapturedPayload]:
        ...

    @property
    def current_url(self) -> str:
        return ""


async def emit_progress(host: SidecarHost, key: str, value: Any) -> None:
    """Report progress without letting a failing sink abort the run."""
    try:
        await host.report_progress(key, value)
    except (HarvestError, OSError) as e:
        logger.debug(f"Progress report dropped: {e}")
