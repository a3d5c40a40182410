"""
PlaywrightHost - the host contract over a Playwright async Page.

Network capture hooks page.on("response") into a CaptureRegistry: only
responses whose URL matches an armed subscription have their bodies read.
The human-confirmation wait polls the connector's probe until it passes,
the optional timeout elapses, or the operator calls abort(), which raises
ConfirmationAborted out of the wait.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Response
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .capture import CapturedPayload, CaptureRegistry, CaptureSubscription, NetworkEvent
from .errors import CollaboratorError, ConfirmationAborted
from .host import ConfirmationProbe, SidecarHost, emit_progress

logger = logging.getLogger(__name__)


class PlaywrightHost(SidecarHost):
    """
    Args:
        page: Playwright async page
        run_log: Optional RunLogger mirroring progress
        navigation_timeout_ms: Timeout for page.goto
        human_timeout_s: Upper bound on the confirmation wait (None = until abort)
        on_progress: Optional callback(key, value) for UIs
    """

    def __init__(
        self,
        page: Page,
        run_log=None,
        navigation_timeout_ms: int = 60000,
        human_timeout_s: Optional[float] = None,
        on_progress: Optional[Callable[[str, Any], None]] = None,
    ):
        self.page = page
        self.run_log = run_log
        self.navigation_timeout_ms = navigation_timeout_ms
        self.human_timeout_s = human_timeout_s
        self.on_progress = on_progress
        self.registry = CaptureRegistry()
        self.progress: Dict[str, Any] = {}
        self._abort = asyncio.Event()
        page.on("response", self._on_response)

    @property
    def current_url(self) -> str:
        return self.page.url

    # --- Network capture ---
    async def _on_response(self, response: Response) -> None:
        url = response.url or ""
        if not self.registry.armed or not self.registry.wants(url):
            return
        # a clear() while the body is in flight makes this response stale
        generation = self.registry.generation
        try:
            request_body = response.request.post_data
        except (PlaywrightError, UnicodeDecodeError):
            request_body = None
        try:
            body = await response.text()
        except (PlaywrightError, UnicodeDecodeError) as e:
            logger.debug(f"Could not read response body from {url}: {e}")
            return
        self.registry.offer(NetworkEvent(url=url, request_body=request_body, response_body=body), generation)

    async def arm_capture(self, subscriptions: List[CaptureSubscription]) -> None:
        self.registry.arm(subscriptions)

    async def clear_captures(self) -> None:
        self.registry.clear()

    async def read_capture(self, key: str) -> Optional[CapturedPayload]:
        return self.registry.get(key)

    # --- Page control ---
    async def navigate(self, url: str) -> None:
        logger.info(f"Navigating to {url}")
        try:
            await self.page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
        except PlaywrightTimeoutError as e:
            raise CollaboratorError("navigate", f"timeout loading {url}") from e
        except PlaywrightError as e:
            raise CollaboratorError("navigate", str(e)) from e

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        try:
            if arg is None:
                return await self.page.evaluate(script)
            return await self.page.evaluate(script, arg)
        except PlaywrightError as e:
            raise CollaboratorError("evaluate", str(e)) from e

    async def wait(self, ms: int) -> None:
        await asyncio.sleep(max(ms, 0) / 1000)

    async def report_progress(self, key: str, value: Any) -> None:
        self.progress[key] = value
        if key == "result":
            logger.info("Result ready")
        else:
            logger.info(f"{key}: {value}")
        if self.run_log is not None and key != "result":
            self.run_log.log_kv(key, value)
        if self.on_progress is not None:
            try:
                self.on_progress(key, value)
            except Exception as e:
                logger.debug(f"Progress callback failed: {e}")

    # --- Human in the loop ---
    def abort(self) -> None:
        """Cancel the pending human-confirmation wait, or the next one to start."""
        self._abort.set()

    async def await_human_confirmation(
        self,
        message: str,
        probe: ConfirmationProbe,
        poll_interval_ms: int,
    ) -> bool:
        logger.info("=" * 60)
        logger.info(message)
        logger.info("Complete the login in the browser window; the export continues automatically.")
        logger.info("=" * 60)
        if self.run_log is not None:
            self.run_log.log_prompt(message)
        await emit_progress(self, "prompt", message)

        deadline = time.monotonic() + self.human_timeout_s if self.human_timeout_s else None
        try:
            while not self._abort.is_set():
                if self.page.is_closed():
                    logger.warning("Browser page closed while waiting for login")
                    return False
                if await probe():
                    await emit_progress(self, "prompt", None)
                    return True
                if deadline is not None and time.monotonic() >= deadline:
                    logger.warning(f"Login wait timed out after {self.human_timeout_s}s")
                    return False
                try:
                    await asyncio.wait_for(self._abort.wait(), timeout=poll_interval_ms / 1000)
                except asyncio.TimeoutError:
                    pass
            raise ConfirmationAborted("Login wait aborted by operator")
        finally:
            self._abort.clear()
