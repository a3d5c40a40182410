#!/usr/bin/env python3
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from playwright.async_api import BrowserContext, Page, Playwright, async_playwright

logger = logging.getLogger(__name__)


class ProfileManager:
    """Persistent browser profiles, one per platform, so logins survive runs."""

    def __init__(self, base_dir: Optional[Path] = None):
        if base_dir is None:
            base = Path(os.getenv("HARVEST_WORKSPACE", "./workspace"))
            base_dir = base / "profiles"
        self.base_dir = base_dir
        self._ensure_writable_base()

    def _candidates(self) -> List[Path]:
        return [
            self.base_dir,
            Path(os.path.expanduser("~")) / ".cache" / "harvest" / "profiles",
            Path("/tmp/harvest/profiles"),
        ]

    def _ensure_writable_base(self):
        for cand in self._candidates():
            try:
                cand.mkdir(parents=True, exist_ok=True)
                test = cand / ".writetest"
                test.write_text("ok")
                test.unlink(missing_ok=True)
                self.base_dir = cand
                return
            except OSError:
                continue
        # If all fail, keep original; launch will report the error

    def profile_dir(self, platform: str) -> Path:
        path = self.base_dir / platform
        path.mkdir(parents=True, exist_ok=True)
        return path


@dataclass
class BrowserSession:
    playwright: Playwright
    context: BrowserContext
    page: Page

    async def close(self):
        try:
            await self.context.close()
        finally:
            await self.playwright.stop()


async def launch_browser(config: Any, platform: str) -> BrowserSession:
    """Launch a persistent-profile browser for one platform."""
    profiles = ProfileManager(Path(config.workspace) / "profiles")
    user_data_dir = profiles.profile_dir(platform)
    logger.info(f"Launching {config.browser_type} (headless={config.headless}) with profile {user_data_dir}")

    playwright = await async_playwright().start()
    launcher = getattr(playwright, config.browser_type)
    try:
        context = await launcher.launch_persistent_context(
            str(user_data_dir),
            headless=bool(config.headless),
            locale=config.locale,
            viewport={"width": 1280, "height": 900},
        )
    except Exception:
        await playwright.stop()
        raise
    page = context.pages[0] if context.pages else await context.new_page()
    return BrowserSession(playwright=playwright, context=context, page=page)
