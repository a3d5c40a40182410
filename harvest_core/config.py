#!/usr/bin/env python3
from dataclasses import dataclass
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ["true", "1", "yes"]


@dataclass
class Config:
    """Engine configuration"""
    # Browser
    headless: bool = _flag("HARVEST_HEADLESS", "false")
    browser_type: str = os.getenv("HARVEST_BROWSER", "chromium")
    workspace: Path = Path(os.getenv("HARVEST_WORKSPACE", "./workspace"))
    navigation_timeout_ms: int = int(os.getenv("HARVEST_NAVIGATION_TIMEOUT_MS", "60000"))
    locale: str = os.getenv("HARVEST_LOCALE", "en-US")

    # Settle delays (ms) applied after navigation and between login checks
    settle_ms: int = int(os.getenv("HARVEST_SETTLE_MS", "3000"))
    login_settle_ms: int = int(os.getenv("HARVEST_LOGIN_SETTLE_MS", "2000"))
    login_poll_interval_ms: int = int(os.getenv("HARVEST_LOGIN_POLL_MS", "2000"))
    # 0 = wait for the operator until they finish or abort
    human_timeout_s: float = float(os.getenv("HARVEST_HUMAN_TIMEOUT_S", "0"))

    # Network capture waits
    capture_attempts: int = int(os.getenv("HARVEST_CAPTURE_ATTEMPTS", "30"))
    capture_interval_ms: int = int(os.getenv("HARVEST_CAPTURE_INTERVAL_MS", "1000"))

    # Pagination
    scroll_attempts: int = int(os.getenv("HARVEST_SCROLL_ATTEMPTS", "20"))
    scroll_settle_ms: int = int(os.getenv("HARVEST_SCROLL_SETTLE_MS", "2000"))

    # Anchor field retries (e.g. account email)
    anchor_attempts: int = int(os.getenv("HARVEST_ANCHOR_ATTEMPTS", "5"))
    anchor_interval_ms: int = int(os.getenv("HARVEST_ANCHOR_INTERVAL_MS", "2000"))

    log_dir: str = os.getenv("HARVEST_LOG_DIR", "logs")
    run_log_enabled: bool = _flag("HARVEST_RUN_LOG", "true")

    @property
    def human_timeout(self) -> Optional[float]:
        return self.human_timeout_s if self.human_timeout_s > 0 else None


config = Config()
