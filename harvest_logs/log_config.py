"""
Log Configuration - Settings for logging behavior

Where run logs go and whether they are written is part of harvest_core's
Config; this module only covers the process-wide logging setup.
"""

import logging
import os
import sys
from dataclasses import dataclass


@dataclass
class LogConfig:
    """Configuration for logging"""

    log_level: str = "INFO"
    log_to_console: bool = True

    @classmethod
    def from_env(cls) -> 'LogConfig':
        """Create config from environment variables"""
        return cls(
            log_level=os.getenv("HARVEST_LOG_LEVEL", "INFO"),
            log_to_console=os.getenv("HARVEST_LOG_CONSOLE", "true").lower() in ["true", "1", "yes"],
        )


def setup_logging(config: LogConfig = None) -> None:
    """Configure the root logger once per process."""
    config = config or LogConfig.from_env()
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    handlers = [logging.StreamHandler(sys.stderr)] if config.log_to_console else [logging.NullHandler()]
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=handlers,
    )
