"""
Run a registered connector in a real browser.

Usage:
    import asyncio
    from harvest_core.runner import run_connector

    outcome = asyncio.run(run_connector("linkedin"))
"""

import logging
from typing import Any, Callable, Dict, Optional

from harvest_logs import LogConfig, create_run_logger, setup_logging

from .browser_setup import launch_browser
from .config import Config, config as default_config
from .connectors import get_connector
from .playwright_host import PlaywrightHost

logger = logging.getLogger(__name__)


async def run_connector(
    name: str,
    config: Optional[Config] = None,
    on_progress: Optional[Callable[[str, Any], None]] = None,
) -> Dict[str, Any]:
    """
    Launch a browser, run one connector and return its outcome dict.

    Raises:
        UnknownConnectorError: When no connector has this name
    """
    config = config or default_config
    setup_logging(LogConfig.from_env())
    connector_cls = get_connector(name)
    run_log = create_run_logger(name, start_url=connector_cls.start_url, log_dir=config.log_dir) \
        if config.run_log_enabled else None

    session = await launch_browser(config, name)
    try:
        host = PlaywrightHost(
            session.page,
            run_log=run_log,
            navigation_timeout_ms=config.navigation_timeout_ms,
            human_timeout_s=config.human_timeout,
            on_progress=on_progress,
        )
        outcome = await connector_cls(host, config=config, run_log=run_log).run()
    finally:
        await session.close()

    if run_log is not None:
        logger.info(f"Run log written to {run_log.log_path}")
    return outcome.to_dict()
