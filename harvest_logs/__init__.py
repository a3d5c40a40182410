"""
harvest_logs - Logging package for connector runs

Usage:
    from harvest_logs import LogConfig, RunLogger, setup_logging

    setup_logging(LogConfig.from_env())
    run_log = RunLogger(platform="chatgpt", log_dir="logs")
"""

from .log_config import LogConfig, setup_logging
from .run_logger import RunLogger, create_run_logger

__all__ = [
    'LogConfig',
    'setup_logging',
    'RunLogger',
    'create_run_logger',
]

__version__ = '1.0.0'
