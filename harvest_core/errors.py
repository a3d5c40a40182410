"""
Error types and user-facing error formatting.

Nothing in the engine is fatal: host failures surface as CollaboratorError
and are caught at the call site, the rest is turned into a failed RunOutcome
with a readable message from format_error().
"""

from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)


class HarvestError(Exception):
    """Base class for engine errors"""
    pass


class CollaboratorError(HarvestError):
    """The browser-automation host failed or timed out on a call"""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class ConfirmationAborted(HarvestError):
    """The operator aborted a human-confirmation wait"""
    pass


class UnknownConnectorError(HarvestError):
    """No connector is registered under the requested name"""
    pass


# Error mappings: pattern -> user-facing info
ERROR_MAPPINGS = {
    "timeout": {
        "message": "The page took too long to respond",
        "suggestion": "Check your connection and try again",
        "can_retry": True,
    },
    "target closed": {
        "message": "The browser was closed during the export",
        "suggestion": "Keep the browser window open until the export completes",
        "can_retry": True,
    },
    "has been closed": {
        "message": "The browser was closed during the export",
        "suggestion": "Keep the browser window open until the export completes",
        "can_retry": True,
    },
    "navigate failed": {
        "message": "The page could not be loaded",
        "suggestion": "Check that the site is reachable",
        "can_retry": True,
    },
    "net::err": {
        "message": "Network error while loading the page",
        "suggestion": "Check your connection and try again",
        "can_retry": True,
    },
    "aborted": {
        "message": "Login was cancelled",
        "suggestion": "Run the export again and finish logging in",
        "can_retry": True,
    },
}


def describe_error(error: Exception, context: str = "general") -> Dict:
    """
    Convert a technical error into a user-facing description.

    Returns:
        {"message", "suggestion", "technical", "context", "can_retry"}
    """
    error_str = str(error)
    for pattern, friendly in ERROR_MAPPINGS.items():
        if pattern in error_str.lower():
            result = dict(friendly)
            result["technical"] = error_str
            result["context"] = context
            logger.debug(f"Mapped error to user-facing message: {result['message']}")
            return result

    return {
        "message": "An unexpected error occurred during the export",
        "suggestion": "Check the run log and try again",
        "technical": error_str,
        "context": context,
        "can_retry": True,
    }


def format_error(error: Exception, context: Optional[str] = None) -> str:
    """One-line message suitable for RunOutcome.error"""
    info = describe_error(error, context or "general")
    prefix = f"{context}: " if context else ""
    return f"{prefix}{info['message']} ({info['technical']})"
