"""Site connectors, registered by platform name."""

from typing import Dict, Type

from ..connector import Connector
from ..errors import UnknownConnectorError
from .chatgpt import ChatGPTConnector
from .instagram import InstagramConnector
from .linkedin import LinkedInConnector

CONNECTORS: Dict[str, Type[Connector]] = {
    cls.platform: cls for cls in (InstagramConnector, ChatGPTConnector, LinkedInConnector)
}


def get_connector(name: str) -> Type[Connector]:
    try:
        return CONNECTORS[name.strip().lower()]
    except KeyError:
        raise UnknownConnectorError(
            f"Unknown connector '{name}'. Available: {', '.join(sorted(CONNECTORS))}"
        ) from None


__all__ = [
    "CONNECTORS",
    "get_connector",
    "ChatGPTConnector",
    "InstagramConnector",
    "LinkedInConnector",
]
