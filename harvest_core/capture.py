"""
Capture Registry - buffers the first matching network response per key.

A connector arms a set of subscriptions, provokes some traffic and later
reads the buffered payloads back. Within one phase a filled slot is never
overwritten; only clear() empties slots, and clear() must precede arm() for
every new page/phase.

Usage:
    registry = CaptureRegistry()
    registry.arm([CaptureSubscription("postsResponse", "/graphql", "ProfilePostsQuery")])
    registry.offer(NetworkEvent(url, request_body, response_body))
    payload = registry.get("postsResponse")
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def pattern_matches(pattern: str, text: Optional[str]) -> bool:
    """Regex search, or plain substring test when the pattern is not a valid regex."""
    if not text:
        return False
    try:
        return re.search(pattern, text) is not None
    except re.error:
        return pattern in text


@dataclass(frozen=True)
class CaptureSubscription:
    key: str
    url_pattern: str
    body_pattern: Optional[str] = None

    def matches_url(self, url: str) -> bool:
        return pattern_matches(self.url_pattern, url)

    def matches(self, event: "NetworkEvent") -> bool:
        if not self.matches_url(event.url):
            return False
        if self.body_pattern is None:
            return True
        # GraphQL operation names live in the request body; some hosts only
        # expose the response body.
        return (pattern_matches(self.body_pattern, event.request_body)
                or pattern_matches(self.body_pattern, event.response_body))


@dataclass(frozen=True)
class NetworkEvent:
    """One observed request/response pair."""
    url: str
    request_body: Optional[str] = None
    response_body: Optional[str] = None


@dataclass(frozen=True)
class CapturedPayload:
    key: str
    url: str
    data: Any
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class CaptureRegistry:
    """Ordered subscriptions plus one buffered slot per key."""

    def __init__(self):
        # dict keeps insertion order = match priority
        self._subscriptions: Dict[str, CaptureSubscription] = {}
        self._slots: Dict[str, CapturedPayload] = {}
        self._generation = 0

    @property
    def armed(self) -> bool:
        return bool(self._subscriptions)

    @property
    def generation(self) -> int:
        """Bumped by every clear(); hosts snapshot it before reading a body."""
        return self._generation

    @property
    def subscriptions(self) -> List[CaptureSubscription]:
        return list(self._subscriptions.values())

    def arm(self, subscriptions: List[CaptureSubscription]) -> None:
        """Add subscriptions; re-arming a key replaces its filter but keeps its slot."""
        for sub in subscriptions:
            self._subscriptions[sub.key] = sub
        logger.debug(f"Capture armed: {[s.key for s in self.subscriptions]}")

    def clear(self) -> None:
        """Empty every slot and drop all subscriptions."""
        self._slots.clear()
        self._subscriptions.clear()
        self._generation += 1

    def get(self, key: str) -> Optional[CapturedPayload]:
        return self._slots.get(key)

    def wants(self, url: str) -> bool:
        """Cheap pre-check so hosts only read bodies of candidate responses."""
        return any(sub.matches_url(url) for sub in self._subscriptions.values())

    def offer(self, event: NetworkEvent, generation: Optional[int] = None) -> Optional[str]:
        """
        Test an event against the subscriptions in order.

        The first matching subscription claims the event. Its payload is
        stored only when the slot is empty and the body parses as JSON.

        Args:
            event: Observed request/response pair
            generation: Registry generation seen when the response arrived.
                Events from before the latest clear() are dropped.

        Returns:
            The key the payload was stored under, or None
        """
        if generation is not None and generation != self._generation:
            logger.debug(f"Dropped response from before the last clear: {event.url}")
            return None
        claimant = next((s for s in self._subscriptions.values() if s.matches(event)), None)
        if claimant is None:
            return None
        if claimant.key in self._slots:
            return None
        try:
            data = json.loads(event.response_body or "")
        except (TypeError, ValueError):
            logger.debug(f"Dropped non-JSON payload for {claimant.key} from {event.url}")
            return None
        self._slots[claimant.key] = CapturedPayload(key=claimant.key, url=event.url, data=data)
        logger.debug(f"Captured {claimant.key} from {event.url}")
        return claimant.key
