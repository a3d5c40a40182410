"""
Paginated Collector - scroll, capture, deduplicate, repeat.

Each attempt clears and re-arms the capture registry, provokes the next page
(scroll, click or request), waits a fixed settle interval and reads the
capture back. Items are deduplicated by a stable identity; items without
one are always appended.

The loop stops on any of:
- an explicit end-of-pages cursor
- a page that adds no new unique items, or repeats the previous cursor
- exhausting max_attempts (absent captures count as attempts)

Every stop is a successful completion returning what was accumulated.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from .capture import CapturedPayload, CaptureSubscription
from .errors import CollaboratorError
from .host import emit_progress
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

# Candidate identity fields, first present wins
IDENTITY_FIELDS = ("id", "pk", "media_id", "code")


@dataclass(frozen=True)
class PageCursor:
    has_next_page: bool = False
    end_cursor: Optional[str] = None

    @property
    def has_next(self) -> bool:
        """A next page needs both the flag and a cursor to continue from."""
        return self.has_next_page and bool(self.end_cursor)

    @classmethod
    def from_page_info(cls, page_info: Optional[Dict[str, Any]]) -> "PageCursor":
        page_info = page_info or {}
        return cls(
            has_next_page=bool(page_info.get("has_next_page")),
            end_cursor=page_info.get("end_cursor") or None,
        )


@dataclass
class CollectionPage:
    items: List[Any] = field(default_factory=list)
    cursor: PageCursor = field(default_factory=PageCursor)


class StopReason(Enum):
    END_OF_PAGES = "end_of_pages"
    STALLED = "stalled"
    EXHAUSTED = "exhausted"


IdentityFn = Callable[[Any], Optional[str]]
PageParser = Callable[[CapturedPayload], Optional[CollectionPage]]
SubscriptionsFactory = Callable[[Optional[PageCursor]], List[CaptureSubscription]]


def identity_from(fields: Sequence[str] = IDENTITY_FIELDS, path: Sequence[str] = ()) -> IdentityFn:
    """
    Build an identity function reading the first present field.

    Args:
        fields: Candidate identity fields in priority order
        path: Keys to descend through first (e.g. ("node",) for GraphQL edges)
    """
    def identity_of(item: Any) -> Optional[str]:
        node = item
        for key in path:
            node = node.get(key) if isinstance(node, dict) else None
        if not isinstance(node, dict):
            return None
        for name in fields:
            value = node.get(name)
            if value is not None and value != "":
                return str(value)
        return None
    return identity_of


def cursor_stalled(previous: Optional[PageCursor], current: PageCursor) -> bool:
    """True when a page hands back the cursor we already hold."""
    return (previous is not None
            and current.end_cursor is not None
            and previous.end_cursor == current.end_cursor)


class PaginatedCollector:
    """
    Accumulates items across pages for one collection phase.

    Args:
        host: SidecarHost
        policy: max_attempts bounds the loop, interval_ms is the settle delay
            after each trigger, stall_detector compares cursors
        label: Plural noun used in progress messages
    """

    def __init__(self, host, policy: Optional[RetryPolicy] = None, label: str = "items"):
        self.host = host
        self.policy = policy or RetryPolicy(max_attempts=20, interval_ms=2000, stall_detector=cursor_stalled)
        self.label = label
        self.items: List[Any] = []
        self.cursor: Optional[PageCursor] = None
        self.attempts = 0
        self.stop_reason: Optional[StopReason] = None
        # accumulated count after each step, for progress and diagnostics
        self.counts: List[int] = []
        self._seen: set = set()

    def _reset(self):
        self.items = []
        self.cursor = None
        self.attempts = 0
        self.stop_reason = None
        self.counts = []
        self._seen = set()

    def _merge(self, items: List[Any], identity_of: IdentityFn) -> int:
        added = 0
        for item in items or []:
            identity = identity_of(item)
            if identity is not None:
                if identity in self._seen:
                    continue
                self._seen.add(identity)
            self.items.append(item)
            added += 1
        return added

    def _stop(self, reason: StopReason) -> List[Any]:
        self.stop_reason = reason
        logger.info(f"Collection stopped ({reason.value}) with {len(self.items)} {self.label} "
                    f"after {self.attempts} attempts")
        return self.items

    async def _read(self, subscriptions: List[CaptureSubscription]) -> Optional[CapturedPayload]:
        for sub in subscriptions:
            try:
                payload = await self.host.read_capture(sub.key)
            except CollaboratorError as e:
                logger.debug(f"Reading capture {sub.key} failed: {e}")
                continue
            if payload is not None:
                return payload
        return None

    @staticmethod
    def _parse(parse_page: PageParser, payload: CapturedPayload) -> Optional[CollectionPage]:
        try:
            return parse_page(payload)
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            logger.debug(f"Unusable page payload from {payload.url}: {e}")
            return None

    async def collect(
        self,
        fetch_trigger: Callable[[], Awaitable[Any]],
        subscriptions_factory: SubscriptionsFactory,
        identity_of: IdentityFn,
        max_attempts: Optional[int] = None,
        *,
        parse_page: PageParser,
        seed: Optional[CollectionPage] = None,
    ) -> List[Any]:
        """
        Run the pagination loop.

        Args:
            fetch_trigger: Async action provoking the next page request
            subscriptions_factory: Subscriptions for the next page, given the current cursor
            identity_of: Stable identity of an item, or None when it has none
            max_attempts: Overrides policy.max_attempts
            parse_page: Turns a captured payload into items and a cursor
            seed: Page captured before the loop started

        Returns:
            Accumulated items in arrival order
        """
        self._reset()
        limit = max_attempts if max_attempts is not None else self.policy.max_attempts

        if seed is not None:
            self._merge(seed.items, identity_of)
            self.cursor = seed.cursor
            self.counts.append(len(self.items))
            if not seed.cursor.has_next:
                return self._stop(StopReason.END_OF_PAGES)
            await emit_progress(self.host, "status", f"Fetching more {self.label}... ({len(self.items)} so far)")

        for attempt in range(1, limit + 1):
            self.attempts = attempt
            subscriptions = subscriptions_factory(self.cursor)
            await self.host.clear_captures()
            await self.host.arm_capture(subscriptions)
            try:
                await fetch_trigger()
            except CollaboratorError as e:
                logger.debug(f"Fetch trigger failed on attempt {attempt}: {e}")
            await self.host.wait(self.policy.interval_ms)

            payload = await self._read(subscriptions)
            page = self._parse(parse_page, payload) if payload is not None else None
            if page is None:
                self.counts.append(len(self.items))
                logger.debug(f"No page captured on attempt {attempt}/{limit}")
                continue

            added = self._merge(page.items, identity_of)
            self.counts.append(len(self.items))
            if added == 0:
                return self._stop(StopReason.STALLED if page.cursor.has_next else StopReason.END_OF_PAGES)

            stalled = (self.policy.is_stalled(self.cursor, page.cursor)
                       or cursor_stalled(self.cursor, page.cursor))
            self.cursor = page.cursor
            await emit_progress(self.host, "status", f"Captured {len(self.items)} {self.label}")

            if not page.cursor.has_next:
                return self._stop(StopReason.END_OF_PAGES)
            if stalled:
                return self._stop(StopReason.STALLED)

        return self._stop(StopReason.EXHAUSTED)
