"""
Instagram connector - profile plus timeline via GraphQL capture.

The logged-in viewer comes from /accounts/web_info/. Profile and first
timeline page are captured while the profile page loads; further pages are
provoked by scrolling and deduplicated by node identity.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..capture import CapturedPayload, CaptureSubscription
from ..collector import CollectionPage, PageCursor, PaginatedCollector, cursor_stalled, identity_from
from ..connector import Connector
from ..context import RunContext
from ..errors import CollaboratorError
from ..probe import ProbeResult
from ..retry import RetryPolicy, poll

logger = logging.getLogger(__name__)

PROFILE_KEY = "profileResponse"
POSTS_KEY = "postsResponse"
GRAPHQL_URL = "/graphql"
PROFILE_QUERIES = "PolarisProfilePageContentQuery|ProfilePageQuery|UserByUsernameQuery"
POSTS_QUERIES = ("PolarisProfilePostsQuery|PolarisProfilePostsTabContentQuery_connection"
                 "|ProfilePostsQuery|UserMediaQuery")
TIMELINE_CONNECTION = "xdt_api__v1__feed__user_timeline_graphql_connection"

PROFILE_OUTPUT = {
    "username": "username",
    "bio": "biography",
    "full_name": "full_name",
    "follower_count": "follower_count",
    "following_count": "following_count",
    "media_count": "media_count",
    "profile_pic_url": "profile_pic_url",
    "is_private": "is_private",
    "is_verified": "is_verified",
    "is_business": "is_business",
    "external_url": "external_url",
}

WEB_INFO_JS = """
async () => {
  try {
    const response = await fetch("https://www.instagram.com/accounts/web_info/", {
      headers: { "X-Requested-With": "XMLHttpRequest" }
    });
    if (!response.ok) return { ok: false, error: "web_info status " + response.status };
    const doc = new DOMParser().parseFromString(await response.text(), "text/html");
    const findViewer = (obj) => {
      if (!obj || typeof obj !== "object") return null;
      if (Array.isArray(obj) && obj[0] === "PolarisViewer" && obj.length >= 3) return obj[2];
      for (const key of Object.keys(obj)) {
        const found = findViewer(obj[key]);
        if (found) return found;
      }
      return null;
    };
    for (const script of doc.querySelectorAll('script[type="application/json"][data-sjs]')) {
      try {
        const viewer = findViewer(JSON.parse(script.textContent));
        if (viewer && viewer.data) return { ok: true, value: viewer.data };
      } catch (e) {}
    }
    return { ok: true, value: null };
  } catch (err) {
    return { ok: false, error: String((err && err.message) || err) };
  }
}
"""

SCROLL_JS = "() => window.scrollTo(0, document.body.scrollHeight)"


def profile_subscription() -> CaptureSubscription:
    return CaptureSubscription(PROFILE_KEY, GRAPHQL_URL, PROFILE_QUERIES)


def posts_subscription() -> CaptureSubscription:
    return CaptureSubscription(POSTS_KEY, GRAPHQL_URL, POSTS_QUERIES)


def _graphql_data(payload: Optional[CapturedPayload]) -> Dict[str, Any]:
    if payload is None or not isinstance(payload.data, dict):
        return {}
    return payload.data.get("data") or {}


def parse_profile(payload: Optional[CapturedPayload]) -> Optional[Dict[str, Any]]:
    user = _graphql_data(payload).get("user")
    if not isinstance(user, dict):
        return None
    return {out: user.get(src) for out, src in PROFILE_OUTPUT.items()}


def parse_timeline(payload: Optional[CapturedPayload]) -> Optional[CollectionPage]:
    connection = _graphql_data(payload).get(TIMELINE_CONNECTION)
    if not isinstance(connection, dict) or not isinstance(connection.get("edges"), list):
        return None
    return CollectionPage(
        items=connection["edges"],
        cursor=PageCursor.from_page_info(connection.get("page_info")),
    )


def _first_candidate_url(media: Mapping[str, Any]) -> str:
    candidates = (media.get("image_versions2") or {}).get("candidates") or []
    return (candidates[0] or {}).get("url", "") if candidates else ""


def transform_post(edge: Mapping[str, Any]) -> Dict[str, Any]:
    node = edge.get("node") or {}
    carousel = node.get("carousel_media") or []
    img_url = _first_candidate_url(node) or (_first_candidate_url(carousel[0]) if carousel else "")
    return {
        "img_url": img_url,
        "caption": (node.get("caption") or {}).get("text") or "",
        "num_of_likes": node.get("like_count") or 0,
        "who_liked": [
            {
                "profile_pic_url": liker.get("profile_pic_url") or "",
                "pk": liker.get("pk") or liker.get("id") or "",
                "username": liker.get("username") or "",
                "id": liker.get("id") or liker.get("pk") or "",
            }
            for liker in node.get("facepile_top_likers") or []
        ],
    }


class InstagramConnector(Connector):
    platform = "instagram"
    version = "2.0.0-playwright"
    start_url = "https://www.instagram.com/"
    login_prompt = "Please log in to Instagram."

    anchor_field = "username"
    collection_field = "posts"
    singular = "post"
    plural = "posts"

    async def fetch_web_info(self) -> Optional[Dict[str, Any]]:
        result = await self.evaluator.check(WEB_INFO_JS)
        return result.value if result.ok and isinstance(result.value, dict) else None

    async def login_probe(self) -> ProbeResult:
        info = await self.fetch_web_info()
        return ProbeResult(ok=True, value=info if info and info.get("username") else None)

    async def scroll(self) -> None:
        await self.host.evaluate(SCROLL_JS)

    async def _read_initial(self):
        return (await self.host.read_capture(PROFILE_KEY), await self.host.read_capture(POSTS_KEY))

    async def harvest(self, ctx: RunContext) -> List[Mapping[str, Any]]:
        web_info = ctx.set("web_info", await self.fetch_web_info())
        username = (web_info or {}).get("username")
        if not username:
            return [web_info or {}]
        await self.report("status", f"Logged in as @{username}")

        await self.host.clear_captures()
        await self.host.arm_capture([profile_subscription(), posts_subscription()])
        await self.report("status", "Network capture configured")

        await self.report("status", f"Navigating to profile: @{username}")
        await self.open(f"https://www.instagram.com/{username}/")

        await self.report("status", "Waiting for profile data...")
        captured = await poll(self.host, self._read_initial, self.capture_policy(),
                              accept=all, label="profile capture")
        profile_payload, posts_payload = captured or await self._read_initial()

        if posts_payload is None:
            await self.report("status", "Scrolling to load posts...")
            try:
                await self.scroll()
            except CollaboratorError as e:
                logger.debug(f"Scroll failed: {e}")
            await self.host.wait(self.config.scroll_settle_ms)
            posts_payload = await self.host.read_capture(POSTS_KEY)

        profile = parse_profile(profile_payload)
        if profile:
            await self.report("profile", profile)
        else:
            logger.info("Profile data was not captured")

        edges: List[Any] = []
        seed = parse_timeline(posts_payload)
        if seed is not None:
            await self.report("status", f"Captured {len(seed.items)} posts")
            collector = PaginatedCollector(
                self.host,
                RetryPolicy(
                    max_attempts=self.config.scroll_attempts,
                    interval_ms=self.config.scroll_settle_ms,
                    stall_detector=cursor_stalled,
                ),
                label="posts",
            )
            edges = await collector.collect(
                self.scroll,
                lambda cursor: [posts_subscription()],
                identity_from(path=("node",)),
                parse_page=parse_timeline,
                seed=seed,
            )

        posts = [transform_post(edge) for edge in edges]
        return [profile or {}, {"posts": posts}, web_info]
