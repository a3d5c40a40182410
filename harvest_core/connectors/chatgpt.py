"""
ChatGPT connector - account email and saved memories.

The chat input renders for anonymous visitors too, so the login probe keys
on the absence of "Log in" / "Sign up" buttons.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from ..capture import CaptureSubscription
from ..connector import Connector
from ..context import RunContext
from ..extraction import Locator, extract_field
from ..probe import ProbeResult
from ..retry import RetryPolicy, poll

logger = logging.getLogger(__name__)

MEMORIES_KEY = "memoriesResponse"
MEMORIES_URL = "/backend-api/memories"
EMAIL_PATTERN = r'"email":"([^"]+)"'

DISMISS_JS = """
() => {
  const buttons = Array.from(document.querySelectorAll('button, a'));
  for (const phrase of ['maybe later', 'reject non-essential']) {
    const el = buttons.find(b => (b.textContent || '').toLowerCase().includes(phrase));
    if (el && typeof el.click === 'function') {
      el.click();
      return phrase;
    }
  }
  return null;
}
"""

LOGIN_JS = """
() => {
  const hasLoginButton = Array.from(document.querySelectorAll('button, a')).some(el => {
    const text = (el.textContent || '').toLowerCase();
    return text.includes('log in') || text.includes('sign up');
  });
  if (hasLoginButton) return false;
  const hasSidebar = !!document.querySelector('nav[aria-label="Chat history"]') ||
                     !!document.querySelector('nav a[href^="/c/"]') ||
                     document.querySelectorAll('nav').length > 0;
  const hasUserMenu = !!document.querySelector('[data-testid="profile-button"]') ||
                      !!document.querySelector('button[aria-label*="User menu"]');
  return hasSidebar || hasUserMenu;
}
"""

REFETCH_EMAIL_JS = """
async (pattern) => {
  try {
    const response = await fetch(window.location.href, {
      headers: { accept: "*/*", "cache-control": "no-cache" },
      method: "GET",
      credentials: "include",
    });
    if (!response.ok) return { ok: false, error: "status " + response.status };
    const m = (await response.text()).match(new RegExp(pattern));
    return { ok: true, value: m ? m[1] : null };
  } catch (err) {
    return { ok: false, error: String((err && err.message) || err) };
  }
}
"""

CREDENTIALS_JS = """
() => {
  let token = null;
  let deviceId = null;
  const bootstrap = document.getElementById('client-bootstrap');
  if (bootstrap) {
    try {
      const data = JSON.parse(bootstrap.textContent);
      token = data && data.session ? data.session.accessToken : null;
    } catch (e) {}
  }
  if (!token && window.CLIENT_BOOTSTRAP && window.CLIENT_BOOTSTRAP.session) {
    token = window.CLIENT_BOOTSTRAP.session.accessToken;
  }
  for (const cookie of document.cookie.split(';')) {
    const [name, value] = cookie.trim().split('=');
    if (name === 'oai-did') { deviceId = value; break; }
  }
  return { token: token || null, deviceId: deviceId || null };
}
"""

FETCH_MEMORIES_JS = """
async ({ token, deviceId }) => {
  try {
    const response = await fetch("https://chatgpt.com/backend-api/memories?include_memory_entries=true", {
      headers: {
        accept: "*/*",
        authorization: "Bearer " + token,
        "oai-device-id": deviceId,
        "oai-language": "en-US",
      },
      referrer: "https://chatgpt.com/",
      method: "GET",
      mode: "cors",
      credentials: "include",
    });
    if (!response.ok) return { ok: false, error: "memories status " + response.status };
    const data = await response.json();
    return { ok: true, value: data.memories || [] };
  } catch (err) {
    return { ok: false, error: String((err && err.message) || err) };
  }
}
"""


async def refetch_email(host) -> Optional[str]:
    result = ProbeResult.from_raw(await host.evaluate(REFETCH_EMAIL_JS, EMAIL_PATTERN))
    return result.value if result.ok else None


EMAIL_STRATEGIES = [
    Locator.script_text(EMAIL_PATTERN, min_length=100),
    refetch_email,
]


def transform_memory(memory: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": memory.get("id") or "",
        "content": memory.get("content") or "",
        "created_at": memory.get("created_at") or memory.get("createdAt")
        or datetime.now(timezone.utc).isoformat(),
        "updated_at": memory.get("updated_at") or memory.get("updatedAt"),
        "type": memory.get("type") or "memory",
    }


class ChatGPTConnector(Connector):
    platform = "chatgpt"
    start_url = "https://chatgpt.com/"
    login_prompt = 'Please log in to ChatGPT. The export continues once the chat interface is visible.'

    anchor_field = "email"
    collection_field = "memories"
    singular = "memory"
    plural = "memories"

    async def dismiss_dialogs(self) -> None:
        clicked = await self.evaluate(DISMISS_JS)
        if clicked:
            logger.debug(f"Dismissed dialog: {clicked}")

    async def login_probe(self) -> ProbeResult:
        await self.dismiss_dialogs()
        return await self.evaluator.check(LOGIN_JS)

    async def before_login_check(self, ctx: RunContext) -> None:
        await self.dismiss_dialogs()
        await self.host.wait(1000)

    async def after_login(self, ctx: RunContext) -> None:
        await super().after_login(ctx)
        await self.dismiss_dialogs()
        await self.host.wait(1000)

    async def find_email(self) -> Optional[str]:
        policy = RetryPolicy(
            max_attempts=self.config.anchor_attempts,
            interval_ms=self.config.anchor_interval_ms,
        )
        attempts = 0

        async def attempt():
            nonlocal attempts
            attempts += 1
            email = await extract_field(self.host, EMAIL_STRATEGIES, default=None)
            if not email:
                await self.report("status", f"Looking for email... (attempt {attempts}/{policy.max_attempts})")
            return email

        return await poll(self.host, attempt, policy, label="email")

    async def fetch_memories(self, ctx: RunContext) -> List[Any]:
        credentials = await self.evaluate(CREDENTIALS_JS, default=None) or {}
        token, device_id = credentials.get("token"), credentials.get("deviceId")

        await self.host.clear_captures()
        await self.host.arm_capture([CaptureSubscription(MEMORIES_KEY, MEMORIES_URL)])

        if token and device_id:
            await self.report("status", "Fetching memories...")
            result = await self.evaluator.check(FETCH_MEMORIES_JS, {"token": token, "deviceId": device_id})
            if result.ok and isinstance(result.value, list):
                return result.value
            logger.info(f"Memories request failed: {result.error}")
        else:
            await self.report("status", "Could not get auth credentials, trying network capture...")

        await self.host.wait(self.config.scroll_settle_ms)
        captured = await self.host.read_capture(MEMORIES_KEY)
        if captured is not None and isinstance(captured.data, dict):
            memories = captured.data.get("memories")
            if isinstance(memories, list):
                await self.report("status", f"Captured {len(memories)} memories from network")
                return memories
        await self.report("status", "No memories captured, continuing with email only")
        return []

    async def harvest(self, ctx: RunContext) -> List[Mapping[str, Any]]:
        await self.report("status", "Extracting email...")
        email = ctx.set("email", await self.find_email())
        if not email:
            return [{}]
        await self.report("status", f"Email found: {email}")
        await self.report("email", email)

        memories = [transform_memory(m) for m in await self.fetch_memories(ctx) if isinstance(m, Mapping)]
        await self.report("memories_count", len(memories))
        return [{"email": email, "memories": memories}]
