"""Shared fixtures: an in-memory host so no browser is needed."""

import json
from typing import Any, Callable, List, Optional

import pytest

from harvest_core.capture import CaptureRegistry, NetworkEvent
from harvest_core.config import Config
from harvest_core.errors import CollaboratorError
from harvest_core.extraction import LOCATE_JS, SECTION_JS
from harvest_core.host import SidecarHost


class FakeHost(SidecarHost):
    """
    Scriptable host.

    evaluate_fn(script, arg) answers evaluate() calls and may raise.
    on_navigate(url) and on_confirm() let a test react to those calls,
    e.g. emit network traffic or flip the login state.
    """

    def __init__(self, evaluate_fn: Optional[Callable[[str, Any], Any]] = None):
        self.registry = CaptureRegistry()
        self.evaluate_fn = evaluate_fn
        self.on_navigate: Optional[Callable[[str], None]] = None
        self.on_confirm: Optional[Callable[[], None]] = None
        self.confirm_result = True
        self.confirm_error: Optional[Exception] = None
        self.confirm_calls = 0
        self.navigations: List[str] = []
        self.evaluations: List[tuple] = []
        self.waits: List[int] = []
        self.progress: List[tuple] = []
        self.url = ""

    @property
    def current_url(self) -> str:
        return self.url

    def emit(self, url: str, body: Any, request_body: Optional[str] = None) -> Optional[str]:
        """Feed one response into the registry the way PlaywrightHost does."""
        if not self.registry.armed or not self.registry.wants(url):
            return None
        text = body if isinstance(body, str) else json.dumps(body)
        return self.registry.offer(NetworkEvent(url=url, request_body=request_body, response_body=text))

    async def navigate(self, url: str) -> None:
        self.navigations.append(url)
        self.url = url
        if self.on_navigate is not None:
            self.on_navigate(url)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluations.append((script, arg))
        if self.evaluate_fn is None:
            return None
        return self.evaluate_fn(script, arg)

    async def wait(self, ms: int) -> None:
        self.waits.append(ms)

    async def report_progress(self, key: str, value: Any) -> None:
        self.progress.append((key, value))

    async def await_human_confirmation(self, message, probe, poll_interval_ms) -> bool:
        self.confirm_calls += 1
        if self.confirm_error is not None:
            raise self.confirm_error
        if self.on_confirm is not None:
            self.on_confirm()
        return self.confirm_result

    async def arm_capture(self, subscriptions) -> None:
        self.registry.arm(subscriptions)

    async def clear_captures(self) -> None:
        self.registry.clear()

    async def read_capture(self, key: str):
        return self.registry.get(key)

    def statuses(self) -> List[Any]:
        return [value for key, value in self.progress if key == "status"]


class SequenceProbe:
    """Returns the scripted values in order, then repeats the last one."""

    def __init__(self, *values):
        self.values = list(values)
        self.calls = 0

    async def __call__(self):
        value = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def fast_config(tmp_path):
    """Config with small, predictable waits and run logs disabled."""
    return Config(
        workspace=tmp_path / "workspace",
        settle_ms=10,
        login_settle_ms=20,
        login_poll_interval_ms=5,
        capture_attempts=3,
        capture_interval_ms=1,
        scroll_attempts=4,
        scroll_settle_ms=2,
        anchor_attempts=2,
        anchor_interval_ms=3,
        log_dir=str(tmp_path / "logs"),
        run_log_enabled=False,
    )


def dom_evaluator(dom=None, sections=None, scripts=None, failing=()):
    """
    Build an evaluate_fn answering the extraction scripts from plain dicts.

    dom keys: CSS selector, "heading:<text>:<selector>", "script:<pattern>"
    or "location". sections keys: container selector or "heading:<text>".
    scripts maps any other script to a value or a callable(arg).
    Keys listed in failing raise CollaboratorError.
    """
    dom = dom or {}
    sections = sections or {}
    scripts = scripts or {}

    def evaluate(script, arg):
        if script == LOCATE_JS:
            kind = arg["kind"]
            if kind == "heading":
                key = f"heading:{arg['heading']}:{arg['selector']}"
            elif kind == "script":
                key = f"script:{arg['pattern']}"
            elif kind == "location":
                key = "location"
            else:
                key = arg["selector"]
            if key in failing:
                raise CollaboratorError("evaluate", f"lookup of {key} failed")
            return {"ok": True, "value": dom.get(key)}
        if script == SECTION_JS:
            container = arg["container"]
            key = container["selector"] if container["kind"] == "css" else f"heading:{container['heading']}"
            if key in failing:
                raise CollaboratorError("evaluate", f"section {key} failed")
            return {"ok": True, "value": sections.get(key)}
        if script in scripts:
            answer = scripts[script]
            return answer(arg) if callable(answer) else answer
        return None

    return evaluate
