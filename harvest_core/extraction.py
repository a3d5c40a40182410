"""
DOM Extraction Chain - ordered fallback lookups per field.

Page markup differs between UI variants of the same site and drifts over
time, so every logical field is described by an ordered list of strategies.
The first strategy yielding non-empty text (after trimming) wins and the
rest are skipped. A field whose strategies all fail resolves to its declared
default; it never aborts its sibling fields.

Selector tables stay pure data:

    HERO_FIELDS = {
        "fullName": [Locator.css("h1.text-heading-xlarge"), Locator.css(".pv-top-card--list h1")],
        "profilePictureUrl": [Locator.css("img.profile-photo-edit__preview", attribute="src")],
    }
    hero = await extract_fields(host, HERO_FIELDS)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import CollaboratorError
from .probe import ProbeResult

logger = logging.getLogger(__name__)

HEADING_SELECTOR = "h2, .pvs-header__title"

# Resolves one Locator against the live document.
LOCATE_JS = """
(loc) => {
  try {
    const read = (el) => {
      let target = el;
      if (loc.closest) {
        target = el.closest(loc.closest);
        if (!target) return null;
      }
      if (loc.attribute) {
        const prop = target[loc.attribute];
        return (typeof prop === 'string' && prop) ? prop : target.getAttribute(loc.attribute);
      }
      return target.textContent;
    };
    const accept = (v) => v != null && String(v).trim() !== '' &&
      !(loc.exclude && String(v).includes(loc.exclude));
    const firstIn = (root) => {
      const els = loc.all ? Array.from(root.querySelectorAll(loc.selector))
                          : [root.querySelector(loc.selector)].filter(Boolean);
      for (const el of els) {
        const v = read(el);
        if (accept(v)) return String(v);
      }
      return null;
    };
    if (loc.kind === 'location') {
      return { ok: true, value: window.location.href };
    }
    if (loc.kind === 'script') {
      const re = new RegExp(loc.pattern);
      for (const s of document.querySelectorAll('script')) {
        const text = s.textContent || s.innerText || '';
        if (text.length <= (loc.minLength || 0)) continue;
        const m = text.match(re);
        if (m) return { ok: true, value: m[1] !== undefined ? m[1] : m[0] };
      }
      return { ok: true, value: null };
    }
    if (loc.kind === 'heading') {
      const wanted = String(loc.heading).toLowerCase();
      for (const h of document.querySelectorAll(loc.headingSelector)) {
        if (!(h.textContent || '').toLowerCase().includes(wanted)) continue;
        const section = h.closest('section');
        if (!section) continue;
        const v = firstIn(section);
        if (v != null) return { ok: true, value: v };
      }
      return { ok: true, value: null };
    }
    return { ok: true, value: firstIn(document) };
  } catch (err) {
    return { ok: false, error: String((err && err.message) || err) };
  }
}
"""

# Reads every item of one section container, with ordered selectors per field.
SECTION_JS = """
(spec) => {
  try {
    let root = null;
    const c = spec.container;
    if (c.kind === 'heading') {
      const wanted = String(c.heading).toLowerCase();
      for (const h of document.querySelectorAll(c.headingSelector)) {
        if ((h.textContent || '').toLowerCase().includes(wanted)) {
          root = h.closest('section');
          if (root) break;
        }
      }
    } else {
      root = document.querySelector(c.selector);
    }
    if (!root) return { ok: true, value: null };
    const rows = [];
    root.querySelectorAll(spec.itemSelector).forEach((item) => {
      const row = {};
      for (const [name, rule] of Object.entries(spec.fields)) {
        let value = '';
        for (const sel of rule.selectors) {
          const el = item.querySelector(sel);
          if (!el) continue;
          const raw = rule.attribute ? (el[rule.attribute] || el.getAttribute(rule.attribute)) : el.textContent;
          if (raw && String(raw).trim()) { value = String(raw).trim(); break; }
        }
        row[name] = value;
      }
      rows.push(row);
    });
    return { ok: true, value: rows };
  } catch (err) {
    return { ok: false, error: String((err && err.message) || err) };
  }
}
"""


@dataclass(frozen=True)
class Locator:
    """
    One lookup rule against the current page.

    kind:
        css      - first element matching selector (text or attribute)
        heading  - selector inside the <section> owning a heading with this text
        script   - regex group over inline <script> text
        location - the current page URL
    """
    kind: str = "css"
    selector: str = ""
    attribute: Optional[str] = None
    closest: Optional[str] = None
    exclude: Optional[str] = None
    all: bool = False
    heading: Optional[str] = None
    pattern: Optional[str] = None
    min_length: int = 0

    @classmethod
    def css(cls, selector: str, attribute: Optional[str] = None, closest: Optional[str] = None,
            exclude: Optional[str] = None, all: bool = False) -> "Locator":
        return cls(kind="css", selector=selector, attribute=attribute, closest=closest,
                   exclude=exclude, all=all)

    @classmethod
    def under_heading(cls, heading: str, selector: str, attribute: Optional[str] = None) -> "Locator":
        return cls(kind="heading", heading=heading, selector=selector, attribute=attribute)

    @classmethod
    def script_text(cls, pattern: str, min_length: int = 0) -> "Locator":
        return cls(kind="script", pattern=pattern, min_length=min_length)

    @classmethod
    def location(cls) -> "Locator":
        return cls(kind="location")

    def to_arg(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "selector": self.selector,
            "attribute": self.attribute,
            "closest": self.closest,
            "exclude": self.exclude,
            "all": self.all,
            "heading": self.heading,
            "headingSelector": HEADING_SELECTOR,
            "pattern": self.pattern,
            "minLength": self.min_length,
        }


# A strategy is a Locator or any async callable taking the host
Strategy = Union[Locator, Callable[[Any], Awaitable[Any]]]


def _clean(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        text = value.strip()
        return text or None
    return None


async def run_strategy(host, strategy: Strategy) -> Optional[str]:
    """Run one strategy; any failure means 'not found'."""
    if isinstance(strategy, Locator):
        try:
            raw = await host.evaluate(LOCATE_JS, strategy.to_arg())
        except CollaboratorError as e:
            logger.debug(f"Locator {strategy.kind}:{strategy.selector or strategy.pattern} failed: {e}")
            return None
        result = ProbeResult.from_raw(raw)
        if not result.ok:
            logger.debug(f"Locator script error: {result.error}")
            return None
        return _clean(result.value)
    try:
        return _clean(await strategy(host))
    except Exception as e:
        logger.debug(f"Strategy {getattr(strategy, '__name__', strategy)} failed: {e}")
        return None


async def extract_field(host, strategies: Sequence[Strategy], default: Optional[str] = "") -> Optional[str]:
    """
    Try strategies in declared order and return the first non-empty value.

    Args:
        host: SidecarHost
        strategies: Ordered lookup rules
        default: Returned when every strategy fails ("" or None)
    """
    for strategy in strategies:
        value = await run_strategy(host, strategy)
        if value:
            return value
    return default


async def extract_fields(
    host,
    table: Mapping[str, Sequence[Strategy]],
    defaults: Optional[Mapping[str, Optional[str]]] = None,
) -> Dict[str, Optional[str]]:
    """Extract every field of a selector table independently."""
    defaults = defaults or {}
    result = {}
    for name, strategies in table.items():
        result[name] = await extract_field(host, strategies, defaults.get(name, ""))
        if not result[name]:
            logger.info(f"Field not found: {name}")
    return result


@dataclass(frozen=True)
class ItemField:
    """Ordered selectors for one column of a section item."""
    selectors: Tuple[str, ...]
    attribute: Optional[str] = None
    default: str = ""


@dataclass(frozen=True)
class SectionSpec:
    """
    A repeated section of the page (experience, education, ...).

    containers are tried in order; the first one present on the page is
    used. Items missing the anchor column are dropped.
    """
    name: str
    containers: Tuple[Locator, ...]
    item_selector: str
    fields: Mapping[str, ItemField] = field(default_factory=dict)
    anchor: Optional[str] = None

    def to_arg(self, container: Locator) -> Dict[str, Any]:
        return {
            "container": {
                "kind": container.kind,
                "selector": container.selector,
                "heading": container.heading,
                "headingSelector": HEADING_SELECTOR,
            },
            "itemSelector": self.item_selector,
            "fields": {
                name: {"selectors": list(rule.selectors), "attribute": rule.attribute}
                for name, rule in self.fields.items()
            },
        }

    def normalize(self, row: Mapping[str, Any]) -> Dict[str, str]:
        return {name: _clean(row.get(name)) or rule.default for name, rule in self.fields.items()}


async def extract_section(host, spec: SectionSpec) -> List[Dict[str, str]]:
    """
    Extract every item of a section.

    Returns an empty list (never None) when no container is found.
    """
    for container in spec.containers:
        try:
            raw = await host.evaluate(SECTION_JS, spec.to_arg(container))
        except CollaboratorError as e:
            logger.debug(f"Section {spec.name} lookup failed: {e}")
            continue
        result = ProbeResult.from_raw(raw)
        if not result.ok or not isinstance(result.value, list):
            continue
        rows = [spec.normalize(row) for row in result.value if isinstance(row, Mapping)]
        if spec.anchor:
            rows = [row for row in rows if row.get(spec.anchor)]
        return rows
    logger.info(f"Section not found: {spec.name}")
    return []
