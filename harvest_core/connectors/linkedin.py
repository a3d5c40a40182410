"""
LinkedIn connector - the logged-in member's own profile, read from the DOM.

Every field is an ordered selector chain; LinkedIn ships several profile
layouts at once and renames classes regularly.
"""

import logging
from typing import Any, List, Mapping

from ..connector import Connector
from ..context import RunContext
from ..extraction import ItemField, Locator, SectionSpec, extract_field, extract_fields, extract_section
from ..probe import ProbeResult

logger = logging.getLogger(__name__)

FEED_URL = "https://www.linkedin.com/feed/"
OWN_PROFILE_URL = "https://www.linkedin.com/in/me/"

LOGIN_JS = """
() => {
  if (document.querySelector('input[name="session_key"]') || document.querySelector('#username')) {
    return false;
  }
  return !!document.querySelector('.global-nav__me') ||
         !!document.querySelector('[data-view-name="feed"]') ||
         !!document.querySelector('.feed-identity-module') ||
         !!document.querySelector('a[href*="/in/"]');
}
"""

# Steps through the page one viewport at a time so lazy sections render
LAZY_SCROLL_JS = """
async () => {
  const delay = ms => new Promise(r => setTimeout(r, ms));
  const height = document.body.scrollHeight;
  const step = window.innerHeight || 800;
  for (let pos = 0; pos < height; pos += step) {
    window.scrollTo(0, pos);
    await delay(500);
  }
  window.scrollTo(0, 0);
  return true;
}
"""

PROFILE_URL_STRATEGIES = [
    Locator.css(".global-nav__me-photo", attribute="href", closest="a"),
    Locator.css(".feed-identity-module__actor-meta a", attribute="href"),
    Locator.css('a[href*="/in/"]', attribute="href", all=True, exclude="/in/edit"),
]

HERO_FIELDS = {
    "fullName": [
        Locator.css("h1.text-heading-xlarge"),
        Locator.css(".pv-top-card--list h1"),
        Locator.css("[data-generated-suggestion-target]"),
    ],
    "headline": [
        Locator.css(".text-body-medium.break-words"),
        Locator.css(".pv-top-card--list-bullet .text-body-medium"),
    ],
    "location": [
        Locator.css(".text-body-small.inline.t-black--light.break-words"),
        Locator.css(".pv-top-card--list-bullet:nth-child(2) span"),
    ],
    "connections": [
        Locator.css('a[href*="connections"] span'),
        Locator.css(".pv-top-card--list-bullet li:last-child span"),
    ],
    "profilePictureUrl": [
        Locator.css(".pv-top-card-profile-picture__image", attribute="src"),
        Locator.css("img.profile-photo-edit__preview", attribute="src"),
    ],
    "backgroundImageUrl": [
        Locator.css(".profile-background-image img", attribute="src"),
        Locator.css(".pv-top-card__background-image img", attribute="src"),
    ],
}

ABOUT_STRATEGIES = [
    Locator.css("#about .pv-shared-text-with-see-more span"),
    Locator.css("#about .inline-show-more-text span"),
    Locator.css("section.pv-about-section .pv-shared-text-with-see-more span"),
    Locator.css("section.pv-about-section .inline-show-more-text span"),
    Locator.under_heading("about", ".pv-shared-text-with-see-more span"),
    Locator.under_heading("about", ".inline-show-more-text span"),
    Locator.under_heading("about", ".visually-hidden"),
]


def _containers(anchor_id: str, legacy_class: str, heading: str):
    return (
        Locator.css(f"#{anchor_id}"),
        Locator.css(f"section.{legacy_class}"),
        Locator.under_heading(heading, "section"),
    )


EXPERIENCE = SectionSpec(
    name="experience",
    containers=_containers("experience", "experience-section", "experience"),
    item_selector=".pvs-list__paged-list-item, li.pv-entity__position-group-pager",
    fields={
        "jobTitle": ItemField((".mr1.t-bold span, .t-16.t-black.t-bold",)),
        "companyName": ItemField((".t-14.t-normal span, .pv-entity__secondary-title",)),
        "dates": ItemField((".t-14.t-normal.t-black--light span, .pv-entity__date-range span:nth-child(2)",)),
        "location": ItemField((".t-14.t-normal.t-black--light:last-child span",)),
        "description": ItemField((".pv-shared-text-with-see-more span, .pv-entity__description",)),
    },
    anchor="jobTitle",
)

EDUCATION = SectionSpec(
    name="education",
    containers=_containers("education", "education-section", "education"),
    item_selector=".pvs-list__paged-list-item, li.pv-education-entity",
    fields={
        "schoolName": ItemField((".mr1.t-bold span, .pv-entity__school-name",)),
        "degree": ItemField((".t-14.t-normal span, .pv-entity__degree-name span:nth-child(2)",)),
        "years": ItemField((".t-14.t-normal.t-black--light span, .pv-entity__dates span:nth-child(2)",)),
        "logoUrl": ItemField(("img",), attribute="src"),
    },
    anchor="schoolName",
)

SKILLS = SectionSpec(
    name="skills",
    containers=_containers("skills", "skills-section", "skills"),
    item_selector=".pvs-list__paged-list-item, li.pv-skill-category-entity",
    fields={
        "name": ItemField((".mr1.t-bold span, .pv-skill-category-entity__name-text",)),
        "endorsements": ItemField(
            (".t-14.t-normal.t-black--light span, .pv-skill-category-entity__endorsement-count",),
            default="0",
        ),
    },
    anchor="name",
)


class LinkedInConnector(Connector):
    platform = "linkedin"
    start_url = FEED_URL
    login_prompt = "Please log in to LinkedIn. The export continues once your feed is visible."

    anchor_field = "fullName"
    collection_field = "experience"
    singular = "experience"
    plural = "experiences"

    async def login_probe(self) -> ProbeResult:
        return await self.evaluator.check(LOGIN_JS)

    async def load_lazy_content(self) -> None:
        await self.evaluate(LAZY_SCROLL_JS)
        await self.host.wait(1000)

    async def open_own_profile(self, ctx: RunContext) -> str:
        await self.report("status", "Finding your profile...")
        await self.open(FEED_URL)
        target = await extract_field(self.host, PROFILE_URL_STRATEGIES, default=OWN_PROFILE_URL)
        await self.report("status", "Navigating to your profile...")
        await self.open(target)
        profile_url = await extract_field(self.host, [Locator.location()], default=target)
        return ctx.set("profile_url", profile_url)

    async def harvest(self, ctx: RunContext) -> List[Mapping[str, Any]]:
        profile_url = await self.open_own_profile(ctx)

        await self.report("status", "Loading profile content...")
        await self.load_lazy_content()

        await self.report("status", "Extracting profile header...")
        hero = await extract_fields(self.host, HERO_FIELDS)
        if hero.get("fullName"):
            await self.report("status", f"Found profile: {hero['fullName']}")

        await self.report("status", "Extracting about section...")
        about = await extract_field(self.host, ABOUT_STRATEGIES)

        sections = {}
        for spec, noun in ((EXPERIENCE, "experiences"), (EDUCATION, "education entries"), (SKILLS, "skills")):
            await self.report("status", f"Extracting {spec.name}...")
            sections[spec.name] = await extract_section(self.host, spec)
            await self.report("status", f"Found {len(sections[spec.name])} {noun}")

        return [{"profileUrl": profile_url}, hero, {"about": about}, sections]
