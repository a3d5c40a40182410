"""
Connector tests - full runs against the in-memory host.

Each run goes through the real template: open start page, authentication
gate, harvest and assembly.
"""

import pytest

from harvest_core.connectors import CONNECTORS, get_connector
from harvest_core.connectors import chatgpt, instagram, linkedin
from harvest_core.connectors.chatgpt import ChatGPTConnector, transform_memory
from harvest_core.connectors.instagram import (
    InstagramConnector,
    parse_profile,
    parse_timeline,
    transform_post,
)
from harvest_core.connectors.linkedin import LinkedInConnector
from harvest_core.capture import CapturedPayload
from harvest_core.errors import UnknownConnectorError
from harvest_logs import RunLogger

from .conftest import dom_evaluator


class TestRegistry:
    def test_all_connectors_registered(self):
        assert set(CONNECTORS) == {"instagram", "chatgpt", "linkedin"}

    def test_lookup_is_case_insensitive(self):
        assert get_connector(" LinkedIn ") is LinkedInConnector

    def test_unknown_connector(self):
        with pytest.raises(UnknownConnectorError) as exc:
            get_connector("myspace")
        assert "chatgpt" in str(exc.value)


# --- Instagram ---

def _edge(pk, image="", carousel_image=None, likers=()):
    node = {
        "id": f"{pk}_1",
        "pk": pk,
        "caption": {"text": f"post {pk}"},
        "like_count": 10 * pk,
        "facepile_top_likers": list(likers),
    }
    if image:
        node["image_versions2"] = {"candidates": [{"url": image}]}
    if carousel_image:
        node["carousel_media"] = [{"image_versions2": {"candidates": [{"url": carousel_image}]}}]
    return {"node": node}


def _timeline(edges, has_next=False, cursor=None):
    return {"data": {instagram.TIMELINE_CONNECTION: {
        "edges": edges,
        "page_info": {"has_next_page": has_next, "end_cursor": cursor},
    }}}


PROFILE_BODY = {"data": {"user": {
    "username": "alice",
    "biography": "hello",
    "full_name": "Alice A.",
    "follower_count": 12,
    "following_count": 3,
    "media_count": 3,
    "profile_pic_url": "https://cdn/alice.jpg",
    "is_private": False,
    "is_verified": True,
    "is_business": False,
    "external_url": None,
}}}


class TestInstagramParsing:
    def test_parse_profile_maps_fields(self):
        profile = parse_profile(CapturedPayload("profileResponse", "/graphql", PROFILE_BODY))

        assert profile["username"] == "alice"
        assert profile["bio"] == "hello"
        assert profile["is_verified"] is True
        assert set(profile) == set(instagram.PROFILE_OUTPUT)

    def test_parse_profile_missing_user(self):
        assert parse_profile(None) is None
        assert parse_profile(CapturedPayload("profileResponse", "/graphql", {"data": {}})) is None

    def test_parse_timeline(self):
        page = parse_timeline(CapturedPayload("postsResponse", "/graphql", _timeline([_edge(1)], True, "c1")))

        assert len(page.items) == 1
        assert page.cursor.has_next is True
        assert parse_timeline(CapturedPayload("postsResponse", "/graphql", {"errors": []})) is None

    def test_transform_post(self):
        post = transform_post(_edge(2, image="https://cdn/2.jpg", likers=[
            {"profile_pic_url": "https://cdn/bob.jpg", "pk": "77", "username": "bob"},
        ]))

        assert post == {
            "img_url": "https://cdn/2.jpg",
            "caption": "post 2",
            "num_of_likes": 20,
            "who_liked": [{"profile_pic_url": "https://cdn/bob.jpg", "pk": "77", "username": "bob", "id": "77"}],
        }

    def test_transform_post_carousel_fallback(self):
        assert transform_post(_edge(3, carousel_image="https://cdn/c.jpg"))["img_url"] == "https://cdn/c.jpg"

    def test_transform_post_defaults(self):
        assert transform_post({"node": {}}) == {"img_url": "", "caption": "", "num_of_likes": 0, "who_liked": []}


def _instagram_host(host, viewer):
    profile_url = "https://www.instagram.com/alice/"

    def on_navigate(url):
        if url == profile_url:
            host.emit("https://www.instagram.com/graphql/query", PROFILE_BODY,
                      request_body="fb_api_req_friendly_name=PolarisProfilePageContentQuery")
            host.emit("https://www.instagram.com/graphql/query",
                      _timeline([_edge(1, image="i1"), _edge(2, image="i2")], True, "c1"),
                      request_body="fb_api_req_friendly_name=PolarisProfilePostsQuery")

    def on_scroll(arg):
        host.emit("https://www.instagram.com/graphql/query",
                  _timeline([_edge(2, image="i2"), _edge(3, image="i3")], False, None),
                  request_body="fb_api_req_friendly_name=PolarisProfilePostsQuery")

    host.on_navigate = on_navigate
    host.evaluate_fn = dom_evaluator(scripts={
        instagram.WEB_INFO_JS: {"ok": True, "value": viewer},
        instagram.SCROLL_JS: on_scroll,
    })
    return host


class TestInstagramRun:
    @pytest.mark.asyncio
    async def test_profile_and_paginated_posts(self, host, fast_config):
        _instagram_host(host, {"username": "alice", "id": "1"})

        outcome = await InstagramConnector(host, config=fast_config).run()

        assert outcome.success is True, outcome.error
        data = outcome.data
        assert data["platform"] == "instagram"
        assert data["version"] == "2.0.0-playwright"
        assert data["username"] == "alice"
        assert data["bio"] == "hello"
        assert [p["img_url"] for p in data["posts"]] == ["i1", "i2", "i3"]
        assert data["exportSummary"] == {"count": 3, "label": "posts"}
        assert host.navigations == ["https://www.instagram.com/", "https://www.instagram.com/alice/"]
        assert host.confirm_calls == 0

    @pytest.mark.asyncio
    async def test_not_logged_in(self, host, fast_config):
        _instagram_host(host, None)
        host.confirm_result = False

        outcome = await InstagramConnector(host, config=fast_config).run()

        assert outcome.success is False
        assert outcome.error == "Could not determine username: login was not completed"
        assert host.confirm_calls == 1

    @pytest.mark.asyncio
    async def test_missing_posts_still_succeeds(self, host, fast_config):
        host.evaluate_fn = dom_evaluator(scripts={
            instagram.WEB_INFO_JS: {"ok": True, "value": {"username": "alice"}},
        })

        outcome = await InstagramConnector(host, config=fast_config).run()

        assert outcome.success is True
        assert outcome.data["posts"] == []
        assert outcome.data["exportSummary"] == {"count": 0, "label": "posts"}


# --- ChatGPT ---

EMAIL_KEY = f"script:{chatgpt.EMAIL_PATTERN}"


def _chatgpt_scripts(**overrides):
    scripts = {
        chatgpt.DISMISS_JS: None,
        chatgpt.LOGIN_JS: True,
        chatgpt.REFETCH_EMAIL_JS: {"ok": True, "value": None},
        chatgpt.CREDENTIALS_JS: {"token": "tok", "deviceId": "dev"},
        chatgpt.FETCH_MEMORIES_JS: {"ok": True, "value": [
            {"id": "m1", "content": "Prefers tea", "created_at": "2024-05-01T00:00:00Z", "type": "fact"},
        ]},
    }
    scripts.update(overrides)
    return scripts


class TestChatGPT:
    def test_transform_memory_defaults(self):
        memory = transform_memory({"content": "x", "createdAt": "2024-01-01", "updatedAt": "2024-02-01"})

        assert memory["id"] == ""
        assert memory["created_at"] == "2024-01-01"
        assert memory["updated_at"] == "2024-02-01"
        assert memory["type"] == "memory"

    def test_transform_memory_fills_created_at(self):
        assert transform_memory({})["created_at"]

    @pytest.mark.asyncio
    async def test_email_and_memories(self, host, fast_config):
        host.evaluate_fn = dom_evaluator({EMAIL_KEY: "me@example.com"}, scripts=_chatgpt_scripts())

        outcome = await ChatGPTConnector(host, config=fast_config).run()

        assert outcome.success is True, outcome.error
        assert outcome.data["email"] == "me@example.com"
        assert outcome.data["memories"][0]["content"] == "Prefers tea"
        assert outcome.data["exportSummary"] == {"count": 1, "label": "memory"}
        fetches = [arg for script, arg in host.evaluations if script == chatgpt.FETCH_MEMORIES_JS]
        assert fetches == [{"token": "tok", "deviceId": "dev"}]

    @pytest.mark.asyncio
    async def test_email_from_page_refetch(self, host, fast_config):
        host.evaluate_fn = dom_evaluator(scripts=_chatgpt_scripts(**{
            chatgpt.REFETCH_EMAIL_JS: lambda pattern: {"ok": True, "value": "late@example.com"},
        }))

        outcome = await ChatGPTConnector(host, config=fast_config).run()

        assert outcome.data["email"] == "late@example.com"

    @pytest.mark.asyncio
    async def test_memories_from_network_capture(self, host, fast_config):
        host.evaluate_fn = dom_evaluator({EMAIL_KEY: "me@example.com"}, scripts=_chatgpt_scripts(**{
            chatgpt.CREDENTIALS_JS: {"token": None, "deviceId": None},
        }))
        record_wait = host.wait

        async def wait(ms):
            host.emit("https://chatgpt.com/backend-api/memories?include_memory_entries=true",
                      {"memories": [{"id": "a"}, {"id": "b"}]})
            await record_wait(ms)

        host.wait = wait

        outcome = await ChatGPTConnector(host, config=fast_config).run()

        assert [m["id"] for m in outcome.data["memories"]] == ["a", "b"]
        assert outcome.data["exportSummary"]["label"] == "memories"

    @pytest.mark.asyncio
    async def test_zero_memories_is_success(self, host, fast_config):
        host.evaluate_fn = dom_evaluator({EMAIL_KEY: "me@example.com"}, scripts=_chatgpt_scripts(**{
            chatgpt.FETCH_MEMORIES_JS: {"ok": False, "error": "memories status 403"},
        }))

        outcome = await ChatGPTConnector(host, config=fast_config).run()

        assert outcome.success is True
        assert outcome.data["exportSummary"] == {"count": 0, "label": "memories"}

    @pytest.mark.asyncio
    async def test_missing_email_fails(self, host, fast_config):
        host.evaluate_fn = dom_evaluator(scripts=_chatgpt_scripts())

        outcome = await ChatGPTConnector(host, config=fast_config).run()

        assert outcome.success is False
        assert outcome.error == "Could not determine email"
        assert "Looking for email... (attempt 2/2)" in host.statuses()

    @pytest.mark.asyncio
    async def test_dialogs_dismissed_before_login_check(self, host, fast_config):
        host.evaluate_fn = dom_evaluator({EMAIL_KEY: "me@example.com"}, scripts=_chatgpt_scripts())

        await ChatGPTConnector(host, config=fast_config).run()

        scripts = [script for script, arg in host.evaluations]
        assert scripts.index(chatgpt.DISMISS_JS) < scripts.index(chatgpt.LOGIN_JS)


# --- LinkedIn ---

LINKEDIN_DOM = {
    ".global-nav__me-photo": "https://www.linkedin.com/in/ada/",
    "location": "https://www.linkedin.com/in/ada/",
    "h1.text-heading-xlarge": " Ada Lovelace ",
    ".text-body-medium.break-words": "Analyst",
    ".pv-top-card--list-bullet:nth-child(2) span": "London",
    ".pv-top-card-profile-picture__image": "https://media/ada.jpg",
    "heading:about:.visually-hidden": "First programmer.",
}

LINKEDIN_SECTIONS = {
    "#experience": [
        {"jobTitle": "Analyst", "companyName": "Analytical Engine", "dates": "1842 - 1843"},
    ],
    "heading:education": [{"schoolName": "Home", "degree": "", "years": "", "logoUrl": ""}],
}


class TestLinkedIn:
    @pytest.mark.asyncio
    async def test_profile_export(self, host, fast_config):
        host.evaluate_fn = dom_evaluator(LINKEDIN_DOM, LINKEDIN_SECTIONS, scripts={
            linkedin.LOGIN_JS: True,
            linkedin.LAZY_SCROLL_JS: True,
        })

        outcome = await LinkedInConnector(host, config=fast_config).run()

        assert outcome.success is True, outcome.error
        data = outcome.data
        assert data["fullName"] == "Ada Lovelace"
        assert data["headline"] == "Analyst"
        assert data["location"] == "London"
        assert data["connections"] == ""
        assert data["profilePictureUrl"] == "https://media/ada.jpg"
        assert data["about"] == "First programmer."
        assert data["profileUrl"] == "https://www.linkedin.com/in/ada/"
        assert data["experience"][0]["location"] == ""
        assert data["education"][0]["schoolName"] == "Home"
        assert data["skills"] == []
        assert data["exportSummary"] == {"count": 1, "label": "experience"}
        assert host.navigations[-1] == "https://www.linkedin.com/in/ada/"

    @pytest.mark.asyncio
    async def test_falls_back_to_own_profile_url(self, host, fast_config):
        dom = {"h1.text-heading-xlarge": "Ada Lovelace"}
        host.evaluate_fn = dom_evaluator(dom, scripts={linkedin.LOGIN_JS: True})

        outcome = await LinkedInConnector(host, config=fast_config).run()

        assert linkedin.OWN_PROFILE_URL in host.navigations
        assert outcome.data["profileUrl"] == linkedin.OWN_PROFILE_URL
        assert outcome.data["exportSummary"] == {"count": 0, "label": "experiences"}

    @pytest.mark.asyncio
    async def test_missing_name_fails(self, host, fast_config):
        host.evaluate_fn = dom_evaluator({}, scripts={linkedin.LOGIN_JS: True})

        outcome = await LinkedInConnector(host, config=fast_config).run()

        assert outcome.to_dict() == {"success": False, "error": "Could not determine fullName"}

    @pytest.mark.asyncio
    async def test_human_login(self, host, fast_config):
        state = {"logged_in": False}
        host.on_confirm = lambda: state.update(logged_in=True)
        host.evaluate_fn = dom_evaluator(LINKEDIN_DOM, scripts={
            linkedin.LOGIN_JS: lambda arg: state["logged_in"],
        })

        outcome = await LinkedInConnector(host, config=fast_config).run()

        assert outcome.success is True
        assert host.confirm_calls == 1

    @pytest.mark.asyncio
    async def test_run_log_written(self, host, fast_config, tmp_path):
        host.evaluate_fn = dom_evaluator(LINKEDIN_DOM, scripts={linkedin.LOGIN_JS: True})
        run_log = RunLogger(platform="linkedin", log_dir=str(tmp_path), session_id="t1")

        await LinkedInConnector(host, config=fast_config, run_log=run_log).run()

        text = (tmp_path / "run-linkedin-t1.md").read_text(encoding="utf-8")
        assert "## Authentication" in text
        assert "Ada Lovelace" in text
        assert "**Status:** SUCCESS" in text
