"""Site content lookups, fallbacks and cache invalidation."""

from __future__ import annotations

import asyncio

import pytest

from quotedesk.errors import Unauthorized
from quotedesk.schemas import ContentUpdate, SettingUpdate
from quotedesk.services.content_cache import CONTENT_KEY, SETTINGS_KEY, ContentCache
from support import make_database, make_settings, operator, outsider


class InMemoryRedis:
    """The subset of redis.asyncio.Redis the content cache calls."""

    def __init__(self):
        self.values: dict[str, str] = {}

    async def get(self, key):
        return self.values.get(key)

    async def setex(self, key, ttl, value):
        self.values[key] = value

    async def delete(self, *keys):
        for key in keys:
            self.values.pop(key, None)


def _run(tmp_path, scenario, redis_client=None):
    async def _inner():
        engine, factory = await make_database(tmp_path / "content.db")
        try:
            return await scenario(ContentCache(factory, make_settings(), redis_client))
        finally:
            await engine.dispose()

    return asyncio.run(_inner())


def test_fallbacks_without_rows(tmp_path):
    async def scenario(content):
        return (
            await content.content("hero_title"),
            await content.content("no_such_key"),
            await content.setting("company_name"),
            await content.setting("no_such_key"),
        )

    assert _run(tmp_path, scenario) == (
        "Discover Extraordinary Adventures",
        "Content not found",
        "Meridian Luxury Travel",
        "",
    )


def test_writes_are_operator_only_and_invalidate_cache(tmp_path):
    redis_client = InMemoryRedis()

    async def scenario(content):
        before = await content.content("hero_title")
        assert CONTENT_KEY in redis_client.values
        with pytest.raises(Unauthorized):
            await content.put_content("hero_title", ContentUpdate(title="Hero", content="Nope"), outsider())
        await content.put_content(
            "hero_title", ContentUpdate(title="Hero", content="Walk the Inca Trail", section_type="hero"), operator()
        )
        assert CONTENT_KEY not in redis_client.values
        after = await content.content("hero_title")
        await content.put_setting("contact_phone", SettingUpdate(setting_value="+51 1 555 0100"), operator())
        return before, after, await content.setting("contact_phone")

    before, after, phone = _run(tmp_path, scenario, redis_client)
    assert before == "Discover Extraordinary Adventures"
    assert after == "Walk the Inca Trail"
    assert phone == "+51 1 555 0100"


def test_cached_entries_are_served_and_unreadable_ones_discarded(tmp_path):
    redis_client = InMemoryRedis()
    redis_client.values[CONTENT_KEY] = b'{"hero_title": "Cached hero"}'
    redis_client.values[SETTINGS_KEY] = "not json"

    async def scenario(content):
        return await content.content("hero_title"), await content.setting("company_name")

    hero, company = _run(tmp_path, scenario, redis_client)
    assert hero == "Cached hero"
    assert company == "Meridian Luxury Travel"
    assert redis_client.values[SETTINGS_KEY].startswith(b"{")
