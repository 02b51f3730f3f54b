"""Site copy and settings, served through a Redis cache."""

from __future__ import annotations

import logging

from pydantic import TypeAdapter, ValidationError as PayloadError
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from ..config import Settings
from ..models import ContentSection, SiteSetting, utcnow
from ..schemas import ContentUpdate, SettingUpdate
from ..security import Principal, require_operator

logger = logging.getLogger(__name__)

CONTENT_KEY = "quotedesk:content:sections"
SETTINGS_KEY = "quotedesk:content:settings"
CACHE_PAYLOAD = TypeAdapter(dict[str, str])

FALLBACK_CONTENT = {
    "hero_title": "Discover Extraordinary Adventures",
    "hero_subtitle": "Embark on carefully curated luxury travel experiences that create lasting memories.",
    "hero_cta": "Start Your Journey",
    "about_title": "About Meridian Luxury Travel",
    "about_content": (
        "We specialize in creating bespoke travel experiences that exceed expectations. Our team of travel "
        "experts carefully crafts each journey to ensure unforgettable adventures that create lasting memories."
    ),
    "services_title": "Our Services",
    "services_content": (
        "From luxury accommodations to unique experiences, we handle every detail of your travel adventure."
    ),
    "contact_title": "Get in Touch",
    "contact_content": (
        "Ready to plan your next adventure? Contact us today to start creating your perfect travel experience."
    ),
    "footer_tagline": "Creating extraordinary travel experiences since 2024.",
}

FALLBACK_SETTINGS = {
    "company_name": "Meridian Luxury Travel",
    "contact_email": "chris@meridianluxury.travel",
    "contact_phone": "+1 (555) 123-4567",
    "website_url": "https://www.meridianluxury.travel",
    "company_address": "123 Travel Way, Adventure City, AC 12345",
    "business_hours": "Monday - Friday: 9:00 AM - 6:00 PM EST",
    "tagline": "Creating extraordinary travel experiences",
}


class ContentCache:
    """Reads go Redis -> database -> built-in fallbacks; writes drop the cache."""

    def __init__(self, session_factory, settings: Settings, redis_client: Redis | None = None):
        self._session_factory = session_factory
        self._settings = settings
        self._redis = redis_client

    async def _cached(self, key: str) -> dict[str, str] | None:
        if not self._redis:
            return None
        try:
            raw = await self._redis.get(key)
        except RedisError as exc:
            logger.warning("Content cache read failed: %s", exc)
            return None
        if not raw:
            return None
        try:
            return CACHE_PAYLOAD.validate_json(raw)
        except PayloadError:
            logger.warning("Discarding unreadable content cache entry %s", key)
            return None

    async def _store(self, key: str, values: dict[str, str]) -> None:
        if not self._redis:
            return
        try:
            await self._redis.setex(key, self._settings.content_cache_ttl_seconds, CACHE_PAYLOAD.dump_json(values))
        except RedisError as exc:
            logger.warning("Content cache write failed: %s", exc)

    async def invalidate(self) -> None:
        if not self._redis:
            return
        try:
            await self._redis.delete(CONTENT_KEY, SETTINGS_KEY)
        except RedisError as exc:
            logger.warning("Content cache invalidation failed: %s", exc)

    async def all_content(self) -> dict[str, str]:
        cached = await self._cached(CONTENT_KEY)
        if cached is not None:
            return cached
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(ContentSection)
                    .where(ContentSection.is_active.is_(True))
                    .order_by(ContentSection.section_type)
                )
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            logger.warning("Content sections not available, using fallbacks: %s", exc)
            return dict(FALLBACK_CONTENT)
        values = {row.section_key: row.content for row in rows}
        await self._store(CONTENT_KEY, values)
        return values

    async def all_settings(self) -> dict[str, str]:
        cached = await self._cached(SETTINGS_KEY)
        if cached is not None:
            return cached
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(select(SiteSetting).order_by(SiteSetting.setting_key))).scalars().all()
        except SQLAlchemyError as exc:
            logger.warning("Site settings not available, using fallbacks: %s", exc)
            return dict(FALLBACK_SETTINGS)
        values = {row.setting_key: row.setting_value for row in rows}
        await self._store(SETTINGS_KEY, values)
        return values

    async def content(self, key: str) -> str:
        value = (await self.all_content()).get(key)
        return value or FALLBACK_CONTENT.get(key, "Content not found")

    async def setting(self, key: str) -> str:
        value = (await self.all_settings()).get(key)
        return value or FALLBACK_SETTINGS.get(key, "")

    async def put_content(self, key: str, update: ContentUpdate, principal: Principal) -> ContentSection:
        require_operator(principal, self._settings)
        async with self._session_factory() as session:
            section = await session.get(ContentSection, key)
            if section is None:
                section = ContentSection(section_key=key, title=update.title, content=update.content)
            section.title = update.title
            section.content = update.content
            section.section_type = update.section_type
            section.is_active = update.is_active
            section.updated_at = utcnow()
            session.add(section)
            await session.commit()
            await session.refresh(section)
        await self.invalidate()
        return section

    async def put_setting(self, key: str, update: SettingUpdate, principal: Principal) -> SiteSetting:
        require_operator(principal, self._settings)
        async with self._session_factory() as session:
            setting = await session.get(SiteSetting, key)
            if setting is None:
                setting = SiteSetting(setting_key=key, setting_value=update.setting_value)
            setting.setting_value = update.setting_value
            if update.description is not None:
                setting.description = update.description
            setting.updated_at = utcnow()
            session.add(setting)
            await session.commit()
            await session.refresh(setting)
        await self.invalidate()
        return setting
