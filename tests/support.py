"""Shared builders for the quotedesk tests."""

from __future__ import annotations

from decimal import Decimal

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from quotedesk.config import Settings
from quotedesk.schemas import QuoteRequest
from quotedesk.security import Principal
from quotedesk.services.email_client import EmailClient
from quotedesk.services.quote_store import QuoteStore

OPERATOR_EMAIL = "chris@meridianluxury.travel"


def make_settings(**overrides) -> Settings:
    values = {
        "database_url": "sqlite+aiosqlite:///:memory:",
        "operator_emails": {OPERATOR_EMAIL},
        "email_api_key": "re_test_key",
        "site_url": "https://meridian.test",
        "jwt_secret": "test-secret",
    }
    values.update(overrides)
    return Settings(**values)


async def make_database(db_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    return engine, factory


def operator() -> Principal:
    return Principal(subject="user_operator", email=OPERATOR_EMAIL, roles=["customer"])


def outsider() -> Principal:
    return Principal(subject="user_outsider", email="random@evil.com", roles=["customer"])


def peru_request(**overrides) -> QuoteRequest:
    values = {
        "destination": "Peru",
        "duration": 10,
        "participants": 2,
        "contact_email": "traveler@example.com",
    }
    values.update(overrides)
    return QuoteRequest(**values)


async def approved_quote(store: QuoteStore, price=Decimal("4200"), currency: str = "USD", **overrides):
    quote = await store.create(peru_request(**overrides))
    return await store.update_status(quote.id, "approved", operator(), quoted_price=price, quoted_currency=currency)


class RecordingEmailTransport:
    """httpx transport double that records provider calls."""

    def __init__(self, status_code: int = 200, body: dict | None = None):
        self.status_code = status_code
        self.body = body if body is not None else {"id": "email_123"}
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    def client(self, settings: Settings) -> EmailClient:
        return EmailClient(settings, httpx.AsyncClient(base_url=settings.email_api_url, transport=self.transport))
