"""One-time tokens that let an email address claim an approved quote."""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from sqlalchemy import or_, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlmodel import select
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import InvalidToken, StorageDegraded
from ..logging_config import token_hint
from ..models import Quote, QuoteToken, utcnow
from ..schemas import IssuedToken, QuoteSummary, TokenValidation

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


class TokenIssuer:
    """Mints, validates and redeems quote-linking tokens."""

    def __init__(self, session_factory, ttl: timedelta = timedelta(days=14)):
        self._session_factory = session_factory
        self._ttl = ttl

    @staticmethod
    def generate() -> str:
        return secrets.token_hex(TOKEN_BYTES)

    async def issue(self, quote_id: str, email: str) -> IssuedToken:
        """Create a token for ``email``.

        A storage failure does not abort issuance: the token is still returned
        with ``persisted=False`` so the caller can decide whether to carry on.
        """

        now = utcnow()
        record = QuoteToken(
            quote_id=quote_id,
            token=self.generate(),
            email=email,
            created_at=now,
            expires_at=now + self._ttl,
        )
        try:
            await self._persist(record)
        except StorageDegraded as exc:
            logger.warning(
                "Continuing without token storage for quote %s (%s): %s",
                quote_id,
                token_hint(record.token),
                exc.message,
            )
            return IssuedToken(token=record.token, expires_at=record.expires_at, persisted=False)

        logger.info("Issued token %s for quote %s", token_hint(record.token), quote_id)
        return IssuedToken(token=record.token, expires_at=record.expires_at)

    async def _persist(self, record: QuoteToken) -> None:
        try:
            async with self._session_factory() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError as exc:
            raise StorageDegraded(f"could not store quote token: {exc.__class__.__name__}") from exc

    async def validate(self, token: str) -> TokenValidation:
        """Read-only lookup of an unused, unexpired token and its quote."""

        if not token:
            raise InvalidToken()
        stmt = (
            select(QuoteToken, Quote)
            .join(Quote, Quote.id == QuoteToken.quote_id)
            .where(
                QuoteToken.token == token,
                QuoteToken.used_at.is_(None),
                QuoteToken.expires_at > utcnow(),
            )
        )
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).first()
        if row is None:
            raise InvalidToken()

        record, quote = row
        return TokenValidation(
            token=record.token,
            email=record.email,
            expires_at=record.expires_at,
            quote=QuoteSummary.model_validate(quote),
        )

    @retry(
        retry=retry_if_exception_type(OperationalError),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
        stop=stop_after_attempt(5),
        reraise=True,
    )
    async def consume(self, token: str, user_id: str) -> str:
        """Spend ``token`` and link its quote to ``user_id``; returns the quote id.

        The claim is a conditional UPDATE on ``used_at IS NULL`` so concurrent
        redemptions cannot both succeed. Lock contention is retried; a retry
        that finds the token already spent fails with InvalidToken.
        """

        if not token or not user_id:
            raise InvalidToken()

        now = utcnow()
        async with self._session_factory() as session:
            claimed = await session.execute(
                update(QuoteToken)
                .where(
                    QuoteToken.token == token,
                    QuoteToken.used_at.is_(None),
                    QuoteToken.expires_at > now,
                )
                .values(used_at=now, used_by=user_id)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                await session.rollback()
                raise InvalidToken()

            quote_id = (
                await session.execute(select(QuoteToken.quote_id).where(QuoteToken.token == token))
            ).scalar_one()

            # An owned quote is never handed to a different account.
            linked = await session.execute(
                update(Quote)
                .where(Quote.id == quote_id, or_(Quote.user_id.is_(None), Quote.user_id == user_id))
                .values(user_id=user_id, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if linked.rowcount != 1:
                await session.rollback()
                logger.warning("Token %s refers to quote %s owned by another account", token_hint(token), quote_id)
                raise InvalidToken()

            await session.commit()

        logger.info("Quote %s linked to user %s", quote_id, user_id)
        return quote_id
