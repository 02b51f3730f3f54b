"""Composes and sends the "quote approved" email."""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from ..config import Settings
from ..errors import InvalidState, StorageDegraded
from ..schemas import NotificationResult
from ..security import Principal, require_operator
from .email_client import EmailClient, EmailMessage
from .email_templates import QUOTE_APPROVED_SUBJECT, render_quote_approved
from .quote_store import QuoteStore
from .token_issuer import TokenIssuer

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, settings: Settings, quote_store: QuoteStore, token_issuer: TokenIssuer, email_client: EmailClient):
        self._settings = settings
        self._quote_store = quote_store
        self._token_issuer = token_issuer
        self._email_client = email_client

    def _link(self, path: str, token: str) -> str:
        return f"{self._settings.site_url}{path}?{urlencode({'quote_token': token})}"

    async def notify_approved(self, quote_id: str, principal: Principal) -> NotificationResult:
        """Email the quote's contact a signup link and a signin link carrying one token.

        Raises Unauthorized, NotFound, InvalidState or EmailDeliveryError. A token
        that could not be stored is tolerated unless the service runs fail-closed.
        """

        require_operator(principal, self._settings)
        quote = await self._quote_store.get(quote_id)
        if quote.status != "approved" or not quote.quoted_price:
            raise InvalidState("Quote must be approved with a price before notifying")

        issued = await self._token_issuer.issue(quote.id, quote.contact_email)
        if not issued.persisted and self._settings.token_storage_fail_closed:
            raise StorageDegraded("Linking token could not be stored; email not sent")

        signup_link = self._link("/auth/signup", issued.token)
        signin_link = self._link("/auth/signin", issued.token)
        message = EmailMessage(
            sender=self._settings.email_sender,
            to=[quote.contact_email],
            subject=QUOTE_APPROVED_SUBJECT.format(destination=quote.destination),
            html=render_quote_approved(quote, signup_link, signin_link, self._settings.site_url),
        )
        email_id = await self._email_client.send(message)
        logger.info("Approval email for quote %s sent to %s", quote.id, quote.contact_email)

        summary = "Email sent successfully"
        if not issued.persisted:
            summary += ", but the account link could not be saved"
        return NotificationResult(
            message=summary,
            signup_link=signup_link,
            signin_link=signin_link,
            email_id=email_id,
            token_persisted=issued.persisted,
        )
