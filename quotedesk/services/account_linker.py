"""Binds approved quotes to accounts during signup and sign-in."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from ..errors import InvalidToken
from ..logging_config import token_hint
from ..schemas import TokenValidation
from .token_issuer import TokenIssuer

logger = logging.getLogger(__name__)


class AccountLinker:
    def __init__(self, token_issuer: TokenIssuer):
        self._token_issuer = token_issuer

    async def validate_token_for_display(self, token: str) -> TokenValidation:
        return await self._token_issuer.validate(token)

    async def attach(self, token: str, user_id: str) -> bool:
        """Claim the token's quote for ``user_id``.

        Never raises: a failed attachment must not undo the account step that
        preceded it, so the outcome is reported as a boolean.
        """

        try:
            await self._token_issuer.consume(token, user_id)
        except InvalidToken:
            logger.info("Token %s not attached to user %s: invalid or already used", token_hint(token), user_id)
            return False
        except SQLAlchemyError as exc:
            logger.warning("Token %s not attached to user %s: %s", token_hint(token), user_id, exc)
            return False
        return True
