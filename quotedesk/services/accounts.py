"""Customer accounts: signup, sign-in and the email chooser."""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from ..config import Settings
from ..errors import Conflict, Unauthorized
from ..models import UserAccount, utcnow
from ..schemas import AuthResult, SigninRequest, SignupRequest
from ..security import Principal, create_access_token, hash_password, verify_password
from .account_linker import AccountLinker

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, session_factory, settings: Settings, linker: AccountLinker):
        self._session_factory = session_factory
        self._settings = settings
        self._linker = linker

    async def _find(self, email: str) -> UserAccount | None:
        async with self._session_factory() as session:
            result = await session.execute(select(UserAccount).where(UserAccount.email == email.lower()))
            return result.scalars().first()

    async def email_exists(self, email: str) -> bool:
        return await self._find(email) is not None

    def _issue_session(self, user: UserAccount, quote_attached: bool | None) -> AuthResult:
        principal = Principal(subject=user.id, email=user.email, roles=list(user.roles or []))
        return AuthResult(
            user_id=user.id,
            email=user.email,
            access_token=create_access_token(principal, self._settings),
            expires_in=self._settings.access_token_minutes * 60,
            quote_attached=quote_attached,
        )

    async def _attach(self, token: str | None, user_id: str) -> bool | None:
        if not token:
            return None
        return await self._linker.attach(token, user_id)

    async def signup(self, request: SignupRequest) -> AuthResult:
        user = UserAccount(
            email=str(request.email).lower(),
            password_hash=hash_password(request.password),
            full_name=request.full_name,
            roles=["customer"],
        )
        async with self._session_factory() as session:
            session.add(user)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise Conflict("An account with this email already exists") from exc
            await session.refresh(user)
        logger.info("Account %s created", user.id)

        # Linking is best effort; the account exists either way.
        attached = await self._attach(request.quote_token, user.id)
        return self._issue_session(user, attached)

    async def signin(self, request: SigninRequest) -> AuthResult:
        user = await self._find(str(request.email))
        if user is None or not verify_password(request.password, user.password_hash):
            raise Unauthorized("Invalid email or password")

        async with self._session_factory() as session:
            user.last_login = utcnow()
            session.add(user)
            await session.commit()
            await session.refresh(user)

        attached = await self._attach(request.quote_token, user.id)
        return self._issue_session(user, attached)
