"""Persistence and lifecycle rules for custom quote requests."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from email_validator import EmailNotValidError, validate_email
from sqlmodel import select

from ..config import Settings
from ..errors import InvalidState, NotFound, ValidationError
from ..models import Quote, utcnow
from ..schemas import PRICED_STATUSES, QUOTE_STATUSES, QuoteRequest
from ..security import Principal, require_operator

logger = logging.getLogger(__name__)

# Forward moves along pending -> reviewing -> quoted -> approved, plus rejection
# from every state but rejected. Only consulted when transitions are enforced.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"reviewing", "quoted", "approved", "rejected"}),
    "reviewing": frozenset({"quoted", "approved", "rejected"}),
    "quoted": frozenset({"approved", "rejected"}),
    "approved": frozenset({"rejected"}),
    "rejected": frozenset(),
}


def transition_allowed(current: str, requested: str) -> bool:
    return current == requested or requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def _days_between(start, end) -> int:
    return (end - start).days


def _combined_requirements(request: QuoteRequest) -> str | None:
    """Fold the secondary form fields into one free-text note for the operator."""

    parts: list[str] = []
    name = " ".join(p for p in (request.first_name, request.last_name) if p).strip()
    if name:
        parts.append(f"Contact Name: {name}")

    if request.flexible_month or request.flexible_year:
        if request.flexible_month and request.flexible_year:
            when = f"{request.flexible_month} {request.flexible_year}"
        elif request.flexible_month:
            when = f"{request.flexible_month} (any year)"
        else:
            when = f"{request.flexible_year} (any month)"
        parts.append(f"Flexible Dates: {when}")

    if request.adults is not None:
        group = f"Group Details: {request.adults} adults"
        if request.children > 0:
            group += f", {request.children} children"
        group += f", {request.rooms} room{'s' if request.rooms > 1 else ''}"
        parts.append(group)

    if request.special_requirements:
        label = "Special Requirements: " if parts or request.travel_plans else ""
        parts.append(f"{label}{request.special_requirements.strip()}")
    if request.travel_plans:
        parts.append(f"Travel Plans & Interests: {request.travel_plans.strip()}")

    combined = "\n\n".join(parts).strip()
    return combined or None


class QuoteStore:
    """Owns quote records and the status vocabulary."""

    def __init__(self, session_factory, settings: Settings):
        self._session_factory = session_factory
        self._settings = settings

    def _normalise(self, request: QuoteRequest) -> dict:
        errors: dict[str, str] = {}

        destination = (request.destination or "").strip()
        if not destination:
            errors["destination"] = "destination is required"

        duration = request.duration
        if request.travel_dates_start and request.travel_dates_end:
            if request.travel_dates_end <= request.travel_dates_start:
                errors["travel_dates_end"] = "end date must be after start date"
            else:
                duration = _days_between(request.travel_dates_start, request.travel_dates_end)
        if duration is None or duration <= 0:
            errors.setdefault("duration", "duration must be a positive number of days")

        participants = request.participants
        if participants is None and request.adults is not None:
            participants = request.adults + request.children
        if participants is None or participants <= 0:
            errors["participants"] = "participants must be greater than zero"

        email = (request.contact_email or "").strip()
        try:
            email = validate_email(email, check_deliverability=False).normalized
        except EmailNotValidError:
            errors["contact_email"] = "a valid contact email is required"

        if errors:
            raise ValidationError("Quote request is missing required fields", details=errors)

        return {
            "destination": destination,
            "duration": duration,
            "participants": participants,
            "contact_email": email,
            "contact_phone": (request.contact_phone or "").strip() or None,
            "budget_range": (request.budget_range or "").strip() or None,
            "travel_dates_start": request.travel_dates_start,
            "travel_dates_end": request.travel_dates_end,
            "special_requirements": _combined_requirements(request),
        }

    async def create(self, request: QuoteRequest) -> Quote:
        quote = Quote(**self._normalise(request), status="pending", user_id=None)
        async with self._session_factory() as session:
            session.add(quote)
            await session.commit()
            await session.refresh(quote)
        logger.info("Quote %s submitted for %s", quote.id, quote.destination)
        return quote

    async def get(self, quote_id: str) -> Quote:
        async with self._session_factory() as session:
            quote = await session.get(Quote, quote_id)
        if quote is None:
            raise NotFound("Quote not found")
        return quote

    async def get_for_operator(self, quote_id: str, principal: Principal) -> Quote:
        require_operator(principal, self._settings)
        return await self.get(quote_id)

    async def list_quotes(self, principal: Principal, status: str | None = None, limit: int = 100) -> list[Quote]:
        require_operator(principal, self._settings)
        stmt = select(Quote).order_by(Quote.created_at.desc()).limit(limit)
        if status:
            stmt = stmt.where(Quote.status == status)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_for_user(self, user_id: str, limit: int = 50) -> list[Quote]:
        stmt = select(Quote).where(Quote.user_id == user_id).order_by(Quote.created_at.desc()).limit(limit)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update_status(
        self,
        quote_id: str,
        status: str | None,
        principal: Principal,
        quoted_price: Decimal | float | int | None = None,
        quoted_currency: str | None = None,
        admin_notes: str | None = None,
    ) -> Quote:
        """Apply an operator decision. Does not send any notification."""

        require_operator(principal, self._settings)

        if status is not None and status not in QUOTE_STATUSES:
            raise ValidationError(f"Unknown quote status '{status}'", details={"status": status})

        price: Decimal | None = None
        if quoted_price is not None:
            try:
                price = Decimal(str(quoted_price))
            except InvalidOperation as exc:
                raise ValidationError("quoted_price must be a number") from exc
            if not price.is_finite() or price <= 0:
                raise ValidationError("quoted_price must be greater than zero")
            price = price.quantize(Decimal("0.01"))

        currency = quoted_currency.strip().upper() if quoted_currency else None
        if currency is not None and (len(currency) != 3 or not currency.isalpha()):
            raise ValidationError("quoted_currency must be an ISO 4217 code")

        async with self._session_factory() as session:
            quote = await session.get(Quote, quote_id)
            if quote is None:
                raise NotFound("Quote not found")

            target = status or quote.status
            if self._settings.enforce_status_transitions and not transition_allowed(quote.status, target):
                raise InvalidState(f"Cannot move quote from '{quote.status}' to '{target}'")
            if price is not None and target not in PRICED_STATUSES:
                raise InvalidState("A price can only be set on a quoted or approved quote")

            previous = quote.status
            quote.status = target
            if price is not None:
                quote.quoted_price = price
            if currency is not None:
                quote.quoted_currency = currency
            if admin_notes is not None:
                quote.admin_notes = admin_notes
            quote.updated_at = utcnow()
            session.add(quote)
            await session.commit()
            await session.refresh(quote)

        logger.info("Quote %s moved %s -> %s by %s", quote_id, previous, target, principal.email or principal.subject)
        return quote
