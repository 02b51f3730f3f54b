"""Bookings made against approved custom quotes or catalogue packages."""

from __future__ import annotations

import logging
import secrets
from decimal import Decimal

from sqlmodel import select

from ..config import Settings
from ..errors import InvalidState, NotFound, ValidationError
from ..models import Booking, utcnow
from ..schemas import BookingCreate, PackageBookingCreate
from ..security import Principal, can_manage_quotes, require_operator
from .packages import PackageStore
from .quote_store import QuoteStore

logger = logging.getLogger(__name__)

BOOKING_STATUSES = ("pending", "confirmed", "paid", "cancelled")

# Statuses a booking may hold for each payment state.
STATUSES_BY_PAYMENT = {
    "unpaid": frozenset({"pending", "confirmed", "cancelled"}),
    "deposit_paid": frozenset({"confirmed", "cancelled"}),
    "fully_paid": frozenset({"paid", "cancelled"}),
}


def booking_reference() -> str:
    return f"MLT-{secrets.token_hex(4).upper()}"


def _check_dates(start, end) -> None:
    if start and end and end < start:
        raise ValidationError("travel_date_end must not be before travel_date_start")


class BookingService:
    def __init__(self, session_factory, settings: Settings, quote_store: QuoteStore, package_store: PackageStore):
        self._session_factory = session_factory
        self._settings = settings
        self._quote_store = quote_store
        self._package_store = package_store

    def _deposit(self, total: Decimal) -> Decimal:
        return (total * self._settings.booking_deposit_rate).quantize(Decimal("0.01"))

    async def _save_new(self, booking: Booking) -> Booking:
        async with self._session_factory() as session:
            session.add(booking)
            await session.commit()
            await session.refresh(booking)
        return booking

    async def create_from_quote(self, request: BookingCreate, principal: Principal) -> Booking:
        quote = await self._quote_store.get(request.quote_id)
        if quote.user_id != principal.subject:
            raise NotFound("Quote not found")
        if quote.status != "approved" or not quote.quoted_price:
            raise InvalidState("Only approved quotes with a price can be booked")

        start = request.travel_date_start or quote.travel_dates_start
        end = request.travel_date_end or quote.travel_dates_end
        _check_dates(start, end)

        total = Decimal(quote.quoted_price)
        booking = await self._save_new(
            Booking(
                user_id=principal.subject,
                custom_quote_id=quote.id,
                booking_reference=booking_reference(),
                total_amount=total,
                currency=quote.quoted_currency,
                deposit_amount=self._deposit(total),
                travel_date_start=start,
                travel_date_end=end,
                participants=quote.participants,
                special_requests=request.special_requests,
            )
        )
        logger.info("Booking %s created from quote %s", booking.booking_reference, quote.id)
        return booking

    async def create_from_package(
        self, package_id: str, request: PackageBookingCreate, principal: Principal
    ) -> Booking:
        """Book an active package; packages are priced per person in USD."""

        package = await self._package_store.get_active(package_id)
        if package.max_participants and request.participants > package.max_participants:
            raise ValidationError(
                f"This package takes at most {package.max_participants} participants",
                details={"participants": f"must be at most {package.max_participants}"},
            )
        _check_dates(request.travel_date_start, request.travel_date_end)

        total = (Decimal(package.price_usd) * request.participants).quantize(Decimal("0.01"))
        booking = await self._save_new(
            Booking(
                user_id=principal.subject,
                package_id=package.id,
                booking_reference=booking_reference(),
                total_amount=total,
                currency="USD",
                deposit_amount=self._deposit(total),
                travel_date_start=request.travel_date_start,
                travel_date_end=request.travel_date_end,
                participants=request.participants,
                special_requests=request.special_requests,
            )
        )
        logger.info("Booking %s created from package %s", booking.booking_reference, package.id)
        return booking

    async def list_for_user(self, user_id: str) -> list[Booking]:
        stmt = select(Booking).where(Booking.user_id == user_id).order_by(Booking.created_at.desc())
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_bookings(
        self, principal: Principal, status: str | None = None, limit: int = 100
    ) -> list[Booking]:
        require_operator(principal, self._settings)
        stmt = select(Booking)
        if status:
            stmt = stmt.where(Booking.status == status)
        stmt = stmt.order_by(Booking.created_at.desc()).limit(limit)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_booking(self, booking_id: str, principal: Principal) -> Booking:
        """Owners and operators can read a booking; anyone else gets NotFound."""

        async with self._session_factory() as session:
            booking = await session.get(Booking, booking_id)
        if booking is None or (
            booking.user_id != principal.subject and not can_manage_quotes(principal, self._settings)
        ):
            raise NotFound("Booking not found")
        return booking

    async def get_for_operator(self, booking_id: str, principal: Principal) -> Booking:
        require_operator(principal, self._settings)
        return await self.get_booking(booking_id, principal)

    async def update_status(
        self, booking_id: str, status: str, principal: Principal, cancellation_reason: str | None = None
    ) -> Booking:
        require_operator(principal, self._settings)
        if status not in BOOKING_STATUSES:
            raise ValidationError(f"Unknown booking status '{status}'")
        if status == "paid":
            raise InvalidState("Bookings become paid by recording the full payment")

        async with self._session_factory() as session:
            booking = await session.get(Booking, booking_id)
            if booking is None:
                raise NotFound("Booking not found")
            if booking.status == "cancelled" and status != "cancelled":
                raise InvalidState("Cancelled bookings cannot be reopened")
            if status not in STATUSES_BY_PAYMENT[booking.payment_state]:
                raise InvalidState(
                    f"A booking with payment state '{booking.payment_state}' cannot be {status}",
                    details={"payment_state": booking.payment_state, "status": status},
                )
            booking.status = status
            if status == "cancelled":
                booking.cancellation_reason = cancellation_reason
            booking.updated_at = utcnow()
            session.add(booking)
            await session.commit()
            await session.refresh(booking)
        return booking

    async def record_payment(
        self, booking_id: str, kind: str, principal: Principal, payment_reference: str | None = None
    ) -> Booking:
        """Record a settled payment reported by the payment gateway."""

        async with self._session_factory() as session:
            booking = await session.get(Booking, booking_id)
            if booking is None or (
                booking.user_id != principal.subject and not can_manage_quotes(principal, self._settings)
            ):
                raise NotFound("Booking not found")
            if booking.status == "cancelled":
                raise InvalidState("Cannot take payment for a cancelled booking")
            if booking.payment_state == "fully_paid":
                raise InvalidState("Booking is already fully paid")

            if kind == "deposit":
                if booking.payment_state != "unpaid":
                    raise InvalidState("Deposit already received")
                booking.payment_state = "deposit_paid"
                if booking.status == "pending":
                    booking.status = "confirmed"
            elif kind == "full":
                booking.payment_state = "fully_paid"
                booking.status = "paid"
            else:
                raise ValidationError(f"Unknown payment kind '{kind}'")

            if payment_reference:
                booking.payment_reference = payment_reference
            booking.updated_at = utcnow()
            session.add(booking)
            await session.commit()
            await session.refresh(booking)

        logger.info("Booking %s payment state now %s", booking.booking_reference, booking.payment_state)
        return booking
