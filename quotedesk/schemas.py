"""Pydantic schemas shared across the quotedesk codebase."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

QuoteStatus = Literal["pending", "reviewing", "quoted", "approved", "rejected"]
BookingStatus = Literal["pending", "confirmed", "paid", "cancelled"]
PaymentState = Literal["unpaid", "deposit_paid", "fully_paid"]
PaymentKind = Literal["deposit", "full"]
DifficultyLevel = Literal["easy", "moderate", "challenging"]

QUOTE_STATUSES: tuple[str, ...] = ("pending", "reviewing", "quoted", "approved", "rejected")
PRICED_STATUSES = frozenset({"quoted", "approved"})


class QuoteRequest(BaseModel):
    """Public quote form submission.

    Only the shape and the room and head counts are checked here; business
    rules (non-empty destination, positive duration and party size, well-formed
    email) are enforced by the quote store so every entry point gets the same
    errors.
    """

    model_config = ConfigDict(extra="forbid")

    destination: str = ""
    contact_email: str = ""
    duration: int | None = None
    participants: int | None = None
    contact_phone: str | None = None
    budget_range: str | None = None
    travel_dates_start: date | None = None
    travel_dates_end: date | None = None
    special_requirements: str | None = None

    first_name: str | None = None
    last_name: str | None = None
    adults: int | None = Field(default=None, ge=1)
    children: int = Field(default=0, ge=0)
    rooms: int = Field(default=1, ge=1)
    flexible_month: str | None = None
    flexible_year: int | None = None
    travel_plans: str | None = None


class QuoteStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: QuoteStatus | None = None
    quoted_price: Decimal | None = None
    quoted_currency: str | None = Field(default=None, min_length=3, max_length=3)
    admin_notes: str | None = None


class QuoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    updated_at: datetime
    user_id: str | None
    destination: str
    duration: int
    participants: int
    budget_range: str | None
    travel_dates_start: date | None
    travel_dates_end: date | None
    special_requirements: str | None
    contact_email: str
    contact_phone: str | None
    status: str
    quoted_price: Decimal | None
    quoted_currency: str
    admin_notes: str | None


class QuoteSummary(BaseModel):
    """What a token holder is allowed to see before claiming the quote."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    destination: str
    duration: int
    participants: int
    budget_range: str | None
    quoted_price: Decimal | None
    quoted_currency: str
    status: str
    contact_email: str
    special_requirements: str | None


class IssuedToken(BaseModel):
    token: str
    expires_at: datetime
    persisted: bool = True


class TokenValidation(BaseModel):
    token: str
    email: str
    expires_at: datetime
    quote: QuoteSummary


class ConsumeTokenRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    token: str = Field(min_length=1)


class NotificationResult(BaseModel):
    success: bool = True
    message: str
    signup_link: str
    signin_link: str
    email_id: str | None = None
    token_persisted: bool = True


class SignupRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    full_name: str | None = Field(default=None, max_length=100)
    quote_token: str | None = None


class SigninRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str
    quote_token: str | None = None


class EmailCheck(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class AuthResult(BaseModel):
    user_id: str
    email: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    quote_attached: bool | None = None


class ItineraryDay(BaseModel):
    day: int = Field(ge=1)
    title: str
    activities: list[str] = Field(default_factory=list)
    accommodation: str | None = None


class PackageCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    destination: str = Field(min_length=1)
    duration: int = Field(ge=1)
    price_usd: Decimal = Field(gt=0)
    price_eur: Decimal | None = Field(default=None, gt=0)
    price_gbp: Decimal | None = Field(default=None, gt=0)
    itinerary: list[ItineraryDay] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    includes: list[str] = Field(default_factory=list)
    excludes: list[str] = Field(default_factory=list)
    max_participants: int | None = Field(default=None, ge=1)
    difficulty_level: DifficultyLevel | None = None
    is_active: bool = True


class PackageUpdate(BaseModel):
    """Partial edit; fields left out keep their stored value."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    destination: str | None = Field(default=None, min_length=1)
    duration: int | None = Field(default=None, ge=1)
    price_usd: Decimal | None = Field(default=None, gt=0)
    price_eur: Decimal | None = Field(default=None, gt=0)
    price_gbp: Decimal | None = Field(default=None, gt=0)
    itinerary: list[ItineraryDay] | None = None
    images: list[str] | None = None
    includes: list[str] | None = None
    excludes: list[str] | None = None
    max_participants: int | None = Field(default=None, ge=1)
    difficulty_level: DifficultyLevel | None = None
    is_active: bool | None = None


class PackageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    updated_at: datetime
    title: str
    description: str | None
    destination: str
    duration: int
    price_usd: Decimal
    price_eur: Decimal | None
    price_gbp: Decimal | None
    itinerary: list[ItineraryDay]
    images: list[str]
    includes: list[str]
    excludes: list[str]
    max_participants: int | None
    difficulty_level: str | None
    is_active: bool


class BookingCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    quote_id: str
    travel_date_start: date | None = None
    travel_date_end: date | None = None
    special_requests: str | None = None


class PackageBookingCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    participants: int = Field(default=1, ge=1)
    travel_date_start: date | None = None
    travel_date_end: date | None = None
    special_requests: str | None = None


class BookingStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: BookingStatus
    cancellation_reason: str | None = None


class PaymentRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: PaymentKind
    payment_reference: str | None = None


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    user_id: str
    custom_quote_id: str | None
    package_id: str | None
    booking_reference: str
    status: str
    payment_state: str
    total_amount: Decimal
    currency: str
    deposit_amount: Decimal | None
    travel_date_start: date | None
    travel_date_end: date | None
    participants: int
    special_requests: str | None
    cancellation_reason: str | None


class ContentUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str
    content: str
    section_type: str = "general"
    is_active: bool = True


class SettingUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    setting_value: str
    description: str | None = None


class ApiResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    success: bool = True
    data: dict | None = None
    error: dict | None = None
    trace_id: str | None = None
