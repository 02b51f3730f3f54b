"""SQLModel table definitions for the quotedesk service."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from sqlalchemy import Column, DateTime
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes, also on backends that store them naive.

    Values are normalised to UTC on the way in and tagged as UTC on the way
    out, so SQLite text columns compare in a single timezone.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("Datetime values must have timezone information")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


def _id(prefix: str):
    return lambda: f"{prefix}_{uuid4().hex}"


class Quote(SQLModel, table=True):
    __tablename__ = "custom_quotes"

    id: str = Field(default_factory=_id("quote"), primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    user_id: Optional[str] = Field(default=None, index=True)
    destination: str
    duration: int
    participants: int
    budget_range: Optional[str] = None
    travel_dates_start: Optional[date] = None
    travel_dates_end: Optional[date] = None
    special_requirements: Optional[str] = None
    contact_email: str = Field(index=True)
    contact_phone: Optional[str] = None
    status: str = Field(default="pending", index=True)
    quoted_price: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    quoted_currency: str = Field(default="USD")
    admin_notes: Optional[str] = None


class QuoteToken(SQLModel, table=True):
    __tablename__ = "quote_tokens"

    id: str = Field(default_factory=_id("qtok"), primary_key=True)
    quote_id: str = Field(foreign_key="custom_quotes.id", index=True)
    token: str = Field(unique=True, index=True)
    email: str
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    expires_at: datetime = Field(sa_type=UTCDateTime, index=True)
    used_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    used_by: Optional[str] = None


class UserAccount(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=_id("user"), primary_key=True)
    email: str = Field(unique=True, index=True)
    password_hash: str
    full_name: Optional[str] = None
    roles: list = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    last_login: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)


class TripPackage(SQLModel, table=True):
    __tablename__ = "trip_packages"

    id: str = Field(default_factory=_id("pkg"), primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    title: str
    description: Optional[str] = None
    destination: str = Field(index=True)
    duration: int
    price_usd: Decimal = Field(max_digits=12, decimal_places=2)
    price_eur: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    price_gbp: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    itinerary: list = Field(default_factory=list, sa_column=Column(JSON))
    images: list = Field(default_factory=list, sa_column=Column(JSON))
    includes: list = Field(default_factory=list, sa_column=Column(JSON))
    excludes: list = Field(default_factory=list, sa_column=Column(JSON))
    max_participants: Optional[int] = None
    difficulty_level: Optional[str] = None
    is_active: bool = Field(default=True, index=True)


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"

    id: str = Field(default_factory=_id("booking"), primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    user_id: str = Field(index=True)
    package_id: Optional[str] = Field(default=None, foreign_key="trip_packages.id", index=True)
    custom_quote_id: Optional[str] = Field(default=None, foreign_key="custom_quotes.id", index=True)
    booking_reference: str = Field(unique=True, index=True)
    status: str = Field(default="pending", index=True)
    payment_state: str = Field(default="unpaid")
    total_amount: Decimal = Field(max_digits=12, decimal_places=2)
    currency: str = Field(default="USD")
    deposit_amount: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    payment_reference: Optional[str] = None
    travel_date_start: Optional[date] = None
    travel_date_end: Optional[date] = None
    participants: int
    special_requests: Optional[str] = None
    cancellation_reason: Optional[str] = None


class ContentSection(SQLModel, table=True):
    __tablename__ = "content_sections"

    section_key: str = Field(primary_key=True)
    title: str
    content: str
    section_type: str = Field(index=True)
    is_active: bool = Field(default=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class SiteSetting(SQLModel, table=True):
    __tablename__ = "site_settings"

    setting_key: str = Field(primary_key=True)
    setting_value: str
    description: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
