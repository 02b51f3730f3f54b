"""Catalogue of ready-made trip packages."""

from __future__ import annotations

import logging

from sqlmodel import select

from ..config import Settings
from ..errors import Conflict, NotFound, ValidationError
from ..models import Booking, TripPackage, utcnow
from ..schemas import PackageCreate, PackageUpdate
from ..security import Principal, require_operator

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = frozenset(
    {"title", "destination", "duration", "price_usd", "itinerary", "images", "includes", "excludes", "is_active"}
)


class PackageStore:
    """Operators curate packages; the public only ever sees active ones."""

    def __init__(self, session_factory, settings: Settings):
        self._session_factory = session_factory
        self._settings = settings

    async def list_active(self, destination: str | None = None) -> list[TripPackage]:
        stmt = select(TripPackage).where(TripPackage.is_active.is_(True))
        if destination:
            stmt = stmt.where(TripPackage.destination == destination)
        stmt = stmt.order_by(TripPackage.created_at.desc())
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_active(self, package_id: str) -> TripPackage:
        async with self._session_factory() as session:
            package = await session.get(TripPackage, package_id)
        if package is None or not package.is_active:
            raise NotFound("Package not found")
        return package

    async def list_all(self, principal: Principal) -> list[TripPackage]:
        require_operator(principal, self._settings)
        stmt = select(TripPackage).order_by(TripPackage.created_at.desc())
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get(self, package_id: str, principal: Principal) -> TripPackage:
        require_operator(principal, self._settings)
        async with self._session_factory() as session:
            package = await session.get(TripPackage, package_id)
        if package is None:
            raise NotFound("Package not found")
        return package

    async def create(self, payload: PackageCreate, principal: Principal) -> TripPackage:
        require_operator(principal, self._settings)
        package = TripPackage(**payload.model_dump())
        async with self._session_factory() as session:
            session.add(package)
            await session.commit()
            await session.refresh(package)
        logger.info("Package %s created for %s", package.id, package.destination)
        return package

    async def update(self, package_id: str, payload: PackageUpdate, principal: Principal) -> TripPackage:
        require_operator(principal, self._settings)
        changes = payload.model_dump(exclude_unset=True)
        cleared = sorted(field for field in REQUIRED_FIELDS if field in changes and changes[field] is None)
        if cleared:
            raise ValidationError(
                "Package fields cannot be cleared", details={field: "may not be null" for field in cleared}
            )

        async with self._session_factory() as session:
            package = await session.get(TripPackage, package_id)
            if package is None:
                raise NotFound("Package not found")
            for field, value in changes.items():
                setattr(package, field, value)
            package.updated_at = utcnow()
            session.add(package)
            await session.commit()
            await session.refresh(package)
        logger.info("Package %s updated (%s)", package_id, ", ".join(sorted(changes)) or "no changes")
        return package

    async def delete(self, package_id: str, principal: Principal) -> None:
        """Remove a package nobody has booked; booked packages can only be deactivated."""

        require_operator(principal, self._settings)
        async with self._session_factory() as session:
            package = await session.get(TripPackage, package_id)
            if package is None:
                raise NotFound("Package not found")
            booked = await session.execute(select(Booking.id).where(Booking.package_id == package_id).limit(1))
            if booked.first() is not None:
                raise Conflict("Package has bookings; deactivate it instead")
            await session.delete(package)
            await session.commit()
        logger.info("Package %s deleted", package_id)
