"""Package catalogue curation and public visibility."""

from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from quotedesk.errors import Conflict, NotFound, Unauthorized, ValidationError
from quotedesk.models import Booking
from quotedesk.schemas import PackageCreate, PackageUpdate
from quotedesk.services.packages import PackageStore
from support import make_database, make_settings, operator, outsider


def _run(tmp_path, scenario):
    async def _inner():
        engine, factory = await make_database(tmp_path / "packages.db")
        try:
            return await scenario(PackageStore(factory, make_settings()), factory)
        finally:
            await engine.dispose()

    return asyncio.run(_inner())


def _galapagos(**overrides) -> PackageCreate:
    values = {
        "title": "Galapagos Island Hopper",
        "destination": "Ecuador",
        "duration": 6,
        "price_usd": Decimal("3900"),
        "itinerary": [{"day": 1, "title": "Arrive in Baltra", "activities": ["Transfer to Santa Cruz"]}],
        "includes": ["Naturalist guide"],
        "difficulty_level": "moderate",
    }
    values.update(overrides)
    return PackageCreate(**values)


def test_curation_is_operator_only(tmp_path):
    async def scenario(packages, factory):
        with pytest.raises(Unauthorized):
            await packages.create(_galapagos(), outsider())
        package = await packages.create(_galapagos(), operator())
        with pytest.raises(Unauthorized):
            await packages.update(package.id, PackageUpdate(is_active=False), outsider())
        with pytest.raises(Unauthorized):
            await packages.list_all(outsider())
        with pytest.raises(Unauthorized):
            await packages.delete(package.id, outsider())
        return package

    package = _run(tmp_path, scenario)
    assert package.price_usd == Decimal("3900.00")
    assert package.itinerary[0]["title"] == "Arrive in Baltra"
    assert package.is_active is True


def test_inactive_packages_are_hidden_from_the_public(tmp_path):
    async def scenario(packages, factory):
        visible = await packages.create(_galapagos(), operator())
        hidden = await packages.create(_galapagos(title="Winter Antarctica", destination="Antarctica"), operator())
        await packages.update(hidden.id, PackageUpdate(is_active=False), operator())
        with pytest.raises(NotFound):
            await packages.get_active(hidden.id)
        return (
            visible,
            hidden,
            await packages.list_active(),
            await packages.list_active("Antarctica"),
            await packages.list_all(operator()),
            await packages.get(hidden.id, operator()),
        )

    visible, hidden, public, antarctica, everything, detail = _run(tmp_path, scenario)
    assert [p.id for p in public] == [visible.id]
    assert antarctica == []
    assert [p.id for p in everything] == [hidden.id, visible.id]
    assert detail.is_active is False


def test_partial_update_keeps_other_fields(tmp_path):
    async def scenario(packages, factory):
        package = await packages.create(_galapagos(), operator())
        with pytest.raises(ValidationError):
            await packages.update(package.id, PackageUpdate(title=None), operator())
        with pytest.raises(NotFound):
            await packages.update("pkg_missing", PackageUpdate(duration=7), operator())
        return await packages.update(package.id, PackageUpdate(price_usd=Decimal("4100"), duration=7), operator())

    updated = _run(tmp_path, scenario)
    assert updated.price_usd == Decimal("4100.00")
    assert updated.duration == 7
    assert updated.title == "Galapagos Island Hopper"
    assert updated.includes == ["Naturalist guide"]


def test_booked_packages_cannot_be_deleted(tmp_path):
    async def scenario(packages, factory):
        spare = await packages.create(_galapagos(title="Spare"), operator())
        booked = await packages.create(_galapagos(), operator())
        async with factory() as session:
            session.add(
                Booking(
                    user_id="user_customer",
                    package_id=booked.id,
                    booking_reference="MLT-0000BEEF",
                    total_amount=Decimal("3900"),
                    participants=1,
                )
            )
            await session.commit()
        with pytest.raises(Conflict):
            await packages.delete(booked.id, operator())
        await packages.delete(spare.id, operator())
        with pytest.raises(NotFound):
            await packages.get(spare.id, operator())

    _run(tmp_path, scenario)


def test_package_schema_rejects_nonsense():
    with pytest.raises(ValueError):
        _galapagos(price_usd=Decimal("0"))
    with pytest.raises(ValueError):
        _galapagos(difficulty_level="extreme")
