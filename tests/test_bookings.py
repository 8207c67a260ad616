"""
Booking record tests: one target per booking, access rules, mocked payments
"""

import re
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from travelmate.core.bookings import BookingService, generate_transaction_id, parse_booking_type
from travelmate.core.errors import AuthorizationError, NotFoundError, ValidationError
from travelmate.db.models import Booking, BookingStatus, BookingType, PaymentStatus


def test_transaction_id_format():
    for _ in range(20):
        assert re.fullmatch(r"TXN-[A-Z0-9]{9}", generate_transaction_id())


def test_booking_type_is_case_insensitive():
    assert parse_booking_type("stay") is BookingType.STAY
    with pytest.raises(ValidationError):
        parse_booking_type("Cruise")


def test_check_target_requires_exactly_one_reference():
    booking = Booking(user_id=uuid4(), booking_type=BookingType.TRIP, total_price=Decimal("10"))
    with pytest.raises(ValueError):
        booking.check_target()

    booking.trip_id = uuid4()
    booking.check_target()

    booking.stay_id = uuid4()
    with pytest.raises(ValueError):
        booking.check_target()


def test_check_target_rejects_mismatched_kind():
    booking = Booking(user_id=uuid4(), booking_type=BookingType.RESTAURANT, total_price=Decimal("10"))
    booking.stay_id = uuid4()
    with pytest.raises(ValueError):
        booking.check_target()


def test_set_target_clears_previous_reference():
    booking = Booking(user_id=uuid4(), booking_type=BookingType.TRIP, total_price=Decimal("10"))
    booking.set_target(BookingType.TRIP, uuid4())
    stay_id = uuid4()
    booking.set_target(BookingType.STAY, stay_id)

    assert booking.trip_id is None
    assert booking.booking_type is BookingType.STAY
    assert booking.target_id == stay_id
    booking.check_target()


@pytest.mark.asyncio
async def test_create_booking_points_at_one_item(session, trip, traveler):
    booking = await BookingService(session).create_booking(
        traveler, "Trip", trip.id, Decimal("98.00"),
        details={"trip_details": {"travelers": 2}},
    )

    assert booking.status is BookingStatus.PENDING
    assert booking.trip_id == trip.id
    assert booking.target_id == trip.id
    assert [booking.restaurant_id, booking.rental_id, booking.activity_id, booking.stay_id] == [None] * 4
    assert booking.user_id == traveler.id


@pytest.mark.asyncio
async def test_create_booking_requires_existing_target(session, traveler):
    with pytest.raises(NotFoundError):
        await BookingService(session).create_booking(traveler, "Stay", uuid4(), Decimal("10"))


@pytest.mark.asyncio
async def test_database_rejects_two_references(session, trip, stay, traveler):
    booking = Booking(
        user_id=traveler.id,
        booking_type=BookingType.TRIP,
        trip_id=trip.id,
        stay_id=stay.id,
        total_price=Decimal("10"),
    )
    session.add(booking)
    with pytest.raises(IntegrityError):
        await session.commit()
    await session.rollback()


@pytest.mark.asyncio
async def test_only_admin_books_for_others(session, trip, traveler, other_traveler, admin):
    service = BookingService(session)
    with pytest.raises(AuthorizationError):
        await service.create_booking(traveler, "Trip", trip.id, Decimal("10"), user_id=other_traveler.id)

    booking = await service.create_booking(admin, "Trip", trip.id, Decimal("10"), user_id=other_traveler.id)
    assert booking.user_id == other_traveler.id


@pytest.mark.asyncio
async def test_access_is_owner_or_admin(session, trip, traveler, other_traveler, admin):
    service = BookingService(session)
    booking = await service.create_booking(traveler, "Trip", trip.id, Decimal("10"))

    assert (await service.get_booking(admin, booking.id)).id == booking.id
    with pytest.raises(AuthorizationError):
        await service.get_booking(other_traveler, booking.id)
    with pytest.raises(AuthorizationError):
        await service.list_user_bookings(other_traveler, traveler.id)
    assert len(await service.list_user_bookings(traveler, traveler.id)) == 1


@pytest.mark.asyncio
async def test_retarget_replaces_reference_and_details(session, trip, stay, traveler):
    service = BookingService(session)
    booking = await service.create_booking(
        traveler, "Trip", trip.id, Decimal("10"), details={"trip_details": {"travelers": 2}},
    )

    updated = await service.update_booking(
        traveler, booking.id,
        {"details": {"stay_details": {"guests": 2}}},
        target=("Stay", stay.id),
    )

    assert updated.booking_type is BookingType.STAY
    assert updated.stay_id == stay.id
    assert updated.trip_id is None
    assert updated.details == {"stay_details": {"guests": 2}}


@pytest.mark.asyncio
async def test_update_writes_any_status(session, trip, traveler):
    service = BookingService(session)
    booking = await service.create_booking(traveler, "Trip", trip.id, Decimal("10"))

    updated = await service.update_booking(traveler, booking.id, {"status": BookingStatus.REFUNDED})
    assert updated.status is BookingStatus.REFUNDED


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["status", "total_price", "details", "payment_details"])
async def test_update_rejects_null_for_required_fields(session, trip, traveler, field):
    service = BookingService(session)
    booking = await service.create_booking(traveler, "Trip", trip.id, Decimal("10"))

    with pytest.raises(ValidationError) as excinfo:
        await service.update_booking(traveler, booking.id, {field: None})
    assert excinfo.value.extra == {"fields": [field]}

    unchanged = await service.get_booking(traveler, booking.id)
    assert unchanged.status is BookingStatus.PENDING
    assert unchanged.total_price == Decimal("10")


@pytest.mark.asyncio
async def test_payment_confirms_and_stamps_transaction(session, trip, traveler):
    service = BookingService(session)
    booking = await service.create_booking(traveler, "Trip", trip.id, Decimal("10"))

    paid, transaction_id = await service.process_payment(traveler, booking.id, "PayPal")

    assert paid.status is BookingStatus.CONFIRMED
    assert transaction_id.startswith("TXN-")
    assert paid.payment_details == {
        "payment_method": "PayPal",
        "transaction_id": transaction_id,
        "payment_status": PaymentStatus.PAID.value,
    }


@pytest.mark.asyncio
async def test_payment_rejects_unknown_method(session, trip, traveler):
    service = BookingService(session)
    booking = await service.create_booking(traveler, "Trip", trip.id, Decimal("10"))
    with pytest.raises(ValidationError):
        await service.process_payment(traveler, booking.id, "Cash")


@pytest.mark.asyncio
async def test_delete_booking(session, trip, traveler):
    service = BookingService(session)
    booking = await service.create_booking(traveler, "Trip", trip.id, Decimal("10"))

    await service.delete_booking(booking.id)
    with pytest.raises(NotFoundError):
        await service.delete_booking(booking.id)
