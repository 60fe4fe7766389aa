import pytest
from datetime import datetime
from fastapi import FastAPI, Request

from conftest import make_user, ride_fields
from schemas import RideFilters, RideStatus
from storage import MemStorage, SqlStorage, get_storage

@pytest.mark.asyncio
async def test_ids_start_at_one_and_are_never_reused(storage):
    owner = await make_user(storage, "alice")
    first = await storage.create_ride(ride_fields(user_id=owner.id))
    second = await storage.create_ride(ride_fields(user_id=owner.id))
    assert (first.id, second.id) == (1, 2)

    assert await storage.delete_ride(second.id) is True
    third = await storage.create_ride(ride_fields(user_id=owner.id))
    assert third.id == 3

@pytest.mark.asyncio
async def test_missing_records_are_signalled_with_none(storage):
    assert await storage.get_ride(42) is None
    assert await storage.update_ride(42, {"price": 100}) is None
    assert await storage.delete_ride(42) is False
    assert await storage.update_ride_request(7, {"status": "accepted"}) is None
    assert await storage.mark_message_as_read(9) is None

@pytest.mark.asyncio
async def test_new_records_get_defaults(storage):
    user = await make_user(storage, "alice")
    assert (user.avg_rating, user.total_reviews) == (0, 0)

    ride = await storage.create_ride(ride_fields(user_id=user.id))
    assert ride.status == RideStatus.ACTIVE
    assert ride.created_at is not None

    other = await make_user(storage, "bob")
    message = await storage.create_message({"sender_id": user.id, "receiver_id": other.id, "content": "hi"})
    assert message.is_read is False

@pytest.mark.asyncio
async def test_user_lookup_is_case_insensitive(storage):
    await make_user(storage, "Alice")
    assert (await storage.get_user_by_username("aLiCe")).username == "Alice"
    assert (await storage.get_user_by_email("ALICE@CAMPUS.EDU")).username == "Alice"
    assert await storage.get_user_by_username("bob") is None

@pytest.mark.asyncio
async def test_ride_filters_and_ordering(storage):
    owner = await make_user(storage, "alice")
    early = await storage.create_ride(ride_fields(
        user_id=owner.id, date_time=datetime(2026, 11, 1, 8), pickup_location="North Campus",
    ))
    late = await storage.create_ride(ride_fields(
        user_id=owner.id, date_time=datetime(2026, 11, 3, 8), destination="Airport Terminal 2",
    ))
    full = await storage.create_ride(ride_fields(
        user_id=owner.id, date_time=datetime(2026, 11, 2, 8), available_seats=0, ride_type="request",
    ))

    rides = await storage.get_rides()
    assert [r.id for r in rides] == [late.id, full.id, early.id]

    with_seats = await storage.get_rides(RideFilters(available_seats=1))
    assert full.id not in [r.id for r in with_seats]

    # Zero is treated as no seat filter
    assert len(await storage.get_rides(RideFilters(available_seats=0))) == 3

    by_destination = await storage.get_rides(RideFilters(destination="airport"))
    assert [r.id for r in by_destination] == [late.id]

    by_pickup = await storage.get_rides(RideFilters(pickup_location="NORTH"))
    assert early.id in [r.id for r in by_pickup]

    in_window = await storage.get_rides(RideFilters(
        date_from=datetime(2026, 11, 1, 8), date_to=datetime(2026, 11, 2, 8),
    ))
    assert [r.id for r in in_window] == [full.id, early.id]

    requests_only = await storage.get_rides(RideFilters(ride_type="request"))
    assert [r.id for r in requests_only] == [full.id]

    await storage.update_ride(early.id, {"status": "cancelled"})
    cancelled = await storage.get_rides(RideFilters(status="cancelled"))
    assert [r.id for r in cancelled] == [early.id]

@pytest.mark.asyncio
async def test_seat_decrement_stops_at_zero(storage):
    owner = await make_user(storage, "alice")
    ride = await storage.create_ride(ride_fields(user_id=owner.id, available_seats=1))

    assert await storage.decrement_available_seats(ride.id) is True
    assert await storage.decrement_available_seats(ride.id) is False
    assert (await storage.get_ride(ride.id)).available_seats == 0
    assert await storage.decrement_available_seats(999) is False

@pytest.mark.asyncio
async def test_message_queries(storage):
    alice = await make_user(storage, "alice")
    bob = await make_user(storage, "bob")
    carol = await make_user(storage, "carol")

    m1 = await storage.create_message({"sender_id": alice.id, "receiver_id": bob.id, "content": "one"})
    m2 = await storage.create_message({"sender_id": bob.id, "receiver_id": alice.id, "content": "two"})
    m3 = await storage.create_message({"sender_id": carol.id, "receiver_id": bob.id, "content": "three"})

    thread = await storage.get_conversation(bob.id, alice.id)
    assert [m.id for m in thread] == [m1.id, m2.id]

    inbox = await storage.get_messages_by_user(bob.id)
    assert [m.id for m in inbox] == [m3.id, m2.id, m1.id]

    read = await storage.mark_message_as_read(m1.id)
    assert read.is_read is True
    assert (await storage.get_message(m1.id)).is_read is True

@pytest.mark.asyncio
async def test_review_lookup_and_reviewee_update_in_one_write(storage):
    driver = await make_user(storage, "alice")
    rider = await make_user(storage, "bob")
    ride = await storage.create_ride(ride_fields(user_id=driver.id))

    review = await storage.create_review(
        {"ride_id": ride.id, "reviewer_id": rider.id, "reviewee_id": driver.id, "rating": 4, "comment": "On time"},
        reviewee_values={"avg_rating": 4, "total_reviews": 1},
    )
    fetched = await storage.get_review(review.id)
    assert fetched == review
    assert (fetched.rating, fetched.comment) == (4, "On time")
    assert await storage.get_review(review.id + 1) is None

    driver = await storage.get_user(driver.id)
    assert (driver.avg_rating, driver.total_reviews) == (4, 1)
    rider = await storage.get_user(rider.id)
    assert (rider.avg_rating, rider.total_reviews) == (0, 0)

    # Without reviewee values only the review is written
    await storage.create_review({"ride_id": ride.id, "reviewer_id": driver.id, "reviewee_id": rider.id, "rating": 5})
    rider = await storage.get_user(rider.id)
    assert (rider.avg_rating, rider.total_reviews) == (0, 0)
    assert [r.rating for r in await storage.get_reviews_by_reviewee(rider.id)] == [5]

@pytest.mark.asyncio
async def test_get_storage_prefers_app_store_then_request_session(test_db):
    app = FastAPI()
    request = Request({"type": "http", "app": app})

    sql = await get_storage(request, db=test_db).__anext__()
    assert isinstance(sql, SqlStorage)
    assert sql.db is test_db

    app.state.storage = MemStorage()
    assert await get_storage(request, db=test_db).__anext__() is app.state.storage
