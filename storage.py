"""
Entity store for users, rides, ride requests, messages and reviews.

Engines depend only on the abstract ``Storage`` contract. Two backends
implement it:

* ``MemStorage`` keeps each collection in an id -> record arena with its own
  counter, starting at 1 and never reused after a delete.
* ``SqlStorage`` persists through an SQLAlchemy ``AsyncSession``.

Both return the pydantic record types from ``schemas`` and signal a missing
record with ``None`` rather than an exception.
"""
import abc
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar

from fastapi import Depends, Request
from pydantic import BaseModel
from sqlalchemy import select, update, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

import models
from database import get_db
from schemas import (
    User, Ride, RideRequest, Message, Review, RideFilters,
    RideStatus, RequestStatus,
)

RecordT = TypeVar("RecordT", bound=BaseModel)


def _newest_first(records: List[RecordT], attr: str) -> List[RecordT]:
    # Ids are monotonic, so they break timestamp ties
    return sorted(records, key=lambda r: (getattr(r, attr), r.id), reverse=True)


class Storage(abc.ABC):
    """Async request/response contract over the five entity collections."""

    # User methods
    @abc.abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]: ...

    @abc.abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abc.abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abc.abstractmethod
    async def create_user(self, values: Dict[str, Any]) -> User: ...

    @abc.abstractmethod
    async def update_user(self, user_id: int, values: Dict[str, Any]) -> Optional[User]: ...

    # Ride methods
    @abc.abstractmethod
    async def get_ride(self, ride_id: int) -> Optional[Ride]: ...

    @abc.abstractmethod
    async def get_rides(self, filters: Optional[RideFilters] = None) -> List[Ride]:
        """Rides matching ``filters``, ordered by date_time descending."""

    @abc.abstractmethod
    async def get_rides_by_user(self, user_id: int) -> List[Ride]: ...

    @abc.abstractmethod
    async def create_ride(self, values: Dict[str, Any]) -> Ride: ...

    @abc.abstractmethod
    async def update_ride(self, ride_id: int, values: Dict[str, Any]) -> Optional[Ride]: ...

    @abc.abstractmethod
    async def delete_ride(self, ride_id: int) -> bool: ...

    @abc.abstractmethod
    async def decrement_available_seats(self, ride_id: int) -> bool:
        """
        Takes one seat off the ride if it has any left.

        Returns:
            bool: True if a seat was taken, False if the ride is missing or full.
        """

    # Ride request methods
    @abc.abstractmethod
    async def get_ride_request(self, request_id: int) -> Optional[RideRequest]: ...

    @abc.abstractmethod
    async def get_ride_requests_by_ride(self, ride_id: int) -> List[RideRequest]: ...

    @abc.abstractmethod
    async def get_ride_requests_by_user(self, user_id: int) -> List[RideRequest]: ...

    @abc.abstractmethod
    async def create_ride_request(self, values: Dict[str, Any]) -> RideRequest: ...

    @abc.abstractmethod
    async def update_ride_request(self, request_id: int, values: Dict[str, Any]) -> Optional[RideRequest]: ...

    # Message methods
    @abc.abstractmethod
    async def get_message(self, message_id: int) -> Optional[Message]: ...

    @abc.abstractmethod
    async def get_messages_by_user(self, user_id: int) -> List[Message]:
        """Messages sent or received by the user, newest first."""

    @abc.abstractmethod
    async def get_conversation(self, user1_id: int, user2_id: int) -> List[Message]:
        """Messages between two users in both directions, oldest first."""

    @abc.abstractmethod
    async def create_message(self, values: Dict[str, Any]) -> Message: ...

    @abc.abstractmethod
    async def mark_message_as_read(self, message_id: int) -> Optional[Message]: ...

    # Review methods
    @abc.abstractmethod
    async def get_review(self, review_id: int) -> Optional[Review]: ...

    @abc.abstractmethod
    async def get_reviews_by_reviewer(self, reviewer_id: int) -> List[Review]: ...

    @abc.abstractmethod
    async def get_reviews_by_reviewee(self, reviewee_id: int) -> List[Review]: ...

    @abc.abstractmethod
    async def create_review(
        self, values: Dict[str, Any], reviewee_values: Optional[Dict[str, Any]] = None,
    ) -> Review:
        """Inserts the review and applies ``reviewee_values`` to its reviewee in one write."""


# ------------------------------------------------------------------------------
# In-memory arena
# ------------------------------------------------------------------------------

class _Collection(Generic[RecordT]):
    """One arena: id -> record plus a counter that only ever grows."""

    def __init__(self, record_cls: Type[RecordT], defaults: Callable[[], Dict[str, Any]]):
        self.record_cls = record_cls
        self.defaults = defaults
        self.records: Dict[int, RecordT] = {}
        self.next_id = 1

    def create(self, values: Dict[str, Any]) -> RecordT:
        record_id = self.next_id
        self.next_id += 1
        record = self.record_cls(**{**self.defaults(), **values, "id": record_id})
        self.records[record_id] = record
        return record

    def get(self, record_id: int) -> Optional[RecordT]:
        return self.records.get(record_id)

    def update(self, record_id: int, values: Dict[str, Any]) -> Optional[RecordT]:
        record = self.records.get(record_id)
        if record is None:
            return None
        # Whole-record swap so readers never see a half-applied update
        updated = self.record_cls(**{**dict(record), **values})
        self.records[record_id] = updated
        return updated

    def delete(self, record_id: int) -> bool:
        return self.records.pop(record_id, None) is not None

    def values(self) -> List[RecordT]:
        return list(self.records.values())


def _ride_matches(ride: Ride, filters: RideFilters) -> bool:
    if filters.ride_type and ride.ride_type != filters.ride_type:
        return False
    if filters.date_from is not None and ride.date_time < filters.date_from:
        return False
    if filters.date_to is not None and ride.date_time > filters.date_to:
        return False
    if filters.pickup_location and filters.pickup_location.lower() not in ride.pickup_location.lower():
        return False
    if filters.destination and filters.destination.lower() not in ride.destination.lower():
        return False
    # Zero seats means "no seat filter"
    if filters.available_seats and ride.available_seats < filters.available_seats:
        return False
    if filters.status and ride.status != filters.status:
        return False
    return True


class MemStorage(Storage):
    def __init__(self):
        self.users = _Collection(User, lambda: {"avg_rating": 0, "total_reviews": 0})
        self.rides = _Collection(Ride, lambda: {"status": RideStatus.ACTIVE, "created_at": models.utcnow()})
        self.ride_requests = _Collection(
            RideRequest, lambda: {"status": RequestStatus.PENDING, "created_at": models.utcnow()}
        )
        self.messages = _Collection(Message, lambda: {"is_read": False, "created_at": models.utcnow()})
        self.reviews = _Collection(Review, lambda: {"created_at": models.utcnow()})

    # User methods
    async def get_user(self, user_id):
        return self.users.get(user_id)

    async def get_user_by_username(self, username):
        return next(
            (u for u in self.users.values() if u.username.lower() == username.lower()), None
        )

    async def get_user_by_email(self, email):
        return next(
            (u for u in self.users.values() if u.email.lower() == email.lower()), None
        )

    async def create_user(self, values):
        return self.users.create(values)

    async def update_user(self, user_id, values):
        return self.users.update(user_id, values)

    # Ride methods
    async def get_ride(self, ride_id):
        return self.rides.get(ride_id)

    async def get_rides(self, filters=None):
        rides = self.rides.values()
        if filters is not None:
            rides = [r for r in rides if _ride_matches(r, filters)]
        return _newest_first(rides, "date_time")

    async def get_rides_by_user(self, user_id):
        return _newest_first([r for r in self.rides.values() if r.user_id == user_id], "date_time")

    async def create_ride(self, values):
        return self.rides.create(values)

    async def update_ride(self, ride_id, values):
        return self.rides.update(ride_id, values)

    async def delete_ride(self, ride_id):
        return self.rides.delete(ride_id)

    async def decrement_available_seats(self, ride_id):
        ride = self.rides.get(ride_id)
        if ride is None or ride.available_seats <= 0:
            return False
        self.rides.update(ride_id, {"available_seats": ride.available_seats - 1})
        return True

    # Ride request methods
    async def get_ride_request(self, request_id):
        return self.ride_requests.get(request_id)

    async def get_ride_requests_by_ride(self, ride_id):
        return _newest_first(
            [r for r in self.ride_requests.values() if r.ride_id == ride_id], "created_at"
        )

    async def get_ride_requests_by_user(self, user_id):
        return _newest_first(
            [r for r in self.ride_requests.values() if r.user_id == user_id], "created_at"
        )

    async def create_ride_request(self, values):
        return self.ride_requests.create(values)

    async def update_ride_request(self, request_id, values):
        return self.ride_requests.update(request_id, values)

    # Message methods
    async def get_message(self, message_id):
        return self.messages.get(message_id)

    async def get_messages_by_user(self, user_id):
        return _newest_first(
            [m for m in self.messages.values() if user_id in (m.sender_id, m.receiver_id)],
            "created_at",
        )

    async def get_conversation(self, user1_id, user2_id):
        pair = {(user1_id, user2_id), (user2_id, user1_id)}
        thread = [m for m in self.messages.values() if (m.sender_id, m.receiver_id) in pair]
        return sorted(thread, key=lambda m: (m.created_at, m.id))

    async def create_message(self, values):
        return self.messages.create(values)

    async def mark_message_as_read(self, message_id):
        return self.messages.update(message_id, {"is_read": True})

    # Review methods
    async def get_review(self, review_id):
        return self.reviews.get(review_id)

    async def get_reviews_by_reviewer(self, reviewer_id):
        return _newest_first(
            [r for r in self.reviews.values() if r.reviewer_id == reviewer_id], "created_at"
        )

    async def get_reviews_by_reviewee(self, reviewee_id):
        return _newest_first(
            [r for r in self.reviews.values() if r.reviewee_id == reviewee_id], "created_at"
        )

    async def create_review(self, values, reviewee_values=None):
        review = self.reviews.create(values)
        if reviewee_values:
            self.users.update(review.reviewee_id, reviewee_values)
        return review


# ------------------------------------------------------------------------------
# SQLAlchemy backend
# ------------------------------------------------------------------------------

def _column_values(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in values.items()}


class SqlStorage(Storage):
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def _get(self, model, schema, record_id):
        obj = await self.db.get(model, record_id, populate_existing=True)
        return schema.model_validate(obj) if obj is not None else None

    async def _all(self, stmt, schema):
        result = await self.db.execute(stmt.execution_options(populate_existing=True))
        return [schema.model_validate(obj) for obj in result.scalars().all()]

    async def _first(self, stmt, schema):
        records = await self._all(stmt.limit(1), schema)
        return records[0] if records else None

    async def _create(self, model, schema, values):
        obj = model(**_column_values(values))
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return schema.model_validate(obj)

    async def _update(self, model, schema, record_id, values):
        obj = await self.db.get(model, record_id)
        if obj is None:
            return None
        for key, value in _column_values(values).items():
            setattr(obj, key, value)
        await self.db.commit()
        await self.db.refresh(obj)
        return schema.model_validate(obj)

    # User methods
    async def get_user(self, user_id):
        return await self._get(models.User, User, user_id)

    async def get_user_by_username(self, username):
        stmt = select(models.User).where(func.lower(models.User.username) == username.lower())
        return await self._first(stmt, User)

    async def get_user_by_email(self, email):
        stmt = select(models.User).where(func.lower(models.User.email) == email.lower())
        return await self._first(stmt, User)

    async def create_user(self, values):
        return await self._create(models.User, User, values)

    async def update_user(self, user_id, values):
        return await self._update(models.User, User, user_id, values)

    # Ride methods
    async def get_ride(self, ride_id):
        return await self._get(models.Ride, Ride, ride_id)

    async def get_rides(self, filters=None):
        stmt = select(models.Ride)
        if filters is not None:
            if filters.ride_type:
                stmt = stmt.where(models.Ride.ride_type == filters.ride_type.value)
            if filters.date_from is not None:
                stmt = stmt.where(models.Ride.date_time >= filters.date_from)
            if filters.date_to is not None:
                stmt = stmt.where(models.Ride.date_time <= filters.date_to)
            if filters.pickup_location:
                stmt = stmt.where(models.Ride.pickup_location.icontains(filters.pickup_location, autoescape=True))
            if filters.destination:
                stmt = stmt.where(models.Ride.destination.icontains(filters.destination, autoescape=True))
            if filters.available_seats:
                stmt = stmt.where(models.Ride.available_seats >= filters.available_seats)
            if filters.status:
                stmt = stmt.where(models.Ride.status == filters.status.value)
        stmt = stmt.order_by(models.Ride.date_time.desc(), models.Ride.id.desc())
        return await self._all(stmt, Ride)

    async def get_rides_by_user(self, user_id):
        stmt = (
            select(models.Ride)
            .where(models.Ride.user_id == user_id)
            .order_by(models.Ride.date_time.desc(), models.Ride.id.desc())
        )
        return await self._all(stmt, Ride)

    async def create_ride(self, values):
        return await self._create(models.Ride, Ride, values)

    async def update_ride(self, ride_id, values):
        return await self._update(models.Ride, Ride, ride_id, values)

    async def delete_ride(self, ride_id):
        obj = await self.db.get(models.Ride, ride_id)
        if obj is None:
            return False
        await self.db.delete(obj)
        await self.db.commit()
        return True

    async def decrement_available_seats(self, ride_id):
        # Single conditional UPDATE: the seat check and the write cannot interleave
        stmt = update(models.Ride).where(
            models.Ride.id == ride_id,
            models.Ride.available_seats > 0,
        ).values(
            available_seats=models.Ride.available_seats - 1
        ).execution_options(synchronize_session=False)

        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount > 0

    # Ride request methods
    async def get_ride_request(self, request_id):
        return await self._get(models.RideRequest, RideRequest, request_id)

    async def get_ride_requests_by_ride(self, ride_id):
        stmt = (
            select(models.RideRequest)
            .where(models.RideRequest.ride_id == ride_id)
            .order_by(models.RideRequest.created_at.desc(), models.RideRequest.id.desc())
        )
        return await self._all(stmt, RideRequest)

    async def get_ride_requests_by_user(self, user_id):
        stmt = (
            select(models.RideRequest)
            .where(models.RideRequest.user_id == user_id)
            .order_by(models.RideRequest.created_at.desc(), models.RideRequest.id.desc())
        )
        return await self._all(stmt, RideRequest)

    async def create_ride_request(self, values):
        return await self._create(models.RideRequest, RideRequest, values)

    async def update_ride_request(self, request_id, values):
        return await self._update(models.RideRequest, RideRequest, request_id, values)

    # Message methods
    async def get_message(self, message_id):
        return await self._get(models.Message, Message, message_id)

    async def get_messages_by_user(self, user_id):
        stmt = (
            select(models.Message)
            .where(or_(models.Message.sender_id == user_id, models.Message.receiver_id == user_id))
            .order_by(models.Message.created_at.desc(), models.Message.id.desc())
        )
        return await self._all(stmt, Message)

    async def get_conversation(self, user1_id, user2_id):
        stmt = (
            select(models.Message)
            .where(or_(
                and_(models.Message.sender_id == user1_id, models.Message.receiver_id == user2_id),
                and_(models.Message.sender_id == user2_id, models.Message.receiver_id == user1_id),
            ))
            .order_by(models.Message.created_at.asc(), models.Message.id.asc())
        )
        return await self._all(stmt, Message)

    async def create_message(self, values):
        return await self._create(models.Message, Message, values)

    async def mark_message_as_read(self, message_id):
        return await self._update(models.Message, Message, message_id, {"is_read": True})

    # Review methods
    async def get_review(self, review_id):
        return await self._get(models.Review, Review, review_id)

    async def get_reviews_by_reviewer(self, reviewer_id):
        stmt = (
            select(models.Review)
            .where(models.Review.reviewer_id == reviewer_id)
            .order_by(models.Review.created_at.desc(), models.Review.id.desc())
        )
        return await self._all(stmt, Review)

    async def get_reviews_by_reviewee(self, reviewee_id):
        stmt = (
            select(models.Review)
            .where(models.Review.reviewee_id == reviewee_id)
            .order_by(models.Review.created_at.desc(), models.Review.id.desc())
        )
        return await self._all(stmt, Review)

    async def create_review(self, values, reviewee_values=None):
        obj = models.Review(**_column_values(values))
        self.db.add(obj)
        if reviewee_values:
            reviewee = await self.db.get(models.User, obj.reviewee_id)
            if reviewee is not None:
                for key, value in _column_values(reviewee_values).items():
                    setattr(reviewee, key, value)
        await self.db.commit()
        await self.db.refresh(obj)
        return Review.model_validate(obj)


async def get_storage(request: Request, db: AsyncSession = Depends(get_db)):
    """
    FastAPI dependency yielding the configured store.
    A store on ``app.state.storage`` (the in-memory backend) wins; otherwise
    the request's session from ``get_db`` backs a SQL store.
    """
    storage = getattr(request.app.state, "storage", None)
    if storage is not None:
        yield storage
        return
    yield SqlStorage(db)
