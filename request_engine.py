import logging
from typing import List, Optional

from storage import Storage
from schemas import (
    RideRequest, RideRequestCreate, RideRequestWithUser, RideRequestWithRide, RequestStatus,
)
from exceptions import NotFoundError, AuthorizationError, ValidationError
from auth import require_authenticated
from ride_engine import RideEngine
from user_engine import UserEngine

logger = logging.getLogger(__name__)


class RideRequestEngine:
    """
    State machine for seat requests: pending -> accepted | rejected.

    Only the ride's owner decides, a user can never request their own ride,
    and a (ride, user) pair gets exactly one request ever.
    """

    def __init__(self, storage: Storage):
        self.storage = storage
        self.rides = RideEngine(storage)
        self.users = UserEngine(storage)

    async def create_request(self, requester_id: Optional[int], data: RideRequestCreate) -> RideRequest:
        requester_id = require_authenticated(requester_id)

        ride = await self.storage.get_ride(data.ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")
        if ride.user_id == requester_id:
            raise ValidationError("Cannot request your own ride")

        # Any earlier request blocks a new one, even a rejected one
        existing = await self.storage.get_ride_requests_by_ride(data.ride_id)
        if any(r.user_id == requester_id for r in existing):
            raise ValidationError("You already requested this ride")

        request = await self.storage.create_ride_request({
            "ride_id": data.ride_id,
            "user_id": requester_id,
            "message": data.message,
            "status": RequestStatus.PENDING,
        })
        logger.info("User %s requested a seat on ride %s (request %s)", requester_id, ride.id, request.id)
        return request

    async def decide_request(
        self, request_id: int, caller_id: Optional[int], status: RequestStatus
    ) -> RideRequest:
        """
        Accepts or rejects a request on behalf of the ride owner.

        The current status is not checked, so deciding an already-decided
        request again is allowed and another acceptance takes another seat.
        """
        caller_id = require_authenticated(caller_id)
        if status not in (RequestStatus.ACCEPTED, RequestStatus.REJECTED):
            raise ValidationError("Status must be accepted or rejected")

        request = await self.storage.get_ride_request(request_id)
        if request is None:
            raise NotFoundError("Ride request not found")

        ride = await self.storage.get_ride(request.ride_id)
        if ride is None:
            logger.warning("Request %s points at deleted ride %s", request_id, request.ride_id)
            raise NotFoundError("Ride not found")
        if ride.user_id != caller_id:
            raise AuthorizationError("Not authorized to update this request")

        updated = await self.storage.update_ride_request(request_id, {"status": status})
        if updated is None:
            raise NotFoundError("Ride request not found")

        if status == RequestStatus.ACCEPTED:
            await self.rides.take_seat(ride.id)

        logger.info("Request %s on ride %s marked %s", request_id, ride.id, status.value)
        return updated

    async def list_by_ride(self, ride_id: int, caller_id: Optional[int]) -> List[RideRequestWithUser]:
        """Owner view: every request on the ride with the requester's card."""
        caller_id = require_authenticated(caller_id)
        ride = await self.storage.get_ride(ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")
        if ride.user_id != caller_id:
            raise AuthorizationError("Not authorized to view these requests")

        requests = await self.storage.get_ride_requests_by_ride(ride_id)
        requesters = await self.users.summaries(r.user_id for r in requests)
        return [RideRequestWithUser(**r.model_dump(), user=requesters[r.user_id]) for r in requests]

    async def list_by_user(self, user_id: Optional[int]) -> List[RideRequestWithRide]:
        """Self view: the caller's requests, each with its ride or None once deleted."""
        user_id = require_authenticated(user_id)
        requests = await self.storage.get_ride_requests_by_user(user_id)
        return [
            RideRequestWithRide(**r.model_dump(), ride=await self.storage.get_ride(r.ride_id))
            for r in requests
        ]
