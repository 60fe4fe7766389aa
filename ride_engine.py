import logging
from typing import List, Optional

from storage import Storage
from schemas import Ride, RideCreate, RideUpdate, RideFilters, RideWithUser, RideStatus
from exceptions import NotFoundError, AuthorizationError
from auth import require_authenticated
from user_engine import UserEngine

logger = logging.getLogger(__name__)

# Fields a partial update may clear by sending null
NULLABLE_FIELDS = {"notes"}


class RideEngine:
    """
    Owns ride creation, browsing and owner-only edits, plus the seat
    inventory side effect triggered when a ride request is accepted.
    """

    def __init__(self, storage: Storage):
        self.storage = storage
        self.users = UserEngine(storage)

    async def create_ride(self, owner_id: Optional[int], data: RideCreate) -> Ride:
        """
        Posts a new ride for the authenticated owner. The ride always starts
        active; seats and price are taken verbatim from the validated input.
        """
        owner_id = require_authenticated(owner_id)
        ride = await self.storage.create_ride({
            **data.model_dump(),
            "user_id": owner_id,
            "status": RideStatus.ACTIVE,
        })
        logger.info("Ride %s created by user %s (%s seats)", ride.id, owner_id, ride.available_seats)
        return ride

    async def list_rides(self, filters: Optional[RideFilters] = None) -> List[RideWithUser]:
        rides = await self.storage.get_rides(filters)
        owners = await self.users.summaries(r.user_id for r in rides)
        return [RideWithUser(**ride.model_dump(), user=owners[ride.user_id]) for ride in rides]

    async def get_ride(self, ride_id: int) -> RideWithUser:
        ride = await self.storage.get_ride(ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")
        return RideWithUser(**ride.model_dump(), user=await self.users.summary(ride.user_id))

    async def list_my_rides(self, caller_id: Optional[int]) -> List[Ride]:
        """Every ride the caller owns, whatever its status or seat count."""
        caller_id = require_authenticated(caller_id)
        return await self.storage.get_rides_by_user(caller_id)

    async def _get_owned_ride(self, ride_id: int, caller_id: Optional[int], action: str) -> Ride:
        caller_id = require_authenticated(caller_id)
        ride = await self.storage.get_ride(ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")
        if ride.user_id != caller_id:
            raise AuthorizationError(f"Not authorized to {action} this ride")
        return ride

    async def update_ride(self, ride_id: int, caller_id: Optional[int], data: RideUpdate) -> Ride:
        await self._get_owned_ride(ride_id, caller_id, "update")

        values = {
            k: v for k, v in data.model_dump(exclude_unset=True).items()
            if v is not None or k in NULLABLE_FIELDS
        }
        ride = await self.storage.update_ride(ride_id, values)
        if ride is None:
            raise NotFoundError("Ride not found")
        logger.info("Ride %s updated by owner: %s", ride_id, sorted(values))
        return ride

    async def delete_ride(self, ride_id: int, caller_id: Optional[int]) -> None:
        # Hard delete; requests pointing at the ride are left in place
        await self._get_owned_ride(ride_id, caller_id, "delete")
        if not await self.storage.delete_ride(ride_id):
            raise NotFoundError("Ride not found")
        logger.info("Ride %s deleted by owner", ride_id)

    async def take_seat(self, ride_id: int) -> bool:
        """
        Seat-decrement side effect of an accepted request.

        Returns:
            bool: True if a seat was taken. A full ride stays at zero seats
            and the acceptance is still honoured.
        """
        taken = await self.storage.decrement_available_seats(ride_id)
        if not taken:
            logger.warning("Ride %s had no seat left to take on acceptance", ride_id)
        return taken
