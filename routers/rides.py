from fastapi import APIRouter, Depends, Query, Response, status
from typing import List, Optional
from datetime import datetime

from auth import get_current_user_id
from storage import Storage, get_storage
from schemas import Ride, RideCreate, RideUpdate, RideFilters, RideWithUser, RideType, RideStatus
from ride_engine import RideEngine

router = APIRouter(prefix="/rides", tags=["rides"])

@router.get("", response_model=List[RideWithUser])
async def list_rides(
    ride_type: Optional[RideType] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    pickup_location: Optional[str] = Query(None),
    destination: Optional[str] = Query(None),
    available_seats: Optional[int] = Query(None, ge=0),
    ride_status: Optional[RideStatus] = Query(None, alias="status"),
    storage: Storage = Depends(get_storage),
):
    filters = RideFilters(
        ride_type=ride_type,
        date_from=date_from,
        date_to=date_to,
        pickup_location=pickup_location,
        destination=destination,
        available_seats=available_seats,
        status=ride_status,
    )
    return await RideEngine(storage).list_rides(filters)

@router.get("/mine", response_model=List[Ride])
async def list_my_rides(
    user_id: int = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    return await RideEngine(storage).list_my_rides(user_id)

@router.get("/{ride_id}", response_model=RideWithUser)
async def get_ride(ride_id: int, storage: Storage = Depends(get_storage)):
    return await RideEngine(storage).get_ride(ride_id)

@router.post("", response_model=Ride, status_code=status.HTTP_201_CREATED)
async def create_ride(
    payload: RideCreate,
    user_id: int = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    return await RideEngine(storage).create_ride(user_id, payload)

@router.put("/{ride_id}", response_model=Ride)
async def update_ride(
    ride_id: int,
    payload: RideUpdate,
    user_id: int = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    return await RideEngine(storage).update_ride(ride_id, user_id, payload)

@router.delete("/{ride_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ride(
    ride_id: int,
    user_id: int = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    await RideEngine(storage).delete_ride(ride_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
