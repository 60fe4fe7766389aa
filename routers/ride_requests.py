from fastapi import APIRouter, Depends, status
from typing import List

from auth import get_current_user_id
from storage import Storage, get_storage
from schemas import (
    RideRequest, RideRequestCreate, RideRequestDecision, RideRequestWithUser, RideRequestWithRide,
)
from request_engine import RideRequestEngine

router = APIRouter(prefix="/ride-requests", tags=["ride-requests"])

@router.post("", response_model=RideRequest, status_code=status.HTTP_201_CREATED)
async def create_ride_request(
    payload: RideRequestCreate,
    user_id: int = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    return await RideRequestEngine(storage).create_request(user_id, payload)

@router.put("/{request_id}", response_model=RideRequest)
async def decide_ride_request(
    request_id: int,
    payload: RideRequestDecision,
    user_id: int = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    return await RideRequestEngine(storage).decide_request(request_id, user_id, payload.status)

@router.get("/ride/{ride_id}", response_model=List[RideRequestWithUser])
async def list_requests_for_ride(
    ride_id: int,
    user_id: int = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    return await RideRequestEngine(storage).list_by_ride(ride_id, user_id)

@router.get("/user", response_model=List[RideRequestWithRide])
async def list_my_requests(
    user_id: int = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    return await RideRequestEngine(storage).list_by_user(user_id)
