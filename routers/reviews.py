from fastapi import APIRouter, Depends, status
from typing import List

from auth import get_current_user_id
from storage import Storage, get_storage
from schemas import Review, ReviewCreate, ReviewWithReviewer
from rating_engine import RatingEngine

router = APIRouter(prefix="/reviews", tags=["reviews"])

@router.post("", response_model=Review, status_code=status.HTTP_201_CREATED)
async def create_review(
    payload: ReviewCreate,
    user_id: int = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    return await RatingEngine(storage).create_review(user_id, payload)

@router.get("/user/{user_id}", response_model=List[ReviewWithReviewer])
async def list_reviews_for_user(user_id: int, storage: Storage = Depends(get_storage)):
    return await RatingEngine(storage).list_by_reviewee(user_id)

@router.get("/reviewer/{user_id}", response_model=List[Review])
async def list_reviews_by_user(user_id: int, storage: Storage = Depends(get_storage)):
    return await RatingEngine(storage).list_by_reviewer(user_id)
