from fastapi import APIRouter, Depends, status

from auth import get_current_user_id, create_access_token
from storage import Storage, get_storage
from schemas import User, UserCreate, UserLogin, UserProfileUpdate, TokenResponse
from user_engine import UserEngine

router = APIRouter(prefix="/users", tags=["users"])

@router.post("", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: UserCreate, storage: Storage = Depends(get_storage)):
    user = await UserEngine(storage).register(payload)
    return TokenResponse(access_token=create_access_token(user.id), user=user)

@router.post("/login", response_model=TokenResponse)
async def login(payload: UserLogin, storage: Storage = Depends(get_storage)):
    user = await UserEngine(storage).authenticate(payload)
    return TokenResponse(access_token=create_access_token(user.id), user=user)

@router.put("/profile", response_model=User)
async def update_profile(
    payload: UserProfileUpdate,
    user_id: int = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    return await UserEngine(storage).update_profile(user_id, payload)

@router.get("/{user_id}", response_model=User)
async def get_user(user_id: int, storage: Storage = Depends(get_storage)):
    return await UserEngine(storage).get_user(user_id)
