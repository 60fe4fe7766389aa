from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime, timezone
from enum import Enum

from config import MIN_SEATS, MAX_SEATS


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store and compare every instant as naive UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class RideType(str, Enum):
    OFFER = "offer"
    REQUEST = "request"

class RideStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

# User Schemas
class User(BaseModel):
    id: int
    username: str
    full_name: str
    email: str
    college: Optional[str] = None
    department: Optional[str] = None
    profile_image: Optional[str] = None
    bio: Optional[str] = None
    avg_rating: int = 0
    total_reviews: int = 0
    password: Optional[str] = Field(None, exclude=True)  # hash only

    class Config:
        from_attributes = True

class UserSummary(BaseModel):
    id: int
    username: str
    full_name: str
    profile_image: Optional[str] = None
    avg_rating: int = 0
    total_reviews: int = 0

    class Config:
        from_attributes = True

class UserCreate(BaseModel):
    username: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)
    email: EmailStr
    college: Optional[str] = None
    department: Optional[str] = None
    password: str = Field(..., min_length=8)

class UserLogin(BaseModel):
    username: str
    password: str

class UserProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    college: Optional[str] = None
    department: Optional[str] = None
    bio: Optional[str] = None

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User

# Ride Schemas
class RideBase(BaseModel):
    ride_type: RideType
    pickup_location: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    date_time: datetime
    notes: Optional[str] = None

    @field_validator("date_time")
    @classmethod
    def _normalize_date_time(cls, value):
        return to_naive_utc(value)

class RideCreate(RideBase):
    available_seats: int = Field(..., ge=MIN_SEATS, le=MAX_SEATS)
    price: int = Field(..., ge=0)  # cents

class Ride(RideBase):
    id: int
    user_id: int
    available_seats: int
    price: int
    status: RideStatus
    created_at: datetime

    class Config:
        from_attributes = True

class RideUpdate(BaseModel):
    ride_type: Optional[RideType] = None
    pickup_location: Optional[str] = Field(None, min_length=1)
    destination: Optional[str] = Field(None, min_length=1)
    date_time: Optional[datetime] = None
    available_seats: Optional[int] = Field(None, ge=0)
    price: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    status: Optional[RideStatus] = None

    @field_validator("date_time")
    @classmethod
    def _normalize_date_time(cls, value):
        return to_naive_utc(value)

class RideFilters(BaseModel):
    ride_type: Optional[RideType] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    pickup_location: Optional[str] = None
    destination: Optional[str] = None
    available_seats: Optional[int] = None
    status: Optional[RideStatus] = None

    @field_validator("date_from", "date_to")
    @classmethod
    def _normalize_bounds(cls, value):
        return to_naive_utc(value)

class RideWithUser(Ride):
    user: Optional[UserSummary] = None

# Ride Request Schemas
class RideRequestCreate(BaseModel):
    ride_id: int
    message: Optional[str] = None

class RideRequestDecision(BaseModel):
    status: RequestStatus

    @field_validator("status")
    @classmethod
    def _terminal_status_only(cls, value):
        if value == RequestStatus.PENDING:
            raise ValueError("Status must be accepted or rejected")
        return value

class RideRequest(BaseModel):
    id: int
    ride_id: int
    user_id: int
    status: RequestStatus
    message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class RideRequestWithUser(RideRequest):
    user: Optional[UserSummary] = None

class RideRequestWithRide(RideRequest):
    ride: Optional[Ride] = None

# Message Schemas
class MessageCreate(BaseModel):
    receiver_id: int
    content: str

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value):
        if not value.strip():
            raise ValueError("Message content cannot be empty")
        return value

class Message(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    content: str
    is_read: bool = False
    created_at: datetime

    class Config:
        from_attributes = True

class ConversationSummary(BaseModel):
    user_id: int
    last_message: str
    last_message_date: datetime
    unread_count: int = 0
    user: Optional[UserSummary] = None

class ConversationThread(BaseModel):
    messages: List[Message]
    user: UserSummary

# Review Schemas
class ReviewCreate(BaseModel):
    ride_id: int
    reviewee_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None

class Review(BaseModel):
    id: int
    ride_id: int
    reviewer_id: int
    reviewee_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class ReviewWithReviewer(Review):
    reviewer: Optional[UserSummary] = None
