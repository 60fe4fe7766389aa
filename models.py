from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean
from database import Base
import datetime


def utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


# sqlite_autoincrement keeps ids from being reused after a delete

class User(Base):
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}
    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=True)  # opaque, owned by the auth layer
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    college = Column(String, nullable=True)
    department = Column(String, nullable=True)
    profile_image = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    avg_rating = Column(Integer, default=0, nullable=False)
    total_reviews = Column(Integer, default=0, nullable=False)


class Ride(Base):
    __tablename__ = "rides"
    __table_args__ = {"sqlite_autoincrement": True}
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, index=True, nullable=False)
    ride_type = Column(String, nullable=False)  # offer, request
    pickup_location = Column(String, nullable=False)
    destination = Column(String, nullable=False)
    date_time = Column(DateTime, nullable=False, index=True)
    available_seats = Column(Integer, nullable=False)
    price = Column(Integer, nullable=False)  # cents
    notes = Column(Text, nullable=True)
    status = Column(String, default="active", nullable=False)  # active, completed, cancelled
    created_at = Column(DateTime, default=utcnow, nullable=False)


class RideRequest(Base):
    __tablename__ = "ride_requests"
    __table_args__ = {"sqlite_autoincrement": True}
    id = Column(Integer, primary_key=True, autoincrement=True)
    # No foreign keys: a ride can be hard-deleted under its requests
    ride_id = Column(Integer, index=True, nullable=False)
    user_id = Column(Integer, index=True, nullable=False)
    status = Column(String, default="pending", nullable=False)  # pending, accepted, rejected
    message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = {"sqlite_autoincrement": True}
    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_id = Column(Integer, index=True, nullable=False)
    receiver_id = Column(Integer, index=True, nullable=False)
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = {"sqlite_autoincrement": True}
    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, index=True, nullable=False)
    reviewer_id = Column(Integer, index=True, nullable=False)
    reviewee_id = Column(Integer, index=True, nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
