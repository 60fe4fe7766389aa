import logging
from typing import Dict, Iterable, Optional

from storage import Storage
from schemas import User, UserCreate, UserLogin, UserProfileUpdate, UserSummary
from exceptions import AuthenticationError, NotFoundError, ValidationError
from auth import require_authenticated, hash_password, verify_password

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("full_name", "college", "department", "bio")


class UserEngine:
    """
    Registration and profile edits. Rating fields are owned by the rating
    engine and never touched here.
    """

    def __init__(self, storage: Storage):
        self.storage = storage

    async def register(self, data: UserCreate) -> User:
        if await self.storage.get_user_by_username(data.username):
            raise ValidationError("Username already exists")
        if await self.storage.get_user_by_email(data.email):
            raise ValidationError("Email already registered")

        user = await self.storage.create_user({
            **data.model_dump(exclude={"password"}),
            "password": hash_password(data.password),
        })
        logger.info("Registered user %s (%s)", user.id, user.username)
        return user

    async def authenticate(self, data: UserLogin) -> User:
        user = await self.storage.get_user_by_username(data.username)
        if user is None or not verify_password(data.password, user.password):
            logger.warning("Failed login for %s", data.username)
            raise AuthenticationError("Invalid username or password")
        return user

    async def get_user(self, user_id: int) -> User:
        user = await self.storage.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def update_profile(self, caller_id: Optional[int], data: UserProfileUpdate) -> User:
        caller_id = require_authenticated(caller_id)
        values = data.model_dump(include=set(PROFILE_FIELDS), exclude_unset=True)
        if values.get("full_name") is None:
            values.pop("full_name", None)

        user = await self.storage.update_user(caller_id, values)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def summary(self, user_id: int) -> Optional[UserSummary]:
        """Public card for a user, or None when the reference dangles."""
        user = await self.storage.get_user(user_id)
        return UserSummary.model_validate(user.model_dump()) if user else None

    async def summaries(self, user_ids: Iterable[int]) -> Dict[int, Optional[UserSummary]]:
        return {user_id: await self.summary(user_id) for user_id in set(user_ids)}
