import logging
from typing import List, Optional

from storage import Storage
from schemas import Review, ReviewCreate, ReviewWithReviewer
from exceptions import NotFoundError, AuthorizationError
from auth import require_authenticated
from user_engine import UserEngine

logger = logging.getLogger(__name__)


def next_average(avg_rating: int, total_reviews: int, rating: int) -> int:
    """
    Incremental mean: round((avg * count + rating) / (count + 1)), half up.

    The stored average is already rounded, so over many reviews this drifts
    from the true mean. That is the documented rating semantics.
    """
    total = avg_rating * total_reviews + rating
    count = total_reviews + 1
    return (2 * total + count) // (2 * count)


class RatingEngine:
    def __init__(self, storage: Storage):
        self.storage = storage
        self.users = UserEngine(storage)

    async def create_review(self, reviewer_id: Optional[int], data: ReviewCreate) -> Review:
        """
        Records a review and folds its rating into the reviewee's average.

        The reviewer must be tied to the ride, either as its owner or because
        the ride owner is the one being reviewed. Whether the reviewer actually
        rode along is not checked.
        """
        reviewer_id = require_authenticated(reviewer_id)

        reviewee = await self.storage.get_user(data.reviewee_id)
        if reviewee is None:
            raise NotFoundError("Reviewee not found")

        ride = await self.storage.get_ride(data.ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")

        if ride.user_id not in (reviewer_id, data.reviewee_id):
            raise AuthorizationError("Not authorized to review this user for this ride")

        avg_rating = next_average(reviewee.avg_rating, reviewee.total_reviews, data.rating)
        review = await self.storage.create_review(
            {**data.model_dump(), "reviewer_id": reviewer_id},
            reviewee_values={"avg_rating": avg_rating, "total_reviews": reviewee.total_reviews + 1},
        )
        logger.info(
            "Review %s for user %s: rating %s, average now %s over %s review(s)",
            review.id, reviewee.id, data.rating, avg_rating, reviewee.total_reviews + 1,
        )
        return review

    async def list_by_reviewee(self, reviewee_id: int) -> List[ReviewWithReviewer]:
        if await self.storage.get_user(reviewee_id) is None:
            raise NotFoundError("User not found")
        reviews = await self.storage.get_reviews_by_reviewee(reviewee_id)
        reviewers = await self.users.summaries(r.reviewer_id for r in reviews)
        return [ReviewWithReviewer(**r.model_dump(), reviewer=reviewers[r.reviewer_id]) for r in reviews]

    async def list_by_reviewer(self, reviewer_id: int) -> List[Review]:
        if await self.storage.get_user(reviewer_id) is None:
            raise NotFoundError("User not found")
        return await self.storage.get_reviews_by_reviewer(reviewer_id)
