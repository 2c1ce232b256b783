from datetime import datetime, timezone
from typing import Optional
import motor.motor_asyncio
import structlog
from schemas.review_schemas import ReviewSubmissionSchema

logger = structlog.get_logger(__name__)


class ReviewMirror:
    """Write-once copy of every created review in a mongo "Reviews" collection.

    The Shopify metaobject stays authoritative, the mirror never gets moderation updates.
    """

    def __init__(self, mongo_url: str, database: str = "ReviewProxy"):
        self.client = motor.motor_asyncio.AsyncIOMotorClient(mongo_url)
        self.reviews_collection = self.client.get_database(database).get_collection("Reviews")

    async def save_review(self, submission: ReviewSubmissionSchema, metaobject_id: str,
                          image_file_id: Optional[str] = None):
        now = datetime.now(timezone.utc)
        document = {
            "shopifyProductId": submission.product_id,
            "shopifyMetaobjectId": metaobject_id,
            "rating": submission.rating,
            "title": submission.title,
            "body": submission.body,
            "authorName": submission.author_name,
            "authorEmail": submission.author_email,
            "isVerifiedBuyer": submission.is_verified_buyer,
            "isApproved": False,
            "imageUrl": image_file_id,
            "createdAt": now,
            "updatedAt": now,
        }
        try:
            await self.reviews_collection.insert_one(document)
        except Exception as e:
            # the mirror is best effort, shopify already holds the review
            logger.error("Failed to mirror review", metaobject_id=metaobject_id, error=str(e))

    def close(self):
        self.client.close()


def create_mirror(mongo_url: Optional[str]) -> Optional[ReviewMirror]:
    if not mongo_url:
        return None
    return ReviewMirror(mongo_url)
