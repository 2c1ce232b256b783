from typing import List, Optional
import structlog
from microservices.media_microservice import decode_media
from microservices.review_mapper import from_fields, to_fields, update_fields
from microservices.stats_microservice import compute_stats
from mongomanager import ReviewMirror
from schemas.review_schemas import (
    CreatedReviewSchema,
    PaginationSchema,
    PublishAllResultSchema,
    PublishOutcome,
    ReviewPageSchema,
    ReviewRecord,
    ReviewStatsSchema,
    ReviewSubmissionSchema,
    ReviewUpdateSchema,
)
from schemas.shopify_schemas import RATING_TYPE, ObjectStatus
from services.errors import MediaUploadError, ReviewProxyError, ValidationError
from services.media_service import process_file_upload
from services.shopify_client import ShopifyClient

logger = structlog.get_logger(__name__)

PUBLISH_BATCH_SIZE = 250


async def upload_media_fields(client: ShopifyClient, submission: ReviewSubmissionSchema) -> dict:
    # decode everything first so bad payloads fail before any outbound call
    decoded = {}
    for kind in ("image", "video"):
        payload = getattr(submission, kind)
        if payload:
            decoded[kind] = decode_media(payload, kind)
    file_ids = {}
    for kind, media in decoded.items():
        try:
            file_ids[kind] = await process_file_upload(client, media)
        except MediaUploadError as e:
            # the review is still created, just without this media field
            logger.error("Media upload failed, continuing without it",
                         field=kind, phase=e.phase, error=str(e))
    return file_ids


async def link_rating_to_product(client: ShopifyClient, product_id: int, rating_id: str):
    # read-modify-write of the whole index, concurrent submissions for one product can race
    existing = await client.get_product_ratings_index(product_id)
    await client.set_product_ratings_index(product_id, existing + [rating_id])
    logger.info("Rating linked to product", product_id=product_id,
                rating_id=rating_id, total=len(existing) + 1)


async def create_review(client: ShopifyClient, submission: ReviewSubmissionSchema,
                        mirror: Optional[ReviewMirror] = None) -> CreatedReviewSchema:
    file_ids = await upload_media_fields(client, submission)
    fields = to_fields(submission)
    for kind, file_id in file_ids.items():
        fields.append({"key": kind, "value": file_id})
    created = await client.create_metaobject(RATING_TYPE, fields)
    await link_rating_to_product(client, submission.product_id, created.id)
    if mirror is not None:
        await mirror.save_review(submission, created.id, file_ids.get("image"))
    stored = created.field_map()
    return CreatedReviewSchema(
        rating_id=created.id,
        product_id=submission.product_id,
        image_file_id=stored.get("image") or None,
        video_file_id=stored.get("video") or None,
    )


async def get_product_reviews(client: ShopifyClient, product_id: int) -> List[ReviewRecord]:
    rating_ids = await client.get_product_ratings_index(product_id)
    reviews = []
    for rating_id in rating_ids:
        try:
            remote = await client.get_metaobject(rating_id)
        except ReviewProxyError as e:
            logger.error("Failed to fetch linked rating", rating_id=rating_id, error=str(e))
            continue
        if remote is None:
            # deleted metaobjects linger in the index until the next rewrite
            logger.info("Skipping missing rating", rating_id=rating_id)
            continue
        reviews.append(from_fields(remote))
    return reviews


async def get_review_stats(client: ShopifyClient, product_id: int) -> ReviewStatsSchema:
    reviews = await get_product_reviews(client, product_id)
    return compute_stats(reviews, product_id=product_id)


async def list_reviews(client: ShopifyClient, page: int = 1, limit: int = 20,
                       cursor: Optional[str] = None) -> ReviewPageSchema:
    after = cursor if page > 1 else None
    result = await client.list_metaobjects(RATING_TYPE, limit, after)
    info = result.page_info
    return ReviewPageSchema(
        reviews=[from_fields(item) for item in result.items],
        pagination=PaginationSchema(
            has_next_page=info.has_next_page,
            has_previous_page=info.has_previous_page,
            start_cursor=info.start_cursor,
            end_cursor=info.end_cursor,
        ),
    )


async def update_review(client: ShopifyClient, rating_id: str, patch: ReviewUpdateSchema) -> ReviewRecord:
    fields = update_fields(patch)
    if not fields:
        raise ValidationError("Validation error", ["at least one field must be provided"])
    updated = await client.update_metaobject(rating_id, fields=fields)
    logger.info("Review updated", rating_id=rating_id, keys=[field["key"] for field in fields])
    return from_fields(updated)


async def delete_review(client: ShopifyClient, rating_id: str) -> str:
    deleted_id = await client.delete_metaobject(rating_id)
    logger.info("Review deleted", rating_id=deleted_id)
    return deleted_id


async def publish_review(client: ShopifyClient, rating_id: str) -> ReviewRecord:
    published = await client.update_metaobject(rating_id, status=ObjectStatus.ACTIVE.value)
    return from_fields(published)


async def find_draft_ids(client: ShopifyClient) -> List[str]:
    batch = await client.list_metaobjects(RATING_TYPE, PUBLISH_BATCH_SIZE)
    draft_ids = []
    for item in batch.items:
        try:
            full = await client.get_metaobject(item.id)
        except ReviewProxyError as e:
            logger.warning("Could not read rating status, treating as draft", rating_id=item.id, error=str(e))
            draft_ids.append(item.id)
            continue
        status = full.status if full is not None else ObjectStatus.UNKNOWN
        if status.needs_publishing:
            draft_ids.append(item.id)
    return draft_ids


async def publish_all_drafts(client: ShopifyClient) -> PublishAllResultSchema:
    draft_ids = await find_draft_ids(client)
    logger.info("Publishing draft ratings", count=len(draft_ids))
    results = []
    for rating_id in draft_ids:
        try:
            await publish_review(client, rating_id)
            results.append(PublishOutcome(id=rating_id, success=True))
        except ReviewProxyError as e:
            logger.error("Failed to publish rating", rating_id=rating_id, error=str(e))
            results.append(PublishOutcome(id=rating_id, success=False, error=str(e)))
    successful = sum(1 for result in results if result.success)
    return PublishAllResultSchema(
        total_processed=len(draft_ids),
        successful=successful,
        failed=len(results) - successful,
        results=results,
    )
