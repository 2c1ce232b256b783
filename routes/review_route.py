from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
import structlog
from microservices.rate_limiter import SlidingWindowLimiter
from schemas.review_schemas import ReviewSubmissionSchema, ReviewUpdateSchema
from services.errors import RemoteTransportError, RemoteValidationError, ValidationError
from services.review_service import (
    create_review,
    delete_review,
    get_product_reviews,
    get_review_stats,
    list_reviews,
    publish_all_drafts,
    publish_review,
    update_review,
)
from services.shopify_client import ShopifyClient

logger = structlog.get_logger(__name__)

REMOTE_ERRORS = (RemoteValidationError, RemoteTransportError)


class RateLimitExceeded(Exception):
    def __init__(self, limiter: SlidingWindowLimiter, retry_after: int):
        self.message = limiter.message
        self.retry_after = retry_after


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def enforce(limiter: SlidingWindowLimiter, request: Request):
    address = client_address(request)
    allowed, _ = limiter.hit(address)
    if not allowed:
        logger.warning("Rate limit exceeded", address=address, path=request.url.path)
        raise RateLimitExceeded(limiter, limiter.retry_after(address))


def general_rate_limit(request: Request):
    enforce(request.app.state.general_limiter, request)


def create_rate_limit(request: Request):
    enforce(request.app.state.create_limiter, request)


def get_shopify_client(request: Request) -> ShopifyClient:
    return request.app.state.shopify_client


def valid_product_id(product_id: str) -> int:
    if not (product_id.isascii() and product_id.isdecimal()) or int(product_id) <= 0:
        raise ValidationError("Valid product ID is required")
    return int(product_id)


def dump(model):
    return model.model_dump(by_alias=True, mode="json")


router = APIRouter(prefix="/api/reviews", dependencies=[Depends(general_rate_limit)])


@router.post("", status_code=201, dependencies=[Depends(create_rate_limit)])
async def create(submission: ReviewSubmissionSchema, request: Request,
                 client: ShopifyClient = Depends(get_shopify_client)):
    # media is decoded and uploaded first, then the metaobject is created and linked
    try:
        created = await create_review(client, submission, request.app.state.review_mirror)
    except REMOTE_ERRORS as e:
        logger.error("Error creating review", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to create review") from e
    return {"success": True, "message": "Review created successfully", "data": dump(created)}


@router.get("/product/{product_id}")
async def product_reviews(product_id: str, client: ShopifyClient = Depends(get_shopify_client)):
    pid = valid_product_id(product_id)
    try:
        reviews = await get_product_reviews(client, pid)
    except REMOTE_ERRORS as e:
        logger.error("Error fetching product reviews", product_id=pid, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch product reviews") from e
    return {"success": True, "data": [dump(review) for review in reviews]}


@router.get("/stats/{product_id}")
async def review_stats(product_id: str, client: ShopifyClient = Depends(get_shopify_client)):
    pid = valid_product_id(product_id)
    try:
        stats = await get_review_stats(client, pid)
    except REMOTE_ERRORS as e:
        logger.error("Error fetching review stats", product_id=pid, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch review statistics") from e
    return {"success": True, "data": dump(stats)}


@router.get("")
async def all_reviews(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=250),
                      cursor: Optional[str] = None, client: ShopifyClient = Depends(get_shopify_client)):
    # admin listing, cursor only matters past the first page
    try:
        result = await list_reviews(client, page, limit, cursor)
    except REMOTE_ERRORS as e:
        logger.error("Error fetching all reviews", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch reviews") from e
    return {"success": True, "data": dump(result)}


@router.post("/publish-all-drafts")
async def publish_drafts(client: ShopifyClient = Depends(get_shopify_client)):
    try:
        result = await publish_all_drafts(client)
    except REMOTE_ERRORS as e:
        logger.error("Error publishing all draft reviews", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to publish draft reviews") from e
    return {
        "success": True,
        "message": f"Published {result.successful} out of {result.total_processed} draft reviews",
        "data": dump(result),
    }


# declared before the plain update route, rating ids are gids containing slashes
@router.put("/{rating_id:path}/publish")
async def publish(rating_id: str, client: ShopifyClient = Depends(get_shopify_client)):
    try:
        published = await publish_review(client, rating_id)
    except REMOTE_ERRORS as e:
        logger.error("Error publishing review", rating_id=rating_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to publish review") from e
    return {"success": True, "message": "Review published successfully", "data": dump(published)}


@router.put("/{rating_id:path}")
async def update(rating_id: str, patch: ReviewUpdateSchema,
                 client: ShopifyClient = Depends(get_shopify_client)):
    try:
        updated = await update_review(client, rating_id, patch)
    except REMOTE_ERRORS as e:
        logger.error("Error updating review", rating_id=rating_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to update review") from e
    return {"success": True, "message": "Review updated successfully", "data": dump(updated)}


@router.delete("/{rating_id:path}")
async def delete(rating_id: str, client: ShopifyClient = Depends(get_shopify_client)):
    if not rating_id:
        raise ValidationError("Rating ID is required")
    try:
        deleted_id = await delete_review(client, rating_id)
    except REMOTE_ERRORS as e:
        logger.error("Error deleting review", rating_id=rating_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to delete review") from e
    return {"success": True, "message": "Review deleted successfully", "data": {"deletedId": deleted_id}}
