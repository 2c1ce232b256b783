from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelSchema(BaseModel):
    # the api speaks camelCase json, python code uses snake_case attributes
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReviewSubmissionSchema(CamelSchema):
    model_config = ConfigDict(extra="forbid")

    product_id: int = Field(..., gt=0)
    rating: int = Field(..., ge=1, le=5)
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=2000)
    author_name: str = Field(..., min_length=1, max_length=100)
    author_email: EmailStr
    is_verified_buyer: bool = False
    age_range: Optional[str] = Field(None, max_length=50)
    size_purchased: Optional[str] = Field(None, max_length=50)
    fit_rating: int = Field(..., ge=1, le=5)
    shipping_rating: Optional[int] = Field(None, ge=1, le=5)
    recommends_product: Optional[bool] = None
    # base64 payloads, optionally prefixed with a data url header
    image: Optional[str] = None
    video: Optional[str] = None


class ReviewUpdateSchema(CamelSchema):
    model_config = ConfigDict(extra="forbid")

    is_approved: Optional[bool] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    body: Optional[str] = Field(None, min_length=1, max_length=2000)


class ReviewRecord(CamelSchema):
    id: str
    handle: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    product_id: Optional[int] = None
    rating: int = 0
    title: Optional[str] = None
    body: Optional[str] = None
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    is_verified_buyer: bool = False
    is_approved: bool = False
    created_at: Optional[datetime] = None
    age_range: Optional[str] = None
    size_purchased: Optional[str] = None
    fit_rating: Optional[int] = None
    shipping_rating: Optional[int] = None
    recommends_product: bool = False
    image: Optional[str] = None
    video: Optional[str] = None


class CreatedReviewSchema(CamelSchema):
    rating_id: str
    product_id: int
    status: str = "pending_approval"
    image_file_id: Optional[str] = None
    video_file_id: Optional[str] = None


class ReviewStatsSchema(CamelSchema):
    product_id: Optional[int] = None
    total_reviews: int
    average_rating: float
    rating_distribution: Dict[int, int]
    verified_buyers: int
    recommendations: int
    recommendation_rate: int


class PublishOutcome(CamelSchema):
    id: str
    success: bool
    error: Optional[str] = None


class PublishAllResultSchema(CamelSchema):
    total_processed: int
    successful: int
    failed: int
    results: List[PublishOutcome]


class PaginationSchema(CamelSchema):
    has_next_page: bool = False
    has_previous_page: bool = False
    start_cursor: Optional[str] = None
    end_cursor: Optional[str] = None


class ReviewPageSchema(CamelSchema):
    reviews: List[ReviewRecord]
    pagination: PaginationSchema


__all__ = ["ReviewSubmissionSchema", "ReviewUpdateSchema", "ReviewRecord",
           "CreatedReviewSchema", "ReviewStatsSchema", "PublishOutcome",
           "PublishAllResultSchema", "PaginationSchema", "ReviewPageSchema"]
