from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from schemas.review_schemas import ReviewRecord, ReviewSubmissionSchema, ReviewUpdateSchema
from schemas.shopify_schemas import RemoteObject


def to_field_value(value: Any) -> str:
    # every metaobject field is stored as a string
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def format_timestamp(moment: datetime) -> str:
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def to_fields(submission: ReviewSubmissionSchema, now: Optional[datetime] = None) -> List[Dict[str, str]]:
    """Map a validated submission to the ordered key/value list of a product_rating metaobject.

    Approval always starts out false, only the moderation path may flip it.
    """
    created_at = format_timestamp(now or datetime.now(timezone.utc))
    recommends = submission.recommends_product
    return [
        {"key": "product_id", "value": to_field_value(submission.product_id)},
        {"key": "rating", "value": to_field_value(submission.rating)},
        {"key": "title", "value": to_field_value(submission.title)},
        {"key": "body", "value": to_field_value(submission.body)},
        {"key": "author_name", "value": to_field_value(submission.author_name)},
        {"key": "author_email", "value": to_field_value(submission.author_email)},
        {"key": "is_verified_buyer", "value": to_field_value(submission.is_verified_buyer)},
        {"key": "is_approved", "value": "false"},
        {"key": "created_at", "value": created_at},
        {"key": "age_range", "value": to_field_value(submission.age_range)},
        {"key": "size_purchased", "value": to_field_value(submission.size_purchased)},
        {"key": "fit_rating", "value": to_field_value(submission.fit_rating)},
        {"key": "shipping_rating", "value": to_field_value(submission.shipping_rating)},
        {"key": "recommends_product", "value": to_field_value(recommends if recommends is not None else False)},
    ]


def update_fields(patch: ReviewUpdateSchema) -> List[Dict[str, str]]:
    # moderation patches only carry the keys that were actually sent
    values = patch.model_dump(exclude_none=True)
    return [{"key": key, "value": to_field_value(value)} for key, value in values.items()]


def parse_int(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_bool(value: Optional[str]) -> bool:
    return value == "true"


def parse_text(value: Optional[str]) -> Optional[str]:
    return value if value else None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def from_fields(remote: RemoteObject) -> ReviewRecord:
    """Decode a fetched metaobject back into a typed review.

    Absent or malformed keys fall back to None so legacy objects still parse.
    """
    fields = remote.field_map()
    return ReviewRecord(
        id=remote.id,
        handle=remote.handle,
        type=remote.type,
        status=remote.status.value,
        product_id=parse_int(fields.get("product_id")),
        rating=parse_int(fields.get("rating")) or 0,
        title=parse_text(fields.get("title")),
        body=parse_text(fields.get("body")),
        author_name=parse_text(fields.get("author_name")),
        author_email=parse_text(fields.get("author_email")),
        is_verified_buyer=parse_bool(fields.get("is_verified_buyer")),
        is_approved=parse_bool(fields.get("is_approved")),
        created_at=parse_timestamp(fields.get("created_at")),
        age_range=parse_text(fields.get("age_range")),
        size_purchased=parse_text(fields.get("size_purchased")),
        fit_rating=parse_int(fields.get("fit_rating")),
        shipping_rating=parse_int(fields.get("shipping_rating")),
        recommends_product=parse_bool(fields.get("recommends_product")),
        image=parse_text(fields.get("image")),
        video=parse_text(fields.get("video")),
    )
