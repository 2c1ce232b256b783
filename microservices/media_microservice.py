import base64
import binascii
import re
import time
from schemas.shopify_schemas import MediaFile
from services.errors import ValidationError


MAX_MEDIA_BYTES = 5 * 1024 * 1024
ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/gif", "video/mp4", "video/webm"}
DEFAULT_MIME_TYPES = {"image": "image/jpeg", "video": "video/mp4"}

DATA_URL_PREFIX = re.compile(r"^data:([^;,]+)?(?:;[^,]*)?;base64,", re.IGNORECASE)


def staged_resource(mime_type: str) -> str:
    if mime_type.startswith("image/"):
        return "PRODUCT_IMAGE"
    if mime_type.startswith("video/"):
        return "VIDEO"
    return "FILE"


def file_content_type(mime_type: str) -> str:
    if mime_type.startswith("image/"):
        return "IMAGE"
    if mime_type.startswith("video/"):
        return "VIDEO"
    return "FILE"


def decode_media(payload: str, kind: str) -> MediaFile:
    """Turn a base64 (or data url) payload into a binary file ready for staging.

    kind is the submission field the payload came from ("image" or "video").
    """
    mime_type = DEFAULT_MIME_TYPES[kind]
    match = DATA_URL_PREFIX.match(payload)
    if match:
        if match.group(1):
            mime_type = match.group(1).lower()
        payload = payload[match.end():]
    if mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationError("Validation error", [f"{kind} has unsupported type {mime_type}"])
    try:
        content = base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Validation error", [f"{kind} is not valid base64 data"])
    if not content:
        raise ValidationError("Validation error", [f"{kind} is empty"])
    if len(content) > MAX_MEDIA_BYTES:
        raise ValidationError("Validation error", [f"{kind} exceeds the 5MB limit"])
    filename = f"review-{kind}-{int(time.time() * 1000)}.{mime_type.split('/')[1]}"
    return MediaFile(content=content, mime_type=mime_type, filename=filename)
