import httpx
import structlog
from microservices.media_microservice import file_content_type, staged_resource
from schemas.shopify_schemas import MediaFile, StagedUploadTarget
from services.errors import MediaUploadError, ReviewProxyError
from services.shopify_client import ShopifyClient

logger = structlog.get_logger(__name__)


async def stage_upload(client: ShopifyClient, media: MediaFile) -> StagedUploadTarget:
    resource = staged_resource(media.mime_type)
    staged_input = {
        "filename": media.filename,
        "mimeType": media.mime_type,
        "resource": resource,
        "httpMethod": "POST",
    }
    # shopify only wants the size for video resources
    if resource == "VIDEO":
        staged_input["fileSize"] = str(media.size)
    try:
        target = await client.staged_uploads_create(staged_input)
    except ReviewProxyError as e:
        raise MediaUploadError("stage", str(e)) from e
    logger.info("Staged upload created", url=target.url, param_count=len(target.parameters))
    return target


async def upload_binary(client: ShopifyClient, target: StagedUploadTarget, media: MediaFile):
    try:
        response = await client.upload_to_staged_target(target, media)
    except httpx.HTTPError as e:
        raise MediaUploadError("upload", str(e)) from e
    if not response.is_success:
        logger.error("Staged upload rejected", status=response.status_code, body=response.text[:500])
        raise MediaUploadError("upload", f"status {response.status_code}")


def registration_source(target: StagedUploadTarget, fallback_filename: str):
    """Work out the originalSource url and filename that fileCreate expects.

    Video targets already point at an external_video_id and must be used as
    is, without a filename. Everything else is the staged url plus its key.
    """
    if "external_video_id" in target.resource_url:
        return target.resource_url, None
    key = target.parameter("key")
    if key is None:
        return target.resource_url, fallback_filename
    base_url = target.url[:-1] if target.url.endswith("/") else target.url
    return f"{base_url}/{key}", key.split("/")[-1]


async def register_file(client: ShopifyClient, target: StagedUploadTarget, media: MediaFile) -> str:
    resource_url, filename = registration_source(target, media.filename)
    file_input = {
        "originalSource": resource_url,
        "contentType": file_content_type(media.mime_type),
    }
    if filename:
        file_input["filename"] = filename
    try:
        record = await client.file_create(file_input)
    except ReviewProxyError as e:
        raise MediaUploadError("register", str(e)) from e
    return record["id"]


async def process_file_upload(client: ShopifyClient, media: MediaFile) -> str:
    # stage -> upload -> register, any failure aborts the whole upload
    logger.info("Starting file upload", filename=media.filename,
                mime_type=media.mime_type, size=media.size)
    target = await stage_upload(client, media)
    await upload_binary(client, target, media)
    file_id = await register_file(client, target, media)
    logger.info("File registered", file_id=file_id)
    return file_id
