import json
from typing import Any, Dict, List, Optional

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from config import Settings
from schemas.shopify_schemas import (
    RATINGS_KEY,
    RATINGS_NAMESPACE,
    MediaFile,
    PageInfo,
    RemoteObject,
    RemotePage,
    StagedUploadTarget,
)
from services.errors import RemoteTransportError, RemoteValidationError

logger = structlog.get_logger(__name__)

METAOBJECT_SELECTION = """
    id
    handle
    type
    fields {
      key
      value
    }
    capabilities {
      publishable {
        status
      }
    }
"""

CREATE_METAOBJECT = """
mutation metaobjectCreate($metaobject: MetaobjectCreateInput!) {
  metaobjectCreate(metaobject: $metaobject) {
    metaobject {%s}
    userErrors {
      field
      message
    }
  }
}
""" % METAOBJECT_SELECTION

UPDATE_METAOBJECT = """
mutation metaobjectUpdate($id: ID!, $metaobject: MetaobjectUpdateInput!) {
  metaobjectUpdate(id: $id, metaobject: $metaobject) {
    metaobject {%s}
    userErrors {
      field
      message
    }
  }
}
""" % METAOBJECT_SELECTION

DELETE_METAOBJECT = """
mutation metaobjectDelete($id: ID!) {
  metaobjectDelete(id: $id) {
    deletedId
    userErrors {
      field
      message
    }
  }
}
"""

GET_METAOBJECT = """
query getMetaobject($id: ID!) {
  metaobject(id: $id) {%s}
}
""" % METAOBJECT_SELECTION

LIST_METAOBJECTS = """
query getMetaobjects($type: String!, $first: Int!, $after: String) {
  metaobjects(type: $type, first: $first, after: $after) {
    edges {
      node {%s}
      cursor
    }
    pageInfo {
      hasNextPage
      hasPreviousPage
      startCursor
      endCursor
    }
  }
}
""" % METAOBJECT_SELECTION

GET_RATINGS_METAFIELD = """
query getProduct($id: ID!) {
  product(id: $id) {
    id
    metafield(namespace: "%s", key: "%s") {
      value
    }
  }
}
""" % (RATINGS_NAMESPACE, RATINGS_KEY)

UPDATE_PRODUCT_METAFIELD = """
mutation productUpdate($input: ProductInput!) {
  productUpdate(input: $input) {
    product {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""

STAGED_UPLOADS_CREATE = """
mutation stagedUploadsCreate($input: [StagedUploadInput!]!) {
  stagedUploadsCreate(input: $input) {
    stagedTargets {
      url
      resourceUrl
      parameters {
        name
        value
      }
    }
    userErrors {
      field
      message
    }
  }
}
"""

FILE_CREATE = """
mutation fileCreate($files: [FileCreateInput!]!) {
  fileCreate(files: $files) {
    files {
      id
      fileStatus
    }
    userErrors {
      field
      message
    }
  }
}
"""


def product_gid(product_id: int) -> str:
    return f"gid://shopify/Product/{product_id}"


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, RemoteTransportError) and error.is_transient


def _is_unsent(error: BaseException) -> bool:
    # a create that reached Shopify may already exist
    return _is_transient(error) and not error.request_sent


def _is_throttled(errors: List[Dict[str, Any]]) -> bool:
    return any((error.get("extensions") or {}).get("code") == "THROTTLED" for error in errors)


class ShopifyClient:
    """Thin async wrapper over the Shopify Admin GraphQL API.

    Every mutation checks its userErrors list and raises RemoteValidationError
    when it is not empty. Network faults, non-2xx responses and top-level
    GraphQL errors raise RemoteTransportError. Network faults, 429, 5xx and
    THROTTLED GraphQL errors are retried with backoff; calls that create
    records are retried only when the connection was never established.
    """

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.endpoint = settings.graphql_endpoint
        self.max_retries = settings.max_retries
        self._headers = {
            "X-Shopify-Access-Token": settings.access_token,
            "Content-Type": "application/json",
        }
        self.http = http_client or httpx.AsyncClient(timeout=settings.timeout_seconds)

    async def aclose(self):
        await self.http.aclose()

    async def _post(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self.http.post(
                self.endpoint, json={"query": query, "variables": variables}, headers=self._headers)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            raise RemoteTransportError(f"Shopify request failed: {e}", transient=True, request_sent=False) from e
        except httpx.HTTPError as e:
            raise RemoteTransportError(f"Shopify request failed: {e}", transient=True) from e
        if not response.is_success:
            status = response.status_code
            raise RemoteTransportError(
                f"Shopify responded with {status}", status_code=status, transient=status == 429 or status >= 500)
        try:
            body = response.json()
        except ValueError as e:
            raise RemoteTransportError("Shopify returned invalid JSON") from e
        if body.get("errors"):
            messages = [error.get("message", "unknown error") for error in body["errors"]]
            raise RemoteTransportError(
                f"Shopify GraphQL error: {', '.join(messages)}", transient=_is_throttled(body["errors"]))
        return body.get("data") or {}

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None,
                      idempotent: bool = True) -> Dict[str, Any]:
        variables = variables or {}
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception(_is_transient if idempotent else _is_unsent),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning("Retrying Shopify request",
                                   attempt=attempt.retry_state.attempt_number)
                data = await self._post(query, variables)
        return data

    async def mutate(self, query: str, variables: Dict[str, Any], root: str,
                     idempotent: bool = True) -> Dict[str, Any]:
        data = await self.execute(query, variables, idempotent=idempotent)
        payload = data.get(root) or {}
        user_errors = payload.get("userErrors") or []
        if user_errors:
            messages = [error.get("message", "") for error in user_errors]
            logger.warning("Shopify rejected mutation", mutation=root, errors=messages)
            raise RemoteValidationError(messages)
        return payload

    async def create_metaobject(self, type: str, fields: List[Dict[str, str]], status: str = "ACTIVE") -> RemoteObject:
        variables = {
            "metaobject": {
                "type": type,
                "fields": fields,
                "capabilities": {"publishable": {"status": status}},
            }
        }
        payload = await self.mutate(CREATE_METAOBJECT, variables, "metaobjectCreate", idempotent=False)
        created = RemoteObject.from_node(payload["metaobject"])
        logger.info("Metaobject created", id=created.id, handle=created.handle)
        return created

    async def update_metaobject(self, id: str, fields: Optional[List[Dict[str, str]]] = None,
                                status: Optional[str] = None) -> RemoteObject:
        metaobject: Dict[str, Any] = {}
        if status is not None:
            metaobject["capabilities"] = {"publishable": {"status": status.upper()}}
        if fields:
            metaobject["fields"] = fields
        payload = await self.mutate(UPDATE_METAOBJECT, {"id": id, "metaobject": metaobject}, "metaobjectUpdate")
        return RemoteObject.from_node(payload["metaobject"])

    async def delete_metaobject(self, id: str) -> str:
        payload = await self.mutate(DELETE_METAOBJECT, {"id": id}, "metaobjectDelete")
        return payload.get("deletedId")

    async def get_metaobject(self, id: str) -> Optional[RemoteObject]:
        data = await self.execute(GET_METAOBJECT, {"id": id})
        node = data.get("metaobject")
        if not node:
            return None
        return RemoteObject.from_node(node)

    async def list_metaobjects(self, type: str, first: int, after: Optional[str] = None) -> RemotePage:
        data = await self.execute(LIST_METAOBJECTS, {"type": type, "first": first, "after": after})
        connection = data.get("metaobjects") or {}
        items = [RemoteObject.from_node(edge["node"]) for edge in connection.get("edges", [])]
        page_info = PageInfo.model_validate(connection.get("pageInfo") or {})
        return RemotePage(items=items, page_info=page_info)

    async def get_product_ratings_index(self, product_id: int) -> List[str]:
        data = await self.execute(GET_RATINGS_METAFIELD, {"id": product_gid(product_id)})
        product = data.get("product") or {}
        metafield = product.get("metafield") or {}
        raw = metafield.get("value")
        if not raw:
            return []
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning("Unparsable ratings metafield", product_id=product_id)
            return []
        if isinstance(value, list):
            return [item for item in value if isinstance(item, str) and item]
        if isinstance(value, str) and value:
            return [value]
        logger.warning("Unexpected ratings metafield shape", product_id=product_id)
        return []

    async def set_product_ratings_index(self, product_id: int, rating_ids: List[str]) -> None:
        variables = {
            "input": {
                "id": product_gid(product_id),
                "metafields": [
                    {
                        "namespace": RATINGS_NAMESPACE,
                        "key": RATINGS_KEY,
                        "value": json.dumps(rating_ids),
                        "type": "list.metaobject_reference",
                    }
                ],
            }
        }
        await self.mutate(UPDATE_PRODUCT_METAFIELD, variables, "productUpdate")

    async def staged_uploads_create(self, input: Dict[str, Any]) -> StagedUploadTarget:
        payload = await self.mutate(STAGED_UPLOADS_CREATE, {"input": [input]}, "stagedUploadsCreate")
        targets = payload.get("stagedTargets") or []
        if not targets:
            raise RemoteTransportError("Shopify returned no staged upload target")
        return StagedUploadTarget.model_validate(targets[0])

    async def upload_to_staged_target(self, target: StagedUploadTarget, media: MediaFile) -> httpx.Response:
        # the signed parameters go first in the order given, the binary goes last as "file"
        data = {param.name: param.value for param in target.parameters}
        files = {"file": (media.filename, media.content, media.mime_type)}
        return await self.http.post(target.url, data=data, files=files)

    async def file_create(self, file_input: Dict[str, Any]) -> Dict[str, Any]:
        payload = await self.mutate(FILE_CREATE, {"files": [file_input]}, "fileCreate", idempotent=False)
        files = payload.get("files") or []
        if not files:
            raise RemoteTransportError("Shopify returned no file record")
        return files[0]
