import json
from dataclasses import replace

import httpx
import pytest

from schemas.shopify_schemas import ObjectStatus
from services.errors import RemoteTransportError, RemoteValidationError
from services.shopify_client import ShopifyClient


@pytest.mark.asyncio
async def test_requests_carry_token_and_endpoint(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"data": {"metaobject": None}})

    client = ShopifyClient(settings, httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    await client.get_metaobject("gid://shopify/Metaobject/404")

    assert str(seen[0].url) == "https://review-proxy-test.myshopify.com/admin/api/2024-07/graphql.json"
    assert seen[0].headers["X-Shopify-Access-Token"] == "shpat_test_token"
    assert json.loads(seen[0].content)["variables"] == {"id": "gid://shopify/Metaobject/404"}


@pytest.mark.asyncio
async def test_get_missing_metaobject_returns_none(shopify_client):
    assert await shopify_client.get_metaobject("gid://shopify/Metaobject/999") is None


@pytest.mark.asyncio
async def test_create_and_fetch_metaobject(shopify_client, fake_shopify):
    created = await shopify_client.create_metaobject("product_rating", [{"key": "rating", "value": "4"}])
    fetched = await shopify_client.get_metaobject(created.id)

    assert fetched.field_map() == {"rating": "4"}
    assert fetched.status is ObjectStatus.ACTIVE
    assert fake_shopify.operations() == ["metaobjectCreate", "getMetaobject"]


@pytest.mark.asyncio
async def test_user_errors_raise_remote_validation_error(shopify_client, fake_shopify):
    fake_shopify.user_errors["metaobjectCreate"] = ["Type is invalid", "Field rating is required"]

    with pytest.raises(RemoteValidationError) as excinfo:
        await shopify_client.create_metaobject("bad_type", [])
    assert str(excinfo.value) == "Shopify API Error: Type is invalid, Field rating is required"


@pytest.mark.asyncio
async def test_non_2xx_raises_transport_error(shopify_client, fake_shopify):
    fake_shopify.graphql_status = 502

    with pytest.raises(RemoteTransportError) as excinfo:
        await shopify_client.list_metaobjects("product_rating", 10)
    assert excinfo.value.status_code == 502
    assert excinfo.value.is_transient


@pytest.mark.asyncio
async def test_graphql_errors_raise_transport_error(settings):
    def handler(request):
        return httpx.Response(200, json={"errors": [{"message": "Throttled"}]})

    client = ShopifyClient(settings, httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    with pytest.raises(RemoteTransportError, match="Throttled"):
        await client.get_metaobject("gid://shopify/Metaobject/1")


@pytest.mark.asyncio
async def test_transient_failures_are_retried(settings):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={"data": {"metaobject": None}})

    retrying = replace(settings, max_retries=1)
    client = ShopifyClient(retrying, httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    assert await client.get_metaobject("gid://shopify/Metaobject/1") is None
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_validation_errors_are_not_retried(settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"data": {"metaobjectDelete": {
            "deletedId": None, "userErrors": [{"field": ["id"], "message": "Record not found"}]}}})

    retrying = replace(settings, max_retries=3)
    client = ShopifyClient(retrying, httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(RemoteValidationError):
        await client.delete_metaobject("gid://shopify/Metaobject/1")
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_permanent_graphql_errors_are_not_retried(settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"errors": [{
            "message": "Field 'nope' doesn't exist on type 'Metaobject'",
            "extensions": {"code": "undefinedField"}}]})

    retrying = replace(settings, max_retries=2)
    client = ShopifyClient(retrying, httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(RemoteTransportError) as excinfo:
        await client.get_metaobject("gid://shopify/Metaobject/1")
    assert not excinfo.value.is_transient
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_throttled_graphql_errors_are_retried(settings):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(200, json={"errors": [{"message": "Throttled", "extensions": {"code": "THROTTLED"}}]})
        return httpx.Response(200, json={"data": {"metaobject": None}})

    retrying = replace(settings, max_retries=1)
    client = ShopifyClient(retrying, httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    assert await client.get_metaobject("gid://shopify/Metaobject/1") is None
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_invalid_json_is_not_retried(settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, text="<html>maintenance</html>")

    retrying = replace(settings, max_retries=2)
    client = ShopifyClient(retrying, httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(RemoteTransportError, match="invalid JSON"):
        await client.get_metaobject("gid://shopify/Metaobject/1")
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_creates_are_not_retried_after_reaching_shopify(settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    retrying = replace(settings, max_retries=2)
    client = ShopifyClient(retrying, httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(RemoteTransportError):
        await client.create_metaobject("product_rating", [{"key": "rating", "value": "4"}])
    with pytest.raises(RemoteTransportError):
        await client.file_create({"originalSource": "https://example.com/a.jpg", "contentType": "IMAGE"})
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_creates_are_retried_when_the_connection_failed(settings, fake_shopify):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return fake_shopify.handler(request)

    retrying = replace(settings, max_retries=1)
    client = ShopifyClient(retrying, httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    created = await client.create_metaobject("product_rating", [{"key": "rating", "value": "4"}])

    assert len(calls) == 2
    assert list(fake_shopify.metaobjects) == [created.id]


@pytest.mark.asyncio
async def test_list_metaobjects_pages(shopify_client, fake_shopify):
    for rating in ("1", "2", "3"):
        fake_shopify.add_metaobject({"rating": rating})

    first = await shopify_client.list_metaobjects("product_rating", 2)
    second = await shopify_client.list_metaobjects("product_rating", 2, first.page_info.end_cursor)

    assert [item.field_map()["rating"] for item in first.items] == ["1", "2"]
    assert first.page_info.has_next_page
    assert [item.field_map()["rating"] for item in second.items] == ["3"]
    assert second.page_info.has_previous_page
    assert not second.page_info.has_next_page


@pytest.mark.asyncio
async def test_ratings_index_defaults_to_empty(shopify_client, fake_shopify):
    assert await shopify_client.get_product_ratings_index(1) == []

    fake_shopify.product_metafields["gid://shopify/Product/1"] = "{not json"
    assert await shopify_client.get_product_ratings_index(1) == []


@pytest.mark.asyncio
async def test_ratings_index_ignores_non_list_values(shopify_client, fake_shopify):
    for raw in ("null", "{\"a\": 1}", "42", "\"\""):
        fake_shopify.product_metafields["gid://shopify/Product/1"] = raw
        assert await shopify_client.get_product_ratings_index(1) == [], raw

    fake_shopify.product_metafields["gid://shopify/Product/1"] = "[\"gid://shopify/Metaobject/1\", null, 7]"
    assert await shopify_client.get_product_ratings_index(1) == ["gid://shopify/Metaobject/1"]

    fake_shopify.product_metafields["gid://shopify/Product/1"] = "\"gid://shopify/Metaobject/2\""
    assert await shopify_client.get_product_ratings_index(1) == ["gid://shopify/Metaobject/2"]


@pytest.mark.asyncio
async def test_ratings_index_is_rewritten_whole(shopify_client, fake_shopify):
    fake_shopify.link(7, "gid://shopify/Metaobject/1")

    await shopify_client.set_product_ratings_index(7, ["gid://shopify/Metaobject/1", "gid://shopify/Metaobject/2"])

    assert fake_shopify.ratings_for(7) == ["gid://shopify/Metaobject/1", "gid://shopify/Metaobject/2"]
    _, variables = fake_shopify.requests[-1]
    assert variables["input"]["metafields"][0]["type"] == "list.metaobject_reference"


@pytest.mark.asyncio
async def test_status_update_is_sent_as_capability(shopify_client, fake_shopify):
    rating_id = fake_shopify.add_metaobject({"rating": "4"}, status="DRAFT")

    updated = await shopify_client.update_metaobject(rating_id, status="active")

    assert updated.status is ObjectStatus.ACTIVE
    _, variables = fake_shopify.requests[-1]
    assert variables["metaobject"] == {"capabilities": {"publishable": {"status": "ACTIVE"}}}
