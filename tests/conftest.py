import httpx
import pytest
from fastapi.testclient import TestClient

from config import Settings
from fake_shopify import FakeShopify
from server import create_app
from services.shopify_client import ShopifyClient


@pytest.fixture()
def settings():
    return Settings(
        store_domain="review-proxy-test.myshopify.com",
        access_token="shpat_test_token",
        api_version="2024-07",
        max_retries=0,
        app_env="test",
    )


@pytest.fixture()
def fake_shopify():
    return FakeShopify()


@pytest.fixture()
def shopify_client(settings, fake_shopify):
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake_shopify.handler))
    return ShopifyClient(settings, http_client=http)


@pytest.fixture()
def app(settings, shopify_client):
    return create_app(settings, shopify_client=shopify_client)


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def submission_payload():
    return {
        "productId": 8123456789,
        "rating": 5,
        "title": "Fits perfectly",
        "body": "Great fabric and the size guide was spot on.",
        "authorName": "Sam Rivera",
        "authorEmail": "sam@example.com",
        "isVerifiedBuyer": True,
        "ageRange": "25-34",
        "sizePurchased": "M",
        "fitRating": 4,
        "shippingRating": 5,
        "recommendsProduct": True,
    }
