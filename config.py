import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

import structlog
from dotenv import load_dotenv

from services.errors import ConfigurationError


@dataclass(frozen=True)
class Settings:
    store_domain: str
    access_token: str
    api_version: str = "2024-07"
    cors_origins: List[str] = field(default_factory=list)
    port: int = 3001
    app_env: str = "development"
    timeout_seconds: float = 15.0
    max_retries: int = 2
    log_level: str = "INFO"
    mongo_url: Optional[str] = None

    @property
    def graphql_endpoint(self) -> str:
        return f"https://{self.store_domain}/admin/api/{self.api_version}/graphql.json"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


def load_settings() -> Settings:
    # reads the .env file (if any) and refuses to continue without shopify credentials
    load_dotenv()
    store_domain = os.getenv("SHOPIFY_STORE_DOMAIN")
    access_token = os.getenv("SHOPIFY_ADMIN_API_ACCESS_TOKEN")
    if not store_domain or not access_token:
        raise ConfigurationError("Missing Shopify API credentials in environment")
    cors_origin = os.getenv("CORS_ORIGIN", "")
    return Settings(
        store_domain=store_domain,
        access_token=access_token,
        api_version=os.getenv("SHOPIFY_API_VERSION") or "2024-07",
        cors_origins=[origin.strip() for origin in cors_origin.split(",") if origin.strip()],
        port=int(os.getenv("PORT", "3001")),
        app_env=os.getenv("APP_ENV", "development"),
        timeout_seconds=float(os.getenv("SHOPIFY_TIMEOUT_SECONDS", "15")),
        max_retries=int(os.getenv("SHOPIFY_MAX_RETRIES", "2")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        mongo_url=os.getenv("MONGO_DB_URL") or None,
    )


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level, logging.INFO)
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.is_production
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
