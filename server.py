from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog
import uvicorn
from config import Settings, configure_logging, load_settings
from microservices.rate_limiter import create_review_limiter, general_limiter
from mongomanager import ReviewMirror, create_mirror
from routes.review_route import RateLimitExceeded, router as review_router
from services.errors import RemoteTransportError, RemoteValidationError, ValidationError
from services.shopify_client import ShopifyClient

logger = structlog.get_logger(__name__)


def failure(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})


def register_exception_handlers(app: FastAPI, settings: Settings):
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"] if part != "body")
            errors.append(f"{location}: {error['msg']}" if location else error["msg"])
        return failure(400, "Validation error", errors=errors)

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        return failure(400, exc.message, errors=exc.errors)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        response = failure(429, exc.message)
        response.headers["Retry-After"] = str(exc.retry_after)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # routes chain the remote failure, its message is part of the contract
        cause = exc.__cause__
        if isinstance(cause, (RemoteValidationError, RemoteTransportError)):
            return failure(exc.status_code, str(exc.detail), error=str(cause))
        return failure(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path)
        if settings.is_production:
            return failure(500, "Internal server error")
        return failure(500, "Internal server error", error=str(exc))


def create_app(settings: Optional[Settings] = None, shopify_client: Optional[ShopifyClient] = None,
               review_mirror: Optional[ReviewMirror] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if shopify_client is None:
            await app.state.shopify_client.aclose()
        if app.state.review_mirror is not None:
            app.state.review_mirror.close()

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.shopify_client = shopify_client or ShopifyClient(settings)
    app.state.review_mirror = review_mirror if review_mirror is not None else create_mirror(settings.mongo_url)
    app.state.create_limiter = create_review_limiter()
    app.state.general_limiter = general_limiter()

    app.include_router(review_router)
    register_exception_handlers(app, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def connection():
        return {"message": "Shopify Review Backend is running!"}

    @app.get("/health")
    def health():
        return {"success": True, "message": "OK"}

    logger.info("Review proxy configured", store=settings.store_domain,
                api_version=settings.api_version, cors_origins=settings.cors_origins)
    return app


if __name__ == "__main__":
    settings = load_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
