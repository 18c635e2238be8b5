import asyncio
import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config
from .auth import get_password_hash
from .crud import get_user_by_username
from .database import SessionLocal, init_db
from .errors import InternalError, StorefrontError, ValidationError
from .migrations import backfill_original_price
from .models import User
from .routers import (
    admin_router,
    cart_router,
    category_router,
    content_router,
    favorite_router,
    notification_router,
    order_router,
    product_router,
    user_router,
)

config.configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="ChocoCraft API",
    description="Storefront backend for the ChocoCraft chocolate shop",
    version=config.APP_VERSION
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_HTTP_KINDS = {
    401: "Unauthorized",
    403: "PermissionDenied",
    404: "NotFound",
    405: "MethodNotAllowed",
}


# Handlers that enforce request.state.deadline inside their own transaction
_SELF_TIMED = {("POST", "/api/orders")}


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    request.state.deadline = time.monotonic() + config.REQUEST_TIMEOUT_SECONDS
    try:
        if (request.method, request.url.path) in _SELF_TIMED:
            response = await call_next(request)
        else:
            response = await asyncio.wait_for(call_next(request), timeout=config.REQUEST_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.error(
            "%s %s timed out after %ss", request.method, request.url.path, config.REQUEST_TIMEOUT_SECONDS
        )
        return JSONResponse(status_code=500, content=InternalError("Request timed out").to_dict())

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = first.get("loc") or ("body",)
    field = str(loc[-1])
    error = ValidationError(f"{field}: {first.get('msg', 'invalid value')}", field=field)
    logger.warning("Invalid request to %s %s: %s", request.method, request.url.path, error.message)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "kind": _HTTP_KINDS.get(exc.status_code, "HTTPError")},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=InternalError("Internal server error").to_dict())


# Include routers
app.include_router(user_router.router)
app.include_router(admin_router.router)
app.include_router(product_router.router)
app.include_router(category_router.router)
app.include_router(category_router.special_router)
app.include_router(category_router.public_router)
app.include_router(cart_router.router)
app.include_router(favorite_router.router)
app.include_router(order_router.router)
app.include_router(notification_router.router)
app.include_router(content_router.router)


def init_admin_user(db) -> None:
    """Create the bootstrap admin from ADMIN_USERNAME / ADMIN_PASSWORD."""
    if not config.ADMIN_USERNAME or not config.ADMIN_PASSWORD:
        logger.info("ADMIN_USERNAME/ADMIN_PASSWORD not set; skipping admin bootstrap")
        return

    admin_user = get_user_by_username(db, username=config.ADMIN_USERNAME)
    if not admin_user:
        admin_user = User(
            username=config.ADMIN_USERNAME,
            email=config.ADMIN_EMAIL,
            hashed_password=get_password_hash(config.ADMIN_PASSWORD),
            is_admin=True
        )
        db.add(admin_user)
        db.commit()
        logger.info("Admin user %s created", config.ADMIN_USERNAME)
    elif not admin_user.is_admin:
        # Ensure admin user has is_admin=True
        admin_user.is_admin = True
        db.commit()
        logger.info("Admin user %s promoted", config.ADMIN_USERNAME)


@app.on_event("startup")
def startup_event() -> None:
    init_db()
    db = SessionLocal()
    try:
        init_admin_user(db)
        backfill_original_price(db)
    finally:
        db.close()


@app.get("/")
def root():

    return {
        "service": config.APP_NAME,
        "status": "running",
        "version": config.APP_VERSION
    }


@app.get("/health")
def health_check():

    return {
        "status": "healthy",
        "service": "chococraft-api"
    }
