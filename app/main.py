"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from app.api.common.auth_router import router as auth_router
from app.api.v1.conversation_router import router as conversation_router
from app.api.v1.message_router import router as message_router
from app.api.v1.request_router import router as request_router
from app.api.v1.users_router import router as users_router
from app.api.ws.chat_socket import router as chat_socket_router
from app.core.config import settings
from app.core.database import Base, async_session_factory, engine
from app.core.exceptions import (
    AppException,
    app_exception_handler,
    validation_exception_handler,
)
from app.core.logging import configure_logging
from app.core.middleware import AuthMiddleware
from app.core.redis import close_redis, init_redis
from app.schemas.response_schema import ApiResponse, success_response
from app.services.realtime_hub import RealtimeHub

configure_logging()
logger = structlog.get_logger()

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info(
        "Starting application",
        app_name=settings.app.name,
        environment=settings.app.env,
        websocket_path=settings.chat.websocket_path,
    )
    await init_redis()
    if settings.app.is_development:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    yield
    await app.state.hub.shutdown()
    await close_redis()
    await engine.dispose()
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.app.name,
    description="Direct messaging backend with real-time delivery over websockets",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=settings.app.debug,
)

app.state.hub = RealtimeHub.create(async_session_factory)

# Rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=settings.rate_limit.default_limits,
    enabled=settings.rate_limit.enabled,
)
app.state.limiter = limiter


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Custom handler for rate limit exceeded errors."""
    return JSONResponse(
        status_code=429,
        content={
            "status": 429,
            "message": "Too many requests, please try again later",
            "code": "RATE_LIMIT_EXCEEDED",
        },
    )


# Exception handlers
app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]
app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]

# Middleware (registration order: inner→outer, execution order: outer→inner)
app.add_middleware(AuthMiddleware)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.server.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", response_model=ApiResponse[dict])
async def health_check() -> dict:
    """Health check endpoint."""
    return success_response(
        {
            "status": "healthy",
            "connections": len(app.state.hub.registry),
        }
    )


@app.get("/", response_model=ApiResponse[dict])
async def root() -> dict:
    """Root endpoint."""
    return success_response(
        {
            "app": settings.app.name,
            "version": APP_VERSION,
            "docs": "/docs",
            "websocket": settings.chat.websocket_path,
        }
    )


# Register routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(request_router)
app.include_router(conversation_router)
app.include_router(message_router)
app.include_router(chat_socket_router)
