"""
main.py

Application entrypoint for the Campus Cart API.
- Initializes structured logging
- Sets up FastAPI application, lifespan and middlewares
- Registers all API routers and the push channel
- Integrates rate limiting via SlowAPI
- Adds common security headers
- Configures sessions and CORS
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.sessions import SessionMiddleware
from starlette.responses import Response

from campuscart.core.config import settings
from campuscart.core.exceptions import register_exception_handlers
from campuscart.core.limiter import limiter
from campuscart.core.logging import init_logging
from campuscart.database.init_db import init_db
from campuscart.database.session import engine
from campuscart.messaging.manager import registry
from campuscart.messaging.routes import router as messaging_router
from campuscart.messaging.websocket import router as websocket_router
from campuscart.products.routes import router as products_router
from campuscart.users.routes import router as users_router

init_logging()
logger = logging.getLogger(__name__)


# -----------------------------
# Lifespan
# -----------------------------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if settings.AUTO_CREATE_TABLES:
        await init_db()
    logger.info(f"[STARTUP] {settings.APP_NAME} ready")
    yield
    # Live connections are process-local; finish in-flight pushes and let them go.
    await registry.drain()
    logger.info(f"[SHUTDOWN] Dropping {len(registry)} live connections")
    registry.clear()
    await engine.dispose()
    logger.info(f"[SHUTDOWN] {settings.APP_NAME} stopped")


# -----------------------------
# FastAPI App Initialization
# -----------------------------
app = FastAPI(title=f"{settings.APP_NAME} API", lifespan=lifespan)

# -----------------------------
# Middleware Configuration
# -----------------------------
app.state.limiter = limiter


async def rate_limit_exceeded_handler(request: Request, exc: Exception) -> Response:
    return _rate_limit_exceeded_handler(request, exc)  # type: ignore[arg-type]


app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
register_exception_handlers(app)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    SessionMiddleware, secret_key=settings.SECRET_KEY, max_age=settings.SESSION_MAX_AGE
)


# -----------------------------
# Security Headers Middleware
# -----------------------------
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add common security headers to responses.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response


app.add_middleware(SecurityHeadersMiddleware)

# -----------------------------
# CORSMiddleware Configuration
# -----------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------
# API Router Registration
# -----------------------------
app.include_router(users_router)
app.include_router(products_router)
app.include_router(messaging_router)
app.include_router(websocket_router)
