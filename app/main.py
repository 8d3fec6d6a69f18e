import logging
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from app.config import settings
from app.core.errors import error_body, register_error_handlers
from app.core.request_id import RequestIDMiddleware
from app.database.supabase_client import SupabaseClient
from app.modules.users import routes as users_routes
from app.modules.projects import routes as projects_routes
from app.modules.members import routes as members_routes
from app.modules.tasks import routes as tasks_routes
from app.modules.dashboard import routes as dashboard_routes
from app.modules.calendar import routes as calendar_routes
from app.modules.ai import routes as ai_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit],
    enabled=settings.rate_limit_enabled,
)
app = FastAPI(
    title=settings.app_name,
    redirect_slashes=False,
)
app.state.limiter = limiter
register_error_handlers(app)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    logger.warning("Rate limit exceeded for %s: %s", get_remote_address(request), exc.detail)
    return JSONResponse(
        status_code=429,
        content=error_body(request, "Too many requests from this IP, please try again later."),
    )


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"Referrer-Policy", b"no-referrer"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


app.add_middleware(SlowAPIMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestIDMiddleware)

# Include module routes
app.include_router(users_routes.router, prefix="/api")
app.include_router(projects_routes.router, prefix="/api")
app.include_router(members_routes.router, prefix="/api")
app.include_router(tasks_routes.router, prefix="/api")
app.include_router(dashboard_routes.router, prefix="/api")
app.include_router(calendar_routes.router, prefix="/api")
app.include_router(ai_routes.router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup (environment: %s)", settings.node_env)
    if not settings.email_configured:
        logger.warning("EMAIL_USER/EMAIL_PASSWORD not set; invitation emails will not be sent")


@app.on_event("shutdown")
async def shutdown_event():
    SupabaseClient.reset_client()
    logger.info("Application shutdown")


@app.get("/health")
@limiter.exempt
async def health(request: Request):
    return {
        "ok": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=settings.port,
        timeout_keep_alive=settings.request_timeout_seconds,
    )
