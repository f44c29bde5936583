# hifz/backend/main.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import asyncio
import logging
import redis.asyncio as redis
import asyncpg
from apscheduler.schedulers.asyncio import AsyncIOScheduler as Scheduler
import uvicorn

from slowapi.errors import RateLimitExceeded

from .config.config import settings
from .api import auth, admin, attendance, classes, homework, realtime

from .db.db_client import AsyncPostgresClient
from .db.redis_client import RedisClient
from .logging.logging_config import setup_logging
from .realtime.hub import RealtimeHub
from .tasks.reconnect import PostgresConnector
from .tasks.seed_admin import ensure_default_admin

from .api.utilities.limiter import limiter

logger = logging.getLogger(__name__)


def _error_body(message: str, error: str = None) -> dict:
    body = {"success": False, "message": message}
    if error and not settings.is_production:
        body["error"] = error
    return body


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup and shutdown of the process-wide resources.
    """
    setup_logging()
    logger.info("Application starting...")

    if not settings.DATABASE_URL:
        raise RuntimeError("DATABASE_URL is not set; refusing to start without a database.")
    if not settings.SECRET_KEY:
        raise RuntimeError("SECRET_KEY is not set; tokens cannot be signed.")

    app.state.postgres_pool = None
    app.state.redis_pool = None
    relay_task = None

    async def on_connect(pool: asyncpg.Pool):
        app.state.postgres_pool = pool
        await ensure_default_admin(AsyncPostgresClient(pool=pool))

    scheduler = Scheduler()
    scheduler.start()
    app.state.scheduler = scheduler

    connector = PostgresConnector(dsn=settings.DATABASE_URL, scheduler=scheduler, on_connect=on_connect)
    app.state.connector = connector
    if not await connector.connect():
        connector.schedule_reconnect()

    if settings.APPLICATION_REDIS_URL:
        redis_pool = redis.ConnectionPool.from_url(settings.APPLICATION_REDIS_URL, decode_responses=True)
        app.state.redis_pool = redis_pool
        app.state.hub.attach_relay(RedisClient(pool=redis_pool))
        relay_task = asyncio.create_task(app.state.hub.run_relay_listener())
        logger.info("Realtime events relayed through Redis.")
    else:
        logger.info("APPLICATION_REDIS_URL not set, realtime events stay in this process.")

    yield

    logger.info("Application shutting down...")
    if relay_task is not None:
        relay_task.cancel()
        try:
            await relay_task
        except asyncio.CancelledError:
            pass
    scheduler.shutdown(wait=False)
    logger.info("Scheduler stopped.")
    await connector.close()
    if app.state.redis_pool is not None:
        await app.state.redis_pool.disconnect()
        logger.info("Redis connection pool closed.")


app = FastAPI(
    title="Hifz Tracker API",
    description="Quran memorization tracking: accounts, classes, assignments and realtime notifications.",
    version="1.0.0",
    lifespan=lifespan
)

app.state.limiter = limiter
app.state.hub = RealtimeHub()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Envelope error handlers ---

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = "Route not found" if exc.status_code == 404 and exc.detail == "Not Found" else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(message, getattr(exc, "error", None)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(status_code=429, content=_error_body("Too many requests, please try again later.", str(exc.detail)))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content=_error_body(message, str(errors)))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content=_error_body("Something went wrong!", str(exc)))


# API routers
app.include_router(auth.router, prefix="/api")
app.include_router(admin.router, prefix="/api")
app.include_router(attendance.router, prefix="/api")
app.include_router(classes.router, prefix="/api")
app.include_router(homework.router, prefix="/api")
app.include_router(realtime.router)


@app.get("/health", tags=["System"])
@app.get("/api/health", tags=["System"], include_in_schema=False)
def health_check():
    """Liveness probe; never touches the database."""
    return {
        "success": True,
        "message": "Hifz Tracker API is running",
        "data": {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()},
    }


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
