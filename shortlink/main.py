from contextlib import asynccontextmanager
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shortlink.core.config import settings
from shortlink.core.errors import NotFound, ShortLinkError
from shortlink.core.logging_config import configure_logging
from shortlink.db.Connection import database
from shortlink.db.Models import models
from shortlink.db.repository import ensure_counter
from shortlink.api import admin, shortener
from shortlink.api.dependencies import reset_url_service
from shortlink.RateLimitHelper import build_rate_limiter, check_rate_limit, is_rate_limited_path

logger = configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Application '{settings.PROJECT_NAME}' starting up.")
    models.Base.metadata.create_all(bind=database.engine)
    with database.SessionLocal() as db:
        ensure_counter(db)
    logger.info("Database models initialized/checked.")
    database.verify_redis_connection()
    app.state.rate_limiter.start()
    yield
    logger.info("Shutting down gracefully...")
    app.state.rate_limiter.stop()
    reset_url_service()
    database.engine.dispose()
    database.redis_client.close()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="URL shortener with cache-aside resolution and click analytics",
    lifespan=lifespan,
)
app.state.rate_limiter = build_rate_limiter()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    if not is_rate_limited_path(request):
        return await call_next(request)

    denied = check_rate_limit(request.app.state.rate_limiter, request)
    if denied is not None:
        return denied
    return await call_next(request)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s %d %.1fms",
        request.method, request.url.path, response.status_code, (time.perf_counter() - start) * 1000,
    )
    return response


@app.exception_handler(ShortLinkError)
async def shortlink_error_handler(request: Request, exc: ShortLinkError):
    if not isinstance(exc, NotFound):
        logger.warning(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health", tags=["health"])
def health_check():
    return {"status": "healthy", "service": "url-shortener"}


@app.get("/ready", tags=["health"])
def readiness_check():
    details = {
        "db": "ok" if database.verify_database_connection() else "error",
        "redis": "ok" if database.verify_redis_connection() else "error",
    }
    ready = all(v == "ok" for v in details.values())
    return JSONResponse(status_code=200 if ready else 503, content={"ready": ready, "details": details})


app.include_router(shortener.router)
app.include_router(admin.router, prefix="/api/v1")
# Catch-all redirect route goes last so it cannot shadow the routes above
app.include_router(shortener.redirect_router)
