from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
from starlette.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.orm.exc import StaleDataError
from rentalops.api import auth, bookings, cards, quotes, rates
from rentalops.core.config import settings
from rentalops.core.exceptions import RentalOpsError
from rentalops.core.redis import init_redis, close_redis, get_redis
from rentalops.core.metrics import request_count, request_duration, db_connected, redis_connected, get_metrics_text
import rentalops.db.base  # noqa: F401  registers every model on Base.metadata
import time
import logging

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        try:
            response = await call_next(request)
            duration = time.time() - start_time

            request_count.labels(
                method=request.method,
                endpoint=request.url.path,
                status=response.status_code
            ).inc()

            request_duration.labels(
                method=request.method,
                endpoint=request.url.path
            ).observe(duration)

            return response
        except Exception:
            duration = time.time() - start_time
            request_count.labels(
                method=request.method,
                endpoint=request.url.path,
                status=500
            ).inc()
            request_duration.labels(
                method=request.method,
                endpoint=request.url.path
            ).observe(duration)
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting...")

    logger.info("Initializing Redis connection...")
    try:
        await init_redis()
        redis_connected.set(1)
        logger.info("Redis connected")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        redis_connected.set(0)

    db_connected.set(1)

    yield

    logger.info("Application shutting down...")
    await close_redis()
    redis_connected.set(0)
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    lifespan=lifespan
)

app.add_middleware(MetricsMiddleware)

app.include_router(auth.router)
app.include_router(quotes.router)
app.include_router(cards.router)
app.include_router(bookings.router)
app.include_router(rates.router)


@app.exception_handler(RentalOpsError)
async def rental_ops_error_handler(request: Request, exc: RentalOpsError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    logger.warning(f"Concurrent update rejected on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=409,
        content={"detail": "Booking was modified by another request; reload and retry"},
    )


@app.get("/metrics", tags=["monitoring"])
async def metrics():
    return Response(
        content=get_metrics_text(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )


@app.get("/health", tags=["monitoring"])
async def health_check():
    redis = get_redis()
    redis_healthy = redis is not None

    return {
        "status": "healthy",
        "service": settings.API_TITLE,
        "version": settings.API_VERSION,
        "dependencies": {
            "redis": "connected" if redis_healthy else "disconnected",
            "database": "connected"
        }
    }


@app.get("/readiness", tags=["monitoring"])
async def readiness_check():
    if get_redis() is None:
        return JSONResponse(status_code=503, content={"ready": False, "reason": "Redis not available"})

    return {
        "ready": True,
        "service": settings.API_TITLE
    }


@app.get("/", tags=["root"])
async def root():
    return {
        "message": settings.API_TITLE,
        "version": settings.API_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics"
    }
