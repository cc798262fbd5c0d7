"""
Attendance & Leave Service - Main Application Entry Point.

This service handles daily presence and absence accounting:
- Check-in/Check-out with photo evidence inside the office window
- Lazy auto-stop of sessions left open after office hours
- Leave applications with overlap detection and yearly balances
- Best-effort Kafka events for audit and downstream consumers
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.api.routes.attendance import router as attendance_router
from app.api.routes.leaves import router as leaves_router
from app.core.cache import RedisClient
from app.core.config import settings
from app.core.database import create_db_and_tables, engine
from app.core.errors import ErrorKind, InternalError, ServiceError
from app.core.handlers import register_employee_handlers
from app.core.kafka import KafkaConsumer, KafkaProducer
from app.core.logging import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Create tables and start the Redis and Kafka clients; stop them on shutdown."""
    logger.info("Starting Attendance & Leave Service...")

    create_db_and_tables()
    logger.info("Database schema is up to date")

    if settings.RATE_LIMIT_BACKEND == "redis":
        logger.info("Initializing Redis client...")
        if RedisClient.ping():
            logger.info("Redis client connected successfully")
        else:
            logger.warning("Redis connection failed, rate limiting requests will error")

    await KafkaProducer.start()

    # Register Kafka event handlers before the consumer subscribes
    register_employee_handlers()
    await KafkaConsumer.start()

    logger.info("Attendance & Leave Service startup complete")

    yield

    logger.info("Attendance & Leave Service shutting down...")
    await KafkaConsumer.stop()
    await KafkaProducer.stop()
    RedisClient.close()
    logger.info("Attendance & Leave Service shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Attendance & Leave Service for HRMS - Tracks daily check-in/out and leave applications",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "kind": ErrorKind.VALIDATION_ERROR.value,
            "message": "Request validation failed",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=InternalError("Internal server error").to_dict(),
    )


app.include_router(attendance_router, prefix="/api/v1")
app.include_router(leaves_router, prefix="/api/v1")


@app.get("/health", tags=["health"])
async def health_check():
    """Liveness probe."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@app.get("/ready", tags=["health"])
async def readiness_check():
    """Readiness probe: database, plus Redis and the Kafka producer when they are in use."""
    checks = {}

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        logger.warning(f"Database readiness check failed: {e}")
        checks["database"] = "error"

    if settings.RATE_LIMIT_BACKEND == "redis":
        checks["redis"] = "ok" if RedisClient.ping() else "error"

    if settings.KAFKA_ENABLED:
        checks["kafka_producer"] = "ok" if KafkaProducer._started else "error"

    all_ready = all(value == "ok" for value in checks.values())
    return {"status": "ready" if all_ready else "not_ready", "checks": checks}


@app.get("/", tags=["root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
    }
