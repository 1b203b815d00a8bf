from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
import redis
import structlog
import time
import uvicorn

from donation_ledger.core.config import get_settings
from donation_ledger.core.circuit_breaker import db_circuit_breaker
from donation_ledger.database.database import engine, init_db, close_db
from donation_ledger.api.donation import router as donations_router
from donation_ledger.api.badge import router as badges_router
from donation_ledger.api.goal import router as goals_router
from donation_ledger.cache.redis import redis_cache
from donation_ledger.kafka.producer import ledger_event_producer
from donation_ledger.middleware.tracing import init_tracing
from donation_ledger.middleware.metrics import MetricsMiddleware, metrics_endpoint
from donation_ledger.middleware.logging import logging_middleware

# Setup structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)
settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Donation ledger with badge and association goal reconciliation",
    version="1.0.0",
    debug=settings.debug
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Must run before startup events
init_tracing(app)

app.add_middleware(MetricsMiddleware)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Logging middleware with trace correlation"""
    return await logging_middleware(request, call_next)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        method=request.method,
        url=str(request.url)
    )

    return JSONResponse(
        status_code=500,
        content={
            "message": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup"""
    logger.info("Starting Donation Ledger Service", service_name=settings.service_name)

    try:
        await init_db()

        try:
            redis_cache.init_redis()
        except ConnectionError as redis_error:
            logger.warning("Failed to initialize Redis cache", error=str(redis_error))
            logger.info("Goal progress will be computed without cache")

        if settings.kafka_enabled:
            try:
                await ledger_event_producer.start()
            except Exception as kafka_error:
                logger.warning("Kafka producer not started, ledger events disabled", error=str(kafka_error))

        logger.info("Application startup completed successfully")
    except Exception as e:
        logger.error("Failed to initialize application", error=str(e))
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown"""
    logger.info("Shutting down Donation Ledger Service")

    try:
        await ledger_event_producer.stop()
        redis_cache.close()
        await close_db()
        logger.info("Application shutdown completed successfully")
    except Exception as e:
        logger.error("Error during application shutdown", error=str(e))


@app.get("/health")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": settings.service_name,
        "timestamp": time.time()
    }


@app.get("/metrics")
async def metrics(request: Request):
    """Prometheus metrics endpoint"""
    return await metrics_endpoint(request)


@app.get("/health/ready")
async def readiness_check():
    """Readiness check with database, cache, event producer and circuit breaker status"""
    health_status = {
        "status": "ready",
        "service": settings.service_name,
        "timestamp": time.time(),
        "database": "disconnected",
        "cache": "not_initialized",
        "events": "started" if ledger_event_producer.started else "disabled",
        "circuit_breaker": db_circuit_breaker.get_state()
    }

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as db_e:
        logger.warning("Database health check failed", error=str(db_e))
        health_status["database"] = f"error: {str(db_e)}"

    if redis_cache.redis_client is not None:
        try:
            redis_cache.redis_client.ping()
            health_status["cache"] = "connected"
        except redis.RedisError as cache_e:
            logger.warning("Cache health check failed", error=str(cache_e))
            health_status["cache"] = f"error: {str(cache_e)}"

    # The cache and the event stream are optional; only the store gates readiness
    if health_status["database"] != "connected":
        health_status["status"] = "not ready"
        return JSONResponse(status_code=503, content=health_status)

    return health_status


app.include_router(donations_router)
app.include_router(badges_router)
app.include_router(goals_router)


if __name__ == "__main__":
    uvicorn.run(
        "donation_ledger.main:app",
        host="0.0.0.0",
        port=8004,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug"
    )
