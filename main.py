from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.database import engine, Base, get_db
from app.core.exceptions import AttendanceError
from app.core.redis import get_redis, close_redis
from app.api.routes import attendance
import logging

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Clock-in/clock-out sessions, daily break quota and overtime accounting"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(attendance.router, prefix="/api")


@app.exception_handler(AttendanceError)
async def attendance_error_handler(request: Request, exc: AttendanceError):
    """Report attendance conflicts verbatim to the caller."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code}
    )


# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    logger.info("Starting up...")
    if settings.STATUS_CACHE_ENABLED:
        try:
            redis = await get_redis()
            await redis.ping()
            logger.info("✅ Redis connected")
        except RedisError as e:
            logger.warning(f"⚠️ Redis connection failed, status cache will fall back to database: {e}")

    logger.info("✅ Application started")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Shutting down...")
    await close_redis()
    logger.info("✅ Application stopped")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Attendance Time Accounting API",
        "version": settings.APP_VERSION,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint."""
    try:
        db.execute(text("SELECT 1"))
        database_status = "connected"
    except SQLAlchemyError:
        database_status = "disconnected"

    redis_status = "disabled"
    if settings.STATUS_CACHE_ENABLED:
        try:
            redis = await get_redis()
            redis_status = "connected" if await redis.ping() else "disconnected"
        except RedisError:
            redis_status = "disconnected"

    return {
        "status": "healthy" if database_status == "connected" else "degraded",
        "database": database_status,
        "redis": redis_status,
        "version": settings.APP_VERSION
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
