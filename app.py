"""
MediTrack Backend
Main FastAPI application for adherence tracking and adaptive reminders
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

# Configuration and database
from config import settings, engine_config
from database import init_db, close_db, DatabaseHealthCheck

from api import include_routers
from services.dose_service import DoseLogNotFoundError, InvalidDoseTransitionError
from services.medicine_service import MedicineNotFoundError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


# ==================== LIFESPAN ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown"""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENV}")

    try:
        init_db()
        logger.info("Database initialized successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    yield

    # Shutdown
    close_db()
    logger.info(f"Shutting down {settings.APP_NAME}")


# ==================== APP INITIALIZATION ====================

app = FastAPI(
    title=settings.APP_NAME,
    description="""
    ## MediTrack API

    Medication adherence tracking with adaptive reminders.

    ### Features
    - **Adherence Statistics**: Today, weekly and monthly rates plus stored daily rows
    - **Adaptive Reminders**: Reminder times shift to match when doses are actually taken
    - **Alerts**: Stock, repeated miss and low adherence alerts for caregivers and doctors
    - **Trends**: Improving, declining or stable adherence and home screen suggestions
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Attach modular API routers
include_routers(app, prefix=settings.API_PREFIX)


# ==================== EXCEPTION HANDLERS ====================

def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "message": message,
            "status_code": status_code,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(exc.status_code, exc.detail)


@app.exception_handler(DoseLogNotFoundError)
@app.exception_handler(MedicineNotFoundError)
async def not_found_handler(request: Request, exc: LookupError):
    return error_response(status.HTTP_404_NOT_FOUND, str(exc))


@app.exception_handler(InvalidDoseTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidDoseTransitionError):
    return error_response(status.HTTP_409_CONFLICT, str(exc))


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return error_response(status.HTTP_400_BAD_REQUEST, str(exc))


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error: {exc}")
    return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Database unavailable")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred" if not settings.DEBUG else str(exc)
    )


# ==================== HEALTH ENDPOINTS ====================

@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - basic health check"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check endpoint"""
    db_connected = DatabaseHealthCheck.is_connected()

    return {
        "status": "healthy" if db_connected else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": {
                "status": "up" if db_connected else "down",
                "type": "sqlite" if "sqlite" in settings.DATABASE_URL else "postgresql"
            }
        },
        "config": {
            "low_adherence_threshold": engine_config.LOW_ADHERENCE_THRESHOLD,
            "min_days_for_adaptive": engine_config.MIN_DAYS_FOR_ADAPTIVE
        },
        "version": settings.APP_VERSION,
        "environment": settings.ENV
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
