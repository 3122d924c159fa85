"""
FastAPI application for the license import system.

This module creates and configures the FastAPI application, registering
all routers, middleware and exception handlers.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from api.config import settings
from api.dependencies import engine, SessionLocal
from api.routers import import_router
from api.schemas.common import ErrorResponse, HealthCheckResponse
from backend.models.schema import Base
from services.errors import (
    ImportPipelineError, ImportStructureError, ImportSessionNotFound,
    ImportPreconditionError, ImportCommitError
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT,
    handlers=[
        logging.FileHandler(settings.LOG_FILE),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.API_TITLE} v{settings.API_VERSION}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[-1]}")  # Hide credentials

    # Ensure database tables exist
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables verified")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")

    os.makedirs(settings.IMPORT_STORAGE_DIR, exist_ok=True)
    logger.info(f"Import storage directory: {settings.IMPORT_STORAGE_DIR}")

    yield

    # Shutdown
    logger.info("Shutting down application")


# Create FastAPI application
app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS
)


# Exception handlers

def _pipeline_error_response(request: Request, exc: ImportPipelineError, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=exc.message,
            detail={"message": exc.detail} if exc.detail else None,
            path=str(request.url)
        ).model_dump(mode='json')
    )


@app.exception_handler(ImportStructureError)
async def import_structure_handler(request: Request, exc: ImportStructureError):
    """Files that cannot be imported at all."""
    return _pipeline_error_response(request, exc, status.HTTP_400_BAD_REQUEST)


@app.exception_handler(ImportSessionNotFound)
async def import_not_found_handler(request: Request, exc: ImportSessionNotFound):
    return _pipeline_error_response(request, exc, status.HTTP_404_NOT_FOUND)


@app.exception_handler(ImportPreconditionError)
async def import_precondition_handler(request: Request, exc: ImportPreconditionError):
    """Session state does not allow the requested transition."""
    return _pipeline_error_response(request, exc, status.HTTP_409_CONFLICT)


@app.exception_handler(ImportCommitError)
async def import_commit_handler(request: Request, exc: ImportCommitError):
    """Commit rolled back. The store error is only exposed in debug mode."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error=exc.message,
            detail={"session_id": str(exc.session_id), "message": exc.detail} if settings.DEBUG else
                   {"session_id": str(exc.session_id)},
            path=str(request.url)
        ).model_dump(mode='json')
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail={"message": str(exc)} if settings.DEBUG else None,
            path=str(request.url)
        ).model_dump(mode='json')
    )


# Register routers with API prefix
app.include_router(import_router.router, prefix=settings.API_PREFIX)


# Root endpoints

@app.get('/', include_in_schema=False)
async def root():
    """
    Root endpoint - redirect to docs.
    """
    return {
        'message': f'Welcome to {settings.API_TITLE}',
        'version': settings.API_VERSION,
        'docs': '/docs',
        'redoc': '/redoc',
        'openapi': '/openapi.json'
    }


@app.get('/health', response_model=HealthCheckResponse, tags=['health'])
async def health_check():
    """
    Health check endpoint.

    Checks:
    - Database connectivity
    - Import storage directory is writable
    - Celery workers (maintenance tasks)

    **Example:**
    ```bash
    curl http://localhost:8000/health
    ```
    """
    health_status = {
        'status': 'healthy',
        'timestamp': datetime.utcnow(),
        'version': settings.API_VERSION,
        'database': 'unknown',
        'storage': 'unknown',
        'celery': 'unknown'
    }

    # Check database
    try:
        with SessionLocal() as session:
            session.execute(text('SELECT 1'))
        health_status['database'] = 'connected'
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status['database'] = 'disconnected'
        health_status['status'] = 'unhealthy'

    # Check storage
    if os.path.isdir(settings.IMPORT_STORAGE_DIR) and os.access(settings.IMPORT_STORAGE_DIR, os.W_OK):
        health_status['storage'] = 'writable'
    else:
        health_status['storage'] = 'unavailable'
        health_status['status'] = 'unhealthy'

    # Check Celery workers
    try:
        from tasks.celery_app import celery_app

        inspect = celery_app.control.inspect(timeout=1.0)
        active_workers = inspect.active()

        if active_workers and len(active_workers) > 0:
            health_status['celery'] = f'active ({len(active_workers)} workers)'
        else:
            # Only maintenance runs on workers; imports still work without them
            health_status['celery'] = 'no workers'
    except Exception as e:
        logger.error(f"Celery health check failed: {e}")
        health_status['celery'] = 'unknown'

    return HealthCheckResponse(**health_status)


@app.get('/api/ping', tags=['health'])
async def ping():
    """
    Simple ping endpoint for load balancers.

    **Returns:**
    ```json
    {"ping": "pong"}
    ```
    """
    return {'ping': 'pong'}


# Middleware for request logging

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests."""
    logger.info(f"{request.method} {request.url.path}")
    response = await call_next(request)
    logger.info(f"{request.method} {request.url.path} - {response.status_code}")
    return response


if __name__ == '__main__':
    import uvicorn

    uvicorn.run(
        'api.main:app',
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
        log_level=settings.LOG_LEVEL.lower()
    )
