"""
Dependency injection utilities for FastAPI.

This module provides reusable dependencies for database sessions,
actor identity, services and upload checks.
"""

import logging
from typing import Generator, Optional
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from fastapi import Depends, HTTPException, Header, Request, status

from api.config import settings
from services.audit_service import ActorContext
from services.license_status import ThresholdSettingsProvider
from services.storage_service import StorageService

logger = logging.getLogger(__name__)


def _engine_kwargs(database_url: str) -> dict:
    """Pool options for server databases; SQLite gets thread sharing instead."""
    if database_url.startswith('sqlite'):
        return {'connect_args': {'check_same_thread': False}, 'echo': settings.DEBUG}
    return {
        'pool_size': settings.DB_POOL_SIZE,
        'max_overflow': settings.DB_MAX_OVERFLOW,
        'pool_pre_ping': settings.DB_POOL_PRE_PING,
        'echo': settings.DEBUG
    }


# Create database engine
engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Get database session dependency.

    Yields database session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_api_key(
    x_api_key: str = Header(None, alias=settings.API_KEY_HEADER)
) -> str:
    """
    Validate API key from header.

    Raises:
        HTTPException: If API key auth is enabled and the key is missing
    """
    if not settings.ENABLE_API_KEY_AUTH:
        # API key auth disabled - allow all requests
        return "public"

    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required",
            headers={"WWW-Authenticate": "ApiKey"}
        )

    return x_api_key


def get_actor(
    request: Request,
    api_key: str = Depends(get_api_key),
    x_user_id: Optional[str] = Header(None, alias=settings.USER_ID_HEADER),
    x_user_email: Optional[str] = Header(None, alias=settings.USER_EMAIL_HEADER),
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-Id")
) -> ActorContext:
    """
    Build the acting user's context from request headers.

    Authentication happens upstream; the user id falls back to the API key
    identity when no user header is sent.
    """
    return ActorContext(
        user_id=x_user_id or api_key,
        email=x_user_email or '',
        ip_address=request.client.host if request.client else None,
        correlation_id=x_correlation_id
    )


def get_storage_service() -> StorageService:
    """Storage for uploaded import files."""
    return StorageService(settings.IMPORT_STORAGE_DIR)


def get_threshold_provider() -> ThresholdSettingsProvider:
    """System-wide expiry thresholds from configuration."""
    return ThresholdSettingsProvider(
        settings.COMPLIANCE_CRITICAL_DAYS,
        settings.COMPLIANCE_WARNING_DAYS
    )


def verify_file_size(file_size: int) -> bool:
    """
    Verify uploaded file size is within limit.

    Raises:
        HTTPException: If file is too large
    """
    if not StorageService.validate_file_size(file_size, settings.MAX_FILE_SIZE_MB):
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File size ({file_size / 1024 / 1024:.1f} MB) exceeds maximum allowed "
                   f"({settings.MAX_FILE_SIZE_MB} MB)"
        )

    return True


def verify_file_extension(filename: str) -> bool:
    """
    Verify file has allowed extension.

    Raises:
        HTTPException: If extension is not allowed
    """
    if not StorageService.validate_file_extension(filename, settings.ALLOWED_EXTENSIONS):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File '{filename}' is not allowed. "
                   f"Allowed extensions: {', '.join(settings.ALLOWED_EXTENSIONS)}"
        )

    return True


def verify_content_type(content_type: Optional[str]) -> bool:
    """
    Verify the upload's declared content type.

    Raises:
        HTTPException: If the content type is not allowed
    """
    if not StorageService.validate_content_type(content_type, settings.ALLOWED_CONTENT_TYPES):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Content type '{content_type}' not allowed. "
                   f"Allowed types: {', '.join(settings.ALLOWED_CONTENT_TYPES)}"
        )

    return True
