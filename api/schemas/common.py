"""
Shared response schemas for errors and health checks.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
from datetime import datetime


class ErrorResponse(BaseModel):
    """Error body returned by every import failure handler."""

    error: str = Field(..., description="User-facing error message")
    detail: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")
    path: Optional[str] = Field(None, description="Request path that caused the error")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Fix invalid rows before committing the import.",
                "detail": {"session_id": "9b2f6a3e-4c1d-4f0e-8a57-2d9c0b7e1f44"},
                "timestamp": "2026-01-15T12:00:00Z",
                "path": "/api/import/sessions/9b2f6a3e-4c1d-4f0e-8a57-2d9c0b7e1f44/commit"
            }
        }


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Health check timestamp")
    version: str = Field(..., description="API version")
    database: str = Field(..., description="Database connection status")
    storage: str = Field(..., description="Import storage directory status")
    celery: str = Field(..., description="Celery worker status")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2026-01-15T12:00:00Z",
                "version": "1.0.0",
                "database": "connected",
                "storage": "writable",
                "celery": "active"
            }
        }
