"""
Import-related Pydantic schemas.

This module contains schemas for import session and import row responses.
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field


class ImportSessionStatusEnum(str, Enum):
    """Import session status values."""
    PENDING = 'Pending'
    COMMITTED = 'Committed'
    CANCELLED = 'Cancelled'


class ImportRowActionEnum(str, Enum):
    """Import row classification values."""
    NEW = 'New'
    UPDATE = 'Update'
    INVALID = 'Invalid'


class RowFilterEnum(str, Enum):
    """Row preview filter values."""
    ALL = 'All'
    VALID = 'Valid'
    INVALID = 'Invalid'
    NEW = 'New'
    UPDATE = 'Update'


class ImportSessionResponse(BaseModel):
    """Summary of an import session."""

    id: UUID = Field(..., description="Import session ID")
    created_at: datetime = Field(..., description="Session creation time (UTC)")
    created_by_user_id: str = Field(..., description="Uploading user")
    status: ImportSessionStatusEnum = Field(..., description="Session status")
    original_filename: str = Field(..., description="Uploaded filename")
    total_rows: int = Field(..., description="Data rows in the file")
    valid_rows: int = Field(..., description="Rows that passed validation")
    invalid_rows: int = Field(..., description="Rows with errors")
    new_licenses: int = Field(..., description="Licenses to be (or that were) created")
    updated_licenses: int = Field(..., description="Licenses to be (or that were) updated")
    new_categories: int = Field(..., description="Categories to be (or that were) created")
    completed_at: Optional[datetime] = Field(None, description="Commit or cancel time (UTC)")

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": "4f1c6f1e-6a77-4a7e-9d1b-0f7f5d3c2a10",
                "created_at": "2026-01-15T12:00:00",
                "created_by_user_id": "jdoe",
                "status": "Pending",
                "original_filename": "licenses.csv",
                "total_rows": 3,
                "valid_rows": 2,
                "invalid_rows": 1,
                "new_licenses": 1,
                "updated_licenses": 1,
                "new_categories": 0,
                "completed_at": None
            }
        }


class ImportRowResponse(BaseModel):
    """One classified row of an import session."""

    row_number: int = Field(..., description="1-based data row number")
    license_id: Optional[UUID] = Field(None, description="LicenseId parsed from the file")
    resolved_license_id: Optional[UUID] = Field(None, description="License the row creates or updates")
    license_id_raw: Optional[str] = Field(None, description="LicenseId as written in the file")
    license_name: str = Field(..., description="License name")
    category_name: str = Field(..., description="Category name")
    vendor: Optional[str] = Field(None, description="Vendor")
    seats_purchased: Optional[int] = Field(None, description="Seats purchased")
    seats_assigned: Optional[int] = Field(None, description="Seats assigned")
    expires_on: Optional[date] = Field(None, description="Expiry date")
    notes: Optional[str] = Field(None, description="Notes")
    is_valid: bool = Field(..., description="Whether the row passed validation")
    action: ImportRowActionEnum = Field(..., description="New, Update or Invalid")
    error_message: Optional[str] = Field(None, description="Validation messages")

    class Config:
        from_attributes = True


class ImportSessionDetail(ImportSessionResponse):
    """Import session with its rows."""

    rows: List[ImportRowResponse] = Field(default_factory=list, description="Rows in file order")


class ImportSessionListResponse(BaseModel):
    """Paginated list of import sessions."""

    total: int = Field(..., description="Total number of sessions")
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Items per page")
    total_pages: int = Field(..., description="Total number of pages")
    items: List[ImportSessionResponse] = Field(..., description="Sessions on this page")


class ImportRowListResponse(BaseModel):
    """Filtered rows of one import session."""

    session_id: UUID = Field(..., description="Import session ID")
    filter: RowFilterEnum = Field(..., description="Applied filter")
    total: int = Field(..., description="Number of rows returned")
    items: List[ImportRowResponse] = Field(..., description="Rows in file order")
