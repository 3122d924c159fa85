"""
Import router - Upload, preview, commit and cancel license imports.

This module provides endpoints for uploading license CSV files into
Pending import sessions, reviewing their rows, and committing or
cancelling them.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, UploadFile, File, Depends, status, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from api.dependencies import (
    get_db, get_actor, get_storage_service, get_threshold_provider,
    verify_file_extension, verify_file_size, verify_content_type
)
from api.schemas.import_schema import (
    ImportSessionResponse, ImportSessionDetail, ImportSessionListResponse,
    ImportRowResponse, ImportRowListResponse, ImportSessionStatusEnum, RowFilterEnum
)
from services.audit_service import ActorContext
from services.commit_service import CommitService
from services.import_service import ImportService, RowFilter
from services.license_status import ThresholdSettingsProvider
from services.storage_service import StorageService

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix='/import', tags=['import'])

CSV_MEDIA_TYPE = 'text/csv'


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=CSV_MEDIA_TYPE,
        headers={'Content-Disposition': f'attachment; filename="{filename}"'}
    )


@router.post('/upload', response_model=ImportSessionResponse, status_code=status.HTTP_201_CREATED)
async def upload_import_file(
    file: UploadFile = File(..., description="License CSV file to import"),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    storage: StorageService = Depends(get_storage_service)
):
    """
    Upload a CSV file and build a Pending import session.

    The file is parsed, validated and classified against the current
    catalog synchronously. Nothing is written to the catalog until the
    session is committed.

    **Returns:**
    - 201 Created with the session summary
    - 400 if the file type is not allowed or the file cannot be imported
    - 413 if the file is too large
    """
    logger.info(f"Upload request from {actor.user_id}: {file.filename}")

    verify_file_extension(file.filename)
    verify_content_type(file.content_type)

    content = await file.read()
    verify_file_size(len(content))

    service = ImportService(db, storage)
    import_session = service.create_session(content, file.filename, actor)

    return ImportSessionResponse.model_validate(import_session)


@router.get('/sessions', response_model=ImportSessionListResponse)
async def list_import_sessions(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    status: Optional[ImportSessionStatusEnum] = Query(None, description="Filter by status"),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service)
):
    """
    List import sessions, newest first.

    **Example:**
    ```bash
    curl "http://localhost:8000/api/import/sessions?status=Pending&page=1"
    ```
    """
    service = ImportService(db, storage)
    sessions, total = service.list_sessions(page, page_size, status.value if status else None)

    total_pages = (total + page_size - 1) // page_size

    return ImportSessionListResponse(
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        items=[ImportSessionResponse.model_validate(s) for s in sessions]
    )


@router.get('/sessions/{session_id}', response_model=ImportSessionDetail)
async def get_import_session(
    session_id: UUID,
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service)
):
    """Get an import session with all of its rows."""
    service = ImportService(db, storage)
    import_session = service.get_session(session_id)
    return ImportSessionDetail.model_validate(import_session)


@router.get('/sessions/{session_id}/rows', response_model=ImportRowListResponse)
async def list_import_rows(
    session_id: UUID,
    filter: RowFilterEnum = Query(RowFilterEnum.ALL, description="All, Valid, Invalid, New or Update"),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service)
):
    """
    Preview the rows of an import session.

    **Example:**
    ```bash
    curl "http://localhost:8000/api/import/sessions/{session_id}/rows?filter=Invalid"
    ```
    """
    service = ImportService(db, storage)
    rows = service.preview_rows(session_id, RowFilter(filter.value))

    return ImportRowListResponse(
        session_id=session_id,
        filter=filter,
        total=len(rows),
        items=[ImportRowResponse.model_validate(row) for row in rows]
    )


@router.post('/sessions/{session_id}/commit', response_model=ImportSessionResponse)
async def commit_import_session(
    session_id: UUID,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    storage: StorageService = Depends(get_storage_service),
    threshold_provider: ThresholdSettingsProvider = Depends(get_threshold_provider)
):
    """
    Commit a Pending import session.

    All categories, licenses and audit entries are written in one
    transaction.

    **Returns:**
    - 200 with the committed session
    - 404 if the session does not exist
    - 409 if the session is not Pending, has invalid rows or nothing to commit
    - 500 if the commit failed; no changes were applied
    """
    service = CommitService(db, threshold_provider, storage=storage)
    import_session = service.commit(session_id, actor)
    return ImportSessionResponse.model_validate(import_session)


@router.post('/sessions/{session_id}/cancel', response_model=ImportSessionResponse)
async def cancel_import_session(
    session_id: UUID,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    storage: StorageService = Depends(get_storage_service)
):
    """
    Cancel a Pending import session.

    **Returns:**
    - 200 with the cancelled session
    - 404 if the session does not exist
    - 409 if the session is not Pending
    """
    service = ImportService(db, storage)
    import_session = service.cancel_session(session_id, actor)
    return ImportSessionResponse.model_validate(import_session)


@router.get('/sessions/{session_id}/errors.csv')
async def export_import_errors(
    session_id: UUID,
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service)
):
    """Download the invalid rows of a session with their error messages."""
    service = ImportService(db, storage)
    content = service.export_invalid_rows(session_id)
    return _csv_response(content, f"import-{session_id}-errors.csv")


@router.get('/sample.csv')
async def download_sample_csv():
    """Download a template file with the expected columns."""
    return _csv_response(ImportService.sample_csv(), "license-import-sample.csv")
