"""
Import Service - Build, persist and manage CSV import sessions.

This module owns the session lifecycle up to the commit: parsing and
classifying an upload into a Pending session, previewing its rows,
cancelling it, and exporting its invalid rows. Committing is handled by
CommitService.
"""

import csv
import io
import logging
import uuid
from enum import Enum
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from backend.models.schema import Category, License, utcnow
from backend.models.import_session import (
    ImportSession, ImportRow, ImportSessionStatus, ImportRowAction
)
from services.audit_service import ActorContext
from services.csv_parser import ParsedRow, parse_csv_bytes, IMPORT_COLUMNS, DATE_FORMAT
from services.errors import ImportPreconditionError, ImportSessionNotFound, ImportStructureError
from services.row_classifier import CatalogSnapshot, classify_rows
from services.storage_service import StorageService

logger = logging.getLogger(__name__)

MAX_ORIGINAL_FILENAME_LENGTH = 255
DEFAULT_ORIGINAL_FILENAME = 'import.csv'

ERROR_EXPORT_COLUMNS = ('RowNumber',) + IMPORT_COLUMNS + ('ErrorMessage',)

SAMPLE_ROWS = (
    ('', 'Acme Suite', 'Productivity', 'Acme Corp', '120', '80', '2026-06-30', 'Annual renewal'),
    ('', 'Cloud Shield', 'Security', 'BlueSec', '50', '50', '2026-03-15', 'Core security tooling'),
)


class RowFilter(str, Enum):
    """Preview filters."""
    ALL = 'All'
    VALID = 'Valid'
    INVALID = 'Invalid'
    NEW = 'New'
    UPDATE = 'Update'


def load_catalog_snapshot(db_session: Session) -> CatalogSnapshot:
    """Read all categories and licenses into a CatalogSnapshot."""
    categories = db_session.query(Category).all()
    licenses = db_session.query(License).options(selectinload(License.category)).all()
    return CatalogSnapshot.from_entities(categories, licenses)


def _to_import_row(row: ParsedRow) -> ImportRow:
    return ImportRow(
        id=uuid.uuid4(),
        row_number=row.row_number,
        license_id_raw=row.license_id_raw,
        license_id=row.license_id,
        resolved_license_id=row.resolved_license_id,
        license_name=row.license_name,
        category_name=row.category_name,
        vendor=row.vendor,
        seats_purchased=row.seats_purchased,
        seats_assigned=row.seats_assigned,
        expires_on=row.expires_on,
        notes=row.notes,
        is_valid=row.is_valid,
        action=row.action or ImportRowAction.INVALID.value,
        error_message=row.error_message
    )


def _clean_original_filename(filename: Optional[str]) -> str:
    name = (filename or '').replace('\\', '/').split('/')[-1].strip()
    return name[:MAX_ORIGINAL_FILENAME_LENGTH] or DEFAULT_ORIGINAL_FILENAME


class ImportService:
    """
    Framework-agnostic import session service.

    Used by the API router and the CLI alike.
    """

    def __init__(
        self,
        db_session: Session,
        storage: StorageService,
        snapshot_loader: Callable[[Session], CatalogSnapshot] = load_catalog_snapshot
    ):
        """
        Initialize import service.

        Args:
            db_session: SQLAlchemy database session
            storage: Where uploads are stored
            snapshot_loader: Reads the catalog used for classification
        """
        self.session = db_session
        self.storage = storage
        self.snapshot_loader = snapshot_loader

    def build_session(
        self,
        raw_bytes: bytes,
        original_filename: str,
        stored_filename: str,
        actor: ActorContext
    ) -> ImportSession:
        """
        Parse, validate and classify a file into an unsaved Pending session.

        Raises:
            ImportStructureError: If the file cannot be imported at all
        """
        rows = parse_csv_bytes(raw_bytes)
        snapshot = self.snapshot_loader(self.session)
        summary = classify_rows(rows, snapshot)

        valid_rows = sum(1 for row in rows if row.is_valid)

        import_session = ImportSession(
            id=uuid.uuid4(),
            created_at=utcnow(),
            created_by_user_id=actor.user_id or '',
            status=ImportSessionStatus.PENDING.value,
            original_filename=_clean_original_filename(original_filename),
            stored_filename=stored_filename,
            total_rows=len(rows),
            valid_rows=valid_rows,
            invalid_rows=len(rows) - valid_rows,
            new_licenses=summary.new_licenses,
            updated_licenses=summary.updated_licenses,
            new_categories=summary.new_categories,
            rows=[_to_import_row(row) for row in rows]
        )
        return import_session

    def create_session(self, raw_bytes: bytes, original_filename: str,
                       actor: ActorContext) -> ImportSession:
        """
        Store an upload and persist its Pending session.

        The stored file is removed again if the file is rejected or the
        session cannot be saved.

        Returns:
            The persisted ImportSession
        """
        stored_filename = self.storage.save_upload(raw_bytes)

        try:
            import_session = self.build_session(raw_bytes, original_filename, stored_filename, actor)
            self.session.add(import_session)
            self.session.commit()
        except ImportStructureError as e:
            self.session.rollback()
            self.storage.try_delete(stored_filename)
            logger.info(f"Rejected upload {original_filename}: {e.message}")
            raise
        except Exception:
            self.session.rollback()
            self.storage.try_delete(stored_filename)
            logger.error(f"Failed to create import session for {original_filename}", exc_info=True)
            raise

        logger.info(
            f"Created import session {import_session.id} from {import_session.original_filename} "
            f"by {actor.user_id}: {import_session.total_rows} rows, "
            f"{import_session.valid_rows} valid, {import_session.invalid_rows} invalid"
        )
        return import_session

    def get_session(self, session_id) -> ImportSession:
        """
        Load a session by id.

        Raises:
            ImportSessionNotFound: If no session matches
        """
        import_session = self.session.get(ImportSession, parse_session_id(session_id))
        if import_session is None:
            raise ImportSessionNotFound(session_id)
        return import_session

    def list_sessions(self, page: int = 1, page_size: int = 50,
                      status: Optional[str] = None) -> Tuple[List[ImportSession], int]:
        """
        List sessions newest first.

        Returns:
            (sessions on the page, total matching sessions)
        """
        query = self.session.query(ImportSession)

        if status:
            query = query.filter(ImportSession.status == status)

        total = query.count()
        sessions = query.order_by(ImportSession.created_at.desc())\
            .offset((page - 1) * page_size)\
            .limit(page_size)\
            .all()

        return sessions, total

    def preview_rows(self, session_id, row_filter: RowFilter = RowFilter.ALL) -> List[ImportRow]:
        """Rows of a session in row order, optionally filtered."""
        import_session = self.get_session(session_id)

        query = self.session.query(ImportRow).filter(ImportRow.session_id == import_session.id)

        row_filter = RowFilter(row_filter)
        if row_filter == RowFilter.VALID:
            query = query.filter(ImportRow.is_valid.is_(True))
        elif row_filter == RowFilter.INVALID:
            query = query.filter(ImportRow.is_valid.is_(False))
        elif row_filter == RowFilter.NEW:
            query = query.filter(ImportRow.action == ImportRowAction.NEW.value)
        elif row_filter == RowFilter.UPDATE:
            query = query.filter(ImportRow.action == ImportRowAction.UPDATE.value)

        return query.order_by(ImportRow.row_number).all()

    def cancel_session(self, session_id, actor: ActorContext) -> ImportSession:
        """
        Cancel a Pending session and delete its stored upload.

        Raises:
            ImportSessionNotFound: If no session matches
            ImportPreconditionError: If the session is not Pending
        """
        import_session = self.get_session(session_id)

        if not import_session.is_pending():
            raise ImportPreconditionError(
                f"Cannot cancel import session with status '{import_session.status}'"
            )

        import_session.status = ImportSessionStatus.CANCELLED.value
        import_session.completed_at = utcnow()
        self.session.commit()

        logger.info(f"Import session {import_session.id} cancelled by {actor.user_id}")

        self.storage.try_delete(import_session.stored_filename)
        return import_session

    def export_invalid_rows(self, session_id) -> str:
        """
        Render the invalid rows of a session as CSV.

        Raises:
            ImportPreconditionError: If the session has no invalid rows
        """
        rows = self.preview_rows(session_id, RowFilter.INVALID)
        if not rows:
            raise ImportPreconditionError("No invalid rows found for this session.")

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator='\n')
        writer.writerow(ERROR_EXPORT_COLUMNS)

        for row in rows:
            writer.writerow([
                row.row_number,
                row.license_id_raw or '',
                row.license_name,
                row.category_name,
                row.vendor or '',
                '' if row.seats_purchased is None else row.seats_purchased,
                '' if row.seats_assigned is None else row.seats_assigned,
                row.expires_on.strftime(DATE_FORMAT) if row.expires_on else '',
                row.notes or '',
                row.error_message or ''
            ])

        return buffer.getvalue()

    @staticmethod
    def sample_csv() -> str:
        """A template file with the full header and two example rows."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator='\n')
        writer.writerow(IMPORT_COLUMNS)
        writer.writerows(SAMPLE_ROWS)
        return buffer.getvalue()


def parse_session_id(value) -> uuid.UUID:
    """Coerce a session id; unparseable ids are reported as not found."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ImportSessionNotFound(value)
