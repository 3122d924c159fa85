"""
Commit Service - Materialize a Pending import session.

The commit runs as a single transaction: categories, licenses, audit
entries and the session's terminal state are written together or not at
all. The catalog is re-read inside the transaction and every row is
re-resolved against it; a row whose outcome no longer matches its preview
fails the whole commit.
"""

import logging
import uuid
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from backend.models.schema import Category, License, utcnow
from backend.models.import_session import ImportSession, ImportRow, ImportSessionStatus, ImportRowAction
from services.audit_service import (
    ActorContext, AuditService,
    CATEGORY_CREATED, LICENSE_CREATED, LICENSE_UPDATED, IMPORT_COMMITTED
)
from services.errors import ImportCommitError, ImportPreconditionError, ImportSessionNotFound
from services.import_service import parse_session_id
from services.license_status import ThresholdSettingsProvider, Thresholds, compute_status
from services.row_classifier import (
    CatalogSnapshot, CommitIntent, CreateCategory, CreateLicense, UpdateLicense,
    normalize_name, plan_commit
)
from services.storage_service import StorageService

logger = logging.getLogger(__name__)


class CommitDriftError(Exception):
    """A row resolves differently at commit time than it did in the preview."""


class CommitService:
    """
    Framework-agnostic commit engine for import sessions.

    Can be used from CLI, API, or any other interface.
    """

    def __init__(
        self,
        db_session: Session,
        threshold_provider: ThresholdSettingsProvider,
        storage: Optional[StorageService] = None,
        audit: Optional[AuditService] = None,
        progress_callback: Optional[Callable] = None
    ):
        """
        Initialize commit service.

        Args:
            db_session: SQLAlchemy database session
            threshold_provider: Supplies system-wide status thresholds
            storage: Storage for the session's uploaded file (optional)
            audit: Audit writer (default: AuditService on db_session)
            progress_callback: Optional callback(stage, percent, message)
        """
        self.session = db_session
        self.threshold_provider = threshold_provider
        self.storage = storage
        self.audit = audit or AuditService(db_session)
        self.progress_callback = progress_callback

    def _emit_progress(self, stage: str, percent: int, message: str):
        """Emit progress update if callback is registered."""
        if self.progress_callback:
            try:
                self.progress_callback(stage, percent, message)
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")

    def _load_pending_session(self, session_id) -> ImportSession:
        """
        Load the session and check every commit precondition.

        Raises:
            ImportSessionNotFound: If no session matches
            ImportPreconditionError: If the session cannot be committed
        """
        import_session = self.session.get(ImportSession, parse_session_id(session_id))
        if import_session is None:
            raise ImportSessionNotFound(session_id)

        if not import_session.is_pending():
            raise ImportPreconditionError("This import session is no longer pending.")
        if import_session.invalid_rows > 0:
            raise ImportPreconditionError("Fix invalid rows before committing the import.")
        if import_session.valid_rows <= 0:
            raise ImportPreconditionError("No valid rows available to commit.")

        return import_session

    def _load_rows(self, import_session: ImportSession) -> List[ImportRow]:
        rows = self.session.query(ImportRow)\
            .filter(ImportRow.session_id == import_session.id)\
            .order_by(ImportRow.row_number)\
            .all()

        if not rows:
            raise ImportPreconditionError("No import rows found for this session.")
        return rows

    def commit(self, session_id, actor: ActorContext) -> ImportSession:
        """
        Commit a Pending session.

        Args:
            session_id: Import session id
            actor: Acting user, recorded on every audit entry

        Returns:
            The committed ImportSession

        Raises:
            ImportSessionNotFound: If no session matches
            ImportPreconditionError: If a precondition fails (nothing written)
            ImportCommitError: If the transaction failed and was rolled back
        """
        import_session = self._load_pending_session(session_id)
        rows = self._load_rows(import_session)
        stored_filename = import_session.stored_filename

        logger.info(f"Committing import session {import_session.id} ({len(rows)} rows) for {actor.user_id}")

        try:
            # Step 1: Fresh catalog read
            self._emit_progress('loading', 10, 'Loading catalog...')
            categories = self.session.query(Category).all()
            licenses = self.session.query(License).options(selectinload(License.category)).all()
            snapshot = CatalogSnapshot.from_entities(categories, licenses)

            # Step 2: Plan and re-validate against the preview
            self._emit_progress('planning', 30, 'Resolving rows...')
            intents = plan_commit(rows, snapshot)
            self._check_drift(intents)

            # Step 3: Apply
            self._emit_progress('writing', 50, 'Writing licenses...')
            system_thresholds = self.threshold_provider.load()
            counts = self._apply_intents(intents, categories, licenses, system_thresholds, actor)

            # Step 4: Close the session
            import_session.new_licenses = counts['new_licenses']
            import_session.updated_licenses = counts['updated_licenses']
            import_session.new_categories = counts['new_categories']
            import_session.status = ImportSessionStatus.COMMITTED.value
            import_session.completed_at = utcnow()

            self.audit.record(
                actor,
                IMPORT_COMMITTED,
                'ImportSession',
                import_session.id,
                f"Committed import: {counts['new_licenses']} new, "
                f"{counts['updated_licenses']} updated, {counts['new_categories']} categories"
            )

            self.session.commit()

        except Exception as e:
            logger.error(f"Commit of import session {session_id} failed: {e}", exc_info=True)
            self.session.rollback()
            raise ImportCommitError(session_id, detail=str(e)) from e

        self._emit_progress('complete', 100, 'Import committed')
        logger.info(
            f"Import session {import_session.id} committed: {import_session.new_licenses} new, "
            f"{import_session.updated_licenses} updated, {import_session.new_categories} categories"
        )

        if self.storage is not None:
            self.storage.try_delete(stored_filename)

        return import_session

    @staticmethod
    def _check_drift(intents: List[CommitIntent]):
        """
        Compare commit-time resolution with each row's preview action.

        Raises:
            CommitDriftError: On the first row that no longer matches
        """
        for intent in intents:
            if isinstance(intent, CreateCategory):
                continue

            row = intent.row
            if isinstance(intent, UpdateLicense):
                if (row.action != ImportRowAction.UPDATE.value
                        or intent.license_id != row.resolved_license_id):
                    raise CommitDriftError(
                        f"Row {row.row_number} now matches existing license {intent.license_id} "
                        f"but was previewed as {row.action}"
                    )
            elif row.action != ImportRowAction.NEW.value:
                raise CommitDriftError(
                    f"Row {row.row_number} was previewed as {row.action} "
                    f"but no longer matches an existing license"
                )

    def _apply_intents(
        self,
        intents: List[CommitIntent],
        categories: List[Category],
        licenses: List[License],
        system_thresholds: Thresholds,
        actor: ActorContext
    ) -> Dict[str, int]:
        """Write the planned categories and licenses with their audit entries."""
        categories_by_name: Dict[str, Category] = {}
        for category in categories:
            categories_by_name.setdefault(normalize_name(category.name), category)
        licenses_by_id: Dict = {license.id: license for license in licenses}

        counts = {'new_licenses': 0, 'updated_licenses': 0, 'new_categories': 0}

        for intent in intents:
            if isinstance(intent, CreateCategory):
                category = Category(id=uuid.uuid4(), name=intent.name, created_at=utcnow())
                self.session.add(category)
                categories_by_name[normalize_name(intent.name)] = category
                counts['new_categories'] += 1
                self.audit.record(
                    actor, CATEGORY_CREATED, 'Category', category.id,
                    f"Created category {category.name} via import"
                )
                continue

            row = intent.row
            is_new = isinstance(intent, CreateLicense)

            if is_new:
                license = License(id=intent.license_id, created_at=utcnow())
                self.session.add(license)
                licenses_by_id[license.id] = license
            else:
                license = licenses_by_id[intent.license_id]

            license.name = row.license_name.strip()
            license.vendor = row.vendor
            license.category = categories_by_name[normalize_name(row.category_name)]
            license.seats_purchased = row.seats_purchased
            license.seats_assigned = row.seats_assigned
            license.expires_on = row.expires_on
            license.status = compute_status(
                row.expires_on,
                system_thresholds.critical_days,
                system_thresholds.warning_days
            ).value
            license.notes = row.notes

            if is_new:
                counts['new_licenses'] += 1
                self.audit.record(
                    actor, LICENSE_CREATED, 'License', license.id,
                    f"Created license {license.name} via import"
                )
            else:
                license.updated_at = utcnow()
                counts['updated_licenses'] += 1
                self.audit.record(
                    actor, LICENSE_UPDATED, 'License', license.id,
                    f"Updated license {license.name} via import"
                )

        return counts
