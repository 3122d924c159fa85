"""
Row Classifier Service - Resolve parsed rows against the license catalog.

Everything here is pure: the catalog is passed in as a CatalogSnapshot and
no database access happens. The same resolution rules drive the preview
(classify_rows) and the commit plan (plan_commit), so a row is matched the
same way in both places.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Union

from backend.models.import_session import ImportRowAction
from services.csv_parser import ParsedRow

logger = logging.getLogger(__name__)

DUPLICATE_KEY_MESSAGE = "Duplicate license entry found in the file."
DUPLICATE_ID_MESSAGE = "Duplicate LicenseId found in the file."


def normalize_name(value: Optional[str]) -> str:
    return (value or '').strip().lower()


def build_license_key(license_name: Optional[str], vendor: Optional[str],
                      category_name: Optional[str]) -> str:
    """Composite natural key: normalized name|vendor|category."""
    return f"{normalize_name(license_name)}|{normalize_name(vendor)}|{normalize_name(category_name)}"


@dataclass
class CatalogSnapshot:
    """Point-in-time view of existing categories and licenses."""
    category_names: Set[str] = field(default_factory=set)
    license_ids: Set[uuid.UUID] = field(default_factory=set)
    license_ids_by_key: Dict[str, uuid.UUID] = field(default_factory=dict)

    @classmethod
    def from_entities(cls, categories: Iterable, licenses: Iterable) -> 'CatalogSnapshot':
        """
        Build a snapshot from Category and License entities.

        When two licenses share a key the first one seen keeps it.
        """
        snapshot = cls()
        for category in categories:
            snapshot.category_names.add(normalize_name(category.name))

        for license in licenses:
            snapshot.license_ids.add(license.id)
            category_name = license.category.name if license.category is not None else ''
            key = build_license_key(license.name, license.vendor, category_name)
            snapshot.license_ids_by_key.setdefault(key, license.id)

        return snapshot

    def has_category(self, name: str) -> bool:
        return normalize_name(name) in self.category_names


class Resolution(NamedTuple):
    """Outcome of matching one valid row."""
    action: ImportRowAction
    license_id: Optional[uuid.UUID]


def resolve_row(row: ParsedRow, snapshot: CatalogSnapshot) -> Resolution:
    """
    Match one row: explicit LicenseId first, then the natural key.

    Returns Update with the matched license id, or New with the row's own
    LicenseId (which may be None).
    """
    if row.license_id is not None and row.license_id in snapshot.license_ids:
        return Resolution(ImportRowAction.UPDATE, row.license_id)

    key = build_license_key(row.license_name, row.vendor, row.category_name)
    existing_id = snapshot.license_ids_by_key.get(key)
    if existing_id is not None:
        return Resolution(ImportRowAction.UPDATE, existing_id)

    return Resolution(ImportRowAction.NEW, row.license_id)


def detect_duplicates(rows: List[ParsedRow]) -> int:
    """
    Flag repeated natural keys and repeated LicenseIds within the file.

    The first occurrence stays clean; every later one gets a duplicate
    error. Runs over the whole list and replaces any previous result.

    Returns:
        Number of rows flagged
    """
    seen_keys: Set[str] = set()
    seen_ids: Set[uuid.UUID] = set()
    flagged = 0

    for row in rows:
        row.duplicate_errors = []

        if row.license_name and row.category_name:
            key = build_license_key(row.license_name, row.vendor, row.category_name)
            if key in seen_keys:
                row.duplicate_errors.append(DUPLICATE_KEY_MESSAGE)
            else:
                seen_keys.add(key)

        if row.license_id is not None:
            if row.license_id in seen_ids:
                row.duplicate_errors.append(DUPLICATE_ID_MESSAGE)
            else:
                seen_ids.add(row.license_id)

        if row.duplicate_errors:
            flagged += 1

    if flagged:
        logger.info(f"Flagged {flagged} duplicate rows")
    return flagged


class ClassificationSummary(NamedTuple):
    """Counts aggregated for the session summary."""
    new_licenses: int
    updated_licenses: int
    new_categories: int


def classify_rows(rows: List[ParsedRow], snapshot: CatalogSnapshot) -> ClassificationSummary:
    """
    Assign an action to every row.

    Duplicate detection runs first because it can turn a valid row
    invalid. Invalid rows always end up Invalid. The targeted license goes
    to resolved_license_id; the id read from the file is left untouched so
    reclassification gives the same result.
    """
    detect_duplicates(rows)

    new_category_names: Set[str] = set()
    new_licenses = 0
    updated_licenses = 0

    for row in rows:
        row.resolved_license_id = None
        if not row.is_valid:
            row.action = ImportRowAction.INVALID.value
            continue

        if not snapshot.has_category(row.category_name):
            new_category_names.add(normalize_name(row.category_name))

        resolution = resolve_row(row, snapshot)
        row.action = resolution.action.value
        row.resolved_license_id = resolution.license_id
        if resolution.action == ImportRowAction.UPDATE:
            updated_licenses += 1
        else:
            new_licenses += 1

    summary = ClassificationSummary(new_licenses, updated_licenses, len(new_category_names))
    logger.info(
        f"Classified {len(rows)} rows: {summary.new_licenses} new, "
        f"{summary.updated_licenses} updates, {summary.new_categories} new categories"
    )
    return summary


# Commit intents

@dataclass(frozen=True)
class CreateCategory:
    name: str


@dataclass(frozen=True)
class CreateLicense:
    row: object
    license_id: uuid.UUID


@dataclass(frozen=True)
class UpdateLicense:
    row: object
    license_id: uuid.UUID


CommitIntent = Union[CreateCategory, CreateLicense, UpdateLicense]


def plan_commit(rows: Iterable, snapshot: CatalogSnapshot) -> List[CommitIntent]:
    """
    Turn valid rows into an ordered list of intents.

    Rows are taken in row_number order. A category is created the first
    time an unknown name is seen; a license created earlier in the plan is
    visible to later rows by id and by key. Invalid rows are skipped.

    Args:
        rows: Objects with the ParsedRow/ImportRow field names
        snapshot: Catalog read inside the commit transaction
    """
    planned_categories: Set[str] = set(snapshot.category_names)
    working = CatalogSnapshot(
        category_names=planned_categories,
        license_ids=set(snapshot.license_ids),
        license_ids_by_key=dict(snapshot.license_ids_by_key)
    )
    intents: List[CommitIntent] = []

    for row in sorted(rows, key=lambda r: r.row_number):
        if not row.is_valid:
            continue

        category_key = normalize_name(row.category_name)
        if category_key not in planned_categories:
            planned_categories.add(category_key)
            intents.append(CreateCategory(row.category_name.strip()))

        resolution = resolve_row(row, working)
        if resolution.action == ImportRowAction.UPDATE:
            intents.append(UpdateLicense(row, resolution.license_id))
        else:
            license_id = resolution.license_id or uuid.uuid4()
            intents.append(CreateLicense(row, license_id))
            key = build_license_key(row.license_name, row.vendor, row.category_name)
            working.license_ids_by_key.setdefault(key, license_id)
            working.license_ids.add(license_id)

    return intents
