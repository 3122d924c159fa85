"""
CSV Parser Service - Turn uploaded license files into validated rows.

Parsing is all-in-memory: the whole file is decoded and every row is
validated before any classification happens. Problems with a single row
are accumulated on that row; only structural problems raise.
"""

import csv
import io
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from services.errors import ImportStructureError

logger = logging.getLogger(__name__)

# Column catalog
REQUIRED_COLUMNS = ('LicenseName', 'CategoryName')
IMPORT_COLUMNS = (
    'LicenseId', 'LicenseName', 'CategoryName', 'Vendor',
    'SeatsPurchased', 'SeatsAssigned', 'ExpiresOn', 'Notes'
)

# Field limits
MAX_NAME_LENGTH = 200
MAX_VENDOR_LENGTH = 200
MAX_NOTES_LENGTH = 2000
MAX_LICENSE_ID_LENGTH = 50
MAX_ERROR_MESSAGE_LENGTH = 1000
MAX_SEAT_COUNT = 2_147_483_647

DATE_FORMAT = '%Y-%m-%d'
_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$', re.ASCII)
_INTEGER_PATTERN = re.compile(r'^[+-]?\d+$', re.ASCII)

UPLOAD_ENCODING = 'utf-8-sig'


@dataclass
class ParsedRow:
    """
    One candidate license record.

    license_id is only ever the id written in the file. resolved_license_id
    is the license the row targets, set by classification. field_errors
    come from per-field validation and never change after parsing;
    duplicate_errors are recomputed on every classification pass.
    """
    row_number: int
    license_id_raw: Optional[str] = None
    license_id: Optional[uuid.UUID] = None
    resolved_license_id: Optional[uuid.UUID] = None
    license_name: str = ''
    category_name: str = ''
    vendor: Optional[str] = None
    seats_purchased: Optional[int] = None
    seats_assigned: Optional[int] = None
    expires_on: Optional[date] = None
    notes: Optional[str] = None
    field_errors: List[str] = field(default_factory=list)
    duplicate_errors: List[str] = field(default_factory=list)
    action: Optional[str] = None

    @property
    def errors(self) -> List[str]:
        return self.field_errors + self.duplicate_errors

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def error_message(self) -> Optional[str]:
        if not self.errors:
            return None
        return ' '.join(self.errors)[:MAX_ERROR_MESSAGE_LENGTH]


def decode_upload_bytes(raw_bytes: bytes) -> str:
    """Decode uploaded bytes as UTF-8, with or without a BOM."""
    try:
        return raw_bytes.decode(UPLOAD_ENCODING)
    except UnicodeDecodeError as e:
        raise ImportStructureError("Failed to parse the CSV file.", detail=f"File is not valid UTF-8: {e}") from e


def build_column_index(header: Sequence[Optional[str]]) -> Dict[str, int]:
    """
    Map known column names to their position in the header.

    Header names are matched trimmed and case-insensitively. The first
    occurrence of a repeated column wins.

    Raises:
        ImportStructureError: If a required column is absent
    """
    lookup = {name.lower(): name for name in IMPORT_COLUMNS}
    index: Dict[str, int] = {}

    for position, raw_name in enumerate(header):
        canonical = lookup.get((raw_name or '').strip().lower())
        if canonical and canonical not in index:
            index[canonical] = position

    missing = [name for name in REQUIRED_COLUMNS if name not in index]
    if missing:
        raise ImportStructureError(f"Missing required columns: {', '.join(missing)}")

    return index


def _get_field(values: Sequence[Optional[str]], column_index: Dict[str, int], name: str) -> Optional[str]:
    position = column_index.get(name)
    if position is None or position >= len(values):
        return None
    value = values[position]
    if value is None or not value.strip():
        return None
    return value.strip()


def _trim_to_length(value: Optional[str], max_length: int) -> Optional[str]:
    if value is None:
        return None
    return value[:max_length]


def _parse_license_id(raw: Optional[str], errors: List[str]) -> Optional[uuid.UUID]:
    if raw is None:
        return None
    if len(raw) > MAX_LICENSE_ID_LENGTH:
        errors.append(f"LicenseId exceeds {MAX_LICENSE_ID_LENGTH} characters.")
        return None
    try:
        return uuid.UUID(raw)
    except ValueError:
        errors.append("LicenseId must be a valid UUID.")
        return None


def _parse_seat_count(raw: Optional[str], field_name: str, errors: List[str]) -> Optional[int]:
    if raw is None:
        return None
    if _INTEGER_PATTERN.match(raw):
        value = int(raw)
        if 0 <= value <= MAX_SEAT_COUNT:
            return value
    errors.append(f"{field_name} must be a non-negative whole number.")
    return None


def _parse_expiry_date(raw: Optional[str], errors: List[str]) -> Optional[date]:
    if raw is None:
        return None
    if _DATE_PATTERN.match(raw):
        try:
            return datetime.strptime(raw, DATE_FORMAT).date()
        except ValueError:
            pass
    errors.append("ExpiresOn must be a valid date (yyyy-MM-dd).")
    return None


def _check_required_text(raw: Optional[str], field_name: str, max_length: int, errors: List[str]):
    if raw is None:
        errors.append(f"{field_name} is required.")
    elif len(raw) > max_length:
        errors.append(f"{field_name} exceeds {max_length} characters.")


def _check_optional_text(raw: Optional[str], field_name: str, max_length: int, errors: List[str]):
    if raw is not None and len(raw) > max_length:
        errors.append(f"{field_name} exceeds {max_length} characters.")


def parse_row(
    column_index: Dict[str, int],
    values: Sequence[Optional[str]],
    row_number: int
) -> Optional[ParsedRow]:
    """
    Validate one data row.

    Args:
        column_index: Column positions from build_column_index()
        values: Raw field values in header order
        row_number: 1-based data row number

    Returns:
        ParsedRow with every triggered rule message in field_errors, or
        None if every field is blank.
    """
    raw = {name: _get_field(values, column_index, name) for name in IMPORT_COLUMNS}
    if all(value is None for value in raw.values()):
        return None

    errors: List[str] = []

    license_id = _parse_license_id(raw['LicenseId'], errors)
    seats_purchased = _parse_seat_count(raw['SeatsPurchased'], 'SeatsPurchased', errors)
    seats_assigned = _parse_seat_count(raw['SeatsAssigned'], 'SeatsAssigned', errors)
    expires_on = _parse_expiry_date(raw['ExpiresOn'], errors)

    _check_required_text(raw['LicenseName'], 'LicenseName', MAX_NAME_LENGTH, errors)
    _check_required_text(raw['CategoryName'], 'CategoryName', MAX_NAME_LENGTH, errors)
    _check_optional_text(raw['Vendor'], 'Vendor', MAX_VENDOR_LENGTH, errors)
    _check_optional_text(raw['Notes'], 'Notes', MAX_NOTES_LENGTH, errors)

    if seats_purchased is not None and seats_assigned is not None and seats_assigned > seats_purchased:
        errors.append("SeatsAssigned cannot exceed SeatsPurchased.")

    return ParsedRow(
        row_number=row_number,
        license_id_raw=_trim_to_length(raw['LicenseId'], MAX_LICENSE_ID_LENGTH),
        license_id=license_id,
        license_name=_trim_to_length(raw['LicenseName'], MAX_NAME_LENGTH) or '',
        category_name=_trim_to_length(raw['CategoryName'], MAX_NAME_LENGTH) or '',
        vendor=_trim_to_length(raw['Vendor'], MAX_VENDOR_LENGTH),
        seats_purchased=seats_purchased,
        seats_assigned=seats_assigned,
        expires_on=expires_on,
        notes=_trim_to_length(raw['Notes'], MAX_NOTES_LENGTH),
        field_errors=errors
    )


def parse_csv_text(text: str) -> List[ParsedRow]:
    """
    Parse and validate a whole CSV document.

    Completely empty lines are ignored and do not consume a row number.

    Raises:
        ImportStructureError: Missing header, missing required columns,
            malformed CSV, or no data rows
    """
    reader = csv.reader(io.StringIO(text, newline=''))

    try:
        header = next(reader, None)
        while header is not None and not any((cell or '').strip() for cell in header):
            header = next(reader, None)

        if header is None:
            raise ImportStructureError("CSV header row is missing.")

        column_index = build_column_index(header)

        rows: List[ParsedRow] = []
        row_number = 0
        for values in reader:
            if not values:
                continue
            row_number += 1
            row = parse_row(column_index, values, row_number)
            if row is not None:
                rows.append(row)
    except csv.Error as e:
        raise ImportStructureError("Failed to parse the CSV file.", detail=str(e)) from e

    if not rows:
        raise ImportStructureError("No data rows were found in the CSV.")

    invalid = sum(1 for row in rows if row.field_errors)
    logger.info(f"Parsed {len(rows)} data rows ({invalid} with field errors)")
    return rows


def parse_csv_bytes(raw_bytes: bytes) -> List[ParsedRow]:
    """Decode and parse an uploaded file."""
    return parse_csv_text(decode_upload_bytes(raw_bytes))
