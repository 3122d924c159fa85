"""
Tests for CSV parsing and per-field validation.
"""

import uuid
from datetime import date

import pytest

from services.csv_parser import (
    build_column_index, decode_upload_bytes, parse_csv_bytes, parse_csv_text, parse_row,
    MAX_ERROR_MESSAGE_LENGTH, IMPORT_COLUMNS
)
from services.errors import ImportStructureError

HEADER = ','.join(IMPORT_COLUMNS)


def _parse_one(line: str):
    rows = parse_csv_text(f"{HEADER}\n{line}\n")
    assert len(rows) == 1
    return rows[0]


class TestColumnIndex:
    """Test header mapping."""

    def test_case_insensitive_and_trimmed(self):
        index = build_column_index([' licensename ', 'CATEGORYNAME', 'vendor'])
        assert index == {'LicenseName': 0, 'CategoryName': 1, 'Vendor': 2}

    def test_first_duplicate_column_wins(self):
        index = build_column_index(['LicenseName', 'CategoryName', 'LicenseName'])
        assert index['LicenseName'] == 0

    def test_unknown_columns_ignored(self):
        index = build_column_index(['Foo', 'LicenseName', 'CategoryName'])
        assert 'Foo' not in index

    def test_missing_required_columns(self):
        with pytest.raises(ImportStructureError) as exc_info:
            build_column_index(['LicenseId', 'Vendor'])
        assert exc_info.value.message == "Missing required columns: LicenseName, CategoryName"

    def test_missing_one_required_column(self):
        with pytest.raises(ImportStructureError) as exc_info:
            build_column_index(['LicenseName'])
        assert exc_info.value.message == "Missing required columns: CategoryName"


class TestStructure:
    """Test whole-file failures."""

    def test_empty_file(self):
        with pytest.raises(ImportStructureError, match="CSV header row is missing."):
            parse_csv_text('')

    def test_header_only(self):
        with pytest.raises(ImportStructureError, match="No data rows were found in the CSV."):
            parse_csv_text(HEADER + '\n')

    def test_only_blank_rows(self):
        with pytest.raises(ImportStructureError, match="No data rows"):
            parse_csv_text(HEADER + '\n,,,,,,,\n  ,, ,,,,,\n')

    def test_leading_blank_lines_before_header(self):
        rows = parse_csv_text('\n\n' + HEADER + '\n,Acme,Tools,,,,,\n')
        assert len(rows) == 1
        assert rows[0].license_name == 'Acme'

    def test_bom_is_stripped(self):
        raw = ('\ufeff' + 'LicenseName,CategoryName\nAcme,Tools\n').encode('utf-8')
        rows = parse_csv_bytes(raw)
        assert rows[0].license_name == 'Acme'

    def test_utf8_without_bom(self):
        raw = 'LicenseName,CategoryName\nCaf\xe9 Suite,Tools\n'.encode('utf-8')
        assert decode_upload_bytes(raw).splitlines()[1] == 'Caf\xe9 Suite,Tools'

    def test_non_utf8_bytes_are_a_structural_error(self):
        raw = 'LicenseName,CategoryName\nCaf\xe9 Suite,Tools\n'.encode('latin-1')
        with pytest.raises(ImportStructureError, match="Failed to parse the CSV file.") as exc_info:
            parse_csv_bytes(raw)
        assert 'not valid UTF-8' in exc_info.value.detail


class TestRowNumbering:
    """Test data row numbering."""

    def test_empty_lines_do_not_consume_numbers(self):
        rows = parse_csv_text(HEADER + '\n,A,Cat,,,,,\n\n,B,Cat,,,,,\n')
        assert [row.row_number for row in rows] == [1, 2]

    def test_blank_field_rows_are_skipped_but_numbered(self):
        rows = parse_csv_text(HEADER + '\n,A,Cat,,,,,\n,,,,,,,\n,B,Cat,,,,,\n')
        assert [row.row_number for row in rows] == [1, 3]

    def test_quoted_fields_with_commas(self):
        row = _parse_one(',"Suite, Pro",Cat,"Acme, Inc.",,,,"multi, part"')
        assert row.license_name == 'Suite, Pro'
        assert row.vendor == 'Acme, Inc.'
        assert row.notes == 'multi, part'


class TestFieldValidation:
    """Test per-field rules."""

    def test_valid_full_row(self):
        license_id = uuid.uuid4()
        row = _parse_one(f'{license_id}, Acme Suite ,Productivity,Acme Corp,120,80,2026-06-30,Annual renewal')

        assert row.is_valid
        assert row.error_message is None
        assert row.license_id == license_id
        assert row.license_name == 'Acme Suite'
        assert row.seats_purchased == 120
        assert row.seats_assigned == 80
        assert row.expires_on == date(2026, 6, 30)
        assert row.notes == 'Annual renewal'

    def test_optional_fields_may_be_blank(self):
        row = _parse_one(',Acme,Tools,,,,,')
        assert row.is_valid
        assert row.license_id is None
        assert row.vendor is None
        assert row.seats_purchased is None
        assert row.expires_on is None

    def test_missing_license_name(self):
        row = _parse_one(',,Tools,Acme,,,,')
        assert not row.is_valid
        assert "LicenseName is required." in row.error_message

    def test_invalid_uuid(self):
        row = _parse_one('not-a-guid,Acme,Tools,,,,,')
        assert row.error_message == "LicenseId must be a valid UUID."
        assert row.license_id_raw == 'not-a-guid'

    def test_license_id_too_long(self):
        row = _parse_one('x' * 51 + ',Acme,Tools,,,,,')
        assert row.error_message == "LicenseId exceeds 50 characters."
        assert len(row.license_id_raw) == 50

    @pytest.mark.parametrize('value', ['-1', '1.5', 'ten', '2147483648', '\u0665', '1\uff10'])
    def test_bad_seat_counts(self, value):
        row = _parse_one(f',Acme,Tools,,{value},,,')
        assert row.error_message == "SeatsPurchased must be a non-negative whole number."

    def test_signed_zero_is_accepted(self):
        row = _parse_one(',Acme,Tools,,+0,-0,,')
        assert row.is_valid
        assert row.seats_purchased == 0
        assert row.seats_assigned == 0

    def test_assigned_exceeds_purchased(self):
        row = _parse_one(',Acme,Tools,,5,6,,')
        assert row.error_message == "SeatsAssigned cannot exceed SeatsPurchased."

    @pytest.mark.parametrize('value', [
        '2026-02-30', '06/30/2026', '2026-6-30', '20260630',
        '\uff12\uff10\uff12\uff16-01-01', '2026-\u0660\u0661-01',
    ])
    def test_bad_dates(self, value):
        row = _parse_one(f',Acme,Tools,,,,{value},')
        assert row.error_message == "ExpiresOn must be a valid date (yyyy-MM-dd)."

    def test_length_limits(self):
        row = _parse_one(f',{"n" * 201},{"c" * 201},{"v" * 201},,,,{"x" * 2001}')
        assert row.errors == [
            "LicenseName exceeds 200 characters.",
            "CategoryName exceeds 200 characters.",
            "Vendor exceeds 200 characters.",
            "Notes exceeds 2000 characters.",
        ]
        assert len(row.license_name) == 200
        assert len(row.notes) == 2000

    def test_all_errors_accumulate_in_order(self):
        row = _parse_one('bad,,,,x,y,soon,')
        assert row.errors == [
            "LicenseId must be a valid UUID.",
            "SeatsPurchased must be a non-negative whole number.",
            "SeatsAssigned must be a non-negative whole number.",
            "ExpiresOn must be a valid date (yyyy-MM-dd).",
            "LicenseName is required.",
            "CategoryName is required.",
        ]
        assert row.error_message == ' '.join(row.errors)

    def test_error_message_is_capped(self):
        row = parse_row({'LicenseName': 0, 'CategoryName': 1}, ['', 'Tools'], 1)
        row.field_errors.extend(['x' * 600, 'y' * 600])
        assert len(row.error_message) == MAX_ERROR_MESSAGE_LENGTH

    def test_short_rows_treated_as_missing_fields(self):
        rows = parse_csv_text('LicenseName,CategoryName,Vendor\nAcme\n')
        assert rows[0].errors == ["CategoryName is required."]
