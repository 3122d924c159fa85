"""
Tests for the import HTTP API.
"""

import uuid

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_db, get_storage_service, get_threshold_provider
from api.main import app
from backend.models.schema import AuditLogEntry, License

USER_HEADERS = {'X-User-Id': 'api-user', 'X-User-Email': 'api@example.com'}


@pytest.fixture
def client(session_factory, storage, threshold_provider):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_threshold_provider] = lambda: threshold_provider

    yield TestClient(app)

    app.dependency_overrides.clear()


def _upload(client, content: bytes, filename='licenses.csv', content_type='text/csv'):
    return client.post(
        '/api/import/upload',
        files={'file': (filename, content, content_type)},
        headers=USER_HEADERS
    )


class TestUpload:
    """Test file upload."""

    def test_upload_creates_pending_session(self, client, make_csv):
        response = _upload(client, make_csv([',Suite,Tools,Acme,10,5,2027-01-01,', ',,Tools,,,,,']))

        assert response.status_code == 201
        body = response.json()
        assert body['status'] == 'Pending'
        assert body['created_by_user_id'] == 'api-user'
        assert body['total_rows'] == 2
        assert body['valid_rows'] == 1
        assert body['invalid_rows'] == 1
        assert body['new_categories'] == 1
        assert 'stored_filename' not in body

    def test_wrong_extension(self, client, make_csv):
        response = _upload(client, make_csv([',Suite,Tools,,,,,']), filename='licenses.xlsx')
        assert response.status_code == 400

    def test_wrong_content_type(self, client, make_csv):
        response = _upload(client, make_csv([',Suite,Tools,,,,,']), content_type='application/pdf')
        assert response.status_code == 400

    def test_content_type_with_charset(self, client, make_csv):
        response = _upload(client, make_csv([',Suite,Tools,,,,,']), content_type='text/csv; charset=utf-8')
        assert response.status_code == 201

    def test_too_large(self, client, monkeypatch, make_csv):
        from api.config import settings
        monkeypatch.setattr(settings, 'MAX_FILE_SIZE_MB', 0)

        response = _upload(client, make_csv([',Suite,Tools,,,,,']))
        assert response.status_code == 413

    def test_structural_error(self, client):
        response = _upload(client, b'Foo,Bar\n1,2\n')
        assert response.status_code == 400
        assert response.json()['error'] == "Missing required columns: LicenseName, CategoryName"


class TestSessionEndpoints:
    """Test session detail, listing and rows."""

    def test_detail_includes_rows(self, client, make_csv):
        session_id = _upload(client, make_csv([',Suite,Tools,,,,,', ',Other,Tools,,,,,'])).json()['id']

        response = client.get(f'/api/import/sessions/{session_id}')

        assert response.status_code == 200
        rows = response.json()['rows']
        assert [row['row_number'] for row in rows] == [1, 2]
        assert rows[0]['action'] == 'New'

    def test_detail_not_found(self, client):
        response = client.get(f'/api/import/sessions/{uuid.uuid4()}')
        assert response.status_code == 404

    def test_list_sessions(self, client, make_csv):
        _upload(client, make_csv([',Suite,Tools,,,,,']))
        _upload(client, make_csv([',Other,Tools,,,,,']))

        body = client.get('/api/import/sessions', params={'status': 'Pending', 'page_size': 1}).json()

        assert body['total'] == 2
        assert body['total_pages'] == 2
        assert len(body['items']) == 1

    def test_rows_filter(self, client, make_csv):
        session_id = _upload(client, make_csv([',Suite,Tools,,,,,', ',,Tools,,,,,'])).json()['id']

        body = client.get(f'/api/import/sessions/{session_id}/rows', params={'filter': 'Invalid'}).json()

        assert body['total'] == 1
        assert body['items'][0]['row_number'] == 2
        assert body['items'][0]['error_message'] == "LicenseName is required."

    def test_rows_bad_filter(self, client, make_csv):
        session_id = _upload(client, make_csv([',Suite,Tools,,,,,'])).json()['id']
        response = client.get(f'/api/import/sessions/{session_id}/rows', params={'filter': 'Everything'})
        assert response.status_code == 422


class TestTransitions:
    """Test commit and cancel over HTTP."""

    def test_commit(self, client, session, make_csv):
        session_id = _upload(client, make_csv([',Suite,Tools,Acme,10,5,,'])).json()['id']

        response = client.post(f'/api/import/sessions/{session_id}/commit', headers=USER_HEADERS)

        assert response.status_code == 200
        assert response.json()['status'] == 'Committed'
        assert response.json()['new_licenses'] == 1
        assert session.query(License).count() == 1

        entries = session.query(AuditLogEntry).all()
        assert len(entries) == 3
        assert {entry.actor_email for entry in entries} == {'api@example.com'}

    def test_commit_with_invalid_rows_conflicts(self, client, make_csv):
        session_id = _upload(client, make_csv([',Suite,Tools,,,,,', ',,Tools,,,,,'])).json()['id']

        response = client.post(f'/api/import/sessions/{session_id}/commit', headers=USER_HEADERS)

        assert response.status_code == 409
        assert response.json()['error'] == "Fix invalid rows before committing the import."

    def test_cancel_then_commit(self, client, make_csv):
        session_id = _upload(client, make_csv([',Suite,Tools,,,,,'])).json()['id']

        cancel = client.post(f'/api/import/sessions/{session_id}/cancel', headers=USER_HEADERS)
        assert cancel.status_code == 200
        assert cancel.json()['status'] == 'Cancelled'

        commit = client.post(f'/api/import/sessions/{session_id}/commit', headers=USER_HEADERS)
        assert commit.status_code == 409

        again = client.post(f'/api/import/sessions/{session_id}/cancel', headers=USER_HEADERS)
        assert again.status_code == 409

    def test_commit_failure_reports_no_changes(self, client, monkeypatch, make_csv):
        from services import commit_service

        def broken_compute_status(*args, **kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr(commit_service, 'compute_status', broken_compute_status)
        session_id = _upload(client, make_csv([',Suite,Tools,,,,,'])).json()['id']

        response = client.post(f'/api/import/sessions/{session_id}/commit', headers=USER_HEADERS)

        assert response.status_code == 500
        assert response.json()['error'] == "Import commit failed. No changes were applied."
        assert client.get(f'/api/import/sessions/{session_id}').json()['status'] == 'Pending'


class TestDownloads:
    """Test CSV downloads."""

    def test_errors_csv(self, client, make_csv):
        session_id = _upload(client, make_csv([',Suite,Tools,,,,,', ',,Tools,,,,,'])).json()['id']

        response = client.get(f'/api/import/sessions/{session_id}/errors.csv')

        assert response.status_code == 200
        assert response.headers['content-type'].startswith('text/csv')
        lines = response.text.splitlines()
        assert lines[0].startswith('RowNumber,LicenseId,LicenseName')
        assert lines[1].endswith('LicenseName is required.')

    def test_errors_csv_without_invalid_rows(self, client, make_csv):
        session_id = _upload(client, make_csv([',Suite,Tools,,,,,'])).json()['id']
        assert client.get(f'/api/import/sessions/{session_id}/errors.csv').status_code == 409

    def test_sample_csv(self, client):
        response = client.get('/api/import/sample.csv')
        assert response.status_code == 200
        assert 'attachment' in response.headers['content-disposition']
        assert response.text.startswith('LicenseId,LicenseName,CategoryName')


class TestHealth:
    """Test health endpoints."""

    def test_ping(self, client):
        assert client.get('/api/ping').json() == {'ping': 'pong'}
