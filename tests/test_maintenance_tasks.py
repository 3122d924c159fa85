"""
Tests for background maintenance tasks and upload storage.
"""

import os
import time

from services.storage_service import StorageService
from tasks.maintenance_tasks import cleanup_stale_uploads


def _age_file(path, hours):
    past = time.time() - hours * 3600
    os.utime(path, (past, past))


class TestCleanupStaleUploads:
    """Test stale upload removal."""

    def test_removes_only_old_files(self, storage):
        old_name = storage.save_upload(b'old')
        new_name = storage.save_upload(b'new')
        _age_file(storage.resolve_path(old_name), hours=30)

        result = cleanup_stale_uploads(storage_dir=storage.storage_dir, older_than_hours=24)

        assert result == {'deleted_files': 1, 'older_than_hours': 24}
        assert storage.list_files() == [new_name]

    def test_empty_directory(self, tmp_path):
        result = cleanup_stale_uploads(storage_dir=str(tmp_path / 'none'), older_than_hours=1)
        assert result['deleted_files'] == 0

    def test_task_is_registered_on_beat_schedule(self):
        from tasks.celery_app import celery_app

        schedule = celery_app.conf.beat_schedule['cleanup-stale-uploads']
        assert schedule['task'] == 'tasks.maintenance_tasks.cleanup_stale_uploads'
        assert schedule['schedule'] == 3600.0


class TestStorageService:
    """Test stored upload naming and validation helpers."""

    def test_resolve_path_strips_directories(self, storage):
        path = storage.resolve_path('../../etc/passwd')
        assert path.parent.resolve() == storage.resolve_path('x').parent.resolve()
        assert path.name == 'passwd'

    def test_try_delete_missing_file(self, storage):
        assert storage.try_delete('missing.csv') is False
        assert storage.try_delete(None) is False

    def test_validators(self):
        assert StorageService.validate_file_extension('LICENSES.CSV')
        assert not StorageService.validate_file_extension('licenses.xlsx')
        assert not StorageService.validate_file_extension(None)
        assert StorageService.validate_content_type('application/vnd.ms-excel')
        assert StorageService.validate_content_type('text/plain; charset=latin-1')
        assert not StorageService.validate_content_type(None)
        assert StorageService.validate_file_size(10 * 1024 * 1024, 10)
        assert not StorageService.validate_file_size(10 * 1024 * 1024 + 1, 10)
