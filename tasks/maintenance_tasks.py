"""
Maintenance background tasks.

Stored upload files are only needed until their session is committed or
cancelled; this module removes the ones left behind. Session records are
never deleted.
"""

import os
import logging
from typing import Dict, Optional

from tasks.celery_app import celery_app
from services.storage_service import StorageService, DEFAULT_IMPORT_DIR

logger = logging.getLogger(__name__)

IMPORT_STORAGE_DIR = os.getenv('IMPORT_STORAGE_DIR', DEFAULT_IMPORT_DIR)
STALE_UPLOAD_HOURS = int(os.getenv('STALE_UPLOAD_HOURS', '24'))


@celery_app.task(name='tasks.maintenance_tasks.cleanup_stale_uploads')
def cleanup_stale_uploads(storage_dir: Optional[str] = None,
                          older_than_hours: Optional[int] = None) -> Dict[str, int]:
    """
    Delete stored upload files older than the configured age.

    Args:
        storage_dir: Upload directory (default: IMPORT_STORAGE_DIR)
        older_than_hours: Age limit (default: STALE_UPLOAD_HOURS)

    Returns:
        Dictionary with the number of deleted files
    """
    storage_dir = storage_dir or IMPORT_STORAGE_DIR
    older_than_hours = older_than_hours if older_than_hours is not None else STALE_UPLOAD_HOURS

    storage = StorageService(storage_dir)
    deleted = storage.cleanup_temp_files(older_than_hours=older_than_hours)

    logger.info(f"Stale upload cleanup in {storage_dir}: {deleted} files removed (> {older_than_hours}h)")

    return {
        'deleted_files': deleted,
        'older_than_hours': older_than_hours
    }
