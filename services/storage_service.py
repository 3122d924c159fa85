"""
Storage Service - Uploaded file storage and cleanup.

Uploads are stored under generated opaque names; the caller-supplied
filename is never used to build a storage path.
"""

import uuid
import logging
from pathlib import Path
from typing import Iterable, Optional
from datetime import datetime

logger = logging.getLogger(__name__)

# Default storage directory
DEFAULT_IMPORT_DIR = 'imports/'
DEFAULT_ALLOWED_EXTENSIONS = ('.csv',)
DEFAULT_ALLOWED_CONTENT_TYPES = ('text/csv', 'application/vnd.ms-excel', 'text/plain')


class StorageService:
    """
    Framework-agnostic storage service for uploaded import files.

    Handles saving, resolving, deleting and expiring stored uploads.
    """

    def __init__(self, storage_dir: str = DEFAULT_IMPORT_DIR):
        """
        Initialize storage service.

        Args:
            storage_dir: Directory to store uploads (default: 'imports/')
        """
        self.storage_dir = storage_dir
        self._ensure_directory_exists()

    def _ensure_directory_exists(self):
        """Ensure the storage directory exists."""
        Path(self.storage_dir).mkdir(parents=True, exist_ok=True)
        logger.debug(f"Storage directory ensured: {self.storage_dir}")

    def resolve_path(self, stored_name: str) -> Path:
        """
        Resolve a stored name to its path inside the storage directory.

        Any directory components are stripped from the name.
        """
        return Path(self.storage_dir) / Path(stored_name).name

    def save_upload(self, content: bytes, extension: str = '.csv') -> str:
        """
        Store uploaded bytes under a new opaque name.

        Args:
            content: Raw file content
            extension: Extension for the stored file

        Returns:
            Generated stored name (not a path)
        """
        self._ensure_directory_exists()

        stored_name = f"{uuid.uuid4().hex}{extension}"
        dest_path = self.resolve_path(stored_name)
        dest_path.write_bytes(content)
        logger.info(f"Stored upload as {stored_name} ({len(content)} bytes)")

        return stored_name

    def read_upload(self, stored_name: str) -> bytes:
        """Read a stored upload back."""
        return self.resolve_path(stored_name).read_bytes()

    def delete_file(self, stored_name: str) -> bool:
        """
        Delete a stored upload.

        Args:
            stored_name: Name returned by save_upload()

        Returns:
            True if file was deleted, False if file didn't exist
        """
        path = self.resolve_path(stored_name)

        if path.exists():
            path.unlink()
            logger.info(f"Deleted file: {path}")
            return True
        else:
            logger.warning(f"File not found for deletion: {path}")
            return False

    def try_delete(self, stored_name: Optional[str]) -> bool:
        """
        Delete a stored upload, logging instead of raising on failure.

        Returns:
            True if the file was deleted
        """
        if not stored_name:
            return False

        try:
            return self.delete_file(stored_name)
        except OSError as e:
            logger.warning(f"Failed to delete import file {stored_name}: {e}")
            return False

    def cleanup_temp_files(self, older_than_hours: int = 24) -> int:
        """
        Delete stored uploads older than specified hours.

        Args:
            older_than_hours: Remove files older than this many hours

        Returns:
            Number of files deleted
        """
        storage_path = Path(self.storage_dir)

        if not storage_path.exists():
            return 0

        current_time = datetime.now().timestamp()
        cutoff_time = current_time - (older_than_hours * 3600)

        deleted_count = 0

        for file_path in storage_path.glob("*"):
            if file_path.is_file():
                file_mtime = file_path.stat().st_mtime
                if file_mtime < cutoff_time:
                    try:
                        file_path.unlink()
                        deleted_count += 1
                        logger.debug(f"Cleaned up stale upload: {file_path}")
                    except OSError as e:
                        logger.error(f"Error deleting stale upload {file_path}: {e}")

        if deleted_count > 0:
            logger.info(f"Cleaned up {deleted_count} stale uploads")

        return deleted_count

    def list_files(self) -> list:
        """List stored upload names."""
        self._ensure_directory_exists()
        return sorted(f.name for f in Path(self.storage_dir).glob("*") if f.is_file())

    @staticmethod
    def validate_file_extension(filename: str,
                                allowed_extensions: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS) -> bool:
        """
        Validate file extension.

        Args:
            filename: Caller-supplied filename
            allowed_extensions: Allowed extensions (e.g., ['.csv'])

        Returns:
            True if extension is allowed, False otherwise
        """
        ext = Path(filename or '').suffix.lower()
        is_valid = ext in [e.lower() for e in allowed_extensions]

        if not is_valid:
            logger.warning(f"Invalid file extension: {ext} (allowed: {list(allowed_extensions)})")

        return is_valid

    @staticmethod
    def validate_content_type(content_type: Optional[str],
                              allowed_content_types: Iterable[str] = DEFAULT_ALLOWED_CONTENT_TYPES) -> bool:
        """Validate the declared content type (parameters such as charset are ignored)."""
        media_type = (content_type or '').split(';')[0].strip().lower()
        is_valid = media_type in [c.lower() for c in allowed_content_types]

        if not is_valid:
            logger.warning(f"Invalid content type: {content_type}")

        return is_valid

    @staticmethod
    def validate_file_size(size_bytes: int, max_size_mb: int = 10) -> bool:
        """
        Validate that file size is within limit.

        Args:
            size_bytes: File size in bytes
            max_size_mb: Maximum allowed size in MB

        Returns:
            True if size is within limit, False otherwise
        """
        is_valid = size_bytes <= max_size_mb * 1024 * 1024

        if not is_valid:
            logger.warning(f"File size {size_bytes / 1024 / 1024:.2f} MB exceeds limit of {max_size_mb} MB")

        return is_valid
