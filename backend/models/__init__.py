"""Models package for the license import system."""
from backend.models.schema import Base, Category, License, AuditLogEntry
from backend.models.import_session import (
    ImportSession, ImportRow, ImportSessionStatus, ImportRowAction
)

__all__ = [
    'Base', 'Category', 'License', 'AuditLogEntry',
    'ImportSession', 'ImportRow', 'ImportSessionStatus', 'ImportRowAction'
]
