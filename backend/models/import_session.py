"""
Import session models for CSV license imports.

This module defines SQLAlchemy models for tracking an uploaded file from
preview through commit or cancellation, including every candidate row.
"""

import uuid
from enum import Enum
from sqlalchemy import (
    Boolean, Column, Integer, String, Text, Date, DateTime, Uuid,
    ForeignKey, CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from backend.models.schema import Base, utcnow


class ImportSessionStatus(str, Enum):
    """Import session lifecycle status."""
    PENDING = 'Pending'
    COMMITTED = 'Committed'
    CANCELLED = 'Cancelled'


class ImportRowAction(str, Enum):
    """Classification outcome of a single row."""
    NEW = 'New'
    UPDATE = 'Update'
    INVALID = 'Invalid'


class ImportSession(Base):
    """
    Represents one upload-to-commit-or-cancel attempt.

    Row counts are fixed when the session is created; the commit and cancel
    transitions are the only writes after that.
    """

    __tablename__ = 'import_sessions'
    __table_args__ = (
        CheckConstraint(
            "status IN ('Pending', 'Committed', 'Cancelled')",
            name='import_sessions_status_check'
        ),
        Index('idx_import_sessions_status', 'status'),
        Index('idx_import_sessions_created_at', 'created_at'),
        {'comment': 'Tracks CSV license import sessions'}
    )

    id = Column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        nullable=False
    )
    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
        comment='Session creation timestamp'
    )
    created_by_user_id = Column(
        String(255),
        nullable=False,
        default='',
        comment='Actor that uploaded the file'
    )
    status = Column(
        String(20),
        nullable=False,
        default=ImportSessionStatus.PENDING.value,
        comment='Pending, Committed or Cancelled'
    )
    original_filename = Column(
        String(255),
        nullable=False,
        comment='Caller-supplied filename (display only)'
    )
    stored_filename = Column(
        String(255),
        nullable=False,
        comment='Opaque generated name of the stored upload'
    )

    # Counts fixed at creation
    total_rows = Column(Integer, nullable=False, default=0)
    valid_rows = Column(Integer, nullable=False, default=0)
    invalid_rows = Column(Integer, nullable=False, default=0)

    # Counts from classification, overwritten by commit
    new_licenses = Column(Integer, nullable=False, default=0)
    updated_licenses = Column(Integer, nullable=False, default=0)
    new_categories = Column(Integer, nullable=False, default=0)

    completed_at = Column(
        DateTime,
        nullable=True,
        comment='Commit or cancel timestamp'
    )

    # Relationships
    rows = relationship(
        'ImportRow',
        back_populates='session',
        cascade='all, delete-orphan',
        order_by='ImportRow.row_number'
    )

    def __repr__(self):
        return f"<ImportSession(id='{self.id}', status='{self.status}', rows={self.total_rows})>"

    def is_pending(self) -> bool:
        """Check if session is still awaiting commit or cancel."""
        return self.status == ImportSessionStatus.PENDING


class ImportRow(Base):
    """
    Represents one candidate license record from an uploaded file.

    is_valid always equals (action != 'Invalid').
    """

    __tablename__ = 'import_rows'
    __table_args__ = (
        CheckConstraint(
            "action IN ('New', 'Update', 'Invalid')",
            name='import_rows_action_check'
        ),
        UniqueConstraint('session_id', 'row_number', name='uq_import_rows_session_row'),
        Index('idx_import_rows_session_id', 'session_id'),
        {'comment': 'Candidate rows of an import session'}
    )

    id = Column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        nullable=False
    )
    session_id = Column(
        Uuid,
        ForeignKey('import_sessions.id', ondelete='CASCADE'),
        nullable=False
    )
    row_number = Column(
        Integer,
        nullable=False,
        comment='1-based data row number in file order'
    )
    license_id_raw = Column(
        String(50),
        nullable=True,
        comment='LicenseId as written in the file'
    )
    license_id = Column(
        Uuid,
        nullable=True,
        comment='LicenseId parsed from the file'
    )
    resolved_license_id = Column(
        Uuid,
        nullable=True,
        comment='License the row creates or updates, set by classification'
    )
    license_name = Column(String(200), nullable=False, default='')
    category_name = Column(String(200), nullable=False, default='')
    vendor = Column(String(200), nullable=True)
    seats_purchased = Column(Integer, nullable=True)
    seats_assigned = Column(Integer, nullable=True)
    expires_on = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    is_valid = Column(
        Boolean,
        nullable=False,
        default=False
    )
    action = Column(
        String(20),
        nullable=False,
        default=ImportRowAction.INVALID.value
    )
    error_message = Column(
        String(1000),
        nullable=True,
        comment='Space-joined validation messages'
    )

    # Relationship
    session = relationship('ImportSession', back_populates='rows')

    def __repr__(self):
        return f"<ImportRow(session_id='{self.session_id}', row={self.row_number}, action='{self.action}')>"
