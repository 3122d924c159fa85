"""
SQLAlchemy models for the license catalog.

This module defines the entities the import pipeline reconciles into
(categories and licenses) plus the append-only audit log, matching the
schema defined in Alembic migrations.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Boolean, Column, Integer, String, Text, Date, DateTime, Uuid,
    ForeignKey, CheckConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Current UTC time as a naive timestamp (columns are stored without zone)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Category(Base):
    """Groups licenses; matched by name, case-insensitive."""

    __tablename__ = 'categories'
    __table_args__ = (
        Index('idx_categories_name', 'name'),
        {'comment': 'License categories'}
    )

    id = Column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        nullable=False
    )
    name = Column(
        String(200),
        nullable=False,
        comment='Display name, unique case-insensitively'
    )
    description = Column(
        Text,
        nullable=True
    )
    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
        comment='Creation timestamp'
    )

    # Relationships
    licenses = relationship('License', back_populates='category')

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"


class License(Base):
    """Represents a licensed product tracked in the portfolio."""

    __tablename__ = 'licenses'
    __table_args__ = (
        CheckConstraint(
            "status IN ('Unknown', 'Good', 'Warning', 'Critical', 'Expired')",
            name='licenses_status_check'
        ),
        Index('idx_licenses_name', 'name'),
        Index('idx_licenses_category_id', 'category_id'),
        Index('idx_licenses_expires_on', 'expires_on'),
        {'comment': 'Licensed products tracked in the portfolio'}
    )

    id = Column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        nullable=False
    )
    name = Column(
        String(200),
        nullable=False
    )
    vendor = Column(
        String(200),
        nullable=True
    )
    category_id = Column(
        Uuid,
        ForeignKey('categories.id', ondelete='SET NULL'),
        nullable=True
    )
    seats_purchased = Column(
        Integer,
        nullable=True
    )
    seats_assigned = Column(
        Integer,
        nullable=True
    )
    expires_on = Column(
        Date,
        nullable=True,
        comment='Expiry date (UTC calendar date)'
    )
    status = Column(
        String(20),
        default='Unknown',
        nullable=False,
        comment='Computed expiry status'
    )
    use_custom_thresholds = Column(
        Boolean,
        default=False,
        nullable=False,
        comment='True if the threshold overrides below apply'
    )
    critical_threshold_days = Column(
        Integer,
        nullable=True
    )
    warning_threshold_days = Column(
        Integer,
        nullable=True
    )
    notes = Column(
        Text,
        nullable=True
    )
    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False
    )
    updated_at = Column(
        DateTime,
        nullable=True,
        comment='Set only when an existing license is modified'
    )

    # Relationship to category
    category = relationship('Category', back_populates='licenses')

    def __repr__(self):
        return f"<License(id={self.id}, name='{self.name}', status='{self.status}')>"


class AuditLogEntry(Base):
    """Append-only record of a change made on behalf of an actor."""

    __tablename__ = 'audit_log'
    __table_args__ = (
        Index('idx_audit_log_occurred_at', 'occurred_at'),
        Index('idx_audit_log_entity', 'entity_type', 'entity_id'),
        {'comment': 'Append-only audit trail'}
    )

    id = Column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        nullable=False
    )
    occurred_at = Column(
        DateTime,
        default=utcnow,
        nullable=False
    )
    actor_user_id = Column(
        String(255),
        nullable=False,
        default=''
    )
    actor_email = Column(
        String(255),
        nullable=False,
        default=''
    )
    action = Column(
        String(100),
        nullable=False,
        comment='e.g. License.Created, Import.Committed'
    )
    entity_type = Column(
        String(100),
        nullable=False
    )
    entity_id = Column(
        String(100),
        nullable=False
    )
    summary = Column(
        Text,
        nullable=False,
        default=''
    )
    correlation_id = Column(
        String(100),
        nullable=True
    )
    ip_address = Column(
        String(64),
        nullable=True
    )

    def __repr__(self):
        return f"<AuditLogEntry(action='{self.action}', entity='{self.entity_type}:{self.entity_id}')>"
