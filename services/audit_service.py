"""
Audit Service - Append-only audit trail.

Entries are added to the caller's database session and become durable only
when the caller's transaction commits, so an audit failure fails the
operation that triggered it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from backend.models.schema import AuditLogEntry, utcnow

logger = logging.getLogger(__name__)

# Audit actions written by the import pipeline
CATEGORY_CREATED = 'Category.Created'
LICENSE_CREATED = 'License.Created'
LICENSE_UPDATED = 'License.Updated'
IMPORT_COMMITTED = 'Import.Committed'


@dataclass(frozen=True)
class ActorContext:
    """Who an operation is performed for. Never authenticated here."""
    user_id: str
    email: str = ''
    ip_address: Optional[str] = None
    correlation_id: Optional[str] = None


class AuditService:
    """Writes AuditLogEntry rows inside the caller's transaction."""

    def __init__(self, db_session: Session):
        self.session = db_session

    def record(self, actor: ActorContext, action: str, entity_type: str,
               entity_id, summary: str) -> AuditLogEntry:
        """
        Append an audit entry.

        Args:
            actor: Acting user
            action: Action name, e.g. 'License.Created'
            entity_type: Entity kind, e.g. 'License'
            entity_id: Entity identifier (stringified)
            summary: Human-readable description

        Returns:
            The pending AuditLogEntry
        """
        entry = AuditLogEntry(
            occurred_at=utcnow(),
            actor_user_id=actor.user_id or '',
            actor_email=actor.email or '',
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            summary=summary,
            correlation_id=actor.correlation_id,
            ip_address=actor.ip_address
        )
        self.session.add(entry)
        logger.debug(f"Audit {action} {entity_type}:{entity_id} by {actor.user_id}")
        return entry
