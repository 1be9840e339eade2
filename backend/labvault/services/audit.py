"""Audit logging service.

Entries are added to the caller's session so they commit or roll back with
the mutation they describe. Nothing here opens its own transaction.
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from labvault.models.audit import AuditLog
from labvault.models.enums import AuditAction
from labvault.schemas import Actor

logger = logging.getLogger(__name__)


class AuditService:
    """Service for creating structured audit log entries."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def log(
        self,
        *,
        actor: Actor,
        action: AuditAction,
        entity_type: str,
        entity_id: uuid.UUID | str,
        details: dict | None = None,
    ) -> AuditLog:
        """Create an audit log entry.

        Args:
            actor: Who performed the action.
            action: CREATE, UPDATE, DELETE, MOVE, or IMPORT.
            entity_type: The type of entity affected (e.g. "sample", "task").
            entity_id: Id of the affected entity, or a batch sentinel.
            details: Action-specific payload (locations, counts, changed fields).
        """
        entry = AuditLog(
            id=uuid.uuid4(),
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor=actor.id,
            actor_email=actor.email,
            details=details,
        )
        self.db.add(entry)

        # Staged only: the entry commits or rolls back with the caller's transaction
        logger.debug(
            "AUDIT staged: actor=%s action=%s entity=%s/%s",
            actor.id,
            action.value,
            entity_type,
            entity_id,
        )
        return entry

    async def log_create(
        self,
        *,
        actor: Actor,
        entity_type: str,
        entity_id: uuid.UUID | str,
        details: dict | None = None,
    ) -> AuditLog:
        """Shorthand for logging a CREATE action."""
        return await self.log(
            actor=actor,
            action=AuditAction.CREATE,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        )

    async def log_update(
        self,
        *,
        actor: Actor,
        entity_type: str,
        entity_id: uuid.UUID | str,
        details: dict | None = None,
    ) -> AuditLog:
        """Shorthand for logging an UPDATE action."""
        return await self.log(
            actor=actor,
            action=AuditAction.UPDATE,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        )

    async def log_delete(
        self,
        *,
        actor: Actor,
        entity_type: str,
        entity_id: uuid.UUID | str,
        details: dict | None = None,
    ) -> AuditLog:
        """Shorthand for logging a DELETE action."""
        return await self.log(
            actor=actor,
            action=AuditAction.DELETE,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        )
