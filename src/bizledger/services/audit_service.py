"""Audit trail recording.

Audit writes are fire-and-forget: each event goes into its own savepoint
and a failure to store it is logged, never raised to the caller.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bizledger.models import AuditEvent

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal, date, datetime)):
        return str(value)
    return value


class AuditService:
    """Writes audit_event rows and mirrors them to the log."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        *,
        action: str,
        entity_type: str,
        entity_id: UUID | None = None,
        organization_id: UUID | None = None,
        actor_user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
        severity: str = "info",
    ) -> None:
        """Record an audit event."""
        level = logging.WARNING if severity == "warning" else logging.INFO
        logger.log(
            level,
            "audit %s %s=%s org=%s actor=%s details=%s",
            action,
            entity_type,
            entity_id,
            organization_id,
            actor_user_id,
            details,
        )

        try:
            async with self.session.begin_nested():
                self.session.add(
                    AuditEvent(
                        organization_id=organization_id,
                        actor_user_id=actor_user_id,
                        entity_type=entity_type,
                        entity_id=entity_id,
                        action=action,
                        severity=severity,
                        details_json=_jsonable(details) if details else None,
                    )
                )
        except SQLAlchemyError:
            logger.exception("Failed to store audit event %s for %s %s", action, entity_type, entity_id)

    async def warn(self, **kwargs: Any) -> None:
        """Record a data-integrity warning."""
        await self.record(severity="warning", **kwargs)
