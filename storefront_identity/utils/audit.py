"""
Structured Audit Logging Utility.

Every identity state change (login, profile update, logout) is emitted as
one structured JSON object.  The payload is validated by a Pydantic model
before it reaches the logger so malformed events fail at the call site.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, Field

from storefront_identity.logger import StructuredLogger

__all__ = ["AuditEvent", "log_audit_event", "utc_now_iso"]

# Flat scalars only; nested structures should be modelled explicitly.
DetailValue = Union[str, int, float, bool, None]


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class AuditEvent(BaseModel):
    """Schema-validated representation of a single audit trail entry."""

    timestamp: str
    action: str
    entity_type: str
    entity_id: str
    user_id: str
    details: dict[str, DetailValue] = Field(default_factory=dict)


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    entity_type: str,
    entity_id: str,
    user_id: str,
    details: Optional[dict[str, DetailValue]] = None,
) -> AuditEvent:
    """Log a structured JSON audit event and return it.

    Args:
        logger: The logger instance to write to.
        action: What happened (e.g. ``"LOGIN"``, ``"PROFILE_UPDATE"``).
        entity_type: Type of entity affected (e.g. ``"UserProfile"``).
        entity_id: Primary key of the affected entity.
        user_id: Platform ID of the user who performed the action.
        details: Optional additional context.
    """
    event = AuditEvent(
        timestamp=utc_now_iso(),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        details=details or {},
    )
    logger.info("AUDIT: %s", json.dumps(event.model_dump(), default=str))
    return event
