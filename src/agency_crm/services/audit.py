import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.agency_crm import models

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = ("password", "token", "secret", "key", "email", "phone")


def redact_sensitive_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    redacted = dict(data)
    for key, value in redacted.items():
        if not any(field in key.lower() for field in SENSITIVE_FIELDS):
            continue
        if isinstance(value, str):
            redacted[key] = f"{value[:3]}***" if len(value) > 3 else "***"
        else:
            redacted[key] = "[REDACTED]"
    return redacted


def audit_log(
    db: Session,
    actor_id: str,
    agency_id: str,
    entity: str,
    action: str,
    entity_id: Optional[str] = None,
    diff: Optional[Dict[str, Any]] = None,
) -> None:
    """Record an audit entry. Failures are logged and never raised."""
    entry = models.AuditLog(
        actor_id=actor_id,
        agency_id=agency_id,
        entity=entity,
        action=action,
        entity_id=entity_id,
        diff=redact_sensitive_fields(diff) if diff else None,
    )
    try:
        # Savepoint so a failed audit row leaves the caller's work intact
        with db.begin_nested():
            db.add(entry)
        logger.info(f"[AUDIT] Logged {entity}:{action} by {actor_id}")
    except SQLAlchemyError as e:
        logger.error(f"[AUDIT] Failed to log audit entry: {e}")
