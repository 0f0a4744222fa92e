"""Audit trail for booking, workflow and settings changes"""
import logging
from typing import Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from rentalops.models.audit import Audit
from rentalops.core.enums import AuditAction
from rentalops.core.metrics import audit_logs_created
from rentalops.utils.hashing import payload_hash

logger = logging.getLogger(__name__)


async def log_audit(
    db: AsyncSession,
    user_id: int,
    action: AuditAction,
    payload: Optional[Any] = None,
    entity_id: Optional[int] = None,
    note: Optional[str] = None,
) -> None:

    try:
        if payload is None:
            payload = {}

        if hasattr(payload, "model_dump"):
            payload_dict = payload.model_dump(mode="json", exclude_unset=True)
        elif isinstance(payload, dict):
            payload_dict = payload
        else:
            payload_dict = {}

        audit_record = Audit(
            user_id=int(user_id),
            action=str(action),
            entity_id=entity_id,
            payload_hash=payload_hash(payload_dict),
            note=note,
        )

        db.add(audit_record)
        await db.flush()
        audit_logs_created.labels(action=str(action)).inc()

    except Exception as e:
        logger.error(f"Audit logging failed for action {action}: {e}", exc_info=True)


async def log_login(
    db: AsyncSession,
    user_id: int,
    username: str
) -> None:
    await log_audit(db, user_id, AuditAction.LOGIN, {"username": username})
