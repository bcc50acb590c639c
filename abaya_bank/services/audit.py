"""Best-effort audit trail for privileged actions"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from abaya_bank.infrastructure.database.models import AuditLog
from abaya_bank.infrastructure.database.repositories import AuditRepository
from abaya_bank.infrastructure.observability.metrics import audit_write_failures_counter

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    """Client details captured alongside an audited action"""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def record_audit(
    db: Session,
    actor_id: uuid.UUID,
    action: str,
    target_type: str,
    target_id: uuid.UUID,
    reason: Optional[str] = None,
    previous_state: Optional[Dict[str, Any]] = None,
    new_state: Optional[Dict[str, Any]] = None,
    details: Optional[Dict[str, Any]] = None,
    context: Optional[RequestContext] = None,
) -> Optional[AuditLog]:
    """
    Persist an audit entry in its own commit, after the audited action has committed.

    Never raises on database errors: the action already happened, so a lost
    audit entry is logged and counted instead of surfacing to the caller.
    """
    context = context or RequestContext()
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        reason=reason,
        previous_state=previous_state,
        new_state=new_state,
        details=details or {},
        ip_address=context.ip_address,
        user_agent=context.user_agent,
    )
    try:
        AuditRepository(db).add(entry)
        db.commit()
        return entry
    except SQLAlchemyError as e:
        db.rollback()
        audit_write_failures_counter.inc()
        logger.error(
            f"Failed to create audit log: {e}",
            extra={"action": action, "target_type": target_type, "target_id": str(target_id)},
        )
        return None


def list_audit_logs(
    db: Session,
    action: Optional[str] = None,
    target_type: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> Tuple[List[AuditLog], int]:
    return AuditRepository(db).list_logs(action, target_type, page, limit)
