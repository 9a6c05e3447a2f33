"""Audit service for balance-changing and account events."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional
import uuid

from sqlalchemy.orm import Session

from payment_ledger.models.audit import AuditEvent


class AuditService:
    """Append audit trail entries inside the caller's transaction."""

    @staticmethod
    def log_event(
        db: Session,
        *,
        user_id: Optional[uuid.UUID],
        action: str,
        entity_type: str,
        entity_id: Any,
        changes: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        event = AuditEvent(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            changes=json.dumps(changes or {}, ensure_ascii=False, default=str),
        )
        db.add(event)
        db.flush()
        return event


audit_service = AuditService()
