import logging
from datetime import datetime

from app.cashclose.core.errors import json_safe
from app.cashclose.core.logging import log_event
from app.cashclose.db.models import AuditEvent
from app.cashclose.repos.audit import AuditRepository

logger = logging.getLogger("cashclose.audit")

CLOSURE_ENTITY = "cash_closure"


class AuditService:
    """Append-only trail of closure submissions and reviews.

    Writing the trail is best effort: the closure has already been committed
    when an event is recorded, so a failed write is logged and the request
    still succeeds.
    """

    def __init__(self, db):
        self.repo = AuditRepository(db)

    def record_closure_event(
        self,
        actor,
        closure,
        *,
        action: str,
        before: dict | None = None,
        after: dict | None = None,
        metadata: dict | None = None,
        trace_id: str | None = None,
        result: str = "success",
    ) -> AuditEvent | None:
        event = AuditEvent(
            user_id=actor.user_id,
            trace_id=trace_id,
            actor=actor.username,
            actor_role=actor.role,
            action=action,
            entity_type=CLOSURE_ENTITY,
            entity_id=str(closure.id),
            before_payload=json_safe(before),
            after_payload=json_safe(after),
            event_metadata=json_safe(metadata or {}),
            result=result,
            created_at=datetime.utcnow(),
        )
        try:
            return self.repo.create(event)
        except Exception as exc:
            self.repo.db.rollback()
            log_event(
                logger,
                "audit.write_failed",
                action=action,
                entity_id=str(closure.id),
                trace_id=trace_id,
                error_class=exc.__class__.__name__,
            )
            return None
