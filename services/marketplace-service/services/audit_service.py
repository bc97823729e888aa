"""Audit trail service."""
import logging
from typing import Any, Dict, List, Optional
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session
from opentelemetry import trace

from config import MAX_PAGE_LIMIT
from models import AuditLog, Role
from monitoring import audit_entries_counter
from services.access import require_role

logger = logging.getLogger(__name__)


def snapshot(row: Any) -> Optional[Dict[str, Any]]:
    """
    Convert a model instance into a JSON-safe dict of its column values.

    Decimals become numbers and datetimes ISO strings so the result can be
    stored in a JSON column.
    """
    if row is None:
        return None
    return jsonable_encoder({
        column.name: getattr(row, column.name)
        for column in row.__table__.columns
    })


class AuditService:
    """Appends audit entries for mutating actions."""

    def __init__(
        self,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ):
        """
        Initialize audit service.

        Args:
            ip_address: Client address of the current request
            user_agent: User-Agent header of the current request
        """
        self.ip_address = ip_address
        self.user_agent = user_agent
        self.tracer = trace.get_tracer(__name__)

    def record(
        self,
        db: Session,
        user_id: int,
        action: str,
        resource: str,
        resource_id: Optional[Any] = None,
        before: Optional[Any] = None,
        after: Optional[Any] = None,
        metadata: Optional[Any] = None
    ) -> AuditLog:
        """
        Add an audit entry to the caller's transaction.

        The entry is flushed with the rest of the unit of work; committing is
        left to the calling service so the audit row and the change it
        describes land together.
        """
        details = {}
        if before is not None:
            details["before"] = jsonable_encoder(before)
        if after is not None:
            details["after"] = jsonable_encoder(after)
        if metadata is not None:
            details["metadata"] = jsonable_encoder(metadata)

        entry = AuditLog(
            user_id=user_id,
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=details or None,
            ip_address=self.ip_address,
            user_agent=self.user_agent
        )
        db.add(entry)

        audit_entries_counter.add(1, {"action": action, "resource": resource})
        logger.info("Audit entry recorded", extra={
            "user_id": user_id,
            "action": action,
            "resource": resource,
            "resource_id": entry.resource_id
        })
        return entry

    def list_entries(
        self,
        db: Session,
        user_id: int,
        resource: Optional[str] = None,
        action: Optional[str] = None,
        actor_id: Optional[int] = None,
        limit: int = 50
    ) -> List[AuditLog]:
        """List recent audit entries, newest first. Managers only."""
        require_role(db, user_id, Role.MANAGER)

        with self.tracer.start_as_current_span("db.query.get_audit_logs") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "audit_logs")

            query = db.query(AuditLog)
            if resource:
                query = query.filter(AuditLog.resource == resource)
            if action:
                query = query.filter(AuditLog.action == action)
            if actor_id is not None:
                query = query.filter(AuditLog.user_id == actor_id)

            entries = query.order_by(AuditLog.id.desc()).limit(min(limit, MAX_PAGE_LIMIT)).all()
            db_span.set_attribute("db.rows_returned", len(entries))

        return entries
