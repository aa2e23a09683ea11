# core/audit.py

from typing import Any, Dict, Optional, Protocol

from core.errors import ServiceError
from core.logging_config import logger
from core.repository import Repository
from core.utils import iso, utcnow
from models.approval import WorkflowActor


def build_audit_event(
    entity_type: str,
    entity_id: str,
    action: str,
    actor: WorkflowActor,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    changes = None
    if before is not None or after is not None:
        changes = {"before": before, "after": after}

    return {
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "actor_id": actor.actor_id,
        "actor_type": str(actor.actor_type),
        "workspace_id": actor.workspace_id,
        "changes": changes,
        "metadata": metadata,
    }


class AuditSink(Protocol):
    def log(self, event: Dict[str, Any]) -> Optional[str]:
        ...


class SupabaseAuditSink:
    """Append-only audit_events writer. Never raises; a lost audit row is logged."""

    def __init__(self, repository: Repository):
        self.repository = repository

    def log(self, event: Dict[str, Any]) -> Optional[str]:
        record = dict(event)
        record["created_at"] = iso(utcnow())
        try:
            row = self.repository.insert("audit_events", record)
        except ServiceError as e:
            logger.error(
                f"Failed to log audit event {event.get('action')} on "
                f"{event.get('entity_type')}/{event.get('entity_id')}: {e.message}"
            )
            return None
        return row.get("id")
