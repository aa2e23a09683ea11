# services/approval_engine.py
# Tenant-initiated change requests: creation, the decision workflow,
# bulk decisions and the operator retry for approvals whose change
# could not be applied.

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from core.audit import AuditSink, build_audit_event
from core.errors import (
    ApprovalAlreadyProcessedError,
    NotFoundError,
    ServiceError,
    UnknownServiceError,
    ValidationError,
    WorkflowStepFailedError,
)
from core.logging_config import logger
from core.notifications import (
    Notifier,
    build_approval_decision_notification,
    build_approval_request_notification,
    send_webhook_message,
)
from core.repository import Record, Repository
from core.utils import iso, utcnow
from models.approval import (
    ApprovalDecisionInput,
    ApprovalDecisionOutput,
    ApprovalRead,
    BulkDecisionOutput,
    BulkItemResult,
    CreateApprovalInput,
    CreateApprovalOutput,
    WorkflowActor,
)
from models.enums import ActorType, ApprovalPriority, ApprovalStatus, Decision, approval_type_label
from services.approval_handlers import HandlerContext, get_handler
from services.room_transfer import RoomTransferService


def _in_workspace(record: Record, actor: WorkflowActor) -> bool:
    if actor.actor_type == ActorType.system:
        return True
    return record.get("workspace_id") in (None, actor.workspace_id)


class ApprovalEngine:
    """
    process_approval runs these steps in order:

      1. fetch           NotFound / ApprovalAlreadyProcessed unless pending
      2. validate        approve only; nothing is written on failure
      3. persist         conditional on (id, status=pending, version);
                         zero rows means another decision won the race
      4. apply           approve only; handler side effects
      5. mark applied    approved_pending_application → approved
      6. audit + notify  failures logged, never raised

    Side effects are not transactional. If step 4 fails the decision
    stays recorded as approved_pending_application, the error carries
    ``decision_recorded`` and operators are alerted; apply_pending_change
    re-runs step 4 and 5.
    """

    def __init__(
        self,
        repository: Repository,
        notifier: Optional[Notifier] = None,
        audit_sink: Optional[AuditSink] = None,
        transfer_service: Optional[RoomTransferService] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.notifier = notifier
        self.audit_sink = audit_sink
        self.clock = clock
        self.transfer_service = transfer_service or RoomTransferService(repository, audit_sink, clock)

    # =====================================================
    # Create
    # =====================================================
    def create_approval(self, data: CreateApprovalInput, actor: WorkflowActor) -> CreateApprovalOutput:
        logger.info(f"create_approval started: {data.type} for tenant {data.tenant_id}")

        tenant = self.repository.get("tenants", data.tenant_id)
        if not tenant or tenant.get("workspace_id") not in (None, data.workspace_id):
            raise NotFoundError("Tenant not found", {"tenant_id": data.tenant_id})
        if tenant.get("status") == "checked_out":
            raise ValidationError(
                "Cannot create approval for checked-out tenant",
                {"tenant_id": data.tenant_id},
            )

        now = iso(self.clock())
        approval = self.repository.insert("approvals", {
            "requester_tenant_id": data.tenant_id,
            "workspace_id": data.workspace_id,
            "owner_id": data.owner_id,
            "type": str(data.type),
            "title": data.title,
            "description": data.description,
            "payload": data.payload,
            "priority": str(data.priority),
            "document_ids": data.document_ids,
            "status": str(ApprovalStatus.pending),
            "change_applied": False,
            "version": 1,
            "created_at": now,
            "updated_at": now,
        })

        self._audit(build_audit_event(
            "approval",
            approval["id"],
            "create",
            actor,
            after={"type": str(data.type), "title": data.title, "priority": str(data.priority)},
        ))

        notification_data = {
            "approval_id": approval["id"],
            "approval_type": approval_type_label(data.type),
            "title": data.title,
            "priority": str(data.priority),
            "tenant_name": tenant.get("name"),
            **get_handler(data.type).build_notification_data(approval),
        }
        self._notify(build_approval_request_notification(
            data.owner_id,
            notification_data,
            urgent=data.priority == ApprovalPriority.urgent,
        ))

        logger.info(f"create_approval completed: approval {approval['id']}")
        return CreateApprovalOutput(approval_id=approval["id"], status=ApprovalStatus.pending)

    # =====================================================
    # Decide
    # =====================================================
    def process_approval(self, data: ApprovalDecisionInput, actor: WorkflowActor) -> ApprovalDecisionOutput:
        logger.info(f"process_approval started: {data.approval_id} → {data.decision} by {actor.actor_id}")

        # 1. fetch
        approval = self._fetch(data.approval_id, actor)
        if approval.get("status") != ApprovalStatus.pending:
            raise ApprovalAlreadyProcessedError(
                f"Approval already {approval.get('status')}",
                {"approval_id": data.approval_id, "status": approval.get("status")},
            )

        handler = get_handler(approval["type"])
        ctx = self._handler_context(actor)
        approving = data.decision == Decision.approved

        # 2. validate
        if approving:
            handler.validate(approval, data, ctx)

        # 3. persist decision
        new_status = ApprovalStatus.approved_pending_application if approving else ApprovalStatus.rejected
        version = int(approval.get("version") or 1)
        now = iso(self.clock())
        rows = self.repository.update_where(
            "approvals",
            {"id": data.approval_id, "status": str(ApprovalStatus.pending), "version": version},
            {
                "status": str(new_status),
                "decided_by": actor.actor_id,
                "decided_at": now,
                "decision_notes": data.decision_notes,
                "updated_at": now,
                "version": version + 1,
            },
        )
        if not rows:
            logger.warning(f"Approval {data.approval_id} was decided concurrently; discarding {data.decision}")
            raise ApprovalAlreadyProcessedError(
                "Approval was already processed by another request",
                {"approval_id": data.approval_id},
            )
        approval.update(rows[0])

        # 4-5. apply + mark applied
        if approving:
            actions = self._apply(approval, data, ctx)
            status = ApprovalStatus.approved
            change_applied = True
        else:
            actions = ["rejected_no_changes"]
            status = ApprovalStatus.rejected
            change_applied = False

        # 6. audit + notify
        self._audit(build_audit_event(
            "approval",
            data.approval_id,
            "approve" if approving else "reject",
            actor,
            after={
                "decision": str(data.decision),
                "decision_notes": data.decision_notes,
                "actions_taken": actions,
            },
            metadata={
                "approval_type": approval.get("type"),
                "requester_tenant_id": approval.get("requester_tenant_id"),
            },
        ))
        notification_sent = self._notify_decision(approval, data, handler)

        logger.info(f"process_approval completed: {data.approval_id} {status} actions={actions}")
        return ApprovalDecisionOutput(
            approval_id=data.approval_id,
            decision=data.decision,
            status=status,
            change_applied=change_applied,
            cascading_actions=actions,
            notification_sent=notification_sent,
        )

    def apply_pending_change(self, approval_id: str, actor: WorkflowActor) -> ApprovalDecisionOutput:
        """Retry the side effects of an approval stuck in approved_pending_application."""
        logger.info(f"apply_pending_change started: {approval_id} by {actor.actor_id}")

        approval = self._fetch(approval_id, actor)
        if approval.get("status") != ApprovalStatus.approved_pending_application:
            raise ApprovalAlreadyProcessedError(
                f"Approval is {approval.get('status')}; only approved approvals awaiting application can be applied",
                {"approval_id": approval_id, "status": approval.get("status")},
            )

        decision = ApprovalDecisionInput(
            approval_id=approval_id,
            decision=Decision.approved,
            decision_notes=approval.get("decision_notes"),
        )
        actions = self._apply(approval, decision, self._handler_context(actor))

        self._audit(build_audit_event(
            "approval",
            approval_id,
            "apply",
            actor,
            after={"actions_taken": actions},
            metadata={"approval_type": approval.get("type"), "retry": True},
        ))

        logger.info(f"apply_pending_change completed: {approval_id} actions={actions}")
        return ApprovalDecisionOutput(
            approval_id=approval_id,
            decision=Decision.approved,
            status=ApprovalStatus.approved,
            change_applied=True,
            cascading_actions=actions,
            notification_sent=False,
        )

    # =====================================================
    # Bulk
    # =====================================================
    def bulk_approve(self, approval_ids: List[str], decision_notes: Optional[str], actor: WorkflowActor) -> BulkDecisionOutput:
        return self._bulk(approval_ids, Decision.approved, decision_notes, actor)

    def bulk_reject(self, approval_ids: List[str], decision_notes: Optional[str], actor: WorkflowActor) -> BulkDecisionOutput:
        return self._bulk(approval_ids, Decision.rejected, decision_notes, actor)

    def _bulk(self, approval_ids, decision, decision_notes, actor) -> BulkDecisionOutput:
        results = []
        for approval_id in approval_ids:
            try:
                self.process_approval(
                    ApprovalDecisionInput(approval_id=approval_id, decision=decision, decision_notes=decision_notes),
                    actor,
                )
                results.append(BulkItemResult(id=approval_id, success=True))
            except ServiceError as e:
                results.append(BulkItemResult(id=approval_id, success=False, error_code=str(e.code), error=e.message))
            except Exception as e:
                logger.exception(f"Unexpected failure deciding approval {approval_id}")
                results.append(BulkItemResult(
                    id=approval_id, success=False, error_code=str(UnknownServiceError.code), error=str(e),
                ))

        success_count = sum(1 for r in results if r.success)
        failed_count = len(results) - success_count
        logger.info(f"bulk {decision}: {success_count} succeeded, {failed_count} failed")
        return BulkDecisionOutput(success_count=success_count, failed_count=failed_count, results=results)

    # =====================================================
    # Read
    # =====================================================
    def get_approval(self, approval_id: str) -> ApprovalRead:
        row = self.repository.get("approvals", approval_id)
        if not row:
            raise NotFoundError("Approval not found", {"approval_id": approval_id})
        return ApprovalRead(**row)

    def list_approvals(
        self,
        workspace_id: str,
        status: Optional[str] = None,
        type: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> List[ApprovalRead]:
        filters: Dict[str, Any] = {"workspace_id": workspace_id}
        if status:
            filters["status"] = str(status)
        if type:
            filters["type"] = str(type)
        if tenant_id:
            filters["requester_tenant_id"] = tenant_id

        rows = self.repository.select("approvals", filters, order_by="created_at", desc=True)
        return [ApprovalRead(**row) for row in rows]

    # =====================================================
    # Internals
    # =====================================================
    def _fetch(self, approval_id: str, actor: WorkflowActor) -> Record:
        approval = self.repository.get("approvals", approval_id)
        # approvals of other workspaces are reported as missing
        if not approval or not _in_workspace(approval, actor):
            raise NotFoundError("Approval not found", {"approval_id": approval_id})

        approval = dict(approval)
        approval["tenant"] = self.repository.get("tenants", approval.get("requester_tenant_id")) or {}
        return approval

    def _handler_context(self, actor: WorkflowActor) -> HandlerContext:
        return HandlerContext(
            repository=self.repository,
            actor=actor,
            clock=self.clock,
            transfer_service=self.transfer_service,
        )

    def _apply(self, approval: Record, decision: ApprovalDecisionInput, ctx: HandlerContext) -> List[str]:
        approval_id = approval["id"]
        handler = get_handler(approval["type"])

        try:
            actions = handler.apply(approval, decision, ctx)
        except Exception as e:
            error = e if isinstance(e, ServiceError) else UnknownServiceError(f"Applying approval failed: {e}")
            error.details.update({
                "approval_id": approval_id,
                "decision_recorded": True,
                "status": str(ApprovalStatus.approved_pending_application),
            })
            logger.error(
                f"Approval {approval_id} ({approval.get('type')}) is approved but its change was not applied: "
                f"{error.code} {error.message}"
            )
            send_webhook_message(
                f"⚠️ Approval {approval_id} ({approval.get('type')}) approved but not applied "
                f"[{error.code}]: {error.message}. Retry with POST /approvals/{approval_id}/apply"
            )
            if error is e:
                raise
            raise error from e

        self._mark_applied(approval, actions)
        return actions

    def _mark_applied(self, approval: Record, actions: List[str]):
        approval_id = approval["id"]
        version = int(approval.get("version") or 1)
        now = iso(self.clock())
        try:
            rows = self.repository.update_where(
                "approvals",
                {"id": approval_id, "status": str(ApprovalStatus.approved_pending_application)},
                {
                    "status": str(ApprovalStatus.approved),
                    "change_applied": True,
                    "applied_at": now,
                    "updated_at": now,
                    "version": version + 1,
                },
            )
        except ServiceError as e:
            rows = None
            cause = e.to_dict()
        else:
            cause = None

        if not rows:
            logger.error(f"Approval {approval_id}: change applied ({actions}) but could not be marked applied")
            send_webhook_message(
                f"⚠️ Approval {approval_id}: change applied but status not updated. Actions: {', '.join(actions)}"
            )
            raise WorkflowStepFailedError(
                "Change was applied but the approval could not be marked as applied",
                step="mark_applied",
                details={
                    "approval_id": approval_id,
                    "decision_recorded": True,
                    "changes_applied": True,
                    "actions": actions,
                    "cause": cause,
                },
            )

    def _notify_decision(self, approval: Record, data: ApprovalDecisionInput, handler) -> bool:
        tenant = approval.get("tenant") or {}
        recipient_id = tenant.get("user_id") or tenant.get("id") or approval.get("requester_tenant_id")
        if not recipient_id:
            return False

        payload = build_approval_decision_notification(recipient_id, {
            "approval_id": data.approval_id,
            "request_type": approval_type_label(approval.get("type")),
            "decision": "Approved" if data.decision == Decision.approved else "Rejected",
            "notes": data.decision_notes,
            **handler.build_notification_data(approval),
        })
        return self._notify(payload)

    def _notify(self, payload) -> bool:
        if self.notifier is None:
            return False
        try:
            return bool(self.notifier.dispatch(payload))
        except Exception as e:
            logger.error(f"Notification {payload.type} to {payload.recipient_id} failed: {e}")
            return False

    def _audit(self, event: Dict[str, Any]):
        if self.audit_sink is None:
            return
        try:
            self.audit_sink.log(event)
        except Exception as e:
            logger.error(f"Audit {event.get('action')} on {event.get('entity_type')}/{event.get('entity_id')} failed: {e}")
