# services/approval_handlers.py
# One handler per ApprovalType. A handler validates an approval before
# the decision is recorded and applies its side effects afterwards,
# returning the action tags that end up in the audit trail.

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from core.errors import (
    NotFoundError,
    RoomAtCapacityError,
    ServiceError,
    ValidationError,
    WorkflowStepFailedError,
)
from core.logging_config import logger
from core.repository import Record, Repository
from core.utils import append_note, iso, parse_date, to_bool, to_number, utcnow
from models.approval import ApprovalDecisionInput, WorkflowActor
from models.enums import ApprovalType
from models.room_transfer import RoomTransferInput
from services.room_transfer import RoomTransferService, room_has_capacity


@dataclass
class HandlerContext:
    repository: Repository
    actor: WorkflowActor
    clock: Callable[[], datetime] = utcnow
    transfer_service: Optional[RoomTransferService] = field(default=None)

    def now_iso(self) -> str:
        return iso(self.clock())

    def today(self) -> date:
        return self.clock().date()


def _payload(approval: Record) -> Dict[str, Any]:
    return approval.get("payload") or {}


def _linked_user_id(approval: Record) -> Optional[str]:
    return (approval.get("tenant") or {}).get("user_id")


def _format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return str(int(amount))
    return str(amount)


class ApprovalHandler:
    """
    Base handler. ``validate`` runs for approvals only, before anything is
    written; ``apply`` runs after the decision is persisted. Missing
    optional payload fields degrade to manual-review tags, never errors.
    """

    approval_type: ApprovalType

    def validate(self, approval: Record, decision: ApprovalDecisionInput, ctx: HandlerContext) -> None:
        return None

    def apply(self, approval: Record, decision: ApprovalDecisionInput, ctx: HandlerContext) -> List[str]:
        raise NotImplementedError

    def build_notification_data(self, approval: Record) -> Dict[str, Any]:
        return {}

    # ---------------------------------------------------------
    # Shared writes
    # ---------------------------------------------------------
    def update_tenant(self, approval: Record, ctx: HandlerContext, data: Dict[str, Any]) -> Record:
        tenant_id = approval["requester_tenant_id"]
        updated = ctx.repository.update("tenants", tenant_id, {**data, "updated_at": ctx.now_iso()})
        if updated is None:
            raise NotFoundError("Tenant not found", {"tenant_id": tenant_id})
        return updated

    def mirror_to_profile(self, approval: Record, ctx: HandlerContext, data: Dict[str, Any]) -> bool:
        """Copy a contact field onto the linked login profile. Failures are logged, not raised."""
        user_id = _linked_user_id(approval)
        if not user_id:
            return False
        try:
            rows = ctx.repository.update_where(
                "user_profiles",
                {"user_id": user_id},
                {**data, "updated_at": ctx.now_iso()},
            )
        except ServiceError as e:
            logger.warning(f"Failed to mirror {list(data)} to user_profiles for {user_id}: {e.message}")
            return False
        return bool(rows)


# =====================================================
# 1-4. Contact details
#   A missing or blank new value is left for manual
#   review; nothing is written.
# =====================================================
def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, dict):
        return all(_is_blank(v) for v in value.values())
    return False


def _manual_review(approval_type: ApprovalType) -> List[str]:
    return [f"{approval_type}_missing_value_manual_review"]


class NameChangeHandler(ApprovalHandler):
    approval_type = ApprovalType.name_change

    def apply(self, approval, decision, ctx):
        new_name = _payload(approval).get("new_name")
        if _is_blank(new_name):
            return _manual_review(self.approval_type)

        self.update_tenant(approval, ctx, {"name": new_name})
        actions = ["tenant_name_updated"]
        if self.mirror_to_profile(approval, ctx, {"name": new_name}):
            actions.append("user_profile_updated")
        return actions


class AddressChangeHandler(ApprovalHandler):
    approval_type = ApprovalType.address_change

    def apply(self, approval, decision, ctx):
        new_address = _payload(approval).get("new_address")
        if _is_blank(new_address):
            return _manual_review(self.approval_type)

        if not isinstance(new_address, dict):
            self.update_tenant(approval, ctx, {"address": new_address})
            return ["tenant_address_updated"]

        tenant = ctx.repository.get("tenants", approval["requester_tenant_id"]) or {}
        existing = tenant.get("addresses") or []
        addresses = [{**new_address, "is_primary": True}]
        addresses.extend({**a, "is_primary": False} for a in existing)

        self.update_tenant(approval, ctx, {"addresses": addresses})
        return ["tenant_addresses_updated"]


class PhoneChangeHandler(ApprovalHandler):
    approval_type = ApprovalType.phone_change

    def apply(self, approval, decision, ctx):
        new_phone = _payload(approval).get("new_phone")
        if _is_blank(new_phone):
            return _manual_review(self.approval_type)

        self.update_tenant(approval, ctx, {"phone": new_phone})
        actions = ["tenant_phone_updated"]
        if self.mirror_to_profile(approval, ctx, {"phone": new_phone}):
            actions.append("user_profile_phone_updated")
        return actions


class EmailChangeHandler(ApprovalHandler):
    """
    The login email lives in Supabase Auth and needs the admin API; this
    handler only flags it. The HTTP layer performs that update.
    """

    approval_type = ApprovalType.email_change

    def apply(self, approval, decision, ctx):
        new_email = _payload(approval).get("new_email")
        if _is_blank(new_email):
            return _manual_review(self.approval_type)

        self.update_tenant(approval, ctx, {"email": new_email})
        actions = ["tenant_email_updated"]

        if _linked_user_id(approval):
            if self.mirror_to_profile(approval, ctx, {"email": new_email}):
                actions.append("user_profile_email_updated")
            actions.append("auth_email_requires_admin_api")

        return actions


# =====================================================
# 5. Room change
# =====================================================
class RoomChangeHandler(ApprovalHandler):
    approval_type = ApprovalType.room_change

    def validate(self, approval, decision, ctx):
        room_id = _payload(approval).get("requested_room_id")
        if not room_id:
            raise ValidationError("Missing requested room ID")

        room = ctx.repository.get("rooms", room_id)
        if not room:
            raise NotFoundError("Requested room not found", {"room_id": room_id})

        if not room_has_capacity(room):
            raise RoomAtCapacityError(
                "Requested room is full",
                {
                    "room_id": room_id,
                    "occupied_beds": room.get("occupied_beds"),
                    "total_beds": room.get("total_beds"),
                },
            )

    def apply(self, approval, decision, ctx):
        if ctx.transfer_service is None:
            raise WorkflowStepFailedError("Room transfer service not configured", step="room_transfer")

        payload = _payload(approval)
        new_rent = to_number(payload.get("new_rent"))
        if new_rent is not None and new_rent < 0:
            new_rent = None

        transfer = RoomTransferInput(
            tenant_id=approval["requester_tenant_id"],
            new_room_id=payload["requested_room_id"],
            new_bed_id=payload.get("requested_bed_id") or None,
            transfer_date=ctx.today(),
            reason=payload.get("reason") or f"Approved room change request (Approval #{approval['id']})",
            adjust_rent=to_bool(payload.get("adjust_rent")),
            new_rent=new_rent,
        )

        try:
            result = ctx.transfer_service.transfer_room(transfer, ctx.actor)
        except WorkflowStepFailedError:
            raise
        except ServiceError as e:
            raise WorkflowStepFailedError(
                "Room transfer failed",
                step="room_transfer",
                details={"cause": e.to_dict()},
            ) from e

        return [
            "room_transfer_completed",
            "old_room_released",
            "new_room_assigned",
            "rent_adjusted" if result.rent_adjusted else "rent_unchanged",
        ]


# =====================================================
# 6-8. Complaints and disputes
# =====================================================
class ComplaintHandler(ApprovalHandler):
    approval_type = ApprovalType.complaint

    def apply(self, approval, decision, ctx):
        actions = []
        complaint_id = _payload(approval).get("complaint_id")

        if complaint_id:
            try:
                updated = ctx.repository.update("complaints", complaint_id, {
                    "status": "resolved",
                    "resolution_notes": decision.decision_notes or "Resolved via approval workflow",
                    "resolved_at": ctx.now_iso(),
                    "updated_at": ctx.now_iso(),
                })
            except ServiceError as e:
                logger.warning(f"Failed to resolve complaint {complaint_id}: {e.message}")
                updated = None
            if updated is not None:
                actions.append("complaint_resolved")

        actions.append("complaint_acknowledged")
        return actions


class BillDisputeHandler(ApprovalHandler):
    """
    Adjustments are additive: total_amount moves by adjustment_amount,
    balance_due is recomputed against paid_amount, a waived late fee
    comes off both. Every adjustment is appended to the bill's notes.
    """

    approval_type = ApprovalType.bill_dispute

    def apply(self, approval, decision, ctx):
        bill_id = _payload(approval).get("bill_id")
        if not bill_id:
            return ["bill_dispute_acknowledged_manual_review"]

        bill = ctx.repository.get("bills", bill_id)
        if not bill:
            return ["bill_not_found_manual_review"]

        actions = []
        notes = []
        updates: Dict[str, Any] = {"updated_at": ctx.now_iso()}
        total = to_number(bill.get("total_amount")) or 0
        paid = to_number(bill.get("paid_amount")) or 0
        balance = to_number(bill.get("balance_due"))
        if balance is None:
            balance = total - paid

        if decision.adjustment_amount is not None:
            amount = decision.adjustment_amount
            total = total + amount
            balance = total - paid
            updates["total_amount"] = total
            updates["balance_due"] = balance

            sign = "+" if amount > 0 else ""
            notes.append(f"Adjustment: {sign}{_format_amount(amount)}")
            actions.append(f"bill_adjusted_by_{_format_amount(amount)}")

        if decision.new_due_date:
            updates["due_date"] = decision.new_due_date.isoformat()
            notes.append(f"Due date moved to {decision.new_due_date.isoformat()}")
            actions.append("due_date_updated")

        if decision.waive_late_fee:
            late_fee = to_number(bill.get("late_fee")) or 0
            if late_fee > 0:
                updates["late_fee"] = 0
                updates["total_amount"] = total - late_fee
                updates["balance_due"] = balance - late_fee
                notes.append(f"Late fee waived: {_format_amount(late_fee)}")
                actions.append("late_fee_waived")

        if bill.get("status") == "overdue" and decision.new_due_date and decision.new_due_date > ctx.today():
            updates["status"] = "pending"
            actions.append("overdue_status_cleared")

        existing_notes = bill.get("notes")
        for line in notes:
            existing_notes = append_note(existing_notes, f"{line} (Approval #{approval['id']})")
        if notes:
            updates["notes"] = existing_notes

        ctx.repository.update("bills", bill_id, updates)

        actions.append("bill_dispute_resolved")
        return actions

    def build_notification_data(self, approval):
        payload = _payload(approval)
        return {
            "bill_number": payload.get("bill_number"),
            "dispute_reason": payload.get("dispute_reason"),
        }


class PaymentDisputeHandler(ApprovalHandler):
    approval_type = ApprovalType.payment_dispute

    def apply(self, approval, decision, ctx):
        payload = _payload(approval)
        payment_id = payload.get("payment_id")
        if not payment_id:
            return ["payment_dispute_acknowledged_manual_review"]

        payment = ctx.repository.get("payments", payment_id)
        if not payment:
            return ["payment_not_found_manual_review"]

        dispute_type = payload.get("dispute_type")
        if dispute_type == "payment_not_received":
            line = f"DISPUTE: Payment not received claim - {decision.decision_notes or 'Under review'}"
            tag = "payment_marked_disputed"
        elif dispute_type == "wrong_amount":
            line = (
                f"DISPUTE: Amount discrepancy - {payload.get('claimed_amount')} claimed "
                f"vs {payment.get('amount')} recorded"
            )
            tag = "amount_discrepancy_noted"
        elif dispute_type == "duplicate_payment":
            line = "DISPUTE: Duplicate payment claim - Review for refund"
            tag = "duplicate_payment_flagged"
        else:
            return ["payment_dispute_acknowledged"]

        ctx.repository.update("payments", payment_id, {
            "notes": append_note(payment.get("notes"), line),
            "updated_at": ctx.now_iso(),
        })
        return [tag]


# =====================================================
# 9-10. Tenancy and room issues
# =====================================================
def _resolution_line(ctx: HandlerContext, issue_type: Any, decision: ApprovalDecisionInput) -> str:
    return f"ISSUE RESOLVED [{ctx.today().isoformat()}]: {issue_type} - {decision.decision_notes or 'Resolved'}"


class TenancyIssueHandler(ApprovalHandler):
    approval_type = ApprovalType.tenancy_issue

    def apply(self, approval, decision, ctx):
        payload = _payload(approval)
        issue_type = payload.get("issue_type")
        notes = (approval.get("tenant") or {}).get("notes")

        self.update_tenant(approval, ctx, {"notes": append_note(notes, _resolution_line(ctx, issue_type, decision))})
        actions = ["tenancy_issue_logged"]

        if issue_type == "rent_revision":
            new_rent = to_number(payload.get("new_rent"))
            if new_rent is not None:
                self.update_tenant(approval, ctx, {"monthly_rent": new_rent})
                actions.append("rent_revised")
        elif issue_type == "deposit_dispute":
            actions.append("deposit_dispute_acknowledged")
        elif issue_type == "agreement_modification":
            new_end_date = parse_date(payload.get("new_end_date"))
            if new_end_date:
                self.update_tenant(approval, ctx, {"agreement_end_date": new_end_date.isoformat()})
                actions.append("agreement_end_date_updated")
        else:
            actions.append("issue_resolved")

        return actions


class RoomIssueHandler(ApprovalHandler):
    approval_type = ApprovalType.room_issue

    ISSUE_TAGS = {
        "maintenance": "maintenance_acknowledged",
        "amenity_request": "amenity_request_processed",
        "cleanliness": "cleanliness_issue_addressed",
    }

    def apply(self, approval, decision, ctx):
        payload = _payload(approval)
        room_id = payload.get("room_id")
        if not room_id:
            return ["room_issue_acknowledged_no_room_specified"]

        issue_type = payload.get("issue_type")
        room = ctx.repository.get("rooms", room_id) or {}
        ctx.repository.update("rooms", room_id, {
            "notes": append_note(room.get("notes"), _resolution_line(ctx, issue_type, decision)),
            "updated_at": ctx.now_iso(),
        })

        return ["room_issue_logged", self.ISSUE_TAGS.get(issue_type, "room_issue_resolved")]


# =====================================================
# 11. Other
# =====================================================
class OtherRequestHandler(ApprovalHandler):
    approval_type = ApprovalType.other

    def apply(self, approval, decision, ctx):
        return ["other_request_processed", decision.resolution_action or "manual_review_complete"]


# -----------------------------------------------------
# Registry
# -----------------------------------------------------
APPROVAL_HANDLERS: Dict[ApprovalType, ApprovalHandler] = {
    handler.approval_type: handler
    for handler in (
        NameChangeHandler(),
        AddressChangeHandler(),
        PhoneChangeHandler(),
        EmailChangeHandler(),
        RoomChangeHandler(),
        ComplaintHandler(),
        BillDisputeHandler(),
        PaymentDisputeHandler(),
        TenancyIssueHandler(),
        RoomIssueHandler(),
        OtherRequestHandler(),
    )
}

_missing = set(ApprovalType) - set(APPROVAL_HANDLERS)
assert not _missing, f"No approval handler registered for: {sorted(str(t) for t in _missing)}"


def get_handler(approval_type) -> ApprovalHandler:
    try:
        return APPROVAL_HANDLERS[ApprovalType(approval_type)]
    except ValueError:
        raise ValidationError(f"Unknown approval type: {approval_type}")
