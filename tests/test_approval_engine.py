# tests/test_approval_engine.py

"""
Tests for the approval workflow: create, decide, bulk, retry.
"""

from unittest.mock import Mock, patch

import pytest

from core.errors import (
    ApprovalAlreadyProcessedError,
    ErrorCode,
    NotFoundError,
    RoomAtCapacityError,
    UnknownServiceError,
    ValidationError,
)
from models.approval import ApprovalDecisionInput, CreateApprovalInput, WorkflowActor
from models.enums import ActorType, ApprovalStatus, Decision, NotificationPriority, NotificationType


def approve(engine, actor, approval_id, **kwargs):
    return engine.process_approval(
        ApprovalDecisionInput(approval_id=approval_id, decision=Decision.approved, **kwargs),
        actor,
    )


def reject(engine, actor, approval_id, notes="Not possible"):
    return engine.process_approval(
        ApprovalDecisionInput(approval_id=approval_id, decision=Decision.rejected, decision_notes=notes),
        actor,
    )


# -----------------------------------------------------
# Create
# -----------------------------------------------------
def test_create_approval_inserts_pending_row_audits_and_notifies_owner(engine, repo, notifier, audit, file_approval):
    approval_id = file_approval("name_change", {"new_name": "Rajesh"})

    row = repo.row("approvals", approval_id)
    assert row["status"] == "pending"
    assert row["version"] == 1
    assert row["change_applied"] is False
    assert row["requester_tenant_id"] == "tenant-1"

    assert audit.actions() == ["create"]
    assert len(notifier.sent) == 1
    sent = notifier.sent[0]
    assert sent.type == NotificationType.approval_required
    assert sent.recipient_id == "owner-user"
    assert sent.priority == NotificationPriority.normal
    assert sent.data["approval_type"] == "Name Change"


def test_urgent_request_notifies_with_high_priority(notifier, file_approval):
    file_approval("other", priority="urgent")
    assert notifier.sent[0].priority == NotificationPriority.high


def test_create_for_unknown_tenant_is_not_found(engine, tenant_actor):
    with pytest.raises(NotFoundError):
        engine.create_approval(
            CreateApprovalInput(
                tenant_id="ghost", workspace_id="ws-1", owner_id="owner-user", type="other", title="Hi",
            ),
            tenant_actor,
        )


def test_create_for_checked_out_tenant_is_rejected(engine, repo, file_approval):
    repo.row("tenants", "tenant-1")["status"] = "checked_out"

    with pytest.raises(ValidationError):
        file_approval("other")
    assert repo.rows("approvals") == []


def test_create_for_tenant_of_another_workspace_is_not_found(repo, file_approval):
    with pytest.raises(NotFoundError):
        file_approval("other", workspace_id="ws-other")


# -----------------------------------------------------
# Decide
# -----------------------------------------------------
def test_approving_name_change_updates_tenant_and_profile(engine, repo, owner_actor, notifier, audit, file_approval):
    approval_id = file_approval("name_change", {"new_name": "Rajesh"})

    result = approve(engine, owner_actor, approval_id)

    assert repo.row("tenants", "tenant-1")["name"] == "Rajesh"
    assert repo.row("user_profiles", "profile-1")["name"] == "Rajesh"
    assert result.change_applied is True
    assert result.status == ApprovalStatus.approved
    assert result.cascading_actions == ["tenant_name_updated", "user_profile_updated"]

    row = repo.row("approvals", approval_id)
    assert row["status"] == "approved"
    assert row["change_applied"] is True
    assert row["applied_at"] is not None
    assert row["decided_by"] == "owner-user"

    assert audit.actions() == ["create", "approve"]
    assert audit.events[-1]["changes"]["after"]["actions_taken"] == result.cascading_actions

    decision = notifier.sent[-1]
    assert decision.type == NotificationType.approval_decision
    assert decision.recipient_id == "tenant-user"
    assert decision.data["decision"] == "Approved"
    assert result.notification_sent is True


def test_reject_is_terminal_and_touches_nothing(engine, repo, owner_actor, audit, file_approval):
    approval_id = file_approval("name_change", {"new_name": "Rajesh"})
    repo.writes.clear()

    result = reject(engine, owner_actor, approval_id)

    assert result.status == ApprovalStatus.rejected
    assert result.change_applied is False
    assert result.cascading_actions == ["rejected_no_changes"]
    assert repo.row("tenants", "tenant-1")["name"] == "Raj"
    assert {w[1] for w in repo.writes} == {"approvals"}

    row = repo.row("approvals", approval_id)
    assert row["status"] == "rejected"
    assert row["change_applied"] is False
    assert row["decision_notes"] == "Not possible"
    assert audit.actions()[-1] == "reject"


def test_second_decision_is_already_processed_and_does_not_reapply(engine, repo, owner_actor, file_approval):
    approval_id = file_approval("name_change", {"new_name": "Rajesh"})
    approve(engine, owner_actor, approval_id)
    repo.row("tenants", "tenant-1")["name"] = "Edited Later"
    repo.writes.clear()

    with pytest.raises(ApprovalAlreadyProcessedError):
        approve(engine, owner_actor, approval_id)
    with pytest.raises(ApprovalAlreadyProcessedError):
        reject(engine, owner_actor, approval_id)

    assert repo.row("tenants", "tenant-1")["name"] == "Edited Later"
    assert repo.writes == []


def test_concurrent_decision_loses_on_version_conflict(engine, repo, owner_actor, file_approval):
    approval_id = file_approval("name_change", {"new_name": "Rajesh"})
    original_get = repo.get

    def stale_get(table, record_id):
        row = original_get(table, record_id)
        if table == "approvals":
            # another request decides between our read and our write
            repo.row("approvals", approval_id).update({"status": "rejected", "version": 2})
        return row

    with patch.object(repo, "get", side_effect=stale_get):
        with pytest.raises(ApprovalAlreadyProcessedError):
            approve(engine, owner_actor, approval_id)

    assert repo.row("tenants", "tenant-1")["name"] == "Raj"
    assert repo.row("approvals", approval_id)["status"] == "rejected"


def test_decision_on_missing_approval_is_not_found(engine, owner_actor):
    with pytest.raises(NotFoundError):
        approve(engine, owner_actor, "missing")


def test_decision_from_another_workspace_is_not_found(engine, repo, file_approval):
    approval_id = file_approval("name_change", {"new_name": "Rajesh"})
    outsider = WorkflowActor(actor_id="other-owner", actor_type=ActorType.owner, workspace_id="ws-2")

    with pytest.raises(NotFoundError):
        approve(engine, outsider, approval_id)
    assert repo.row("approvals", approval_id)["status"] == "pending"


def test_room_change_to_full_room_leaves_approval_pending(engine, repo, owner_actor, file_approval):
    approval_id = file_approval("room_change", {"requested_room_id": "room-3"})

    with pytest.raises(RoomAtCapacityError):
        approve(engine, owner_actor, approval_id)

    row = repo.row("approvals", approval_id)
    assert row["status"] == "pending"
    assert row["version"] == 1
    assert repo.row("tenants", "tenant-1")["room_id"] == "room-1"


def test_room_change_can_still_be_rejected_when_room_is_full(engine, repo, owner_actor, file_approval):
    approval_id = file_approval("room_change", {"requested_room_id": "room-3"})

    result = reject(engine, owner_actor, approval_id)
    assert result.status == ApprovalStatus.rejected


def test_approved_room_change_moves_tenant_and_rolls_stays(engine, repo, owner_actor, file_approval):
    approval_id = file_approval("room_change", {"requested_room_id": "room-2", "requested_bed_id": "bed-7"})

    result = approve(engine, owner_actor, approval_id)

    tenant = repo.row("tenants", "tenant-1")
    assert tenant["room_id"] == "room-2"
    assert tenant["bed_id"] == "bed-7"

    old_stay = repo.row("tenant_stays", "stay-1")
    assert old_stay["status"] == "transferred"
    assert old_stay["exit_reason"] == "transferred"

    new_stays = [s for s in repo.rows("tenant_stays") if s["id"] != "stay-1"]
    assert len(new_stays) == 1
    assert new_stays[0]["room_id"] == "room-2"
    assert new_stays[0]["stay_number"] == 2
    assert new_stays[0]["status"] == "active"

    assert result.cascading_actions == [
        "room_transfer_completed", "old_room_released", "new_room_assigned", "rent_unchanged",
    ]


# -----------------------------------------------------
# Apply failures and retry
# -----------------------------------------------------
def test_apply_failure_keeps_decision_and_reports_it(engine, repo, owner_actor, audit, file_approval):
    approval_id = file_approval("name_change", {"new_name": "Rajesh"})
    repo.fail_on("update", "tenants")

    with patch("services.approval_engine.send_webhook_message") as mock_alert:
        with pytest.raises(UnknownServiceError) as exc_info:
            approve(engine, owner_actor, approval_id)

    err = exc_info.value
    assert err.details["decision_recorded"] is True
    assert err.details["status"] == "approved_pending_application"
    mock_alert.assert_called_once()
    assert approval_id in mock_alert.call_args[0][0]

    row = repo.row("approvals", approval_id)
    assert row["status"] == "approved_pending_application"
    assert row["change_applied"] is False
    assert "approve" not in audit.actions()


def test_apply_pending_change_retries_and_marks_applied(engine, repo, owner_actor, audit, file_approval):
    approval_id = file_approval("name_change", {"new_name": "Rajesh"})
    repo.fail_on("update", "tenants")
    with patch("services.approval_engine.send_webhook_message"):
        with pytest.raises(UnknownServiceError):
            approve(engine, owner_actor, approval_id)

    repo._failures.clear()
    result = engine.apply_pending_change(approval_id, owner_actor)

    assert result.change_applied is True
    assert result.status == ApprovalStatus.approved
    assert repo.row("tenants", "tenant-1")["name"] == "Rajesh"
    assert repo.row("approvals", approval_id)["status"] == "approved"
    assert audit.actions()[-1] == "apply"


def test_apply_pending_change_refuses_other_statuses(engine, owner_actor, file_approval):
    pending_id = file_approval("other")
    with pytest.raises(ApprovalAlreadyProcessedError):
        engine.apply_pending_change(pending_id, owner_actor)

    approve(engine, owner_actor, pending_id)
    with pytest.raises(ApprovalAlreadyProcessedError):
        engine.apply_pending_change(pending_id, owner_actor)

    with pytest.raises(NotFoundError):
        engine.apply_pending_change("missing", owner_actor)


def test_notification_and_audit_failures_do_not_fail_the_decision(engine, repo, owner_actor, notifier, audit, file_approval):
    approval_id = file_approval("other")
    notifier.dispatch = Mock(side_effect=RuntimeError("smtp down"))
    audit.log = Mock(side_effect=RuntimeError("audit down"))

    result = approve(engine, owner_actor, approval_id, resolution_action="refund_issued")

    assert result.change_applied is True
    assert result.notification_sent is False
    assert result.cascading_actions == ["other_request_processed", "refund_issued"]


# -----------------------------------------------------
# Bulk
# -----------------------------------------------------
def test_bulk_approve_reports_per_item_results(engine, owner_actor, file_approval):
    first = file_approval("name_change", {"new_name": "Rajesh"})
    second = file_approval("other")
    reject(engine, owner_actor, second)

    result = engine.bulk_approve([first, second], "ok", owner_actor)

    assert result.success_count == 1
    assert result.failed_count == 1
    assert result.results[0].id == first and result.results[0].success is True
    failed = result.results[1]
    assert failed.id == second
    assert failed.success is False
    assert failed.error_code == str(ErrorCode.APPROVAL_ALREADY_PROCESSED)


def test_bulk_reject_continues_past_missing_ids(engine, repo, owner_actor, file_approval):
    first = file_approval("other")
    second = file_approval("other")

    result = engine.bulk_reject([first, "missing", second], "no", owner_actor)

    assert result.success_count == 2
    assert result.failed_count == 1
    assert result.results[1].error_code == str(ErrorCode.NOT_FOUND)
    assert repo.row("approvals", second)["status"] == "rejected"


# -----------------------------------------------------
# Read
# -----------------------------------------------------
def test_list_and_get_approvals(engine, owner_actor, file_approval):
    first = file_approval("other")
    second = file_approval("name_change", {"new_name": "Rajesh"})
    reject(engine, owner_actor, first)

    assert {a.id for a in engine.list_approvals("ws-1")} == {first, second}
    assert [a.id for a in engine.list_approvals("ws-1", status="pending")] == [second]
    assert [a.id for a in engine.list_approvals("ws-1", type="other")] == [first]
    assert engine.list_approvals("ws-2") == []

    fetched = engine.get_approval(second)
    assert fetched.payload == {"new_name": "Rajesh"}
    with pytest.raises(NotFoundError):
        engine.get_approval("missing")
