# tests/test_room_transfer.py

"""
Tests for the room-transfer workflow.
"""

from datetime import date

import pytest

from core.errors import NotFoundError, RoomAtCapacityError, WorkflowStepFailedError
from models.room_transfer import RoomTransferInput


def transfer(service, actor, **kwargs):
    data = {"tenant_id": "tenant-1", "new_room_id": "room-2"}
    data.update(kwargs)
    return service.transfer_room(RoomTransferInput(**data), actor)


def test_transfer_closes_old_stay_and_opens_new_one(transfer_service, repo, owner_actor):
    result = transfer(transfer_service, owner_actor, new_bed_id="bed-9", reason="Closer to window")

    assert result.old_room_id == "room-1"
    assert result.new_room_id == "room-2"
    assert result.rent_adjusted is False

    old_stay = repo.row("tenant_stays", "stay-1")
    assert old_stay["status"] == "transferred"
    assert old_stay["exit_reason"] == "transferred"
    assert old_stay["exit_date"] == "2026-01-15"

    new_stay = repo.row("tenant_stays", result.new_stay_id)
    assert new_stay["room_id"] == "room-2"
    assert new_stay["bed_id"] == "bed-9"
    assert new_stay["stay_number"] == 2
    assert new_stay["join_date"] == "2026-01-15"
    assert new_stay["monthly_rent"] == 8000

    tenant = repo.row("tenants", "tenant-1")
    assert tenant["room_id"] == "room-2"
    assert tenant["bed_id"] == "bed-9"
    assert tenant["property_id"] == "prop-1"
    assert tenant["monthly_rent"] == 8000

    record = repo.row("room_transfers", result.transfer_id)
    assert record["old_room_id"] == "room-1"
    assert record["old_bed_id"] == "bed-1"
    assert record["reason"] == "Closer to window"


def test_transfer_does_not_touch_occupancy_counters(transfer_service, repo, owner_actor):
    transfer(transfer_service, owner_actor)

    assert repo.writes_to("rooms") == []
    assert repo.row("rooms", "room-1")["occupied_beds"] == 1
    assert repo.row("rooms", "room-2")["occupied_beds"] == 0


def test_transfer_with_rent_adjustment(transfer_service, repo, owner_actor):
    result = transfer(transfer_service, owner_actor, adjust_rent=True, new_rent=9000, transfer_date=date(2026, 2, 1))

    assert result.rent_adjusted is True
    assert repo.row("tenants", "tenant-1")["monthly_rent"] == 9000
    assert repo.row("tenant_stays", result.new_stay_id)["monthly_rent"] == 9000
    assert repo.row("tenant_stays", "stay-1")["exit_date"] == "2026-02-01"


def test_new_rent_without_adjust_flag_is_ignored(transfer_service, repo, owner_actor):
    result = transfer(transfer_service, owner_actor, new_rent=9000)

    assert result.rent_adjusted is False
    assert repo.row("tenants", "tenant-1")["monthly_rent"] == 8000


def test_transfer_to_other_property_updates_property(transfer_service, repo, owner_actor):
    repo.row("rooms", "room-3")["occupied_beds"] = 0

    transfer(transfer_service, owner_actor, new_room_id="room-3")

    assert repo.row("tenants", "tenant-1")["property_id"] == "prop-2"


def test_transfer_validation_errors(transfer_service, repo, owner_actor):
    with pytest.raises(NotFoundError):
        transfer(transfer_service, owner_actor, tenant_id="ghost")
    with pytest.raises(NotFoundError):
        transfer(transfer_service, owner_actor, new_room_id="room-x")
    with pytest.raises(RoomAtCapacityError):
        transfer(transfer_service, owner_actor, new_room_id="room-3")

    assert repo.writes == []


def test_transfer_record_failure_is_not_fatal(transfer_service, repo, owner_actor):
    repo.fail_on("insert", "room_transfers")

    result = transfer(transfer_service, owner_actor)

    assert result.transfer_id is None
    assert repo.row("tenants", "tenant-1")["room_id"] == "room-2"


def test_failed_step_is_named_and_earlier_steps_stay_applied(transfer_service, repo, owner_actor):
    repo.fail_on("update", "tenants")

    with pytest.raises(WorkflowStepFailedError) as exc_info:
        transfer(transfer_service, owner_actor)

    assert exc_info.value.step == "update_tenant"
    assert exc_info.value.details["step"] == "update_tenant"
    # no rollback
    assert repo.row("tenant_stays", "stay-1")["status"] == "transferred"
    assert repo.row("tenants", "tenant-1")["room_id"] == "room-1"


def test_transfer_is_audited_with_before_and_after_room(transfer_service, audit, owner_actor):
    transfer(transfer_service, owner_actor, reason="Upgrade")

    event = audit.events[-1]
    assert event["entity_type"] == "tenant"
    assert event["action"] == "update"
    assert event["changes"]["before"]["room_number"] == "101"
    assert event["changes"]["after"]["room_number"] == "102"
    assert event["metadata"] == {"action": "room_transfer", "reason": "Upgrade"}
