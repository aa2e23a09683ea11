# services/room_transfer.py
# Moves a tenant between rooms. Invoked by the room_change approval
# handler and directly by POST /tenants/{tenant_id}/transfer.

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from core.audit import AuditSink, build_audit_event
from core.errors import (
    NotFoundError,
    RoomAtCapacityError,
    ServiceError,
    WorkflowStepFailedError,
)
from core.logging_config import logger
from core.repository import Record, Repository
from core.utils import iso, to_number, utcnow
from models.approval import WorkflowActor
from models.enums import StayStatus
from models.room_transfer import RoomTransferInput, RoomTransferOutput


def room_has_capacity(room: Record) -> bool:
    return (room.get("occupied_beds") or 0) < (room.get("total_beds") or 1)


class RoomTransferService:
    """
    Steps, in order:
      validate → record transfer (best effort) → close current stay
      → open new stay → update tenant

    Occupancy counters on rooms are maintained by a database trigger
    that counts active stays; nothing here writes them.

    There is no rollback. A failing step raises WorkflowStepFailedError
    naming the step; earlier steps stay applied.
    """

    def __init__(
        self,
        repository: Repository,
        audit_sink: Optional[AuditSink] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.audit_sink = audit_sink
        self.clock = clock

    def transfer_room(self, data: RoomTransferInput, actor: WorkflowActor) -> RoomTransferOutput:
        logger.info(f"Room transfer started: tenant {data.tenant_id} → room {data.new_room_id}")

        tenant, new_room, old_room = self._validate(data)
        transfer_date = data.transfer_date or self.clock().date()

        new_rent = to_number(data.new_rent)
        rent_adjusted = bool(data.adjust_rent and new_rent is not None)

        transfer_id = self._record_transfer(data, tenant, old_room, transfer_date, new_rent, actor)

        self._step("close_current_stay", lambda: self._close_current_stay(data.tenant_id, transfer_date))

        new_stay = self._step(
            "open_new_stay",
            lambda: self._open_new_stay(tenant, new_room, data, transfer_date, new_rent if rent_adjusted else None),
        )

        tenant_updates: Dict[str, Any] = {
            "room_id": data.new_room_id,
            "bed_id": data.new_bed_id,
            "property_id": new_room.get("property_id") or tenant.get("property_id"),
            "updated_at": iso(self.clock()),
        }
        if rent_adjusted:
            tenant_updates["monthly_rent"] = new_rent

        self._step("update_tenant", lambda: self._update_tenant(data.tenant_id, tenant_updates))

        self._audit(data, actor, old_room, new_room)

        logger.info(
            f"Room transfer completed: tenant {data.tenant_id} "
            f"{(old_room or {}).get('id')} → {data.new_room_id} (rent_adjusted={rent_adjusted})"
        )

        return RoomTransferOutput(
            transfer_id=transfer_id,
            old_room_id=(old_room or {}).get("id"),
            new_room_id=data.new_room_id,
            new_stay_id=new_stay.get("id"),
            rent_adjusted=rent_adjusted,
        )

    # ---------------------------------------------------------
    # Steps
    # ---------------------------------------------------------
    def _validate(self, data: RoomTransferInput):
        tenant = self.repository.get("tenants", data.tenant_id)
        if not tenant:
            raise NotFoundError("Tenant not found", {"tenant_id": data.tenant_id})

        new_room = self.repository.get("rooms", data.new_room_id)
        if not new_room:
            raise NotFoundError("New room not found", {"room_id": data.new_room_id})

        if not room_has_capacity(new_room):
            raise RoomAtCapacityError(
                "New room is at full capacity",
                {
                    "room_id": data.new_room_id,
                    "occupied_beds": new_room.get("occupied_beds"),
                    "total_beds": new_room.get("total_beds"),
                },
            )

        old_room = self.repository.get("rooms", tenant["room_id"]) if tenant.get("room_id") else None
        return tenant, new_room, old_room

    def _record_transfer(self, data, tenant, old_room, transfer_date, new_rent, actor) -> Optional[str]:
        try:
            row = self.repository.insert("room_transfers", {
                "tenant_id": data.tenant_id,
                "old_room_id": (old_room or {}).get("id"),
                "new_room_id": data.new_room_id,
                "old_bed_id": tenant.get("bed_id"),
                "new_bed_id": data.new_bed_id,
                "transfer_date": transfer_date.isoformat(),
                "reason": data.reason,
                "old_rent": tenant.get("monthly_rent"),
                "new_rent": new_rent if new_rent is not None else tenant.get("monthly_rent"),
                "created_by": actor.actor_id,
                "created_at": iso(self.clock()),
            })
        except ServiceError as e:
            logger.warning(f"Failed to create room transfer record for tenant {data.tenant_id}: {e.message}")
            return None
        return row.get("id")

    def _close_current_stay(self, tenant_id: str, transfer_date):
        return self.repository.update_where(
            "tenant_stays",
            {"tenant_id": tenant_id, "status": str(StayStatus.active)},
            {
                "exit_date": transfer_date.isoformat(),
                "exit_reason": "transferred",
                "status": str(StayStatus.transferred),
                "updated_at": iso(self.clock()),
            },
        )

    def _open_new_stay(self, tenant, new_room, data, transfer_date, new_rent) -> Record:
        stays = self.repository.select("tenant_stays", {"tenant_id": tenant["id"]})
        last_number = max((int(s.get("stay_number") or 0) for s in stays), default=0)

        return self.repository.insert("tenant_stays", {
            "tenant_id": tenant["id"],
            "owner_id": tenant.get("owner_id"),
            "property_id": new_room.get("property_id") or tenant.get("property_id"),
            "room_id": data.new_room_id,
            "bed_id": data.new_bed_id,
            "join_date": transfer_date.isoformat(),
            "monthly_rent": new_rent if new_rent is not None else tenant.get("monthly_rent"),
            "status": str(StayStatus.active),
            "stay_number": last_number + 1,
        })

    def _update_tenant(self, tenant_id: str, updates: Dict[str, Any]):
        updated = self.repository.update("tenants", tenant_id, updates)
        if updated is None:
            raise NotFoundError("Tenant disappeared during transfer", {"tenant_id": tenant_id})
        return updated

    def _step(self, name: str, fn: Callable[[], Any]):
        try:
            return fn()
        except ServiceError as e:
            logger.error(f"Room transfer step '{name}' failed: {e.message}")
            raise WorkflowStepFailedError(
                f"Room transfer failed at step '{name}'",
                step=name,
                details={"cause": e.to_dict()},
            ) from e

    def _audit(self, data, actor, old_room, new_room):
        if self.audit_sink is None:
            return
        event = build_audit_event(
            "tenant",
            data.tenant_id,
            "update",
            actor,
            before={"room_id": (old_room or {}).get("id"), "room_number": (old_room or {}).get("room_number")},
            after={"room_id": new_room.get("id"), "room_number": new_room.get("room_number")},
            metadata={"action": "room_transfer", "reason": data.reason},
        )
        try:
            self.audit_sink.log(event)
        except Exception as e:
            logger.error(f"Room transfer audit failed for tenant {data.tenant_id}: {e}")
