# routers/room_transfers.py

from fastapi import APIRouter, Depends, HTTPException

from core.repository import Repository
from dependencies.auth import (
    CurrentUser,
    actor_for,
    get_repository,
    get_room_transfer_service,
    requires_permission,
)
from models.room_transfer import RoomTransferInput, RoomTransferOutput, RoomTransferRequest
from services.room_transfer import RoomTransferService

router = APIRouter(
    prefix="/tenants",
    tags=["Room Transfers"],
)


@router.post("/{tenant_id}/transfer", response_model=RoomTransferOutput)
def transfer_tenant(
    tenant_id: str,
    body: RoomTransferRequest,
    current_user: CurrentUser = Depends(requires_permission("tenants.edit")),
    service: RoomTransferService = Depends(get_room_transfer_service),
    repository: Repository = Depends(get_repository),
):
    """
    Move a tenant to another room/bed without an approval.
    409 ROOM_AT_CAPACITY when the target room is full.
    """
    actor = actor_for(current_user)

    tenant = repository.get("tenants", tenant_id)
    if not tenant or tenant.get("workspace_id") not in (None, actor.workspace_id):
        raise HTTPException(404, "Tenant not found")

    return service.transfer_room(RoomTransferInput(tenant_id=tenant_id, **body.model_dump()), actor)
