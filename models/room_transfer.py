# models/room_transfer.py

from typing import Optional
from datetime import date
from pydantic import BaseModel, Field


class RoomTransferRequest(BaseModel):
    """Body of POST /tenants/{tenant_id}/transfer."""
    new_room_id: str
    new_bed_id: Optional[str] = None
    transfer_date: Optional[date] = Field(None, description="Defaults to today")
    reason: Optional[str] = None
    adjust_rent: bool = False
    new_rent: Optional[float] = Field(None, ge=0)


class RoomTransferInput(RoomTransferRequest):
    tenant_id: str


class RoomTransferOutput(BaseModel):
    transfer_id: Optional[str] = None
    old_room_id: Optional[str] = None
    new_room_id: str
    new_stay_id: Optional[str] = None
    rent_adjusted: bool = False
