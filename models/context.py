# models/context.py

from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from models.enums import ContextType


class UserContext(BaseModel):
    """
    One (principal, workspace, role-kind) binding.

    For staff, ``permissions`` already holds the union over every assigned
    role; for owner/tenant it is informational only (owner is "*", tenant
    uses the fixed portal set).
    """
    context_id: str
    user_id: str
    workspace_id: str
    workspace_name: Optional[str] = None
    context_type: ContextType
    role_id: Optional[str] = None
    role_name: Optional[str] = None
    role_ids: List[str] = Field(default_factory=list)
    entity_id: Optional[str] = Field(None, description="staff_member_id or tenant_id")
    permissions: List[str] = Field(default_factory=list)
    is_default: bool = False
    last_accessed_at: Optional[datetime] = None


class ContextSummary(BaseModel):
    """What the context picker shows."""
    context_id: str
    workspace_id: str
    workspace_name: Optional[str] = None
    context_type: ContextType
    role_name: Optional[str] = None
    is_default: bool = False
    permissions: List[str] = Field(default_factory=list)
