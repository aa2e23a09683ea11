# models/approval.py

from typing import Any, Dict, List, Optional
from datetime import date, datetime
from pydantic import BaseModel, Field

from models.enums import (
    ActorType,
    ApprovalPriority,
    ApprovalStatus,
    ApprovalType,
    Decision,
)


class WorkflowActor(BaseModel):
    """Who is driving a workflow, and in which workspace."""
    actor_id: str
    actor_type: ActorType
    workspace_id: str


# -----------------------------------------------------
# Create
# -----------------------------------------------------
class CreateApprovalInput(BaseModel):
    tenant_id: str = Field(..., description="Requesting tenant")
    workspace_id: str
    owner_id: str = Field(..., description="Workspace owner; receives the request notification")
    type: ApprovalType
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict, description="Shape depends on type")
    priority: ApprovalPriority = ApprovalPriority.normal
    document_ids: Optional[List[str]] = None


class ApprovalCreateRequest(BaseModel):
    """
    Body of POST /approvals. Workspace and owner come from the caller's
    context; a tenant context may omit tenant_id (defaults to itself).
    """
    tenant_id: Optional[str] = None
    type: ApprovalType
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    priority: ApprovalPriority = ApprovalPriority.normal
    document_ids: Optional[List[str]] = None


class CreateApprovalOutput(BaseModel):
    approval_id: str
    status: ApprovalStatus


# -----------------------------------------------------
# Decide
# -----------------------------------------------------
class ApprovalDecisionBody(BaseModel):
    """Decision fields; the type-specific ones are ignored by other types."""
    decision: Decision
    decision_notes: Optional[str] = None

    # bill_dispute
    adjustment_amount: Optional[float] = None
    new_due_date: Optional[date] = None
    waive_late_fee: bool = False

    # complaint / other
    resolution_action: Optional[str] = None


class ApprovalDecisionInput(ApprovalDecisionBody):
    approval_id: str


class ApprovalDecisionOutput(BaseModel):
    approval_id: str
    decision: Decision
    status: ApprovalStatus
    change_applied: bool
    cascading_actions: List[str] = Field(default_factory=list)
    notification_sent: bool = False


class ApprovalDecisionResponse(ApprovalDecisionOutput):
    """HTTP view; adds the out-of-core login email follow-up."""
    login_email_updated: Optional[bool] = None


# -----------------------------------------------------
# Bulk
# -----------------------------------------------------
class BulkDecisionRequest(BaseModel):
    approval_ids: List[str] = Field(..., min_length=1)
    decision_notes: Optional[str] = None


class BulkItemResult(BaseModel):
    id: str
    success: bool
    error_code: Optional[str] = None
    error: Optional[str] = None


class BulkDecisionOutput(BaseModel):
    success_count: int
    failed_count: int
    results: List[BulkItemResult] = Field(default_factory=list)


# -----------------------------------------------------
# Read
# -----------------------------------------------------
class ApprovalRead(BaseModel):
    id: str
    type: ApprovalType
    status: ApprovalStatus
    title: str
    description: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    priority: ApprovalPriority = ApprovalPriority.normal
    requester_tenant_id: str
    workspace_id: str
    owner_id: Optional[str] = None
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    decision_notes: Optional[str] = None
    change_applied: bool = False
    applied_at: Optional[datetime] = None
    document_ids: Optional[List[str]] = None
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
