# routers/approvals.py

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional

from core.logging_config import logger
from core.repository import Repository
from core.supabase_helpers import update_login_email
from dependencies.auth import (
    CurrentUser,
    actor_for,
    get_approval_engine,
    get_current_user,
    get_repository,
    require_context,
    requires_permission,
    user_has_permission,
)
from models.approval import (
    ApprovalCreateRequest,
    ApprovalDecisionBody,
    ApprovalDecisionInput,
    ApprovalDecisionResponse,
    ApprovalRead,
    BulkDecisionOutput,
    BulkDecisionRequest,
    CreateApprovalInput,
    CreateApprovalOutput,
)
from models.enums import ApprovalStatus, ApprovalType, ContextType, Decision
from services.approval_engine import ApprovalEngine

router = APIRouter(
    prefix="/approvals",
    tags=["Approvals"],
)


def _is_tenant(user: CurrentUser) -> bool:
    return user.context is not None and user.context.context_type == ContextType.tenant


# -----------------------------------------------------
# POST /approvals: file a request
# -----------------------------------------------------
@router.post("", response_model=CreateApprovalOutput, status_code=201)
def create_approval(
    body: ApprovalCreateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    engine: ApprovalEngine = Depends(get_approval_engine),
    repository: Repository = Depends(get_repository),
):
    """
    Tenants file requests for themselves. Owners and staff with
    tenants.edit can file on behalf of a tenant.
    """
    context = require_context(current_user)

    if _is_tenant(current_user):
        if body.tenant_id and body.tenant_id != context.entity_id:
            raise HTTPException(403, "Tenants can only file requests for themselves")
        tenant_id = context.entity_id
    else:
        if not user_has_permission(current_user, "tenants.edit"):
            raise HTTPException(403, "Missing permission: tenants.edit")
        tenant_id = body.tenant_id

    if not tenant_id:
        raise HTTPException(400, "tenant_id is required")

    workspace = repository.get("workspaces", context.workspace_id) or {}
    owner_id = workspace.get("owner_user_id")
    if not owner_id:
        raise HTTPException(404, "Workspace owner not found")

    return engine.create_approval(
        CreateApprovalInput(
            tenant_id=tenant_id,
            workspace_id=context.workspace_id,
            owner_id=owner_id,
            type=body.type,
            title=body.title,
            description=body.description,
            payload=body.payload,
            priority=body.priority,
            document_ids=body.document_ids,
        ),
        actor_for(current_user),
    )


# -----------------------------------------------------
# GET /approvals: list (tenants only see their own)
# -----------------------------------------------------
@router.get("", response_model=List[ApprovalRead])
def list_approvals(
    status: Optional[ApprovalStatus] = Query(None),
    type: Optional[ApprovalType] = Query(None),
    tenant_id: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    engine: ApprovalEngine = Depends(get_approval_engine),
):
    context = require_context(current_user)

    if _is_tenant(current_user):
        tenant_id = context.entity_id
    elif not user_has_permission(current_user, "approvals.view"):
        raise HTTPException(403, "Missing permission: approvals.view")

    return engine.list_approvals(context.workspace_id, status=status, type=type, tenant_id=tenant_id)


# -----------------------------------------------------
# Bulk decisions (declared before /{approval_id} routes)
# -----------------------------------------------------
@router.post("/bulk-approve", response_model=BulkDecisionOutput)
def bulk_approve(
    body: BulkDecisionRequest,
    current_user: CurrentUser = Depends(requires_permission("approvals.process")),
    engine: ApprovalEngine = Depends(get_approval_engine),
):
    return engine.bulk_approve(body.approval_ids, body.decision_notes, actor_for(current_user))


@router.post("/bulk-reject", response_model=BulkDecisionOutput)
def bulk_reject(
    body: BulkDecisionRequest,
    current_user: CurrentUser = Depends(requires_permission("approvals.process")),
    engine: ApprovalEngine = Depends(get_approval_engine),
):
    return engine.bulk_reject(body.approval_ids, body.decision_notes, actor_for(current_user))


# -----------------------------------------------------
# GET /approvals/{approval_id}
# -----------------------------------------------------
@router.get("/{approval_id}", response_model=ApprovalRead)
def get_approval(
    approval_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    engine: ApprovalEngine = Depends(get_approval_engine),
):
    context = require_context(current_user)
    approval = engine.get_approval(approval_id)

    if approval.workspace_id != context.workspace_id and not current_user.is_platform_admin:
        raise HTTPException(404, "Approval not found")

    if _is_tenant(current_user):
        if approval.requester_tenant_id != context.entity_id:
            raise HTTPException(404, "Approval not found")
    elif not user_has_permission(current_user, "approvals.view"):
        raise HTTPException(403, "Missing permission: approvals.view")

    return approval


# -----------------------------------------------------
# POST /approvals/{approval_id}/decision
# -----------------------------------------------------
@router.post("/{approval_id}/decision", response_model=ApprovalDecisionResponse)
def decide_approval(
    approval_id: str,
    body: ApprovalDecisionBody,
    current_user: CurrentUser = Depends(requires_permission("approvals.process")),
    engine: ApprovalEngine = Depends(get_approval_engine),
    repository: Repository = Depends(get_repository),
):
    """
    Approve or reject a pending request. 409 APPROVAL_ALREADY_PROCESSED
    means someone else decided it first.
    """
    result = engine.process_approval(
        ApprovalDecisionInput(approval_id=approval_id, **body.model_dump()),
        actor_for(current_user),
    )
    response = ApprovalDecisionResponse(**result.model_dump())

    # Login email lives in Supabase Auth; the engine only flags it
    if body.decision == Decision.approved and "auth_email_requires_admin_api" in result.cascading_actions:
        approval = engine.get_approval(approval_id)
        tenant = repository.get("tenants", approval.requester_tenant_id) or {}
        new_email = approval.payload.get("new_email")
        if tenant.get("user_id") and new_email:
            response.login_email_updated = update_login_email(tenant["user_id"], new_email)
            if not response.login_email_updated:
                logger.warning(f"Approval {approval_id}: login email for {tenant['user_id']} not updated")

    return response


# -----------------------------------------------------
# POST /approvals/{approval_id}/apply: retry application
# -----------------------------------------------------
@router.post("/{approval_id}/apply", response_model=ApprovalDecisionResponse)
def apply_approval(
    approval_id: str,
    current_user: CurrentUser = Depends(requires_permission("approvals.process")),
    engine: ApprovalEngine = Depends(get_approval_engine),
):
    """Re-run the change of an approval stuck in approved_pending_application."""
    result = engine.apply_pending_change(approval_id, actor_for(current_user))
    return ApprovalDecisionResponse(**result.model_dump())
