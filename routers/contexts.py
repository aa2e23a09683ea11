# routers/contexts.py

from fastapi import APIRouter, Depends
from typing import List

from dependencies.auth import CurrentUser, get_context_resolver, get_current_user, require_context
from models.context import ContextSummary, UserContext
from services.context_resolver import ContextResolver

router = APIRouter(
    prefix="/contexts",
    tags=["Contexts"],
)


# -----------------------------------------------------
# GET /contexts: every workspace/role the user can act as
# -----------------------------------------------------
@router.get("", response_model=List[ContextSummary])
def list_contexts(
    current_user: CurrentUser = Depends(get_current_user),
    resolver: ContextResolver = Depends(get_context_resolver),
):
    return [
        ContextSummary(
            context_id=ctx.context_id,
            workspace_id=ctx.workspace_id,
            workspace_name=ctx.workspace_name,
            context_type=ctx.context_type,
            role_name=ctx.role_name,
            is_default=ctx.is_default,
            permissions=ctx.permissions,
        )
        for ctx in resolver.list_contexts(current_user.auth_user_id)
    ]


@router.get("/current", response_model=UserContext)
def current_context(current_user: CurrentUser = Depends(get_current_user)):
    return require_context(current_user)


# -----------------------------------------------------
# POST /contexts/{context_id}/switch
#   The client keeps the active context and sends it back
#   as X-Context-Id; this validates it and records usage.
# -----------------------------------------------------
@router.post("/{context_id}/switch", response_model=UserContext)
def switch_context(
    context_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    resolver: ContextResolver = Depends(get_context_resolver),
):
    return resolver.switch_context(current_user.auth_user_id, context_id)


@router.post("/{context_id}/default", response_model=UserContext)
def set_default_context(
    context_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    resolver: ContextResolver = Depends(get_context_resolver),
):
    return resolver.set_default_context(current_user.auth_user_id, context_id)
