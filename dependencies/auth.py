from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from supabase import Client

from core.audit import SupabaseAuditSink
from core.errors import ServiceError, to_http_exception
from core.logging_config import logger
from core.notifications import NotificationDispatcher
from core.permission_helpers import has_permission
from core.repository import Repository
from core.supabase_client import get_supabase_client
from core.supabase_helpers import SupabaseRepository
from models.approval import WorkflowActor
from models.context import UserContext
from models.enums import ActorType
from services.approval_engine import ApprovalEngine
from services.context_resolver import ContextResolver
from services.room_transfer import RoomTransferService


bearer_scheme = HTTPBearer()


# ============================================================
# Service providers (overridden in tests via app.dependency_overrides)
# ============================================================
def get_repository() -> Repository:
    return SupabaseRepository()


def get_context_resolver(repository: Repository = Depends(get_repository)) -> ContextResolver:
    return ContextResolver(repository)


def get_room_transfer_service(repository: Repository = Depends(get_repository)) -> RoomTransferService:
    return RoomTransferService(repository, SupabaseAuditSink(repository))


def get_approval_engine(repository: Repository = Depends(get_repository)) -> ApprovalEngine:
    audit_sink = SupabaseAuditSink(repository)
    return ApprovalEngine(
        repository,
        notifier=NotificationDispatcher(repository),
        audit_sink=audit_sink,
        transfer_service=RoomTransferService(repository, audit_sink),
    )


# ============================================================
# Current User Model (principal + active workspace context)
# ============================================================
class CurrentUser(BaseModel):
    auth_user_id: str               # Supabase Auth UID
    email: Optional[str] = None

    # Active context: X-Context-Id when sent, else default / most recent.
    # None when the principal has no workspace yet.
    context: Optional[UserContext] = None

    # ⭐ platform admins pass every permission check
    is_platform_admin: bool = False


# ============================================================
# AUTH DECODING (Supabase: validates JWT, then resolves context)
# ============================================================
def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    x_context_id: Optional[str] = Header(None, alias="X-Context-Id"),
    resolver: ContextResolver = Depends(get_context_resolver),
) -> CurrentUser:

    token = credentials.credentials

    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired authentication token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    client: Client = get_supabase_client()
    if not client:
        raise HTTPException(500, "Supabase client not configured")

    # ---------------------------------------------------------
    # Validate JWT via Supabase GoTrue
    # ---------------------------------------------------------
    try:
        auth_resp = client.auth.get_user(token)
        if not auth_resp or not auth_resp.user:
            raise unauthorized
        auth_user = auth_resp.user
    except Exception:
        raise unauthorized

    # ---------------------------------------------------------
    # Resolve workspace context
    # ---------------------------------------------------------
    try:
        if x_context_id:
            context = resolver.resolve_active_context(auth_user.id, x_context_id)
        else:
            contexts = resolver.list_contexts(auth_user.id)
            context = contexts[0] if contexts else None

        is_admin = resolver.is_platform_admin(auth_user.id)
    except ServiceError as e:
        raise to_http_exception(e)

    return CurrentUser(
        auth_user_id=auth_user.id,
        email=auth_user.email,
        context=context,
        is_platform_admin=is_admin,
    )


# ============================================================
# PERMISSION CHECKS
# ============================================================
def user_has_permission(user: CurrentUser, permission: str) -> bool:
    if user.is_platform_admin:
        return True
    return has_permission(user.context, permission)


def requires_permission(permission: str):
    def checker(current_user: CurrentUser = Depends(get_current_user)):
        if not user_has_permission(current_user, permission):
            logger.warning(f"Permission denied: {current_user.auth_user_id} lacks {permission}")
            raise HTTPException(
                status_code=403,
                detail=f"Missing permission: {permission}",
            )
        return current_user
    return checker


def require_context(user: CurrentUser) -> UserContext:
    if user.context is None:
        raise HTTPException(
            status_code=403,
            detail="No active workspace context",
        )
    return user.context


def actor_for(user: CurrentUser) -> WorkflowActor:
    """The workflow actor for a request: who, as what, in which workspace."""
    context = require_context(user)
    return WorkflowActor(
        actor_id=user.auth_user_id,
        actor_type=ActorType(str(context.context_type)),
        workspace_id=context.workspace_id,
    )
