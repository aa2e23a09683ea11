# services/context_resolver.py
# Resolves which workspaces/roles a principal can act under.

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from core.errors import ContextNotFoundError
from core.logging_config import logger
from core.permission_helpers import aggregate_permissions
from core.repository import Record, Repository
from core.utils import iso, utcnow
from models.context import UserContext
from models.enums import ContextType


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _last_accessed_key(ctx: UserContext) -> datetime:
    value = ctx.last_accessed_at
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ContextResolver:
    """
    Builds UserContext objects from user_contexts / workspaces / roles /
    user_roles. Reads only, except switch_context and set_default_context
    which record usage and the persisted default preference.
    """

    def __init__(self, repository: Repository, clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.clock = clock

    # ---------------------------------------------------------
    # Listing
    # ---------------------------------------------------------
    def list_contexts(self, user_id: str) -> List[UserContext]:
        rows = self.repository.select("user_contexts", {"user_id": user_id, "is_active": True})
        if not rows:
            return []

        workspaces = self._batch_get("workspaces", [r.get("workspace_id") for r in rows])
        primary_roles = self._batch_get("roles", [r.get("role_id") for r in rows])

        contexts = []
        for row in rows:
            workspace = workspaces.get(row.get("workspace_id"))
            if not workspace or workspace.get("is_active") is False:
                continue
            contexts.append(self._build_context(row, workspace, primary_roles.get(row.get("role_id"))))

        # default first, then most recently used
        contexts.sort(key=_last_accessed_key, reverse=True)
        contexts.sort(key=lambda c: not c.is_default)
        return contexts

    def _batch_get(self, table: str, ids: List[Optional[str]]) -> Dict[str, Record]:
        wanted = sorted({i for i in ids if i})
        if not wanted:
            return {}
        rows = self.repository.select(table, in_filters={"id": wanted})
        return {r["id"]: r for r in rows}

    def _build_context(self, row: Record, workspace: Record, primary_role: Optional[Record]) -> UserContext:
        context_type = ContextType(row["context_type"])
        role_ids = [row["role_id"]] if row.get("role_id") else []
        permissions: List[str] = list((primary_role or {}).get("permissions") or [])

        if context_type == ContextType.staff and row.get("entity_id"):
            assignments = self.repository.select("user_roles", {"staff_member_id": row["entity_id"]})
            role_ids = sorted({a["role_id"] for a in assignments if a.get("role_id")})
            roles = self.repository.select("roles", in_filters={"id": role_ids}) if role_ids else []
            permissions = sorted(aggregate_permissions(r.get("permissions") for r in roles))

        return UserContext(
            context_id=row["id"],
            user_id=row["user_id"],
            workspace_id=row["workspace_id"],
            workspace_name=workspace.get("name"),
            context_type=context_type,
            role_id=row.get("role_id"),
            role_name=(primary_role or {}).get("name"),
            role_ids=role_ids,
            entity_id=row.get("entity_id"),
            permissions=permissions,
            is_default=bool(row.get("is_default")),
            last_accessed_at=row.get("last_accessed_at"),
        )

    # ---------------------------------------------------------
    # Resolution
    # ---------------------------------------------------------
    def resolve_context(self, user_id: str, context_id: str) -> UserContext:
        for ctx in self.list_contexts(user_id):
            if ctx.context_id == context_id:
                return ctx
        raise ContextNotFoundError(
            "You do not have access to this workspace context",
            {"context_id": context_id},
        )

    def resolve_active_context(self, user_id: str, requested_context_id: Optional[str] = None) -> UserContext:
        """
        The active context is a per-session choice made client-side
        (sent as X-Context-Id). Without one: the persisted default, else
        the most recently used.
        """
        contexts = self.list_contexts(user_id)

        if requested_context_id:
            for ctx in contexts:
                if ctx.context_id == requested_context_id:
                    return ctx
            raise ContextNotFoundError(
                "You do not have access to this workspace context",
                {"context_id": requested_context_id},
            )

        if not contexts:
            raise ContextNotFoundError("No workspace context available for this user")

        return contexts[0]

    # ---------------------------------------------------------
    # Mutations (usage tracking / default preference)
    # ---------------------------------------------------------
    def switch_context(self, user_id: str, context_id: str) -> UserContext:
        ctx = self.resolve_context(user_id, context_id)

        row = self.repository.get("user_contexts", context_id) or {}
        self.repository.update(
            "user_contexts",
            context_id,
            {
                "last_accessed_at": iso(self.clock()),
                "access_count": int(row.get("access_count") or 0) + 1,
            },
        )
        logger.info(f"User {user_id} switched to context {context_id} ({ctx.context_type})")
        return ctx

    def set_default_context(self, user_id: str, context_id: str) -> UserContext:
        ctx = self.resolve_context(user_id, context_id)

        self.repository.update_where("user_contexts", {"user_id": user_id}, {"is_default": False})
        self.repository.update("user_contexts", context_id, {"is_default": True})

        logger.info(f"User {user_id} set default context {context_id}")
        return ctx.model_copy(update={"is_default": True})

    def is_platform_admin(self, user_id: str) -> bool:
        rows = self.repository.select("platform_admins", {"user_id": user_id}, limit=1)
        return bool(rows) and rows[0].get("is_active", True) is not False
