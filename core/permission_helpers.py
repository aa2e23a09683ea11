# core/permission_helpers.py

from typing import FrozenSet, Iterable, Optional

from core.config import settings
from core.logging_config import logger
from core.permissions import ALL_PERMISSIONS, PERMISSIONS, TENANT_PERMISSIONS
from models.context import UserContext
from models.enums import ContextType


_KNOWN_PERMISSIONS = frozenset(PERMISSIONS)


# -----------------------------------------------------
# Multi-role aggregation (pure, no I/O)
#   Staff members often hold overlapping duties
#   (Accountant + Receptionist); their permissions
#   MERGE, never override.
# -----------------------------------------------------
def aggregate_permissions(role_permission_lists: Iterable[Optional[Iterable[str]]]) -> FrozenSet[str]:
    merged = set()
    for perms in role_permission_lists:
        if perms:
            merged.update(perms)
    return frozenset(merged)


# -----------------------------------------------------
# Effective permissions for a context
# -----------------------------------------------------
def permissions_for(context: Optional[UserContext]) -> FrozenSet[str]:
    if context is None:
        return frozenset()

    if context.context_type == ContextType.owner:
        return frozenset([ALL_PERMISSIONS])

    if context.context_type == ContextType.tenant:
        return TENANT_PERMISSIONS

    return frozenset(context.permissions)


def is_valid_permission(permission: str) -> bool:
    """Flags typos early; unknown strings silently evaluate to False."""
    valid = permission == ALL_PERMISSIONS or permission in _KNOWN_PERMISSIONS
    if not valid and settings.ENV == "development":
        logger.warning(f"Invalid permission: '{permission}'. This will fail silently in production.")
    return valid


# -----------------------------------------------------
# Permission evaluation
# -----------------------------------------------------
def has_permission(context: Optional[UserContext], permission: str) -> bool:
    is_valid_permission(permission)

    # No context means no permissions
    if context is None:
        return False

    # Owner: full access to their workspace
    if context.context_type == ContextType.owner:
        return True

    # Tenant: fixed portal set only
    if context.context_type == ContextType.tenant:
        return permission in TENANT_PERMISSIONS

    # Staff: aggregated over all assigned roles
    if context.context_type == ContextType.staff:
        return permission in permissions_for(context)

    return False


def has_any_permission(context: Optional[UserContext], permissions: Iterable[str]) -> bool:
    return any(has_permission(context, p) for p in permissions)


def has_all_permissions(context: Optional[UserContext], permissions: Iterable[str]) -> bool:
    return all(has_permission(context, p) for p in permissions)
