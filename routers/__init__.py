# routers/__init__.py

from .approvals import router as approvals_router
from .contexts import router as contexts_router
from .room_transfers import router as room_transfers_router
from .health import router as health_router

__all__ = [
    "approvals_router",
    "contexts_router",
    "room_transfers_router",
    "health_router",
]
