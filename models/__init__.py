# -------------------------
# Enums
# -------------------------
from .enums import (
    ActorType,
    ApprovalPriority,
    ApprovalStatus,
    ApprovalType,
    ContextType,
    Decision,
    StayStatus,
)

# -------------------------
# Context Models
# -------------------------
from .context import ContextSummary, UserContext

# -------------------------
# Approval Models
# -------------------------
from .approval import (
    ApprovalCreateRequest,
    ApprovalDecisionBody,
    ApprovalDecisionInput,
    ApprovalDecisionOutput,
    ApprovalDecisionResponse,
    ApprovalRead,
    BulkDecisionOutput,
    BulkDecisionRequest,
    BulkItemResult,
    CreateApprovalInput,
    CreateApprovalOutput,
    WorkflowActor,
)

# -------------------------
# Room Transfer Models
# -------------------------
from .room_transfer import RoomTransferInput, RoomTransferOutput, RoomTransferRequest

__all__ = [
    # enums
    "ActorType",
    "ApprovalPriority",
    "ApprovalStatus",
    "ApprovalType",
    "ContextType",
    "Decision",
    "StayStatus",

    # contexts
    "ContextSummary",
    "UserContext",

    # approvals
    "ApprovalCreateRequest",
    "ApprovalDecisionBody",
    "ApprovalDecisionInput",
    "ApprovalDecisionOutput",
    "ApprovalDecisionResponse",
    "ApprovalRead",
    "BulkDecisionOutput",
    "BulkDecisionRequest",
    "BulkItemResult",
    "CreateApprovalInput",
    "CreateApprovalOutput",
    "WorkflowActor",

    # room transfers
    "RoomTransferInput",
    "RoomTransferOutput",
    "RoomTransferRequest",
]
