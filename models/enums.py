from enum import Enum


class BaseStrEnum(str, Enum):
    """
    Base enum that serializes cleanly to a string
    and provides a .list() method for UI dropdowns.
    """

    def __str__(self):
        return str(self.value)

    @classmethod
    def list(cls):
        return [item.value for item in cls]


# -----------------------------------------------------
# CONTEXT TYPE
# -----------------------------------------------------
class ContextType(BaseStrEnum):
    """The role-kind half of a (principal, workspace, role-kind) context."""

    owner = "owner"
    staff = "staff"
    tenant = "tenant"


# -----------------------------------------------------
# APPROVAL TYPE
# -----------------------------------------------------
class ApprovalType(BaseStrEnum):
    """Closed catalogue of request kinds; one handler per member."""

    name_change = "name_change"
    address_change = "address_change"
    phone_change = "phone_change"
    email_change = "email_change"
    room_change = "room_change"
    complaint = "complaint"
    bill_dispute = "bill_dispute"
    payment_dispute = "payment_dispute"
    tenancy_issue = "tenancy_issue"
    room_issue = "room_issue"
    other = "other"


APPROVAL_TYPE_LABELS = {
    ApprovalType.name_change: "Name Change",
    ApprovalType.address_change: "Address Change",
    ApprovalType.phone_change: "Phone Change",
    ApprovalType.email_change: "Email Change",
    ApprovalType.room_change: "Room Transfer",
    ApprovalType.complaint: "Complaint Resolution",
    ApprovalType.bill_dispute: "Bill Dispute",
    ApprovalType.payment_dispute: "Payment Dispute",
    ApprovalType.tenancy_issue: "Tenancy Issue",
    ApprovalType.room_issue: "Room Issue",
    ApprovalType.other: "Other Request",
}


def approval_type_label(value) -> str:
    try:
        return APPROVAL_TYPE_LABELS[ApprovalType(value)]
    except ValueError:
        return str(value)


# -----------------------------------------------------
# APPROVAL STATUS
# -----------------------------------------------------
class ApprovalStatus(BaseStrEnum):
    """
    pending → approved_pending_application → approved
    pending → rejected

    approved_pending_application is the window between the recorded
    decision and the applied side effects; an approval stuck there is
    what operators retry.
    """

    pending = "pending"
    approved_pending_application = "approved_pending_application"
    approved = "approved"
    rejected = "rejected"


class ApprovalPriority(BaseStrEnum):
    low = "low"
    normal = "normal"
    high = "high"
    urgent = "urgent"


class Decision(BaseStrEnum):
    approved = "approved"
    rejected = "rejected"


# -----------------------------------------------------
# ACTORS / NOTIFICATIONS
# -----------------------------------------------------
class ActorType(BaseStrEnum):
    owner = "owner"
    staff = "staff"
    tenant = "tenant"
    system = "system"


class NotificationType(BaseStrEnum):
    approval_required = "approval_required"
    approval_decision = "approval_decision"


class NotificationChannel(BaseStrEnum):
    email = "email"
    sms = "sms"
    whatsapp = "whatsapp"
    in_app = "in_app"


class NotificationPriority(BaseStrEnum):
    low = "low"
    normal = "normal"
    high = "high"


# -----------------------------------------------------
# STAYS
# -----------------------------------------------------
class StayStatus(BaseStrEnum):
    active = "active"
    completed = "completed"
    transferred = "transferred"
