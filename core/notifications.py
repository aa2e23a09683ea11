# core/notifications.py
import requests
from typing import Any, Callable, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from core.config import settings
from core.errors import ServiceError
from core.logging_config import logger
from core.repository import Repository
from core.utils import iso, utcnow
from models.enums import NotificationChannel, NotificationPriority, NotificationType


class NotificationPayload(BaseModel):
    type: NotificationType
    recipient_id: str
    recipient_type: str  # owner | staff | tenant
    channels: List[NotificationChannel] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.normal


# -----------------------------------------------------
# Templates
# -----------------------------------------------------
def _approval_required(data: Dict[str, Any]) -> Dict[str, Optional[str]]:
    return {
        "subject": f"Approval Required - {data.get('approval_type')}",
        "title": "New Approval Request",
        "body": f"{data.get('tenant_name') or 'A tenant'} has requested a {data.get('approval_type')}: "
                f"{data.get('title')}. Please review and approve/reject.",
        "action_url": f"/approvals/{data.get('approval_id')}",
        "action_label": "Review Request",
    }


def _approval_decision(data: Dict[str, Any]) -> Dict[str, Optional[str]]:
    decision = str(data.get("decision"))
    return {
        "subject": f"Request {decision} - {data.get('request_type')}",
        "title": f"Request {decision}",
        "body": f"Your {data.get('request_type')} request has been {decision.lower()}. {data.get('notes') or ''}".strip(),
        "action_url": f"/tenant/approvals/{data.get('approval_id')}",
        "action_label": "View Details",
    }


NOTIFICATION_TEMPLATES: Dict[NotificationType, Callable[[Dict[str, Any]], Dict[str, Optional[str]]]] = {
    NotificationType.approval_required: _approval_required,
    NotificationType.approval_decision: _approval_decision,
}


# -----------------------------------------------------
# Builders
# -----------------------------------------------------
def build_approval_request_notification(owner_id: str, data: Dict[str, Any], urgent: bool = False) -> NotificationPayload:
    return NotificationPayload(
        type=NotificationType.approval_required,
        recipient_id=owner_id,
        recipient_type="owner",
        channels=settings.NOTIFICATION_CHANNELS,
        data=data,
        priority=NotificationPriority.high if urgent else NotificationPriority.normal,
    )


def build_approval_decision_notification(recipient_id: str, data: Dict[str, Any]) -> NotificationPayload:
    return NotificationPayload(
        type=NotificationType.approval_decision,
        recipient_id=recipient_id,
        recipient_type="tenant",
        channels=settings.NOTIFICATION_CHANNELS,
        data=data,
        priority=NotificationPriority.high,
    )


# -----------------------------------------------------
# Dispatch
# -----------------------------------------------------
class Notifier(Protocol):
    def dispatch(self, payload: NotificationPayload) -> bool:
        ...


class NotificationDispatcher:
    """
    Queues one notification_queue row per channel (delivered by the
    external email/WhatsApp workers) plus an in-app notifications row.
    Returns True when at least one row was written.
    """

    def __init__(self, repository: Repository):
        self.repository = repository

    def dispatch(self, payload: NotificationPayload) -> bool:
        template = NOTIFICATION_TEMPLATES[payload.type](payload.data)
        now = iso(utcnow())
        queued = 0

        for channel in payload.channels:
            try:
                self.repository.insert("notification_queue", {
                    "channel": str(channel),
                    "recipient_id": payload.recipient_id,
                    "recipient_type": payload.recipient_type,
                    "notification_type": str(payload.type),
                    **template,
                    "data": payload.data,
                    "priority": str(payload.priority),
                    "scheduled_at": now,
                    "status": "pending",
                })
                queued += 1
            except ServiceError as e:
                logger.warning(f"Failed to queue {channel} notification for {payload.recipient_id}: {e.message}")

        if NotificationChannel.in_app in payload.channels:
            try:
                self.repository.insert("notifications", {
                    "recipient_id": payload.recipient_id,
                    "recipient_type": payload.recipient_type,
                    "type": str(payload.type),
                    "title": template["title"],
                    "message": template["body"],
                    "action_url": template["action_url"],
                    "data": payload.data,
                    "is_read": False,
                })
            except ServiceError as e:
                logger.warning(f"Failed to create in-app notification for {payload.recipient_id}: {e.message}")

        return queued > 0


# -----------------------------------------------------
# 📨 Send webhook (Discord, Slack, etc.): operator alerts
# -----------------------------------------------------
def send_webhook_message(message: str):
    webhook_url = settings.OPS_WEBHOOK_URL
    if not webhook_url:
        logger.debug("Webhook URL not configured, skipping.")
        return

    try:
        payload = {"content": message}
        response = requests.post(webhook_url, json=payload, timeout=10)
        logger.info(f"Webhook sent (status {response.status_code})")
    except Exception as e:
        logger.warning(f"Webhook failed: {e}")
