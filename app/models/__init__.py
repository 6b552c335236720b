from app.models.audit_log import AuditLog
from app.models.chat import ChatMessage, ChatThread
from app.models.failed_job import FailedJob
from app.models.notification import Notification
from app.models.order import Order, OrderTimeline
from app.models.refund import Refund

__all__ = [
    "AuditLog",
    "ChatMessage",
    "ChatThread",
    "FailedJob",
    "Notification",
    "Order",
    "OrderTimeline",
    "Refund",
]
