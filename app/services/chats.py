"""Client/freelancer chat thread opened when an order is paid."""

from app.core.clock import utcnow
from app.core.logging import get_logger
from app.models.chat import ChatMessage, ChatThread
from app.services.events import OrderPaid

log = get_logger(__name__)

ORDER_NOTIFICATION = "order_notification"


async def get_or_create_thread(order_id: str, participants: list[str]) -> ChatThread:
    thread = await ChatThread.find_one(ChatThread.order_id == order_id)
    if thread:
        return thread
    thread = ChatThread(order_id=order_id, participants=participants)
    await thread.insert()
    log.info("chat_created", order_id=order_id, thread_id=str(thread.id))
    return thread


async def open_order_chat(event: OrderPaid) -> None:
    """Create the order's thread and post its single order notification message."""
    participants = [p for p in (event.client_id, event.freelancer_id) if p]
    if len(participants) < 2:
        log.info("chat_skipped", reason="missing_participant", order_id=event.order_id)
        return
    thread = await get_or_create_thread(event.order_id, participants)
    thread_id = str(thread.id)
    existing = await ChatMessage.find_one(
        ChatMessage.thread_id == thread_id,
        ChatMessage.type == ORDER_NOTIFICATION,
    )
    if existing:
        return
    content = f'New order "{event.title}" has been paid and is waiting for confirmation.'
    await ChatMessage(
        thread_id=thread_id,
        order_id=event.order_id,
        type=ORDER_NOTIFICATION,
        content=content,
    ).insert()
    thread.last_message = content
    thread.last_message_at = utcnow()
    await thread.save()
