"""Audit log for order lifecycle transitions."""

from typing import Any

from app.models.audit_log import AuditLog


async def log_event(
    event_type: str,
    entity_type: str,
    entity_id: str | None = None,
    user_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Append to audit_logs collection."""
    await AuditLog(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        metadata=metadata or {},
    ).insert()
