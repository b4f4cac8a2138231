"""Subscription change audit sink.

The lifecycle service hands every completed transition to an `AuditSink`.
Recording is fire-and-forget: a failing sink is logged and never breaks the
transition that produced the event.

By default events go to ``audit_logger``. A persistent or queue-backed sink
can be registered at startup; in tests a mock can be substituted::

    from billing.core.services.audit import register_audit_sink
    register_audit_sink(my_sink)
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from pydantic import BaseModel, Field

from billing.core.config import audit_logger
from billing.core.enums import SubscriptionChangeType


class SubscriptionChangeEvent(BaseModel):
    """A single change to an account's subscription."""

    account_id: UUID
    change_type: SubscriptionChangeType
    from_plan_id: str | None = None
    to_plan_id: str | None = None
    proration_amount: Decimal | None = None
    provider_subscription_ref: str | None = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AuditSink(Protocol):
    """Append-only recorder of subscription changes."""

    async def record(self, event: SubscriptionChangeEvent) -> None: ...


class LoggingAuditSink:
    """Audit sink that writes events to the audit log."""

    async def record(self, event: SubscriptionChangeEvent) -> None:
        audit_logger.info(
            f"Subscription change {event.change_type.value} for account {event.account_id}: "
            f"{event.from_plan_id} -> {event.to_plan_id} "
            f"(proration={event.proration_amount}, ref={event.provider_subscription_ref})"
        )


_sink: AuditSink | None = None


def register_audit_sink(sink: AuditSink) -> None:
    """Register the concrete sink (called once at startup)."""
    global _sink
    _sink = sink


def get_audit_sink() -> AuditSink:
    """Return the registered sink, falling back to the logging sink."""
    if _sink is None:
        return LoggingAuditSink()
    return _sink


def reset_audit_sink() -> None:
    """Clear the registered sink. Intended for test teardown only."""
    global _sink
    _sink = None


async def record_change(sink: AuditSink, event: SubscriptionChangeEvent) -> None:
    """Hand an event to a sink without letting sink failures propagate."""
    try:
        await sink.record(event)
    except Exception as e:
        audit_logger.warning(
            f"Audit sink failed for {event.change_type.value} on account "
            f"{event.account_id}: {e}"
        )


__all__ = [
    "AuditSink",
    "LoggingAuditSink",
    "SubscriptionChangeEvent",
    "get_audit_sink",
    "record_change",
    "register_audit_sink",
    "reset_audit_sink",
]
