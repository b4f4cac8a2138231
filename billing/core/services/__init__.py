from billing.core.services.audit import (
    AuditSink,
    LoggingAuditSink,
    SubscriptionChangeEvent,
    get_audit_sink,
    record_change,
    register_audit_sink,
    reset_audit_sink,
)
from billing.core.services.retry import CancellationToken, RetryPolicy, retry_until

__all__ = [
    # Audit
    "AuditSink",
    "LoggingAuditSink",
    "SubscriptionChangeEvent",
    "get_audit_sink",
    "record_change",
    "register_audit_sink",
    "reset_audit_sink",
    # Retry
    "CancellationToken",
    "RetryPolicy",
    "retry_until",
]
