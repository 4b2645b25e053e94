"""Shared utilities for the storefront identity subsystem."""

from storefront_identity.utils.audit import AuditEvent, log_audit_event, utc_now_iso

__all__ = [
    "AuditEvent",
    "log_audit_event",
    "utc_now_iso",
]
