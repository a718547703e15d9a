"""Shared utilities for the Account Portal application."""

from portal.utils.audit import AuditEvent, log_audit_event

__all__ = ["AuditEvent", "log_audit_event"]
