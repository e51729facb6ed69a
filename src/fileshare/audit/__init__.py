"""Append-only audit trail."""

from .model import AuditAction, AuditEntry, AuditPage, RequestOrigin
from .sink import AuditSink, sanitize_details

__all__ = [
    'AuditAction',
    'AuditEntry',
    'AuditPage',
    'AuditSink',
    'RequestOrigin',
    'sanitize_details',
]
