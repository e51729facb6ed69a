"""Observability infrastructure for fileshare.

Structured logging with secret scrubbing, Prometheus metrics, and
request-ID correlation.

Quick start::

    from fileshare.observability import configure_logging, get_logger
    from fileshare.observability.middleware import (
        MetricsMiddleware,
        RequestIdMiddleware,
        RequestLoggingMiddleware,
    )

    configure_logging()
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIdMiddleware)
"""

from .logging import configure_logging, get_logger, request_id_ctx
from .metrics import metrics_text
from .redaction import redact_mapping, redact_token

__all__ = [
    'configure_logging',
    'get_logger',
    'metrics_text',
    'redact_mapping',
    'redact_token',
    'request_id_ctx',
]
