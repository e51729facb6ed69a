"""structlog setup for fileshare.

Every event passes through two fileshare-specific processors before it
is rendered: the current request id is attached, and credential or
link-token fields are scrubbed (see ``redaction``), so a handler that
logs a share row by accident still never writes a redeemable token.

``configure_logging`` is called once by ``create_app_from_env``. Tests
leave structlog unconfigured and read events with
``structlog.testing.capture_logs``.
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar
from typing import Any

import structlog

from .redaction import redact_mapping

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

# Library loggers that only matter at WARNING and above.
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")

_configured = False


def add_request_id(_logger: Any, _method: str, event_dict: dict) -> dict:
    rid = request_id_ctx.get()
    if rid is not None:
        event_dict.setdefault("request_id", rid)
    return event_dict


def scrub_secrets(_logger: Any, _method: str, event_dict: dict) -> dict:
    return redact_mapping(event_dict)


def fileshare_processors() -> list:
    """Processor chain shared by structlog and the stdlib formatter."""
    return [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        scrub_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
) -> None:
    """Route structlog and stdlib logging to one stdout handler.

    Args:
        level: Root level name; ``LOG_LEVEL`` or INFO when omitted.
        json_output: JSON lines when True, console rendering when False;
            ``LOG_FORMAT`` (default ``json``) when omitted.
    """
    global _configured
    if _configured:
        return
    _configured = True

    level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "json") == "json"
    renderer = (
        structlog.processors.JSONRenderer() if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            *fileshare_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    ))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level, logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
