"""Structured logging for storefront-qa runs.

Every event is a structlog key/value record routed through stdlib logging
to stderr, so ``--json`` report output on stdout stays machine-readable.
Events emitted while a scenario is running carry its name under the
``scenario`` key, and token material is masked before rendering.

Usage::

    from storefront_qa.observability import configure_logging, get_logger

    configure_logging(level="INFO")  # once, at CLI startup
    logger = get_logger(__name__)
    logger.info("scenario_recorded", verdict="pass")
"""

from __future__ import annotations

import logging
import os
import re
import sys
from contextvars import ContextVar
from typing import Any

import structlog

# Name of the scenario the current asyncio task is driving.
scenario_ctx: ContextVar[str | None] = ContextVar("scenario", default=None)

REDACTED = "[REDACTED]"

# Bearer headers and compact JWTs (three base64url segments).
_TOKEN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"Bearer\s+[A-Za-z0-9._~+/=-]{16,}"),
    re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"),
)

_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")

_configured = False


def redact_tokens(text: str) -> str:
    """Mask bearer tokens and JWTs in *text*."""
    for pattern in _TOKEN_PATTERNS:
        text = pattern.sub(REDACTED, text)
    return text


def _add_scenario(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    name = scenario_ctx.get()
    if name is not None:
        event_dict.setdefault("scenario", name)
    return event_dict


def _redact(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = redact_tokens(value)
    return event_dict


def _pre_chain() -> list:
    """Processors applied to every event, structlog or stdlib."""
    return [
        structlog.contextvars.merge_contextvars,
        _add_scenario,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        _redact,
    ]


def _stderr_handler(json_output: bool) -> logging.Handler:
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    ))
    return handler


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
    force: bool = False,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level name. Defaults to ``LOG_LEVEL`` or WARNING, so a
            plain CLI run only prints the report.
        json_output: Emit JSON lines instead of console output. Defaults
            to ``LOG_FORMAT == "json"``.
        force: Reconfigure even if already configured.
    """
    global _configured
    if _configured and not force:
        return
    _configured = True

    level = (level or os.environ.get("LOG_LEVEL", "WARNING")).upper()
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "console") == "json"

    structlog.configure(
        processors=[
            *_pre_chain(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_stderr_handler(json_output))
    root.setLevel(getattr(logging, level, logging.WARNING))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to the given name."""
    return structlog.get_logger(name)
