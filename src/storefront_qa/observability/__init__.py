"""Observability infrastructure for storefront-qa.

Provides structured logging with scenario-name correlation for the
API and UI runners.

Quick start::

    from storefront_qa.observability import configure_logging, get_logger

    configure_logging(level="INFO")
    logger = get_logger(__name__)
"""

from .logging import configure_logging, get_logger, scenario_ctx

__all__ = [
    "configure_logging",
    "get_logger",
    "scenario_ctx",
]
