"""Logging infrastructure.

Basic usage:
    import logging

    from materialized_tree.infra.logging import get_lazy_logger, setup_logging

    setup_logging()  # reads LOG_* settings once

    logger = logging.getLogger(__name__)
    logger.info("Subtree moved", extra={"count": 12})

    # Lazy evaluation for expensive operations
    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"Descendants: {[n.id for n in nodes]}")
"""

from materialized_tree.infra.logging.config import configure_logging, setup_logging
from materialized_tree.infra.logging.formatters import JSONFormatter
from materialized_tree.infra.logging.lazy import (
    LazyLoggerAdapter,
    LazyString,
    get_lazy_logger,
    lazy,
)

__all__ = [
    "JSONFormatter",
    "LazyLoggerAdapter",
    "LazyString",
    "configure_logging",
    "get_lazy_logger",
    "lazy",
    "setup_logging",
]
