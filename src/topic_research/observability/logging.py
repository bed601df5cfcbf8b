"""Named stderr loggers with UTC timestamps.

Usage example:
    from topic_research.observability.logging import get_logger

    logger = get_logger("topic_research.infrastructure.cache", debug=config.debug)
    logger.debug("Cache miss for %s", key)

Each module owns one logger named `topic_research.<layer>.<module>`. Loggers do not
propagate, so embedding applications see each line exactly once.
"""

from __future__ import annotations

import logging
import time

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def _utc_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
    formatter.converter = time.gmtime
    handler.setFormatter(formatter)
    return handler


def get_logger(name: str, *, debug: bool = False) -> logging.Logger:
    """Return the logger for `name`, attaching the UTC stderr handler on first use.

    Args:
        name: Logger name (use a stable module-qualified name).
        debug: Lower the logger to DEBUG; never raises an already-debug logger.

    Returns:
        A logger at INFO (or DEBUG) with a single stream handler.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(_utc_handler())
        logger.setLevel(logging.INFO)
        logger.propagate = False
    if debug:
        enable_debug(logger)
    return logger


def enable_debug(logger: logging.Logger) -> logging.Logger:
    """Lower a logger to DEBUG so verbose request tracing is emitted."""
    logger.setLevel(logging.DEBUG)
    return logger


def enable_debug_tree(prefix: str = "topic_research") -> list[logging.Logger]:
    """Lower every existing logger named `prefix` or `prefix.*` to DEBUG.

    Module loggers are created at import, so calling this from the composition root
    covers the whole package. Returns the loggers that were lowered.
    """
    lowered: list[logging.Logger] = []
    for name, logger in sorted(logging.root.manager.loggerDict.items()):
        if not isinstance(logger, logging.Logger):
            continue
        if name == prefix or name.startswith(f"{prefix}."):
            lowered.append(enable_debug(logger))
    return lowered
