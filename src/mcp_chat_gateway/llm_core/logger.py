"""Logging utilities for the chat gateway."""

import logging
import sys
from typing import TextIO

_LOGGER_NAME = "mcp_chat_gateway"


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance for the gateway.

    Args:
        name: Optional sub-logger name. If None, returns the root gateway logger.

    Returns:
        The requested logger.
    """
    if name:
        return logging.getLogger(f"{_LOGGER_NAME}.{name}")
    return logging.getLogger(_LOGGER_NAME)


def setup_logging(
    level: int = logging.INFO,
    format_str: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream: TextIO | None = None,
) -> None:
    """Setup default logging configuration for the gateway.

    This adds a StreamHandler to the gateway's root logger.
    Should typically be called by the entry points (server, REPL), not by library code.

    Args:
        level: Logging level.
        format_str: Log format string.
        stream: Target stream. Defaults to stdout; the REPL passes stderr so log
            lines do not interleave with streamed model output.
    """
    logger = logging.getLogger(_LOGGER_NAME)

    # Avoid adding multiple handlers if called multiple times
    if any(not isinstance(h, logging.NullHandler) for h in logger.handlers):
        return

    handler = logging.StreamHandler(stream or sys.stdout)
    formatter = logging.Formatter(format_str)
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(level)


# Set default NullHandler to avoid "No handler found" warnings
logging.getLogger(_LOGGER_NAME).addHandler(logging.NullHandler())
