"""
Process-wide logging setup.

Every entry point (CLI, MCP server, HTTP gateway) calls setup_logging once.
Records go to stderr so the stdio MCP transport keeps stdout to itself.
"""

import logging
import uuid

LOG_FORMAT = "%(asctime)s  %(name)-30s  %(levelname)-7s  %(message)s"


def setup_logging(component: str, level: str = "INFO") -> logging.Logger:
    """
    Configure logging for a call-tracer component.

    Args:
        component: Name of the component (used as logger name).
        level: Log level string (e.g. 'INFO', 'DEBUG').

    Returns:
        Configured logger instance.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    return logging.getLogger(component)


def generate_request_id() -> str:
    """Generate a short unique ID for tagging the log lines of one request."""
    return uuid.uuid4().hex[:12]
