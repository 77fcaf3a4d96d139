"""
Logging entry points.

Every module obtains its logger through get_logger(__name__) and emits
snake_case events with keyword context:

    >>> from shared.logging import get_logger
    >>> log = get_logger(__name__)
    >>> log.info("login_success", account_id="123")
"""

import structlog
from structlog.stdlib import BoundLogger

from shared.logging_config import setup_logging


def get_logger(name: str) -> BoundLogger:
    return structlog.get_logger(name)


__all__ = ["get_logger", "setup_logging"]
