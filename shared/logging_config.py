"""
Structured logging setup for the auth service.

Production renders one JSON object per line; development renders colored
console output. Either way, credentials, codes and tokens are masked by
``redact_sensitive_fields`` before the renderer runs.

Level and format come from LoggingSettings (LOG_LEVEL, LOG_FORMAT) and are
passed in by create_app().
"""

import logging
import sys

import structlog
from structlog.types import EventDict, Processor

REDACTED = "***REDACTED***"

# Exact keys that are always masked
REDACTED_FIELDS = frozenset(
    {
        "password",
        "password_hash",
        "new_password",
        "current_password",
        "token",
        "provider_token",
        "reset_token",
        "otp",
        "code",
        "secret",
        "authorization",
    }
)

# Any key containing one of these is masked too (otp_code, jwt_secret, ...)
_REDACTED_FRAGMENTS = ("password", "token", "secret", "otp")
_NEVER_REDACT = frozenset({"level", "event", "timestamp", "logger"})

_NOISY_LOGGERS = ("httpx", "httpcore", "pymongo", "authlib")


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return lowered in REDACTED_FIELDS or any(
        fragment in lowered for fragment in _REDACTED_FRAGMENTS
    )


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    for key in list(event_dict):
        if key not in _NEVER_REDACT and _is_sensitive(key):
            event_dict[key] = REDACTED
    return event_dict


def configure_structlog(log_format: str = "console") -> None:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True, pad_event=15))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_logging(
    log_level: str = "INFO", log_format: str = "console", env: str = "development"
) -> None:
    """Configure stdlib logging and structlog. Call once, early in create_app()."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    configure_structlog(log_format)
    structlog.get_logger(__name__).info(
        "logging_initialized", env=env, log_level=log_level.upper(), log_format=log_format
    )
