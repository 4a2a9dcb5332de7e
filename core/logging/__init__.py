# Structured logging with channel support
import sys
import logging
import structlog
from typing import Optional, Dict, Any

from core.config.settings import Settings
from .channels import LogChannel, get_channel_for_component

# Global flag to prevent duplicate logging configuration
_logging_configured = False

_REDACT_KEYS = {"authorization", "api_key", "apikey", "password", "secret", "token"}


def _redact_sensitive(logger, name, event_dict):
    """Redact credentials from event dict recursively."""

    def _redact(obj):
        if isinstance(obj, dict):
            return {
                k: "[REDACTED]" if isinstance(k, str) and k.lower() in _REDACT_KEYS else _redact(v)
                for k, v in obj.items()
            }
        if isinstance(obj, list):
            return [_redact(v) for v in obj]
        return obj

    return _redact(event_dict)


def configure_logging(settings: Settings) -> None:
    """Configure stdlib logging and structlog once per process."""
    global _logging_configured

    # Prevent duplicate configuration
    if _logging_configured:
        return

    level = settings.logging.level.upper()
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    if settings.logging.json_format and settings.logging.console_json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _redact_sensitive,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    _logging_configured = True


def get_logger(name: str, component: Optional[str] = None) -> structlog.BoundLogger:
    """Get a structured logger instance bound to its component channel."""
    logger = structlog.get_logger(name)
    if component:
        channel = get_channel_for_component(component)
        return logger.bind(component=component, channel=channel.value)
    return logger


def get_channel_logger(name: str, channel: LogChannel) -> structlog.BoundLogger:
    """Get a logger bound to an explicit channel."""
    return structlog.get_logger(name).bind(channel=channel.value)


def get_stream_logger_safe(name: str) -> structlog.BoundLogger:
    return get_channel_logger(name, LogChannel.STREAM)


def get_snapshot_logger_safe(name: str) -> structlog.BoundLogger:
    return get_channel_logger(name, LogChannel.SNAPSHOT)


def get_audit_logger_safe(name: str) -> structlog.BoundLogger:
    return get_channel_logger(name, LogChannel.AUDIT)


def get_error_logger_safe(name: str) -> structlog.BoundLogger:
    return get_channel_logger(name, LogChannel.ERROR)


def bind_backend_context(logger: structlog.BoundLogger, username: str, label: Optional[str] = None) -> structlog.BoundLogger:
    """Bind backend context consistently to a logger."""
    ctx: Dict[str, Any] = {"backend": username}
    if label:
        ctx["backend_label"] = label
    return logger.bind(**ctx)


__all__ = [
    "LogChannel",
    "configure_logging",
    "get_logger",
    "get_channel_logger",
    "get_stream_logger_safe",
    "get_snapshot_logger_safe",
    "get_audit_logger_safe",
    "get_error_logger_safe",
    "bind_backend_context",
]
