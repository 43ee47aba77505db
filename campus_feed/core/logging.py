"""Structlog configuration.

structlog events and plain stdlib records (uvicorn, libraries) go through the
same processor chain and end up on:
- stdout, colored in development or JSON when ``log_format="json"``
- optionally ``{app_name}.log`` and ``{app_name}.error.log`` under
  ``log_dir``, rotated by size and always JSON
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor


if TYPE_CHECKING:
    from campus_feed.config.settings import Settings

from campus_feed.core.context import get_context


SENSITIVE_KEYS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "credentials",
        "publishable_key",
        "service_role",
    }
)

# Values longer than this keep their first and last two characters
_MIN_MASK_LENGTH = 4

QUIET_LOGGERS = ("uvicorn.access", "uvicorn.error", "httpx")


def add_context_processor(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Attach request_id, viewer_id and trace IDs of the current request."""
    event_dict.update(get_context())
    return event_dict


def add_app_info_processor(settings: "Settings") -> Processor:
    """Processor stamping every event with the service name and environment."""
    app_info = {"app": settings.app_name, "environment": settings.environment}

    def processor(
        logger: logging.Logger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        for key, value in app_info.items():
            event_dict.setdefault(key, value)
        return event_dict

    return processor


def _mask(key: str, value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _mask(k, v) for k, v in value.items()}
    if not isinstance(value, str):
        return value
    if not any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
        return value
    if len(value) <= _MIN_MASK_LENGTH:
        return "***"
    return f"{value[:2]}{'*' * (len(value) - _MIN_MASK_LENGTH)}{value[-2:]}"


def filter_sensitive_data(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask backend keys and tokens, including inside nested dicts."""
    return {key: _mask(key, value) for key, value in event_dict.items()}


def build_shared_processors(
    settings: "Settings", include_caller_info: bool | None = None
) -> list[Processor]:
    """Chain run for structlog events and, as pre-chain, for stdlib records."""
    if include_caller_info is None:
        include_caller_info = settings.log_include_caller_info

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        add_app_info_processor(settings),
        filter_sensitive_data,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if include_caller_info:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            )
        )
    return processors


def setup_file_handler(
    log_path: Path, max_bytes: int, backup_count: int, level: str
) -> RotatingFileHandler:
    """Size-rotated file handler; the parent directory is created if missing."""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(log_path),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level.upper())
    return handler


def configure_structlog(
    settings: "Settings", log_dir: Path | str | None = None
) -> None:
    """Install handlers on the root logger and configure structlog.

    Args:
        settings: Application settings.
        log_dir: Overrides ``settings.log_dir`` for the log files.
    """
    shared = build_shared_processors(settings)

    def formatter(renderer: Processor) -> structlog.stdlib.ProcessorFormatter:
        return structlog.stdlib.ProcessorFormatter(
            processor=renderer, foreign_pre_chain=shared
        )

    if settings.log_format == "json":
        console_renderer: Processor = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(
            colors=True, exception_formatter=structlog.dev.plain_traceback
        )

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter(console_renderer))
    handlers: list[logging.Handler] = [console]

    if settings.log_file_enabled:
        directory = Path(log_dir or settings.log_dir)
        for suffix, level in ((".log", settings.log_level), (".error.log", "ERROR")):
            file_handler = setup_file_handler(
                directory / f"{settings.app_name}{suffix}",
                max_bytes=settings.log_file_max_bytes,
                backup_count=settings.log_file_backup_count,
                level=level,
            )
            file_handler.setFormatter(formatter(structlog.processors.JSONRenderer()))
            handlers.append(file_handler)

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
        old.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(settings.log_level)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)
