"""
Logging Configuration for SalesPulse

structlog on top of the stdlib root logger. Every event carries the
service name and environment; sync and report events also carry the
owner they run for (bound through contextvars by the request middleware
and the analytics routes). Customer names from POS uploads are masked before
rendering.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, MutableMapping, Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import add_log_level, ProcessorFormatter

from salespulse.config.settings import get_settings

# event keys that may hold member names taken from uploads
CUSTOMER_FIELDS = ("customer_name", "customer", "newest_members", "top_customers")

# database drivers log every statement at INFO
NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncpg")


def _mask(name: Any) -> Any:
    if not isinstance(name, str) or not name:
        return name
    return name[0] + "***"


def mask_customer_names(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Replace member names with their initial, e.g. 'Budi' -> 'B***'"""
    for field in CUSTOMER_FIELDS:
        if field not in event_dict:
            continue
        value = event_dict[field]
        if isinstance(value, (list, tuple)):
            event_dict[field] = [_mask(v) for v in value]
        else:
            event_dict[field] = _mask(value)
    return event_dict


class ServiceContext:
    """Processor adding service and env to every event"""

    def __init__(self, service: str, environment: str):
        self.service = service
        self.environment = environment

    def __call__(self, logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        event_dict.setdefault("service", self.service)
        event_dict.setdefault("env", self.environment)
        return event_dict


@contextmanager
def owner_context(owner_id: str, **extra: Any) -> Iterator[None]:
    """Bind owner_id (and any extra fields) to log events inside the block"""
    with structlog.contextvars.bound_contextvars(owner_id=owner_id, **extra):
        yield


def configure_logging(log_level: Optional[str] = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
    """
    settings = get_settings()
    level = log_level or settings.monitoring.log_level
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        ServiceContext(settings.app_name, settings.app_env),
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso"),
        mask_customer_names,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if settings.monitoring.log_format == "json":
        renderer = JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers = [handler]

    # uvicorn installs its own handlers; route them through ours
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.propagate = False
        uvicorn_logger.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    structlog.get_logger(__name__).info(
        "Logging configured",
        level=level,
        format=settings.monitoring.log_format,
    )
