"""
Structured logging for the evaluation engine.

structlog on top of the standard library. Request-scoped values such as the
user and organization being evaluated are bound with ``log_context`` and
merged into every event logged inside it, so engine modules only pass the
details specific to each event.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.typing import EventDict, WrappedLogger

from space.platform.settings import Settings, get_settings


def add_app_context(settings: Settings) -> structlog.typing.Processor:
    """Processor stamping the application name and environment on events."""
    app = settings.app_name
    environment = settings.environment.value

    def processor(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("app", app)
        event_dict.setdefault("environment", environment)
        return event_dict

    return processor


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structlog and the root logger from ``observability`` settings."""
    settings = settings or get_settings()
    logging.basicConfig(format="%(message)s", level=settings.observability.log_level.value)

    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_app_context(settings),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.observability.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=not settings.is_testing,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """Bind ``values`` to every event logged in this block.

    ``None`` values are skipped. Bindings are restored on exit, including
    when the block raises.
    """
    with structlog.contextvars.bound_contextvars(
        **{key: value for key, value in values.items() if value is not None}
    ):
        yield


setup_logging()
