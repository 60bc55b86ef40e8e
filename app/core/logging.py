"""Logging configuration module."""

from logging import (
    CRITICAL,
    DEBUG,
    ERROR,
    INFO,
    WARNING,
    Handler,
    Logger,
    StreamHandler,
    getLogger,
)
from typing import cast

import structlog
from structlog import contextvars, dev, processors, stdlib
from structlog.processors import JSONRenderer, TimeStamper, dict_tracebacks
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor, WrappedLogger

# Define log levels
LOG_LEVELS: dict[str, int] = {
    "debug": DEBUG,
    "info": INFO,
    "warning": WARNING,
    "error": ERROR,
    "critical": CRITICAL,
}

# Largest integer a JSON consumer using doubles reads back exactly
MAX_SAFE_INTEGER = 2**53 - 1


def stringify_large_ints(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Render integers outside the double-safe range as strings.

    Token amounts are 18-decimal integers; a JSON log consumer would
    otherwise round them.
    """
    for key, value in event_dict.items():
        if (
            isinstance(value, int)
            and not isinstance(value, bool)
            and abs(value) > MAX_SAFE_INTEGER
        ):
            event_dict[key] = str(value)
    return event_dict


def add_service_context(service: str, version: str) -> Processor:
    """Create processor that stamps the service name and version on events.

    Args:
        service: Service name
        version: Service version

    Returns:
        Processor adding ``service`` and ``version`` unless already bound
    """

    def processor(
        logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict.setdefault("service", service)
        event_dict.setdefault("version", version)
        return event_dict

    return processor


def configure_logging(
    testing: bool = False,
    level: str = "info",
    json_logs: bool = True,
    service: str | None = None,
    version: str = "unknown",
) -> None:
    """Configure structured logging for the application.

    Args:
        testing: Whether the application is running in test mode
        level: Log level name (debug, info, warning, error, critical)
        json_logs: Render JSON lines instead of key/value pairs
        service: Service name stamped on every event, omitted if None
        version: Service version stamped alongside the name
    """
    log_level = LOG_LEVELS.get(level.lower(), INFO)
    render_json = json_logs and not testing

    # Configure root logger
    root_logger: Logger = getLogger()
    root_logger.setLevel(log_level)

    # Create and configure app logger
    app_logger: Logger = getLogger("app")
    app_logger.setLevel(log_level)

    # Create handler
    handler: Handler = StreamHandler()
    handler.setLevel(log_level)

    # Define shared processors
    shared_processors: list[Processor] = [
        contextvars.merge_contextvars,
        stdlib.add_logger_name,
        stdlib.add_log_level,
        stdlib.PositionalArgumentsFormatter(),
        TimeStamper(fmt="iso", utc=True),
        dict_tracebacks,
    ]
    if service:
        shared_processors.append(add_service_context(service, version))
    if render_json:
        shared_processors.append(stringify_large_ints)

    # Configure structlog
    structlog.configure(
        processors=[
            stdlib.filter_by_level,
            *shared_processors,
            processors.format_exc_info,
            JSONRenderer() if render_json else processors.KeyValueRenderer(),
        ],
        context_class=dict,
        logger_factory=stdlib.LoggerFactory(),
        wrapper_class=stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure handler formatter for records from stdlib loggers
    # (uvicorn, sqlalchemy, httpx)
    formatter = stdlib.ProcessorFormatter(
        processor=JSONRenderer() if render_json else dev.ConsoleRenderer(),
        foreign_pre_chain=shared_processors,
    )
    handler.setFormatter(formatter)

    # Clear existing handlers to prevent duplicates
    root_logger.handlers = []
    app_logger.handlers = []

    root_logger.addHandler(handler)
    app_logger.propagate = False
    app_logger.addHandler(handler)


def get_logger() -> BoundLogger:
    """Get a configured logger instance.

    Returns:
        A structured logger instance.
    """
    return cast(BoundLogger, structlog.get_logger())


def get_request_logger(request_id: str | None = None) -> BoundLogger:
    """Get a logger with request context.

    Args:
        request_id: Optional request ID to bind to logger

    Returns:
        Configured logger with request context
    """
    logger: BoundLogger = get_logger()
    if request_id:
        logger = logger.bind(request_id=request_id)
    return logger
