"""Structured logging for the aggregation pipeline."""

import json
import logging
import sys
import time
from typing import Any

import structlog
from structlog import processors, stdlib

from .config import get_settings

# Libraries whose INFO output drowns the pipeline's own events
NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")


def setup_logging(log_level: str | None = None, json_logging: bool | None = None) -> None:
    """Configure structlog on top of stdlib logging, writing to stderr.

    Args:
        log_level: Log level name, defaults to ``Settings.log_level``
        json_logging: JSON lines when true, plain console lines otherwise
    """
    settings = get_settings()
    log_level = (log_level or settings.log_level).upper()
    json_logging = settings.json_logging if json_logging is None else json_logging
    level = getattr(logging, log_level)

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    logging.getLogger().setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors_list = [
        stdlib.filter_by_level,
        stdlib.add_logger_name,
        stdlib.add_log_level,
        stdlib.PositionalArgumentsFormatter(),
        processors.TimeStamper(fmt="iso"),
        processors.StackInfoRenderer(),
        processors.format_exc_info,
    ]
    if json_logging:
        processors_list.append(processors.JSONRenderer(serializer=json.dumps))
    else:
        processors_list.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors_list,
        wrapper_class=stdlib.BoundLogger,
        logger_factory=stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_source_request(
    source: str,
    url: str,
    status_code: int | None = None,
    response_time: float | None = None,
    **kwargs: Any
) -> dict[str, Any]:
    """Build the log entry for one HTTP request made by a source adapter."""
    log_data = {
        "event": "source_request",
        "source": source,
        "url": url,
        **kwargs
    }
    if status_code is not None:
        log_data["status_code"] = status_code
    if response_time is not None:
        log_data["response_time"] = round(response_time, 3)
    return log_data


def log_processing_stage(
    stage: str,
    input_count: int,
    output_count: int,
    duration: float | None = None,
    **kwargs: Any
) -> dict[str, Any]:
    """Build the log entry for a pipeline stage.

    Args:
        stage: Stage name (enrichment, deduplication, ...)
        input_count: Items (or sources) going in
        output_count: Items (or clusters) coming out
        duration: Stage duration in seconds
        **kwargs: Stage specific counters

    Returns:
        Structured log data
    """
    log_data = {
        "event": "processing_stage",
        "stage": stage,
        "input_count": input_count,
        "output_count": output_count,
        **kwargs
    }
    if duration is not None:
        log_data["duration"] = duration
    return log_data


def log_error(
    error: BaseException,
    context: str | None = None,
    **kwargs: Any
) -> dict[str, Any]:
    """Build the log entry for a recovered error.

    Source and item identifiers carried by aggregator errors are copied
    into the entry unless the caller passes them explicitly.
    """
    log_data = {
        "event": "error",
        "error_type": error.__class__.__name__,
        "error_message": str(error),
    }
    for attribute in ("source", "item_id"):
        value = getattr(error, attribute, None)
        if value is not None:
            log_data[attribute] = value
    log_data.update(kwargs)

    if context:
        log_data["context"] = context
    return log_data


class PerformanceLogger:
    """Context manager timing an operation; ``duration`` is set on exit."""

    def __init__(self, operation: str, logger: structlog.stdlib.BoundLogger, **context: Any):
        self.operation = operation
        self.logger = logger
        self.context = context
        self.start_time: float | None = None
        self.duration: float | None = None

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.perf_counter()
        self.logger.debug("operation_started", operation=self.operation, **self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is None:
            return
        self.duration = time.perf_counter() - self.start_time
        if exc_type is None:
            self.logger.info(
                "operation_completed",
                operation=self.operation,
                duration=self.duration,
                **self.context
            )
        elif issubclass(exc_type, Exception):
            self.logger.error(
                "operation_failed",
                operation=self.operation,
                duration=self.duration,
                error_type=exc_type.__name__,
                error_message=str(exc_val) if exc_val else None,
                **self.context
            )
        else:
            self.logger.info(
                "operation_cancelled",
                operation=self.operation,
                duration=self.duration,
                **self.context
            )


# Initialize logging on module import
setup_logging()
