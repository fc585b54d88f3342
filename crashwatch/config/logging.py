"""
Crashwatch Logging Configuration

JSON or console log output, an evaluation id for correlating the lines
of one evaluation, timing of engine calls, and ``ctx_`` structured fields.
"""

import json
import logging
import os
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, TypeVar

CONTEXT_PREFIX = "ctx_"

# Evaluation id shared by every log line of one evaluation
evaluation_id_var: ContextVar[Optional[str]] = ContextVar("evaluation_id", default=None)


# =============================================================================
# Log Level Strategy
# =============================================================================
#
# DEBUG    - Per-evaluation detail
#            - Composite score and indicator subset used
#            - Indicators absent from the input
#
# INFO     - Risk model loaded, engine constructed
#
# WARNING  - Input problems absorbed by the engine
#            - Malformed readings (non-finite, impossible, bad thresholds)
#            - Duplicate readings for one indicator
#            - Evaluations with no usable indicators
#            - Evaluations slower than their threshold
#
# ERROR    - Failures surfaced to the caller (CLI input errors)
#
# CRITICAL - Configuration errors that stop start-up
# =============================================================================


def _context_fields(record: logging.LogRecord) -> Iterator[Tuple[str, Any]]:
    """Structured ``ctx_`` fields attached to a record, prefix stripped."""
    for key, value in record.__dict__.items():
        if key.startswith(CONTEXT_PREFIX):
            yield key[len(CONTEXT_PREFIX):], value


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line, for log shippers.

    Empty fields are dropped. ``ctx_`` fields are merged in at the top
    level, so ``log_with_context(logger, INFO, "...", score=42.0)`` yields
    ``"score": 42.0``.
    """

    def __init__(self, service_name: str = "crashwatch", environment: str = "development"):
        super().__init__()
        self.service_name = service_name
        self.environment = environment
        self.hostname = os.uname().nodename if hasattr(os, "uname") else None

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "environment": self.environment,
            "hostname": self.hostname,
            "logger": record.name,
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
            "message": record.getMessage(),
            "evaluation_id": evaluation_id_var.get(),
        }
        payload.update(_context_fields(record))

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps({k: v for k, v in payload.items() if v is not None}, default=str)


class ConsoleFormatter(logging.Formatter):
    """Coloured single-line output for terminals."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        when = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        color = self.COLORS.get(record.levelname, "")
        evaluation_id = evaluation_id_var.get()

        parts = [when, f"{color}{record.levelname:<8}{self.RESET}"]
        if evaluation_id:
            parts.append(f"[{evaluation_id[:8]}]")
        parts.append(f"{record.name}: {record.getMessage()}")
        line = " ".join(parts)

        fields = [f"{key}={value}" for key, value in _context_fields(record)]
        if fields:
            line = f"{line} | {' '.join(fields)}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    service_name: str = "crashwatch",
    environment: str = "development",
    log_file: Optional[str] = None,
) -> None:
    """
    Configure the root logger for Crashwatch.

    Output goes to stderr so that CLI results on stdout stay parseable.

    Args:
        level: Root log level name, any case
        json_format: Emit JSON lines instead of console format
        service_name: Service name for JSON lines
        environment: Environment name for JSON lines
        log_file: Also append JSON lines to this file
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers.clear()

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(
        StructuredFormatter(service_name, environment) if json_format else ConsoleFormatter()
    )
    root.addHandler(stream)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(StructuredFormatter(service_name, environment))
        root.addHandler(file_handler)


# =============================================================================
# Evaluation Context
# =============================================================================


def set_evaluation_context(evaluation_id: Optional[str] = None) -> str:
    """Tag subsequent log lines with an evaluation id, generating one if needed."""
    evaluation_id = evaluation_id or uuid.uuid4().hex
    evaluation_id_var.set(evaluation_id)
    return evaluation_id


def clear_evaluation_context() -> None:
    evaluation_id_var.set(None)


def get_evaluation_id() -> Optional[str]:
    return evaluation_id_var.get()


# =============================================================================
# Timing
# =============================================================================

T = TypeVar("T")


def log_performance(threshold_ms: float = 50.0) -> Callable:
    """
    Time each call of the decorated function.

    Calls over ``threshold_ms`` log a warning, others a debug line. A
    raising call is logged at ERROR and the exception propagates.

    Example:
        @log_performance(threshold_ms=50.0)
        def evaluate(self, readings):
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        logger = logging.getLogger(func.__module__)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed_ms = (time.perf_counter() - start) * 1000
                logger.error(
                    "%s failed after %.2fms: %s",
                    func.__name__,
                    elapsed_ms,
                    e,
                    exc_info=True,
                    extra={
                        "ctx_function": func.__name__,
                        "ctx_duration_ms": round(elapsed_ms, 2),
                        "ctx_status": "error",
                        "ctx_error_type": type(e).__name__,
                    },
                )
                raise

            elapsed_ms = (time.perf_counter() - start) * 1000
            slow = elapsed_ms > threshold_ms
            logger.log(
                logging.WARNING if slow else logging.DEBUG,
                "%s %s in %.2fms",
                func.__name__,
                "was slow" if slow else "completed",
                elapsed_ms,
                extra={
                    "ctx_function": func.__name__,
                    "ctx_duration_ms": round(elapsed_ms, 2),
                    "ctx_status": "success",
                },
            )
            return result

        return wrapper

    return decorator


# =============================================================================
# Structured Fields
# =============================================================================


class LogContext:
    """
    Attach structured fields to every record created inside a block.

    Example:
        with LogContext(logger, source="readings.json"):
            engine.evaluate_mapping(data)
    """

    def __init__(self, logger: logging.Logger, **fields: Any):
        self.logger = logger
        self.fields = {f"{CONTEXT_PREFIX}{k}": v for k, v in fields.items()}
        self._previous_factory: Optional[Callable[..., logging.LogRecord]] = None

    def __enter__(self) -> "LogContext":
        previous = logging.getLogRecordFactory()
        fields = self.fields

        def factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
            record = previous(*args, **kwargs)
            record.__dict__.update(fields)
            return record

        self._previous_factory = previous
        logging.setLogRecordFactory(factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._previous_factory is not None:
            logging.setLogRecordFactory(self._previous_factory)


def log_with_context(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Log ``message`` with ``context`` attached as ``ctx_`` fields."""
    logger.log(level, message, extra={f"{CONTEXT_PREFIX}{k}": v for k, v in context.items()})
