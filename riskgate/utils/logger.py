"""Structured logging utilities for RiskGate.

Logs are structlog events rendered as JSON (or a coloured console in
development). Every line emitted while a request is in flight carries that
request's ``request_id``, ``method`` and ``path`` through structlog's
contextvars, so a single risk analysis can be followed across the
aggregator, scorer, proof service and payment gate.

Payment headers and key material are never written out: ``redact_secrets``
masks them whatever call site passed them in.
"""

import logging
import sys
import time
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

SERVICE_NAME = "riskgate"

# Event keys whose values are bearer credentials or signing keys.
SENSITIVE_KEYS = frozenset({
    "authorization",
    "payment_header",
    "private_key",
    "signer_key",
    "x_payment",
})
REDACTED = "[redacted]"


def redact_secrets(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask the value of any sensitive key, keeping only its length."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        value = event_dict[key]
        if value:
            event_dict[key] = f"{REDACTED} ({len(str(value))} chars)"
    return event_dict


def _add_service(service: str) -> Processor:
    def add_service(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return add_service


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True,
    service: str = SERVICE_NAME,
) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format. If False, use console format.
        service: Value of the ``service`` field stamped on every line.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_service(service),
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.add_log_level,
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = SERVICE_NAME) -> structlog.stdlib.BoundLogger:
    """Get a logger named after the calling module."""
    return structlog.get_logger(name)


def bind_request_context(request_id: str, method: Optional[str] = None, path: Optional[str] = None) -> None:
    """Attach request identity to every log line until ``clear_request_context``."""
    context: dict[str, Any] = {"request_id": request_id}
    if method:
        context["method"] = method
    if path:
        context["path"] = path
    structlog.contextvars.bind_contextvars(**context)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


class PerformanceLogger:
    """Context manager for timing an upstream fetch or pipeline stage.

    Durations above ``slow_ms`` are logged at WARNING, the rest at DEBUG.
    A stage that raises is logged as ``<operation>_failed`` and the exception
    propagates unchanged.
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        slow_ms: float = 2000.0,
        **context: Any,
    ):
        self.operation = operation
        self.logger = logger or get_logger()
        self.slow_ms = slow_ms
        self.context = context
        self.start_time: float = 0
        self.end_time: float = 0

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.end_time = time.perf_counter()
        duration_ms = round((self.end_time - self.start_time) * 1000, 3)

        if exc_type is not None:
            self.logger.warning(
                f"{self.operation}_failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error=str(exc_val),
                error_type=exc_type.__name__,
                **self.context,
            )
            return

        log_method = self.logger.warning if duration_ms > self.slow_ms else self.logger.debug
        log_method(
            f"{self.operation}_slow" if duration_ms > self.slow_ms else f"{self.operation}_completed",
            operation=self.operation,
            duration_ms=duration_ms,
            **self.context,
        )

    @property
    def duration_ms(self) -> float:
        if self.end_time == 0:
            return (time.perf_counter() - self.start_time) * 1000
        return (self.end_time - self.start_time) * 1000


# Sensible defaults until main.py reconfigures from the environment.
configure_logging()
