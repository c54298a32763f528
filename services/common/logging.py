"""Root logging setup with OpenTelemetry trace correlation."""

import logging
from typing import Literal

from opentelemetry import trace

from .config import ServiceSettings


_TRACE_PLACEHOLDER = "-"
_LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | trace_id=%(trace_id)s span_id=%(span_id)s | %(message)s"
)
# Client libraries that log every request/statement at INFO.
_CHATTY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite")


def _format_trace_id(value: int, length: int) -> str:
    return format(value, f"0{length}x")


class TraceContextFilter(logging.Filter):
    """Stamp each record with the current span's trace/span ids, or a placeholder."""

    def filter(self, record: logging.LogRecord) -> bool:
        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            record.trace_id = _format_trace_id(span_context.trace_id, 32)
            record.span_id = _format_trace_id(span_context.span_id, 16)
        else:
            record.trace_id = _TRACE_PLACEHOLDER
            record.span_id = _TRACE_PLACEHOLDER
        return True


def _install_filter(target: logging.Filterer, context_filter: TraceContextFilter) -> None:
    if not any(isinstance(f, TraceContextFilter) for f in target.filters):
        target.addFilter(context_filter)


def configure_logging(settings: ServiceSettings) -> None:
    """Configure root level, format and trace correlation; idempotent."""

    logging_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = settings.log_level
    logging.basicConfig(level=logging_level, format=_LOG_FORMAT)
    root_logger = logging.getLogger()
    root_logger.setLevel(logging_level)
    context_filter = TraceContextFilter()
    _install_filter(root_logger, context_filter)
    for handler in root_logger.handlers:
        _install_filter(handler, context_filter)

    library_level = logging.DEBUG if logging_level == "DEBUG" else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
