"""Structured logging bootstrap.

Configures the root logger so every ``logging.getLogger(__name__)`` call
in the library emits either:

* **JSON lines** (``json_output=True``): machine-parseable.
* **Human-readable** (``json_output=False``, default): coloured,
  timestamp-prefixed lines for interactive use.

Records go to stderr so the CLI can stream generated text on stdout, and
llama.cpp's native logging is held at WARNING unless running at DEBUG.
When a host has OpenTelemetry tracing active the current ``trace_id`` and
``span_id`` are injected into every log record.
"""

from __future__ import annotations

import logging
import sys

from opentelemetry import trace

from chatloop.configs.system import LoggingConfig


class _TraceContextFilter(logging.Filter):
    """Injects OTEL trace/span IDs into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        span = trace.get_current_span()
        ctx = span.get_span_context()
        if ctx and ctx.is_valid:
            record.trace_id = format(ctx.trace_id, "032x")  # type: ignore[attr-defined]
            record.span_id = format(ctx.span_id, "016x")  # type: ignore[attr-defined]
        else:
            record.trace_id = ""  # type: ignore[attr-defined]
            record.span_id = ""  # type: ignore[attr-defined]
        return True


_DEV_FORMAT = "%(levelprefix)s %(asctime)s %(name)s  %(message)s"
_DEV_DATEFMT = "%H:%M:%S"

# llama.cpp forwards its native load and KV-cache chatter here.
LLAMA_CPP_LOGGER = "llama-cpp-python"


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the root logger (call once at startup)."""
    if config is None:
        config = LoggingConfig()

    level = config.level.upper()
    root = logging.getLogger()
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(_TraceContextFilter())

    if config.json_output:
        from pythonjsonlogger.json import JsonFormatter

        formatter: logging.Formatter = JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s "
            "%(trace_id)s %(span_id)s",
            rename_fields={
                "asctime": "timestamp",
                "levelname": "level",
                "name": "logger",
            },
            defaults={"trace_id": "", "span_id": ""},
        )
    else:
        from uvicorn.logging import DefaultFormatter

        formatter = DefaultFormatter(
            fmt=_DEV_FORMAT,
            datefmt=_DEV_DATEFMT,
            use_colors=sys.stderr.isatty(),
        )

    handler.setFormatter(formatter)

    root.handlers = [handler]

    logging.getLogger("opentelemetry").setLevel(logging.WARNING)
    # Native llama.cpp output only at DEBUG.
    logging.getLogger(LLAMA_CPP_LOGGER).setLevel(
        logging.DEBUG if root.level <= logging.DEBUG else logging.WARNING
    )
