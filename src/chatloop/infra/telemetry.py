"""OpenTelemetry tracing helpers.

The library only creates spans; it never installs a ``TracerProvider``.
Without a host-configured provider every span is a no-op, so the
generation loop pays nothing when tracing is off.

Usage::

    from chatloop.infra.telemetry import SPAN_DECODE, tracer

    with tracer.start_as_current_span(SPAN_DECODE) as span:
        span.set_attribute(ATTR_BATCH_TOKENS, n)
"""

from __future__ import annotations

from opentelemetry import trace

tracer = trace.get_tracer("chatloop")

# ---------------------------------------------------------------------------
# Span names
# ---------------------------------------------------------------------------

SPAN_PROMPT_SUBMIT = "session.prompt_submit"
SPAN_DECODE = "engine.decode"
SPAN_MODEL_LOAD = "engine.model_load"

# ---------------------------------------------------------------------------
# Span attribute keys
# ---------------------------------------------------------------------------

ATTR_PROMPT_TOKENS = "session.prompt_tokens"
ATTR_HISTORY_MESSAGES = "session.history_messages"
ATTR_CONTEXT_USED = "session.context_used"
ATTR_CONTEXT_CAPACITY = "session.context_capacity"

ATTR_BATCH_TOKENS = "engine.batch_tokens"
ATTR_MODEL_PATH = "engine.model_path"
