"""Prometheus metrics for the generation loop.

All metrics use the ``chatloop_`` prefix and live in the default
registry; a host exposes them however it likes (``start_http_server``,
its own ``/metrics`` route, ...).
"""

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# Completion metrics
# ---------------------------------------------------------------------------

COMPLETIONS_TOTAL = Counter(
    "chatloop_completions_total",
    "Total completions finished, by stop reason",
    ["reason"],  # end_of_generation | context_exhausted | cancelled | length
)

PROMPT_TOKENS = Histogram(
    "chatloop_prompt_tokens",
    "Number of tokens submitted per prompt batch",
    buckets=(16, 64, 128, 256, 512, 1024, 2048, 4096, 8192),
)

GENERATED_TOKENS_TOTAL = Counter(
    "chatloop_generated_tokens_total",
    "Total tokens sampled and emitted as pieces",
)

# ---------------------------------------------------------------------------
# Engine metrics
# ---------------------------------------------------------------------------

DECODE_LATENCY_SECONDS = Histogram(
    "chatloop_decode_latency_seconds",
    "Latency of a single batch decode",
    ["kind"],  # "prompt" | "step"
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)

DECODE_FAILURES_TOTAL = Counter(
    "chatloop_decode_failures_total",
    "Total batch decodes rejected by the engine",
)

# ---------------------------------------------------------------------------
# Resource gauges
# ---------------------------------------------------------------------------

CONTEXT_USED_TOKENS = Gauge(
    "chatloop_context_used_tokens",
    "Token positions currently occupied in the context window",
)

BATCHES_LIVE = Gauge(
    "chatloop_batches_live",
    "Native batches currently allocated and not yet freed",
)
