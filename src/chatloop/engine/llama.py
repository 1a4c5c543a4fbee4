"""llama.cpp engine backed by the low-level ``llama_cpp`` bindings.

Only the C API surface is used (no ``llama_cpp.Llama`` wrapper): the
session layer manages batches and positions itself, so the engine just
owns the model, context and sampler chain and forwards calls.
"""

from __future__ import annotations

import ctypes
import functools
import logging
from pathlib import Path
from typing import Any

import llama_cpp

from chatloop.configs.system import EngineConfig, SamplingConfig
from chatloop.infra.telemetry import ATTR_MODEL_PATH, SPAN_MODEL_LOAD, tracer

from .base import ContextInitError, DecodeError, InferenceEngine, ModelLoadError

logger = logging.getLogger(__name__)

_PIECE_BUFFER_SIZE = 32


@functools.cache
def _init_backend() -> None:
    """Initialise the llama.cpp backend once per process."""
    llama_cpp.llama_backend_init()


def context_params(engine: EngineConfig) -> Any:
    """Context parameters sized so one batch can fill the whole window.

    The session submits the full re-tokenized history as a single batch,
    so ``n_batch`` must match ``n_ctx`` rather than llama.cpp's default.
    """
    params = llama_cpp.llama_context_default_params()
    params.n_ctx = engine.context_size
    params.n_batch = engine.context_size
    params.no_perf = True
    return params


class LlamaCppEngine(InferenceEngine):
    """Owns a llama.cpp model, context and sampler chain."""

    def __init__(self, model: Any, ctx: Any, sampler: Any) -> None:
        self._model = model
        self._ctx = ctx
        self._sampler = sampler
        self._vocab = llama_cpp.llama_model_get_vocab(model)
        self._n_ctx = int(llama_cpp.llama_n_ctx(ctx))

    @classmethod
    def load(
        cls,
        engine: EngineConfig,
        sampling: SamplingConfig | None = None,
    ) -> "LlamaCppEngine":
        """Load the model, create its context and build the sampler chain.

        Raises ``ModelLoadError`` or ``ContextInitError``; nothing is
        leaked when either is raised.
        """
        if sampling is None:
            sampling = SamplingConfig()

        path = Path(engine.model_path)
        if not path.is_file():
            raise ModelLoadError(f"Model file not found: {path}")

        _init_backend()

        with tracer.start_as_current_span(SPAN_MODEL_LOAD) as span:
            span.set_attribute(ATTR_MODEL_PATH, str(path))

            model_params = llama_cpp.llama_model_default_params()
            model_params.n_gpu_layers = engine.n_gpu_layers
            model = llama_cpp.llama_model_load_from_file(
                str(path).encode("utf-8"), model_params
            )
            if not model:
                raise ModelLoadError(f"llama.cpp could not load model: {path}")

            ctx = llama_cpp.llama_init_from_model(model, context_params(engine))
            if not ctx:
                llama_cpp.llama_model_free(model)
                raise ContextInitError(
                    f"llama.cpp could not create a context of {engine.context_size} "
                    f"tokens for {path}"
                )

        chain_params = llama_cpp.llama_sampler_chain_default_params()
        chain_params.no_perf = True
        sampler = llama_cpp.llama_sampler_chain_init(chain_params)
        llama_cpp.llama_sampler_chain_add(
            sampler, llama_cpp.llama_sampler_init_min_p(sampling.min_p, sampling.min_keep)
        )
        llama_cpp.llama_sampler_chain_add(
            sampler, llama_cpp.llama_sampler_init_temp(sampling.temperature)
        )
        llama_cpp.llama_sampler_chain_add(
            sampler, llama_cpp.llama_sampler_init_dist(sampling.seed)
        )

        logger.info(
            "Loaded model %s (n_ctx=%d, min_p=%.3f, temperature=%.2f)",
            path,
            engine.context_size,
            sampling.min_p,
            sampling.temperature,
        )
        return cls(model, ctx, sampler)

    # ------------------------------------------------------------------
    # InferenceEngine
    # ------------------------------------------------------------------

    @property
    def context_size(self) -> int:
        return self._n_ctx

    def tokenize(self, text: str) -> list[int]:
        data = text.encode("utf-8")
        n_max = len(data) + 1
        tokens = (llama_cpp.llama_token * n_max)()
        n = llama_cpp.llama_tokenize(
            self._vocab, data, len(data), tokens, n_max, False, True
        )
        if n < 0:
            # Negative result is the required buffer size.
            n_max = -n
            tokens = (llama_cpp.llama_token * n_max)()
            n = llama_cpp.llama_tokenize(
                self._vocab, data, len(data), tokens, n_max, False, True
            )
        return list(tokens[:n])

    def batch_init(self, n_tokens: int) -> Any:
        return llama_cpp.llama_batch_init(n_tokens, 0, 1)

    def batch_free(self, batch: Any) -> None:
        llama_cpp.llama_batch_free(batch)

    def decode(self, batch: Any) -> None:
        code = llama_cpp.llama_decode(self._ctx, batch)
        if code < 0:
            raise DecodeError(f"llama_decode() failed with code {code}", code=code)
        if code > 0:
            logger.warning("llama_decode() returned %d (no KV slot for batch)", code)

    def sample(self) -> int:
        return int(llama_cpp.llama_sampler_sample(self._sampler, self._ctx, -1))

    def is_end_of_generation(self, token: int) -> bool:
        return bool(llama_cpp.llama_vocab_is_eog(self._vocab, token))

    def token_to_piece(self, token: int) -> bytes:
        buf = ctypes.create_string_buffer(_PIECE_BUFFER_SIZE)
        n = llama_cpp.llama_token_to_piece(self._vocab, token, buf, len(buf), 0, True)
        if n < 0:
            buf = ctypes.create_string_buffer(-n)
            n = llama_cpp.llama_token_to_piece(
                self._vocab, token, buf, len(buf), 0, True
            )
        return buf.raw[:n]

    def close(self) -> None:
        if self._sampler is not None:
            llama_cpp.llama_sampler_free(self._sampler)
            self._sampler = None
        if self._ctx is not None:
            llama_cpp.llama_free(self._ctx)
            self._ctx = None
        if self._model is not None:
            llama_cpp.llama_model_free(self._model)
            self._model = None
