"""Inference engine contract.

``LlamaCppEngine`` lives in ``chatloop.engine.llama`` and is imported
on demand so the session layer works without the native library.
"""

from .base import (  # noqa: F401
    ContextInitError,
    DecodeError,
    EngineError,
    InferenceEngine,
    ModelLoadError,
)
