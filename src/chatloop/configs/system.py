from pathlib import Path

from pydantic import BaseModel, Field

# llama.cpp picks a random seed when handed LLAMA_DEFAULT_SEED.
DEFAULT_SEED = 0xFFFFFFFF


class EngineConfig(BaseModel):
    """Model and context settings for the inference engine."""

    model_path: Path = Field(
        default=Path("models/model.gguf"),
        description="Path to the GGUF model file",
    )
    context_size: int = Field(
        default=2048,
        ge=8,
        description="Fixed context window (token positions) for the session",
    )
    n_gpu_layers: int = Field(
        default=0, ge=0, description="Number of layers offloaded to the GPU"
    )


class SamplingConfig(BaseModel):
    """Sampler chain settings: min-p filter -> temperature -> draw."""

    min_p: float = Field(
        default=0.05, ge=0.0, le=1.0, description="Min-p probability cutoff"
    )
    min_keep: int = Field(
        default=1, ge=1, description="Candidates always kept by the min-p filter"
    )
    temperature: float = Field(
        default=0.8, ge=0.0, description="Sampling temperature"
    )
    seed: int = Field(
        default=DEFAULT_SEED, ge=0, description="Seed for the final distribution draw"
    )


class ChatConfig(BaseModel):
    """Configuration for chat settings."""

    system_prompt: str | None = Field(
        default=None, description="Optional system message seeded into history"
    )
    max_response_pieces: int | None = Field(
        default=None,
        ge=1,
        description="Hard cap on generated pieces per reply (host-side)",
    )


class LoggingConfig(BaseModel):
    """Root logger settings."""

    level: str = Field(default="INFO", description="Root log level")
    json_output: bool = Field(
        default=False, description="Emit JSON lines instead of coloured text"
    )
