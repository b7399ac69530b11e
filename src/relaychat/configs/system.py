from datetime import timedelta

from pydantic import BaseModel, Field


class UpstreamConfig(BaseModel):
    """Connection settings for the upstream completion provider."""

    base_url: str = Field(
        default="https://api.cerebras.ai/v1",
        description="OpenAI-compatible completion endpoint base URL",
    )
    timeout: timedelta = Field(
        default=timedelta(minutes=5),
        description="Read timeout for a single upstream request",
    )
    connect_timeout: timedelta = Field(
        default=timedelta(seconds=10),
        description="Connect timeout for the pooled HTTP client",
    )
    max_connections: int = Field(
        default=100, description="Size of the pooled upstream connection limit"
    )


class BudgetConfig(BaseModel):
    """Token budget applied to forwarded conversation history."""

    max_tokens: int = Field(
        default=8000, description="Total token budget for history plus response"
    )
    reserved_for_response: int = Field(
        default=2000, description="Tokens held back for the generated response"
    )


class ModelOverride(BaseModel):
    """Sampling parameters sent for one specific model."""

    max_completion_tokens: int | None = Field(default=None)
    temperature: float | None = Field(default=None)
    top_p: float | None = Field(default=None)


class ModelInfo(BaseModel):
    """A model offered to clients."""

    id: str = Field(description="Canonical model identifier")
    name: str = Field(description="Display name")


class ModelCatalogConfig(BaseModel):
    """Static model table: default, aliases and per-model overrides."""

    default_model: str = Field(
        default="llama-3.3-70b", description="Model used when none is supplied"
    )
    legacy_prefix: str = Field(
        default="cerebras/",
        description="Prefix of identifiers stored by older clients",
    )
    aliases: dict[str, str] = Field(
        default_factory=lambda: {"llama3.1-8b": "llama-3.1-8b"},
        description="Alternate identifier forms mapped to canonical ones",
    )
    overrides: dict[str, ModelOverride] = Field(
        default_factory=lambda: {
            "qwen-3-32b": ModelOverride(
                max_completion_tokens=10240, temperature=0.7, top_p=0.95
            )
        },
        description="Per-model sampling parameters; others use provider defaults",
    )
    available: list[ModelInfo] = Field(
        default_factory=lambda: [
            ModelInfo(id="llama-3.3-70b", name="LLAMA-3.3-70B"),
            ModelInfo(id="llama-3.1-8b", name="LLAMA-3.1-8B"),
            ModelInfo(
                id="llama-4-scout-17b-16e-instruct", name="LLAMA-4-SCOUT-17B"
            ),
            ModelInfo(id="qwen-3-32b", name="QWEN-3-32B"),
        ],
        description="Models offered by clients",
    )


class RelayConfig(BaseModel):
    """Behaviour of the streaming relay endpoint."""

    default_system_prompt: str = Field(
        default="You are a helpful assistant running on Cerebras hardware.",
        description="System message injected when a request carries none",
    )
    request_timeout: timedelta | None = Field(
        default=None,
        description="Wall-clock limit for one relayed stream (None = unlimited)",
    )


class ServerConfig(BaseModel):
    """HTTP server bind settings."""

    host: str = Field(default="0.0.0.0", description="API server host")
    port: int = Field(default=8000, description="API server port")


class LoggingConfig(BaseModel):
    """Root logger settings."""

    level: str = Field(default="INFO", description="Root log level")
    json_output: bool = Field(
        default=True, description="Emit JSON lines instead of coloured text"
    )


class TracingConfig(BaseModel):
    """OpenTelemetry tracing settings."""

    enabled: bool = Field(default=False, description="Enable OTLP export")
    endpoint: str = Field(default="", description="OTLP HTTP traces endpoint")
    username: str = Field(default="", description="Basic auth username")
    password: str = Field(default="", description="Basic auth password")
    service_name: str = Field(default="relaychat")
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    excluded_urls: list[str] = Field(
        default_factory=lambda: ["/health", "/metrics"],
        description="Paths excluded from HTTP instrumentation",
    )


class MetricsConfig(BaseModel):
    """Prometheus exposition settings."""

    enabled: bool = Field(default=True, description="Expose /metrics")
    endpoint: str = Field(default="/metrics")
