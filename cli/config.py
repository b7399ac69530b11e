"""Configuration management for the CLI tool."""

from pydantic import BaseModel, Field

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant running on Cerebras hardware."


class CLIConfig(BaseModel):
    """CLI configuration settings."""

    host: str = Field(
        default="localhost",
        description="Server host",
    )
    port: int = Field(
        default=8000,
        description="Server port",
    )
    api_path: str = Field(
        default="/api",
        description="API path for the relay endpoint",
    )
    timeout: float = Field(
        default=300.0,
        description="HTTP timeout in seconds for one streamed turn",
    )
    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        description="System message sent at the head of every request",
    )

    @property
    def base_url(self) -> str:
        """Get the base URL for the API."""
        return f"http://{self.host}:{self.port}"

    @property
    def chat_url(self) -> str:
        """Get the full URL for the relay endpoint."""
        return f"{self.base_url}{self.api_path}"

    @property
    def models_url(self) -> str:
        return f"{self.chat_url.rstrip('/')}/models"
