"""Model resolution and per-model completion parameters.

The catalog is data (``ModelCatalogConfig``): supporting a new model or
changing its sampling parameters is a config change, not a code change.
"""

from typing import Any

from relaychat.configs.system import ModelCatalogConfig

from .messages import ChatMessage


class ModelCatalog:
    """Lookup table over ``ModelCatalogConfig``."""

    def __init__(self, config: ModelCatalogConfig | None = None) -> None:
        self.config = config or ModelCatalogConfig()

    @property
    def default_model(self) -> str:
        return self.config.default_model

    def is_known(self, model: str) -> bool:
        return any(info.id == model for info in self.config.available)

    def resolve_model(self, model: str | None) -> str:
        """Return the canonical identifier for *model* (default when empty)."""
        if not model:
            return self.config.default_model
        return self.config.aliases.get(model, model)

    def normalize_stored_model(self, stored: str | None) -> str:
        """Migrate an identifier persisted by an older client.

        ``"cerebras/llama-3.3-70b"`` becomes ``"llama-3.3-70b"``.  A
        legacy value that does not name an offered model falls back to
        the default.
        """
        if not stored:
            return self.config.default_model
        prefix = self.config.legacy_prefix
        if not stored.startswith(prefix):
            return self.resolve_model(stored)
        model = self.resolve_model(stored[len(prefix) :])
        return model if self.is_known(model) else self.config.default_model

    def sampling_overrides(self, model: str) -> dict[str, Any]:
        override = self.config.overrides.get(model)
        if override is None:
            return {}
        return override.model_dump(exclude_none=True)

    def completion_params(
        self, model: str | None, messages: list[ChatMessage]
    ) -> dict[str, Any]:
        """Build the keyword arguments for one streaming completion call."""
        resolved = self.resolve_model(model)
        return {
            "model": resolved,
            "messages": [m.model_dump() for m in messages],
            "stream": True,
            **self.sampling_overrides(resolved),
        }
