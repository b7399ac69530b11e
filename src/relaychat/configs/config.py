"""Configuration management using pydantic-settings.

``get_app_config()`` builds a fresh ``AppConfig`` on every call, so an
edited override file takes effect on the next request.

Sources, highest priority first:

1. Override YAML (path from ``RELAYCHAT_CONFIGMAP_FILE``)
2. Environment variables (``RELAYCHAT_`` prefix, ``__`` nesting)
3. ``.env`` dotenv file
4. Static YAML (``configs/config.yaml``)
5. Model catalog YAML (``configs/models.yaml``, the ``models`` section)
6. Init arguments / field defaults
7. File secrets
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from .system import (
    BudgetConfig,
    LoggingConfig,
    MetricsConfig,
    ModelCatalogConfig,
    RelayConfig,
    ServerConfig,
    TracingConfig,
    UpstreamConfig,
)

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[3]
CONFIG_DIR = PROJECT_ROOT / "configs"

STATIC_CONFIG_FILE = CONFIG_DIR / "config.yaml"
MODEL_CATALOG_FILE = CONFIG_DIR / "models.yaml"
DOTENV_FILE_PATH = PROJECT_ROOT / ".env"

CONFIGMAP_ENV_VAR = "RELAYCHAT_CONFIGMAP_FILE"
ENV_DELIMITER = "__"
ENV_PREFIX = "RELAYCHAT_"
DEFAULT_ENCODING = "utf-8"


def configmap_file() -> Optional[Path]:
    """Override file named by the environment, if it exists."""
    value = os.environ.get(CONFIGMAP_ENV_VAR)
    if not value:
        return None
    path = Path(value)
    return path if path.is_file() else None


class _ModelCatalogYamlSource(PydanticBaseSettingsSource):
    """Load the ``models`` section from its own YAML file.

    The file holds the body of ``ModelCatalogConfig`` at top level
    (``default_model``, ``aliases``, ``overrides``, ``available``).
    """

    def __init__(self, settings_cls: type[BaseSettings], path: Path) -> None:
        super().__init__(settings_cls)
        self.path = path

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        if not self.path.is_file():
            return {}
        try:
            data = yaml.safe_load(self.path.read_text(encoding=DEFAULT_ENCODING))
        except yaml.YAMLError as e:
            logger.warning("Ignoring unreadable model catalog %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {"models": data}


class AppConfig(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=DOTENV_FILE_PATH,
        env_file_encoding=DEFAULT_ENCODING,
        env_nested_delimiter=ENV_DELIMITER,
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
        yaml_file=STATIC_CONFIG_FILE,
        yaml_file_encoding=DEFAULT_ENCODING,
    )

    upstream: UpstreamConfig = Field(
        default_factory=UpstreamConfig,
        description="Upstream completion provider settings",
    )

    budget: BudgetConfig = Field(
        default_factory=BudgetConfig,
        description="History token budget",
    )

    models: ModelCatalogConfig = Field(
        default_factory=ModelCatalogConfig,
        description="Model table: default, aliases, overrides",
    )

    relay: RelayConfig = Field(
        default_factory=RelayConfig,
        description="Relay endpoint behaviour",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    tracing: TracingConfig = Field(default_factory=TracingConfig)

    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = []

        override = configmap_file()
        if override is not None:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=override))

        sources += [
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            _ModelCatalogYamlSource(settings_cls, MODEL_CATALOG_FILE),
            init_settings,
            file_secret_settings,
        ]
        return tuple(sources)


def get_app_config() -> AppConfig:
    """Build the configuration from all sources (not cached)."""
    return AppConfig()


def get_budget_config() -> BudgetConfig:
    return get_app_config().budget


def get_model_catalog_config() -> ModelCatalogConfig:
    return get_app_config().models


def get_relay_config() -> RelayConfig:
    return get_app_config().relay


def get_upstream_config() -> UpstreamConfig:
    return get_app_config().upstream
