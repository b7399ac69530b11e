"""Centralized FastAPI dependency type aliases.

Import these ``*Dep`` aliases in route modules instead of manually
writing ``Annotated[T, Depends(get_xxx)]`` everywhere.  Each alias
corresponds to a single ``get_*`` factory and can be overridden in
tests via ``app.dependency_overrides[get_xxx] = ...``.
"""

from typing import Annotated

from fastapi import Depends, Header

from relaychat.configs.config import get_model_catalog_config, get_relay_config
from relaychat.configs.system import ModelCatalogConfig, RelayConfig
from relaychat.core.exceptions import AuthenticationError
from relaychat.core.relay import RelayService, get_relay_service

MISSING_KEY_MESSAGE = "Missing key"


def get_credential(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Extract the bearer credential forwarded to the provider."""
    if not authorization:
        raise AuthenticationError(MISSING_KEY_MESSAGE)
    _, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if not token:
        raise AuthenticationError(MISSING_KEY_MESSAGE)
    return token


CredentialDep = Annotated[str, Depends(get_credential)]
RelayServiceDep = Annotated[RelayService, Depends(get_relay_service)]
RelayConfigDep = Annotated[RelayConfig, Depends(get_relay_config)]
ModelCatalogConfigDep = Annotated[
    ModelCatalogConfig, Depends(get_model_catalog_config)
]
