"""Persisted client preferences: the provider credential and model choice.

The chat loop and the settings commands read and write the same two
keys, so both receive one injected ``Preferences`` object instead of
touching a global store.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from relaychat.core.catalog import ModelCatalog

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "CEREBRAS_API_KEY"
MODEL_KEY = "selected_model"

DEFAULT_PREFS_FILE = Path.home() / ".config" / "relaychat" / "preferences.json"


class PreferencesStore(ABC):
    """Simple keyed string store."""

    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...


class MemoryPreferencesStore(PreferencesStore):
    """In-process store, used in tests and for ``--no-persist`` runs."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value


class FilePreferencesStore(PreferencesStore):
    """JSON file store scoped to the current user."""

    def __init__(self, path: Path = DEFAULT_PREFS_FILE) -> None:
        self.path = path

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable preferences file %s", self.path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")


class Preferences:
    """Typed access to the credential and model keys of a store."""

    def __init__(
        self, store: PreferencesStore, catalog: ModelCatalog | None = None
    ) -> None:
        self.store = store
        self.catalog = catalog or ModelCatalog()

    @property
    def credential(self) -> str | None:
        return self.store.get(CREDENTIAL_KEY) or None

    @credential.setter
    def credential(self, value: str) -> None:
        self.store.set(CREDENTIAL_KEY, value.strip())

    @property
    def model(self) -> str:
        """Selected model, migrating legacy identifiers in place."""
        stored = self.store.get(MODEL_KEY)
        model = self.catalog.normalize_stored_model(stored)
        if stored and model != stored:
            logger.info("Migrating stored model id %r to %r", stored, model)
            self.store.set(MODEL_KEY, model)
        return model

    @model.setter
    def model(self, value: str) -> None:
        self.store.set(MODEL_KEY, self.catalog.resolve_model(value))
