"""Credential store and the storage ports it persists through."""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from .models import OPENAI_PROVIDER, PROVIDERS, Credential

logger = logging.getLogger(__name__)

API_KEY_ENTRY = "user_api_key"
PROVIDER_ENTRY = "user_api_provider"


class Storage(ABC):
    """Interface for a string key-value storage port."""

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """Returns the stored value, or None when the key is absent."""
        pass

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """Stores ``value`` under ``key``, overwriting any prior value."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Removes ``key``. Removing an absent key is not an error."""
        pass


class InMemory(Storage):
    """Dict-backed storage.

    The ``data`` dict is exactly what the browser keeps in ``localStorage``
    through a ``dcc.Store(storage_type="local")``: callbacks wrap the browser
    payload, mutate it through a ``CredentialStore`` and send ``data`` back.
    """

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})

    def read(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class File(Storage):
    """Stores entries in a JSON file, for single-user desktop installs."""

    def __init__(self, path: str):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _dump(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def read(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def write(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


class CredentialStore:
    """Holds zero or one credential for a client installation.

    Parameters
    ----------
    storage : Storage, optional
        Port the entries are persisted through. Defaults to ``InMemory()``.
    """

    def __init__(self, storage: Optional[Storage] = None):
        self.storage = storage if storage is not None else InMemory()

    def get(self) -> Optional[Credential]:
        api_key = self.storage.read(API_KEY_ENTRY)
        if not api_key:
            return None
        provider = self.storage.read(PROVIDER_ENTRY) or OPENAI_PROVIDER
        if provider not in PROVIDERS:
            logger.warning(
                "Unknown provider tag %r in credential storage, using %r",
                provider,
                OPENAI_PROVIDER,
            )
            provider = OPENAI_PROVIDER
        return Credential(api_key=api_key, provider=provider)

    def set(self, api_key: str, provider: str = OPENAI_PROVIDER) -> None:
        if provider not in PROVIDERS:
            raise ValueError(
                f"Unknown provider {provider!r}, expected one of {PROVIDERS}"
            )
        self.storage.write(API_KEY_ENTRY, api_key)
        self.storage.write(PROVIDER_ENTRY, provider)
        logger.debug("Credential saved for provider %s", provider)

    def clear(self) -> None:
        self.storage.remove(API_KEY_ENTRY)
        self.storage.remove(PROVIDER_ENTRY)
        logger.debug("Credential cleared")
