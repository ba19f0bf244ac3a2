"""
Storage management for SeedVault.

SECURITY NOTICE:
Only ciphertexts and labels reach this module. Plaintext seeds must never be
passed to a settings store.
"""

import os
import json
import stat
import shutil
import logging
import platform
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

from . import config
from .errors import PersistenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VaultEntry:
    """One encrypted seed. The ciphertext is the entry's identity."""
    label: str
    ciphertext: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted/tag wire shape."""
        return {'name': self.label, 'encryptedSeed': self.ciphertext}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VaultEntry':
        """Create from the persisted/tag wire shape."""
        return cls(label=data['name'], ciphertext=data['encryptedSeed'])


class SettingsStore(ABC):
    """A string key-value store, the equivalent of mobile application settings."""

    @abstractmethod
    def get_string(self, key: str, default: Optional[str] = None) -> Optional[str]:
        ...

    @abstractmethod
    def set_string(self, key: str, value: str) -> None:
        ...


class MemorySettingsStore(SettingsStore):
    """Keeps settings in memory. Used for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get_string(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(key, default)

    def set_string(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonSettingsStore(SettingsStore):
    """Settings kept in a single JSON object on disk."""

    def __init__(self, filepath: str):
        """
        Initialize the settings store.
        Args:
            filepath: Path to the JSON settings file
        """
        self.filepath = filepath
        self._lock = threading.Lock()

    def get_string(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with self._lock:
            value = self._read().get(key, default)
        if value is not None and not isinstance(value, str):
            raise PersistenceError(f"Setting '{key}' in {self.filepath} is not a string")
        return value

    def set_string(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.filepath):
            return {}
        try:
            with open(self.filepath, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error reading settings file {self.filepath}: {e}", exc_info=True)
            raise PersistenceError(f"Could not read settings: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Settings file {self.filepath} does not hold a JSON object")
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        tmp_path = self.filepath + '.tmp'
        try:
            directory = os.path.dirname(self.filepath)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)

            # Atomic replace using shutil.move
            shutil.move(tmp_path, self.filepath)
            set_owner_only_permissions(self.filepath)
        except OSError as e:
            logger.error(f"Error saving settings file {self.filepath}: {e}", exc_info=True)
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise PersistenceError(f"Could not save settings: {e}") from e


class SeedStorage:
    """
    Loads and saves the whole seed list under one settings key.

    The list is stored newest-first as a JSON array of
    ``{"name": ..., "encryptedSeed": ...}`` objects. Every save rewrites the
    complete list.
    """

    def __init__(self, store: SettingsStore, key: str = config.SEEDS_STORE_KEY):
        self.store = store
        self.key = key

    def load(self) -> List[VaultEntry]:
        """
        Load the stored seed list.
        Returns:
            The entries newest-first, or an empty list if nothing is stored yet
        Raises:
            PersistenceError: If the stored value is corrupt
        """
        raw = self.store.get_string(self.key, "[]")
        try:
            items = json.loads(raw)
        except ValueError as e:
            logger.error(f"Stored seed list under '{self.key}' is not valid JSON: {e}")
            raise PersistenceError("Stored seed list is corrupt") from e

        if not isinstance(items, list):
            raise PersistenceError("Stored seed list is not a JSON array")

        entries = []
        for item in items:
            if (not isinstance(item, dict)
                    or not isinstance(item.get('name'), str)
                    or not isinstance(item.get('encryptedSeed'), str)):
                logger.error(f"Stored seed list under '{self.key}' holds a malformed item")
                raise PersistenceError("Stored seed list holds a malformed item")
            entries.append(VaultEntry.from_dict(item))
        logger.debug(f"Loaded {len(entries)} seeds from store")
        return entries

    def save(self, entries: List[VaultEntry]) -> None:
        """Overwrite the stored seed list."""
        self.store.set_string(self.key, json.dumps([e.to_dict() for e in entries]))
        logger.debug(f"Saved {len(entries)} seeds to store")


def set_owner_only_permissions(filepath: str) -> bool:
    """Set file to be readable/writable by owner only."""
    if platform.system() == 'Windows':
        # NTFS ACLs are inherited from the profile directory
        return False
    os.chmod(filepath, stat.S_IRUSR | stat.S_IWUSR)  # 600
    return True
