"""
Local persistence for LockBox vaults.

LEGAL NOTICE:
Vault records are base64-encoded, not encrypted. Anyone who can read the store
file can read every vault in it. Use only on devices you own or administer.
"""

import os
import json
import shutil
import threading
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from . import config
from . import codec
from .errors import ParseFailure
from .models import VaultData
from .utils import set_owner_only_permissions

logger = logging.getLogger(__name__)

RESERVED_KEYS = frozenset({config.VAULT_ID_KEY, config.BIOMETRIC_CREDENTIALS_KEY})


class KeyValueStore(ABC):
    """Synchronous string key-value store that persists across sessions."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value for ``key`` or None when absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``. May raise OSError."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``. Removing an absent key is not an error."""

    @abstractmethod
    def snapshot(self) -> Dict[str, str]:
        """Copy of every stored entry."""


class MemoryStore(KeyValueStore):
    """In-process store, used for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class JsonFileStore(KeyValueStore):
    """
    Store backed by a single JSON object file.

    Every write rewrites the whole file through a temporary file that is moved
    into place, then restricts the file to the current user.
    """

    def __init__(self, filepath: str):
        """
        Initialize the file store.
        Args:
            filepath: Path to the JSON store file; created on first write
        """
        self.filepath = filepath
        self._lock = threading.Lock()
        self._data: Dict[str, str] = self._read()

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.filepath):
            return {}
        try:
            with open(self.filepath, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            return {str(k): str(v) for k, v in data.items()}
        except (OSError, ValueError) as e:
            aside = self.filepath + '.corrupt'
            logger.error(f"Store file {self.filepath} is unreadable ({e}); moving it to {aside}")
            try:
                shutil.move(self.filepath, aside)
            except OSError as move_error:
                logger.error(f"Could not move unreadable store file aside: {move_error}")
            return {}

    def _write(self) -> None:
        directory = os.path.dirname(self.filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = self.filepath + '.tmp'
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(self._data, f)
            # Atomic replace using shutil.move
            shutil.move(tmp_path, self.filepath)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        if not set_owner_only_permissions(self.filepath):
            logger.warning(f"Failed to set secure file permissions for store: {self.filepath}")

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            previous = self._data.get(key)
            self._data[key] = value
            try:
                self._write()
            except OSError:
                if previous is None:
                    self._data.pop(key, None)
                else:
                    self._data[key] = previous
                raise

    def remove(self, key: str) -> None:
        with self._lock:
            if key not in self._data:
                return
            previous = self._data.pop(key)
            try:
                self._write()
            except OSError:
                self._data[key] = previous
                raise

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)


def default_store_path() -> str:
    """Store path from the environment, else ~/.lockbox/store.json."""
    override = os.environ.get(config.STORE_PATH_ENV)
    if override:
        return override
    home = os.path.expanduser("~")
    return os.path.join(home, config.CONFIG_DIR_NAME, config.DEFAULT_STORE_FILE)


class StorageAdapter:
    """
    Three key spaces over one key-value store: vault records keyed by Vault ID,
    the current-vault pointer, and the biometric credential map.

    Reads treat missing or corrupt entries as absent. Writes never raise; a
    failed write is logged and reported as False.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Serialize a read-modify-write against other threads using this adapter."""
        with self._lock:
            yield

    # Vault records

    def load_vault(self, vault_id: str) -> Optional[VaultData]:
        if not vault_id or vault_id in RESERVED_KEYS:
            return None
        raw = self.store.get(vault_id)
        if not raw:
            return None
        try:
            return codec.decode(raw)
        except ParseFailure as e:
            logger.error(f"Failed to parse vault data: {e}")
            return None

    def has_vault(self, vault_id: str) -> bool:
        return self.load_vault(vault_id) is not None

    def save_vault(self, vault_id: str, data: VaultData) -> bool:
        if not vault_id or vault_id in RESERVED_KEYS:
            logger.error(f"Refusing to save vault under reserved or empty key: {vault_id!r}")
            return False
        try:
            self.store.set(vault_id, codec.encode(data))
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save vault data: {e}", exc_info=True)
            return False
        return True

    # Current vault pointer

    def get_current_id(self) -> Optional[str]:
        return self.store.get(config.VAULT_ID_KEY) or None

    def set_current_id(self, vault_id: str) -> bool:
        try:
            self.store.set(config.VAULT_ID_KEY, vault_id)
        except OSError as e:
            logger.error(f"Failed to save current vault pointer: {e}", exc_info=True)
            return False
        return True

    def clear_current_id(self) -> bool:
        try:
            self.store.remove(config.VAULT_ID_KEY)
        except OSError as e:
            logger.error(f"Failed to clear current vault pointer: {e}", exc_info=True)
            return False
        return True

    # Biometric credential map

    def get_credentials(self) -> Dict[str, str]:
        raw = self.store.get(config.BIOMETRIC_CREDENTIALS_KEY)
        if not raw:
            return {}
        try:
            credentials = json.loads(raw)
        except ValueError as e:
            logger.error(f"Biometric credential map is corrupt: {e}")
            return {}
        if not isinstance(credentials, dict):
            logger.error("Biometric credential map is not a JSON object")
            return {}
        return {str(k): str(v) for k, v in credentials.items()}

    def set_credentials(self, credentials: Dict[str, str]) -> bool:
        try:
            self.store.set(config.BIOMETRIC_CREDENTIALS_KEY, json.dumps(credentials))
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save biometric credentials: {e}", exc_info=True)
            return False
        return True

    def add_credential(self, credential_id: str, vault_id: str) -> bool:
        with self._lock:
            credentials = self.get_credentials()
            credentials[credential_id] = vault_id
            return self.set_credentials(credentials)

    def credentials_for(self, vault_id: str) -> List[str]:
        return [cid for cid, vid in self.get_credentials().items() if vid == vault_id]
