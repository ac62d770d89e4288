"""
Vault lifecycle for LockBox.

    LOADING --load--> UNLOCKED | LOCKED
    LOCKED --initialize--> AWAITING_CONFIRMATION --confirm--> UNLOCKED
                                                  --cancel--> LOCKED
    LOCKED --unlock(id)--> UNLOCKED --lock--> LOCKED
    LOCKED | UNLOCKED --import_backup(file, id)--> UNLOCKED

Failed events return False (or raise for programming errors) and leave the
previous state untouched.
"""

import os
import asyncio
import logging
from enum import Enum
from typing import List, Optional, Union

from . import codec
from . import config
from .biometric import BiometricGateway
from .errors import InvalidTransitionError, ParseFailure, VaultLockedError
from .models import VaultData, VaultItem
from .storage import RESERVED_KEYS, StorageAdapter
from .utils import generate_identifier

logger = logging.getLogger(__name__)


class VaultStatus(Enum):
    LOADING = "loading"
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


class VaultLifecycle:
    """Owns the current vault and every transition between vault states."""

    def __init__(self, storage: StorageAdapter, biometric: Optional[BiometricGateway] = None):
        """
        Initialize and immediately load the vault named by the stored pointer.
        Args:
            storage: Adapter over the local key-value store
            biometric: Optional gateway used for quick unlock
        """
        self.storage = storage
        self.biometric = biometric
        self._status = VaultStatus.LOADING
        self._vault_id: Optional[str] = None
        self._data: Optional[VaultData] = None
        self._pending_id: Optional[str] = None
        self.load()

    @property
    def status(self) -> VaultStatus:
        return self._status

    @property
    def vault_id(self) -> Optional[str]:
        return self._vault_id

    @property
    def data(self) -> Optional[VaultData]:
        return self._data

    @property
    def pending_id(self) -> Optional[str]:
        return self._pending_id

    def is_unlocked(self) -> bool:
        return self._status is VaultStatus.UNLOCKED

    @property
    def is_biometric_enabled(self) -> bool:
        if self.biometric is None:
            return False
        return self.biometric.is_enabled_for(self._vault_id)

    def load(self) -> VaultStatus:
        """Resolve LOADING from the stored current-vault pointer."""
        stored_id = self.storage.get_current_id()
        data = self.storage.load_vault(stored_id) if stored_id else None
        if data is not None:
            self._set_current(stored_id, data)
            logger.info("Restored previously unlocked vault")
        else:
            if stored_id:
                logger.warning("Current vault pointer refers to a missing or corrupt record")
            self._clear_current()
        return self._status

    def _set_current(self, vault_id: str, data: VaultData) -> None:
        self._vault_id = vault_id
        self._data = data
        self._status = VaultStatus.UNLOCKED

    def _clear_current(self) -> None:
        self._vault_id = None
        self._data = None
        self._status = VaultStatus.LOCKED

    def _setup_vault(self, vault_id: str, data: VaultData) -> None:
        """Persist data and the pointer, then make the vault current."""
        if not self.storage.save_vault(vault_id, data):
            logger.warning("Vault data could not be persisted; continuing with in-memory copy")
        if not self.storage.set_current_id(vault_id):
            logger.warning("Current vault pointer could not be persisted")
        self._set_current(vault_id, data)

    # Creation

    def initialize(self) -> str:
        """
        Start creating a vault. Nothing is persisted until confirm().

        Returns:
            The new Vault ID, for the user to write down
        """
        if self._status is not VaultStatus.LOCKED:
            raise InvalidTransitionError("initialize", self._status)
        self._pending_id = generate_identifier()
        self._status = VaultStatus.AWAITING_CONFIRMATION
        return self._pending_id

    def confirm(self) -> bool:
        """Persist an empty vault under the pending id and unlock it."""
        if self._status is not VaultStatus.AWAITING_CONFIRMATION or not self._pending_id:
            return False
        with self.storage.transaction():
            self._setup_vault(self._pending_id, VaultData.empty())
        self._pending_id = None
        logger.info("New vault created")
        return True

    def cancel(self) -> None:
        """Discard the pending id without persisting anything."""
        if self._status is not VaultStatus.AWAITING_CONFIRMATION:
            raise InvalidTransitionError("cancel", self._status)
        self._pending_id = None
        self._status = VaultStatus.LOCKED

    # Access

    def unlock(self, vault_id: str) -> bool:
        """
        Open the vault stored under ``vault_id``.

        Returns:
            True if a readable vault exists under that id
        """
        if self._status is VaultStatus.AWAITING_CONFIRMATION:
            return False
        data = self.storage.load_vault(vault_id) if vault_id else None
        if data is None:
            logger.info("Unlock failed: no readable vault for the supplied id")
            return False
        if not self.storage.set_current_id(vault_id):
            logger.warning("Current vault pointer could not be persisted")
        self._set_current(vault_id, data)
        return True

    def lock(self) -> None:
        """Forget the current vault. Its stored record is kept."""
        if not self.storage.clear_current_id():
            logger.warning("Current vault pointer could not be cleared")
        self._clear_current()
        logger.info("Vault locked")

    # Mutation

    def update_data(self, new_data: VaultData) -> None:
        """Replace the whole vault and persist it immediately."""
        if not self.is_unlocked() or not self._vault_id:
            raise VaultLockedError("Vault is locked")
        with self.storage.transaction():
            self._data = new_data
            if not self.storage.save_vault(self._vault_id, new_data):
                logger.warning("Vault update was not persisted")

    def update_items(self, category: str, items: List[VaultItem]) -> None:
        """Replace one category of the current vault."""
        if self._data is None:
            raise VaultLockedError("Vault is locked")
        self.update_data(self._data.replace(category, items))

    # Backup

    def export_backup(self) -> str:
        """Backup document text for the unlocked vault."""
        if not self.is_unlocked() or self._data is None:
            raise VaultLockedError("Vault is locked")
        return codec.dump_backup(self._vault_id, self._data)

    def export_to_file(self, directory: str = ".") -> str:
        """
        Write the backup document next to other exports.

        Returns:
            Path of the written file
        """
        text = self.export_backup()
        path = os.path.join(directory, config.BACKUP_FILE_TEMPLATE.format(vault_id=self._vault_id))
        with open(path, 'w', encoding='utf-8') as f:
            f.write(text)
        logger.info(f"Vault exported to {path}")
        return path

    async def import_backup(self, source: Union[str, os.PathLike], id_to_verify: str,
                            is_path: bool = True) -> bool:
        """
        Import a backup and make it the current vault.

        Args:
            source: Path to the backup file, or its text when is_path is False
            id_to_verify: Vault ID the backup must be keyed by
            is_path: Whether ``source`` is a path

        Returns:
            True if imported; False if the backup has no entry for the id

        Raises:
            ParseFailure: If the file cannot be read or is not a backup document
        """
        if self._status is VaultStatus.AWAITING_CONFIRMATION:
            raise InvalidTransitionError("import", self._status)
        if not id_to_verify or id_to_verify in RESERVED_KEYS:
            return False

        if is_path:
            try:
                text = await asyncio.to_thread(_read_text, source)
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Import failed: {e}")
                raise ParseFailure(f"Backup file could not be read: {e}") from e
        else:
            text = str(source)

        try:
            document = codec.parse_backup(text)
            data = codec.load_from_backup(document, id_to_verify)
        except ParseFailure as e:
            logger.error(f"Import failed: {e}")
            raise
        if data is None:
            return False

        with self.storage.transaction():
            self._setup_vault(id_to_verify, data)
        self._pending_id = None
        logger.info("Vault imported from backup")
        return True

    # Biometrics

    async def register_biometric(self) -> bool:
        if self.biometric is None or not self.is_unlocked():
            return False
        return await self.biometric.register(self._vault_id)

    async def unlock_with_biometric(self) -> bool:
        if self.biometric is None:
            return False
        vault_id = await self.biometric.authenticate()
        if not vault_id:
            return False
        return self.unlock(vault_id)


def _read_text(path) -> str:
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()
