"""
Biometric-style quick unlock for LockBox.

The gateway speaks a WebAuthn-shaped contract to a platform authenticator and
keeps the credential-id -> Vault ID map in local storage. This is a local
possession check that gates access to local storage. It does not make the
vault contents any more confidential.

LEGAL NOTICE:
This module handles device authentication. It must only be used for
legitimate personal secret management on devices you own or administer.
"""

import os
import sys
import json
import asyncio
import hashlib
import secrets
import struct
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import keyring
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from keyring.errors import KeyringError

from . import config
from .errors import BiometricError
from .storage import StorageAdapter
from .utils import b64decode_text, b64encode_bytes

logger = logging.getLogger(__name__)

# Authenticator data flags: user present | user verified
FLAG_UP = 0x01
FLAG_UV = 0x04


@dataclass
class CredentialCreationOptions:
    """Parameters for creating a new platform credential."""
    challenge: bytes
    user_id: bytes
    user_name: str
    user_display_name: str = config.USER_DISPLAY_NAME
    rp_id: str = config.RP_ID
    rp_name: str = config.RP_NAME
    algorithms: List[int] = field(default_factory=lambda: [config.COSE_ALG_ES256])
    user_verification: str = "required"
    timeout_ms: int = config.CREDENTIAL_TIMEOUT_MS


@dataclass
class CredentialRequestOptions:
    """Parameters for requesting an assertion from known credentials."""
    challenge: bytes
    allow_credentials: List[bytes]
    rp_id: str = config.RP_ID
    user_verification: str = "required"
    timeout_ms: int = config.CREDENTIAL_TIMEOUT_MS


@dataclass
class Assertion:
    credential_id: bytes
    authenticator_data: bytes = b""
    client_data_hash: bytes = b""
    signature: bytes = b""


class PlatformAuthenticator(ABC):
    """
    Port for the platform credential capability.

    Both requests raise BiometricError on failure and on user cancellation.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the platform can create and use credentials at all."""

    @abstractmethod
    async def create_credential(self, options: CredentialCreationOptions) -> bytes:
        """Create a credential and return its id."""

    @abstractmethod
    async def get_assertion(self, options: CredentialRequestOptions) -> Assertion:
        """Prove possession of one of ``options.allow_credentials``."""


PinPrompt = Callable[[str, str], Optional[str]]

# QApplication owned by qt_pin_prompt when no host application created one
_qt_app = None


def qt_pin_prompt(reason: str, prompt: str) -> Optional[str]:
    """Ask for the PIN with a Qt dialog. Returns None when cancelled."""
    global _qt_app
    from PyQt5.QtWidgets import QApplication, QInputDialog, QLineEdit

    app = QApplication.instance()
    if app is None:
        _qt_app = app = QApplication(sys.argv)

    parent = None
    for widget in app.topLevelWidgets():
        if widget.isVisible() and widget.isActiveWindow():
            parent = widget
            break

    pin, ok = QInputDialog.getText(
        parent,
        reason,
        prompt,
        QLineEdit.Password,
        ""
    )
    if ok and pin:
        return pin
    return None


# Qt widgets must be created on the thread that owns the QApplication
qt_pin_prompt.needs_gui_thread = True


class LocalAuthenticator(PlatformAuthenticator):
    """
    Software platform authenticator.

    Each credential is an ECDSA P-256 key pair whose private half lives in the
    OS keyring. User verification is a PIN checked against an Argon2id hash,
    also kept in the keyring. The PIN is set up on first use. Keyring access,
    hashing and signing run in worker threads so the event loop keeps running
    while a request is pending.
    """

    def __init__(self, secret_store=keyring, prompt_pin: Optional[PinPrompt] = None,
                 service: str = config.KEYRING_SERVICE):
        """
        Args:
            secret_store: Object with keyring's get/set/delete_password API
            prompt_pin: Callable(reason, prompt) returning the PIN or None
            service: Keyring service name for all entries
        """
        self.secret_store = secret_store
        self.prompt_pin = prompt_pin or qt_pin_prompt
        self.service = service
        self.ph = PasswordHasher()

    def is_available(self) -> bool:
        if self.secret_store is not keyring:
            return True
        from keyring.backends import fail
        try:
            backend = keyring.get_keyring()
        except KeyringError as e:
            logger.debug(f"Keyring unavailable: {e}")
            return False
        return not isinstance(backend, fail.Keyring)

    def _get(self, key: str) -> Optional[str]:
        try:
            return self.secret_store.get_password(self.service, key)
        except KeyringError as e:
            raise BiometricError(f"Keyring read failed: {e}") from e

    def _set(self, key: str, value: str) -> None:
        try:
            self.secret_store.set_password(self.service, key, value)
        except KeyringError as e:
            raise BiometricError(f"Keyring write failed: {e}") from e

    def has_pin(self) -> bool:
        return self._get(config.KEYRING_PIN_KEY) is not None

    async def _ask_pin(self, reason: str, prompt: str) -> Optional[str]:
        if getattr(self.prompt_pin, "needs_gui_thread", False):
            return self.prompt_pin(reason, prompt)
        return await asyncio.to_thread(self.prompt_pin, reason, prompt)

    def _store_pin(self, pin: str) -> None:
        self._set(config.KEYRING_PIN_KEY, self.ph.hash(pin))

    def _check_pin(self, stored_hash: str, pin: str) -> bool:
        try:
            self.ph.verify(stored_hash, pin)
        except (VerificationError, InvalidHashError):
            logger.warning("PIN authentication failed")
            return False
        return True

    async def verify_user(self, reason: str) -> bool:
        """Check the PIN, or set it up if none exists yet."""
        stored_hash = await asyncio.to_thread(self._get, config.KEYRING_PIN_KEY)
        if stored_hash is None:
            pin = await self._ask_pin(reason, config.PIN_PROMPT_SETUP)
            if not pin:
                logger.info("PIN setup cancelled")
                return False
            if len(pin) < config.PIN_MIN_LENGTH:
                logger.warning(f"PIN rejected: shorter than {config.PIN_MIN_LENGTH} characters")
                return False
            await asyncio.to_thread(self._store_pin, pin)
            logger.info("PIN set up successfully")
            return True

        pin = await self._ask_pin(reason, config.PIN_PROMPT_ENTER)
        if not pin:
            logger.info("PIN authentication cancelled")
            return False
        return await asyncio.to_thread(self._check_pin, stored_hash, pin)

    async def create_credential(self, options: CredentialCreationOptions) -> bytes:
        if config.COSE_ALG_ES256 not in options.algorithms:
            raise BiometricError(f"No supported algorithm in {options.algorithms}")
        if not await self.verify_user(config.BIOMETRIC_REASON_REGISTER):
            raise BiometricError("User verification failed or was cancelled")
        return await asyncio.to_thread(self._new_credential, options)

    def _new_credential(self, options: CredentialCreationOptions) -> bytes:
        private_key = ec.generate_private_key(ec.SECP256R1())
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        ).decode('ascii')
        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        ).decode('ascii')
        credential_id = os.urandom(config.CREDENTIAL_ID_SIZE)
        record = {
            'rpId': options.rp_id,
            'userHandle': b64encode_bytes(options.user_id),
            'userName': options.user_name,
            'privateKey': private_pem,
            'publicKey': public_pem,
            'signCount': 0,
        }
        self._set(b64encode_bytes(credential_id), json.dumps(record))
        logger.info(f"Created local credential for {options.rp_id}")
        return credential_id

    def _find_credential(self, options: CredentialRequestOptions):
        for credential_id in options.allow_credentials:
            raw = self._get(b64encode_bytes(credential_id))
            if not raw:
                continue
            try:
                record = json.loads(raw)
            except ValueError:
                logger.error("Stored credential record is corrupt; skipping it")
                continue
            if record.get('rpId') == options.rp_id:
                return credential_id, record
        return None, None

    async def get_assertion(self, options: CredentialRequestOptions) -> Assertion:
        credential_id, record = await asyncio.to_thread(self._find_credential, options)
        if credential_id is None:
            raise BiometricError("No matching credential on this device")
        if not await self.verify_user(config.BIOMETRIC_REASON_UNLOCK):
            raise BiometricError("User verification failed or was cancelled")
        return await asyncio.to_thread(self._sign, credential_id, record, options)

    def _sign(self, credential_id: bytes, record: dict, options: CredentialRequestOptions) -> Assertion:
        try:
            private_key = serialization.load_pem_private_key(
                record['privateKey'].encode('ascii'), password=None
            )
            public_key = serialization.load_pem_public_key(record['publicKey'].encode('ascii'))
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise BiometricError(f"Stored credential key is unusable: {e}") from e
        if not isinstance(public_key, ec.EllipticCurvePublicKey):
            raise BiometricError("Stored public key is not an EC key")

        sign_count = int(record.get('signCount', 0)) + 1
        authenticator_data = (
            hashlib.sha256(options.rp_id.encode('utf-8')).digest()
            + bytes([FLAG_UP | FLAG_UV])
            + struct.pack('>I', sign_count)
        )
        client_data_hash = hashlib.sha256(options.challenge).digest()
        signed = authenticator_data + client_data_hash
        signature = private_key.sign(signed, ec.ECDSA(hashes.SHA256()))

        try:
            public_key.verify(signature, signed, ec.ECDSA(hashes.SHA256()))
        except InvalidSignature as e:
            raise BiometricError("Signature does not verify with the stored public key") from e

        record['signCount'] = sign_count
        self._set(b64encode_bytes(credential_id), json.dumps(record))
        return Assertion(
            credential_id=credential_id,
            authenticator_data=authenticator_data,
            client_data_hash=client_data_hash,
            signature=signature,
        )


class BiometricGateway:
    """
    Registers platform credentials for a vault and resolves assertions back to
    a Vault ID. Never raises: failures come back as False or None.
    """

    def __init__(self, storage: StorageAdapter, authenticator: PlatformAuthenticator):
        self.storage = storage
        self.authenticator = authenticator

    def supported(self) -> bool:
        try:
            return bool(self.authenticator.is_available())
        except Exception as e:
            logger.debug(f"Error checking biometric support: {e}")
            return False

    def is_enabled_for(self, vault_id: Optional[str]) -> bool:
        if not vault_id:
            return False
        return bool(self.storage.credentials_for(vault_id))

    async def register(self, vault_id: str) -> bool:
        """
        Create a credential bound to ``vault_id``.

        Returns:
            True if the credential was created and recorded
        """
        if not vault_id or not self.supported():
            return False

        options = CredentialCreationOptions(
            challenge=secrets.token_bytes(config.CHALLENGE_SIZE),
            user_id=secrets.token_bytes(config.USER_HANDLE_SIZE),
            user_name=f"user-{vault_id}",
        )
        try:
            credential_id = await self.authenticator.create_credential(options)
        except Exception as e:
            logger.error(f"Biometric registration failed: {e}")
            return False
        if not credential_id:
            return False

        if not self.storage.add_credential(b64encode_bytes(credential_id), vault_id):
            return False
        logger.info("Biometric credential registered")
        return True

    async def authenticate(self) -> Optional[str]:
        """
        Ask the platform for an assertion from any registered credential.

        Returns:
            The Vault ID bound to the asserted credential, or None
        """
        if not self.supported():
            return None
        credentials = self.storage.get_credentials()
        if not credentials:
            return None

        allow_credentials = []
        for encoded_id in credentials:
            try:
                allow_credentials.append(b64decode_text(encoded_id))
            except ValueError:
                logger.warning("Skipping malformed credential id in biometric map")
        if not allow_credentials:
            return None

        options = CredentialRequestOptions(
            challenge=secrets.token_bytes(config.CHALLENGE_SIZE),
            allow_credentials=allow_credentials,
        )
        try:
            assertion = await self.authenticator.get_assertion(options)
        except Exception as e:
            logger.error(f"Biometric authentication failed: {e}")
            return None
        if assertion is None:
            return None

        vault_id = credentials.get(b64encode_bytes(assertion.credential_id))
        if vault_id is None:
            logger.warning("Assertion returned an unknown credential id")
        return vault_id
