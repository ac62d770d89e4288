# Tests for the biometric gateway and the local platform authenticator
#
# Coverage:
#   - Registration records credential id -> Vault ID
#   - Fresh challenges and user handles on every request
#   - No prompt when nothing is registered
#   - Failures and unknown credentials resolve to False / None
#   - LocalAuthenticator PIN setup, verification and ES256 signatures
#   - Slow prompts do not stall the event loop
#   - Qt PIN dialog without a host application

import asyncio
import base64
import json
import sys
import time
import types

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from lockbox import biometric, config
from lockbox.biometric import (
    BiometricGateway,
    CredentialCreationOptions,
    CredentialRequestOptions,
    LocalAuthenticator,
)
from lockbox.errors import BiometricError
from tests.conftest import FakeKeyring


@pytest.fixture
def gateway(storage, authenticator):
    return BiometricGateway(storage, authenticator)


# ── Gateway ─────────────────────────────────────────────────────────


def test_register_records_mapping(storage, gateway, authenticator):
    assert asyncio.run(gateway.register("vault-1")) is True
    credentials = storage.get_credentials()
    assert list(credentials.values()) == ["vault-1"]
    options = authenticator.creation_requests[0]
    assert options.user_name == "user-vault-1"
    assert options.rp_name == config.RP_NAME
    assert options.algorithms == [config.COSE_ALG_ES256]
    assert options.user_verification == "required"


def test_register_uses_fresh_randomness(gateway, authenticator):
    asyncio.run(gateway.register("vault-1"))
    asyncio.run(gateway.register("vault-1"))
    first, second = authenticator.creation_requests
    assert len(first.challenge) == config.CHALLENGE_SIZE
    assert first.challenge != second.challenge
    assert first.user_id != second.user_id


def test_multiple_credentials_per_vault(storage, gateway):
    asyncio.run(gateway.register("vault-1"))
    asyncio.run(gateway.register("vault-1"))
    assert len(storage.credentials_for("vault-1")) == 2
    assert gateway.is_enabled_for("vault-1")
    assert not gateway.is_enabled_for("vault-2")


def test_register_failure_returns_false(storage, gateway, authenticator):
    authenticator.fail = True
    assert asyncio.run(gateway.register("vault-1")) is False
    assert storage.get_credentials() == {}


def test_register_unsupported_returns_false(storage, authenticator):
    authenticator.available = False
    gateway = BiometricGateway(storage, authenticator)
    assert gateway.supported() is False
    assert asyncio.run(gateway.register("vault-1")) is False
    assert authenticator.creation_requests == []


def test_authenticate_without_credentials_does_not_prompt(gateway, authenticator):
    assert asyncio.run(gateway.authenticate()) is None
    assert authenticator.assertion_requests == []


def test_authenticate_resolves_vault(gateway, authenticator):
    asyncio.run(gateway.register("vault-1"))
    assert asyncio.run(gateway.authenticate()) == "vault-1"
    options = authenticator.assertion_requests[0]
    assert len(options.allow_credentials) == 1


def test_authenticate_challenges_are_fresh(gateway, authenticator):
    asyncio.run(gateway.register("vault-1"))
    asyncio.run(gateway.authenticate())
    asyncio.run(gateway.authenticate())
    first, second = authenticator.assertion_requests
    assert first.challenge != second.challenge
    assert first.challenge != authenticator.creation_requests[0].challenge


def test_authenticate_unknown_credential(gateway, authenticator):
    asyncio.run(gateway.register("vault-1"))
    authenticator.assert_with = b"\x01" * 16
    assert asyncio.run(gateway.authenticate()) is None


def test_authenticate_failure(gateway, authenticator):
    asyncio.run(gateway.register("vault-1"))
    authenticator.fail = True
    assert asyncio.run(gateway.authenticate()) is None


def test_authenticate_skips_malformed_ids(storage, gateway, authenticator):
    storage.set_credentials({"***": "vault-1"})
    assert asyncio.run(gateway.authenticate()) is None
    assert authenticator.assertion_requests == []


# ── Local authenticator ─────────────────────────────────────────────


class PinPad:
    """Scripted PIN prompt."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.prompts = []

    def __call__(self, reason, prompt):
        self.prompts.append(prompt)
        return self.answers.pop(0) if self.answers else None


def _creation_options():
    return CredentialCreationOptions(challenge=b"c" * 32, user_id=b"u" * 32, user_name="user-v1")


def test_local_create_sets_up_pin():
    secrets = FakeKeyring()
    pin_pad = PinPad("2468")
    local = LocalAuthenticator(secret_store=secrets, prompt_pin=pin_pad)
    assert local.is_available()
    assert not local.has_pin()

    credential_id = asyncio.run(local.create_credential(_creation_options()))
    assert len(credential_id) == config.CREDENTIAL_ID_SIZE
    assert pin_pad.prompts == [config.PIN_PROMPT_SETUP]
    assert local.has_pin()
    stored_hash = secrets.get_password(config.KEYRING_SERVICE, config.KEYRING_PIN_KEY)
    assert stored_hash.startswith("$argon2id$")
    record = json.loads(secrets.get_password(config.KEYRING_SERVICE,
                                             base64.b64encode(credential_id).decode()))
    assert record["rpId"] == config.RP_ID


def test_local_short_pin_rejected():
    local = LocalAuthenticator(secret_store=FakeKeyring(), prompt_pin=PinPad("12"))
    with pytest.raises(BiometricError):
        asyncio.run(local.create_credential(_creation_options()))


def test_local_cancelled_prompt():
    local = LocalAuthenticator(secret_store=FakeKeyring(), prompt_pin=PinPad())
    with pytest.raises(BiometricError):
        asyncio.run(local.create_credential(_creation_options()))


def test_local_rejects_unsupported_algorithm():
    options = _creation_options()
    options.algorithms = [-257]
    local = LocalAuthenticator(secret_store=FakeKeyring(), prompt_pin=PinPad("2468"))
    with pytest.raises(BiometricError):
        asyncio.run(local.create_credential(options))


def test_local_assertion_signature_verifies():
    secrets = FakeKeyring()
    local = LocalAuthenticator(secret_store=secrets, prompt_pin=PinPad("2468", "2468"))
    credential_id = asyncio.run(local.create_credential(_creation_options()))

    request = CredentialRequestOptions(challenge=b"x" * 32, allow_credentials=[b"other", credential_id])
    assertion = asyncio.run(local.get_assertion(request))
    assert assertion.credential_id == credential_id
    assert assertion.authenticator_data[32] & 0x05 == 0x05

    record = json.loads(secrets.get_password(config.KEYRING_SERVICE,
                                             base64.b64encode(credential_id).decode()))
    assert record["signCount"] == 1
    key = serialization.load_pem_public_key(record["publicKey"].encode())
    key.verify(assertion.signature,
               assertion.authenticator_data + assertion.client_data_hash,
               ec.ECDSA(hashes.SHA256()))


def test_local_assertion_wrong_pin():
    local = LocalAuthenticator(secret_store=FakeKeyring(), prompt_pin=PinPad("2468", "0000"))
    credential_id = asyncio.run(local.create_credential(_creation_options()))
    request = CredentialRequestOptions(challenge=b"x" * 32, allow_credentials=[credential_id])
    with pytest.raises(BiometricError):
        asyncio.run(local.get_assertion(request))


def test_local_assertion_unknown_credential_does_not_prompt():
    pin_pad = PinPad("2468")
    local = LocalAuthenticator(secret_store=FakeKeyring(), prompt_pin=pin_pad)
    request = CredentialRequestOptions(challenge=b"x" * 32, allow_credentials=[b"nope"])
    with pytest.raises(BiometricError):
        asyncio.run(local.get_assertion(request))
    assert pin_pad.prompts == []


def test_local_authenticator_through_gateway(storage):
    local = LocalAuthenticator(secret_store=FakeKeyring(), prompt_pin=PinPad("2468", "2468"))
    gateway = BiometricGateway(storage, local)
    assert asyncio.run(gateway.register("vault-7")) is True
    assert asyncio.run(gateway.authenticate()) == "vault-7"


def test_local_assertion_rejects_mismatched_public_key():
    secrets = FakeKeyring()
    local = LocalAuthenticator(secret_store=secrets, prompt_pin=PinPad("2468", "2468"))
    credential_id = asyncio.run(local.create_credential(_creation_options()))

    entry = (config.KEYRING_SERVICE, base64.b64encode(credential_id).decode())
    record = json.loads(secrets.entries[entry])
    stranger = ec.generate_private_key(ec.SECP256R1()).public_key()
    record["publicKey"] = stranger.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    secrets.entries[entry] = json.dumps(record)

    request = CredentialRequestOptions(challenge=b"x" * 32, allow_credentials=[credential_id])
    with pytest.raises(BiometricError):
        asyncio.run(local.get_assertion(request))
    assert json.loads(secrets.entries[entry])["signCount"] == 0


def test_local_assertion_without_public_key_fails():
    secrets = FakeKeyring()
    local = LocalAuthenticator(secret_store=secrets, prompt_pin=PinPad("2468", "2468"))
    credential_id = asyncio.run(local.create_credential(_creation_options()))
    entry = (config.KEYRING_SERVICE, base64.b64encode(credential_id).decode())
    record = json.loads(secrets.entries[entry])
    del record["publicKey"]
    secrets.entries[entry] = json.dumps(record)

    request = CredentialRequestOptions(challenge=b"x" * 32, allow_credentials=[credential_id])
    with pytest.raises(BiometricError):
        asyncio.run(local.get_assertion(request))


class SlowPinPad(PinPad):
    def __call__(self, reason, prompt):
        time.sleep(0.4)
        return super().__call__(reason, prompt)


def test_slow_prompt_does_not_block_event_loop():
    local = LocalAuthenticator(secret_store=FakeKeyring(), prompt_pin=SlowPinPad("2468"))

    async def scenario():
        gaps = []
        task = asyncio.ensure_future(local.create_credential(_creation_options()))
        last = time.monotonic()
        while not task.done():
            await asyncio.sleep(0.02)
            now = time.monotonic()
            gaps.append(now - last)
            last = now
        await task
        return gaps

    gaps = asyncio.run(scenario())
    assert len(gaps) > 5
    assert max(gaps) < 0.25


# ── Qt PIN dialog ───────────────────────────────────────────────────


def _fake_qt(answer):
    class FakeApplication:
        current = None

        def __init__(self, argv):
            FakeApplication.current = self

        @classmethod
        def instance(cls):
            return cls.current

        def topLevelWidgets(self):
            return []

    class FakeInputDialog:
        calls = []

        @staticmethod
        def getText(parent, title, label, mode, text):
            FakeInputDialog.calls.append((parent, title, label))
            return answer

    widgets = types.ModuleType("PyQt5.QtWidgets")
    widgets.QApplication = FakeApplication
    widgets.QInputDialog = FakeInputDialog
    widgets.QLineEdit = types.SimpleNamespace(Password=2)
    return widgets


def test_qt_prompt_creates_application_when_missing(monkeypatch):
    widgets = _fake_qt(("2468", True))
    monkeypatch.setitem(sys.modules, "PyQt5", types.ModuleType("PyQt5"))
    monkeypatch.setitem(sys.modules, "PyQt5.QtWidgets", widgets)
    monkeypatch.setattr(biometric, "_qt_app", None)

    assert biometric.qt_pin_prompt("Unlock", "PIN:") == "2468"
    assert widgets.QApplication.current is not None
    assert biometric._qt_app is widgets.QApplication.current
    assert widgets.QInputDialog.calls == [(None, "Unlock", "PIN:")]


def test_qt_prompt_cancel_returns_none(monkeypatch):
    widgets = _fake_qt(("", False))
    monkeypatch.setitem(sys.modules, "PyQt5", types.ModuleType("PyQt5"))
    monkeypatch.setitem(sys.modules, "PyQt5.QtWidgets", widgets)
    monkeypatch.setattr(biometric, "_qt_app", None)

    assert biometric.qt_pin_prompt("Unlock", "PIN:") is None


def test_qt_prompt_runs_on_loop_thread():
    assert biometric.qt_pin_prompt.needs_gui_thread is True
