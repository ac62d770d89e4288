"""Shared fixtures for the LockBox test suite."""

import os

import pytest

from lockbox.biometric import Assertion, PlatformAuthenticator
from lockbox.errors import BiometricError
from lockbox.models import DocumentImage, VaultData, new_item
from lockbox.storage import MemoryStore, StorageAdapter


class FakeAuthenticator(PlatformAuthenticator):
    """Platform authenticator that records requests instead of prompting."""

    def __init__(self, available=True):
        self.available = available
        self.fail = False
        self.assert_with = None
        self.creation_requests = []
        self.assertion_requests = []

    def is_available(self):
        return self.available

    async def create_credential(self, options):
        self.creation_requests.append(options)
        if self.fail:
            raise BiometricError("user cancelled")
        return os.urandom(16)

    async def get_assertion(self, options):
        self.assertion_requests.append(options)
        if self.fail:
            raise BiometricError("user cancelled")
        credential_id = self.assert_with or options.allow_credentials[0]
        return Assertion(credential_id=credential_id)


class FakeKeyring:
    """Stand-in for the keyring module's password API."""

    def __init__(self):
        self.entries = {}

    def get_password(self, service, key):
        return self.entries.get((service, key))

    def set_password(self, service, key, value):
        self.entries[(service, key)] = value

    def delete_password(self, service, key):
        self.entries.pop((service, key), None)


class FailingStore(MemoryStore):
    """Store whose writes fail like a full disk."""

    def set(self, key, value):
        raise OSError(28, "No space left on device")

    def remove(self, key):
        raise OSError(28, "No space left on device")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def storage(store):
    return StorageAdapter(store)


@pytest.fixture
def authenticator():
    return FakeAuthenticator()


@pytest.fixture
def sample_data():
    """A vault with one current-shape item in every category."""
    image = DocumentImage(data="data:image/png;base64,AAAA", thumbnail="data:image/jpeg;base64,BBBB")
    return VaultData(
        passwords=[new_item("passwords", title="Example", website="https://example.com",
                            username="alice", password="s3cret")],
        cards=[new_item("cards", title="Visa", card_holder="Alice Doe", card_number="4111111111111111",
                        expiry_date="12/30", cvv="123", card_front_data=image.data,
                        card_front_thumbnail=image.thumbnail)],
        links=[new_item("links", title="Docs", url="https://docs.example.com",
                        icon_url="https://docs.example.com/favicon.ico")],
        notes=[new_item("notes", title="Wifi", content="<p>guest / welcome</p>")],
        media=[
            new_item("media", title="Beach", type="image", images=[image]),
            new_item("media", title="Clip", type="video", data="data:video/mp4;base64,CCCC",
                     thumbnail="data:image/jpeg;base64,DDDD"),
        ],
        identities=[new_item("identities", title="Passport", document_type="Passport Copy",
                             images=[image, image])],
    )
