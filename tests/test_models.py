# Tests for the typed vault records

import re

import pytest

from lockbox.models import (
    CardItem,
    DocumentImage,
    IdentityItem,
    MediaItem,
    NoteItem,
    PasswordItem,
    VaultData,
    new_item,
    replace_item,
)


def test_new_item_sets_id_and_timestamp():
    item = new_item("passwords", title="Example", website="https://example.com", username="alice")
    assert isinstance(item, PasswordItem)
    assert re.fullmatch(r"[0-9a-f-]{36}", item.id)
    assert item.created_at.endswith("Z")


def test_new_item_ignores_caller_id():
    item = new_item("notes", id="fixed", created_at="then", title="n", content="c")
    assert item.id != "fixed"
    assert item.created_at != "then"


def test_new_item_ids_are_unique():
    ids = {new_item("notes", title="n").id for _ in range(50)}
    assert len(ids) == 50


def test_new_item_unknown_category():
    with pytest.raises(KeyError):
        new_item("recipes", title="Soup")


def test_new_item_rejects_unknown_media_and_document_types():
    with pytest.raises(ValueError):
        new_item("media", title="Song", type="audio")
    with pytest.raises(ValueError):
        new_item("identities", title="Card", document_type="Library Card")
    assert new_item("identities", title="Card", document_type="ID Card").document_type == "ID Card"


def test_replace_item_keeps_identity():
    item = new_item("passwords", title="Old", website="w", username="u")
    edited = replace_item(item, title="New", id="other", created_at="later")
    assert edited.title == "New"
    assert edited.id == item.id
    assert edited.created_at == item.created_at


def test_to_dict_uses_wire_names_and_omits_unset():
    card = CardItem(id="c1", title="Visa", created_at="t", card_holder="A", card_number="4111",
                    expiry_date="01/30", cvv="999")
    out = card.to_dict()
    assert out == {
        "id": "c1", "title": "Visa", "createdAt": "t", "cardHolder": "A",
        "cardNumber": "4111", "expiryDate": "01/30", "cvv": "999",
    }


def test_password_without_password_field():
    out = PasswordItem(id="p", title="t", created_at="c", website="w", username="u").to_dict()
    assert "password" not in out


def test_identity_images_serialize():
    identity = IdentityItem(id="i", title="ID", created_at="c", document_type="ID Card",
                            images=[DocumentImage("full", "thumb")])
    assert identity.to_dict()["images"] == [{"data": "full", "thumbnail": "thumb"}]
    assert IdentityItem.from_dict(identity.to_dict()) == identity


def test_media_from_dict_video():
    media = MediaItem.from_dict({"id": "m", "title": "v", "createdAt": "c", "type": "video",
                                 "data": "d", "thumbnail": "t"})
    assert media.type == "video"
    assert media.images is None


def test_from_dict_rejects_non_object():
    with pytest.raises(TypeError):
        NoteItem.from_dict(["not", "a", "dict"])


def test_vault_data_replace_is_whole_collection():
    data = VaultData.empty()
    note = new_item("notes", title="a", content="b")
    updated = data.replace("notes", [note])
    assert updated.notes == [note]
    assert data.notes == []
    assert updated.count() == 1


def test_vault_data_replace_rejects_wrong_type():
    with pytest.raises(TypeError):
        VaultData.empty().replace("notes", [new_item("links", title="x", url="y")])


def test_vault_data_empty_has_six_empty_categories():
    out = VaultData.empty().to_dict()
    assert out == {"passwords": [], "cards": [], "links": [], "notes": [], "media": [], "identities": []}
