"""
Typed records stored in a LockBox vault.

Each category is its own dataclass. Field names are snake_case in Python and
camelCase on the wire; the mapping lives in each field's ``json`` metadata.
Unset optional fields are omitted from ``to_dict()`` and unknown keys are
kept in ``extra`` so documents written by newer versions survive a round trip.
"""

import dataclasses
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Dict, List, Optional, Type

from . import config
from .utils import generate_identifier, utc_timestamp


def _json(name: str, **kwargs):
    return field(metadata={"json": name}, **kwargs)


@dataclass
class DocumentImage:
    """A full-resolution image and its downscaled preview, both inline."""
    data: str
    thumbnail: str

    def to_dict(self) -> Dict[str, Any]:
        return {"data": self.data, "thumbnail": self.thumbnail}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DocumentImage':
        if not isinstance(data, dict):
            raise TypeError(f"Document image must be an object, got {type(data).__name__}")
        return cls(data=data.get("data", ""), thumbnail=data.get("thumbnail", ""))


@dataclass
class VaultItem:
    """Fields shared by every item. ``id`` and ``created_at`` never change."""
    CATEGORY: ClassVar[str] = ""

    id: str = ""
    title: str = ""
    created_at: str = _json("createdAt", default="")
    icon_url: Optional[str] = _json("iconUrl", default=None)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        out: Dict[str, Any] = {}
        for f in fields(self):
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            if f.name == "images":
                value = [image.to_dict() for image in value]
            out[f.metadata.get("json", f.name)] = value
        for key, value in self.extra.items():
            out.setdefault(key, value)
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VaultItem':
        """Create from dictionary."""
        if not isinstance(data, dict):
            raise TypeError(f"{cls.__name__} must be an object, got {type(data).__name__}")
        kwargs: Dict[str, Any] = {}
        known = set()
        for f in fields(cls):
            if f.name == "extra":
                continue
            key = f.metadata.get("json", f.name)
            known.add(key)
            if key not in data:
                continue
            value = data[key]
            if f.name == "images" and value is not None:
                value = [DocumentImage.from_dict(image) for image in value]
            kwargs[f.name] = value
        kwargs["extra"] = {k: v for k, v in data.items() if k not in known}
        return cls(**kwargs)


@dataclass
class PasswordItem(VaultItem):
    CATEGORY: ClassVar[str] = "passwords"

    website: str = ""
    username: str = ""
    password: Optional[str] = None


@dataclass
class CardItem(VaultItem):
    CATEGORY: ClassVar[str] = "cards"

    card_holder: str = _json("cardHolder", default="")
    card_number: str = _json("cardNumber", default="")
    expiry_date: str = _json("expiryDate", default="")
    cvv: str = ""
    card_front_data: Optional[str] = _json("cardFrontData", default=None)
    card_front_thumbnail: Optional[str] = _json("cardFrontThumbnail", default=None)
    card_back_data: Optional[str] = _json("cardBackData", default=None)
    card_back_thumbnail: Optional[str] = _json("cardBackThumbnail", default=None)


@dataclass
class LinkItem(VaultItem):
    CATEGORY: ClassVar[str] = "links"

    url: str = ""


@dataclass
class NoteItem(VaultItem):
    CATEGORY: ClassVar[str] = "notes"

    content: str = ""


@dataclass
class MediaItem(VaultItem):
    """Photos use ``images``; a video uses ``data`` and ``thumbnail``."""
    CATEGORY: ClassVar[str] = "media"

    type: str = "image"
    images: Optional[List[DocumentImage]] = None
    data: Optional[str] = None
    thumbnail: Optional[str] = None


@dataclass
class IdentityItem(VaultItem):
    CATEGORY: ClassVar[str] = "identities"

    document_type: str = _json("documentType", default="")
    images: List[DocumentImage] = field(default_factory=list)


ITEM_TYPES: Dict[str, Type[VaultItem]] = {
    cls.CATEGORY: cls
    for cls in (PasswordItem, CardItem, LinkItem, NoteItem, MediaItem, IdentityItem)
}


@dataclass
class VaultData:
    """The six item collections that make up one vault."""
    passwords: List[PasswordItem] = field(default_factory=list)
    cards: List[CardItem] = field(default_factory=list)
    links: List[LinkItem] = field(default_factory=list)
    notes: List[NoteItem] = field(default_factory=list)
    media: List[MediaItem] = field(default_factory=list)
    identities: List[IdentityItem] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def empty(cls) -> 'VaultData':
        return cls()

    def items(self, category: str) -> List[VaultItem]:
        _check_category(category)
        return list(getattr(self, category))

    def replace(self, category: str, items: List[VaultItem]) -> 'VaultData':
        """Return a copy with one whole category replaced."""
        _check_category(category)
        expected = ITEM_TYPES[category]
        for item in items:
            if not isinstance(item, expected):
                raise TypeError(f"{category} only holds {expected.__name__}, got {type(item).__name__}")
        return dataclasses.replace(self, **{category: list(items)})

    def count(self) -> int:
        return sum(len(getattr(self, category)) for category in config.CATEGORY_KEYS)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            category: [item.to_dict() for item in getattr(self, category)]
            for category in config.CATEGORY_KEYS
        }
        for key, value in self.extra.items():
            out.setdefault(key, value)
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VaultData':
        """Build from an already migrated document. Missing categories are empty."""
        if not isinstance(data, dict):
            raise TypeError(f"Vault data must be an object, got {type(data).__name__}")
        kwargs: Dict[str, Any] = {}
        for category in config.CATEGORY_KEYS:
            raw_items = data.get(category) or []
            if not isinstance(raw_items, list):
                raise TypeError(f"Category {category} must be a list")
            item_cls = ITEM_TYPES[category]
            kwargs[category] = [item_cls.from_dict(item) for item in raw_items]
        kwargs["extra"] = {k: v for k, v in data.items() if k not in config.CATEGORY_KEYS}
        return cls(**kwargs)


def _check_category(category: str) -> None:
    if category not in ITEM_TYPES:
        raise KeyError(f"Unknown category: {category}")


def new_item(category: str, **values) -> VaultItem:
    """
    Create a new item with a fresh random id and creation timestamp.

    Args:
        category: One of config.CATEGORY_KEYS
        **values: Category fields, using the Python attribute names

    Returns:
        The new item
    """
    _check_category(category)
    values.pop("id", None)
    values.pop("created_at", None)
    if category == "media" and values.get("type", "image") not in config.MEDIA_TYPES:
        raise ValueError(f"Unsupported media type: {values['type']}")
    if category == "identities" and values.get("document_type") and \
            values["document_type"] not in config.DOCUMENT_TYPES:
        raise ValueError(f"Unsupported document type: {values['document_type']}")
    return ITEM_TYPES[category](id=generate_identifier(), created_at=utc_timestamp(), **values)


def replace_item(item: VaultItem, **changes) -> VaultItem:
    """Apply edited fields to an item, keeping its id and creation time."""
    changes.pop("id", None)
    changes.pop("created_at", None)
    return dataclasses.replace(item, **changes)
