"""
Serialization of vault data.

At rest a vault is its JSON text, base64-encoded as a whole. Backup files hold
plain JSON text of the form ``{vaultId: vaultData}``. Every document passes
through ``migrate()`` on the way in, which upgrades items written before media
and identity documents could hold several images.
"""

import base64
import binascii
import json
import logging
from typing import Any, Callable, Dict, Optional

from . import config
from .errors import ParseFailure
from .models import VaultData

logger = logging.getLogger(__name__)


def _is_legacy_image_item(item: Any) -> bool:
    """Single ``data``/``thumbnail`` pair and no ``images`` list. An empty list still counts as a list."""
    return (
        isinstance(item, dict)
        and bool(item.get("data"))
        and bool(item.get("thumbnail"))
        and item.get("images") is None
    )


def _move_image_into_list(item: Dict[str, Any]) -> Dict[str, Any]:
    upgraded = {k: v for k, v in item.items() if k not in ("data", "thumbnail")}
    upgraded["images"] = [{"data": item["data"], "thumbnail": item["thumbnail"]}]
    return upgraded


def upgrade_identity(item: Any) -> Any:
    """Upgrade a legacy identity document to the multi-image shape."""
    if _is_legacy_image_item(item):
        return _move_image_into_list(item)
    return item


def upgrade_media(item: Any) -> Any:
    """Upgrade a legacy photo to the multi-image shape. Videos keep data/thumbnail."""
    if _is_legacy_image_item(item) and item.get("type") == "image":
        return _move_image_into_list(item)
    return item


CATEGORY_UPGRADES: Dict[str, Callable[[Any], Any]] = {
    "identities": upgrade_identity,
    "media": upgrade_media,
}


def migrate(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Bring a raw vault document up to the current shape.

    Idempotent: current-shape items pass through unchanged. Categories missing
    from the document are added as empty lists.

    Args:
        document: Parsed JSON object of one vault

    Returns:
        A new document; the input is not modified
    """
    if not isinstance(document, dict):
        raise ParseFailure(f"Vault document must be an object, got {type(document).__name__}")

    migrated = dict(document)
    for category, upgrade in CATEGORY_UPGRADES.items():
        items = migrated.get(category)
        if isinstance(items, list):
            migrated[category] = [upgrade(item) for item in items]

    for category in config.CATEGORY_KEYS:
        if migrated.get(category) is None:
            migrated[category] = []
    return migrated


def to_vault_data(document: Any) -> VaultData:
    """Migrate a parsed document and build typed vault data from it."""
    try:
        return VaultData.from_dict(migrate(document))
    except (TypeError, ValueError, KeyError) as e:
        raise ParseFailure(f"Invalid vault document: {e}") from e


def encode(data: VaultData) -> str:
    """Serialize vault data to its at-rest string."""
    text = json.dumps(data.to_dict(), separators=(",", ":"))
    return base64.b64encode(text.encode(config.STORE_ENCODING)).decode("ascii")


def decode(raw: str) -> VaultData:
    """
    Parse an at-rest string back into vault data.

    Raises:
        ParseFailure: If the string is not base64, not JSON or not a vault
    """
    try:
        text = base64.b64decode(raw, validate=True).decode(config.STORE_ENCODING)
        document = json.loads(text)
    except (binascii.Error, UnicodeDecodeError, ValueError, TypeError) as e:
        raise ParseFailure(f"Stored vault data is corrupt: {e}") from e
    return to_vault_data(document)


def dump_backup(vault_id: str, data: VaultData) -> str:
    """Backup document text for one vault."""
    return json.dumps({vault_id: data.to_dict()}, indent=config.BACKUP_JSON_INDENT)


def parse_backup(text: str) -> Dict[str, Any]:
    """
    Parse backup file contents.

    Raises:
        ParseFailure: If the text is not a JSON object
    """
    try:
        document = json.loads(text)
    except (ValueError, TypeError) as e:
        raise ParseFailure(f"Backup file is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise ParseFailure("Backup file must contain a JSON object keyed by Vault ID")
    return document


def load_from_backup(document: Dict[str, Any], vault_id: str) -> Optional[VaultData]:
    """
    Pick one vault out of a parsed backup document.

    Returns:
        The migrated vault data, or None when the document has no entry for
        ``vault_id``
    """
    entry = document.get(vault_id)
    if not entry and not isinstance(entry, dict):
        logger.info("Backup document has no entry for the supplied Vault ID")
        return None
    return to_vault_data(entry)
