"""
Command-line entry point for LockBox.

Each invocation loads the store, resolves the current vault from the stored
pointer, runs one command and exits. A vault unlocked by one command stays
current for the next until ``lockbox lock``.
"""

import sys
import asyncio
import getpass
import argparse
import logging
from typing import List, Optional

from . import config
from .ai import IdeaService
from .biometric import BiometricGateway, LocalAuthenticator, qt_pin_prompt
from .errors import LockBoxError, ParseFailure
from .models import new_item
from .storage import JsonFileStore, StorageAdapter, default_store_path
from .vault import VaultLifecycle

logger = logging.getLogger(__name__)

HIDDEN_FIELDS = {'password', 'cvv', 'cardNumber'}
BINARY_FIELDS = {'data', 'thumbnail', 'images', 'cardFrontData', 'cardFrontThumbnail',
                 'cardBackData', 'cardBackThumbnail'}


def terminal_pin_prompt(reason: str, prompt: str) -> Optional[str]:
    """Ask for the PIN on the terminal. Returns None when cancelled."""
    print(reason)
    try:
        pin = getpass.getpass(prompt + " ")
    except (EOFError, KeyboardInterrupt):
        return None
    return pin or None


class LockBoxCLI:
    """Wires the store, lifecycle and collaborators together for one command."""

    def __init__(self, store_path: str, pin_dialog: bool = False, out=None):
        self.store_path = store_path
        self.out = out or sys.stdout
        self.storage = StorageAdapter(JsonFileStore(store_path))
        authenticator = LocalAuthenticator(
            prompt_pin=qt_pin_prompt if pin_dialog else terminal_pin_prompt
        )
        self.biometric = BiometricGateway(self.storage, authenticator)
        self.vault = VaultLifecycle(self.storage, self.biometric)

    def echo(self, message: str = "") -> None:
        print(message, file=self.out)

    def _require_unlocked(self) -> bool:
        if not self.vault.is_unlocked():
            self.echo("No vault is unlocked. Run 'lockbox unlock ID' first.")
            return False
        return True

    def cmd_status(self, args) -> int:
        self.echo(f"Status: {self.vault.status.name}")
        if self.vault.is_unlocked():
            self.echo(f"Vault ID: {self.vault.vault_id}")
            for category in config.CATEGORY_KEYS:
                title = config.CATEGORIES[category]['title']
                self.echo(f"  {title}: {len(self.vault.data.items(category))}")
            enabled = "enabled" if self.vault.is_biometric_enabled else "disabled"
            self.echo(f"Quick unlock: {enabled}")
        return 0

    def cmd_init(self, args) -> int:
        if self.vault.is_unlocked():
            self.vault.lock()
        vault_id = self.vault.initialize()
        self.echo(f"Your new Vault ID: {vault_id}")
        self.echo(config.APP_DISCLAIMER)
        confirmed = args.yes or input("Have you saved your Vault ID? [y/N] ").strip().lower() == 'y'
        if not confirmed:
            self.vault.cancel()
            self.echo("Vault creation cancelled. Nothing was saved.")
            return 1
        self.vault.confirm()
        self.echo("Vault created and unlocked.")
        return 0

    def cmd_unlock(self, args) -> int:
        if self.vault.unlock(args.vault_id):
            self.echo("Vault unlocked.")
            return 0
        self.echo("Invalid Vault ID.")
        return 1

    def cmd_lock(self, args) -> int:
        self.vault.lock()
        self.echo("Vault locked.")
        return 0

    def cmd_export(self, args) -> int:
        if not self._require_unlocked():
            return 1
        try:
            path = self.vault.export_to_file(args.directory)
        except OSError as e:
            logger.error(f"Export failed: {e}")
            self.echo(f"Export failed: {e}")
            return 1
        self.echo(f"Backup written to {path}")
        return 0

    def cmd_import(self, args) -> int:
        try:
            imported = asyncio.run(self.vault.import_backup(args.file, args.vault_id))
        except ParseFailure:
            self.echo("Import failed. The file may be corrupt or invalid.")
            return 1
        if not imported:
            self.echo("Import failed. The Vault ID did not match the backup file.")
            return 1
        self.echo("Vault imported successfully! You are now using the imported vault.")
        return 0

    def cmd_add_password(self, args) -> int:
        if not self._require_unlocked():
            return 1
        item = new_item('passwords', title=args.title, website=args.website,
                        username=args.username, password=args.password)
        items = self.vault.data.items('passwords')
        self.vault.update_items('passwords', items + [item])
        self.echo(f"Added {item.title}.")
        return 0

    def cmd_list(self, args) -> int:
        if not self._require_unlocked():
            return 1
        categories = [args.category] if args.category else list(config.CATEGORY_KEYS)
        for category in categories:
            items = self.vault.data.items(category)
            if not items:
                continue
            self.echo(f"{config.CATEGORIES[category]['title']}:")
            for item in items:
                details = []
                for key, value in item.to_dict().items():
                    if key in ('id', 'title', 'createdAt', 'iconUrl') or key in BINARY_FIELDS or not value:
                        continue
                    shown = config.TABLE_PASSWORD_HIDDEN_TEXT if key in HIDDEN_FIELDS else str(value)[:50]
                    details.append(f"{key}={shown}")
                self.echo(f"  - {item.title}  {' '.join(details)}".rstrip())
        return 0

    def cmd_register_biometric(self, args) -> int:
        if not self._require_unlocked():
            return 1
        if not self.biometric.supported():
            self.echo("Quick unlock is not supported on this device.")
            return 1
        if asyncio.run(self.vault.register_biometric()):
            self.echo("Quick unlock enabled for this vault.")
            return 0
        self.echo("Quick unlock registration failed.")
        return 1

    def cmd_biometric_unlock(self, args) -> int:
        if asyncio.run(self.vault.unlock_with_biometric()):
            self.echo("Vault unlocked.")
            return 0
        self.echo("Quick unlock failed.")
        return 1

    def cmd_ideas(self, args) -> int:
        return self._ask_ai(lambda service: service.generate_ideas(args.topic))

    def cmd_title(self, args) -> int:
        return self._ask_ai(lambda service: service.suggest_title(args.url))

    def _ask_ai(self, call) -> int:
        service = IdeaService()
        if not service.enabled:
            self.echo(f"AI features are disabled. Set {config.AI_API_KEY_ENV} to enable them.")
            return 1
        try:
            self.echo(call(service))
        except LockBoxError as e:
            self.echo(str(e))
            return 1
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lockbox", description=config.APP_TITLE_PREFIX)
    parser.add_argument("--store", default=None, help="Path to the store file")
    parser.add_argument("--pin-dialog", action="store_true", help="Ask for the quick-unlock PIN in a dialog")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show the vault state")
    init = sub.add_parser("init", help="Create a new vault")
    init.add_argument("--yes", action="store_true", help="Confirm without asking")
    unlock = sub.add_parser("unlock", help="Unlock a vault by ID")
    unlock.add_argument("vault_id")
    sub.add_parser("lock", help="Lock the current vault")
    export = sub.add_parser("export", help="Write a backup of the current vault")
    export.add_argument("directory", nargs="?", default=".")
    imp = sub.add_parser("import", help="Import a backup file")
    imp.add_argument("file")
    imp.add_argument("vault_id")
    add = sub.add_parser("add-password", help="Add a password item")
    add.add_argument("title")
    add.add_argument("website")
    add.add_argument("username")
    add.add_argument("--password", default=None)
    lst = sub.add_parser("list", help="List items")
    lst.add_argument("category", nargs="?", choices=config.CATEGORY_KEYS)
    sub.add_parser("register-biometric", help="Enable quick unlock for the current vault")
    sub.add_parser("biometric-unlock", help="Unlock with a registered credential")
    ideas = sub.add_parser("ideas", help="Brainstorm ideas with the AI helper")
    ideas.add_argument("topic")
    title = sub.add_parser("title", help="Suggest a title for a URL")
    title.add_argument("url")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s'
    )

    cli = LockBoxCLI(args.store or default_store_path(), pin_dialog=args.pin_dialog)
    handler = getattr(cli, "cmd_" + args.command.replace("-", "_"))
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
