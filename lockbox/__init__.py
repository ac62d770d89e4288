"""
LockBox Vault
Copyright (c) 2025

THREAT MODEL:
Vault contents are stored on this device only, base64-encoded but NOT
encrypted. The Vault ID is both the storage key and the only credential that
opens a vault. Anyone who learns it, or who can read the local store, can read
every record. Keep the Vault ID secret and keep backups somewhere safe.
"""

__version__ = "1.0.0"
