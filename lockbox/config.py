"""
Configuration constants for the LockBox application.
"""

import os

# Application Metadata
APP_VERSION = "1.0.0"  # Use: Current version of the application. Type: str. Range: Semantic versioning string (e.g., "1.0.0")
APP_NAME = "LockBox"  # Use: Short name of the application, also used as the relying party name for biometric credentials. Type: str. Range: Any valid string.
APP_TITLE_PREFIX = f"{APP_NAME} v{APP_VERSION}"  # Use: Prefix for user-facing titles, combining name and version. Type: str (f-string). Range: Derived from APP_NAME and APP_VERSION.
APP_DISCLAIMER = (  # Use: Warning shown to the user when a vault is created. Type: str (multi-line). Range: Any valid string.
    "Your Vault ID is the master key to all your data. Anyone who knows it can\n"
    "open your vault on this device or import your backups. Write it down and keep\n"
    "it secret. It cannot be recovered if you lose it.\n"
)

# Storage Keys
VAULT_ID_KEY = "lockbox_vault_id"  # Use: Key under which the current vault identifier pointer is stored. Type: str. Range: Any string that cannot collide with a generated Vault ID.
BIOMETRIC_CREDENTIALS_KEY = "lockbox_biometric_credentials"  # Use: Key under which the credential-id to Vault ID map is stored as JSON. Type: str. Range: Any string that cannot collide with a generated Vault ID.
STORE_ENCODING = "utf-8"  # Use: Text encoding applied before base64-encoding vault records. Type: str. Range: Any codec name supported by Python.

# File and Directory Names
CONFIG_DIR_NAME = ".lockbox"  # Use: Name of the hidden directory within the user's home directory where LockBox keeps its store. Type: str. Range: Any valid directory name.
DEFAULT_STORE_FILE = "store.json"  # Use: Default filename for the persisted key-value store. Type: str. Range: Any valid filename.
STORE_PATH_ENV = "LOCKBOX_STORE"  # Use: Environment variable that overrides the key-value store path. Type: str. Range: Any environment variable name.
BACKUP_FILE_TEMPLATE = "lockbox_backup_{vault_id}.json"  # Use: Filename template for exported backups. Type: str (format string). Range: Must contain the {vault_id} placeholder.
BACKUP_JSON_INDENT = 2  # Use: Indentation used when writing backup documents. Type: int. Range: 0 or a positive integer.

# Biometric Settings
CHALLENGE_SIZE = 32  # Use: Size in bytes of the random challenge sent with each credential request. Type: int. Range: At least 16 bytes; 32 is recommended.
USER_HANDLE_SIZE = 32  # Use: Size in bytes of the random user handle bound to a new credential. Type: int. Range: 1 to 64 bytes.
CREDENTIAL_ID_SIZE = 16  # Use: Size in bytes of credential ids issued by the local authenticator. Type: int. Range: 16 to 1023 bytes.
CREDENTIAL_TIMEOUT_MS = 60000  # Use: Timeout in milliseconds passed to the platform authenticator for create/get requests. Type: int. Range: Positive integer.
RP_ID = os.environ.get("LOCKBOX_RP_ID", "localhost")  # Use: Relying party id the credentials are scoped to (the web origin host in a browser). Type: str. Range: A valid domain string.
RP_NAME = APP_NAME  # Use: Relying party display name. Type: str. Range: Any string.
USER_DISPLAY_NAME = f"{APP_NAME} User"  # Use: Display name attached to new credentials. Type: str. Range: Any string.
COSE_ALG_ES256 = -7  # Use: COSE algorithm identifier for ECDSA with P-256 and SHA-256. Type: int. Range: -7
KEYRING_SERVICE = "lockbox-authenticator"  # Use: Keyring service name under which the local authenticator keeps private keys and the PIN hash. Type: str. Range: Any string.
KEYRING_PIN_KEY = "pin_hash"  # Use: Keyring entry name holding the Argon2id hash of the authenticator PIN. Type: str. Range: Any string that is not a base64 credential id.
PIN_MIN_LENGTH = 4  # Use: Minimum PIN length accepted when the PIN is first set up. Type: int. Range: Positive integer.
PIN_PROMPT_ENTER = "Enter your PIN:"  # Use: Prompt message for the user to enter their PIN. Type: str. Range: Any descriptive string.
PIN_PROMPT_SETUP = "Set up your PIN for quick unlock:"  # Use: Prompt message shown when no PIN has been set yet. Type: str. Range: Any descriptive string.
BIOMETRIC_REASON_REGISTER = "Enable quick unlock for LockBox"  # Use: Reason shown to the user when a credential is created. Type: str. Range: Any descriptive string.
BIOMETRIC_REASON_UNLOCK = "Unlock LockBox"  # Use: Reason shown to the user when an assertion is requested. Type: str. Range: Any descriptive string.

# AI Settings
AI_API_KEY_ENV = "LOCKBOX_API_KEY"  # Use: Environment variable holding the Gemini API key. Type: str. Range: Any environment variable name.
AI_API_KEY_FALLBACK_ENV = "API_KEY"  # Use: Secondary environment variable checked for the API key. Type: str. Range: Any environment variable name.
AI_MODEL = "gemini-flash-lite-latest"  # Use: Gemini model used for idea generation and title suggestion. Type: str. Range: Any model name served by the generateContent endpoint.
AI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"  # Use: Base URL of the Gemini REST API. Type: str. Range: A valid https URL.
AI_TIMEOUT_SECONDS = 60  # Use: Timeout in seconds for a single AI request. Type: int. Range: Positive integer.

IDEA_PROMPT_TEMPLATE = (  # Use: Prompt sent to the AI service for idea generation. Type: str (format string). Range: Must contain the {topic} placeholder.
    "You are an expert UX designer and product manager brainstorming for a secure, "
    "offline-first digital vault application.\n"
    "The app currently allows users to store passwords, credit cards, bookmarks, notes, "
    "media and identity documents.\n"
    "The core concept is privacy and user control, with data stored locally and portable "
    "via an export/import system that requires a unique user-generated ID.\n\n"
    "Based on the user's topic of interest, generate creative, actionable ideas to enhance "
    "the application.\n"
    "Format your response clearly with headings and bullet points. Be concise but inspiring.\n\n"
    "User's Topic: \"{topic}\"\n\n"
    "Brainstorm now:\n"
)
TITLE_PROMPT_TEMPLATE = (  # Use: Prompt sent to the AI service to suggest a bookmark/password title from a URL. Type: str (format string). Range: Must contain the {url} placeholder.
    "Based on the URL \"{url}\", suggest a short, user-friendly title for this website. "
    "For example, for \"https://app.google.com/mail\", you should suggest \"Google Mail\". "
    "Only return the title as a plain string, without any markdown or extra text."
)

# Vault Categories
CATEGORY_KEYS = ("passwords", "cards", "links", "notes", "media", "identities")  # Use: The six category fields of every vault, in display order. Type: tuple[str]. Range: Fixed.
CATEGORIES = {  # Use: Display title and required form fields per category, for presentation collaborators. Type: dict[str, dict]. Range: One entry per CATEGORY_KEYS item.
    "passwords": {"title": "Passwords", "required": ["title", "website", "username"]},
    "cards": {"title": "Cards", "required": ["title", "cardHolder", "cardNumber", "expiryDate", "cvv"]},
    "links": {"title": "Bookmarks", "required": ["title", "url"]},
    "notes": {"title": "Notes", "required": ["title", "content"]},
    "media": {"title": "Media", "required": ["title", "type"]},
    "identities": {"title": "Identity", "required": ["documentType", "title", "images"]},
}
DOCUMENT_TYPES = ["ID Photo", "Passport Copy", "ID Card", "License", "Other"]  # Use: Allowed values for an identity item's documentType. Type: list[str]. Range: Any list of strings.
MEDIA_TYPES = ("image", "video")  # Use: Allowed values for a media item's type. Type: tuple[str]. Range: Fixed.
TABLE_PASSWORD_HIDDEN_TEXT = "••••••••"  # Use: Placeholder shown instead of secret values in listings. Type: str. Range: Any string.
