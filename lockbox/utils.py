import base64
import datetime
import os
import platform
import stat
import logging
import uuid

logger = logging.getLogger(__name__)

if platform.system() == "Windows":
    try:
        import ntsecuritycon
        import win32api
        import win32security
        WINDOWS_SECURITY_AVAILABLE = True
    except ImportError:
        logger.warning("pywin32 not fully installed, cannot set Windows file permissions securely.")
        WINDOWS_SECURITY_AVAILABLE = False
else:
    WINDOWS_SECURITY_AVAILABLE = False


def generate_identifier() -> str:
    """Return a fresh random identifier (UUID4 string) for vaults and items."""
    return str(uuid.uuid4())


def utc_timestamp() -> str:
    """Current time as an ISO-8601 string in UTC with millisecond precision."""
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def b64encode_bytes(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def b64decode_text(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"), validate=True)


def set_owner_only_permissions(filepath: str) -> bool:
    """
    Restrict a file so only the current user can read or write it.

    On POSIX this is a plain chmod 600. On Windows the file gets a protected
    DACL with one ACE for the user owning this process.

    Returns:
        False if the permissions could not be applied.
    """
    if platform.system() != "Windows":
        try:
            os.chmod(filepath, stat.S_IRUSR | stat.S_IWUSR)  # 600
        except OSError as e:
            logger.error(f"Failed to chmod {filepath}: {e}")
            return False
        return True

    if not WINDOWS_SECURITY_AVAILABLE:
        logger.warning(f"Skipping Windows file permission setting for {filepath}: pywin32 not available.")
        return False

    try:
        token = win32security.OpenProcessToken(win32api.GetCurrentProcess(), win32security.TOKEN_QUERY)
        owner_sid = win32security.GetTokenInformation(token, win32security.TokenUser)[0]

        dacl = win32security.ACL()
        dacl.AddAccessAllowedAce(
            win32security.ACL_REVISION,
            ntsecuritycon.FILE_GENERIC_READ | ntsecuritycon.FILE_GENERIC_WRITE | ntsecuritycon.DELETE,
            owner_sid
        )
        # PROTECTED drops ACEs inherited from the parent directory
        win32security.SetNamedSecurityInfo(
            filepath,
            win32security.SE_FILE_OBJECT,
            win32security.DACL_SECURITY_INFORMATION | win32security.PROTECTED_DACL_SECURITY_INFORMATION,
            None,
            None,
            dacl,
            None
        )
    except win32api.error as e:
        logger.error(f"Failed to restrict {filepath} to the current user: {e.strerror}")
        return False
    logger.debug(f"Restricted {filepath} to the current user.")
    return True
