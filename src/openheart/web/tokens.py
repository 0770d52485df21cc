"""The site owner's access token.

One token per install. Typing it into the login form logs a browser
session in, and API clients may send it as ``Authorization: Bearer``.

The token is kept in the OS keychain when ``keyring`` has a usable
backend, otherwise in ``~/.openheart/.access_token`` readable only by
the owner.
"""

from __future__ import annotations

import logging
import re
import secrets
from pathlib import Path

logger = logging.getLogger(__name__)

KEYCHAIN_SERVICE = "com.openheart.reviews"
KEYCHAIN_ACCOUNT = "access_token"
TOKEN_PREFIX = "oh_"
TOKEN_FILE_PATH = Path("~/.openheart/.access_token").expanduser()
TOKEN_FILE_MODE = 0o600

# Anything shaped like an access token, for scrubbing log lines
TOKEN_PATTERN = re.compile(rf"{TOKEN_PREFIX}[A-Za-z0-9_-]{{20,}}")
MASKED_TOKEN = TOKEN_PREFIX + "****MASKED****"


class SecurityError(Exception):
    """The token file is readable by someone other than its owner."""

    pass


def generate_access_token() -> str:
    """New random token: ``oh_`` followed by 256 bits, url-safe."""
    return TOKEN_PREFIX + secrets.token_urlsafe(32)


def validate_token(provided: str, expected: str) -> bool:
    """Compare a submitted token against the install token in constant time.

    An empty submission never matches.
    """
    if not provided or not expected:
        return False
    return secrets.compare_digest(provided.encode(), expected.encode())


def mask_token(token: str) -> str:
    """Keep the prefix and a few characters, e.g. ``oh_a3f8****``."""
    if len(token) < 10:
        return "****"
    return token[:7] + "****"


def scrub_secrets(text: str) -> str:
    return TOKEN_PATTERN.sub(MASKED_TOKEN, text)


def _open_keychain():
    """The keyring module when a real backend is configured, else None."""
    try:
        import keyring
        from keyring.errors import NoKeyringError
    except ImportError:
        return None
    try:
        keyring.get_keyring()
    except NoKeyringError:
        return None
    return keyring


class AccessTokenVault:
    """Loads, saves and rotates the install access token.

    The login form calls ``current()`` on every attempt, so the token is
    cached after the first read. ``rotate()`` and ``reset()`` update the
    cache of this process only; a running server started elsewhere keeps
    its cached token until restarted.
    """

    def __init__(self, path: Path = TOKEN_FILE_PATH, use_keychain: bool = True):
        self.path = Path(path)
        self._use_keychain = use_keychain
        self._cached: str | None = None

    def _keychain(self):
        return _open_keychain() if self._use_keychain else None

    def load(self) -> str | None:
        """Stored token, or None when nothing has been generated yet.

        Raises:
            SecurityError: The token file has permissions other than 0600
        """
        keychain = self._keychain()
        if keychain is not None:
            try:
                token = keychain.get_password(KEYCHAIN_SERVICE, KEYCHAIN_ACCOUNT)
            except Exception as e:
                logger.debug(f"Keychain read failed: {e}")
            else:
                if token:
                    return token

        if not self.path.exists():
            return None
        mode = self.path.stat().st_mode & 0o777
        if mode != TOKEN_FILE_MODE:
            raise SecurityError(
                f"Token file {self.path} has mode {oct(mode)}; "
                f"run: chmod 600 {self.path}"
            )
        return self.path.read_text().strip() or None

    def save(self, token: str) -> str:
        """Store the token and return where it went ("keychain" or "file")."""
        keychain = self._keychain()
        if keychain is not None:
            try:
                keychain.set_password(KEYCHAIN_SERVICE, KEYCHAIN_ACCOUNT, token)
            except Exception as e:
                logger.warning(f"Keychain write failed ({e}), using token file")
            else:
                self._cached = token
                return "keychain"

        self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        self.path.touch(mode=TOKEN_FILE_MODE, exist_ok=True)
        self.path.chmod(TOKEN_FILE_MODE)
        self.path.write_text(token)
        logger.warning(f"No keychain available, token kept in {self.path}")
        self._cached = token
        return "file"

    def remove(self) -> bool:
        """Delete the token everywhere. Returns True if anything was removed."""
        removed = False
        keychain = self._keychain()
        if keychain is not None:
            try:
                keychain.delete_password(KEYCHAIN_SERVICE, KEYCHAIN_ACCOUNT)
                removed = True
            except Exception as e:
                logger.debug(f"Keychain delete skipped: {e}")
        if self.path.exists():
            self.path.unlink()
            removed = True
        self._cached = None
        return removed

    def current(self) -> str:
        """Token the login form accepts, generated on first use."""
        if self._cached is None:
            token = self.load()
            if token is None:
                token = generate_access_token()
                self.save(token)
                logger.info(
                    "Generated access token; show it with "
                    "'openheart auth show --reveal'"
                )
            self._cached = token
        return self._cached

    def rotate(self) -> str:
        """Replace the token. Old logins stay valid; new ones need the new token."""
        token = generate_access_token()
        self.save(token)
        logger.info(f"Access token rotated to {mask_token(token)}")
        return token

    def reset(self) -> str:
        """Remove the token from every location, then generate a new one."""
        self.remove()
        return self.current()

    def forget(self) -> None:
        """Drop the cached token so the next ``current()`` re-reads storage."""
        self._cached = None


vault = AccessTokenVault()


def get_access_token() -> str:
    """Default token provider for the login form and Bearer resolver."""
    return vault.current()
