"""
Session Token Store.

Persists the opaque session token under a single ``local_storage`` key
(``token`` by default) so a restart can restore the session.

Security model
--------------
- The token is encrypted with AES-256-GCM before it is written, so a
  copied database file does not leak a usable credential.
- The key is derived at runtime from machine identity
  (``hostname:os-user``) with PBKDF2-HMAC-SHA256 and a random 16-byte
  salt.  The key is never stored.
- The salt, nonce and tag travel with the ciphertext in one base64 blob,
  keeping the persisted state to one entry.
- A blob that fails to decode or authenticate is treated as absent.
"""

from __future__ import annotations

import base64
import binascii
import getpass
import socket
from typing import Optional

from Crypto.Cipher import AES
from Crypto.Hash import SHA256
from Crypto.Protocol.KDF import PBKDF2
from Crypto.Random import get_random_bytes

from portal.logger import StructuredLogger
from portal.services.base_service import BaseService
from portal.services.local_storage import LocalStorageService

_SALT_LEN: int = 16
_NONCE_LEN: int = 16
_TAG_LEN: int = 16
_KEY_LEN: int = 32  # 256 bits


def _machine_identity() -> str:
    return f"{socket.gethostname()}:{getpass.getuser()}"


class TokenStore(BaseService):
    """``save`` / ``load`` / ``clear`` for the persisted session token.

    Parameters
    ----------
    storage:
        Key-value storage the encrypted blob is written to.
    logger:
        Structured logger instance.
    key:
        Storage key for the token entry.
    kdf_iterations:
        PBKDF2 iteration count for the encryption key.
    identity:
        Key material; defaults to ``hostname:os-user``.
    """

    def __init__(
        self,
        storage: LocalStorageService,
        logger: StructuredLogger,
        key: str = "token",
        kdf_iterations: int = 200_000,
        identity: Optional[str] = None,
    ) -> None:
        super().__init__(logger)
        self._storage = storage
        self._key = key
        self._kdf_iterations = kdf_iterations
        self._identity = identity if identity is not None else _machine_identity()

    @property
    def key(self) -> str:
        return self._key

    def save(self, token: str) -> bool:
        """Encrypt and persist *token*, replacing any previous one."""
        salt: bytes = get_random_bytes(_SALT_LEN)
        cipher = AES.new(self._derive_key(salt), AES.MODE_GCM, nonce=get_random_bytes(_NONCE_LEN))
        ciphertext, tag = cipher.encrypt_and_digest(token.encode("utf-8"))
        blob = base64.b64encode(salt + cipher.nonce + tag + ciphertext).decode("ascii")

        saved = self._storage.set(self._key, blob)
        if not saved:
            self._logger.warning(
                "Session token could not be persisted; the session will "
                "not survive a restart."
            )
        return saved

    def load(self) -> Optional[str]:
        """Return the stored token, or ``None`` when absent or unreadable."""
        blob = self._storage.get(self._key)
        if blob is None:
            return None

        try:
            raw: bytes = base64.b64decode(blob.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as exc:
            self._logger.warning("Stored session token is not valid base64: %s", exc)
            return None

        header_len = _SALT_LEN + _NONCE_LEN + _TAG_LEN
        if len(raw) <= header_len:
            self._logger.warning("Stored session token is truncated; ignoring it.")
            return None

        salt = raw[:_SALT_LEN]
        nonce = raw[_SALT_LEN:_SALT_LEN + _NONCE_LEN]
        tag = raw[_SALT_LEN + _NONCE_LEN:header_len]
        ciphertext = raw[header_len:]

        try:
            cipher = AES.new(self._derive_key(salt), AES.MODE_GCM, nonce=nonce)
            plaintext: bytes = cipher.decrypt_and_verify(ciphertext, tag)
            return plaintext.decode("utf-8")
        except (ValueError, UnicodeDecodeError) as exc:
            self._logger.warning(
                "Stored session token failed to decrypt (corrupted data or "
                "machine identity changed): %s",
                exc,
            )
            return None

    def clear(self) -> None:
        """Remove the stored token.  Idempotent."""
        self._storage.remove(self._key)

    def _derive_key(self, salt: bytes) -> bytes:
        return PBKDF2(
            password=self._identity,
            salt=salt,
            dkLen=_KEY_LEN,
            count=self._kdf_iterations,
            hmac_hash_module=SHA256,
        )
