"""
Machine-Bound Cache Cipher.

Encrypts values written to the on-device key-value cache so that a copied
database file does not leak the customer's name or phone number.

Security model
--------------
- The key is derived at runtime from machine identity (hostname + OS
  username) via PBKDF2-HMAC-SHA256 with a per-machine random salt.  The
  key is never persisted.
- Values are sealed with AES-256-GCM (confidentiality + integrity) and
  stored as ``base64(nonce).base64(tag).base64(ciphertext)`` text so they
  fit the string-only storage contract.
- A value that fails to open (tampered, or the machine identity changed)
  is reported as ``None``; the cache then behaves as if empty.
"""

from __future__ import annotations

import base64
import binascii
import getpass
import os
import platform
import socket
import stat
import threading
from pathlib import Path
from typing import Optional

from Crypto.Cipher import AES
from Crypto.Hash import SHA256
from Crypto.Protocol.KDF import PBKDF2

from storefront_identity.logger import StructuredLogger


class MachineBoundCipher:
    """AES-256-GCM sealing of cache values with a machine-derived key.

    Parameters
    ----------
    salt_path:
        Location of the per-machine salt file.  Created on first use.
    logger:
        Structured logger.
    iterations:
        PBKDF2 iteration count.
    """

    _KEY_LENGTH: int = 32  # 256 bits
    _SALT_LENGTH: int = 32
    DEFAULT_ITERATIONS: int = 600_000

    def __init__(
        self,
        salt_path: Path,
        logger: StructuredLogger,
        iterations: int = DEFAULT_ITERATIONS,
    ) -> None:
        self._salt_path: Path = salt_path
        self._logger: StructuredLogger = logger
        self._iterations: int = iterations
        self._key: Optional[bytes] = None
        self._key_lock: threading.Lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: str) -> str:
        """Seal *plaintext*.

        Raises
        ------
        OSError
            If the salt file cannot be created or read.
        """
        cipher = AES.new(self._get_key(), AES.MODE_GCM)  # type: ignore[attr-defined]
        ciphertext, tag = cipher.encrypt_and_digest(plaintext.encode("utf-8"))
        return ".".join(
            base64.b64encode(part).decode("ascii")
            for part in (cipher.nonce, tag, ciphertext)
        )

    def decrypt(self, sealed: str) -> Optional[str]:
        """Open a value produced by :meth:`encrypt`, or ``None`` if it cannot be."""
        try:
            nonce_b64, tag_b64, body_b64 = sealed.split(".")
            nonce = base64.b64decode(nonce_b64, validate=True)
            tag = base64.b64decode(tag_b64, validate=True)
            ciphertext = base64.b64decode(body_b64, validate=True)
        except (ValueError, binascii.Error) as exc:
            self._logger.warning("Cached value is not a sealed payload: %s", exc)
            return None

        try:
            cipher = AES.new(self._get_key(), AES.MODE_GCM, nonce=nonce)  # type: ignore[attr-defined]
            plaintext: bytes = cipher.decrypt_and_verify(ciphertext, tag)
        except (ValueError, KeyError) as exc:
            self._logger.warning(
                "Decryption of cached value failed (corrupted data or "
                "machine identity changed): %s",
                exc,
            )
            return None

        return plaintext.decode("utf-8")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _get_key(self) -> bytes:
        """Derive the AES key once per process."""
        with self._key_lock:
            if self._key is None:
                password: str = f"{socket.gethostname()}:{getpass.getuser()}"
                self._key = PBKDF2(
                    password=password,
                    salt=self._get_or_create_salt(),
                    dkLen=self._KEY_LENGTH,
                    count=self._iterations,
                    hmac_hash_module=SHA256,
                )
            return self._key

    def _get_or_create_salt(self) -> bytes:
        """Return the per-machine salt, creating it on first run.

        Raises
        ------
        OSError
            If the salt file cannot be read or written.
        """
        if self._salt_path.exists():
            data: bytes = self._salt_path.read_bytes()
            if len(data) == self._SALT_LENGTH:
                return data
            self._logger.warning(
                "Salt file has unexpected length (%d); regenerating.", len(data),
            )

        salt: bytes = os.urandom(self._SALT_LENGTH)
        self._salt_path.parent.mkdir(parents=True, exist_ok=True)
        self._salt_path.write_bytes(salt)
        if platform.system() != "Windows":
            self._salt_path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 0o600

        self._logger.info("Per-machine cache salt created at %s.", self._salt_path)
        return salt
