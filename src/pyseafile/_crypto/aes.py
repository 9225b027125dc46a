"""AES-256-CFB encryption for cached API tokens.

Blobs are self-describing: a random 16-byte IV followed by the CFB
ciphertext. With ``legacy_base64`` the plaintext is base64-encoded before
encryption so blobs stay readable by older Seafile command line tools.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import os

from cryptography.hazmat.decrepit.ciphers.modes import CFB
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms

from pyseafile.exceptions import SeafileCryptoError, SeafileFormatError

IV_SIZE = 16
KEY_SIZE = 32


def derive_key(password: str) -> bytes:
    """Derive a 32-byte AES-256 key as ``SHA256(password)``.

    This is a plain hash, not a slow KDF: the key is only as strong as the
    password.
    """
    return hashlib.sha256(password.encode("utf-8")).digest()


def _check_key(key: bytes) -> None:
    if len(key) != KEY_SIZE:
        raise SeafileCryptoError(f"AES key must be {KEY_SIZE} bytes (got {len(key)})")


def encrypt(key: bytes, plaintext: bytes, *, legacy_base64: bool = True) -> bytes:
    """Encrypt *plaintext*, returning ``IV || ciphertext``.

    A fresh random IV is drawn on every call, so encrypting the same
    plaintext twice yields different blobs.

    Raises
    ------
    SeafileCryptoError
        If the key has the wrong size.
    """
    _check_key(key)
    data = base64.b64encode(plaintext) if legacy_base64 else plaintext
    iv = os.urandom(IV_SIZE)
    encryptor = Cipher(algorithms.AES(key), CFB(iv)).encryptor()
    return iv + encryptor.update(data) + encryptor.finalize()


def decrypt(key: bytes, blob: bytes, *, legacy_base64: bool = True) -> bytes:
    """Decrypt an ``IV || ciphertext`` blob produced by :func:`encrypt`.

    Raises
    ------
    SeafileFormatError
        If *blob* is shorter than one IV block, or the decrypted payload
        is not valid base64 in legacy mode (typically a wrong key).
    SeafileCryptoError
        If the key has the wrong size.
    """
    _check_key(key)
    if len(blob) < IV_SIZE:
        raise SeafileFormatError(f"ciphertext too short ({len(blob)} bytes, need at least {IV_SIZE})")
    iv, ciphertext = blob[:IV_SIZE], blob[IV_SIZE:]
    decryptor = Cipher(algorithms.AES(key), CFB(iv)).decryptor()
    data = decryptor.update(ciphertext) + decryptor.finalize()
    if not legacy_base64:
        return data
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SeafileFormatError(f"decrypted token is not valid base64: {exc}") from exc
