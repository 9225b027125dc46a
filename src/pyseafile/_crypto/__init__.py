"""Cryptographic primitives for the local token cache."""

from __future__ import annotations

from pyseafile._crypto.aes import IV_SIZE, KEY_SIZE, decrypt, derive_key, encrypt
from pyseafile._crypto.hashing import account_id, token_fingerprint

__all__ = [
    "IV_SIZE",
    "KEY_SIZE",
    "account_id",
    "decrypt",
    "derive_key",
    "encrypt",
    "token_fingerprint",
]
