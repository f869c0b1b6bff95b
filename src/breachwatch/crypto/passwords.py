# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Salted PBKDF2 password hashing with constant-time verification."""

from __future__ import annotations

import hmac
import os

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

_SALT_LENGTH = 16
_KEY_LENGTH = 64
_ITERATIONS_PER_ROUND = 1000
DEFAULT_ROUNDS = 12


def _derive(password: str, salt: bytes, rounds: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=_KEY_LENGTH,
        salt=salt,
        iterations=rounds * _ITERATIONS_PER_ROUND,
    )
    return kdf.derive(password.encode("utf-8"))


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash *password* as ``"<rounds>:<salt hex>:<key hex>"``.

    *rounds* scales the iteration count (``rounds * 1000``).
    """
    if rounds < 1:
        raise ValueError("rounds must be positive")
    salt = os.urandom(_SALT_LENGTH)
    key = _derive(password, salt, rounds)
    return f"{rounds}:{salt.hex()}:{key.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """Check *password* against an encoded hash. Malformed hashes never match."""
    try:
        rounds_str, salt_hex, key_hex = encoded.split(":")
        rounds = int(rounds_str)
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(key_hex)
    except ValueError:
        return False
    if rounds < 1 or not salt or len(expected) != _KEY_LENGTH:
        return False
    candidate = _derive(password, salt, rounds)
    return hmac.compare_digest(candidate, expected)
