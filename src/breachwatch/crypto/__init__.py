# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Key vault and password hashing."""

from breachwatch.crypto.passwords import hash_password, verify_password
from breachwatch.crypto.vault import (
    ALGORITHM,
    EncryptedBlob,
    EncryptionKeyVersion,
    KeyVault,
    generate_secure_token,
    identify_personal_fields,
)

__all__ = [
    "ALGORITHM",
    "EncryptedBlob",
    "EncryptionKeyVersion",
    "KeyVault",
    "generate_secure_token",
    "hash_password",
    "identify_personal_fields",
    "verify_password",
]
