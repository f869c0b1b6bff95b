# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Versioned AES-256-GCM key vault for evidence and personal data.

Key material is derived from a master secret with PBKDF2-HMAC-SHA256 and a
version-specific context.  Every ciphertext carries the key version it was
produced with, so rotation never breaks existing blobs; only an explicit
purge does.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import secrets
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import BaseModel, ConfigDict, Field

from breachwatch.core.exceptions import ConfigurationError, DecryptionError, EncryptionError

if TYPE_CHECKING:
    from breachwatch.core.config import Settings

logger = logging.getLogger("breachwatch.crypto.vault")

ALGORITHM = "aes-256-gcm"
_KEY_LENGTH = 32
_NONCE_LENGTH = 12
_DEFAULT_KDF_ITERATIONS = 100_000
_ENCRYPTED_FIELD_PREFIX = "encrypted:"

PERSONAL_DATA_KEYWORDS = (
    "nome", "name", "email", "telefone", "phone", "cpf", "cnpj",
    "endereco", "address", "contato", "contact", "responsavel",
    "funcionarios", "employees", "salario", "salary",
)


class EncryptedBlob(BaseModel):
    """Self-describing ciphertext envelope.

    ``ciphertext`` is base64 of the GCM output (ciphertext followed by the
    16-byte authentication tag); ``iv`` is the base64 nonce.
    """

    model_config = ConfigDict(frozen=True)

    ciphertext: str
    iv: str
    key_version: int = Field(ge=1)
    algorithm: str = ALGORITHM


@dataclass(frozen=True)
class EncryptionKeyVersion:
    """One generation of derived key material."""

    version: int
    key_material: bytes = field(repr=False)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


def _associated_data(version: int, algorithm: str) -> bytes:
    return f"keyVersion:{version};alg:{algorithm}".encode()


class KeyVault:
    """Thread-safe store of versioned symmetric keys.

    Exactly one version is current at any time.  Encryptions always embed the
    version they used, so a concurrent :meth:`rotate_key` never invalidates an
    in-flight operation.
    """

    def __init__(
        self,
        master_secret: str | bytes,
        *,
        kdf_iterations: int = _DEFAULT_KDF_ITERATIONS,
        retain: int = 2,
    ) -> None:
        if not master_secret:
            raise ConfigurationError("Key vault requires a non-empty master secret")
        if isinstance(master_secret, str):
            master_secret = master_secret.encode("utf-8")
        self._master = master_secret
        self._iterations = kdf_iterations
        self._default_retain = retain
        self._lock = threading.RLock()
        self._keys: dict[int, EncryptionKeyVersion] = {}
        self._current_version = 0
        self._latest_version = 0
        self.rotate_key()

    @classmethod
    def from_settings(cls, settings: Settings) -> KeyVault:
        """Build a vault from configuration.

        Outside production an ephemeral master key is generated when none is
        configured; data encrypted with it does not survive a restart.
        """
        secret = settings.master_key.get_secret_value()
        if not secret:
            if settings.is_production:
                raise ConfigurationError(
                    "BREACHWATCH_MASTER_KEY must be set in production"
                )
            logger.warning("No master key configured, using an ephemeral key")
            secret = secrets.token_hex(32)
        return cls(
            secret,
            kdf_iterations=settings.kdf_iterations,
            retain=settings.key_retention_count,
        )

    # ------------------------------------------------------------------
    # Key lifecycle
    # ------------------------------------------------------------------

    @property
    def current_version(self) -> int:
        with self._lock:
            return self._current_version

    @property
    def versions(self) -> list[int]:
        """Available key versions, oldest first."""
        with self._lock:
            return sorted(self._keys)

    def _derive(self, version: int) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=_KEY_LENGTH,
            salt=f"breachwatch-key-v{version}".encode(),
            iterations=self._iterations,
        )
        return kdf.derive(self._master)

    def rotate_key(self) -> int:
        """Derive a new key version and make it current. Returns the new version."""
        with self._lock:
            version = self._latest_version + 1
            self._keys[version] = EncryptionKeyVersion(
                version=version, key_material=self._derive(version)
            )
            self._latest_version = version
            self._current_version = version
            logger.info(
                "Key version %d is now current (%d versions held)",
                version,
                len(self._keys),
            )
            return version

    def purge_key_versions(self, retain: int | None = None) -> list[int]:
        """Delete all but the *retain* most recent key versions.

        Blobs encrypted under a purged version can no longer be decrypted;
        use :meth:`reencrypt` to migrate them first.

        Returns:
            The purged version numbers.
        """
        keep = self._default_retain if retain is None else retain
        if keep < 1:
            raise ValueError("retain must be at least 1; the current key is never purged")
        with self._lock:
            ordered = sorted(self._keys, reverse=True)
            purged = sorted(ordered[keep:])
            for version in purged:
                del self._keys[version]
        logger.info("Purged key versions %s (remaining %s)", purged, self.versions)
        return purged

    def restore(self, versions: dict[int, datetime], latest: int) -> None:
        """Replace the held keys with *versions* (number -> creation time).

        Used to pick up rotations made by another process.  The newest of
        *versions* becomes current; *latest* is the highest number ever
        issued, so the next rotation never reuses a purged number.
        """
        if not versions:
            raise ConfigurationError("Cannot restore a key vault without key versions")
        if latest < max(versions):
            raise ConfigurationError("latest must cover every restored key version")
        keys = {
            version: EncryptionKeyVersion(
                version=version,
                key_material=self._derive(version),
                created_at=created_at,
            )
            for version, created_at in versions.items()
        }
        with self._lock:
            self._keys = keys
            self._current_version = max(keys)
            self._latest_version = latest
        logger.info(
            "Restored key versions %s (current %d)", sorted(keys), self._current_version
        )

    def _key_for(self, version: int) -> EncryptionKeyVersion | None:
        with self._lock:
            return self._keys.get(version)

    # ------------------------------------------------------------------
    # AEAD operations
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: bytes | str) -> EncryptedBlob:
        """Encrypt *plaintext* under the current key version."""
        data = plaintext.encode("utf-8") if isinstance(plaintext, str) else plaintext
        with self._lock:
            key = self._keys.get(self._current_version)
        if key is None:
            raise EncryptionError(f"Current key version {self._current_version} unavailable")

        nonce = os.urandom(_NONCE_LENGTH)
        try:
            sealed = AESGCM(key.key_material).encrypt(
                nonce, data, _associated_data(key.version, ALGORITHM)
            )
        except Exception as exc:
            logger.error("Encryption failed with key version %d", key.version)
            raise EncryptionError("Failed to encrypt data") from exc

        return EncryptedBlob(
            ciphertext=base64.b64encode(sealed).decode("ascii"),
            iv=base64.b64encode(nonce).decode("ascii"),
            key_version=key.version,
            algorithm=ALGORITHM,
        )

    def decrypt(self, blob: EncryptedBlob) -> bytes:
        """Authenticate and decrypt *blob*.

        Raises:
            DecryptionError: Unknown or purged key version, unsupported
                algorithm, malformed encoding, or failed authentication.
        """
        if blob.algorithm != ALGORITHM:
            raise DecryptionError(f"Unsupported algorithm: {blob.algorithm!r}")

        key = self._key_for(blob.key_version)
        if key is None:
            logger.error("Decryption refused: key version %d unavailable", blob.key_version)
            raise DecryptionError(f"Key version {blob.key_version} is unknown or purged")

        try:
            sealed = base64.b64decode(blob.ciphertext, validate=True)
            nonce = base64.b64decode(blob.iv, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionError("Malformed ciphertext encoding") from exc
        if len(nonce) != _NONCE_LENGTH:
            raise DecryptionError("Malformed nonce")

        try:
            return AESGCM(key.key_material).decrypt(
                nonce, sealed, _associated_data(key.version, blob.algorithm)
            )
        except InvalidTag as exc:
            logger.error("Authentication failed for key version %d", blob.key_version)
            raise DecryptionError("Ciphertext failed authentication") from exc

    def reencrypt(self, blob: EncryptedBlob) -> EncryptedBlob:
        """Rewrap *blob* under the current key version."""
        if blob.key_version == self.current_version:
            return blob
        return self.encrypt(self.decrypt(blob))

    def validate_blob(self, blob: EncryptedBlob) -> bool:
        try:
            self.decrypt(blob)
        except DecryptionError:
            return False
        return True

    # ------------------------------------------------------------------
    # Structured payloads
    # ------------------------------------------------------------------

    def encrypt_json(self, payload: dict[str, Any]) -> EncryptedBlob:
        return self.encrypt(json.dumps(payload, sort_keys=True, default=str))

    def decrypt_json(self, blob: EncryptedBlob) -> dict[str, Any]:
        return json.loads(self.decrypt(blob).decode("utf-8"))

    def encrypt_personal_fields(self, record: dict[str, Any]) -> dict[str, Any]:
        """Encrypt only the fields of *record* whose names look like personal data."""
        result = dict(record)
        for key in identify_personal_fields(record):
            value = record[key]
            if value in (None, ""):
                continue
            blob = self.encrypt(str(value))
            result[key] = _ENCRYPTED_FIELD_PREFIX + blob.model_dump_json()
        return result

    def decrypt_personal_fields(self, record: dict[str, Any]) -> dict[str, Any]:
        result = dict(record)
        for key, value in record.items():
            if isinstance(value, str) and value.startswith(_ENCRYPTED_FIELD_PREFIX):
                blob = EncryptedBlob.model_validate_json(value[len(_ENCRYPTED_FIELD_PREFIX):])
                result[key] = self.decrypt(blob).decode("utf-8")
        return result


def identify_personal_fields(record: dict[str, Any]) -> list[str]:
    """Return the keys of *record* that probably hold personal data."""
    return [
        key for key in record
        if any(keyword in key.lower() for keyword in PERSONAL_DATA_KEYWORDS)
    ]


def generate_secure_token(length: int = 32) -> str:
    """Return a random hex token of *length* bytes of entropy."""
    return secrets.token_hex(length)
