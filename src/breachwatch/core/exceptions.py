# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Custom exception hierarchy for breachwatch."""


class BreachwatchError(Exception):
    """Base exception for all breachwatch errors."""


class ConfigurationError(BreachwatchError):
    """Invalid or missing configuration."""


class StorageError(BreachwatchError):
    """Database or storage operation failed."""


class IncidentNotFound(BreachwatchError):
    """No incident exists with the requested identifier."""

    def __init__(self, incident_id: str) -> None:
        super().__init__(f"Incident not found: {incident_id}")
        self.incident_id = incident_id


class InvalidTransition(BreachwatchError):
    """Illegal move in the incident state machine."""

    def __init__(self, incident_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Incident {incident_id}: cannot transition from {current!r} to {requested!r}"
        )
        self.incident_id = incident_id
        self.current = current
        self.requested = requested


class EncryptionError(BreachwatchError):
    """Failed to encrypt a payload."""


class DecryptionError(BreachwatchError):
    """Ciphertext could not be authenticated or its key version is unavailable."""


class ContainmentActionFailure(BreachwatchError):
    """A single containment action failed. Collected, never raised through a transition."""

    def __init__(self, action: str, reason: str) -> None:
        super().__init__(f"Containment action {action!r} failed: {reason}")
        self.action = action
        self.reason = reason


class ConcurrentModification(BreachwatchError):
    """The incident changed in storage since it was read."""

    def __init__(self, incident_id: str, expected_version: int) -> None:
        super().__init__(
            f"Incident {incident_id} was modified concurrently "
            f"(expected stored version {expected_version})"
        )
        self.incident_id = incident_id
        self.expected_version = expected_version
