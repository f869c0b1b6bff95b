# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""breachwatch - security incident detection, risk scoring and breach-deadline response."""

__version__ = "0.1.0"

from breachwatch.core.exceptions import DecryptionError, InvalidTransition
from breachwatch.crypto.vault import EncryptedBlob, KeyVault
from breachwatch.engine import ResponseEngine, build_engine
from breachwatch.incidents.manager import IncidentManager
from breachwatch.models.anomaly import SecurityAnomaly
from breachwatch.models.incident import SecurityIncident
from breachwatch.monitor.deadlines import DeadlineMonitor
from breachwatch.risk.scorer import assess

__all__ = [
    "DeadlineMonitor",
    "DecryptionError",
    "EncryptedBlob",
    "IncidentManager",
    "InvalidTransition",
    "KeyVault",
    "ResponseEngine",
    "SecurityAnomaly",
    "SecurityIncident",
    "__version__",
    "assess",
    "build_engine",
]
