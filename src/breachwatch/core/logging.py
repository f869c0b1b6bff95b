# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Structured logging with sensitive data redaction.

Incident-scoped records carry ``incident_id`` (and optionally ``actor``)
through ``extra=``; the JSON formatter lifts them into top-level fields so
log pipelines can join application logs with the audit trail.
"""

import json
import logging
import re
import sys
from typing import Any

REDACT_PATTERNS = [
    re.compile(r"(master_key=)\S+"),
    re.compile(r"(Bearer\s+[a-zA-Z0-9\-._~+/]{10})[a-zA-Z0-9\-._~+/]*"),
    re.compile(r"(hooks\.slack\.com/services/[A-Z0-9]{4})[A-Za-z0-9/]*"),
    re.compile(r"(\d{3}\.\d{3}\.\d{3}-)\d{2}"),  # CPF check digits
    re.compile(r"(\b\d{1,3}:[0-9a-f]{8})[0-9a-f]{24}:[0-9a-f]{16,}"),  # password hashes
]

_CONTEXT_FIELDS = ("incident_id", "actor")


def redact_sensitive(text: str) -> str:
    for pattern in REDACT_PATTERNS:
        text = pattern.sub(r"\1[REDACTED]", text)
    return text


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_sensitive(record.getMessage()),
        }
        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = redact_sensitive(str(record.exc_info[1]))
        return json.dumps(log_entry)


class TextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        incident_id = getattr(record, "incident_id", None)
        if incident_id is not None:
            msg = f"{msg} [incident={incident_id}]"
        return redact_sensitive(msg)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure the ``breachwatch`` logger tree; repeat calls replace the handler."""
    root = logging.getLogger("breachwatch")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            TextFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    root.addHandler(handler)
