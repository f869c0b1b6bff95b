# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Application configuration via environment variables and .env files."""

from pathlib import Path
from typing import Annotated

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BREACHWATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
    )

    environment: str = "development"  # "development" or "production"

    # Regulatory deadlines
    notification_deadline_hours: float = 72.0
    deadline_warning_hours: float = 24.0
    deadline_scan_interval_seconds: float = 1800.0

    # Incident triage
    high_risk_subject_threshold: int = 100
    containment_action_timeout: float = 10.0

    # Key vault
    master_key: SecretStr = SecretStr("")
    kdf_iterations: int = 100_000
    key_retention_count: int = 2
    password_hash_rounds: int = 12

    # Database
    db_path: Path = Path("breachwatch.db")
    auto_migrate: bool = True

    # Audit trail
    audit_log_dir: str = ""

    # Alert recipients
    security_team_email: str = "security@example.com"
    dpo_email: str = "dpo@example.com"
    alert_timeout: float = 10.0

    # Notification channels
    notification_channels: Annotated[list[str], NoDecode] = []
    slack_webhook_url: str = ""
    webhook_urls: Annotated[list[str], NoDecode] = []
    webhook_secret: str = ""
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_from: str = ""

    @field_validator("notification_channels", "webhook_urls", mode="before")
    @classmethod
    def _parse_csv_list(cls, v: object) -> list[str]:
        if isinstance(v, str):
            return [x.strip() for x in v.split(",") if x.strip()]
        return v if isinstance(v, list) else []

    @field_validator("key_retention_count")
    @classmethod
    def _check_retention(cls, v: int) -> int:
        if v < 1:
            raise ValueError("key_retention_count must be at least 1")
        return v

    @model_validator(mode="after")
    def _check_windows(self) -> "Settings":
        if self.deadline_warning_hours >= self.notification_deadline_hours:
            raise ValueError(
                "deadline_warning_hours must be smaller than notification_deadline_hours"
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"


def get_settings() -> Settings:
    return Settings()
