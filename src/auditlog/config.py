"""Audit configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from auditlog.constants import DEFAULT_AUDIT_TABLE_NAME, MAX_TABLE_NAME_LENGTH


class AuditSettings(BaseSettings):
    """Audit settings loaded from AUDIT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AUDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Interception
    enabled: bool = True
    table_name: str = DEFAULT_AUDIT_TABLE_NAME
    excluded_tables: list[str] = []

    # Composite keys with some zero-valued components are not looked up
    # unless this is switched on
    allow_partial_key_lookup: bool = False

    # Observability
    log_level: str = "INFO"
    json_logs: bool = False

    @field_validator("table_name")
    @classmethod
    def validate_table_name(cls, v: str) -> str:
        """Validate the audit table name.

        Args:
            v: The table name value

        Returns:
            The stripped table name

        Raises:
            ValueError: If the name is empty or too long
        """
        v = v.strip()
        if not v:
            raise ValueError("AUDIT_TABLE_NAME must not be empty")
        if len(v) > MAX_TABLE_NAME_LENGTH:
            raise ValueError(
                f"AUDIT_TABLE_NAME must be at most {MAX_TABLE_NAME_LENGTH} characters"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise the log level to upper case."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    def is_excluded(self, table_name: str) -> bool:
        """Check whether mutations of a table are never audited."""
        return table_name == self.table_name or table_name in self.excluded_tables


@lru_cache
def get_settings() -> AuditSettings:
    """Get cached settings instance."""
    return AuditSettings()
