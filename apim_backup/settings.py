"""Centralized job settings powered by Pydantic.

Environment matrix:

| Section | Environment Variable         | Default            | Purpose                                     |
|---------|------------------------------|--------------------|---------------------------------------------|
| Run     | `APIM_RESOURCE_GROUP_NAME`   | required           | Resource group holding the APIM instance    |
| Run     | `APIM_INSTANCE_NAME`         | required           | APIM service name                           |
| Run     | `STORAGE_ACCOUNT_NAME`       | required           | Target storage account                      |
| Run     | `STORAGE_ACCOUNT_KEY`        | required           | Access key of the target storage account    |
| Run     | `BLOB_CONTAINER_NAME`        | required           | Container dedicated to the backup stream    |
| Run     | `BACKUP_FILE_PREFIX`         | `apim_`            | Prefix of generated backup blob names       |
| Run     | `RETENTION_DAYS`             | `30`               | Age (days) after which backups are pruned   |
| Run     | `AZURE_SUBSCRIPTION_ID`      | required           | Subscription of the APIM instance           |
| Run     | `BACKUP_TIMEOUT_SECONDS`     | `None`             | Upper bound for the backup operation        |
| Run     | `BACKUP_DRY_RUN`             | `false`            | Log intended changes without applying them  |
| Auth    | `AZURE_AUTH_MODE`            | `managed_identity` | `managed_identity`, `default`, `client_secret` |
| Auth    | `AZURE_CLIENT_ID`            | `None`             | User-assigned identity / service principal  |
| Auth    | `AZURE_TENANT_ID`            | `None`             | Tenant for service principal auth           |
| Auth    | `AZURE_CLIENT_SECRET`        | `None`             | Service principal secret                    |
| Sentry  | `SENTRY_DSN`                 | `None`             | Sentry ingest DSN                           |
| Sentry  | `SENTRY_TRACES_SAMPLE_RATE`  | `0.0`              | Fraction of transactions to trace           |
| Sentry  | `SENTRY_ENVIRONMENT`         | `None`             | Deployment environment label                |

Settings source environment variables when instantiated and are frozen afterwards.
Command line flags are passed to :func:`load_run_settings` as overrides keyed by the
environment variable name, so they take precedence over the environment.
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Mapping

from pydantic import Field, SecretStr, ValidationError, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from apim_backup.core.exceptions import ConfigError

AuthMode = Literal["managed_identity", "default", "client_secret"]


def normalize_auth_mode(value: str | None) -> str:
    """Map ``Client-Secret`` style input onto an :data:`AuthMode` name; blank means ``managed_identity``."""
    return (value or "").strip().lower().replace("-", "_") or "managed_identity"


class _SettingsBase(BaseSettings):
    """Common configuration for BaseSettings subclasses."""

    model_config = SettingsConfigDict(
        env_prefix="",
        populate_by_name=True,
        extra="ignore",
        case_sensitive=True,
        frozen=True,
    )


class RunSettings(_SettingsBase):
    """Invocation parameters of a single backup run."""

    resource_group: str = Field(alias="APIM_RESOURCE_GROUP_NAME")
    instance_name: str = Field(alias="APIM_INSTANCE_NAME")
    storage_account_name: str = Field(alias="STORAGE_ACCOUNT_NAME")
    storage_account_key: SecretStr = Field(alias="STORAGE_ACCOUNT_KEY")
    container_name: str = Field(alias="BLOB_CONTAINER_NAME")
    backup_prefix: str = Field(default="apim_", alias="BACKUP_FILE_PREFIX")
    retention_days: int = Field(default=30, ge=0, alias="RETENTION_DAYS")
    subscription_id: str = Field(alias="AZURE_SUBSCRIPTION_ID")
    backup_timeout_seconds: float | None = Field(
        default=None, gt=0, alias="BACKUP_TIMEOUT_SECONDS"
    )
    dry_run: bool = Field(default=False, alias="BACKUP_DRY_RUN")

    @field_validator(
        "resource_group",
        "instance_name",
        "storage_account_name",
        "container_name",
        "subscription_id",
        mode="before",
    )
    @classmethod
    def _require_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("must not be empty")
        return value

    @field_validator("storage_account_key", mode="before")
    @classmethod
    def _require_key(cls, value: Any) -> Any:
        raw = value.get_secret_value() if isinstance(value, SecretStr) else value
        if isinstance(raw, str) and not raw.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("backup_timeout_seconds", mode="before")
    @classmethod
    def _blank_timeout(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class AuthSettings(_SettingsBase):
    """Identity used to talk to Azure Resource Manager."""

    mode: AuthMode = Field(default="managed_identity", alias="AZURE_AUTH_MODE")
    client_id: str | None = Field(default=None, alias="AZURE_CLIENT_ID")
    tenant_id: str | None = Field(default=None, alias="AZURE_TENANT_ID")
    client_secret: SecretStr | None = Field(default=None, alias="AZURE_CLIENT_SECRET")

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return normalize_auth_mode(value)
        return value


class SentrySettings(_SettingsBase):
    """Sentry SDK configuration."""

    dsn: str | None = Field(default=None, alias="SENTRY_DSN")
    traces_sample_rate: float = Field(default=0.0, alias="SENTRY_TRACES_SAMPLE_RATE")
    environment: str | None = Field(default=None, alias="SENTRY_ENVIRONMENT")

    @computed_field
    @property
    def enabled(self) -> bool:
        return bool(self.dsn)


def _describe(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "settings"
        problems.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(problems)


def load_run_settings(overrides: Mapping[str, Any] | None = None) -> RunSettings:
    """Build :class:`RunSettings` from the environment plus explicit overrides.

    Args:
        overrides: Values keyed by environment variable name. ``None`` values are ignored.

    Raises:
        ConfigError: If a required parameter is missing or a value is invalid.
    """
    values: Dict[str, Any] = {
        key: value for key, value in (overrides or {}).items() if value is not None
    }
    try:
        return RunSettings(**values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid run configuration: {_describe(exc)}") from exc


def load_auth_settings(overrides: Mapping[str, Any] | None = None) -> AuthSettings:
    values: Dict[str, Any] = {
        key: value for key, value in (overrides or {}).items() if value is not None
    }
    try:
        return AuthSettings(**values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid auth configuration: {_describe(exc)}") from exc


def get_sentry_settings() -> SentrySettings:
    try:
        return SentrySettings()
    except ValidationError as exc:
        raise ConfigError(f"Invalid Sentry configuration: {_describe(exc)}") from exc


__all__ = [
    "AuthMode",
    "AuthSettings",
    "RunSettings",
    "SentrySettings",
    "get_sentry_settings",
    "load_auth_settings",
    "load_run_settings",
    "normalize_auth_mode",
]
