"""Credential providers for Azure Resource Manager access.

The workflow never touches ``azure.identity`` directly; it receives an
:class:`Authenticator` wrapping one of the providers below, so tests and local
runs can substitute their own credential source.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Protocol

from azure.core.exceptions import AzureError
from azure.identity import (
    ClientSecretCredential,
    DefaultAzureCredential,
    ManagedIdentityCredential,
)
from loguru import logger

from apim_backup.core.exceptions import AuthenticationError, ConfigError
from apim_backup.settings import AuthSettings

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from azure.core.credentials import TokenCredential

MANAGEMENT_SCOPE = "https://management.azure.com/.default"


class CredentialProvider(Protocol):
    """Anything able to hand out an ``azure.core`` token credential."""

    name: str

    def get_credential(self) -> "TokenCredential": ...


@dataclass(frozen=True)
class ManagedIdentityProvider:
    """System-assigned identity, or a user-assigned one when ``client_id`` is set."""

    client_id: Optional[str] = None
    name: str = "managed_identity"

    def get_credential(self) -> "TokenCredential":
        if self.client_id:
            return ManagedIdentityCredential(client_id=self.client_id)
        return ManagedIdentityCredential()


@dataclass(frozen=True)
class DefaultChainProvider:
    """``DefaultAzureCredential`` chain: env vars, workload identity, MI, Azure CLI."""

    managed_identity_client_id: Optional[str] = None
    name: str = "default"

    def get_credential(self) -> "TokenCredential":
        return DefaultAzureCredential(
            exclude_shared_token_cache_credential=True,
            managed_identity_client_id=self.managed_identity_client_id,
        )


@dataclass(frozen=True)
class ClientSecretProvider:
    """Service principal authenticated with a client secret."""

    tenant_id: str
    client_id: str
    client_secret: str
    name: str = "client_secret"

    def get_credential(self) -> "TokenCredential":
        return ClientSecretCredential(
            tenant_id=self.tenant_id,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )


def build_credential_provider(settings: AuthSettings) -> CredentialProvider:
    """Pick the provider matching ``AZURE_AUTH_MODE``."""
    if settings.mode == "managed_identity":
        return ManagedIdentityProvider(client_id=settings.client_id)
    if settings.mode == "default":
        return DefaultChainProvider(managed_identity_client_id=settings.client_id)

    secret = settings.client_secret.get_secret_value() if settings.client_secret else ""
    missing = [
        name
        for name, value in (
            ("AZURE_TENANT_ID", settings.tenant_id),
            ("AZURE_CLIENT_ID", settings.client_id),
            ("AZURE_CLIENT_SECRET", secret),
        )
        if not value
    ]
    if missing:
        raise ConfigError(
            "client_secret auth requires " + ", ".join(missing)
        )
    return ClientSecretProvider(
        tenant_id=settings.tenant_id or "",
        client_id=settings.client_id or "",
        client_secret=secret,
    )


@dataclass(frozen=True)
class AuthContext:
    """Credential plus the subscription every management call is scoped to."""

    credential: "TokenCredential"
    subscription_id: str

    def close(self) -> None:
        close = getattr(self.credential, "close", None)
        if callable(close):
            close()


@dataclass
class Authenticator:
    provider: CredentialProvider
    subscription_id: str
    scope: str = MANAGEMENT_SCOPE

    def authenticate(self) -> AuthContext:
        """Obtain a credential and prove it works by fetching a management token.

        Raises:
            AuthenticationError: If the identity is unavailable or the token request fails.
        """
        logger.info("Authenticating with {} credential", self.provider.name)
        try:
            credential = self.provider.get_credential()
            token = credential.get_token(self.scope)
        except (AzureError, ValueError) as exc:
            logger.error("Authentication with {} failed: {}", self.provider.name, exc)
            raise AuthenticationError(
                f"Unable to authenticate using {self.provider.name} credential: {exc}"
            ) from exc

        expires = datetime.fromtimestamp(token.expires_on, tz=timezone.utc)
        logger.info(
            "Authenticated subscription={} token_expires={}",
            self.subscription_id,
            expires.isoformat(),
        )
        return AuthContext(credential=credential, subscription_id=self.subscription_id)


__all__ = [
    "MANAGEMENT_SCOPE",
    "AuthContext",
    "Authenticator",
    "ClientSecretProvider",
    "CredentialProvider",
    "DefaultChainProvider",
    "ManagedIdentityProvider",
    "build_credential_provider",
]
