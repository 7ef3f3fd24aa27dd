# apim_backup/adapters/storage/context.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from azure.storage.blob import BlobServiceClient, ContainerClient

from apim_backup.core.exceptions import ConfigError

DEFAULT_ENDPOINT_SUFFIX = "core.windows.net"

ClientFactory = Callable[..., Any]


@dataclass
class StorageContext:
    """Shared-key reference to a storage account.

    Building the context performs no network I/O; the ``BlobServiceClient`` is
    created on first use and reused for the rest of the run.
    """

    account_name: str
    account_key: str = field(repr=False)
    endpoint_suffix: str = DEFAULT_ENDPOINT_SUFFIX
    client_factory: ClientFactory = field(default=BlobServiceClient, repr=False)
    _client: Optional[Any] = field(default=None, init=False, repr=False)

    @property
    def account_url(self) -> str:
        return f"https://{self.account_name}.blob.{self.endpoint_suffix}"

    @property
    def service_client(self) -> BlobServiceClient:
        if self._client is None:
            self._client = self.client_factory(
                account_url=self.account_url,
                credential={
                    "account_name": self.account_name,
                    "account_key": self.account_key,
                },
            )
        return self._client

    def container_client(self, container_name: str) -> ContainerClient:
        return self.service_client.get_container_client(container_name)

    def close(self) -> None:
        if self._client is not None:
            close = getattr(self._client, "close", None)
            if callable(close):
                close()
            self._client = None


def build_storage_context(
    account_name: str,
    account_key: str,
    *,
    endpoint_suffix: str = DEFAULT_ENDPOINT_SUFFIX,
    client_factory: ClientFactory = BlobServiceClient,
) -> StorageContext:
    """Return a :class:`StorageContext` for ``account_name``.

    The key format is not checked here; a bad key surfaces as a storage error on
    the first call that uses it.

    Raises:
        ConfigError: If either value is missing.
    """
    name = (account_name or "").strip()
    if not name:
        raise ConfigError("storage account name is required")
    if not account_key or not account_key.strip():
        raise ConfigError("storage account key is required")
    return StorageContext(
        account_name=name,
        account_key=account_key,
        endpoint_suffix=endpoint_suffix,
        client_factory=client_factory,
    )


__all__ = ["DEFAULT_ENDPOINT_SUFFIX", "StorageContext", "build_storage_context"]
