from __future__ import annotations

from azure.core.exceptions import AzureError
from loguru import logger

from apim_backup.adapters.storage.context import StorageContext
from apim_backup.core.exceptions import StorageError


def container_exists(container_name: str, context: StorageContext) -> bool:
    """Return True when the account already holds a container named exactly ``container_name``."""
    try:
        containers = context.service_client.list_containers(
            name_starts_with=container_name
        )
        return any(item.name == container_name for item in containers)
    except AzureError as exc:
        logger.error(
            "Listing containers failed account={} error={}", context.account_name, exc
        )
        raise StorageError(
            f"Unable to list containers in storage account {context.account_name}: {exc}"
        ) from exc


def ensure_container(
    container_name: str, context: StorageContext, *, dry_run: bool = False
) -> bool:
    """Create ``container_name`` with private access unless it already exists.

    Returns:
        bool: True if the container was created by this call.

    Raises:
        StorageError: If listing or creation fails.
    """
    if container_exists(container_name, context):
        logger.info(
            "Container {} already exists in account {}",
            container_name,
            context.account_name,
        )
        return False

    if dry_run:
        logger.info("[dry-run] Would create private container {}", container_name)
        return False

    try:
        # public_access=None -> no anonymous read access
        context.service_client.create_container(container_name, public_access=None)
    except AzureError as exc:
        logger.error("Creating container {} failed: {}", container_name, exc)
        raise StorageError(
            f"Unable to create container {container_name}: {exc}"
        ) from exc

    logger.info(
        "Created private container {} in account {}",
        container_name,
        context.account_name,
    )
    return True


__all__ = ["container_exists", "ensure_container"]
