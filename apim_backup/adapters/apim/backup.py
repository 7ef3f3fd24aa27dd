from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from azure.core.exceptions import AzureError
from azure.mgmt.apimanagement import ApiManagementClient
from azure.mgmt.apimanagement.models import (
    AccessType,
    ApiManagementServiceBackupRestoreParameters,
)
from loguru import logger

from apim_backup.adapters.identity import AuthContext
from apim_backup.adapters.storage.context import StorageContext
from apim_backup.core.exceptions import BackupOperationError
from apim_backup.core.timeutils import minute_stamp, now_utc

BACKUP_SUFFIX = ".bak"

ManagementClientFactory = Callable[[Any, str], Any]


def backup_blob_name(prefix: str, now: Optional[datetime] = None) -> str:
    """``<prefix><YYYYMMDDHHmm>.bak`` using UTC.

    Two runs within the same minute and prefix produce the same name.
    """
    return f"{prefix}{minute_stamp(now or now_utc())}{BACKUP_SUFFIX}"


def _default_client_factory(credential: Any, subscription_id: str) -> ApiManagementClient:
    return ApiManagementClient(credential=credential, subscription_id=subscription_id)


def trigger_backup(
    auth: AuthContext,
    resource_group: str,
    instance_name: str,
    context: StorageContext,
    container_name: str,
    backup_prefix: str,
    *,
    now: Optional[datetime] = None,
    timeout: Optional[float] = None,
    client_factory: ManagementClientFactory = _default_client_factory,
) -> str:
    """Back up an API Management instance into ``container_name`` and wait for it.

    The management call is a long-running operation; this blocks on the poller
    until the service reports completion. Retries are whatever the SDK pipeline
    applies by default.

    Returns:
        str: Name of the blob the backup was written to.

    Raises:
        BackupOperationError: If the service rejects or fails the operation, or
            ``timeout`` seconds pass without completion.
    """
    blob_name = backup_blob_name(backup_prefix, now)
    logger.info(
        "Backing up API Management instance {}/{} to {}/{}/{}",
        resource_group,
        instance_name,
        context.account_name,
        container_name,
        blob_name,
    )
    parameters = ApiManagementServiceBackupRestoreParameters(
        storage_account=context.account_name,
        container_name=container_name,
        backup_name=blob_name,
        access_type=AccessType.ACCESS_KEY,
        access_key=context.account_key,
    )

    try:
        with client_factory(auth.credential, auth.subscription_id) as client:
            poller = client.api_management_service.begin_backup(
                resource_group, instance_name, parameters
            )
            result = poller.result(timeout=timeout)
            if not poller.done():
                raise BackupOperationError(
                    f"Backup of {instance_name} did not finish within {timeout} seconds"
                )
    except AzureError as exc:
        logger.error("Backup of {} failed: {}", instance_name, exc)
        raise BackupOperationError(
            f"Backup of API Management instance {instance_name} failed: {exc}"
        ) from exc

    state = getattr(result, "provisioning_state", None)
    logger.info(
        "Backup completed blob={} provisioning_state={}", blob_name, state or "-"
    )
    return blob_name


__all__ = ["BACKUP_SUFFIX", "backup_blob_name", "trigger_backup"]
