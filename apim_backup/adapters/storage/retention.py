"""Age-based pruning of backup blobs.

Every block blob in the container older than the cutoff is deleted, whatever its
name: the container is expected to be dedicated to one backup stream. Pointing
two instances (or two prefixes) at the same container means each run prunes the
other's backups too.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobType
from loguru import logger

from apim_backup.adapters.storage.context import StorageContext
from apim_backup.core.exceptions import StorageError
from apim_backup.core.timeutils import ensure_utc, now_utc


@dataclass(frozen=True)
class BlobEntry:
    name: str
    last_modified: datetime
    blob_type: str

    @classmethod
    def from_properties(cls, props) -> "BlobEntry":
        """Build an entry from an SDK ``BlobProperties`` object."""
        return cls(
            name=props.name,
            last_modified=ensure_utc(props.last_modified),
            blob_type=props.blob_type,
        )

    @property
    def is_block_blob(self) -> bool:
        return self.blob_type == BlobType.BLOCKBLOB


def compute_cutoff(retention_days: int, now: Optional[datetime] = None) -> datetime:
    """Return ``now - retention_days`` in UTC."""
    if retention_days < 0:
        raise ValueError("retention_days must be >= 0")
    return ensure_utc(now or now_utc()) - timedelta(days=retention_days)


def select_expired(entries: Iterable[BlobEntry], cutoff: datetime) -> List[BlobEntry]:
    """Block blobs modified strictly before ``cutoff``; a blob exactly at the cutoff is kept."""
    cutoff = ensure_utc(cutoff)
    return [
        entry
        for entry in entries
        if entry.is_block_blob and ensure_utc(entry.last_modified) < cutoff
    ]


def list_blob_entries(
    container_name: str, context: StorageContext, *, missing_ok: bool = False
) -> List[BlobEntry]:
    """Full listing of the container; the SDK pager follows continuation tokens.

    With ``missing_ok`` a container that does not exist lists as empty.
    """
    try:
        container = context.container_client(container_name)
        return [BlobEntry.from_properties(props) for props in container.list_blobs()]
    except ResourceNotFoundError as exc:
        if not missing_ok:
            logger.error("Listing blobs in {} failed: {}", container_name, exc)
            raise StorageError(
                f"Unable to list blobs in container {container_name}: {exc}"
            ) from exc
        logger.info("Container {} does not exist; no blobs to prune", container_name)
        return []
    except AzureError as exc:
        logger.error("Listing blobs in {} failed: {}", container_name, exc)
        raise StorageError(
            f"Unable to list blobs in container {container_name}: {exc}"
        ) from exc


def prune_expired_backups(
    retention_days: int,
    container_name: str,
    context: StorageContext,
    *,
    now: Optional[datetime] = None,
    dry_run: bool = False,
) -> List[str]:
    """Delete expired block blobs from ``container_name``.

    Args:
        retention_days: Blobs last modified more than this many days ago are removed.
        container_name: Container holding the backups.
        context: Storage account context.
        now: Reference time; defaults to the current UTC time.
        dry_run: Only log what would be deleted.

    Returns:
        List[str]: Names of the blobs deleted (or that would be deleted in dry-run).

    Raises:
        StorageError: On the first listing or deletion failure; remaining blobs are left alone.
    """
    cutoff = compute_cutoff(retention_days, now)
    logger.info(
        "Pruning backups in {} older than {} ({} days)",
        container_name,
        cutoff.isoformat(),
        retention_days,
    )
    # a dry run never creates the container, so it may still be missing here
    entries = list_blob_entries(container_name, context, missing_ok=dry_run)
    expired = select_expired(entries, cutoff)
    logger.debug("Listed {} blobs, {} expired", len(entries), len(expired))

    if not expired:
        logger.info("No expired backups found in {}", container_name)
        return []

    container = context.container_client(container_name)
    deleted: List[str] = []
    for entry in expired:
        if dry_run:
            logger.info(
                "[dry-run] Would delete blob {} last_modified={}",
                entry.name,
                entry.last_modified.isoformat(),
            )
            deleted.append(entry.name)
            continue
        try:
            container.delete_blob(entry.name)
        except AzureError as exc:
            logger.error("Deleting blob {} failed: {}", entry.name, exc)
            raise StorageError(f"Unable to delete blob {entry.name}: {exc}") from exc
        logger.info(
            "Deleted blob {} last_modified={}",
            entry.name,
            entry.last_modified.isoformat(),
        )
        deleted.append(entry.name)
    return deleted


__all__ = [
    "BlobEntry",
    "compute_cutoff",
    "list_blob_entries",
    "prune_expired_backups",
    "select_expired",
]
