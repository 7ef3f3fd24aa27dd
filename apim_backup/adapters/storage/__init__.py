"""Blob storage adapters: account context, container bootstrap and retention."""

from apim_backup.adapters.storage.containers import ensure_container
from apim_backup.adapters.storage.context import StorageContext, build_storage_context
from apim_backup.adapters.storage.retention import (
    BlobEntry,
    compute_cutoff,
    prune_expired_backups,
    select_expired,
)

__all__ = [
    "BlobEntry",
    "StorageContext",
    "build_storage_context",
    "compute_cutoff",
    "ensure_container",
    "prune_expired_backups",
    "select_expired",
]
