from __future__ import annotations

import uuid
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional

from loguru import logger

from apim_backup.adapters.apim.backup import backup_blob_name, trigger_backup
from apim_backup.adapters.identity import AuthContext, Authenticator
from apim_backup.adapters.storage.containers import ensure_container
from apim_backup.adapters.storage.context import StorageContext, build_storage_context
from apim_backup.adapters.storage.retention import prune_expired_backups
from apim_backup.core.timeutils import now_utc
from apim_backup.logging_utils import logging_context
from apim_backup.settings import RunSettings


@dataclass
class RunResult:
    run_id: str
    backup_blob: str
    container_created: bool
    deleted_blobs: List[str] = field(default_factory=list)
    dry_run: bool = False


@dataclass
class BackupRunner:
    """
    Run the backup workflow once.

    1. Authenticate (fails before any storage or management call).
    2. Build the storage context.
    3. Ensure the target container exists.
    4. Trigger the API Management backup and wait for it.
    5. Prune expired block blobs.

    Any step raising stops the run; a pruning failure after a successful backup
    still fails the run.
    """

    settings: RunSettings
    authenticator: Authenticator
    clock: Callable[[], datetime] = now_utc
    storage_client_factory: Optional[Callable[..., Any]] = None
    management_client_factory: Optional[Callable[[Any, str], Any]] = None

    def run(self, run_id: Optional[str] = None) -> RunResult:
        run_id = run_id or uuid.uuid4().hex[:12]
        with logging_context(run_id=run_id):
            return self._run(run_id)

    def _run(self, run_id: str) -> RunResult:
        s = self.settings
        logger.info(
            "Starting backup run instance={} resource_group={} container={} retention_days={} dry_run={}",
            s.instance_name,
            s.resource_group,
            s.container_name,
            s.retention_days,
            s.dry_run,
        )

        with ExitStack() as cleanup:
            auth = self.authenticator.authenticate()
            cleanup.callback(auth.close)
            context = self._storage_context()
            cleanup.callback(context.close)

            created = ensure_container(s.container_name, context, dry_run=s.dry_run)
            blob_name = self._backup(auth, context)
            deleted = prune_expired_backups(
                s.retention_days,
                s.container_name,
                context,
                now=self.clock(),
                dry_run=s.dry_run,
            )

        logger.info(
            "Backup run finished blob={} container_created={} deleted={}",
            blob_name,
            created,
            len(deleted),
        )
        return RunResult(
            run_id=run_id,
            backup_blob=blob_name,
            container_created=created,
            deleted_blobs=deleted,
            dry_run=s.dry_run,
        )

    def _storage_context(self) -> StorageContext:
        kwargs = {}
        if self.storage_client_factory is not None:
            kwargs["client_factory"] = self.storage_client_factory
        return build_storage_context(
            self.settings.storage_account_name,
            self.settings.storage_account_key.get_secret_value(),
            **kwargs,
        )

    def _backup(self, auth: AuthContext, context: StorageContext) -> str:
        s = self.settings
        if s.dry_run:
            name = backup_blob_name(s.backup_prefix, self.clock())
            logger.info(
                "[dry-run] Would back up {}/{} to {}/{}",
                s.resource_group,
                s.instance_name,
                s.container_name,
                name,
            )
            return name

        kwargs = {}
        if self.management_client_factory is not None:
            kwargs["client_factory"] = self.management_client_factory
        return trigger_backup(
            auth,
            s.resource_group,
            s.instance_name,
            context,
            s.container_name,
            s.backup_prefix,
            now=self.clock(),
            timeout=s.backup_timeout_seconds,
            **kwargs,
        )


__all__ = ["BackupRunner", "RunResult"]
