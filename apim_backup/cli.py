"""Command line entry point for the API Management backup job."""

from __future__ import annotations

import argparse
import sys
import uuid
from typing import Any, Dict, Iterable, Optional

from loguru import logger

from apim_backup import APP_VERSION
from apim_backup.adapters.identity import Authenticator, build_credential_provider
from apim_backup.core.exceptions import ConfigError
from apim_backup.logging_utils import logging_context, setup_logging
from apim_backup.observability import configure_sentry
from apim_backup.orchestration.backup_run import BackupRunner
from apim_backup.settings import (
    AuthSettings,
    RunSettings,
    load_auth_settings,
    load_run_settings,
)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2

# CLI dest -> environment variable / settings alias
_RUN_FLAGS = {
    "resource_group": "APIM_RESOURCE_GROUP_NAME",
    "instance_name": "APIM_INSTANCE_NAME",
    "storage_account_name": "STORAGE_ACCOUNT_NAME",
    "storage_account_key": "STORAGE_ACCOUNT_KEY",
    "container_name": "BLOB_CONTAINER_NAME",
    "backup_prefix": "BACKUP_FILE_PREFIX",
    "retention_days": "RETENTION_DAYS",
    "subscription_id": "AZURE_SUBSCRIPTION_ID",
    "backup_timeout": "BACKUP_TIMEOUT_SECONDS",
    "dry_run": "BACKUP_DRY_RUN",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apim-backup",
        description=(
            "Back up an Azure API Management instance to blob storage and prune "
            "backups older than the retention window. Every option falls back to "
            "the environment variable named in its help text."
        ),
    )
    parser.add_argument(
        "--resource-group", help="Resource group of the APIM instance (APIM_RESOURCE_GROUP_NAME)."
    )
    parser.add_argument("--instance-name", help="APIM service name (APIM_INSTANCE_NAME).")
    parser.add_argument(
        "--storage-account-name", help="Target storage account (STORAGE_ACCOUNT_NAME)."
    )
    parser.add_argument(
        "--storage-account-key", help="Storage account access key (STORAGE_ACCOUNT_KEY)."
    )
    parser.add_argument(
        "--container-name", help="Container dedicated to backups (BLOB_CONTAINER_NAME)."
    )
    parser.add_argument(
        "--backup-prefix", help="Backup blob name prefix, default 'apim_' (BACKUP_FILE_PREFIX)."
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        help="Delete backups older than this many days, default 30 (RETENTION_DAYS).",
    )
    parser.add_argument(
        "--subscription-id", help="Subscription of the APIM instance (AZURE_SUBSCRIPTION_ID)."
    )
    parser.add_argument(
        "--backup-timeout",
        type=float,
        help="Fail if the backup takes longer than this many seconds (BACKUP_TIMEOUT_SECONDS).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Log what would change without creating, backing up or deleting (BACKUP_DRY_RUN).",
    )
    parser.add_argument(
        "--auth-mode",
        choices=["managed_identity", "default", "client_secret"],
        help="Credential source, default managed_identity (AZURE_AUTH_MODE).",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    return parser


def _run_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    return {alias: getattr(args, dest) for dest, alias in _RUN_FLAGS.items()}


def build_runner(settings: RunSettings, auth_settings: AuthSettings) -> BackupRunner:
    provider = build_credential_provider(auth_settings)
    authenticator = Authenticator(provider=provider, subscription_id=settings.subscription_id)
    return BackupRunner(settings=settings, authenticator=authenticator)


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    setup_logging(force=True, level="DEBUG" if args.verbose else None)

    try:
        configure_sentry()
        settings = load_run_settings(_run_overrides(args))
        auth_settings = load_auth_settings({"AZURE_AUTH_MODE": args.auth_mode})
        runner = build_runner(settings, auth_settings)
    except ConfigError as exc:
        logger.error("Configuration error: {}", exc)
        return EXIT_CONFIG

    run_id = uuid.uuid4().hex[:12]
    with logging_context(run_id=run_id):
        try:
            runner.run(run_id)
        except Exception as exc:
            logger.exception("Backup run failed: {}", exc)
            return EXIT_FAILURE
        logger.info("Backup run succeeded")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
