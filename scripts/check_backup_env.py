#!/usr/bin/env python3
"""Quick verification helper for the backup job configuration.

Run `python scripts/check_backup_env.py` from the repo root. The script inspects
the environment variables the job reads, including values from the repo's `.env`,
and exits with a non-zero status when a run would fail on configuration. Nothing
is sent to Azure.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Dict, Mapping

from dotenv import dotenv_values

from apim_backup.settings import normalize_auth_mode

ENV_FILE = Path(__file__).resolve().parents[1] / ".env"

REQUIRED = (
    "APIM_RESOURCE_GROUP_NAME",
    "APIM_INSTANCE_NAME",
    "STORAGE_ACCOUNT_NAME",
    "STORAGE_ACCOUNT_KEY",
    "BLOB_CONTAINER_NAME",
    "AZURE_SUBSCRIPTION_ID",
)

CLIENT_SECRET_VARS = ("AZURE_TENANT_ID", "AZURE_CLIENT_ID", "AZURE_CLIENT_SECRET")


def _has_value(value: str | None) -> bool:
    return bool((value or "").strip())


def _effective_env(env_file: Path | None) -> Mapping[str, str | None]:
    # real environment wins over .env, as when the job loads it
    file_values = dotenv_values(env_file) if env_file is not None and env_file.exists() else {}
    return {**file_values, **os.environ}


def summarize_env(env_file: Path | None = ENV_FILE) -> Dict[str, bool]:
    env = _effective_env(env_file)
    status = {name: _has_value(env.get(name)) for name in REQUIRED}
    if normalize_auth_mode(env.get("AZURE_AUTH_MODE")) == "client_secret":
        status.update({name: _has_value(env.get(name)) for name in CLIENT_SECRET_VARS})
    return status


def main(env_file: Path | None = ENV_FILE) -> int:
    status = summarize_env(env_file)
    print("APIM backup configuration check:\n")
    for key, present in status.items():
        flag = "OK" if present else "MISSING"
        print(f"  - {key}: {flag}")

    missing = [k for k, present in status.items() if not present]
    if missing:
        print("\nOne or more required values are missing:")
        for key in missing:
            print(f"  * {key}")
        print("\nSet them in the environment (or .env) or pass the matching CLI flags.")
        return 1

    print(
        "\nAll required values detected. Optional: BACKUP_FILE_PREFIX (apim_), "
        "RETENTION_DAYS (30)."
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
