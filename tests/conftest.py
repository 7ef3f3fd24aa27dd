from __future__ import annotations

import os

import pytest

from apim_backup.logging_utils import setup_test_logging
from tests.support.builders import make_run_settings
from tests.support.fakes import (
    REFERENCE_NOW,
    FakeApimService,
    FakeBlobServiceClient,
    FakeCredentialProvider,
    FakeManagementClient,
    RecordingFactory,
)

os.environ.setdefault("ENV", "test")

RUN_ENV_VARS = (
    "APIM_RESOURCE_GROUP_NAME",
    "APIM_INSTANCE_NAME",
    "STORAGE_ACCOUNT_NAME",
    "STORAGE_ACCOUNT_KEY",
    "BLOB_CONTAINER_NAME",
    "BACKUP_FILE_PREFIX",
    "RETENTION_DAYS",
    "AZURE_SUBSCRIPTION_ID",
    "BACKUP_TIMEOUT_SECONDS",
    "BACKUP_DRY_RUN",
    "AZURE_AUTH_MODE",
    "AZURE_CLIENT_ID",
    "AZURE_TENANT_ID",
    "AZURE_CLIENT_SECRET",
    "SENTRY_DSN",
    "SENTRY_TRACES_SAMPLE_RATE",
    "SENTRY_ENVIRONMENT",
)


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    setup_test_logging(level="DEBUG")
    yield


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's shell (or .env) from leaking into settings."""
    for key in RUN_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture
def run_settings():
    return make_run_settings()


@pytest.fixture
def clock():
    return lambda: REFERENCE_NOW


@pytest.fixture
def blob_service() -> FakeBlobServiceClient:
    return FakeBlobServiceClient()


@pytest.fixture
def storage_factory(blob_service) -> RecordingFactory:
    return RecordingFactory(blob_service)


@pytest.fixture
def apim_service() -> FakeApimService:
    return FakeApimService()


@pytest.fixture
def management_factory(apim_service) -> RecordingFactory:
    return RecordingFactory(FakeManagementClient(apim_service))


@pytest.fixture
def credential_provider() -> FakeCredentialProvider:
    return FakeCredentialProvider()
