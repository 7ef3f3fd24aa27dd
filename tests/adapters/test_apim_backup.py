from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import pytest
from azure.mgmt.apimanagement.models import AccessType

from apim_backup.adapters.apim.backup import backup_blob_name, trigger_backup
from apim_backup.adapters.identity import AuthContext
from apim_backup.adapters.storage.context import build_storage_context
from apim_backup.core.exceptions import BackupOperationError
from tests.support.fakes import (
    REFERENCE_NOW,
    FakeApimService,
    FakeBlobServiceClient,
    FakeCredential,
    FakeManagementClient,
    FakePoller,
    RecordingFactory,
    provider_error,
)

SUBSCRIPTION = "00000000-0000-0000-0000-000000000001"


@pytest.fixture
def auth():
    return AuthContext(credential=FakeCredential(), subscription_id=SUBSCRIPTION)


@pytest.fixture
def storage():
    return build_storage_context(
        "backupsacct", "acct-key==", client_factory=RecordingFactory(FakeBlobServiceClient())
    )


def _trigger(auth, storage, factory, **kwargs):
    return trigger_backup(
        auth,
        "rg-gateway",
        "apim-prod",
        storage,
        "apim-backups",
        kwargs.pop("prefix", "apim_"),
        now=kwargs.pop("now", REFERENCE_NOW),
        client_factory=factory,
        **kwargs,
    )


def test_backup_blob_name_format():
    assert backup_blob_name("apim_", REFERENCE_NOW) == "apim_202610191230.bak"


def test_backup_blob_name_uses_utc():
    local = REFERENCE_NOW.astimezone(timezone(timedelta(hours=9)))
    assert backup_blob_name("gw-", local) == "gw-202610191230.bak"


def test_backup_blob_name_defaults_to_current_time():
    before = datetime.now(timezone.utc)
    name = backup_blob_name("apim_")
    after = datetime.now(timezone.utc)

    match = re.fullmatch(r"apim_(\d{12})\.bak", name)
    assert match
    stamp = match.group(1)
    assert stamp in {before.strftime("%Y%m%d%H%M"), after.strftime("%Y%m%d%H%M")}


def test_trigger_backup_issues_backup_to_blob(auth, storage, apim_service, management_factory):
    name = _trigger(auth, storage, management_factory)

    assert name == "apim_202610191230.bak"
    assert management_factory.calls[0]["args"] == (auth.credential, SUBSCRIPTION)

    call = apim_service.calls[0]
    assert call["resource_group_name"] == "rg-gateway"
    assert call["service_name"] == "apim-prod"
    params = call["parameters"]
    assert params.storage_account == "backupsacct"
    assert params.container_name == "apim-backups"
    assert params.backup_name == "apim_202610191230.bak"
    assert params.access_type == AccessType.ACCESS_KEY
    assert params.access_key == "acct-key=="


def test_trigger_backup_blocks_on_the_poller(auth, storage, apim_service, management_factory):
    _trigger(auth, storage, management_factory, timeout=900)

    assert apim_service.poller.timeouts == [900]
    assert management_factory.client.closed is True


def test_trigger_backup_without_timeout_waits_indefinitely(
    auth, storage, apim_service, management_factory
):
    _trigger(auth, storage, management_factory)
    assert apim_service.poller.timeouts == [None]


def test_provider_rejection_raises(auth, storage):
    service = FakeApimService(error=provider_error("service is activating"))
    factory = RecordingFactory(FakeManagementClient(service))

    with pytest.raises(BackupOperationError, match="apim-prod"):
        _trigger(auth, storage, factory)

    assert factory.client.closed is True


def test_operation_failure_while_polling_raises(auth, storage):
    service = FakeApimService(poller=FakePoller(error=provider_error("backup failed")))
    factory = RecordingFactory(FakeManagementClient(service))

    with pytest.raises(BackupOperationError):
        _trigger(auth, storage, factory)


def test_timeout_raises(auth, storage):
    service = FakeApimService(poller=FakePoller(done=False))
    factory = RecordingFactory(FakeManagementClient(service))

    with pytest.raises(BackupOperationError, match="did not finish within 5"):
        _trigger(auth, storage, factory, timeout=5)
