from __future__ import annotations

import pytest
from azure.identity import CredentialUnavailableError

from apim_backup.adapters.identity import Authenticator
from apim_backup.core.exceptions import (
    AuthenticationError,
    BackupOperationError,
    StorageError,
)
from apim_backup.orchestration.backup_run import BackupRunner
from tests.support.builders import make_run_settings
from tests.support.fakes import (
    FakeApimService,
    FakeBlobServiceClient,
    FakeCredential,
    FakeCredentialProvider,
    FakeManagementClient,
    RecordingFactory,
    make_blob,
    provider_error,
)

SUBSCRIPTION = "00000000-0000-0000-0000-000000000001"


def _runner(settings, provider, storage_factory, management_factory, clock):
    return BackupRunner(
        settings=settings,
        authenticator=Authenticator(provider, SUBSCRIPTION),
        clock=clock,
        storage_client_factory=storage_factory,
        management_client_factory=management_factory,
    )


def test_scenario_a_creates_container_backs_up_and_prunes_nothing(
    run_settings, credential_provider, blob_service, storage_factory, apim_service, management_factory, clock
):
    result = _runner(
        run_settings, credential_provider, storage_factory, management_factory, clock
    ).run("run-a")

    assert result.run_id == "run-a"
    assert result.container_created is True
    assert blob_service.created == [("apim-backups", None)]
    assert result.backup_blob == "apim_202610191230.bak"
    assert apim_service.calls[0]["parameters"].backup_name == "apim_202610191230.bak"
    assert result.deleted_blobs == []
    assert result.dry_run is False


def test_scenario_b_existing_container_prunes_expired(
    credential_provider, management_factory, clock
):
    service = FakeBlobServiceClient(containers=["apim-backups"])
    container = service.get_container_client("apim-backups")
    container.add(
        make_blob("apim_10d.bak", 10),
        make_blob("apim_40d.bak", 40),
        make_blob("apim_100d.bak", 100),
    )
    settings = make_run_settings(RETENTION_DAYS=30)

    result = _runner(
        settings, credential_provider, RecordingFactory(service), management_factory, clock
    ).run()

    assert result.container_created is False
    assert service.created == []
    assert sorted(result.deleted_blobs) == ["apim_100d.bak", "apim_40d.bak"]
    assert container.blob_names == ["apim_10d.bak"]


def test_scenario_c_auth_failure_stops_before_any_call(
    run_settings, storage_factory, management_factory, clock
):
    provider = FakeCredentialProvider(
        FakeCredential(error=CredentialUnavailableError(message="no identity"))
    )

    with pytest.raises(AuthenticationError):
        _runner(run_settings, provider, storage_factory, management_factory, clock).run()

    assert storage_factory.calls == []
    assert management_factory.calls == []


def test_scenario_d_backup_failure_skips_pruning(
    run_settings, credential_provider, clock
):
    service = FakeBlobServiceClient(containers=["apim-backups"])
    container = service.get_container_client("apim-backups")
    container.add(make_blob("apim_old.bak", 365))
    failing = RecordingFactory(
        FakeManagementClient(FakeApimService(error=provider_error("backup rejected")))
    )

    with pytest.raises(BackupOperationError):
        _runner(run_settings, credential_provider, RecordingFactory(service), failing, clock).run()

    assert container.list_calls == 0
    assert container.blob_names == ["apim_old.bak"]
    assert service.closed is True


def test_prune_failure_after_backup_fails_the_run(
    run_settings, credential_provider, apim_service, management_factory, clock
):
    service = FakeBlobServiceClient(containers=["apim-backups"])
    container = service.get_container_client("apim-backups")
    container.add(make_blob("apim_old.bak", 365))
    container.delete_errors["apim_old.bak"] = provider_error("forbidden")

    with pytest.raises(StorageError):
        _runner(
            run_settings, credential_provider, RecordingFactory(service), management_factory, clock
        ).run()

    # the backup itself went through
    assert len(apim_service.calls) == 1


def test_container_failure_stops_the_run(
    run_settings, credential_provider, apim_service, management_factory, clock
):
    service = FakeBlobServiceClient()
    service.list_error = provider_error("AuthorizationFailure")

    with pytest.raises(StorageError):
        _runner(
            run_settings, credential_provider, RecordingFactory(service), management_factory, clock
        ).run()

    assert apim_service.calls == []


def test_dry_run_issues_no_changes(credential_provider, management_factory, apim_service, clock):
    service = FakeBlobServiceClient()
    settings = make_run_settings(BACKUP_DRY_RUN="true", BACKUP_FILE_PREFIX="gw_")

    result = _runner(
        settings, credential_provider, RecordingFactory(service), management_factory, clock
    ).run()

    assert result.dry_run is True
    assert result.backup_blob == "gw_202610191230.bak"
    assert service.created == []
    assert apim_service.calls == []
    assert result.deleted_blobs == []
    assert service.containers == {}


def test_dry_run_with_existing_container_lists_expired_without_deleting(
    credential_provider, management_factory, apim_service, clock
):
    service = FakeBlobServiceClient(containers=["apim-backups"])
    container = service.get_container_client("apim-backups")
    container.add(make_blob("apim_old.bak", 90), make_blob("apim_new.bak", 2))
    settings = make_run_settings(BACKUP_DRY_RUN="true")

    result = _runner(
        settings, credential_provider, RecordingFactory(service), management_factory, clock
    ).run()

    assert result.deleted_blobs == ["apim_old.bak"]
    assert container.deleted == []
    assert container.blob_names == ["apim_new.bak", "apim_old.bak"]
    assert apim_service.calls == []


def test_clients_are_closed_after_success(
    run_settings, credential_provider, blob_service, storage_factory, management_factory, clock
):
    _runner(run_settings, credential_provider, storage_factory, management_factory, clock).run()

    assert blob_service.closed is True
    assert credential_provider.credential.closed is True
    assert management_factory.client.closed is True


def test_backup_timeout_is_forwarded(credential_provider, storage_factory, apim_service, management_factory, clock):
    settings = make_run_settings(BACKUP_TIMEOUT_SECONDS="1800")

    _runner(settings, credential_provider, storage_factory, management_factory, clock).run()

    assert apim_service.poller.timeouts == [1800.0]
