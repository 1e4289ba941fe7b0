import json
import threading

import pytest

from openenv.errors import (
    AlreadyInitializedError,
    ConfigNotFoundError,
    ConfigNotInitializedError,
    EnvironmentKeyNotFoundError,
    MalformedConfigError,
)
from openenv.models import EnvironmentEntry, NetworkCredentials, SqlCredentials
from openenv.services.config_store import ConfigStore


def _payload():
    return {
        "Environments": {
            "Production": {
                "ServerIP": "10.0.0.1",
                "BackupLocation": "D:\\Backups",
                "SqlCredentials": {"Username": "sa_live", "Password": "live-pass"},
                "NetworkCredentials": {
                    "Username": "svc_live",
                    "Password": "net-pass",
                    "Domain": "CORP",
                },
            },
            "Testing": {
                "ServerIP": "10.0.0.2",
                "BackupLocation": "E:\\SqlBackups",
                "SqlCredentials": {"Username": "sa_test", "Password": "test-pass"},
                "NetworkCredentials": {
                    "Username": "svc_test",
                    "Password": "net-test",
                    "Domain": "CORP",
                },
            },
        }
    }


def test_initialize_from_json_exposes_entries():
    store = ConfigStore()

    store.initialize_from_json(json.dumps(_payload()))

    assert store.is_initialized
    assert store.get_entry("Production") == EnvironmentEntry(
        server_ip="10.0.0.1",
        backup_location="D:\\Backups",
        sql_credentials=SqlCredentials(username="sa_live", password="live-pass"),
        network_credentials=NetworkCredentials(
            username="svc_live", password="net-pass", domain="CORP"
        ),
    )
    assert store.get_entry("Testing").server_ip == "10.0.0.2"
    assert sorted(store.keys()) == ["Production", "Testing"]


def test_second_initialisation_is_rejected(tmp_path):
    config_file = tmp_path / "environments.json"
    config_file.write_text(json.dumps(_payload()), encoding="utf-8")
    store = ConfigStore()
    store.initialize_from_file(str(config_file))

    with pytest.raises(AlreadyInitializedError):
        store.initialize_from_file(str(config_file))
    with pytest.raises(AlreadyInitializedError):
        store.initialize_from_json(json.dumps(_payload()))

    assert store.get_entry("Testing").backup_location == "E:\\SqlBackups"


def test_missing_key_is_a_lookup_failure():
    store = ConfigStore()
    store.initialize_from_json(json.dumps(_payload()))

    with pytest.raises(EnvironmentKeyNotFoundError, match="Development environment configuration not found"):
        store.get_entry("Development")


def test_get_entry_before_initialisation_fails():
    with pytest.raises(ConfigNotInitializedError):
        ConfigStore().get_entry("Production")


def test_missing_file_raises_not_found(tmp_path):
    store = ConfigStore()

    with pytest.raises(ConfigNotFoundError, match="Could not FIND"):
        store.initialize_from_file(str(tmp_path / "missing.json"))

    assert not store.is_initialized


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        "null",
        "[]",
        "{}",
        '{"Environments": {}}',
        '{"Environments": {"Production": "10.0.0.1"}}',
        '{"Environments": {"Production": {"ServerIP": 10}}}',
        '{"Environments": {"Production": {"ServerIP": "10.0.0.1", "SqlCredentials": []}}}',
    ],
)
def test_malformed_payloads_are_rejected(payload):
    store = ConfigStore()

    with pytest.raises(MalformedConfigError):
        store.initialize_from_json(payload)

    assert not store.is_initialized


def test_failed_initialisation_can_be_retried():
    store = ConfigStore()
    with pytest.raises(MalformedConfigError):
        store.initialize_from_json("{}")

    store.initialize_from_json(json.dumps(_payload()))

    assert store.get_entry("Production").server_ip == "10.0.0.1"


def test_concurrent_initialisation_succeeds_once():
    store = ConfigStore()
    payload = json.dumps(_payload())
    barrier = threading.Barrier(8)
    outcomes = []
    outcomes_lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            store.initialize_from_json(payload)
            result = "ok"
        except AlreadyInitializedError:
            result = "rejected"
        with outcomes_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert outcomes.count("ok") == 1
    assert outcomes.count("rejected") == 7
