import json

import pytest


class FakeProbe:
    def __init__(
        self,
        app_package=False,
        primary_os=True,
        marker=False,
        debugger=False,
        production_marker=r"C:\PRODUCTION.ini",
    ):
        self.app_package = app_package
        self.primary_os = primary_os
        self.marker = marker
        self.debugger = debugger
        self.production_marker = production_marker

    def is_app_package_deployed(self):
        return self.app_package

    def is_primary_os(self):
        return self.primary_os

    def production_marker_exists(self):
        return self.marker

    def debugger_attached(self):
        return self.debugger


def _entry(server_ip, backup_location, sql_user, domain="CORP"):
    return {
        "ServerIP": server_ip,
        "BackupLocation": backup_location,
        "SqlCredentials": {"Username": sql_user, "Password": f"{sql_user}-pass"},
        "NetworkCredentials": {
            "Username": f"svc_{sql_user}",
            "Password": f"{sql_user}-net",
            "Domain": domain,
        },
    }


@pytest.fixture
def environments_payload():
    return {
        "Environments": {
            "Production": _entry("10.0.0.1", "D:\\Backups", "live"),
            "Testing": _entry("10.0.0.2", "E:\\SqlBackups", "test"),
            "Development": _entry("10.0.0.3", "D:\\DevBackups", "dev"),
        }
    }


@pytest.fixture
def environments_json(environments_payload):
    return json.dumps(environments_payload)


@pytest.fixture
def fake_probe_factory():
    return FakeProbe
