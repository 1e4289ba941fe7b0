import pytest

from openenv.errors import UnauthorizedProductionAccessError
from openenv.models import ConnectionDescriptor, DeploymentMode
from openenv.services.config_store import ConfigStore
from openenv.services.connection_strings import ConnectionStringBuilder
from openenv.services.environment import EnvironmentResolver


class DummyLogger:
    def __init__(self):
        self.warnings = []

    def warning(self, message, *args, **_kwargs):
        self.warnings.append(message % args)


def _builder(environments_json, probe, mode):
    store = ConfigStore()
    store.initialize_from_json(environments_json)
    resolver = EnvironmentResolver(store, probe=probe)
    resolver.set_mode(mode)
    return ConnectionStringBuilder(resolver, logger=DummyLogger())


@pytest.mark.parametrize(
    "mode, expected",
    [
        (DeploymentMode.PRODUCTION, "Orders_Live"),
        (DeploymentMode.TESTING, "Orders_Test"),
        (DeploymentMode.DEVELOPMENT, "Orders_Dev"),
        (DeploymentMode.DEVELOPMENT_UI_TEST_API, "Orders_Dev"),
    ],
)
def test_build_catalog_name(mode, expected):
    assert ConnectionStringBuilder.build_catalog_name("Orders", mode) == expected


def test_connection_string_name_to_db_name():
    assert ConnectionStringBuilder.connection_string_name_to_db_name("OrdersConnection") == "Orders"


def test_obtain_connection_string_in_testing(environments_json, fake_probe_factory):
    builder = _builder(environments_json, fake_probe_factory(), DeploymentMode.TESTING)

    value = builder.obtain_connection_string("OrdersConnection")

    assert value == (
        "Data Source=10.0.0.2;Initial Catalog=Orders_Test;Persist Security Info=True;"
        "User ID=test;Password=test-pass;Pooling=True;Max Pool Size=100;"
        "MultipleActiveResultSets=True;TrustServerCertificate=True"
    )


def test_production_without_marker_is_refused(environments_json, fake_probe_factory):
    builder = _builder(environments_json, fake_probe_factory(marker=False), DeploymentMode.PRODUCTION)

    with pytest.raises(UnauthorizedProductionAccessError, match="NOT ALLOWED"):
        builder.obtain_connection_string("Orders")


def test_production_override_skips_marker_check(environments_json, fake_probe_factory):
    builder = _builder(environments_json, fake_probe_factory(marker=False), DeploymentMode.PRODUCTION)

    value = builder.obtain_connection_string("Orders", allow_production_override=True)

    assert "Initial Catalog=Orders_Live" in value
    assert "Data Source=10.0.0.1" in value


def test_production_with_debugger_logs_caution(environments_json, fake_probe_factory):
    builder = _builder(
        environments_json,
        fake_probe_factory(marker=True, debugger=True),
        DeploymentMode.PRODUCTION,
    )

    builder.obtain_connection_string("Orders")

    assert builder.logger.warnings == [
        "< CAUTION > Debugger attached to a process using the live database Orders_Live."
    ]


def test_descriptor_renders_odbc_string(environments_json, fake_probe_factory):
    builder = _builder(environments_json, fake_probe_factory(), DeploymentMode.TESTING)

    descriptor = builder.get_connection_descriptor("Orders")

    assert descriptor.initial_catalog == "Orders_Test"
    assert descriptor.to_odbc_string("ODBC Driver 18 for SQL Server") == (
        "DRIVER={ODBC Driver 18 for SQL Server};SERVER=10.0.0.2;DATABASE=Orders_Test;"
        "UID=test;PWD=test-pass;TrustServerCertificate=yes;MARS_Connection=yes"
    )


@pytest.mark.parametrize(
    "password, rendered",
    [
        ("p;Pooling=False", 'Password="p;Pooling=False"'),
        ("O'Brien", "Password=\"O'Brien\""),
        ('say "hi"', "Password='say \"hi\"'"),
        ("it's \"both\"", 'Password="it\'s ""both"""'),
        (" padded ", 'Password=" padded "'),
    ],
)
def test_connection_string_quotes_special_values(password, rendered):
    descriptor = ConnectionDescriptor("10.0.0.2", "Orders_Test", "test", password)

    value = descriptor.to_connection_string()

    assert f";User ID=test;{rendered};Pooling=True;" in value
    assert value.count("Pooling=") == 1
