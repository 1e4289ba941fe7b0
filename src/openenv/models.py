"""Shared domain models for OpenEnv."""

import enum
from dataclasses import dataclass, field
from typing import Optional

from openenv.constants import MAX_POOL_SIZE


class DeploymentMode(enum.Enum):
    """Hosting mode of the current process. Values are for display only."""

    PRODUCTION = 1
    TESTING = 2
    DEVELOPMENT = 3
    DEVELOPMENT_UI_TEST_API = 4

    @property
    def label(self) -> str:
        return _MODE_LABELS[self]


_MODE_LABELS = {
    DeploymentMode.PRODUCTION: "Production",
    DeploymentMode.TESTING: "Testing",
    DeploymentMode.DEVELOPMENT: "Development",
    DeploymentMode.DEVELOPMENT_UI_TEST_API: "Development_UiDevTestApi",
}


@dataclass(frozen=True)
class SqlCredentials:
    username: str = ""
    password: str = ""


@dataclass(frozen=True)
class NetworkCredentials:
    username: str = ""
    password: str = ""
    domain: str = ""

    @property
    def qualified_username(self) -> str:
        if self.domain:
            return f"{self.domain}\\{self.username}"
        return self.username


@dataclass(frozen=True)
class EnvironmentEntry:
    """Per-environment bundle of server address and credentials."""

    server_ip: str
    backup_location: str = ""
    sql_credentials: SqlCredentials = field(default_factory=SqlCredentials)
    network_credentials: NetworkCredentials = field(default_factory=NetworkCredentials)


@dataclass(frozen=True)
class DbConfig:
    db_name: str
    data_source: str
    environment: EnvironmentEntry


@dataclass(frozen=True)
class ConnectionDescriptor:
    data_source: str
    initial_catalog: str
    username: str
    password: str
    pooling: bool = True
    max_pool_size: int = MAX_POOL_SIZE
    multiple_active_result_sets: bool = True
    trust_server_certificate: bool = True
    persist_security_info: bool = True

    def to_connection_string(self) -> str:
        parts = [
            ("Data Source", self.data_source),
            ("Initial Catalog", self.initial_catalog),
            ("Persist Security Info", self.persist_security_info),
            ("User ID", self.username),
            ("Password", self.password),
            ("Pooling", self.pooling),
            ("Max Pool Size", self.max_pool_size),
            ("MultipleActiveResultSets", self.multiple_active_result_sets),
            ("TrustServerCertificate", self.trust_server_certificate),
        ]
        return ";".join(f"{key}={_render_value(value)}" for key, value in parts)

    def to_odbc_string(self, driver: str) -> str:
        parts = [
            ("DRIVER", f"{{{driver}}}"),
            ("SERVER", self.data_source),
            ("DATABASE", self.initial_catalog),
            ("UID", self.username),
            ("PWD", _odbc_escape(self.password)),
            ("TrustServerCertificate", "yes" if self.trust_server_certificate else "no"),
            ("MARS_Connection", "yes" if self.multiple_active_result_sets else "no"),
        ]
        return ";".join(f"{key}={value}" for key, value in parts)

    def __str__(self) -> str:
        return self.to_connection_string()


def _render_value(value) -> str:
    if isinstance(value, bool):
        return "True" if value else "False"
    return _quote_value(str(value))


def _quote_value(value: str) -> str:
    """Quotes a keyword value the way ADO.NET connection strings expect."""
    needs_quotes = value != value.strip() or any(char in value for char in ";'\"")
    if not needs_quotes:
        return value
    if '"' in value and "'" not in value:
        return f"'{value}'"
    return '"' + value.replace('"', '""') + '"'


def _odbc_escape(value: str) -> str:
    if any(char in value for char in ";{}"):
        return "{" + value.replace("}", "}}") + "}"
    return value


@dataclass
class DbTarget:
    """One side of a clone job. ``backup_path`` is filled in while the job runs."""

    database_name: str
    data_source: str
    backup_folder: str
    environment: EnvironmentEntry
    backup_path: Optional[str] = None


@dataclass
class DbCloneJob:
    source: DbTarget
    destination: DbTarget


@dataclass(frozen=True)
class BackupFileEntry:
    logical_name: str
    physical_name: str
    file_type: str

    @property
    def is_data(self) -> bool:
        return self.file_type.upper() == "D"

    @property
    def is_log(self) -> bool:
        return self.file_type.upper() == "L"


class CloneStage(enum.Enum):
    IDLE = "idle"
    BACKING_UP = "backing_up"
    COPYING = "copying"
    RESTORING = "restoring"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class CloneProgress:
    stage: CloneStage
    message: str
    database_name: str
