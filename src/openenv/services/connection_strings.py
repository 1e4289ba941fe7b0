"""Connection string construction for OpenEnv."""

from openenv.constants import (
    CATALOG_SUFFIX_DEV,
    CATALOG_SUFFIX_LIVE,
    CATALOG_SUFFIX_TEST,
    CONNECTION_NAME_TOKEN,
)
from openenv.errors import UnauthorizedProductionAccessError
from openenv.errors_catalog import actionable_error
from openenv.models import ConnectionDescriptor, DbConfig, DeploymentMode


class ConnectionStringBuilder:
    """Builds SQL Server connection strings for the resolved hosting mode.

    Pooling is on with a pool of 100 connections, and MARS is enabled so a
    single connection can carry more than one active command.
    """

    def __init__(self, resolver, logger=None):
        self.resolver = resolver
        self.logger = logger

    @staticmethod
    def build_catalog_name(database_name: str, mode: DeploymentMode) -> str:
        if mode is DeploymentMode.PRODUCTION:
            suffix = CATALOG_SUFFIX_LIVE
        elif mode is DeploymentMode.TESTING:
            suffix = CATALOG_SUFFIX_TEST
        else:
            suffix = CATALOG_SUFFIX_DEV
        return f"{database_name}{suffix}"

    @staticmethod
    def build_connection_descriptor(db_config: DbConfig, catalog: str) -> ConnectionDescriptor:
        credentials = db_config.environment.sql_credentials
        return ConnectionDescriptor(
            data_source=db_config.data_source,
            initial_catalog=catalog,
            username=credentials.username,
            password=credentials.password,
        )

    @staticmethod
    def connection_string_name_to_db_name(connection_string_name: str) -> str:
        return connection_string_name.replace(CONNECTION_NAME_TOKEN, "")

    def get_current_db_config(self, db_name: str) -> DbConfig:
        entry = self.resolver.get_current_environment_config()
        return DbConfig(db_name=db_name, data_source=entry.server_ip, environment=entry)

    def get_current_catalog(self, db_name: str) -> str:
        return self.build_catalog_name(db_name, self.resolver.mode)

    def get_connection_descriptor(self, db_name: str) -> ConnectionDescriptor:
        return self.build_connection_descriptor(
            self.get_current_db_config(db_name),
            self.get_current_catalog(db_name),
        )

    def obtain_connection_string(
        self,
        connection_string_name: str,
        allow_production_override: bool = False,
    ) -> str:
        db_name = self.connection_string_name_to_db_name(connection_string_name)
        descriptor = self.get_connection_descriptor(db_name)

        if not allow_production_override and self.resolver.mode is DeploymentMode.PRODUCTION:
            probe = self.resolver.probe
            # only the production host may open the live catalog, except when reading for a clone
            if not probe.production_marker_exists():
                raise UnauthorizedProductionAccessError(
                    actionable_error(
                        "unauthorized_production",
                        name=descriptor.initial_catalog,
                        marker=probe.production_marker,
                    )
                )
            if probe.debugger_attached() and self.logger:
                self.logger.warning(
                    "< CAUTION > Debugger attached to a process using the live database %s.",
                    descriptor.initial_catalog,
                )

        return descriptor.to_connection_string()
