"""SQL Server backup/restore services for OpenEnv."""

from datetime import datetime
from pathlib import PureWindowsPath
from typing import Callable, List, Tuple

from openenv.constants import BACKUP_EXTENSION, BACKUP_TIMESTAMP_FORMAT
from openenv.errors import BackupFailedError, RestoreFailedError
from openenv.errors_catalog import actionable_error
from openenv.models import BackupFileEntry


def quote_name(name: str) -> str:
    return "[" + name.replace("]", "]]") + "]"


def quote_literal(value: str) -> str:
    return "N'" + value.replace("'", "''") + "'"


class DatabaseService:
    """Issues the backup, restore and rename statements of a clone."""

    DEFAULT_PATHS_QUERY = (
        "SELECT CAST(SERVERPROPERTY('InstanceDefaultDataPath') AS nvarchar(4000)) AS DataPath, "
        "CAST(SERVERPROPERTY('InstanceDefaultLogPath') AS nvarchar(4000)) AS LogPath"
    )

    def __init__(self, logger):
        self.logger = logger

    @staticmethod
    def backup_file_name(database_name: str, timestamp: datetime) -> str:
        return f"{database_name}_{timestamp.strftime(BACKUP_TIMESTAMP_FORMAT)}{BACKUP_EXTENSION}"

    def backup_path(self, folder: str, database_name: str, timestamp: datetime) -> str:
        return str(PureWindowsPath(folder, self.backup_file_name(database_name, timestamp)))

    def backup_database(self, client, database_name: str, backup_path: str):
        self.logger.info("Backing up %s to %s", database_name, backup_path)
        sql = (
            f"BACKUP DATABASE {quote_name(database_name)} "
            f"TO DISK = {quote_literal(backup_path)} WITH COPY_ONLY, INIT"
        )
        try:
            client.execute(sql)
        except Exception as exc:
            raise BackupFailedError(
                f"{actionable_error('backup_failed', database=database_name, path=backup_path)}\n{exc}",
                database_name=database_name,
                path=backup_path,
            ) from exc

    def read_backup_file_list(self, client, backup_path: str) -> List[BackupFileEntry]:
        rows = client.query(f"RESTORE FILELISTONLY FROM DISK = {quote_literal(backup_path)}")
        return [
            BackupFileEntry(
                logical_name=str(row["LogicalName"]),
                physical_name=str(row.get("PhysicalName") or ""),
                file_type=str(row["Type"]),
            )
            for row in rows
        ]

    def get_default_paths(self, client) -> Tuple[str, str]:
        rows = client.query(self.DEFAULT_PATHS_QUERY)
        row = rows[0] if rows else {}
        data_path = row.get("DataPath")
        log_path = row.get("LogPath") or data_path
        if not data_path:
            raise RestoreFailedError("SQL Server did not report a default data path.")
        return str(data_path), str(log_path)

    def build_file_moves(
        self,
        database_name: str,
        files: List[BackupFileEntry],
        data_path: str,
        log_path: str,
    ) -> List[Tuple[BackupFileEntry, str, str]]:
        """Returns (file, new physical path, new logical name) per backup file."""
        data_files = [entry for entry in files if entry.is_data]
        log_files = [entry for entry in files if entry.is_log]
        if not data_files or not log_files:
            raise RestoreFailedError(
                f"Backup manifest for {database_name} must list at least one data and one log file."
            )

        moves = []
        for index, entry in enumerate(data_files):
            if index == 0:
                logical, physical = database_name, f"{database_name}.mdf"
            else:
                logical, physical = f"{database_name}_{index}", f"{database_name}_{index}.ndf"
            moves.append((entry, str(PureWindowsPath(data_path, physical)), logical))

        for index, entry in enumerate(log_files):
            suffix = "" if index == 0 else f"_{index}"
            logical = f"{database_name}_log{suffix}"
            moves.append((entry, str(PureWindowsPath(log_path, f"{logical}.ldf")), logical))

        return moves

    def restore_database(
        self,
        client,
        database_name: str,
        backup_path: str,
        notify: Callable[[str], None] = lambda _message: None,
    ):
        """Restores ``backup_path`` over ``database_name``.

        There is no rollback to MULTI_USER when a later statement fails; the
        raised error says so.
        """
        action = "read backup file list"
        try:
            files = self.read_backup_file_list(client, backup_path)
            action = "read default paths"
            data_path, log_path = self.get_default_paths(client)
            action = "map backup files"
            moves = self.build_file_moves(database_name, files, data_path, log_path)

            name = quote_name(database_name)
            statements = [
                (
                    "set single user",
                    f"IF DB_ID({quote_literal(database_name)}) IS NOT NULL "
                    f"ALTER DATABASE {name} SET SINGLE_USER WITH ROLLBACK IMMEDIATE",
                ),
                ("restore", self._restore_statement(database_name, backup_path, moves)),
            ]
            for entry, _, logical in moves:
                if entry.logical_name == logical:
                    continue
                statements.append(
                    (
                        f"rename {entry.logical_name}",
                        f"ALTER DATABASE {name} MODIFY FILE "
                        f"(NAME = {quote_literal(entry.logical_name)}, NEWNAME = {quote_literal(logical)})",
                    )
                )
            statements.append(("set online", f"ALTER DATABASE {name} SET ONLINE"))
            statements.append(("set multi user", f"ALTER DATABASE {name} SET MULTI_USER"))

            for action, sql in statements:
                notify(f"{database_name}: {action}")
                self.logger.debug("Executing: %s", sql)
                client.execute(sql)
        except Exception as exc:
            raise RestoreFailedError(
                f"{actionable_error('restore_failed', database=database_name, action=action)}\n{exc}",
                database_name=database_name,
                path=backup_path,
            ) from exc

        self.logger.info("Restored %s from %s", database_name, backup_path)

    @staticmethod
    def _restore_statement(database_name: str, backup_path: str, moves) -> str:
        move_clauses = ", ".join(
            f"MOVE {quote_literal(entry.logical_name)} TO {quote_literal(physical)}"
            for entry, physical, _ in moves
        )
        return (
            f"RESTORE DATABASE {quote_name(database_name)} FROM DISK = {quote_literal(backup_path)} "
            f"WITH REPLACE, {move_clauses}"
        )
