"""Thin SQL Server client used by the clone pipeline."""

from typing import Any, List, Optional, Sequence

from openenv.constants import ODBC_DRIVER
from openenv.models import ConnectionDescriptor


class SqlClient:
    """Autocommit pyodbc connection. BACKUP/RESTORE refuse to run inside a transaction."""

    def __init__(self, descriptor: ConnectionDescriptor, driver: str = ODBC_DRIVER, timeout: int = 0):
        self.descriptor = descriptor
        self.driver = driver
        self.timeout = timeout
        self._connection = None

    def open(self) -> "SqlClient":
        import pyodbc

        self._connection = pyodbc.connect(
            self.descriptor.to_odbc_string(self.driver),
            autocommit=True,
            timeout=self.timeout,
        )
        return self

    def close(self):
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def execute(self, sql: str, params: Sequence[Any] = ()):
        cursor = self._require_connection().cursor()
        try:
            cursor.execute(sql, *params)
            # drain informational result sets so long-running statements complete
            while cursor.nextset():
                pass
        finally:
            cursor.close()

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[dict]:
        cursor = self._require_connection().cursor()
        try:
            cursor.execute(sql, *params)
            if cursor.description is None:
                return []
            columns = [column[0] for column in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        finally:
            cursor.close()

    def _require_connection(self):
        if self._connection is None:
            self.open()
        return self._connection

    def __enter__(self) -> "SqlClient":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return False
