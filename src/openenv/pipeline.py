"""Database clone pipeline: backup, copy across shares, restore."""

import enum
import logging
import shutil
import threading
import time
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Set, Tuple

from .constants import COPY_RETRY_COUNT, COPY_RETRY_DELAY_SECONDS, MASTER_CATALOG
from .errors import (
    BackupFailedError,
    CloneError,
    CloneInProgressError,
    CopyFailedError,
    RestoreFailedError,
    ShareSessionError,
)
from .errors_catalog import actionable_error
from .models import (
    CloneProgress,
    CloneStage,
    DbCloneJob,
    DbConfig,
    DbTarget,
)
from .services.command_runner import CommandRunner
from .services.connection_strings import ConnectionStringBuilder
from .services.database import DatabaseService
from .services.network_share import open_share_session, share_root, to_unc_path
from .services.sql_client import SqlClient

logger = logging.getLogger("openenv")


class FailureKind(enum.Enum):
    TRANSIENT = "transient"
    FATAL = "fatal"


@dataclass(frozen=True)
class CopyFailure:
    kind: FailureKind
    error: BaseException


_FATAL_OS_ERRORS = (FileNotFoundError, PermissionError, IsADirectoryError, NotADirectoryError)


def classify_copy_error(exc: BaseException) -> FailureKind:
    if isinstance(exc, _FATAL_OS_ERRORS):
        return FailureKind.FATAL
    if isinstance(exc, OSError):
        return FailureKind.TRANSIENT
    return FailureKind.FATAL


def build_clone_job(
    config_store,
    source_db: str,
    source_key: str,
    destination_db: str,
    destination_key: str,
) -> DbCloneJob:
    def target(database_name: str, key: str) -> DbTarget:
        entry = config_store.get_entry(key)
        return DbTarget(
            database_name=database_name,
            data_source=entry.server_ip,
            backup_folder=entry.backup_location,
            environment=entry,
        )

    return DbCloneJob(
        source=target(source_db, source_key),
        destination=target(destination_db, destination_key),
    )


class ClonePipeline:
    """Runs one Backup -> Copy -> Restore clone at a time per destination database."""

    _registry_lock = threading.Lock()
    _active_destinations: Set[Tuple[str, str]] = set()

    def __init__(
        self,
        database_service: Optional[DatabaseService] = None,
        run_cmd: Optional[Callable] = None,
        sql_client_factory: Callable = SqlClient,
        session_factory: Callable = open_share_session,
        copy_file: Callable[[str, str], object] = shutil.copyfile,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = datetime.now,
        progress: Optional[Callable[[CloneProgress], None]] = None,
        retry_count: int = COPY_RETRY_COUNT,
        retry_delay_seconds: float = COPY_RETRY_DELAY_SECONDS,
    ):
        self.database_service = database_service or DatabaseService(logger=logger)
        self.run_cmd = run_cmd or CommandRunner(logger=logger).run
        self.sql_client_factory = sql_client_factory
        self.session_factory = session_factory
        self.copy_file = copy_file
        self.sleep = sleep
        self.clock = clock
        self.progress = progress
        self.retry_count = retry_count
        self.retry_delay_seconds = retry_delay_seconds
        self.stage = CloneStage.IDLE

    def clone(self, job: DbCloneJob, cancel_event: Optional[threading.Event] = None) -> str:
        destination_key = (
            job.destination.data_source.lower(),
            job.destination.database_name.lower(),
        )
        self._claim_destination(destination_key, job.destination)
        try:
            return self._run(job, cancel_event)
        finally:
            with self._registry_lock:
                self._active_destinations.discard(destination_key)

    def _run(self, job: DbCloneJob, cancel_event: Optional[threading.Event]) -> str:
        source, destination = job.source, job.destination
        timestamp = self.clock()

        try:
            source.backup_path = self.database_service.backup_path(
                source.backup_folder, source.database_name, timestamp
            )
            destination.backup_path = self.database_service.backup_path(
                destination.backup_folder, destination.database_name, timestamp
            )
            # share paths are checked before the source backup starts
            source_unc, destination_unc = self._unc_paths(source, destination)

            self._notify(CloneStage.BACKING_UP, f"Backing up {source.database_name}", source)
            self._backup(source)

            self._notify(CloneStage.COPYING, f"Copying {source.backup_path}", destination)
            self._copy_with_retry(source, destination, source_unc, destination_unc, cancel_event)

            self._notify(CloneStage.RESTORING, f"Restoring {destination.database_name}", destination)
            self._restore(destination)
        except CloneError as exc:
            self._notify(CloneStage.FAILED, f"{exc.step} failed: {exc}", destination)
            raise

        self._notify(
            CloneStage.DONE,
            f"Cloned {source.database_name} into {destination.database_name}",
            destination,
        )
        return destination.backup_path

    @staticmethod
    def _unc_paths(source: DbTarget, destination: DbTarget) -> Tuple[str, str]:
        try:
            paths = (
                to_unc_path(source.data_source, source.backup_path),
                to_unc_path(destination.data_source, destination.backup_path),
            )
            for path in paths:
                share_root(path)
        except ShareSessionError as exc:
            raise CopyFailedError(
                str(exc), database_name=destination.database_name, path=destination.backup_path
            ) from exc
        return paths

    def _backup(self, source: DbTarget):
        try:
            client = self._sql_client(source).open()
        except Exception as exc:
            raise BackupFailedError(
                f"Could not connect to source server {source.data_source}: {exc}",
                database_name=source.database_name,
                path=source.backup_path,
            ) from exc

        try:
            self.database_service.backup_database(client, source.database_name, source.backup_path)
        finally:
            client.close()

    def _restore(self, destination: DbTarget):
        try:
            client = self._sql_client(destination).open()
        except Exception as exc:
            raise RestoreFailedError(
                f"Could not connect to destination server {destination.data_source}: {exc}",
                database_name=destination.database_name,
                path=destination.backup_path,
            ) from exc

        try:
            self.database_service.restore_database(
                client,
                destination.database_name,
                destination.backup_path,
                notify=lambda message: self._notify(CloneStage.RESTORING, message, destination),
            )
        finally:
            client.close()

    def _copy_with_retry(
        self,
        source: DbTarget,
        destination: DbTarget,
        source_unc: str,
        destination_unc: str,
        cancel_event: Optional[threading.Event],
    ):
        max_attempts = self.retry_count + 1

        for attempt in range(1, max_attempts + 1):
            failure = self._attempt_copy(source, destination, source_unc, destination_unc)
            if failure is None:
                logger.info("Copied %s to %s", source_unc, destination_unc)
                return

            if failure.kind is FailureKind.FATAL or attempt == max_attempts:
                raise CopyFailedError(
                    f"{actionable_error('copy_failed', path=source_unc, attempts=str(attempt))}\n"
                    f"{failure.error}",
                    database_name=destination.database_name,
                    path=destination_unc,
                ) from failure.error

            logger.warning(
                "Copy failed on attempt %s/%s. Retrying in %.1fs: %s",
                attempt,
                max_attempts,
                self.retry_delay_seconds,
                failure.error,
            )
            self._raise_if_cancelled(cancel_event, source_unc, destination, destination_unc, attempt)
            self.sleep(self.retry_delay_seconds)
            self._raise_if_cancelled(cancel_event, source_unc, destination, destination_unc, attempt)

    @staticmethod
    def _raise_if_cancelled(cancel_event, source_unc, destination, destination_unc, attempt):
        if cancel_event is not None and cancel_event.is_set():
            raise CopyFailedError(
                f"Copy of {source_unc} cancelled after {attempt} attempt(s).",
                database_name=destination.database_name,
                path=destination_unc,
            )

    def _attempt_copy(
        self,
        source: DbTarget,
        destination: DbTarget,
        source_unc: str,
        destination_unc: str,
    ) -> Optional[CopyFailure]:
        try:
            with ExitStack() as stack:
                stack.enter_context(self._share_session(source_unc, source))
                stack.enter_context(self._share_session(destination_unc, destination))
                self.copy_file(source_unc, destination_unc)
        except Exception as exc:
            return CopyFailure(classify_copy_error(exc), exc)
        return None

    def _share_session(self, unc_path: str, target: DbTarget):
        return self.session_factory(
            share_root(unc_path),
            target.environment.network_credentials,
            self.run_cmd,
            logger=logger,
        )

    def _sql_client(self, target: DbTarget):
        db_config = DbConfig(
            db_name=target.database_name,
            data_source=target.data_source,
            environment=target.environment,
        )
        descriptor = ConnectionStringBuilder.build_connection_descriptor(db_config, MASTER_CATALOG)
        return self.sql_client_factory(descriptor)

    def _claim_destination(self, key: Tuple[str, str], destination: DbTarget):
        with self._registry_lock:
            if key in self._active_destinations:
                raise CloneInProgressError(
                    actionable_error(
                        "clone_in_progress",
                        database=destination.database_name,
                        server=destination.data_source,
                    ),
                    database_name=destination.database_name,
                )
            self._active_destinations.add(key)

    def _notify(self, stage: CloneStage, message: str, target: DbTarget):
        self.stage = stage
        if stage is CloneStage.FAILED:
            logger.error(message)
        else:
            logger.info(message)
        if self.progress:
            self.progress(CloneProgress(stage=stage, message=message, database_name=target.database_name))
