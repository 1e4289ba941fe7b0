"""Credential-bound network share sessions for OpenEnv."""

import ntpath
import re
from contextlib import contextmanager
from typing import Callable, Iterator

from openenv.errors import CommandError, ShareSessionError
from openenv.models import NetworkCredentials

_DRIVE_PATH = re.compile(r"^(?P<drive>[A-Za-z]):[\\/]?(?P<rest>.*)$")


def to_unc_path(server_ip: str, local_path: str) -> str:
    """Maps a server-local path to its UNC form. UNC paths are returned as-is."""
    if local_path.startswith("\\\\"):
        return local_path

    match = _DRIVE_PATH.match(local_path)
    if not match:
        raise ShareSessionError(
            f"Cannot derive a network share for '{local_path}' on {server_ip}. "
            "Use a drive path such as D:\\Backups or a UNC path."
        )

    rest = match.group("rest").replace("/", "\\").strip("\\")
    root = f"\\\\{server_ip}\\{match.group('drive').upper()}$"
    return f"{root}\\{rest}" if rest else root


def share_root(unc_path: str) -> str:
    """Returns the ``\\\\server\\share`` part of a UNC path."""
    drive, _ = ntpath.splitdrive(unc_path)
    if not drive.startswith("\\\\"):
        raise ShareSessionError(f"Not a UNC path: {unc_path}")
    return drive


class NetworkShareSession:
    """Authenticated connection to a remote share, held for one file copy."""

    def __init__(self, root: str, credentials: NetworkCredentials, run_cmd: Callable, logger=None):
        self.root = root
        self.credentials = credentials
        self.run_cmd = run_cmd
        self.logger = logger
        self.connected = False

    def acquire(self) -> "NetworkShareSession":
        cmd = [
            "net",
            "use",
            self.root,
            self.credentials.password,
            f"/user:{self.credentials.qualified_username}",
            "/persistent:no",
        ]
        try:
            self.run_cmd(cmd, check=True, capture_output=True, redact=[self.credentials.password])
        except CommandError as exc:
            raise ShareSessionError(
                f"Could not connect to {self.root} as {self.credentials.qualified_username}: {exc}"
            ) from exc

        self.connected = True
        if self.logger:
            self.logger.debug("Connected network share %s", self.root)
        return self

    def release(self):
        if not self.connected:
            return

        self.connected = False
        try:
            self.run_cmd(
                ["net", "use", self.root, "/delete", "/y"],
                check=False,
                capture_output=True,
            )
        except CommandError as exc:
            if self.logger:
                self.logger.warning("Could not disconnect network share %s: %s", self.root, exc)
            return

        if self.logger:
            self.logger.debug("Disconnected network share %s", self.root)

    def __enter__(self) -> "NetworkShareSession":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


@contextmanager
def open_share_session(
    root: str,
    credentials: NetworkCredentials,
    run_cmd: Callable,
    logger=None,
) -> Iterator[NetworkShareSession]:
    session = NetworkShareSession(root, credentials, run_cmd, logger=logger)
    session.acquire()
    try:
        yield session
    finally:
        session.release()
