"""Deployment mode resolution for OpenEnv."""

import ipaddress
import os
import socket
import sys
import threading
from typing import Callable, List, Optional, Union

from openenv.constants import (
    APP_PACKAGE_PATH_TOKEN,
    DEVELOPMENT_KEY,
    PRIMARY_PLATFORM,
    PRODUCTION_KEY,
    PRODUCTION_MARKER,
    TESTING_KEY,
)
from openenv.errors import InvalidServerAddressError, ModeNotInitializedError
from openenv.errors_catalog import actionable_error
from openenv.models import DeploymentMode, EnvironmentEntry

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class HostProbe:
    """Reads the host signals used to pick a deployment mode."""

    def __init__(
        self,
        production_marker: str = PRODUCTION_MARKER,
        platform: Optional[str] = None,
        executable: Optional[str] = None,
    ):
        self.production_marker = production_marker
        self.platform = platform or sys.platform
        self.executable = executable if executable is not None else sys.executable

    def is_app_package_deployed(self) -> bool:
        return APP_PACKAGE_PATH_TOKEN.lower() in (self.executable or "").lower()

    def is_primary_os(self) -> bool:
        return self.platform == PRIMARY_PLATFORM

    def production_marker_exists(self) -> bool:
        return os.path.isfile(self.production_marker)

    def debugger_attached(self) -> bool:
        return sys.gettrace() is not None


ModeListener = Callable[[DeploymentMode], None]


class EnvironmentResolver:
    """Decides the hosting mode once and answers mode-dependent lookups."""

    def __init__(self, config_store, probe: Optional[HostProbe] = None, logger=None):
        self.config_store = config_store
        self.probe = probe or HostProbe()
        self.logger = logger
        self._lock = threading.RLock()
        self._mode: Optional[DeploymentMode] = None
        self._listeners: List[ModeListener] = []

    @property
    def mode(self) -> DeploymentMode:
        if self._mode is None:
            raise ModeNotInitializedError(actionable_error("mode_not_initialized"))
        return self._mode

    @property
    def is_resolved(self) -> bool:
        return self._mode is not None

    def add_listener(self, listener: ModeListener):
        with self._lock:
            self._listeners.append(listener)

    def set_mode(self, mode: DeploymentMode):
        with self._lock:
            self._mode = mode
            for listener in list(self._listeners):
                listener(mode)

    def determine_mode(self, dev_ui_test_api: bool = False) -> DeploymentMode:
        probe = self.probe

        if probe.is_app_package_deployed():
            return DeploymentMode.PRODUCTION

        if probe.is_primary_os():
            if probe.production_marker_exists():
                return DeploymentMode.PRODUCTION
            if dev_ui_test_api:
                return DeploymentMode.DEVELOPMENT_UI_TEST_API
            if probe.debugger_attached():
                return DeploymentMode.DEVELOPMENT
            return DeploymentMode.TESTING

        # no staging tier off the primary platform
        if dev_ui_test_api:
            return DeploymentMode.DEVELOPMENT_UI_TEST_API
        if probe.debugger_attached():
            return DeploymentMode.DEVELOPMENT
        return DeploymentMode.PRODUCTION

    def resolve(self, dev_ui_test_api: bool = False) -> DeploymentMode:
        mode = self.determine_mode(dev_ui_test_api)
        self.set_mode(mode)
        if self.logger:
            self.logger.info("Hosting mode resolved: %s", mode.label)
        return mode

    @staticmethod
    def environment_key(mode: DeploymentMode) -> str:
        if mode is DeploymentMode.PRODUCTION:
            return PRODUCTION_KEY
        if mode is DeploymentMode.TESTING:
            return TESTING_KEY
        return DEVELOPMENT_KEY

    @staticmethod
    def config_key(mode: DeploymentMode) -> str:
        """Key used for the current config. UI-dev/test-API reads the Testing entry."""
        if mode is DeploymentMode.PRODUCTION:
            return PRODUCTION_KEY
        if mode in (DeploymentMode.TESTING, DeploymentMode.DEVELOPMENT_UI_TEST_API):
            return TESTING_KEY
        return DEVELOPMENT_KEY

    def get_environment_config(self, key: str) -> EnvironmentEntry:
        return self.config_store.get_entry(key)

    def get_current_environment_config(self) -> EnvironmentEntry:
        return self.config_store.get_entry(self.config_key(self.mode))

    def get_api_ip(self) -> IPAddress:
        return self._parse_server_ip(self.config_key(self.mode))

    def get_ui_ip(self) -> IPAddress:
        return self._parse_server_ip(self.environment_key(self.mode))

    def is_port_available(self, port: int, api: bool = True) -> bool:
        ip = self.get_api_ip() if api else self.get_ui_ip()
        family = socket.AF_INET6 if ip.version == 6 else socket.AF_INET

        with socket.socket(family, socket.SOCK_STREAM) as listener:
            try:
                listener.bind((str(ip), port))
                listener.listen(1)
            except OSError as exc:
                if self.logger:
                    self.logger.info("local %s : port %s is not available. %s", ip, port, exc)
                return False

        if self.logger:
            self.logger.info("local %s : port %s is available.", ip, port)
        return True

    def _parse_server_ip(self, key: str) -> IPAddress:
        entry = self.get_environment_config(key)
        try:
            return ipaddress.ip_address(entry.server_ip.strip())
        except ValueError as exc:
            raise InvalidServerAddressError(
                f"Invalid IP address format in configuration for key '{key}': '{entry.server_ip}'."
            ) from exc
