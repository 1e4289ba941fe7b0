import getpass
import logging
import os
import platform
import socket
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Mapping, Optional, Tuple

from rich.console import Console

from .errors import OpenEnvError, UrlError
from .models import CloneProgress, DeploymentMode
from .pipeline import ClonePipeline, build_clone_job
from .services.command_runner import CommandRunner
from .services.config_store import ConfigStore
from .services.connection_strings import ConnectionStringBuilder
from .services.database import DatabaseService
from .services.environment import EnvironmentResolver, HostProbe
from .services.runtime_config import RuntimeUrlConfig, local_ipv4_addresses

console = Console()
logger = logging.getLogger("openenv")


class OpenEnv:
    """Per-process context holding config, hosting mode and runtime connection state."""

    def __init__(
        self,
        probe: Optional[HostProbe] = None,
        address_provider: Callable = local_ipv4_addresses,
    ):
        self.config_store = ConfigStore(logger=logger)
        self.probe = probe or HostProbe()
        self.resolver = EnvironmentResolver(self.config_store, probe=self.probe, logger=logger)
        self.connections = ConnectionStringBuilder(self.resolver, logger=logger)
        self.runtime = RuntimeUrlConfig(address_provider=address_provider, logger=logger)
        self.command_runner = CommandRunner(logger=logger)
        self.launched_at: Optional[datetime] = None

        self.resolver.add_listener(self._on_mode_changed)

    @property
    def mode(self) -> DeploymentMode:
        return self.resolver.mode

    def initialise(
        self,
        json_path: Optional[str] = None,
        json_text: Optional[str] = None,
        dev_ui_test_api: bool = False,
        url: Optional[str] = None,
        connection_strings: Optional[Mapping[str, str]] = None,
    ) -> DeploymentMode:
        if (json_path is None) == (json_text is None):
            raise OpenEnvError("Provide exactly one of json_path or json_text.")

        # runtime state is only touched once the config has been accepted
        if json_path is not None:
            self.config_store.initialize_from_file(json_path)
        else:
            self.config_store.initialize_from_json(json_text)

        if url is not None or connection_strings is not None:
            try:
                self.runtime.init_url(url)
            except UrlError as exc:
                logger.warning("Error initialising URL: %s", exc)
            self.runtime.load_connections(connection_strings or {})

        mode = self.resolver.resolve(dev_ui_test_api=dev_ui_test_api)
        self.launched_at = datetime.now()
        logger.info(self.launch_report())
        return mode

    def _on_mode_changed(self, mode: DeploymentMode):
        if self.runtime.connection_strings or self.runtime.url is not None:
            self.runtime.refresh_connections(self.connections, self.resolver)

    def launch_report(self) -> str:
        mode_label = self.mode.label
        launched_at = self.launched_at or datetime.now()
        bar = "#" * 10
        lines = [
            f"{bar} HOSTING ENVIRONMENT : {mode_label} {bar}",
            f"\tPLATFORM : {sys.platform}",
            f"\tWebApi IP [HostingMode : {mode_label}] : {self._describe_ip(self.resolver.get_api_ip)}",
            f"\tUi IP [HostingMode : {mode_label}] : {self._describe_ip(self.resolver.get_ui_ip)}",
            self.environment_info(),
            f"\t{self.app_name()} : Launched {launched_at:%a %d %b %H:%M:%S}",
            "#" * 60,
        ]
        return "\n".join(lines)

    @staticmethod
    def _describe_ip(lookup: Callable) -> str:
        try:
            return str(lookup())
        except OpenEnvError as exc:
            return f"<unavailable: {exc}>"

    @staticmethod
    def environment_info() -> str:
        try:
            user = getpass.getuser()
        except (KeyError, OSError):
            user = "<unknown>"
        now = datetime.now().astimezone()
        return "\n".join(
            [
                "\tEnvironment Info:",
                f"\t\tMachine Name : {socket.gethostname()}",
                f"\t\tDomain       : {os.environ.get('USERDOMAIN', '')}",
                f"\t\tUser         : {user}",
                f"\t\tOS x64       : {platform.machine().endswith('64')}",
                f"\t\tProcess x64  : {sys.maxsize > 2 ** 32}",
                f"\t\tPython       : {platform.python_version()}",
                f"\t\tUtc Offset   : {now.utcoffset()}",
                f"\t\tTime Zone    : {now.tzname()}",
                f"\t\tCurrent Dir  : {os.getcwd()}",
                f"\t\tCPU Count    : {os.cpu_count()}",
                f"\t\tOS Version   : {platform.platform()}",
                f"\t\tProcess      : [PID={os.getpid()}] {sys.executable}",
            ]
        )

    @staticmethod
    def app_name() -> str:
        main_module = sys.modules.get("__main__")
        main_file = getattr(main_module, "__file__", None)
        if main_file:
            return Path(main_file).stem
        return Path(sys.argv[0]).stem if sys.argv and sys.argv[0] else "python"

    def banner(self) -> Tuple[str, bool]:
        """Caption for a window/page banner and whether it should be shown."""
        mode = self.mode
        catalogs = " ".join(
            self.connections.get_current_catalog(name) for name in self.runtime.connection_strings
        )
        db_heading = f"MsSql : {catalogs}".rstrip()

        if self.probe.is_app_package_deployed():
            return f"{mode.label} | {db_heading}", False

        if self.probe.production_marker_exists():
            return f"{mode.label} | Live", False

        if mode is DeploymentMode.TESTING:
            tag = "[TEST]"
        elif mode is DeploymentMode.DEVELOPMENT_UI_TEST_API:
            tag = "['DEV Ui' & 'TEST Api']"
        else:
            tag = "[DEV]"
        return f"{tag} | '{mode.label}' | {db_heading}", True

    def clone_database(
        self,
        source_db: str,
        source_key: str,
        destination_db: str,
        destination_key: str,
        progress: Optional[Callable[[CloneProgress], None]] = None,
        cancel_event: Optional[threading.Event] = None,
        **pipeline_options,
    ) -> str:
        job = build_clone_job(
            self.config_store,
            source_db,
            source_key,
            destination_db,
            destination_key,
        )
        console.print(
            f"[blue]Cloning {source_db} ({source_key}) into {destination_db} ({destination_key})...[/blue]"
        )
        pipeline = ClonePipeline(
            database_service=DatabaseService(logger=logger),
            run_cmd=self.command_runner.run,
            progress=progress,
            **pipeline_options,
        )
        backup_path = pipeline.clone(job, cancel_event=cancel_event)
        console.print(f"[bold green]Clone complete! Backup available at: {backup_path}[/bold green]")
        return backup_path
