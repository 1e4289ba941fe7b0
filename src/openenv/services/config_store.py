"""Environment configuration store for OpenEnv."""

import json
import threading
from typing import Any, Dict, List, Mapping, Optional

from openenv.errors import (
    AlreadyInitializedError,
    ConfigAccessDeniedError,
    ConfigIOError,
    ConfigNotFoundError,
    ConfigNotInitializedError,
    EnvironmentKeyNotFoundError,
    MalformedConfigError,
)
from openenv.errors_catalog import actionable_error
from openenv.models import EnvironmentEntry, NetworkCredentials, SqlCredentials


class ConfigStore:
    """Holds the environment-key to entry mapping. Initialised exactly once."""

    def __init__(self, logger=None):
        self.logger = logger
        self._lock = threading.Lock()
        self._initialized = False
        self._entries: Dict[str, EnvironmentEntry] = {}

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize_from_file(self, json_path: str):
        self._ensure_not_initialized()

        with self._lock:
            self._ensure_not_initialized()
            try:
                with open(json_path, "r", encoding="utf-8") as file_obj:
                    payload = file_obj.read()
            except FileNotFoundError as exc:
                raise ConfigNotFoundError(
                    actionable_error("config_not_found", path=json_path)
                ) from exc
            except PermissionError as exc:
                raise ConfigAccessDeniedError(
                    actionable_error("config_access_denied", path=json_path)
                ) from exc
            except OSError as exc:
                raise ConfigIOError(f"IO error with .json config file at {json_path}: {exc}") from exc

            self._load(payload)

        if self.logger:
            self.logger.debug("Loaded environment config from %s", json_path)

    def initialize_from_json(self, json_text: str):
        self._ensure_not_initialized()

        with self._lock:
            self._ensure_not_initialized()
            self._load(json_text)

    def get_entry(self, key: str) -> EnvironmentEntry:
        if not self._initialized:
            raise ConfigNotInitializedError(
                "Environment config must be initialised before use."
            )
        try:
            return self._entries[key]
        except KeyError:
            raise EnvironmentKeyNotFoundError(key) from None

    def keys(self) -> List[str]:
        return list(self._entries)

    def _ensure_not_initialized(self):
        if self._initialized:
            raise AlreadyInitializedError(actionable_error("already_initialized"))

    def _load(self, payload: str):
        try:
            parsed = json.loads(payload)
        except (TypeError, json.JSONDecodeError) as exc:
            raise MalformedConfigError(
                actionable_error("config_malformed", detail=f"invalid JSON ({exc})")
            ) from exc

        self._entries = self._parse_environments(parsed)
        self._initialized = True

    def _parse_environments(self, parsed: Any) -> Dict[str, EnvironmentEntry]:
        if not isinstance(parsed, dict):
            raise MalformedConfigError(
                actionable_error("config_malformed", detail="the root must be a JSON object")
            )

        environments = parsed.get("Environments")
        if not isinstance(environments, dict) or not environments:
            raise MalformedConfigError(
                actionable_error(
                    "config_malformed",
                    detail="`Environments` is missing or empty",
                )
            )

        return {key: self._parse_entry(key, value) for key, value in environments.items()}

    def _parse_entry(self, key: str, raw: Any) -> EnvironmentEntry:
        if not isinstance(raw, dict):
            raise MalformedConfigError(
                actionable_error("config_malformed", detail=f"entry '{key}' must be an object")
            )

        sql = self._section(key, raw, "SqlCredentials")
        network = self._section(key, raw, "NetworkCredentials")
        return EnvironmentEntry(
            server_ip=self._text(key, raw, "ServerIP"),
            backup_location=self._text(key, raw, "BackupLocation"),
            sql_credentials=SqlCredentials(
                username=self._text(key, sql, "Username"),
                password=self._text(key, sql, "Password"),
            ),
            network_credentials=NetworkCredentials(
                username=self._text(key, network, "Username"),
                password=self._text(key, network, "Password"),
                domain=self._text(key, network, "Domain"),
            ),
        )

    @staticmethod
    def _section(key: str, raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
        value = raw.get(name)
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise MalformedConfigError(
                actionable_error(
                    "config_malformed",
                    detail=f"`{name}` of entry '{key}' must be an object",
                )
            )
        return value

    @staticmethod
    def _text(key: str, raw: Mapping[str, Any], name: str) -> str:
        value: Optional[Any] = raw.get(name)
        if value is None:
            return ""
        if not isinstance(value, str):
            raise MalformedConfigError(
                actionable_error(
                    "config_malformed",
                    detail=f"`{name}` of entry '{key}' must be a string",
                )
            )
        return value
