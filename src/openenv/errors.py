"""Domain errors for OpenEnv."""

from typing import Optional


class OpenEnvError(RuntimeError):
    """Raised when OpenEnv cannot continue safely."""


class ConfigError(OpenEnvError):
    """Environment configuration could not be loaded or queried."""


class ConfigNotFoundError(ConfigError):
    pass


class ConfigAccessDeniedError(ConfigError):
    pass


class ConfigIOError(ConfigError):
    pass


class MalformedConfigError(ConfigError):
    pass


class AlreadyInitializedError(ConfigError):
    pass


class ConfigNotInitializedError(ConfigError):
    pass


class EnvironmentKeyNotFoundError(ConfigError, KeyError):
    """Requested environment key has no entry in the configuration."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"{key} environment configuration not found.")

    def __str__(self) -> str:
        return self.args[0]


class InvalidServerAddressError(ConfigError):
    pass


class ResolutionError(OpenEnvError):
    pass


class ModeNotInitializedError(ResolutionError):
    pass


class AuthorizationError(OpenEnvError):
    pass


class UnauthorizedProductionAccessError(AuthorizationError):
    pass


class UrlError(OpenEnvError):
    pass


class InvalidUrlError(UrlError, ValueError):
    pass


class NoIPv4AddressError(UrlError):
    pass


class CommandError(OpenEnvError):
    pass


class ShareSessionError(OpenEnvError):
    pass


class CloneError(OpenEnvError):
    """A clone step failed. Carries the step, database and path involved."""

    step = "clone"

    def __init__(
        self,
        message: str,
        database_name: Optional[str] = None,
        path: Optional[str] = None,
    ):
        self.database_name = database_name
        self.path = path
        super().__init__(message)


class BackupFailedError(CloneError):
    step = "backup"


class CopyFailedError(CloneError):
    step = "copy"


class RestoreFailedError(CloneError):
    step = "restore"


class CloneInProgressError(CloneError):
    step = "lock"
