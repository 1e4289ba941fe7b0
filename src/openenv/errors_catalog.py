"""Actionable error catalog for OpenEnv."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "config_not_found": {
        "what": "Could not FIND .json config file at {path}.",
        "next": "Check the path passed with `--environments-file` or `environments_file`.",
    },
    "config_access_denied": {
        "what": "Could not ACCESS .json config file at {path}.",
        "next": "Grant read permission on the file to the account running OpenEnv.",
    },
    "config_malformed": {
        "what": "Environment config is invalid: {detail}",
        "next": "Provide a JSON object with a non-empty `Environments` mapping.",
    },
    "already_initialized": {
        "what": "Environment config is already initialised.",
        "next": "Initialise the config once per OpenEnv context.",
    },
    "mode_not_initialized": {
        "what": "Hosting mode is not initialised.",
        "next": "Call `OpenEnv.initialise()` before reading mode-dependent values.",
    },
    "unauthorized_production": {
        "what": "<NOT ALLOWED> Only production may access the live database ({name}). "
        "No production marker found at {marker}.",
        "next": "Create the marker on the production host, or pass an explicit production override "
        "when reading the live database for a clone.",
    },
    "backup_failed": {
        "what": "Backup of {database} to {path} failed.",
        "next": "Check that the SQL login may run BACKUP DATABASE and the folder exists on the source server.",
    },
    "copy_failed": {
        "what": "Copy of backup {path} failed after {attempts} attempt(s).",
        "next": "Check the network credentials and that both shares are reachable.",
    },
    "restore_failed": {
        "what": "Restore of {database} failed during '{action}'. "
        "The database may remain in SINGLE_USER mode.",
        "next": "Inspect the SQL Server error log, then run "
        "`ALTER DATABASE [{database}] SET MULTI_USER` once the cause is fixed.",
    },
    "clone_in_progress": {
        "what": "A clone into {database} on {server} is already running.",
        "next": "Wait for the running clone to finish before starting another one.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
