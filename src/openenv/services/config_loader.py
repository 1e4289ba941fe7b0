"""Configuration loader for OpenEnv CLI defaults."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from openenv.errors import OpenEnvError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "environments_file",
        "dev_ui_test_api",
        "verbose",
        "log_file",
        "url",
        "copy_retry_count",
        "copy_retry_delay_seconds",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise OpenEnvError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise OpenEnvError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise OpenEnvError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise OpenEnvError(f"Unknown configuration keys: {unknown_list}")

        return parsed
