"""Configuration loader for fabricdeployer."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from fabricdeployer.errors import DeployerError
from fabricdeployer.models import OverwriteBehavior


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "root",
        "configuration",
        "profile",
        "parameters",
        "overwrite_behavior",
        "skip_package_validation",
        "use_existing_cluster_connection",
        "verbose",
        "log_file",
        "dry_run",
        "report_file",
        "request_timeout",
    }

    FLAG_KEYS = {
        "skip_package_validation",
        "use_existing_cluster_connection",
        "verbose",
        "dry_run",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise DeployerError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise DeployerError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise DeployerError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise DeployerError(f"Unknown configuration keys: {unknown_list}")

        self._validate_values(parsed)
        return parsed

    def _validate_values(self, parsed: Dict[str, Any]):
        parameters = parsed.get("parameters")
        if parameters is not None and not isinstance(parameters, dict):
            raise DeployerError("Config key 'parameters' must be a mapping of names to values.")

        overwrite_behavior = parsed.get("overwrite_behavior")
        valid_behaviors = [behavior.value for behavior in OverwriteBehavior]
        if overwrite_behavior is not None and overwrite_behavior not in valid_behaviors:
            raise DeployerError(
                f"Config key 'overwrite_behavior' must be one of: {', '.join(valid_behaviors)}."
            )

        for key in sorted(self.FLAG_KEYS & set(parsed)):
            if not isinstance(parsed[key], bool):
                raise DeployerError(f"Config key '{key}' must be true or false.")

        timeout = parsed.get("request_timeout")
        if timeout is not None and (
            isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0
        ):
            raise DeployerError("Config key 'request_timeout' must be a positive number of seconds.")
