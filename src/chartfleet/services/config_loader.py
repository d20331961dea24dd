"""CLI defaults read from a ``.chartfleet.yml`` file."""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from chartfleet.errors import ChartfleetError

# key -> (accepted types, description used in error messages)
KEY_TYPES: Dict[str, Tuple[Tuple[type, ...], str]] = {
    "file": ((str,), "a string"),
    "log_file": ((str,), "a string"),
    "helm_binary": ((str,), "a string"),
    "kube_context": ((str,), "a string"),
    "namespace": ((str,), "a string"),
    "concurrency": ((int,), "an integer"),
    "timeout": ((int, float), "a number of seconds"),
    "verbose": ((bool,), "true or false"),
    "dry_run": ((bool,), "true or false"),
    "reverse": ((bool,), "true or false"),
}


class ConfigLoader:
    """Loads CLI defaults and checks each value before the CLI consumes it."""

    SUPPORTED_KEYS = set(KEY_TYPES)

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ChartfleetError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ChartfleetError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ChartfleetError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(str(key) for key in set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            raise ChartfleetError(f"Unknown configuration keys: {', '.join(unknown)}")

        # An empty value means "not set", so CLI defaults still apply.
        values = {key: value for key, value in parsed.items() if value is not None}
        for key, value in values.items():
            self._check_value(key, value)
        return values

    @staticmethod
    def _check_value(key: str, value: Any):
        accepted, description = KEY_TYPES[key]
        # bool is an int subclass; "concurrency: true" is a typo, not 1.
        if isinstance(value, bool) and bool not in accepted:
            valid = False
        else:
            valid = isinstance(value, accepted)
        if not valid:
            raise ChartfleetError(f"Config key '{key}' must be {description}, got {value!r}.")
