"""Loads the desired release state from a YAML file."""

from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from chartfleet.errors import ChartfleetError
from chartfleet.models import DefaultsConfig, DesiredState, ReleaseSpec


class DesiredStateLoader:
    """Reads releases and run-wide defaults from a plain YAML document.

    Templating, multi-document merging and environment values are not
    supported; the file is read as-is.
    """

    ROOT_KEYS = {"namespace", "defaults", "releases"}
    DEFAULTS_KEYS = {"kubeContext", "exclusive", "concurrency"}
    RELEASE_KEYS = {
        "name",
        "namespace",
        "kubeContext",
        "chart",
        "version",
        "values",
        "needs",
        "exclusive",
    }

    def __init__(
        self,
        logger,
        kube_context: Optional[str] = None,
        namespace: Optional[str] = None,
        reverse: bool = False,
    ):
        self.logger = logger
        self.kube_context = kube_context
        self.namespace = namespace
        self.reverse = reverse

    def load(self, path: str) -> DesiredState:
        file_path = Path(path)
        if not file_path.exists():
            raise ChartfleetError(f"Desired state file not found: {path}")

        try:
            parsed = yaml.safe_load(file_path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ChartfleetError(f"Invalid desired state file '{path}': {exc}") from exc

        if parsed is None:
            parsed = {}
        if not isinstance(parsed, dict):
            raise ChartfleetError(f"Desired state file '{path}' must contain a YAML mapping at the root.")

        self._reject_unknown(parsed, self.ROOT_KEYS, f"'{path}'")
        return self.from_mapping(parsed)

    def from_mapping(self, data: Dict[str, Any]) -> DesiredState:
        defaults = self._parse_defaults(data.get("defaults") or {})

        if self.kube_context:
            if defaults.kube_context:
                raise ChartfleetError(
                    "Cannot use option --kube-context and set attribute defaults.kubeContext."
                )
            defaults = replace(defaults, kube_context=self.kube_context)

        namespace = data.get("namespace") or ""
        if self.namespace:
            if namespace:
                raise ChartfleetError("Cannot use option --namespace and set attribute namespace.")
            namespace = self.namespace

        releases_data = data.get("releases") or []
        if not isinstance(releases_data, list):
            raise ChartfleetError("'releases' must be a list of release mappings.")

        releases = [
            self._parse_release(index, row, namespace, defaults.kube_context)
            for index, row in enumerate(releases_data)
        ]
        if self.reverse:
            releases.reverse()

        self.logger.debug("loaded %d releases", len(releases))
        return DesiredState(releases=tuple(releases), defaults=defaults)

    def _parse_defaults(self, data: Any) -> DefaultsConfig:
        if not isinstance(data, dict):
            raise ChartfleetError("'defaults' must be a mapping.")
        self._reject_unknown(data, self.DEFAULTS_KEYS, "defaults")

        concurrency = data.get("concurrency", 0)
        if not isinstance(concurrency, int) or isinstance(concurrency, bool):
            raise ChartfleetError("defaults.concurrency must be an integer.")

        return DefaultsConfig(
            exclusive=self._as_bool(data.get("exclusive", False), "defaults.exclusive"),
            concurrency=concurrency,
            kube_context=str(data.get("kubeContext") or ""),
        )

    def _parse_release(
        self,
        index: int,
        row: Any,
        namespace: str,
        kube_context: str,
    ) -> ReleaseSpec:
        label = f"releases[{index}]"
        if not isinstance(row, dict):
            raise ChartfleetError(f"{label} must be a mapping.")
        self._reject_unknown(row, self.RELEASE_KEYS, label)

        name = row.get("name")
        if not name or not isinstance(name, str):
            raise ChartfleetError(f"{label}.name is required.")

        exclusive = row.get("exclusive")
        if exclusive is not None:
            exclusive = self._as_bool(exclusive, f"{label}.exclusive")

        version = row.get("version")
        return ReleaseSpec(
            name=name,
            namespace=str(row.get("namespace") or namespace),
            kube_context=str(row.get("kubeContext") or kube_context),
            chart=str(row.get("chart") or ""),
            version=str(version) if version is not None else None,
            values=tuple(self._string_list(row.get("values"), f"{label}.values")),
            needs=tuple(self._string_list(row.get("needs"), f"{label}.needs")),
            exclusive=exclusive,
        )

    @staticmethod
    def _string_list(value: Any, label: str) -> List[str]:
        if value is None:
            return []
        if not isinstance(value, list) or any(not isinstance(item, str) for item in value):
            raise ChartfleetError(f"{label} must be a list of strings.")
        return list(value)

    @staticmethod
    def _as_bool(value: Any, label: str) -> bool:
        if not isinstance(value, bool):
            raise ChartfleetError(f"{label} must be true or false.")
        return value

    @staticmethod
    def _reject_unknown(data: Dict[str, Any], supported: set, label: str):
        unknown = sorted(set(data.keys()) - supported)
        if unknown:
            raise ChartfleetError(f"Unknown keys in {label}: {', '.join(unknown)}")
