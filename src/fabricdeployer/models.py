"""Shared domain models for fabricdeployer."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Union


@dataclass(frozen=True)
class BoolValue:
    value: bool

    def __str__(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class StringValue:
    value: str

    def __str__(self) -> str:
        return self.value


AttributeValue = Union[BoolValue, StringValue]


class AttributeMap(Mapping):
    """Read-only attribute bag with typed accessors."""

    def __init__(self, values: Optional[Dict[str, AttributeValue]] = None):
        self._values: Dict[str, AttributeValue] = dict(values or {})

    def __getitem__(self, key: str) -> AttributeValue:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"AttributeMap({self.to_dict()!r})"

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key)
        if isinstance(value, BoolValue):
            return value.value
        return default

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._values.get(key)
        if value is None:
            return default
        return str(value)

    def merged(self, extra: Dict[str, AttributeValue]) -> "AttributeMap":
        values = dict(self._values)
        values.update(extra)
        return AttributeMap(values)

    def to_dict(self) -> Dict[str, Union[bool, str]]:
        return {key: value.value for key, value in self._values.items()}


class UpgradeMode(Enum):
    MONITORED = "Monitored"
    UNMONITORED_AUTO = "UnmonitoredAuto"
    UNMONITORED_MANUAL = "UnmonitoredManual"


@dataclass(frozen=True)
class UpgradeDeployment:
    """Upgrade section of a publish profile."""

    attributes: AttributeMap = field(default_factory=AttributeMap)
    mode: Optional[UpgradeMode] = None
    explicit_parameters: AttributeMap = field(default_factory=AttributeMap)

    @property
    def enabled(self) -> bool:
        return self.attributes.get_bool("Enabled", False)

    @property
    def parameters(self) -> AttributeMap:
        """Explicit parameters plus the flag named after the selected mode."""
        if self.mode is None:
            return self.explicit_parameters
        return self.explicit_parameters.merged({self.mode.value: BoolValue(True)})


@dataclass(frozen=True)
class PublishProfile:
    cluster_connection_parameters: AttributeMap = field(default_factory=AttributeMap)
    upgrade_deployment: Optional[UpgradeDeployment] = None
    application_parameter_file_path: Optional[str] = None
    source_path: Optional[str] = None

    @property
    def directory(self) -> Optional[str]:
        if not self.source_path:
            return None
        return os.path.dirname(os.path.abspath(self.source_path))


class DeploymentAction(Enum):
    CREATE_AND_REGISTER = "CreateAndRegister"
    REGISTER_ONLY = "RegisterOnly"


class OverwriteBehavior(Enum):
    NEVER = "Never"
    ALWAYS = "Always"
    SAME_TYPE_AND_VERSION = "SameTypeAndVersion"


@dataclass(frozen=True)
class DeploymentTarget:
    """One application project to deploy."""

    name: str
    project_dir: str
    action: DeploymentAction
    package_subdir: str = "pkg"

    def package_path(self, configuration: str) -> str:
        return os.path.join(self.project_dir, self.package_subdir, configuration)


def default_targets(root: str) -> List[DeploymentTarget]:
    """Admin application first, then ingestion, then tenant."""
    return [
        DeploymentTarget("Admin", os.path.join(root, "Admin"), DeploymentAction.CREATE_AND_REGISTER),
        DeploymentTarget("Ingestion", os.path.join(root, "Ingestion"), DeploymentAction.REGISTER_ONLY),
        DeploymentTarget("Tenant", os.path.join(root, "Tenant"), DeploymentAction.REGISTER_ONLY),
    ]


@dataclass(frozen=True)
class DeploymentOperation:
    target_name: str
    package_path: str
    parameter_file_path: Optional[str]
    parameter_overrides: Dict[str, str]
    action: DeploymentAction
    overwrite_behavior: OverwriteBehavior
    skip_validation: bool


@dataclass(frozen=True)
class Connection:
    """Handle to a cluster management endpoint, shared read-only by all operations."""

    endpoint: str
    parameters: AttributeMap = field(default_factory=AttributeMap)
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ApplicationManifest:
    type_name: str
    type_version: str
    service_manifests: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ApplicationParameters:
    name: Optional[str]
    parameters: Dict[str, str] = field(default_factory=dict)
