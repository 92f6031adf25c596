"""Deployment planning service."""

import os
from typing import Dict, List, Optional, Sequence

from fabricdeployer.errors import MissingParameterFilePathError
from fabricdeployer.errors_catalog import actionable_error
from fabricdeployer.models import (
    DeploymentAction,
    DeploymentOperation,
    DeploymentTarget,
    OverwriteBehavior,
    PublishProfile,
)


class DeploymentPlanner:
    """Builds the ordered list of operations for one run."""

    def __init__(self, logger):
        self.logger = logger

    def build_plan(
        self,
        profile: PublishProfile,
        targets: Sequence[DeploymentTarget],
        configuration: str,
        overwrite_behavior: OverwriteBehavior,
        skip_validation: bool,
        override_parameters: Optional[Dict[str, str]] = None,
    ) -> List[DeploymentOperation]:
        """Resolve one operation per target, preserving target order.

        Only the first target gets the profile's parameter file and the caller's
        overrides; the remaining targets are deployed with an empty parameter set.
        """
        operations: List[DeploymentOperation] = []

        for index, target in enumerate(targets):
            is_primary = index == 0
            parameter_file_path = None
            overrides: Dict[str, str] = {}

            if is_primary:
                parameter_file_path = self._resolve_parameter_file(profile, target)
                overrides = dict(override_parameters or {})

            operation = DeploymentOperation(
                target_name=target.name,
                package_path=target.package_path(configuration),
                parameter_file_path=parameter_file_path,
                parameter_overrides=overrides,
                action=target.action,
                overwrite_behavior=overwrite_behavior,
                skip_validation=skip_validation,
            )
            self.logger.debug("Planned %s", self.describe(operation))
            operations.append(operation)

        return operations

    def _resolve_parameter_file(
        self,
        profile: PublishProfile,
        target: DeploymentTarget,
    ) -> Optional[str]:
        declared = profile.application_parameter_file_path
        if not declared:
            if target.action == DeploymentAction.CREATE_AND_REGISTER:
                raise MissingParameterFilePathError(
                    actionable_error("missing_parameter_file_path", application=target.name)
                )
            return None

        base_dir = profile.directory or target.project_dir
        # Profiles authored on Windows use backslash separators.
        relative = declared.replace("\\", "/")
        return os.path.normpath(os.path.join(base_dir, relative))

    @staticmethod
    def describe(operation: DeploymentOperation) -> str:
        parts = [
            f"{operation.target_name}: {operation.action.value}",
            f"package={operation.package_path}",
            f"overwrite={operation.overwrite_behavior.value}",
        ]
        if operation.parameter_file_path:
            parts.append(f"parameters={operation.parameter_file_path}")
        if operation.parameter_overrides:
            keys = ", ".join(sorted(operation.parameter_overrides))
            parts.append(f"overrides=[{keys}]")
        if operation.skip_validation:
            parts.append("skip-validation")
        return " ".join(parts)
