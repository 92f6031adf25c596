"""Deployment execution service."""

from fabricdeployer.errors import DeployerError, ManagementOperationFailedError
from fabricdeployer.errors_catalog import actionable_error
from fabricdeployer.models import Connection, DeploymentAction, DeploymentOperation


class DeploymentExecutor:
    """Runs one planned operation against the cluster management interface."""

    def __init__(self, client, logger):
        self.client = client
        self.logger = logger

    def execute(self, connection: Connection, operation: DeploymentOperation):
        """Issue the create or register call for `operation`.

        Failures are never retried; they surface as ManagementOperationFailedError
        carrying the operation, the application and the platform's message.
        """
        label = operation.action.value
        self.logger.info("%s %s from %s", label, operation.target_name, operation.package_path)

        try:
            if operation.action == DeploymentAction.CREATE_AND_REGISTER:
                self.client.create_application(
                    connection,
                    operation.package_path,
                    operation.parameter_file_path,
                    dict(operation.parameter_overrides),
                    operation.overwrite_behavior,
                    operation.skip_validation,
                )
            elif operation.action == DeploymentAction.REGISTER_ONLY:
                self.client.register_application_type(
                    connection,
                    operation.package_path,
                    operation.overwrite_behavior,
                    operation.skip_validation,
                )
            else:
                raise ManagementOperationFailedError(f"Unsupported deployment action: {label}")
        except (DeployerError, OSError) as exc:
            if isinstance(exc, ManagementOperationFailedError) and exc.application is not None:
                raise
            raise ManagementOperationFailedError(
                actionable_error(
                    "management_operation_failed",
                    operation=label,
                    application=operation.target_name,
                    reason=str(exc),
                ),
                operation=label,
                application=operation.target_name,
            ) from exc
