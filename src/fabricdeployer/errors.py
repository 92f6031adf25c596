"""Domain errors for fabricdeployer."""

from typing import Optional


class DeployerError(RuntimeError):
    """Raised when the deployment cannot continue safely."""


class ProfileNotFoundError(DeployerError):
    """The publish profile document does not exist or cannot be read."""


class MalformedDocumentError(DeployerError):
    """A required element or attribute is missing or unparsable."""


class MissingParameterFilePathError(DeployerError):
    """An application parameter file is required but the profile does not declare one."""


class ClusterUnreachableError(DeployerError):
    """The cluster management endpoint could not be reached."""


class ManagementOperationFailedError(DeployerError):
    """The cluster management interface rejected a create or register request."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        application: Optional[str] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.application = application
