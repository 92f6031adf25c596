"""Cluster connection service."""

from typing import Optional

from fabricdeployer.errors import ClusterUnreachableError
from fabricdeployer.models import AttributeMap, Connection, StringValue
from fabricdeployer.services.cluster_client import SECURITY_TOKEN_KEY


class ClusterConnector:
    """Establishes or reuses the single connection a run deploys through."""

    def __init__(self, client, logger, console=None, existing_connection: Optional[Connection] = None):
        self.client = client
        self.logger = logger
        self.console = console
        self.existing = existing_connection

    def connect(
        self,
        parameters: AttributeMap,
        use_existing: bool = False,
        security_token: Optional[str] = None,
    ) -> Connection:
        if use_existing:
            self.logger.info("Reusing existing cluster connection.")
            if self.existing is not None:
                return self.existing
            return self.client.existing_connection()

        if security_token:
            parameters = parameters.merged({SECURITY_TOKEN_KEY: StringValue(security_token)})

        try:
            return self.client.connect(parameters)
        except ClusterUnreachableError as exc:
            message = (
                "Unable to connect to the cluster. Check that the cluster is running and "
                "reachable, or pass --use-existing-cluster-connection to reuse a session."
            )
            self.logger.warning("%s %s", message, exc)
            if self.console is not None:
                self.console.print(f"[yellow]Warning:[/yellow] {message}")
            raise
