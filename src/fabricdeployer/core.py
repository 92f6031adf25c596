import logging
import os
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console

from .errors import DeployerError
from .models import (
    Connection,
    DeploymentOperation,
    DeploymentTarget,
    OverwriteBehavior,
    PublishProfile,
    default_targets,
)
from .services.cluster_client import RestClusterClient
from .services.connector import ClusterConnector
from .services.executor import DeploymentExecutor
from .services.planner import DeploymentPlanner
from .services.profile_reader import ProfileDocumentReader, profile_path
from .services.report import ReportService

console = Console()
logger = logging.getLogger("fabricdeployer")


class FabricDeployer:
    DEFAULT_CONFIGURATION = "Debug"
    DEFAULT_PROFILE = "Local.5Node"
    OVERWRITE_BEHAVIORS = [behavior.value for behavior in OverwriteBehavior]

    def __init__(
        self,
        root: Optional[str] = None,
        configuration: str = DEFAULT_CONFIGURATION,
        profile: str = DEFAULT_PROFILE,
        parameters: Optional[Dict[str, str]] = None,
        overwrite_behavior: str = OverwriteBehavior.SAME_TYPE_AND_VERSION.value,
        skip_package_validation: bool = False,
        use_existing_cluster_connection: bool = False,
        security_token: Optional[str] = None,
        dry_run: bool = False,
        report_file: Optional[str] = None,
        request_timeout: float = 60.0,
        targets: Optional[Sequence[DeploymentTarget]] = None,
        client=None,
        existing_connection: Optional[Connection] = None,
    ):
        self.root = os.path.abspath(root or os.getcwd())
        self.configuration = configuration
        self.profile_name = profile
        self.parameters = {str(key): str(value) for key, value in (parameters or {}).items()}
        try:
            self.overwrite_behavior = OverwriteBehavior(overwrite_behavior)
        except ValueError as exc:
            raise DeployerError(
                f"Invalid overwrite behavior '{overwrite_behavior}'. "
                f"Supported values: {', '.join(self.OVERWRITE_BEHAVIORS)}"
            ) from exc
        self.skip_package_validation = skip_package_validation
        self.use_existing_cluster_connection = use_existing_cluster_connection
        self.security_token = security_token
        self.dry_run = dry_run

        self.targets: List[DeploymentTarget] = list(targets) if targets is not None else default_targets(self.root)
        if not self.targets:
            raise DeployerError("At least one deployment target is required.")

        self.client = client or RestClusterClient(logger=logger, request_timeout=request_timeout)
        self.profile_reader = ProfileDocumentReader(logger=logger)
        self.planner = DeploymentPlanner(logger=logger)
        self.connector = ClusterConnector(
            client=self.client,
            logger=logger,
            console=console,
            existing_connection=existing_connection,
        )
        self.executor = DeploymentExecutor(client=self.client, logger=logger)
        self.report_service = ReportService(report_file=report_file, logger=logger)

    @property
    def profile_path(self) -> str:
        return profile_path(self.targets[0].project_dir, self.profile_name)

    def _build_report_metadata(self) -> Dict[str, Any]:
        return {
            "root": self.root,
            "configuration": self.configuration,
            "profile": self.profile_path,
            "overwrite_behavior": self.overwrite_behavior.value,
            "skip_package_validation": self.skip_package_validation,
            "use_existing_cluster_connection": self.use_existing_cluster_connection,
            "parameter_overrides": sorted(self.parameters),
            "dry_run": self.dry_run,
        }

    def read_profile(self) -> PublishProfile:
        path = self.profile_path
        logger.info("Using publish profile %s", path)
        return self.profile_reader.read_profile(path)

    def build_plan(self, profile: PublishProfile) -> List[DeploymentOperation]:
        return self.planner.build_plan(
            profile,
            self.targets,
            configuration=self.configuration,
            overwrite_behavior=self.overwrite_behavior,
            skip_validation=self.skip_package_validation,
            override_parameters=self.parameters,
        )

    def connect(self, profile: PublishProfile) -> Connection:
        return self.connector.connect(
            profile.cluster_connection_parameters,
            use_existing=self.use_existing_cluster_connection,
            security_token=self.security_token,
        )

    def print_plan(self, profile: PublishProfile, operations: List[DeploymentOperation]):
        console.print("[bold blue]Deployment plan:[/bold blue]")
        for index, operation in enumerate(operations, start=1):
            console.print(f"  {index}. {self.planner.describe(operation)}")

        upgrade = profile.upgrade_deployment
        if upgrade is not None:
            mode = upgrade.mode.value if upgrade.mode else "<none>"
            console.print(f"  Upgrade deployment: enabled={upgrade.enabled} mode={mode}")

    def run(self) -> int:
        exit_code = 1
        report_status = "failed"
        report_error: Optional[str] = None

        try:
            logger.info("Starting fabricdeployer...")
            self.report_service.start_run(self._build_report_metadata())

            profile = self.read_profile()
            operations = self.build_plan(profile)
            self.report_service.set_plan(
                [
                    {
                        "target": operation.target_name,
                        "action": operation.action.value,
                        "package_path": operation.package_path,
                        "parameter_file_path": operation.parameter_file_path,
                    }
                    for operation in operations
                ]
            )

            if self.dry_run:
                self.print_plan(profile, operations)
                console.print("[green]Dry run complete. No changes were made.[/green]")
                report_status = "dry_run"
                exit_code = 0
                return exit_code

            connection = self.connect(profile)
            self.report_service.set_connection(connection.endpoint, self.use_existing_cluster_connection)

            for index, operation in enumerate(operations):
                self.report_service.operation_started(index)
                try:
                    self.executor.execute(connection, operation)
                except Exception as exc:
                    self.report_service.operation_finished(index, "failed", error=str(exc))
                    raise
                self.report_service.operation_finished(index, "success")
                console.print(f"[green]{operation.target_name}: {operation.action.value} succeeded.[/green]")

            console.print("[bold green]All applications deployed.[/bold green]")
            report_status = "success"
            exit_code = 0
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            report_status = "aborted"
            report_error = "Operation cancelled by user."
            return exit_code
        except DeployerError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            report_error = str(exc)
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            report_error = str(exc)
            return exit_code
        finally:
            self.report_service.finalize(report_status, error=report_error)
