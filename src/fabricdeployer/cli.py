import logging
import os

import click
from rich.logging import RichHandler

from .core import DeployerError, FabricDeployer
from .services.config_loader import ConfigLoader

DEFAULT_CONFIG_FILE = ".fabricdeployer.yml"


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _parse_parameters(values):
    parameters = {}
    for item in values:
        key, separator, value = item.partition("=")
        if not separator or not key.strip():
            raise click.BadParameter(f"Expected KEY=VALUE, got '{item}'.", param_hint="--parameter")
        parameters[key.strip()] = value
    return parameters


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option(
    "--root",
    required=False,
    type=click.Path(file_okay=False),
    help="Directory holding the application projects (default: current directory).",
)
@click.option(
    "--configuration",
    required=False,
    help="Build configuration whose packages are deployed (default: Debug).",
)
@click.option(
    "--profile",
    required=False,
    help="Publish profile name; '.xml' is appended if missing (default: Local.5Node).",
)
@click.option(
    "--parameter",
    "parameters",
    multiple=True,
    help="Application parameter override as KEY=VALUE. Can be repeated.",
)
@click.option(
    "--overwrite-behavior",
    required=False,
    type=click.Choice(FabricDeployer.OVERWRITE_BEHAVIORS),
    help="What to do when an application with the same name exists (default: SameTypeAndVersion).",
)
@click.option(
    "--skip-package-validation",
    is_flag=True,
    default=None,
    help="Skip application package validation before deploying.",
)
@click.option(
    "--use-existing-cluster-connection",
    is_flag=True,
    default=None,
    help="Reuse the existing cluster connection instead of connecting with profile parameters.",
)
@click.option(
    "--security-token",
    required=False,
    envvar="FABRICDEPLOYER_SECURITY_TOKEN",
    help="Security token passed to the cluster when connecting.",
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.option(
    "--dry-run",
    is_flag=True,
    default=None,
    help="Resolve the profile and print the deployment plan without contacting the cluster.",
)
@click.option(
    "--report-file",
    required=False,
    type=click.Path(),
    help="Path for the JSON run report (default: output/deploy-report.json).",
)
@click.option(
    "--request-timeout",
    required=False,
    type=float,
    default=None,
    help="Timeout in seconds for each cluster management request.",
)
def main(
    root,
    configuration,
    profile,
    parameters,
    overwrite_behavior,
    skip_package_validation,
    use_existing_cluster_connection,
    security_token,
    config,
    verbose,
    log_file,
    dry_run,
    report_file,
    request_timeout,
):
    """Deploy the application packages described by a publish profile."""
    logger = logging.getLogger("fabricdeployer")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except DeployerError as exc:
        raise click.ClickException(str(exc)) from exc

    root = _resolve_option(root, config_values, "root", default=os.getcwd())
    configuration = _resolve_option(
        configuration, config_values, "configuration", default=FabricDeployer.DEFAULT_CONFIGURATION
    )
    profile = _resolve_option(profile, config_values, "profile", default=FabricDeployer.DEFAULT_PROFILE)
    overrides = {str(key): str(value) for key, value in (config_values.get("parameters") or {}).items()}
    overrides.update(_parse_parameters(parameters))
    overwrite_behavior = _resolve_option(
        overwrite_behavior, config_values, "overwrite_behavior", default="SameTypeAndVersion"
    )
    skip_package_validation = bool(
        _resolve_option(skip_package_validation, config_values, "skip_package_validation", default=False)
    )
    use_existing_cluster_connection = bool(
        _resolve_option(
            use_existing_cluster_connection,
            config_values,
            "use_existing_cluster_connection",
            default=False,
        )
    )
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    dry_run = bool(_resolve_option(dry_run, config_values, "dry_run", default=False))
    report_file = _resolve_option(
        report_file,
        config_values,
        "report_file",
        default=os.path.join(root, "output", "deploy-report.json"),
    )
    request_timeout = float(_resolve_option(request_timeout, config_values, "request_timeout", default=60.0))

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    try:
        deployer = FabricDeployer(
            root=root,
            configuration=configuration,
            profile=profile,
            parameters=overrides,
            overwrite_behavior=overwrite_behavior,
            skip_package_validation=skip_package_validation,
            use_existing_cluster_connection=use_existing_cluster_connection,
            security_token=security_token,
            dry_run=dry_run,
            report_file=report_file,
            request_timeout=request_timeout,
        )
    except DeployerError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(deployer.run())


if __name__ == "__main__":
    main()
