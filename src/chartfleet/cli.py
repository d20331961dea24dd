import logging
import os

import click
from rich.logging import RichHandler

from .core import OPERATION_DIRECTIONS, ReleaseEngine
from .errors import ChartfleetError
from .services.command_runner import CommandRunner
from .services.config_loader import ConfigLoader
from .services.desired_state import DesiredStateLoader
from .services.helm import HelmOperation


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.argument("operation", type=click.Choice(["plan"] + list(OPERATION_DIRECTIONS)))
@click.option("--file", "-f", "file_path", required=False, help="Desired state file (default: releases.yaml)")
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .chartfleet.yml if present.",
)
@click.option(
    "--concurrency",
    required=False,
    type=int,
    default=None,
    help="Maximum number of releases processed at once within a group (0: one per release).",
)
@click.option("--kube-context", required=False, help="Kube context applied to releases without one")
@click.option("--namespace", required=False, help="Namespace applied to releases without one")
@click.option("--reverse", is_flag=True, default=None, help="Reverse the declared release order")
@click.option("--helm-binary", required=False, help="Helm executable (default: helm)")
@click.option(
    "--timeout",
    required=False,
    type=float,
    default=None,
    help="Timeout in seconds for each helm command.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=None,
    help="Print helm commands in execution order without running them.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def main(
    operation,
    file_path,
    config,
    concurrency,
    kube_context,
    namespace,
    reverse,
    helm_binary,
    timeout,
    dry_run,
    verbose,
    log_file,
):
    """Run a helm operation over interdependent chart releases."""
    logger = logging.getLogger("chartfleet")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), ".chartfleet.yml")
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except ChartfleetError as exc:
        raise click.ClickException(str(exc)) from exc

    file_path = _resolve_option(file_path, config_values, "file", default="releases.yaml")
    concurrency = _resolve_option(concurrency, config_values, "concurrency")
    kube_context = _resolve_option(kube_context, config_values, "kube_context")
    namespace = _resolve_option(namespace, config_values, "namespace")
    reverse = bool(_resolve_option(reverse, config_values, "reverse", default=False))
    helm_binary = _resolve_option(helm_binary, config_values, "helm_binary", default="helm")
    timeout = _resolve_option(timeout, config_values, "timeout")
    dry_run = bool(_resolve_option(dry_run, config_values, "dry_run", default=False))
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")

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
        state = DesiredStateLoader(
            logger=logger,
            kube_context=kube_context,
            namespace=namespace,
            reverse=reverse,
        ).load(file_path)
        engine = ReleaseEngine(state)

        if operation == "plan":
            raise SystemExit(engine.show_plan())

        helm_operation = HelmOperation(
            command_runner=CommandRunner(logger=logger),
            operation=operation,
            logger=logger,
            helm_binary=helm_binary,
            dry_run=dry_run,
            timeout=float(timeout) if timeout is not None else None,
        )
    except ChartfleetError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(engine.run(operation, helm_operation, concurrency=concurrency))


if __name__ == "__main__":
    main()
