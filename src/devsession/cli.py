import logging
import os

import click
from rich.console import Console
from rich.logging import RichHandler

from .core import SessionBootstrapper
from .errors import BootstrapError
from .errors_catalog import actionable_error
from .models import SessionTarget, TunnelTarget
from .services.config_loader import ConfigLoader

DEFAULT_DB_PORT = 3306


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _require(value, option: str, key: str) -> str:
    if value is None or str(value) == "":
        raise click.ClickException(actionable_error("missing_option", option=option, key=key))
    return str(value)


def _port(value, option: str):
    if value is None:
        return None
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise click.ClickException(f"--{option} must be an integer, got {value!r}.") from exc
    if not 1 <= port <= 65535:
        raise click.ClickException(f"--{option} must be between 1 and 65535, got {port}.")
    return port


def _timeout(value, option: str):
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise click.ClickException(f"--{option} must be a number of seconds, got {value!r}.") from exc
    if seconds <= 0:
        raise click.ClickException(f"--{option} must be greater than 0, got {value!r}.")
    return seconds


def _flag(value, key: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise click.ClickException(f"Config key '{key}' must be true or false, got {value!r}.")
    return value


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_level=False,
            show_path=False,
        )
    ],
)


@click.command()
@click.option("--profile", required=False, help="AWS SSO profile used for login and EKS.")
@click.option(
    "--db-profile",
    required=False,
    help="AWS profile used to sign the database token (default: --profile).",
)
@click.option("--cluster", required=False, help="EKS cluster name to add to kubeconfig.")
@click.option("--db-hostname", required=False, help="RDS endpoint hostname.")
@click.option(
    "--db-port",
    required=False,
    type=click.IntRange(1, 65535),
    default=None,
    help=f"RDS endpoint port (default: {DEFAULT_DB_PORT}).",
)
@click.option("--region", required=False, help="AWS region of the RDS instance.")
@click.option("--db-username", required=False, help="Database user enabled for IAM authentication.")
@click.option(
    "--tunnel",
    is_flag=True,
    default=None,
    help="After the token, open a kubectl port-forward to the database service.",
)
@click.option("--tunnel-service", required=False, help="Kubernetes service to forward to.")
@click.option("--tunnel-namespace", required=False, help="Namespace of the tunnel service.")
@click.option(
    "--tunnel-local-port",
    required=False,
    type=click.IntRange(1, 65535),
    default=None,
    help="Local port for the tunnel.",
)
@click.option(
    "--tunnel-remote-port",
    required=False,
    type=click.IntRange(1, 65535),
    default=None,
    help="Service port for the tunnel (default: --db-port).",
)
@click.option(
    "--check-namespace",
    required=False,
    help="After the token step, list pods in this namespace to confirm cluster access.",
)
@click.option(
    "--step-timeout",
    required=False,
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Timeout in seconds for the non-interactive steps.",
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .devsession.yml if present.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=None,
    help="Print the commands that would run without executing them.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def main(
    profile,
    db_profile,
    cluster,
    db_hostname,
    db_port,
    region,
    db_username,
    tunnel,
    tunnel_service,
    tunnel_namespace,
    tunnel_local_port,
    tunnel_remote_port,
    check_namespace,
    step_timeout,
    config,
    dry_run,
    verbose,
    log_file,
):
    """Log in with AWS SSO, refresh kubeconfig and print an RDS IAM auth token."""
    logger = logging.getLogger("devsession")

    try:
        config_loader = ConfigLoader()
        config_values = config_loader.load(config, search_dir=os.getcwd())
    except BootstrapError as exc:
        raise click.ClickException(str(exc)) from exc

    profile = _require(_resolve_option(profile, config_values, "profile"), "profile", "profile")
    db_profile = str(_resolve_option(db_profile, config_values, "db_profile", default=profile))
    cluster = _require(_resolve_option(cluster, config_values, "cluster"), "cluster", "cluster")
    db_hostname = _require(
        _resolve_option(db_hostname, config_values, "db_hostname"),
        "db-hostname",
        "db_hostname",
    )
    db_port = _port(
        _resolve_option(db_port, config_values, "db_port", default=DEFAULT_DB_PORT),
        "db-port",
    )
    region = _require(_resolve_option(region, config_values, "region"), "region", "region")
    db_username = _require(
        _resolve_option(db_username, config_values, "db_username"),
        "db-username",
        "db_username",
    )

    tunnel = _flag(_resolve_option(tunnel, config_values, "tunnel"), "tunnel")
    tunnel_service = _resolve_option(tunnel_service, config_values, "tunnel_service")
    tunnel_namespace = _resolve_option(tunnel_namespace, config_values, "tunnel_namespace")
    tunnel_local_port = _port(
        _resolve_option(tunnel_local_port, config_values, "tunnel_local_port"),
        "tunnel-local-port",
    )
    tunnel_remote_port = _port(
        _resolve_option(tunnel_remote_port, config_values, "tunnel_remote_port", default=db_port),
        "tunnel-remote-port",
    )
    check_namespace = _resolve_option(check_namespace, config_values, "check_namespace")
    step_timeout = _timeout(
        _resolve_option(step_timeout, config_values, "step_timeout"),
        "step-timeout",
    )
    dry_run = _flag(_resolve_option(dry_run, config_values, "dry_run"), "dry_run")
    verbose = _flag(_resolve_option(verbose, config_values, "verbose"), "verbose")
    log_file = _resolve_option(log_file, config_values, "log_file")

    tunnel_target = None
    if tunnel:
        missing = [
            option
            for option, value in (
                ("--tunnel-service", tunnel_service),
                ("--tunnel-namespace", tunnel_namespace),
                ("--tunnel-local-port", tunnel_local_port),
            )
            if not value
        ]
        if missing:
            raise click.ClickException(
                actionable_error("tunnel_incomplete", missing=", ".join(missing))
            )
        tunnel_target = TunnelTarget(
            service=str(tunnel_service),
            namespace=str(tunnel_namespace),
            local_port=tunnel_local_port,
            remote_port=tunnel_remote_port,
        )

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            logger.removeHandler(handler)
            handler.close()

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    target = SessionTarget(
        profile=profile,
        db_profile=db_profile,
        cluster=cluster,
        db_hostname=db_hostname,
        db_port=db_port,
        region=region,
        db_username=db_username,
    )
    bootstrapper = SessionBootstrapper(
        target=target,
        tunnel=tunnel_target,
        check_namespace=check_namespace,
        step_timeout=step_timeout,
        dry_run=dry_run,
        verbose=verbose,
        output=click.echo,
    )

    raise SystemExit(bootstrapper.run())


if __name__ == "__main__":
    main()
