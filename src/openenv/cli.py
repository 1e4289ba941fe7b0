import logging
import os

import click
from rich.logging import RichHandler

from .constants import COPY_RETRY_COUNT, COPY_RETRY_DELAY_SECONDS
from .core import OpenEnv, console
from .errors import OpenEnvError
from .services.config_loader import ConfigLoader

DEFAULT_CONFIG_NAME = ".openenv.yml"


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


def _configure_logging(verbose: bool, log_file):
    logger = logging.getLogger("openenv")
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


def _build_env(settings) -> OpenEnv:
    environments_file = settings["environments_file"]
    if not environments_file:
        raise click.ClickException(
            "Missing required option '--environments-file' (or provide it in config)."
        )

    env = OpenEnv()
    try:
        env.initialise(
            json_path=environments_file,
            dev_ui_test_api=settings["dev_ui_test_api"],
            url=settings["url"],
        )
    except OpenEnvError as exc:
        raise click.ClickException(str(exc)) from exc
    return env


@click.group()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .openenv.yml if present.",
)
@click.option(
    "--environments-file",
    required=False,
    type=click.Path(),
    help="Path to the JSON file describing the Production/Testing/Development environments.",
)
@click.option(
    "--dev-ui-test-api",
    is_flag=True,
    default=None,
    help="Run the UI in development against the Testing API environment.",
)
@click.option("--url", required=False, help="Base URL of the hosted API (blank uses the LAN address).")
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.pass_context
def main(ctx, config, environments_file, dev_ui_test_api, url, verbose, log_file):
    """Resolve the hosting environment and clone SQL Server databases between environments."""
    try:
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_NAME)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = ConfigLoader().load(resolved_config)
    except OpenEnvError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    _configure_logging(verbose, log_file)

    ctx.obj = {
        "environments_file": _resolve_option(
            environments_file, config_values, "environments_file"
        ),
        "dev_ui_test_api": bool(
            _resolve_option(dev_ui_test_api, config_values, "dev_ui_test_api", default=False)
        ),
        "url": _resolve_option(url, config_values, "url"),
        "copy_retry_count": int(config_values.get("copy_retry_count", COPY_RETRY_COUNT)),
        "copy_retry_delay_seconds": float(
            config_values.get("copy_retry_delay_seconds", COPY_RETRY_DELAY_SECONDS)
        ),
    }


@main.command()
@click.pass_obj
def info(settings):
    """Print the resolved hosting mode, environment keys and addresses."""
    env = _build_env(settings)
    mode = env.mode
    caption, visible = env.banner()

    console.print(f"[bold blue]Hosting mode:[/bold blue] {mode.label}")
    console.print(f"Environment key: {env.resolver.environment_key(mode)}")
    console.print(f"Config key: {env.resolver.config_key(mode)}")
    try:
        console.print(f"API IP: {env.resolver.get_api_ip()}")
        console.print(f"UI IP: {env.resolver.get_ui_ip()}")
    except OpenEnvError as exc:
        raise click.ClickException(str(exc)) from exc
    if env.runtime.url:
        console.print(f"URL: {env.runtime.url}")
    console.print(f"Banner: {caption}{'' if visible else ' (hidden)'}")


@main.command("connection-string")
@click.argument("name")
@click.option(
    "--allow-production",
    is_flag=True,
    default=False,
    help="Allow reading the live catalog from a host without the production marker.",
)
@click.pass_obj
def connection_string(settings, name, allow_production):
    """Print the connection string for NAME (for example OrdersConnection)."""
    env = _build_env(settings)
    try:
        value = env.connections.obtain_connection_string(
            name, allow_production_override=allow_production
        )
    except OpenEnvError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(value)


@main.command()
@click.option("--source-db", required=True, help="Source database (catalog) name, e.g. Orders_Live.")
@click.option("--source-env", required=True, help="Environment key of the source server.")
@click.option("--dest-db", required=True, help="Destination database (catalog) name, e.g. Orders_Test.")
@click.option("--dest-env", required=True, help="Environment key of the destination server.")
@click.pass_obj
def clone(settings, source_db, source_env, dest_db, dest_env):
    """Back up SOURCE, copy the backup across network shares and restore it over DEST."""
    env = _build_env(settings)

    def report(progress):
        console.print(f"[dim]{progress.stage.value}:[/dim] {progress.message}")

    try:
        env.clone_database(
            source_db,
            source_env,
            dest_db,
            dest_env,
            progress=report,
            retry_count=settings["copy_retry_count"],
            retry_delay_seconds=settings["copy_retry_delay_seconds"],
        )
    except OpenEnvError as exc:
        raise click.ClickException(str(exc)) from exc


if __name__ == "__main__":
    main()
