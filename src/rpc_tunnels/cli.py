"""Command line entry point: ``rpc-tunnels up|down``."""

from pathlib import Path

import click
from pydantic import ValidationError

from .common.exceptions import TunnelsError
from .common.logging import get_logger, setup_logging
from .config import Settings
from .manager import TunnelLifecycleManager

logger = get_logger(__name__)


def _build_settings(**overrides: object) -> Settings:
    try:
        return Settings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        raise click.UsageError(f"Invalid settings: {e}") from e


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("command", type=click.Choice(["up", "down"]))
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Tunnels file (default: tunnels_config.json).",
)
@click.option(
    "--work-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for the generated haproxy.cfg and the run lock.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level.",
)
@click.option("--json-logs", is_flag=True, default=False, help="Emit JSON logs.")
@click.pass_context
def main(
    ctx: click.Context,
    command: str,
    config_path: Path | None,
    work_dir: Path | None,
    log_level: str | None,
    json_logs: bool,
) -> None:
    """Bring all configured tunnels UP, or take them all DOWN."""
    settings = _build_settings(
        config_path=config_path,
        work_dir=work_dir,
        log_level=log_level,
        json_logs=json_logs or None,
    )
    setup_logging(
        level=settings.log_level,
        json_format=settings.json_logs,
        log_file=settings.log_file,
    )

    manager = TunnelLifecycleManager(settings)
    try:
        if command == "down":
            manager.down()
            click.echo("All tunnels have been removed.")
            return

        endpoints = manager.up_from_file(settings.config_path)
    except TunnelsError as e:
        logger.debug("Command failed", command=command, error=str(e))
        click.secho(f"Error: {e}", err=True, fg="red")
        ctx.exit(1)

    for name, endpoint in endpoints.items():
        click.echo(f"Service {name} available at {endpoint}")
    click.echo(
        "All tunnels are now active. "
        f"Use 'screen -r {settings.session_name}' to view the session."
    )


if __name__ == "__main__":
    main()
