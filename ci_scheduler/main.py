"""CLI entry point for the CI scheduler."""

import sys
from pathlib import Path

import click
import structlog

from ci_scheduler.config.ci_yaml import parse_ci_yaml
from ci_scheduler.config.settings import SchedulerSettings
from ci_scheduler.engine.target_selector import select_postsubmit_builders, select_presubmit_builders
from ci_scheduler.exceptions import CiYamlValidationError, ConfigurationError
from ci_scheduler.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)


@click.group()
@click.option("--config", default="ci_scheduler.yaml", help="Path to configuration file")
@click.option("--log-level", default="INFO", help="Logging level")
@click.pass_context
def cli(ctx: click.Context, config: str, log_level: str) -> None:
    """ci-scheduler: presubmit and postsubmit scheduling for .ci.yaml repositories."""
    configure_logging(log_level)

    # validate-config works on a local file and needs no settings
    commands_without_config = ["validate-config"]
    if ctx.invoked_subcommand in commands_without_config:
        ctx.obj = {"settings": None}
        return

    config_path = Path(config)
    if not config_path.exists():
        click.echo(f"Error: Configuration file not found: {config}", err=True)
        sys.exit(1)

    try:
        settings = SchedulerSettings.from_yaml(str(config_path))
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("config_error", exc_info=True)
        sys.exit(1)

    ctx.obj = {"settings": settings}


@cli.command("validate-config")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--branch", help="List the targets that would run on this branch")
def validate_config(path: Path, branch: str | None) -> None:
    """Validate a local .ci.yaml file."""
    try:
        config = parse_ci_yaml(path.read_text(encoding="utf-8"))
    except CiYamlValidationError as e:
        click.echo(e.message, err=True)
        sys.exit(1)
    except (OSError, UnicodeDecodeError) as e:
        click.echo(f"Error: Cannot read {path}: {e}", err=True)
        sys.exit(1)

    click.echo(f"{path} is valid: {len(config.targets)} targets")

    if branch:
        presubmit = select_presubmit_builders(config, branch)
        postsubmit = select_postsubmit_builders(config, branch)
        click.echo(f"\nPresubmit on {branch}:")
        for builder in presubmit:
            click.echo(f"  {builder.task_name} ({builder.name})")
        click.echo(f"\nPostsubmit on {branch}:")
        for builder in postsubmit:
            click.echo(f"  {builder.task_name} ({builder.name})")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Interface to bind")
@click.option("--port", type=int, default=8000, help="Port to listen on")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Run the webhook server."""
    import uvicorn

    from ci_scheduler.providers.factory import create_scheduler
    from ci_scheduler.webhook_server import create_app

    settings = ctx.obj["settings"]
    scheduler = create_scheduler(settings)
    app = create_app(scheduler)

    log.info("webhook_server_starting", host=host, port=port)
    try:
        uvicorn.run(app, host=host, port=port, log_config=None)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)


if __name__ == "__main__":
    cli()
