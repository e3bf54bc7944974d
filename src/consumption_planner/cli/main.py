import click
import logging
from pathlib import Path
from rich.console import Console
from rich.logging import RichHandler

from .. import __version__
from ..core.config import get_settings, reload_settings
from ..core.exceptions import ConfigurationError
from ..core.logging import setup_logging_from_config
from .commands import budget, optimize, plan

console = Console()
log_console = Console(stderr=True)


@click.group()
@click.version_option(version=__version__, prog_name='consumption-planner')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--config', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Path to configuration file')
@click.pass_context
def cli(ctx, debug, config):
    """
    Consumption Planner - cloud capacity purchase planning

    Recommend reserved, savings, spot and on-demand purchases for recurring
    workloads and track the resulting spend against grant budgets.
    """
    ctx.ensure_object(dict)

    try:
        settings = reload_settings(config) if config else get_settings()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    setup_logging_from_config(
        settings.logging,
        handler=RichHandler(console=log_console, rich_tracebacks=True, show_path=False),
    )
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)

    ctx.obj['settings'] = settings
    ctx.obj['console'] = console


cli.add_command(optimize.optimize)
cli.add_command(plan.plan)
cli.add_command(budget.budget)


@cli.command()
def version():
    """Show version information"""
    console.print(f"[bold blue]Consumption Planner[/bold blue] version [green]{__version__}[/green]")


if __name__ == '__main__':
    cli()
