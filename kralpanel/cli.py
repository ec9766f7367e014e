# kralpanel/cli.py
# -*- coding: utf-8 -*-
"""
Command-line entry point for the KralPanel installer.
"""

import logging
import sys
from typing import Any, Dict, NoReturn, Optional, Tuple

import click

from common.core_utils import setup_logging
from kralpanel.config_loader import load_app_settings
from kralpanel.config_models import KRALPANEL_VERSION
from kralpanel.context import ProvisionContext
from kralpanel.errors import ConfigurationError
from kralpanel.provisioner import Provisioner, load_all_steps
from kralpanel.registry import StepRegistry

logger = logging.getLogger("kralpanel.installer")


def die(message: str) -> NoReturn:
    """Print a red error to stderr and exit with status 1."""
    click.secho(f"ERROR: {message}", fg="red", err=True)
    sys.exit(1)


def print_banner() -> None:
    click.secho("╔════════════════════════════════════════════════════╗", fg="cyan")
    click.secho("║          KRALPANEL One-Click Installer             ║", fg="cyan")
    click.secho(f"║             v{KRALPANEL_VERSION:<38}║", fg="cyan")
    click.secho("╚════════════════════════════════════════════════════╝", fg="cyan")


def print_success(public_ip: Optional[str]) -> None:
    line = "═" * 52
    click.secho(f"\n{line}", fg="green")
    click.secho("  Installation Successful!", fg="green")
    if public_ip:
        click.echo("  URL: " + click.style(f"http://{public_ip}", fg="cyan"))
    click.secho(f"{line}\n", fg="green")


def _cli_overrides(strategy: Optional[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if strategy:
        overrides["artifact"] = {"strategy": strategy}
    return overrides


@click.command(name="kralpanel-install")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="YAML configuration file.",
)
@click.option(
    "--strategy",
    type=click.Choice(["prebuilt", "source"]),
    default=None,
    help="Override how the application is acquired.",
)
@click.option(
    "--step",
    "steps",
    multiple=True,
    help="Run only this step (repeatable). The privilege check always runs.",
)
@click.option("--list-steps", is_flag=True, help="List steps in order and exit.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug output.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write a detailed log to this file.",
)
@click.version_option(KRALPANEL_VERSION, prog_name="kralpanel-install")
def cli(
    config_path: Optional[str],
    strategy: Optional[str],
    steps: Tuple[str, ...],
    list_steps: bool,
    verbose: bool,
    log_file: Optional[str],
) -> None:
    """
    Provision this Ubuntu host with KralPanel: system packages, Go and
    Node.js, the panel application, its systemd service, the pm2-managed
    frontend and the nginx reverse proxy.
    """
    if list_steps:
        load_all_steps(logger)
        for index, name in enumerate(StepRegistry.full_order(), start=1):
            description = StepRegistry.get_step(name).metadata.get("description", "")
            click.echo(f"{index}. {name:<14} {description}")
        return

    try:
        app_settings = load_app_settings(
            config_file_path=config_path,
            cli_overrides=_cli_overrides(strategy),
            current_logger=logger,
        )
    except ConfigurationError as e:
        die(e.message)

    setup_logging(
        log_level=logging.DEBUG if verbose else logging.INFO,
        log_file=log_file,
        log_prefix=app_settings.log_prefix,
        symbols=app_settings.symbols,
    )

    print_banner()
    context = ProvisionContext()
    result = Provisioner(app_settings, logger).run(
        step_names=list(steps) or None, context=context
    )
    if not result.success:
        die(result.message)

    print_success(context.public_ip)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
