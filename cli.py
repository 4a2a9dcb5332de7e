# Simple CLI for the account mirror
import asyncio
import json
import sys

import click
from pydantic import ValidationError

from app.main import main as run_app
from core.config.settings import Settings
from services.strategy.harvest import (
    HarvestConfig,
    as_sequence,
    detect_sequence_drift,
    extract_persisted_sequence,
)


@click.group()
def cli():
    """Account Mirror CLI"""
    pass


@cli.command()
def run():
    """Log in with the configured session credentials and mirror the account"""
    click.echo("Starting account mirror...")
    asyncio.run(run_app())


@cli.command()
@click.option("--contracts", type=float, required=True, help="Contracts opened per cycle")
@click.option("--tp-points", type=float, required=True, help="Take-profit distance in points")
@click.option("--divisor", type=float, required=True, help="Order distance divisor")
@click.option("--harvest-pct", type=click.FloatRange(0, 100), required=True, help="Harvest percentage (0-100)")
def plan(contracts, tp_points, divisor, harvest_pct):
    """Print the harvest sequence for a configuration"""
    config = HarvestConfig(
        contracts=contracts,
        tp_points=tp_points,
        order_distance_divisor=divisor,
        harvest_percentage=harvest_pct,
    )
    result = config.plan()
    if not result.steps:
        click.echo("No harvest steps for these parameters.")
        return
    for index, step in enumerate(result.steps, start=1):
        click.echo(f"{index:>2}: {step}")
    click.echo(f"total: {result.total:.1f}")
    if result.truncated:
        click.echo("warning: step cap reached, last step is the remainder")


@cli.command()
@click.argument("config_file", type=click.File("r"))
def drift(config_file):
    """Compare the planned sequence with the one persisted in CONFIG_FILE

    CONFIG_FILE is an instrument record: the harvest parameters plus the
    persisted sequence, either in metadata.strategyConfig.pascalFalciArray
    (metadata may be a JSON string) or under "falciArray" / "sequence".
    """
    try:
        payload = json.load(config_file)
    except ValueError as e:
        raise click.ClickException(f"Invalid JSON: {e}")
    if not isinstance(payload, dict):
        raise click.ClickException("Config file must hold a JSON object")

    try:
        config = HarvestConfig.model_validate(payload)
    except ValidationError as e:
        raise click.ClickException(f"Invalid harvest parameters: {e.error_count()} errors")
    persisted = extract_persisted_sequence(payload)
    if persisted is None:
        raw = payload.get("falciArray", payload.get("sequence"))
        if raw is None:
            raise click.ClickException("No persisted sequence found in config file")
        persisted = as_sequence(raw)
        if persisted is None:
            raise click.ClickException("Persisted sequence must be a list of numbers")
    planned = config.preview()
    result = detect_sequence_drift(planned, persisted)

    click.echo(f"planned:   {planned}")
    click.echo(f"persisted: {persisted}")
    if result.matches:
        click.echo("OK: sequences match")
        return
    click.echo(f"DRIFT at steps {result.mismatched_steps}")
    sys.exit(1)


@cli.command()
def backends():
    """List configured backend profiles"""
    settings = Settings()
    for profile in settings.backends:
        click.echo(f"{profile.username:<20} {profile.label:<15} {profile.api_url}  {profile.ws_url}")


if __name__ == "__main__":
    cli()
