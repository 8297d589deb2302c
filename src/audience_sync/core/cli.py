"""Command line interface for audience sync."""

import sys
import json
import logging
from typing import Optional

import click

from .config import setup_logging, load_environment, load_settings
from .exceptions import ConfigurationError, MailchimpAPIError, SyncError, WatermarkStoreError
from ..services.bootstrap import SyncServices, build_services
from ..version import __version__


def _services(ctx: click.Context) -> SyncServices:
    """Resolve settings and wire the services, exiting on startup errors."""
    try:
        settings = load_settings(ctx.obj.get("config_file"))
        return build_services(settings)
    except ConfigurationError as e:
        click.echo(f"Configuration Error: {e}", err=True)
        sys.exit(1)
    except WatermarkStoreError as e:
        click.echo(f"Watermark Store Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(__version__, prog_name="audience-sync")
@click.option('--log-level', default='INFO', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Set the logging level')
@click.option('--env-file', type=click.Path(exists=True), help='Path to .env file')
@click.option('--config', 'config_file', type=click.Path(exists=True), help='Path to config.json')
@click.pass_context
def cli(ctx: click.Context, log_level: str, env_file: Optional[str], config_file: Optional[str]) -> None:
    """Mailchimp to Ometria audience sync tool."""
    setup_logging(log_level)
    load_environment(env_file)
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file


@cli.command()
@click.option('--run-interval-seconds', type=int, help='The run interval in seconds (overrides the config)')
@click.pass_context
def run(ctx: click.Context, run_interval_seconds: Optional[int]) -> None:
    """Sync every list now and then on a fixed interval."""
    services = _services(ctx)
    interval = services.settings.run_interval_seconds
    if run_interval_seconds is not None:
        interval = run_interval_seconds
    if interval <= 0:
        click.echo("Configuration Error: the run interval must be positive", err=True)
        sys.exit(1)

    try:
        services.runner.run_forever(interval)
    except KeyboardInterrupt:
        click.echo("Stopped.")


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Sync every list once."""
    services = _services(ctx)
    sweep = services.runner.run_sweep()
    summary = sweep.get_summary()

    click.echo(f"Lists found: {summary['lists_found']}")
    click.echo(f"  Synced: {summary['synced']}")
    click.echo(f"  Failed: {summary['failed']}")
    click.echo(f"  Members processed: {summary['members_processed']}")
    for list_id, error in sweep.failures.items():
        click.echo(f"  {list_id}: {error}", err=True)

    if sweep.error:
        click.echo(f"Unable to list audiences: {sweep.error}", err=True)
    if not sweep.succeeded:
        sys.exit(1)


@cli.command()
@click.argument('list_id')
@click.pass_context
def sync_list(ctx: click.Context, list_id: str) -> None:
    """Run one sync cycle for a single list."""
    services = _services(ctx)
    try:
        result = services.engine.sync_list(list_id)
    except SyncError as e:
        click.echo(f"Sync Error: {e}", err=True)
        sys.exit(1)

    click.echo(result.model_dump_json(indent=2))


@cli.command()
@click.option('--output', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
@click.pass_context
def lists(ctx: click.Context, output: str) -> None:
    """List the audiences available to the API key."""
    services = _services(ctx)
    try:
        audiences = services.source.get_all_lists()
    except MailchimpAPIError as e:
        click.echo(f"Mailchimp API Error: {e}", err=True)
        sys.exit(1)

    if output == 'json':
        click.echo(json.dumps([audience.model_dump() for audience in audiences], indent=2))
        return

    if not audiences:
        click.echo("No lists found.")
        return

    click.echo(f"{'ID':<15} {'Name':<40} {'Members':<10} {'Contacts':<10}")
    click.echo("-" * 78)
    for audience in audiences:
        click.echo(f"{audience.id:<15} {audience.name:<40} {audience.stats.member_count:<10} "
                   f"{audience.stats.total_contacts:<10}")


@cli.command()
@click.argument('list_id')
@click.pass_context
def watermark(ctx: click.Context, list_id: str) -> None:
    """Show the last completed sync of a list."""
    services = _services(ctx)
    try:
        value = services.store.get(list_id)
    except WatermarkStoreError as e:
        click.echo(f"Watermark Store Error: {e}", err=True)
        sys.exit(1)

    click.echo(value or "none (next sync is a full sync)")


@cli.command()
@click.pass_context
def test_connection(ctx: click.Context) -> None:
    """Test connection to the watermark store and Mailchimp."""
    services = _services(ctx)
    click.echo(f"Connected to the {services.settings.state.backend} watermark store")

    if services.source.test_connection():
        click.echo("Successfully connected to Mailchimp API!")
    else:
        click.echo("Could not connect to Mailchimp API", err=True)
        sys.exit(1)


def main() -> None:
    """Main entry point for the CLI."""
    try:
        cli(obj={})
    except Exception:
        logging.exception("Unexpected error occurred")
        sys.exit(1)
