"""
CloudSentry CLI

Main entry point for the command-line interface.
"""

import sys
from pathlib import Path
from typing import Any, List, Optional

import boto3
import click
from rich.console import Console
from rich.table import Table

from .core.client_cache import ClientCache
from .core.config import load_integrations
from .core.credentials import StsCredentialBroker
from .core.exceptions import CloudSentryError
from .core.logging import get_logger, setup_logging
from .core.models import Integration
from .core.scan_runner import ScanRunner, ScanTask
from .delivery.batch import BatchEntry
from .delivery.sqs_batch import SqsBatchSender
from .pollers.registry import DEFAULT_REGISTRY, POLLER_SERVICES


console = Console()
logger = get_logger(__name__)


@click.group()
@click.version_option(version="0.1.0", prog_name="cloudsentry")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (default: WARNING)",
)
@click.option(
    "--log-file",
    default=None,
    help="Also write logs to this file",
)
def cli(log_level: str, log_file: Optional[str]):
    """
    CloudSentry: cloud account polling and reliable delivery.

    Assumes roles into monitored AWS accounts, builds cached service
    clients and ships collected records to SQS.
    """
    setup_logging(level=log_level, log_file=log_file)


@cli.command("services")
def list_services():
    """List the services clients can be built for."""
    table = Table(title="Supported Services")
    table.add_column("Service", style="cyan")
    table.add_column("boto3 client")
    for service in DEFAULT_REGISTRY.services():
        table.add_row(service, POLLER_SERVICES.get(service, "custom"))
    console.print(table)


@cli.command("assume-role")
@click.option(
    "--role-arn",
    required=True,
    help="ARN of the role to assume",
)
@click.option(
    "--integration-id",
    default="cli",
    help="Integration id to report (default: cli)",
)
@click.option(
    "--profile",
    "-p",
    default=None,
    help="AWS profile used to call STS",
)
def assume_role(role_arn: str, integration_id: str, profile: Optional[str]):
    """Assume a role and show when its credentials expire."""
    try:
        session = boto3.Session(profile_name=profile) if profile else None
        broker = StsCredentialBroker(session=session)
        integration = Integration(integration_id, auth_source=role_arn)
        credential = broker.assume_role(integration)
    except CloudSentryError as e:
        console.print(f"\n[red bold]Assume Role Failed:[/red bold] {str(e)}")
        sys.exit(1)

    console.print("\n[green bold]Role assumed successfully![/green bold]")
    console.print(f"\n  Role: {role_arn}")
    console.print(f"  Access key: {credential.access_key_id}")
    console.print(f"  Expires: {credential.expiration.isoformat()}")
    console.print(f"  Refresh at: {credential.refresh_at.isoformat()}")
    console.print()


def _describe_client(client: Any, task: ScanTask) -> List[dict]:
    """Poll function reporting where a resolved client points."""
    return [
        {
            "task": task.name,
            "service": task.service,
            "region": client.meta.region_name,
            "endpoint": client.meta.endpoint_url,
        }
    ]


@cli.command("clients")
@click.option(
    "--config",
    "-c",
    "config_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file describing the integrations",
)
@click.option(
    "--max-workers",
    default=10,
    type=int,
    help="Maximum parallel tasks (default: 10)",
)
def resolve_clients(config_path: str, max_workers: int):
    """
    Build a client for every enabled integration, service and region.

    Useful to check that roles can be assumed and that every configured
    service is supported.
    """
    try:
        integrations = load_integrations(config_path)
    except CloudSentryError as e:
        console.print(f"\n[red bold]Configuration Error:[/red bold] {str(e)}")
        sys.exit(1)

    runner = ScanRunner(ClientCache(), max_workers=max_workers)
    result = runner.run(integrations, _describe_client)

    table = Table(title=f"Resolved Clients ({len(result.records)}/{len(result.tasks)})")
    table.add_column("Task", style="cyan")
    table.add_column("Region")
    table.add_column("Endpoint")
    for record in sorted(result.records, key=lambda r: r["task"]):
        table.add_row(record["task"], record["region"], record["endpoint"])
    console.print(table)

    if result.has_errors:
        console.print("\n[red bold]Failures:[/red bold]")
        for name in sorted(result.errors):
            console.print(f"  [yellow]{name}[/yellow]: {result.errors[name]}")
        sys.exit(1)


def _read_entries(path: str) -> List[BatchEntry]:
    """One entry per non-empty line, ids are line numbers."""
    entries = []
    with Path(path).open(encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            body = line.rstrip("\n")
            if body.strip():
                entries.append(BatchEntry(id=str(line_number), body=body))
    return entries


@cli.command("send")
@click.option(
    "--queue-url",
    required=True,
    help="URL of the destination SQS queue",
)
@click.option(
    "--file",
    "-f",
    "input_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="File with one message per line",
)
@click.option(
    "--max-elapsed",
    default=60.0,
    type=float,
    help="Retry budget in seconds per request (default: 60)",
)
@click.option(
    "--region",
    "-r",
    default=None,
    help="Region of the queue",
)
@click.option(
    "--profile",
    "-p",
    default=None,
    help="AWS profile name from ~/.aws/credentials",
)
def send(
    queue_url: str,
    input_file: str,
    max_elapsed: float,
    region: Optional[str],
    profile: Optional[str],
):
    """Send every line of a file to an SQS queue."""
    entries = _read_entries(input_file)
    session = boto3.Session(profile_name=profile, region_name=region)
    sender = SqsBatchSender(session.client("sqs"), queue_url)

    try:
        result = sender.send(entries, max_elapsed_time=max_elapsed)
    except CloudSentryError as e:
        console.print(f"\n[red bold]Error:[/red bold] {str(e)}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Send cancelled by user.[/yellow]")
        sys.exit(130)

    table = Table(title="Delivery Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Entries", str(len(entries)))
    table.add_row("Delivered", str(result.success_count))
    table.add_row("Undelivered", str(len(result.undelivered)))
    table.add_row("Oversized", str(len(result.oversized)))
    table.add_row("Requests", str(result.requests))
    console.print(table)

    if result.error is not None:
        logger.debug(f"Delivery error details: {result.error.to_dict()}")
        console.print(f"\n[red bold]Delivery Failed:[/red bold] {result.error.message}")
        ids = ", ".join(entry.id for entry in result.undelivered)
        console.print(f"  Undelivered lines: {ids}")
        sys.exit(1)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
