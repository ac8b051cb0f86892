"""Typer CLI for inspecting declared AMQP instance configurations."""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from amqp_provisioner.config.loader import load_instance_config, load_provider_config
from amqp_provisioner.config.models import InstanceConfig, ProviderConfig
from amqp_provisioner.resource.diff import (
    DIFFABLE_FIELDS,
    changed_fields,
    is_suppressed,
    requires_replacement,
)
from amqp_provisioner.resource.request import RequestBuilder

console = Console()
app = typer.Typer(name="amqp", help="AMQP instance provisioning CLI")


def _load(
    config_path: str,
    provider_config: str | None = None,
) -> tuple[InstanceConfig, ProviderConfig]:
    path = Path(config_path)
    if not path.exists():
        console.print(f"[red]Config file not found: {path}[/red]")
        raise typer.Exit(1)
    instance = load_instance_config(path)
    provider = load_provider_config(Path(provider_config) if provider_config else None)
    return instance, provider


@app.command()
def validate(
    config_path: str = typer.Argument(..., help="Path to instance YAML"),
    provider_config: str | None = typer.Option(
        None, "--provider-config", help="Provider YAML"
    ),
) -> None:
    """Validate an instance configuration file."""
    try:
        instance, provider = _load(config_path, provider_config)
    except (ValueError, TypeError, FileNotFoundError) as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        raise typer.Exit(1) from exc

    console.print(f"[green]Valid[/green] - instance_type={instance.instance_type}")
    console.print(f"  region:   {provider.region_id}")
    console.print(f"  max_tps:  {instance.max_tps}")
    console.print(f"  queues:   {instance.queue_capacity}")
    eip = f"yes ({instance.max_eip_tps or 'no throughput set'})"
    console.print(f"  eip:      {eip if instance.support_eip else 'no'}")
    console.print(f"  payment:  {instance.payment_type}")
    ignored = [f for f in DIFFABLE_FIELDS if is_suppressed(f, instance)]
    if ignored:
        console.print(f"  ignored for diffing: {', '.join(ignored)}")


@app.command()
def render(
    config_path: str = typer.Argument(..., help="Path to instance YAML"),
    provider_config: str | None = typer.Option(
        None, "--provider-config", help="Provider YAML"
    ),
) -> None:
    """Print the CreateInstance request that would be sent."""
    try:
        instance, provider = _load(config_path, provider_config)
    except (ValueError, TypeError, FileNotFoundError) as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        raise typer.Exit(1) from exc
    request = RequestBuilder(provider).create_request(instance)
    console.print_json(json.dumps(request))


@app.command()
def diff(
    prior_path: str = typer.Argument(..., help="Instance YAML currently applied"),
    desired_path: str = typer.Argument(..., help="Instance YAML to apply"),
) -> None:
    """Show which fields an update would change."""
    try:
        prior = load_instance_config(prior_path)
        desired = load_instance_config(desired_path)
    except (ValueError, TypeError, FileNotFoundError) as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        raise typer.Exit(1) from exc

    changed = changed_fields(prior, desired)
    if requires_replacement(prior, desired):
        console.print("[red]instance_type changed: the instance must be replaced[/red]")

    if not changed:
        console.print("[green]No changes[/green]")
        return

    table = Table(title="Changed fields")
    table.add_column("Field", style="cyan")
    table.add_column("Current")
    table.add_column("Desired")
    for name in DIFFABLE_FIELDS:
        if name in changed:
            table.add_row(
                name, str(getattr(prior, name)), str(getattr(desired, name))
            )
    console.print(table)
