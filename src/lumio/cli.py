"""Lumio webhooks CLI - Command line interface."""

from __future__ import annotations

import json
import sys
import time

import click
from rich.console import Console
from rich.table import Table

console = Console()

BANNER = """
 _                 _
| |_   _ _ __ ___ (_) ___
| | | | | '_ ` _ \\| |/ _ \\
| | |_| | | | | | | | (_) |
|_|\\__,_|_| |_| |_|_|\\___/
   Webhooks you can trust
"""


def _read_payload(payload: str | None, payload_file: str | None) -> bytes:
    if payload_file:
        with open(payload_file, "rb") as f:
            return f.read()
    if payload is None:
        raise click.UsageError("Provide a PAYLOAD argument or --file")
    return payload.encode("utf-8")


@click.group()
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to YAML or TOML config file",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default=None,
    help="Log level (default: from config)",
)
@click.option("--json-logs", is_flag=True, default=False, help="Render logs as JSON")
@click.pass_context
def main(ctx: click.Context, config_file: str | None, log_level: str | None, json_logs: bool):
    """Lumio - inbound webhook verification.

    Examples:

        lumio sign --provider github --secret abc ping

        lumio verify --provider github --secret abc --signature sha256=... ping

        lumio serve --port 8000
    """
    from lumio.core.config import LumioConfig, get_config
    from lumio.core.logging import configure_logging

    if config_file:
        try:
            config = LumioConfig.from_file(config_file)
        except (FileNotFoundError, ValueError) as e:
            console.print(f"[red]Failed to load config: {e}[/red]")
            sys.exit(1)
    else:
        config = get_config()

    configure_logging(
        level=log_level or config.server.log_level,
        json_output=json_logs or config.server.json_logs,
    )
    ctx.obj = config


@main.command()
@click.option("--provider", "-p", required=True, help="Provider name (stripe, slack, github, ...)")
@click.option("--secret", "-s", required=True, envvar="LUMIO_WEBHOOK_SECRET", help="Signing secret")
@click.option("--timestamp", "-t", type=int, default=None, help="Unix timestamp (Stripe/Slack)")
@click.option("--algorithm", "-a", default="sha256", help="Hash algorithm for generic providers")
@click.option("--file", "-f", "payload_file", type=click.Path(exists=True), help="Read payload from file")
@click.argument("payload", required=False)
def sign(
    provider: str,
    secret: str,
    timestamp: int | None,
    algorithm: str,
    payload_file: str | None,
    payload: str | None,
):
    """Print the signature header a provider would send for PAYLOAD."""
    from lumio.webhooks.providers import get_provider

    body = _read_payload(payload, payload_file)
    strategy = get_provider(provider)
    if timestamp is None and strategy.replay_protected:
        timestamp = int(time.time())

    try:
        value = strategy.sign(body, secret, timestamp=timestamp, algorithm=algorithm)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    click.echo(f"{strategy.signature_header}: {value}")
    if strategy.timestamp_header:
        click.echo(f"{strategy.timestamp_header}: {timestamp}")


@main.command()
@click.option("--provider", "-p", required=True, help="Provider name (stripe, slack, github, ...)")
@click.option("--secret", "-s", required=True, envvar="LUMIO_WEBHOOK_SECRET", help="Signing secret")
@click.option("--signature", required=True, help="Signature header value to check")
@click.option("--timestamp", "-t", default=None, help="Timestamp header value (Slack)")
@click.option("--algorithm", "-a", default="sha256", help="Hash algorithm for generic providers")
@click.option("--tolerance", type=int, default=None, help="Timestamp tolerance in seconds (default: from config)")
@click.option("--file", "-f", "payload_file", type=click.Path(exists=True), help="Read payload from file")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.argument("payload", required=False)
@click.pass_obj
def verify(
    config,
    provider: str,
    secret: str,
    signature: str,
    timestamp: str | None,
    algorithm: str,
    tolerance: int | None,
    payload_file: str | None,
    json_output: bool,
    payload: str | None,
):
    """Verify SIGNATURE for PAYLOAD. Exits with status 1 when invalid."""
    from lumio.webhooks import WebhookConfig, WebhookSecurity

    if tolerance is None:
        tolerance = config.webhooks.timestamp_tolerance

    body = _read_payload(payload, payload_file)
    security = WebhookSecurity(settings=config.webhooks)
    result = security.verify(
        body,
        signature,
        WebhookConfig(
            provider=provider,
            secret=secret,
            algorithm=algorithm,
            timestamp_tolerance=tolerance,
        ),
        timestamp=timestamp,
    )

    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        table = Table(show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row("Provider", result.provider)
        table.add_row(
            "Valid",
            "[green]yes[/green]" if result.is_valid else "[red]no[/red]",
        )
        table.add_row("Status", result.status.value)
        if result.error:
            table.add_row("Error", result.error)
        if result.timestamp is not None:
            table.add_row("Timestamp", str(result.timestamp))
        console.print(table)

    if not result.is_valid:
        sys.exit(1)


@main.command()
@click.option("--host", default=None, help="Bind host (default: from config)")
@click.option("--port", "-p", type=int, default=None, help="Bind port (default: from config)")
@click.pass_obj
def serve(config, host: str | None, port: int | None):
    """Run the webhook receiver."""
    import uvicorn

    from lumio.server.app import create_app

    app = create_app(settings=config.webhooks)
    bind_host = host or config.server.host
    bind_port = port or config.server.port

    providers = ", ".join(sorted(config.webhooks.provider_secrets)) or "none"
    console.print(f"Receiving webhooks on http://{bind_host}:{bind_port}", style="yellow")
    console.print(f"[bold]Providers:[/bold] {providers}")

    uvicorn.run(app, host=bind_host, port=bind_port, log_level=config.server.log_level)


@main.command(name="config")
@click.pass_obj
def show_config(config):
    """Show the effective configuration (secrets hidden)."""
    display = config.to_display_dict()
    for section, values in display.items():
        table = Table(title=section)
        table.add_column("Setting", style="cyan")
        table.add_column("Value")
        for key, value in values.items():
            table.add_row(key, str(value))
        console.print(table)


@main.command()
def version():
    """Show version information."""
    from lumio import __version__

    console.print(BANNER, style="cyan")
    console.print(f"[bold]Version:[/bold] {__version__}")
    console.print(f"[bold]Python:[/bold] {sys.version}")


if __name__ == "__main__":
    main()
