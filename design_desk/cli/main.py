"""
CLI interface for Design Desk.

Runs the bot and gives operators access to the client file.
"""

import logging
import sys
from datetime import datetime
from typing import Optional

import discord
import typer
import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from design_desk.bot.client import create_bot
from design_desk.config.loader import BotSettings, load_secrets, load_settings
from design_desk.core.errors import ConfigIntegrityError
from design_desk.core.quota import decide_quota
from design_desk.storage.models import ClientDirectory
from design_desk.storage.repository import DEFAULT_CLIENTS_PATH, get_repository

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

ClientsOption = typer.Option(
    DEFAULT_CLIENTS_PATH,
    "--clients",
    "-c",
    envvar="DESIGN_DESK_CLIENTS",
    help="Path to the JSON client file"
)
SettingsOption = typer.Option(
    None,
    "--settings",
    "-s",
    envvar="DESIGN_DESK_SETTINGS",
    help="Path to the YAML workflow settings file"
)


def _configure_logging(level: str) -> None:
    """Route our loggers and discord.py's through a single Rich handler."""
    discord.utils.setup_logging(
        handler=RichHandler(console=Console(stderr=True), rich_tracebacks=True),
        formatter=logging.Formatter("%(name)s: %(message)s"),
        level=getattr(logging, level.upper(), logging.INFO),
        root=True,
    )


def _load_settings_or_exit(settings_path: Optional[str]) -> BotSettings:
    try:
        return load_settings(settings_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid settings:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _load_clients_or_exit(clients_path: str) -> ClientDirectory:
    try:
        return get_repository(clients_path).load()
    except ConfigIntegrityError as e:
        console.print(f"[red]Invalid client file:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Design Desk CLI."""
    load_dotenv()
    if ctx.invoked_subcommand is None:
        console.print("Design Desk - Use --help to see available commands")


@app.command()
def run(
    clients: str = ClientsOption,
    settings: Optional[str] = SettingsOption,
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        "-l",
        envvar="DESIGN_DESK_LOG_LEVEL",
        help="Logging level"
    )
):
    """
    Connect to Discord and start handling design requests.

    Secrets come from the environment (or a .env file):
    DISCORD_TOKEN, ADMIN_USER_ID and COMPLETED_CHANNEL_ID.
    """
    try:
        secrets = load_secrets()
    except ConfigIntegrityError as e:
        console.print(f"[red]Missing environment:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    bot_settings = _load_settings_or_exit(settings)
    directory = _load_clients_or_exit(clients)

    _configure_logging(log_level)
    logging.getLogger(__name__).info("Loaded %d client plans from %s", len(directory.clients), clients)

    bot = create_bot(bot_settings, secrets, get_repository(clients))
    bot.run(secrets.discord_token, log_handler=None)


@app.command()
def validate(
    clients: str = ClientsOption,
    settings: Optional[str] = SettingsOption
):
    """Check the settings and client files without connecting."""
    _load_settings_or_exit(settings)
    directory = _load_clients_or_exit(clients)
    console.print(f"[green]✓[/] {len(directory.clients)} client plans are valid")
    sys.exit(EXIT_CODE_PASS)


@app.command(name="clients")
def list_clients(
    clients: str = ClientsOption,
    settings: Optional[str] = SettingsOption
):
    """Show every client plan and what it has left. Nothing is charged."""
    policy = _load_settings_or_exit(settings).quota
    directory = _load_clients_or_exit(clients)

    if not directory.clients:
        console.print("\n[bold yellow]No client plans configured[/]")
        sys.exit(EXIT_CODE_PASS)

    now = datetime.now()
    table = Table(title="Client Plans")
    table.add_column("Role ID")
    table.add_column("Client")
    table.add_column("Quota", justify="right")
    table.add_column("Used", justify="right")
    table.add_column("Remaining", justify="right")

    for role_id, record in sorted(directory.clients.items()):
        quota = "unlimited" if record.monthly_quota == policy.unlimited_sentinel else str(record.monthly_quota)
        table.add_row(
            str(role_id),
            record.name,
            quota,
            str(record.used),
            decide_quota(record, now, policy).display,
        )

    console.print(table)
    sys.exit(EXIT_CODE_PASS)


@app.command(name="reset-usage")
def reset_usage(
    clients: str = ClientsOption,
    role: Optional[int] = typer.Option(
        None,
        "--role",
        "-r",
        help="Only reset this client role ID"
    )
):
    """Start a new period by setting used counts back to zero."""

    def _reset(directory: ClientDirectory) -> int:
        if role is not None:
            if role not in directory.clients:
                raise KeyError(role)
            targets = [role]
        else:
            targets = list(directory.clients)
        for role_id in targets:
            directory.put(role_id, directory.get(role_id).with_used(0))
        return len(targets)

    try:
        count = get_repository(clients).update(_reset)
    except KeyError:
        console.print(f"[red]Error:[/] no client plan for role {role}")
        sys.exit(EXIT_CODE_FAIL)
    except ConfigIntegrityError as e:
        console.print(f"[red]Invalid client file:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"[green]✓[/] Reset usage for {count} client plan(s)")
    sys.exit(EXIT_CODE_PASS)


if __name__ == "__main__":
    app()
