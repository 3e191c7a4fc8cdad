"""Environment check and connection test CLI commands."""

from __future__ import annotations

import typer
from rich.table import Table

from sshwarden.cli.common import console, run
from sshwarden.config import settings
from sshwarden.core.connection_tester import check_port
from sshwarden.core.filesystem import ensure_ssh_config, ensure_ssh_directory
from sshwarden.core.prerequisites import check_prerequisites
from sshwarden.dependencies import get_connection_tester, get_permission_engine

app = typer.Typer(no_args_is_help=True)

_STATUS_STYLE = {"pass": "green", "warning": "yellow", "fail": "red"}


@app.command("check")
def check():
    """Check that OpenSSH and the SSH directory are ready."""
    result = run(
        check_prerequisites(
            settings.ssh_dir,
            settings.ssh_config_path,
            get_permission_engine(),
            ssh_binary=settings.ssh_binary,
            timeout=settings.tool_timeout,
        )
    )

    table = Table(title="Prerequisites")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Message")
    table.add_column("Details", style="dim")

    checks = [
        result.openssh_installed,
        result.ssh_directory_exists,
        result.ssh_config_exists,
        result.permissions_correct,
        result.path_configured,
    ]
    for c in checks:
        style = _STATUS_STYLE[c.status]
        table.add_row(c.name, f"[{style}]{c.status}[/{style}]", c.message, c.details or "-")

    console.print(table)
    if any(c.status == "fail" for c in checks):
        raise typer.Exit(code=1)


@app.command("init")
def init():
    """Create the SSH directory and config file if missing."""

    async def _init() -> bool:
        return await ensure_ssh_directory(settings.ssh_dir) and await ensure_ssh_config(
            settings.ssh_config_path
        )

    if not run(_init()):
        console.print("[red]Could not initialize the SSH directory (see log).[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]SSH directory ready: {settings.ssh_dir}[/green]")


@app.command("test")
def test_connection(
    hostname: str = typer.Argument(...),
    port: int = typer.Option(22, "--port", "-p"),
    user: str | None = typer.Option(None, "--user", "-u"),
    identity_file: str | None = typer.Option(None, "--identity", "-i"),
):
    """Try a key-based SSH login without using the config file."""
    result = run(get_connection_tester().test_with_options(hostname, port, user, identity_file))
    if result.success:
        console.print(f"[green]{result.message} ({result.connection_time_ms}ms)[/green]")
        return
    console.print(f"[red]{result.message}[/red]")
    if result.error_details:
        console.print(f"[dim]{result.error_details}[/dim]")
    raise typer.Exit(code=1)


@app.command("port")
def port_check(
    hostname: str = typer.Argument(...),
    port: int = typer.Option(22, "--port", "-p"),
):
    """Check whether the SSH port accepts TCP connections."""
    if run(check_port(hostname, port, timeout=settings.ssh_timeout)):
        console.print(f"[green]{hostname}:{port} is reachable[/green]")
    else:
        console.print(f"[red]{hostname}:{port} is not reachable[/red]")
        raise typer.Exit(code=1)
