"""SSH config host CLI commands."""

from __future__ import annotations

import typer
from pydantic import ValidationError
from rich.table import Table

from sshwarden.cli.common import console, run
from sshwarden.dependencies import get_codec, get_connection_tester
from sshwarden.schemas.host import HostEntry

app = typer.Typer(no_args_is_help=True)


def _parse_options(pairs: list[str]) -> dict[str, str]:
    options: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise typer.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--option")
        options[key.strip()] = value.strip()
    return options


def _build_entry(**fields) -> HostEntry:
    try:
        return HostEntry(**fields)
    except ValidationError as e:
        console.print(f"[red]Invalid host entry: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(code=1) from e


@app.command("list")
def list_hosts():
    """List Host entries from the SSH config."""
    entries = run(get_codec().parse())

    if not entries:
        console.print("[yellow]No hosts configured.[/yellow]")
        return

    table = Table(title="SSH Hosts")
    table.add_column("Alias")
    table.add_column("HostName")
    table.add_column("Port")
    table.add_column("User")
    table.add_column("IdentityFile")
    table.add_column("Other", style="dim")

    for e in entries:
        table.add_row(
            e.alias,
            e.hostname,
            str(e.port) if e.port else "-",
            e.user or "-",
            e.identity_file or "-",
            ", ".join(f"{k}={v}" for k, v in e.additional_options.items()) or "-",
        )

    console.print(table)


@app.command("add")
def add_host(
    alias: str = typer.Argument(..., help="Name used as 'ssh <alias>'"),
    hostname: str = typer.Argument(..., help="Hostname or IP address"),
    port: int | None = typer.Option(None, "--port", "-p"),
    user: str | None = typer.Option(None, "--user", "-u"),
    identity_file: str | None = typer.Option(None, "--identity", "-i", help="e.g. ~/.ssh/id_ed25519"),
    option: list[str] = typer.Option([], "--option", "-o", help="Extra directive as KEY=VALUE"),
):
    """Add a Host entry."""
    entry = _build_entry(
        alias=alias,
        hostname=hostname,
        port=port,
        user=user,
        identity_file=identity_file,
        additional_options=_parse_options(option),
    )
    run(get_codec().add(entry))
    console.print(f"[green]Host added: {alias} -> {hostname}[/green]")


@app.command("update")
def update_host(
    alias: str = typer.Argument(...),
    hostname: str | None = typer.Option(None, "--hostname", "-H"),
    new_alias: str | None = typer.Option(None, "--rename"),
    port: int | None = typer.Option(None, "--port", "-p"),
    user: str | None = typer.Option(None, "--user", "-u"),
    identity_file: str | None = typer.Option(None, "--identity", "-i"),
    option: list[str] = typer.Option([], "--option", "-o", help="Extra directive as KEY=VALUE"),
):
    """Change fields of an existing Host entry; unspecified fields are kept."""
    codec = get_codec()
    current = run(codec.get(alias))

    changes = {
        k: v
        for k, v in {
            "alias": new_alias,
            "hostname": hostname,
            "port": port,
            "user": user,
            "identity_file": identity_file,
        }.items()
        if v is not None
    }
    options = {**current.additional_options, **_parse_options(option)}
    if port is not None:
        # a real port replaces an unusable one carried from the file
        options = {k: v for k, v in options.items() if k.lower() != "port"}
    changes["additional_options"] = options

    entry = _build_entry(**{**current.model_dump(), **changes})
    run(codec.update(alias, entry))
    console.print(f"[green]Host updated: {entry.alias}[/green]")


@app.command("remove")
def remove_host(alias: str = typer.Argument(...)):
    """Remove a Host entry."""
    run(get_codec().delete(alias))
    console.print(f"[green]Host removed: {alias}[/green]")


@app.command("validate")
def validate_config():
    """Check the SSH config for problems."""
    report = run(get_codec().validate())
    for error in report.errors:
        console.print(f"[red]error[/red]   {error}")
    for warning in report.warnings:
        console.print(f"[yellow]warning[/yellow] {warning}")
    if report.valid:
        console.print("[green]SSH config is valid.[/green]")
    else:
        raise typer.Exit(code=1)


@app.command("test")
def test_host(alias: str = typer.Argument(...)):
    """Try a key-based SSH login to a configured host."""
    run(get_codec().get(alias))
    result = run(get_connection_tester().test(alias))
    if result.success:
        console.print(f"[green]{result.message} ({result.connection_time_ms}ms)[/green]")
        return
    console.print(f"[red]{result.message}[/red]")
    if result.error_details:
        console.print(f"[dim]{result.error_details}[/dim]")
    raise typer.Exit(code=1)
