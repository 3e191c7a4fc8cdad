"""Permission CLI commands."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from sshwarden.cli.common import console, run, yes_no
from sshwarden.dependencies import get_permission_engine

app = typer.Typer(no_args_is_help=True)


@app.command("check")
def check_permissions(
    problems: bool = typer.Option(False, "--problems", help="Show only non-conforming files"),
):
    """Check every file in the SSH directory against its expected permissions."""
    records = run(get_permission_engine().check_all())
    if problems:
        records = [r for r in records if not r.is_correct]

    if not records:
        console.print("[green]All permissions are correct.[/green]")
        return

    table = Table(title="SSH Permissions")
    table.add_column("Path")
    table.add_column("Type")
    table.add_column("Current")
    table.add_column("Expected")
    table.add_column("OK")

    for r in records:
        table.add_row(
            r.path,
            r.file_type.value,
            r.current_permissions,
            r.expected_permissions,
            yes_no(r.is_correct),
        )

    console.print(table)


@app.command("fix")
def fix_permissions(path: Path | None = typer.Argument(None, help="One file; all files if omitted")):
    """Apply the expected permissions."""
    engine = get_permission_engine()
    if path is not None:
        run(engine.fix(path))
        console.print(f"[green]Permissions fixed for {path}[/green]")
        return

    result = run(engine.fix_all())
    console.print(f"Fixed {result.fixed} files, {result.failed} failed")
    for error in result.errors:
        console.print(f"[red]  {error}[/red]")
    if result.failed:
        raise typer.Exit(code=1)
