"""Backup CLI commands."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from sshwarden.cli.common import console, run
from sshwarden.config import settings
from sshwarden.dependencies import get_snapshot_manager
from sshwarden.schemas.backup import RestoreOptions

app = typer.Typer(no_args_is_help=True)


@app.command("create")
def create_backup(
    destination: Path | None = typer.Option(None, "--to", help="Directory for the archive"),
):
    """Archive the SSH directory."""
    info = run(get_snapshot_manager().create(destination or settings.backup_dir))
    console.print(f"[green]Backup created: {info.path}[/green]")
    console.print(f"  {info.metadata.file_count} files, {info.size} bytes")
    for name in info.skipped_files:
        console.print(f"[yellow]  skipped: {name}[/yellow]")


@app.command("list")
def list_backups(
    directory: Path | None = typer.Option(None, "--dir", help="Where to look for archives"),
):
    """List backups, newest first."""
    backups = run(get_snapshot_manager().list(directory or settings.backup_dir))

    if not backups:
        console.print("[yellow]No backups found.[/yellow]")
        return

    table = Table(title="Backups")
    table.add_column("Created")
    table.add_column("Path")
    table.add_column("Files")
    table.add_column("Size")
    table.add_column("Host")

    for b in backups:
        table.add_row(
            f"{b.metadata.created_at:%Y-%m-%d %H:%M:%S}",
            b.path,
            str(b.metadata.file_count),
            str(b.size),
            b.metadata.computer_name,
        )

    console.print(table)


@app.command("show")
def show_backup(path: Path = typer.Argument(...)):
    """Show the manifest stored in an archive."""
    metadata = run(get_snapshot_manager().metadata(path))
    if metadata is None:
        console.print("[yellow]No metadata in this archive.[/yellow]")
        return
    console.print(f"[bold]Created:[/bold] {metadata.created_at.isoformat()}")
    console.print(f"  By: {metadata.username}@{metadata.computer_name}")
    console.print(f"  App version: {metadata.app_version}")
    console.print(f"  Files ({metadata.file_count}): {', '.join(metadata.files)}")


@app.command("restore")
def restore_backup(
    path: Path = typer.Argument(...),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace existing files"),
    merge: bool = typer.Option(False, "--merge", help="Keep both copies of existing files"),
    safety_backup: bool = typer.Option(True, "--safety-backup/--no-safety-backup"),
):
    """Restore an archive into the SSH directory."""
    options = RestoreOptions(
        backup_path=str(path),
        overwrite_existing=overwrite,
        merge_duplicates=merge,
        create_backup=safety_backup,
    )
    result = run(get_snapshot_manager().restore(options))

    if result.safety_backup:
        console.print(f"Pre-restore backup: {result.safety_backup.path}")
    console.print(f"[green]Restored: {len(result.restored)}[/green]  Overwritten: {len(result.overwritten)}  "
                  f"Merged: {len(result.merged)}  Skipped: {len(result.skipped)}")
    for original, new_name in result.merged.items():
        console.print(f"  {original} -> {new_name}")
    for name in result.failed:
        console.print(f"[red]  failed: {name}[/red]")
    if result.failed:
        raise typer.Exit(code=1)


@app.command("delete")
def delete_backup(
    path: Path = typer.Argument(...),
    yes: bool = typer.Option(False, "--yes", "-y"),
):
    """Delete a backup archive."""
    if not yes:
        typer.confirm(f"Delete {path}?", abort=True)
    run(get_snapshot_manager().delete(path))
    console.print(f"[green]Deleted {path}[/green]")
