"""SSH key management CLI commands."""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.table import Table

from sshwarden.cli.common import console, run
from sshwarden.config import settings
from sshwarden.dependencies import get_codec, get_inventory, get_permission_engine
from sshwarden.schemas.ssh_key import KeyGenOptions, KeyRecord

app = typer.Typer(no_args_is_help=True)


def _inventory():
    return get_inventory(get_codec())


async def _secure(record: KeyRecord) -> None:
    if not settings.auto_fix_permissions:
        return
    errors = await get_permission_engine().fix_key_pair(
        Path(record.private_key_path),
        Path(record.public_key_path) if record.has_public_key else None,
    )
    for error in errors:
        console.print(f"[yellow]Could not fix permissions: {error}[/yellow]")


@app.command("list")
def list_keys(
    unmapped: bool = typer.Option(False, "--unmapped", help="Show only keys no host uses"),
):
    """List private keys in the SSH directory."""
    keys = run(_inventory().list())
    if unmapped:
        keys = [k for k in keys if not k.is_mapped]

    if not keys:
        console.print("[yellow]No keys found.[/yellow]")
        return

    table = Table(title="SSH Keys")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Bits")
    table.add_column("Fingerprint (SHA256)")
    table.add_column("Passphrase")
    table.add_column("Hosts")

    for key in keys:
        table.add_row(
            key.name,
            key.type,
            str(key.bits) if key.bits else "-",
            key.fingerprint,
            "Yes" if key.has_passphrase else "No",
            ", ".join(key.associated_hosts) if key.is_mapped else "[dim]unmapped[/dim]",
        )

    console.print(table)


@app.command("show")
def show_key(name: str = typer.Argument(..., help="Private key file name")):
    """Show details for one key."""
    key = run(_inventory().get(name))

    console.print(f"[bold]Key:[/bold] {key.name}")
    console.print(f"  Type: {key.type} ({key.bits or '?'} bits)")
    console.print(f"  Fingerprint: {key.fingerprint}")
    console.print(f"  Comment: {key.comment or '-'}")
    console.print(f"  Passphrase: {'Yes' if key.has_passphrase else 'No'}")
    console.print(f"  Private key: {key.private_key_path}")
    console.print(f"  Public key: {key.public_key_path if key.has_public_key else '[red]missing[/red]'}")
    console.print(f"  Modified: {key.modified_at:%Y-%m-%d %H:%M:%S}")
    if key.associated_hosts:
        console.print(f"  Used by: {', '.join(key.associated_hosts)}")
    else:
        console.print("  Used by: [dim]no configured host[/dim]")


@app.command("generate")
def generate_key(
    name: str = typer.Argument(..., help="File name for the new private key"),
    key_type: str = typer.Option("ed25519", "--type", "-t", help="ed25519, rsa, ecdsa or dsa"),
    bits: int | None = typer.Option(None, "--bits", "-b", help="Key size for rsa/ecdsa"),
    comment: str | None = typer.Option(None, "--comment", "-C"),
    passphrase: str = typer.Option("", "--passphrase", "-N", help="Empty for no passphrase"),
):
    """Generate a new key pair with ssh-keygen."""
    try:
        options = KeyGenOptions(type=key_type, bits=bits, name=name, comment=comment, passphrase=passphrase)
    except ValidationError as e:
        console.print(f"[red]Invalid options: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(code=1) from e

    async def _generate() -> KeyRecord:
        record = await _inventory().generate(options)
        await _secure(record)
        return record

    key = run(_generate())
    console.print(f"[green]Generated {key.type} key {key.name}: {key.fingerprint}[/green]")


@app.command("delete")
def delete_key(
    name: str = typer.Argument(...),
    yes: bool = typer.Option(False, "--yes", "-y", help="Don't ask for confirmation"),
):
    """Delete a key pair."""
    if not yes:
        typer.confirm(f"Delete {name} and {name}.pub?", abort=True)
    run(_inventory().delete(name))
    console.print(f"[green]Deleted key {name}[/green]")


@app.command("import")
def import_key(source: Path = typer.Argument(..., help="Private key to copy in")):
    """Copy a key pair into the SSH directory."""

    async def _import() -> KeyRecord:
        record = await _inventory().import_key(source)
        await _secure(record)
        return record

    key = run(_import())
    console.print(f"[green]Imported {key.name} ({key.type}, {key.fingerprint})[/green]")


@app.command("export")
def export_key(
    name: str = typer.Argument(...),
    destination: Path = typer.Argument(..., help="Target file or directory"),
):
    """Copy a key pair out of the SSH directory."""
    written = run(_inventory().export(name, destination))
    for path in written:
        console.print(f"[green]Wrote {path}[/green]")
