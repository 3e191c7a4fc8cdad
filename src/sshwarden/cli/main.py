"""CLI entry point."""

import typer

from sshwarden.cli.backup_commands import app as backup_app
from sshwarden.cli.host_commands import app as host_app
from sshwarden.cli.key_commands import app as key_app
from sshwarden.cli.permission_commands import app as perms_app
from sshwarden.cli.system_commands import app as system_app
from sshwarden.config import settings
from sshwarden.logging_config import configure_logging

app = typer.Typer(
    name="sshwarden",
    help="Manage SSH keys, config, permissions and backups.",
    no_args_is_help=True,
)

app.add_typer(key_app, name="keys", help="SSH key management")
app.add_typer(host_app, name="hosts", help="SSH config hosts")
app.add_typer(perms_app, name="perms", help="File permissions")
app.add_typer(backup_app, name="backup", help="Backup and restore")
app.add_typer(system_app, name="system", help="Environment checks")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    configure_logging("DEBUG" if verbose else settings.log_level, settings.log_file)


@app.command("serve")
def serve(
    host: str = typer.Option(settings.api_host, "--host"),
    port: int = typer.Option(settings.api_port, "--port"),
    reload: bool = typer.Option(False, "--reload"),
):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("sshwarden.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
