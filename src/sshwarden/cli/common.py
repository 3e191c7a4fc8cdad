"""Helpers shared by the CLI command modules."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

import typer
from rich.console import Console

from sshwarden.core.errors import SSHWardenError

T = TypeVar("T")

console = Console()


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, printing expected failures instead of a traceback."""
    try:
        return asyncio.run(coro)
    except SSHWardenError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e


def yes_no(value: bool) -> str:
    return "[green]Yes[/green]" if value else "[red]No[/red]"
