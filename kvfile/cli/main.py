"""
kvfile CLI entry point.

Commands:
    kvfile list              — Print every key-value pair
    kvfile get KEY           — Print the value for KEY
    kvfile set KEY VALUE     — Set KEY to VALUE and persist
    kvfile delete KEY        — Remove KEY and persist
    kvfile config            — Show the resolved configuration
    kvfile version           — Show version
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from kvfile.core.config import KVConfig
from kvfile.core.errors import KVError
from kvfile.core.logging import setup_logging
from kvfile.core.types import SyncPolicy
from kvfile.store.file import FileStore

app = typer.Typer(
    name="kvfile",
    help="kvfile — a persistent key-value store of strings.",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger("kvfile.cli")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    path: Path = typer.Option(None, "--path", "-p", help="Store file (default: store.kv)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """kvfile — a persistent key-value store of strings."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)

    overrides = {"store": {"path": str(path)}} if path is not None else None
    try:
        config = KVConfig.load(overrides=overrides)
    except KVError as e:
        _fail(e.message)

    console_level = logging.DEBUG if verbose else logging.getLevelName(config.logging.level)
    try:
        setup_logging(log_dir=config.get_log_dir(), console_level=console_level)
    except OSError as e:
        _fail(f"setting up logging in {config.get_log_dir()}: {e}")
    logger.debug(f"Store path: {config.get_store_path()}, sync={config.store.sync.value}")

    ctx.obj = config


@app.command("list")
def list_pairs(ctx: typer.Context) -> None:
    """Print every key-value pair, one per line."""
    store = _open_store(ctx.obj)
    for key, value in store:
        typer.echo(f"{key}: {value}")


@app.command()
def get(ctx: typer.Context, key: str = typer.Argument(..., help="Key to look up")) -> None:
    """Print the value stored for KEY."""
    store = _open_store(ctx.obj)
    value = store.get(key)
    if value is None:
        err_console.print(f'[yellow]Key "{escape(key)}" not found[/yellow]')
        raise typer.Exit(1)
    typer.echo(f"{key}: {value}")


@app.command("set")
def set_value(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key to set"),
    value: str = typer.Argument(..., help="Value to store"),
) -> None:
    """Set KEY to VALUE, creating the store file if needed."""
    store = _open_store(ctx.obj)
    try:
        store.set(key, value)
        if store.sync_policy is SyncPolicy.MANUAL:
            store.sync()
    except KVError as e:
        _fail(f"writing {store.path}: {e.message}")
    logger.info(f"Set '{key}' in {store.path}")


@app.command()
def delete(ctx: typer.Context, key: str = typer.Argument(..., help="Key to remove")) -> None:
    """Remove KEY from the store."""
    store = _open_store(ctx.obj)
    try:
        removed = store.remove(key)
        if removed is not None and store.sync_policy is SyncPolicy.MANUAL:
            store.sync()
    except KVError as e:
        _fail(f"writing {store.path}: {e.message}")
    if removed is None:
        err_console.print(f'[yellow]Key "{escape(key)}" not found[/yellow]')
        raise typer.Exit(1)


@app.command()
def config(ctx: typer.Context) -> None:
    """Show the resolved configuration."""
    cfg: KVConfig = ctx.obj
    store_path = cfg.get_store_path()
    log_dir = cfg.get_log_dir()

    lines = [
        f"[bold]Store file:[/bold] {escape(str(store_path))}"
        + ("" if store_path.exists() else " [dim](not created yet)[/dim]"),
        f"[bold]Sync policy:[/bold] {cfg.store.sync.value}",
        f"[bold]Atomic writes:[/bold] {'yes' if cfg.store.atomic else 'no'}",
        f"[bold]Indent:[/bold] {cfg.store.indent or 'compact'}",
        f"[bold]Log level:[/bold] {cfg.logging.level}",
        f"[bold]Log dir:[/bold] {escape(str(log_dir)) if log_dir else '[dim]console only[/dim]'}",
    ]
    console.print(Panel("\n".join(lines), title="kvfile configuration", border_style="cyan"))


@app.command()
def version() -> None:
    """Show kvfile version."""
    from kvfile import __version__

    console.print(f"kvfile v{__version__}")


# ━━━ Helpers ━━━


def _open_store(config: KVConfig) -> FileStore:
    """Open the configured store, exiting with status 1 on failure."""
    path = config.get_store_path()
    try:
        return FileStore.open_or_create(
            path,
            sync_policy=config.store.sync,
            atomic=config.store.atomic,
            indent=config.store.indent or None,
        )
    except KVError as e:
        _fail(f"reading {path}: {e.message}")


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    raise typer.Exit(1)
