"""
plugbay - Command Line Interface

This module provides the CLI for managing plugins installed in a plugbay
registry. Built with Typer for the command-line experience and Rich for
output.

Usage:
    $ plugbay --help
    $ plugbay status
    $ plugbay plugin install hello.img
    $ plugbay plugin list

Sub-command Groups:
    plugin   - Plugin management

For detailed help on any command:
    $ plugbay <command> --help
    $ plugbay <group> <command> --help
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.panel import Panel

from plugbay import __version__
from plugbay.cli.output import console, err_console

# Create main application
app = typer.Typer(
    name="plugbay",
    help="plugbay - plugin registry for single-file plugin images",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)

# Create sub-command groups
plugin_app = typer.Typer(
    name="plugin",
    help="Plugin management commands",
    no_args_is_help=True,
)

# Register sub-commands
app.add_typer(plugin_app, name="plugin")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"plugbay version {__version__}")
        raise typer.Exit()


def verbose_callback(value: bool) -> None:
    """Set verbose mode."""
    if value:
        logging.basicConfig(level=logging.DEBUG)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        callback=verbose_callback,
        help="Enable verbose output.",
    ),
    root: Optional[Path] = typer.Option(
        None,
        "--root",
        "-r",
        help="Registry root directory.",
        envvar="PLUGBAY_ROOT_DIR",
    ),
) -> None:
    """
    plugbay - plugin registry

    Installs plugin images into a registry directory and manages
    their lifecycle there.

    Use --help on any subcommand for detailed information.
    """
    from plugbay.config.settings import settings

    # no-op when --verbose already configured logging
    logging.basicConfig(level=settings.LOG_LEVEL)
    ctx.obj = {"root": root}


def get_registry(ctx: typer.Context):
    """Build the registry selected by the global options."""
    from plugbay.config.settings import settings
    from plugbay.plugins.registry import PluginRegistry

    root = (ctx.obj or {}).get("root")
    if root is None:
        return PluginRegistry.from_settings(settings)
    return PluginRegistry(root, lock_writes=settings.LOCK_WRITES)


@app.command()
def status(
    ctx: typer.Context,
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format: table, json.",
    ),
) -> None:
    """
    Show registry status.

    Displays the registry root along with installed, enabled and
    damaged plugin counts.
    """
    from plugbay.cli.output import print_json, print_key_value, print_warning, print_error
    from plugbay.plugins.errors import PluginRegistryError

    registry = get_registry(ctx)
    try:
        stats = registry.get_statistics()
    except PluginRegistryError as e:
        print_error(escape(str(e)))
        raise typer.Exit(1)

    if format == "json":
        print_json(stats)
        return

    console.print(Panel.fit(
        f"Registry: [cyan]{escape(stats['root_dir'])}[/cyan]",
        title="plugbay",
    ))
    print_key_value([
        ("Installed", stats["total_plugins"]),
        ("Enabled", stats["enabled_plugins"]),
        ("Skipped", stats["skipped_entries"]),
    ])
    if stats["skipped_entries"]:
        console.print()
        print_warning("Some registry entries are damaged, see [cyan]plugbay plugin list[/cyan]")


def _register_subcommands() -> None:
    """Register all subcommand modules."""
    from plugbay.cli import plugins  # noqa: F401


# Expose the apps for use in submodules
__all__ = [
    "app",
    "plugin_app",
    "console",
    "err_console",
    "get_registry",
]


def cli() -> None:
    """Entry point for the CLI."""
    app()


_register_subcommands()


if __name__ == "__main__":
    cli()
