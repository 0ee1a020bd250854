"""
plugbay CLI - Plugin Commands

Plugin management commands for installing, inspecting and managing
plugins in a plugbay registry.

Commands:
    list      - List installed plugins
    install   - Install a plugin from an image
    uninstall - Uninstall a plugin
    enable    - Enable a plugin
    disable   - Disable a plugin
    inspect   - Show the manifest of an image or installed plugin
    pack      - Build a plugin image from a binary object
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from plugbay.cli import console, get_registry, plugin_app
from plugbay.plugins.errors import PluginNotFoundError, PluginRegistryError


@contextmanager
def _registry_errors() -> Iterator[None]:
    """Report registry errors and exit with status 1."""
    from plugbay.cli.output import print_error

    try:
        yield
    except PluginNotFoundError as e:
        print_error(
            escape(str(e)),
            hint="Run [cyan]plugbay plugin list[/cyan] to see installed plugins",
        )
        raise typer.Exit(1)
    except PluginRegistryError as e:
        print_error(escape(str(e)))
        raise typer.Exit(1)


@plugin_app.command("list")
def list_plugins(
    ctx: typer.Context,
    enabled: bool = typer.Option(
        False,
        "--enabled",
        "-e",
        help="Show only enabled plugins.",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format: table, json, simple.",
    ),
) -> None:
    """
    List plugins.

    Shows installed plugins with their status. Damaged registry
    entries are reported but never hide the others.
    """
    from plugbay.cli.output import print_json, print_warning

    registry = get_registry(ctx)
    with _registry_errors():
        result = registry.list_plugins()

    plugins = list(result)
    if enabled:
        plugins = [p for p in plugins if p.enabled]

    if format == "json":
        print_json({
            "plugins": [p.to_dict() for p in plugins],
            "skipped": [
                {"path": str(s.path), "error": str(s.error)}
                for s in result.skipped
            ],
        })
        return

    if format == "simple":
        for p in plugins:
            status_icon = "[green]+[/green]" if p.enabled else "[yellow]-[/yellow]"
            console.print(f"{status_icon} {escape(p.name)}", highlight=False)
    else:
        table = Table(title="Installed Plugins")
        table.add_column("Name", style="cyan", overflow="fold")
        table.add_column("Status")
        table.add_column("Location", overflow="fold")

        for p in plugins:
            status_style = "[green]enabled[/green]" if p.enabled else "[yellow]disabled[/yellow]"
            table.add_row(escape(p.name), status_style, escape(str(p.path)))

        console.print(table)

    console.print()
    console.print(f"[dim]Total: {len(plugins)} plugins[/dim]")

    if result.skipped:
        print_warning(f"Skipped {len(result.skipped)} damaged registry entries")
        for skipped in result.skipped:
            console.print(f"  [dim]{escape(str(skipped.path))}: {escape(str(skipped.error))}[/dim]")


@plugin_app.command("install")
def install_plugin(
    ctx: typer.Context,
    image: Path = typer.Argument(
        ...,
        help="Path to the plugin image.",
    ),
    name: Optional[str] = typer.Option(
        None,
        "--name",
        "-n",
        help="Name to install under (defaults to the manifest name).",
    ),
) -> None:
    """
    Install a plugin.

    Validates the image, copies it into the registry, extracts its
    binary object and writes a default configuration. New plugins
    are enabled.
    """
    from plugbay.cli.output import print_success

    registry = get_registry(ctx)
    console.print(f"Installing plugin from [cyan]{escape(str(image))}[/cyan]...")

    with _registry_errors():
        meta = registry.install(image, name=name)

    print_success(f"Plugin {escape(meta.name)} installed")
    console.print()
    console.print("Disable the plugin with:")
    console.print(f"  [cyan]plugbay plugin disable {escape(meta.name)}[/cyan]")


@plugin_app.command("uninstall")
def uninstall_plugin(
    ctx: typer.Context,
    name: str = typer.Argument(
        ...,
        help="Plugin name to uninstall.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Force uninstall without confirmation.",
    ),
) -> None:
    """
    Uninstall a plugin.

    Removes the plugin's metadata, image copy, binary object and
    configuration from the registry.
    """
    from plugbay.cli.output import print_success

    registry = get_registry(ctx)

    with _registry_errors():
        registry.get(name)

    if not force:
        if not typer.confirm(f"Uninstall plugin {name}?"):
            console.print("Cancelled")
            raise typer.Exit(0)

    with _registry_errors():
        registry.uninstall(name)

    print_success(f"Plugin {escape(name)} uninstalled")


@plugin_app.command("enable")
def enable_plugin(
    ctx: typer.Context,
    name: str = typer.Argument(
        ...,
        help="Plugin name to enable.",
    ),
) -> None:
    """
    Enable a plugin.

    Marks a disabled plugin for activation by the runtime loader.
    """
    from plugbay.cli.output import print_success

    registry = get_registry(ctx)
    with _registry_errors():
        changed = registry.enable(name)

    if not changed:
        console.print(f"Plugin {escape(name)} is already enabled", highlight=False)
        return

    print_success(f"Plugin {escape(name)} enabled")


@plugin_app.command("disable")
def disable_plugin(
    ctx: typer.Context,
    name: str = typer.Argument(
        ...,
        help="Plugin name to disable.",
    ),
) -> None:
    """
    Disable a plugin.

    Deactivates a plugin without uninstalling it. The plugin
    can be re-enabled later.
    """
    from plugbay.cli.output import print_success

    registry = get_registry(ctx)
    with _registry_errors():
        changed = registry.disable(name)

    if not changed:
        console.print(f"Plugin {escape(name)} is already disabled", highlight=False)
        return

    print_success(f"Plugin {escape(name)} disabled")


@plugin_app.command("inspect")
def inspect_plugin(
    ctx: typer.Context,
    target: str = typer.Argument(
        ...,
        help="Path to a plugin image, or the name of an installed plugin.",
    ),
    format: str = typer.Option(
        "rich",
        "--format",
        "-f",
        help="Output format: rich, json.",
    ),
) -> None:
    """
    Show plugin details.

    Reads the manifest of a plugin image. TARGET is used as an image
    path when such a file exists, otherwise as an installed plugin name.
    """
    registry = get_registry(ctx)
    with _registry_errors():
        manifest = registry.inspect(target)

    data = manifest.model_dump()

    if format == "json":
        from plugbay.cli.output import print_json

        print_json(data)
        return

    console.print(Panel.fit(
        f"[bold]{escape(manifest.name)}[/bold]"
        + (f" v{escape(manifest.version)}" if manifest.version else ""),
        subtitle=escape(manifest.description) or None,
    ))
    console.print()

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value", overflow="fold")

    table.add_row("Author", escape(manifest.author) or "N/A")
    table.add_row("License", escape(manifest.license) or "N/A")

    options = ", ".join(f"{k}={v}" for k, v in manifest.config.items())
    table.add_row("Default config", escape(options) or "None")

    for key, value in (manifest.model_extra or {}).items():
        table.add_row(escape(key), escape(str(value)))

    console.print(table)


@plugin_app.command("pack")
def pack_plugin(
    binary: Path = typer.Argument(
        ...,
        help="Path to the plugin binary object.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    name: str = typer.Option(
        ...,
        "--name",
        "-n",
        help="Plugin name written to the manifest.",
    ),
    author: str = typer.Option(
        "",
        "--author",
        "-a",
        help="Plugin author.",
    ),
    version: str = typer.Option(
        "",
        "--version",
        help="Informational plugin version.",
    ),
    description: str = typer.Option(
        "",
        "--description",
        "-d",
        help="Plugin description.",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Image path to write (defaults to NAME.img).",
    ),
) -> None:
    """
    Build a plugin image.

    Packs a binary object and a manifest into a single image that
    can be installed with [cyan]plugbay plugin install[/cyan].
    """
    from plugbay.cli.output import print_error, print_success
    from plugbay.plugins.identity import validate_name
    from plugbay.plugins.image import Manifest, build_image

    with _registry_errors():
        validate_name(name)

    manifest = Manifest(
        name=name,
        author=author,
        version=version,
        description=description,
    )
    dest = output or Path(f"{name.replace('/', '_')}.img")
    try:
        build_image(dest, binary, manifest)
    except OSError as e:
        print_error(f"Could not write {escape(str(dest))}", details=escape(str(e)))
        raise typer.Exit(1)

    print_success(f"Plugin image written to {escape(str(dest))}")
    console.print()
    console.print("Install it with:")
    console.print(f"  [cyan]plugbay plugin install {escape(str(dest))}[/cyan]")
