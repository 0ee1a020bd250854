"""
Plugin registry for plugbay.

Plugins are distributed as single-file images holding a binary object and
a manifest. The registry installs them under a root directory and manages
their lifecycle there.

Components:
    - image:    opens images, validates them, reads manifests
    - identity: derives IDs and relative paths from plugin names
    - meta:     the on-disk record of an installed plugin
    - lock:     single-writer lock over a registry root
    - registry: the public Install/Uninstall/List/Enable/Disable/Inspect API

Example:
    from plugbay.plugins import PluginRegistry

    registry = PluginRegistry("./plugins")
    registry.install("hello.img")
    for meta in registry.list_plugins():
        print(f"{meta.name}: {'enabled' if meta.enabled else 'disabled'}")
"""

from plugbay.plugins.errors import (
    ImageLoadError,
    InvalidPluginNameError,
    NotAPluginError,
    PluginCorruptError,
    PluginExistsError,
    PluginInstallError,
    PluginNotFoundError,
    PluginRegistryError,
    RegistryIOError,
)
from plugbay.plugins.identity import (
    derive_id,
    path_fragment,
    validate_name,
)
from plugbay.plugins.image import (
    Manifest,
    PluginImage,
    build_image,
    is_plugin_image,
    open_image,
    read_manifest,
)
from plugbay.plugins.meta import Meta
from plugbay.plugins.registry import (
    ImagePath,
    ListResult,
    PluginRegistry,
    RegisteredName,
    SkippedEntry,
)

__all__ = [
    # Errors
    "ImageLoadError",
    "InvalidPluginNameError",
    "NotAPluginError",
    "PluginCorruptError",
    "PluginExistsError",
    "PluginInstallError",
    "PluginNotFoundError",
    "PluginRegistryError",
    "RegistryIOError",
    # Identity
    "derive_id",
    "path_fragment",
    "validate_name",
    # Image
    "Manifest",
    "PluginImage",
    "build_image",
    "is_plugin_image",
    "open_image",
    "read_manifest",
    # Registry
    "ImagePath",
    "ListResult",
    "Meta",
    "PluginRegistry",
    "RegisteredName",
    "SkippedEntry",
]
