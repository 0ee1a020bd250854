"""
Exceptions raised by the plugbay plugin registry.

Every error carries the plugin name (or image path) it concerns, a short
human-readable reason, and the original exception when one triggered it.
The original is also chained as ``__cause__`` by the raising code.

Hierarchy:
    PluginRegistryError
    ├── PluginNotFoundError     - name does not resolve to an installed plugin
    ├── NotAPluginError         - image fails plugin validation
    ├── ImageLoadError          - image cannot be opened or parsed
    ├── PluginInstallError      - failure during the install sequence
    │   └── PluginExistsError   - name already registered
    ├── RegistryIOError         - file-system failure outside install
    │   └── PluginCorruptError  - record present but artifacts missing
    └── InvalidPluginNameError  - name unusable as a relative path
"""

from __future__ import annotations


class PluginRegistryError(Exception):
    """Base class for all registry errors.

    Attributes:
        plugin_name: Name of the plugin, or path of the image, concerned.
        reason: Reason for the failure.
        original: Original exception if any.
    """

    def __init__(
        self,
        plugin_name: str,
        reason: str,
        original: Exception | None = None,
    ):
        self.plugin_name = plugin_name
        self.reason = reason
        self.original = original
        super().__init__(self._format())

    def _format(self) -> str:
        message = f"{self.reason}: {self.plugin_name!r}"
        if self.original is not None:
            message = f"{message} ({self.original})"
        return message


class PluginNotFoundError(PluginRegistryError):
    """Raised when a name does not resolve to an installed plugin."""

    def __init__(self, plugin_name: str, original: Exception | None = None):
        super().__init__(plugin_name, "plugin not found", original)


class NotAPluginError(PluginRegistryError):
    """Raised when an image does not carry a plugin descriptor."""

    def __init__(self, image_path: str, original: Exception | None = None):
        super().__init__(image_path, "not a valid plugin image", original)


class ImageLoadError(PluginRegistryError):
    """Raised when an image file cannot be opened as a container."""

    def __init__(self, image_path: str, original: Exception | None = None):
        super().__init__(image_path, "could not load plugin image", original)


class PluginInstallError(PluginRegistryError):
    """Raised when the install sequence fails.

    Attributes:
        step: The install step that failed (e.g. "copy image").
    """

    def __init__(
        self,
        plugin_name: str,
        step: str,
        original: Exception | None = None,
    ):
        self.step = step
        super().__init__(plugin_name, f"could not install plugin ({step})", original)


class PluginExistsError(PluginInstallError):
    """Raised when installing a name that is already registered."""

    def __init__(self, plugin_name: str):
        super().__init__(plugin_name, "already installed")


class RegistryIOError(PluginRegistryError):
    """Raised on file-system failures during list/enable/disable/uninstall."""


class PluginCorruptError(RegistryIOError):
    """Raised when a metadata file exists but installed artifacts are missing.

    Attributes:
        missing: Names of the missing artifacts.
    """

    def __init__(self, plugin_name: str, missing: list[str]):
        self.missing = list(missing)
        super().__init__(
            plugin_name,
            f"incomplete installation, missing {', '.join(self.missing)}",
        )


class InvalidPluginNameError(PluginRegistryError, ValueError):
    """Raised when a plugin name cannot be used as a registry path."""

    def __init__(self, plugin_name: str, reason: str):
        super().__init__(plugin_name, f"invalid plugin name, {reason}")
