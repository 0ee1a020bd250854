"""
Plugin registry for plugbay.

This module provides the public lifecycle API over a single registry root.
The registry installs plugin images into the root, then answers lookups and
state changes against the installed metadata records.

Registry Features:
    - Install from an image file, with an optional name override
    - Uninstall, leaving no installed files behind
    - Listing that survives corrupt entries and reports them
    - Enable / disable with idempotent no-op detection
    - Inspection of either a raw image file or an installed plugin

Example:
    from plugbay.plugins.registry import PluginRegistry

    registry = PluginRegistry("/var/lib/plugbay/plugins")

    meta = registry.install("hello.img", name="vendor/hello")
    registry.disable("vendor/hello")

    for meta in registry.list_plugins():
        print(meta.name, meta.enabled)

    manifest = registry.inspect("vendor/hello")
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, ContextManager, Iterator, Union

from pydantic import ValidationError

from plugbay.plugins.errors import (
    NotAPluginError,
    PluginCorruptError,
    PluginExistsError,
    PluginInstallError,
    PluginRegistryError,
    RegistryIOError,
)
from plugbay.plugins.identity import derive_id, validate_name
from plugbay.plugins.image import (
    ImageOpener,
    Manifest,
    is_plugin_image,
    open_image,
    read_manifest,
)
from plugbay.plugins.lock import registry_lock
from plugbay.plugins.meta import META_SUFFIX, Meta

if TYPE_CHECKING:
    from plugbay.config.settings import Settings

logger = logging.getLogger(__name__)

# Metadata files are named after the plugin ID
_META_FILE = re.compile(r"^[0-9a-f]{64}" + re.escape(META_SUFFIX) + "$")


@dataclass
class SkippedEntry:
    """A metadata file that List could not turn into a record.

    Attributes:
        path: Path of the skipped entry.
        error: Why it was skipped.
    """

    path: Path
    error: Exception


@dataclass
class ListResult:
    """Outcome of a registry scan.

    Iterating over the result yields the successfully loaded records.

    Attributes:
        metas: Records loaded from intact installations.
        skipped: Entries skipped, with the reason for each.
    """

    metas: list[Meta] = field(default_factory=list)
    skipped: list[SkippedEntry] = field(default_factory=list)

    def __iter__(self) -> Iterator[Meta]:
        return iter(self.metas)

    def __len__(self) -> int:
        return len(self.metas)

    def names(self) -> list[str]:
        """Get the names of the loaded records."""
        return [meta.name for meta in self.metas]


@dataclass(frozen=True)
class ImagePath:
    """Inspect target naming an image file directly."""

    path: Path


@dataclass(frozen=True)
class RegisteredName:
    """Inspect target naming an installed plugin."""

    name: str


InspectTarget = Union[ImagePath, RegisteredName]


class PluginRegistry:
    """Lifecycle API for plugins installed under one root directory.

    Several registries with different roots can coexist in one process;
    no state is shared between them.

    Attributes:
        _root_dir: Directory holding every installed plugin.
        _opener: Callable opening an image file into a PluginImage.
        _lock_writes: Whether mutating calls take the root's write lock.

    Example:
        registry = PluginRegistry(tmp_path / "plugins")
        registry.install("hello.img")
        assert registry.list_plugins().names() == ["hello"]
    """

    def __init__(
        self,
        root_dir: str | Path,
        opener: ImageOpener = open_image,
        lock_writes: bool = True,
    ):
        """Initialize the registry.

        Args:
            root_dir: Registry root. Created on first install.
            opener: Image opener, defaults to the zip image reader.
            lock_writes: Serialize mutating calls with a lock file.
        """
        self._root_dir = Path(root_dir).expanduser()
        self._opener = opener
        self._lock_writes = lock_writes

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> PluginRegistry:
        """Build a registry from configuration.

        Args:
            settings: Settings to use. Defaults to the process settings.
        """
        if settings is None:
            from plugbay.config.settings import settings as default_settings

            settings = default_settings
        return cls(settings.ROOT_DIR, lock_writes=settings.LOCK_WRITES)

    @property
    def root_dir(self) -> Path:
        """Get the registry root."""
        return self._root_dir

    def install(self, image_path: str | Path, name: str | None = None) -> Meta:
        """Install a plugin from an image file.

        Steps:
            1. Check that the image is a valid plugin
            2. Use name (or the manifest's) and derive the installation path
            3. Copy the image, extract the binary, write the default config
            4. Write the metadata record

        Args:
            image_path: Path to the source plugin image.
            name: Name to register under. Defaults to the manifest name.

        Returns:
            The installed plugin record.

        Raises:
            ImageLoadError: If the image cannot be opened.
            NotAPluginError: If the image is not a plugin image.
            InvalidPluginNameError: If the effective name is unsafe.
            PluginExistsError: If the name is already installed.
            PluginInstallError: If any install step fails.
        """
        image_path = Path(image_path)
        logger.debug(f"Installing plugin from {image_path} to {self._root_dir}")

        with self._opener(image_path) as image:
            if not is_plugin_image(image):
                raise NotAPluginError(str(image_path))
            manifest = read_manifest(image)

            effective_name = validate_name(name or manifest.name)
            meta = Meta(name=effective_name, root_dir=self._root_dir, enabled=True)

            # Meta.install only raises PluginInstallError, so a
            # RegistryIOError here comes from the lock
            try:
                with self._write_lock():
                    if meta.meta_path.exists():
                        raise PluginExistsError(effective_name)
                    meta.install(image, manifest)
            except RegistryIOError as e:
                raise PluginInstallError(effective_name, "lock registry", e) from e

        return meta

    def uninstall(self, name: str) -> Meta:
        """Uninstall the plugin matching name.

        Args:
            name: Installed plugin name.

        Returns:
            The record that was removed.

        Raises:
            PluginNotFoundError: If no plugin is installed under name.
            RegistryIOError: If installed files cannot be removed.
        """
        logger.debug(f"Uninstalling plugin {name!r} from {self._root_dir}")

        meta = self.get(name)
        logger.debug(f"Found plugin {name!r}, meta={meta!r}")

        with self._write_lock():
            meta.uninstall()
        return meta

    def list_plugins(self) -> ListResult:
        """List all plugins installed in the root.

        Scans the root for ID-named metadata files (one level). Entries that
        are not regular files, cannot be parsed, or whose artifacts are
        missing are skipped and recorded; they never abort the scan. Other
        names in the root, such as plugin directories, are ignored.

        Returns:
            ListResult of loaded records and skipped entries, in
            filesystem order.

        Raises:
            RegistryIOError: If the root exists but cannot be read.
        """
        result = ListResult()
        if not self._root_dir.exists():
            return result

        try:
            entries = [
                entry for entry in self._root_dir.iterdir()
                if _META_FILE.match(entry.name)
            ]
        except OSError as e:
            raise RegistryIOError(
                str(self._root_dir), "cannot list plugins in directory", e
            ) from e

        for entry in entries:
            try:
                meta = self._load_entry(entry)
            except (PluginRegistryError, ValidationError) as e:
                logger.debug(f"Error loading {entry}: {e}. Skip")
                result.skipped.append(SkippedEntry(path=entry, error=e))
                continue
            result.metas.append(meta)

        return result

    def enable(self, name: str) -> bool:
        """Enable the plugin named name.

        Returns:
            True if the state changed, False if it was already enabled.

        Raises:
            PluginNotFoundError: If no plugin is installed under name.
            RegistryIOError: If the metadata file cannot be rewritten.
        """
        logger.debug(f"Enabling plugin {name!r} in {self._root_dir}")

        meta = self.get(name)
        logger.debug(f"Found plugin {name!r}, meta={meta!r}")

        if meta.enabled:
            logger.info(f"Plugin {name!r} is already enabled")
            return False

        with self._write_lock():
            meta.enable()
        return True

    def disable(self, name: str) -> bool:
        """Disable the plugin named name.

        Returns:
            True if the state changed, False if it was already disabled.

        Raises:
            PluginNotFoundError: If no plugin is installed under name.
            RegistryIOError: If the metadata file cannot be rewritten.
        """
        logger.debug(f"Disabling plugin {name!r} in {self._root_dir}")

        meta = self.get(name)
        logger.debug(f"Found plugin {name!r}, meta={meta!r}")

        if not meta.enabled:
            logger.info(f"Plugin {name!r} is already disabled")
            return False

        with self._write_lock():
            meta.disable()
        return True

    def get(self, name: str) -> Meta:
        """Get an installed plugin by name.

        Raises:
            PluginNotFoundError: If no readable record exists for name.
        """
        return Meta.load(self._root_dir, name)

    def resolve_target(self, name_or_path: str) -> InspectTarget:
        """Decide whether an Inspect argument is an image file or a name.

        An existing path is an image. A path that does not exist is taken
        as an installed plugin name. A path that exists but cannot be
        accessed is an error; no name resolution is attempted.

        Raises:
            RegistryIOError: If the path exists but cannot be accessed.
        """
        try:
            os.stat(name_or_path)
        except (FileNotFoundError, NotADirectoryError, ValueError):
            return RegisteredName(name_or_path)
        except OSError as e:
            raise RegistryIOError(name_or_path, "cannot access image", e) from e
        return ImagePath(Path(name_or_path))

    def inspect(self, target: str | Path | InspectTarget) -> Manifest:
        """Read the manifest of a plugin image or an installed plugin.

        Args:
            target: Image path or installed plugin name. Strings and paths
                are resolved once through resolve_target.

        Returns:
            The plugin manifest.

        Raises:
            PluginNotFoundError: If a name resolves to no installed plugin.
            ImageLoadError: If the image cannot be opened.
            NotAPluginError: If the image is not a plugin image.
            RegistryIOError: If the path exists but cannot be accessed.
        """
        if isinstance(target, (str, os.PathLike)):
            target = self.resolve_target(os.fspath(target))

        if isinstance(target, RegisteredName):
            image_path = self.get(target.name).image_name()
        else:
            image_path = target.path

        with self._opener(image_path) as image:
            if not is_plugin_image(image):
                raise NotAPluginError(str(image_path))
            return read_manifest(image)

    def enabled_binaries(self) -> list[Path]:
        """Get the binary objects of every enabled, intact plugin.

        Returns:
            Paths a runtime loader should load, in listing order.
        """
        return [meta.binary_path for meta in self.list_plugins() if meta.enabled]

    def get_statistics(self) -> dict[str, Any]:
        """Get registry statistics.

        Returns:
            Dictionary with registry statistics.
        """
        result = self.list_plugins()
        return {
            "root_dir": str(self._root_dir),
            "total_plugins": len(result),
            "enabled_plugins": sum(1 for meta in result if meta.enabled),
            "skipped_entries": len(result.skipped),
        }

    def _load_entry(self, entry: Path) -> Meta:
        """Load one scanned metadata file, checking it is intact."""
        if not entry.is_file():
            raise RegistryIOError(str(entry), "not a regular file")

        meta = Meta.from_file(entry, self._root_dir)
        if entry.name != f"{derive_id(meta.name)}{META_SUFFIX}":
            raise RegistryIOError(str(entry), f"metadata file does not belong to {meta.name!r}")

        missing = meta.missing_artifacts()
        if missing:
            raise PluginCorruptError(meta.name, missing)
        return meta

    def _write_lock(self) -> ContextManager[Any]:
        if self._lock_writes:
            return registry_lock(self._root_dir)
        return contextlib.nullcontext()

    def __repr__(self) -> str:
        return f"<PluginRegistry root={str(self._root_dir)!r}>"
