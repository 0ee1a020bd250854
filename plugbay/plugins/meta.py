"""
Installed plugin metadata for plugbay.

A ``Meta`` is the unit of installed state: a plugin name, an enabled flag,
and the registry root it lives under. Every file location is derived from
the name, never stored:

    <root>/<plugin-id>.meta          serialized Meta (JSON)
    <root>/<name>/object.img         verbatim copy of the source image
    <root>/<name>/object.so          extracted binary object
    <root>/<name>/config.json        generated default configuration

The metadata file is written last during install. Its presence is what
makes a plugin count as installed.

Example:
    meta = Meta.load(root_dir, "vendor/hello")
    if not meta.enabled:
        meta.enable()
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, Field, ValidationError

from plugbay.plugins.errors import (
    PluginInstallError,
    PluginNotFoundError,
    PluginRegistryError,
    RegistryIOError,
)
from plugbay.plugins.identity import derive_id, path_fragment, validate_name
from plugbay.plugins.image import Manifest, PluginImage

logger = logging.getLogger(__name__)

META_SUFFIX = ".meta"
IMAGE_FILE = "object.img"
BINARY_FILE = "object.so"
CONFIG_FILE = "config.json"


class MetaFile(BaseModel):
    """On-disk schema of a metadata file."""

    name: str = Field(..., min_length=1)
    enabled: bool = True


@dataclass
class Meta:
    """An installed plugin.

    Attributes:
        name: Registered plugin name, the registry's primary key.
        root_dir: Registry root the plugin is installed under.
        enabled: Whether the runtime loader should activate the plugin.
    """

    name: str
    root_dir: Path
    enabled: bool = True

    def __post_init__(self) -> None:
        validate_name(self.name)
        self.root_dir = Path(self.root_dir)

    # -- derived locations ---------------------------------------------------

    @property
    def path(self) -> Path:
        """Installation directory of the plugin."""
        return self.root_dir / path_fragment(self.name)

    @property
    def image_path(self) -> Path:
        return self.path / IMAGE_FILE

    @property
    def binary_path(self) -> Path:
        return self.path / BINARY_FILE

    @property
    def config_path(self) -> Path:
        return self.path / CONFIG_FILE

    @property
    def meta_path(self) -> Path:
        return self.root_dir / f"{derive_id(self.name)}{META_SUFFIX}"

    def image_name(self) -> Path:
        """Return the absolute path of the installed image copy."""
        return self.image_path.absolute()

    # -- lifecycle -----------------------------------------------------------

    def install(self, image: PluginImage, manifest: Manifest) -> None:
        """Install the plugin from an opened, validated image.

        Runs the install steps in order and stops at the first failure.
        Earlier steps are not rolled back, but the metadata file is only
        written once every other step has succeeded.

        Args:
            image: The source plugin image.
            manifest: The manifest read from the image.

        Raises:
            PluginInstallError: Naming the step that failed.
        """
        steps: list[tuple[str, Callable[[], None]]] = [
            ("create directories", lambda: self.path.mkdir(parents=True, exist_ok=True)),
            ("copy image", lambda: image.copy_to(self.image_path)),
            ("extract binary", lambda: image.extract_binary(self.binary_path)),
            ("write config", lambda: self._write_config(manifest)),
            ("write metadata", self._write_meta),
        ]

        for step, action in steps:
            logger.debug(f"Install {self.name!r}: {step}")
            try:
                action()
            except Exception as e:
                raise PluginInstallError(self.name, step, e) from e

        logger.info(f"Installed plugin {self.name!r} in {self.path}")

    def uninstall(self) -> None:
        """Remove every installed file of the plugin.

        The metadata file goes first, so a plugin whose removal fails partway
        is no longer installed. Missing files are skipped. Installation
        directories left empty are pruned up to, but excluding, the registry
        root.

        Raises:
            RegistryIOError: If an existing file cannot be removed.
        """
        for artifact in (self.meta_path, self.image_path, self.binary_path, self.config_path):
            try:
                artifact.unlink()
            except FileNotFoundError:
                logger.debug(f"Uninstall {self.name!r}: {artifact} already gone")
            except OSError as e:
                raise RegistryIOError(self.name, f"could not remove {artifact}", e) from e

        self._prune_empty_dirs()
        logger.info(f"Uninstalled plugin {self.name!r}")

    def enable(self) -> None:
        """Mark the plugin enabled and rewrite its metadata file."""
        self._set_enabled(True)

    def disable(self) -> None:
        """Mark the plugin disabled and rewrite its metadata file."""
        self._set_enabled(False)

    def missing_artifacts(self) -> list[str]:
        """Return the names of installed artifacts absent from disk."""
        artifacts = (("image", self.image_path), ("binary", self.binary_path))
        return [label for label, path in artifacts if not path.is_file()]

    # -- loading -------------------------------------------------------------

    @classmethod
    def load(cls, root_dir: str | Path, name: str) -> Meta:
        """Load the metadata of an installed plugin by name.

        Raises:
            InvalidPluginNameError: If the name is not a valid plugin name.
            PluginNotFoundError: If no readable record exists for the name.
        """
        root_dir = Path(root_dir)
        validate_name(name)
        meta_path = root_dir / f"{derive_id(name)}{META_SUFFIX}"

        if not meta_path.is_file():
            raise PluginNotFoundError(name)

        try:
            meta = cls.from_file(meta_path, root_dir)
        except (PluginRegistryError, ValidationError) as e:
            raise PluginNotFoundError(name, e) from e

        if meta.name != name:
            logger.debug(f"Metadata file {meta_path} records {meta.name!r}, not {name!r}")
            raise PluginNotFoundError(name)

        return meta

    @classmethod
    def from_file(cls, meta_path: str | Path, root_dir: str | Path | None = None) -> Meta:
        """Load a Meta from a metadata file.

        Args:
            meta_path: Path to the ``.meta`` file.
            root_dir: Registry root. Defaults to the file's directory.

        Raises:
            RegistryIOError: If the file cannot be read.
            pydantic.ValidationError: If the content is not a valid record.
            InvalidPluginNameError: If the recorded name is unsafe.
        """
        meta_path = Path(meta_path)
        try:
            raw = meta_path.read_bytes()
        except OSError as e:
            raise RegistryIOError(str(meta_path), "could not read metadata file", e) from e

        record = MetaFile.model_validate_json(raw)
        return cls(
            name=record.name,
            root_dir=Path(root_dir) if root_dir is not None else meta_path.parent,
            enabled=record.enabled,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation including derived paths.
        """
        return {
            "name": self.name,
            "enabled": self.enabled,
            "path": str(self.path),
            "image": str(self.image_path),
            "binary": str(self.binary_path),
            "config": str(self.config_path),
        }

    # -- helpers -------------------------------------------------------------

    def _set_enabled(self, enabled: bool) -> None:
        previous = self.enabled
        self.enabled = enabled
        try:
            self._write_meta()
        except OSError as e:
            self.enabled = previous
            raise RegistryIOError(self.name, "could not write metadata file", e) from e
        logger.info(f"Plugin {self.name!r} {'enabled' if enabled else 'disabled'}")

    def _write_meta(self) -> None:
        """Atomically write the metadata file.

        Writes to a temporary file first, then renames, so readers never
        see a partial record.
        """
        record = MetaFile(name=self.name, enabled=self.enabled)
        self.meta_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.meta_path.with_suffix(".tmp")
        tmp.write_text(record.model_dump_json(indent=2) + "\n", encoding="utf-8")
        tmp.replace(self.meta_path)

    def _write_config(self, manifest: Manifest) -> None:
        config = {
            "plugin": self.name,
            "binary": BINARY_FILE,
            "options": dict(manifest.config),
        }
        self.config_path.write_text(
            json.dumps(config, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )

    def _prune_empty_dirs(self) -> None:
        root = self.root_dir.absolute()
        current = self.path.absolute()
        while current != root and root in current.parents:
            try:
                current.rmdir()
            except FileNotFoundError:
                pass
            except OSError:
                # not empty, another plugin shares this namespace
                break
            current = current.parent
