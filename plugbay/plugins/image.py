"""
Plugin image adapter for plugbay.

A plugin image is a single-file container holding exactly one binary
object and a manifest describing the plugin. This module wraps an opened
image handle and exposes the few operations the registry needs:

    open_image        - open a container from a path
    is_plugin_image   - does the container carry a plugin descriptor?
    read_manifest     - return the embedded Manifest
    build_image       - pack a binary and a manifest into a new image

Image Format:
    Images are zip archives with two members:
    - ``plugin.json``: the plugin descriptor, whose JSON body is the Manifest
    - ``plugin.so``: the binary object

    A readable zip without both members is a well-formed image that is
    simply not a plugin. A file that is not a zip archive cannot be opened.

Example:
    from plugbay.plugins.image import open_image, is_plugin_image, read_manifest

    with open_image("hello.img") as image:
        if is_plugin_image(image):
            print(read_manifest(image).name)
"""

from __future__ import annotations

import logging
import shutil
import zipfile
import zlib
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from plugbay.plugins.errors import ImageLoadError, NotAPluginError

logger = logging.getLogger(__name__)

# Member names inside an image
DESCRIPTOR_NAME = "plugin.json"
BINARY_NAME = "plugin.so"


class Manifest(BaseModel):
    """Plugin manifest embedded in an image.

    Only ``name`` is required. Unknown keys are kept verbatim so that
    plugins can carry their own descriptive fields.

    Attributes:
        name: Declared plugin name.
        author: Plugin author.
        version: Informational version string.
        description: Human-readable description.
        license: Software license.
        config: Default runtime options for the generated config file.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str = Field(..., min_length=1, description="Declared plugin name")
    author: str = ""
    version: str = ""
    description: str = ""
    license: str = ""
    config: dict[str, Any] = Field(default_factory=dict)


class PluginImage:
    """An opened plugin image.

    Wraps the underlying zip archive. The descriptor is parsed lazily the
    first time the image is validated and cached afterwards.

    Attributes:
        path: Path of the image file on disk.
    """

    def __init__(self, path: Path, archive: zipfile.ZipFile):
        self.path = path
        self._archive = archive
        self._manifest: Manifest | None = None

    def is_plugin_image(self) -> bool:
        """Check whether the image carries a valid plugin descriptor."""
        if self._manifest is not None:
            return True

        members = set(self._archive.namelist())
        if DESCRIPTOR_NAME not in members or BINARY_NAME not in members:
            return False

        try:
            raw = self._archive.read(DESCRIPTOR_NAME)
            self._manifest = Manifest.model_validate_json(raw)
        except (
            ValidationError,
            zipfile.BadZipFile,
            zlib.error,
            NotImplementedError,
            OSError,
            RuntimeError,
        ) as e:
            logger.debug(f"Invalid plugin descriptor in {self.path}: {e}")
            return False

        return True

    def read_manifest(self) -> Manifest:
        """Return the embedded manifest.

        Raises:
            NotAPluginError: If the image is not a plugin image.
        """
        if not self.is_plugin_image():
            raise NotAPluginError(str(self.path))
        return self._manifest

    def copy_to(self, dest: Path) -> None:
        """Copy the image file verbatim to dest."""
        shutil.copyfile(self.path, dest)

    def extract_binary(self, dest: Path) -> None:
        """Write the embedded binary object to dest."""
        with self._archive.open(BINARY_NAME) as src, open(dest, "wb") as dst:
            shutil.copyfileobj(src, dst)
        dest.chmod(0o755)

    def close(self) -> None:
        self._archive.close()

    def __enter__(self) -> PluginImage:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<PluginImage path={str(self.path)!r}>"


# Type for image openers injected into the registry
ImageOpener = Callable[[Path], PluginImage]


def open_image(path: str | Path) -> PluginImage:
    """Open an image file.

    Args:
        path: Path to the image.

    Returns:
        The opened PluginImage. Close it when done.

    Raises:
        ImageLoadError: If the file cannot be read or is not a container.
    """
    path = Path(path)
    try:
        archive = zipfile.ZipFile(path, "r")
    except (OSError, zipfile.BadZipFile) as e:
        raise ImageLoadError(str(path), e) from e
    return PluginImage(path, archive)


def is_plugin_image(image: PluginImage) -> bool:
    """Return whether the image contains the plugin descriptor section."""
    return image.is_plugin_image()


def read_manifest(image: PluginImage) -> Manifest:
    """Return the manifest embedded in a plugin image."""
    return image.read_manifest()


def build_image(
    dest: str | Path,
    binary: bytes | str | Path,
    manifest: Manifest | dict[str, Any],
) -> Path:
    """Pack a binary object and a manifest into a plugin image.

    Args:
        dest: Path of the image to create (overwritten if present).
        binary: Binary object content, or a path to read it from.
        manifest: Manifest model or a dict validated into one.

    Returns:
        The path of the written image.
    """
    if not isinstance(manifest, Manifest):
        manifest = Manifest.model_validate(manifest)

    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)

    with zipfile.ZipFile(dest, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(DESCRIPTOR_NAME, manifest.model_dump_json(indent=2))
        if isinstance(binary, bytes):
            zf.writestr(BINARY_NAME, binary)
        else:
            zf.write(binary, BINARY_NAME)

    logger.debug(f"Built plugin image {dest} for {manifest.name!r}")
    return dest
