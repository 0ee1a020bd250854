"""
Plugin identity helpers.

A plugin is keyed by its human name. Two values are derived from it:

- the plugin ID, a SHA-256 digest used for collision-resistant file names,
- the path fragment, the name itself read as a relative path, so that
  ``vendor/plugin`` installs under ``<root>/vendor/plugin``.

Because names become paths, they are validated before use: a name may
never escape the registry root.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path, PurePosixPath, PureWindowsPath

from plugbay.plugins.errors import InvalidPluginNameError
from plugbay.plugins.lock import LOCK_FILE

# Top-level entries the registry itself keeps in its root
_RESERVED_ENTRY = re.compile(r"^[0-9a-f]{64}\.(meta|tmp)$")


def validate_name(name: str) -> str:
    """Check that a plugin name is a safe relative path.

    Args:
        name: The candidate plugin name.

    Returns:
        The name, unchanged.

    Raises:
        InvalidPluginNameError: If the name is empty, absolute, contains
            backslashes, NUL bytes, empty segments, or ``.``/``..`` segments,
            or if its first segment collides with a registry file.
    """
    if not name or not name.strip():
        raise InvalidPluginNameError(name, "name cannot be empty")
    if "\x00" in name:
        raise InvalidPluginNameError(name, "name contains a NUL byte")
    if "\\" in name:
        raise InvalidPluginNameError(name, "use '/' to separate namespaces")
    if name.startswith("/") or PureWindowsPath(name).drive:
        raise InvalidPluginNameError(name, "name must be a relative path")

    for segment in name.split("/"):
        if not segment:
            raise InvalidPluginNameError(name, "name contains an empty segment")
        if segment in (".", ".."):
            raise InvalidPluginNameError(name, f"segment {segment!r} is not allowed")

    top = name.split("/", 1)[0]
    if top == LOCK_FILE or _RESERVED_ENTRY.match(top):
        raise InvalidPluginNameError(name, f"{top!r} is reserved by the registry")

    return name


def derive_id(name: str) -> str:
    """Return a unique ID for the plugin given its name.

    Args:
        name: Plugin name.

    Returns:
        Lowercase hex SHA-256 digest of the UTF-8 encoded name.
    """
    return hashlib.sha256(name.encode("utf-8")).hexdigest()


def path_fragment(name: str) -> Path:
    """Return the partial path of a plugin relative to the registry root."""
    validate_name(name)
    return Path(*PurePosixPath(name).parts)
