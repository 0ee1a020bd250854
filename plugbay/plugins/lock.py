"""Exclusive write lock for a registry root.

Serializes install/uninstall/enable/disable calls from separate processes
pointing at the same registry root. The lock is advisory and blocking:
a second writer waits until the first releases it.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator

from plugbay.plugins.errors import RegistryIOError

logger = logging.getLogger(__name__)

LOCK_FILE = ".plugbay.lock"


def _lock_file(handle: IO[str]) -> None:
    if os.name == "nt":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK, 1)  # type: ignore[attr-defined]
        return
    import fcntl

    fcntl.flock(handle.fileno(), fcntl.LOCK_EX)


def _unlock_file(handle: IO[str]) -> None:
    if os.name == "nt":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)  # type: ignore[attr-defined]
        return
    import fcntl

    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


@contextmanager
def registry_lock(root_dir: str | Path) -> Iterator[Path]:
    """Hold the exclusive write lock of a registry root.

    Creates the root directory and the lock file if needed.

    Args:
        root_dir: The registry root.

    Yields:
        Path of the lock file.

    Raises:
        RegistryIOError: If the lock file cannot be created or locked.
    """
    root = Path(root_dir)
    lock_path = root / LOCK_FILE
    try:
        root.mkdir(parents=True, exist_ok=True)
        handle = lock_path.open("a+", encoding="utf-8")
    except OSError as e:
        raise RegistryIOError(str(lock_path), "could not open registry lock", e) from e

    try:
        try:
            _lock_file(handle)
        except OSError as e:
            raise RegistryIOError(str(lock_path), "could not acquire registry lock", e) from e
        logger.debug(f"Acquired registry lock {lock_path}")
        try:
            yield lock_path
        finally:
            try:
                _unlock_file(handle)
            except OSError as e:
                logger.debug(f"Could not release registry lock {lock_path}: {e}")
            logger.debug(f"Released registry lock {lock_path}")
    finally:
        handle.close()
