# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Snapshot cache storage.

Handles loading and saving the last refresh result to a JSON file.

Features:
- Reads both the current ``{"Full": {...}}`` layout and the older bare
  payload array
- Always writes the current layout
- Atomic writes (write to temp, then rename)
- Async variants on top of aiofiles for use inside the event loop
"""

import json
import logging
import time
from pathlib import Path
from typing import List, Optional, Union

import aiofiles

from .types import (
    CachedSnapshot,
    ProviderFetchError,
    ProviderPayload,
    SnapshotParseError,
    snapshot_from_json,
    snapshot_to_json,
)

lib_logger = logging.getLogger("tokengauge")

PathLike = Union[str, Path]


class CacheParseError(ValueError):
    """The cache file exists but is not a valid snapshot."""


def _decode(path: Path, content: bytes) -> CachedSnapshot:
    try:
        value = json.loads(content.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise CacheParseError(f"cached file {path} is not UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise CacheParseError(f"cached JSON in {path} was invalid: {e}") from e
    try:
        return snapshot_from_json(value)
    except SnapshotParseError as e:
        raise CacheParseError(f"cached snapshot in {path} was malformed: {e}") from e


def _encode(payloads: List[ProviderPayload], errors: List[ProviderFetchError]) -> str:
    return json.dumps(snapshot_to_json(payloads, errors))


def _temp_path(path: Path) -> Path:
    return path.with_name(path.name + ".tmp")


def _prepare_parent(path: Path) -> None:
    # Best effort: the write below reports the real failure if any.
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        lib_logger.debug(f"Could not create cache directory {path.parent}: {e}")


def read_cache(path: PathLike) -> CachedSnapshot:
    """
    Read a cached snapshot.

    Raises:
        FileNotFoundError: No cache file
        CacheParseError: File is not a snapshot in either layout
        OSError: File could not be read
    """
    path = Path(path)
    with open(path, "rb") as f:
        content = f.read()
    return _decode(path, content)


def write_cache(
    path: PathLike,
    payloads: List[ProviderPayload],
    errors: List[ProviderFetchError],
) -> None:
    """
    Write a snapshot in the current layout.

    Raises:
        OSError: If the file could not be written
    """
    path = Path(path)
    _prepare_parent(path)
    temp_path = _temp_path(path)
    with open(temp_path, "w", encoding="utf-8") as f:
        f.write(_encode(payloads, errors))
    temp_path.replace(path)
    lib_logger.debug(f"Saved {len(payloads)} payloads, {len(errors)} errors to {path}")


async def read_cache_async(path: PathLike) -> CachedSnapshot:
    """Async version of ``read_cache``."""
    path = Path(path)
    async with aiofiles.open(path, "rb") as f:
        content = await f.read()
    return _decode(path, content)


async def write_cache_async(
    path: PathLike,
    payloads: List[ProviderPayload],
    errors: List[ProviderFetchError],
) -> None:
    """Async version of ``write_cache``."""
    path = Path(path)
    _prepare_parent(path)
    temp_path = _temp_path(path)
    async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
        await f.write(_encode(payloads, errors))
    temp_path.replace(path)
    lib_logger.debug(f"Saved {len(payloads)} payloads, {len(errors)} errors to {path}")


def is_cache_stale(
    path: PathLike, refresh_secs: float, now: Optional[float] = None
) -> bool:
    """
    Whether the cache needs a refetch.

    Missing files and unreadable modification times count as stale, as does
    any file at least ``refresh_secs`` old.
    """
    try:
        modified = Path(path).stat().st_mtime
    except OSError:
        return True
    now = time.time() if now is None else now
    age = now - modified
    if age < 0:
        # mtime in the future; treat like an unknown age
        return True
    return age >= refresh_secs


def ensure_cache_dir(path: PathLike) -> None:
    """Create the directory holding the cache file; raises OSError on failure."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
