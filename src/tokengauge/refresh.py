# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Cache-aware refresh used by the display surfaces.

A fresh cache is served as-is. A stale, missing or unreadable cache
triggers a fetch of every enabled provider, and the new snapshot is
written back. A failed cache write is reported but never hides the
freshly fetched result.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .cache import (
    CacheParseError,
    is_cache_stale,
    read_cache,
    read_cache_async,
    write_cache_async,
)
from .config import TokenGaugeConfig
from .orchestrator import fetch_all_providers
from .types import CachedSnapshot, FetchResult

lib_logger = logging.getLogger("tokengauge")


@dataclass
class RefreshOutcome:
    result: FetchResult
    from_cache: bool
    cache_error: Optional[str] = None


def _snapshot_to_result(snapshot: CachedSnapshot) -> FetchResult:
    return FetchResult(payloads=snapshot.payloads(), errors=snapshot.errors())


async def refresh_snapshot(
    config: TokenGaugeConfig, force: bool = False
) -> RefreshOutcome:
    """
    Return the current snapshot, fetching only when needed.

    Args:
        config: Loaded configuration
        force: Skip the staleness check and always fetch

    Returns:
        RefreshOutcome with the snapshot and where it came from
    """
    if not force and not is_cache_stale(config.cache_file, config.refresh_secs):
        try:
            snapshot = await read_cache_async(config.cache_file)
            lib_logger.debug(f"Serving fresh cache from {config.cache_file}")
            return RefreshOutcome(result=_snapshot_to_result(snapshot), from_cache=True)
        except (OSError, CacheParseError) as e:
            lib_logger.warning(f"Cache unreadable, fetching instead: {e}")

    result = await fetch_all_providers(config)

    cache_error = None
    try:
        await write_cache_async(config.cache_file, result.payloads, result.errors)
    except OSError as e:
        cache_error = f"failed to write cache {config.cache_file}: {e}"
        lib_logger.warning(cache_error)

    return RefreshOutcome(result=result, from_cache=False, cache_error=cache_error)


def refresh_snapshot_sync(
    config: TokenGaugeConfig, force: bool = False
) -> RefreshOutcome:
    """Blocking wrapper around ``refresh_snapshot``."""
    return asyncio.run(refresh_snapshot(config, force=force))


def load_cached_result(config: TokenGaugeConfig) -> Optional[FetchResult]:
    """Read the cache without fetching; None if it is missing or broken."""
    try:
        return _snapshot_to_result(read_cache(config.cache_file))
    except (OSError, CacheParseError) as e:
        lib_logger.debug(f"No usable cache at {config.cache_file}: {e}")
        return None
