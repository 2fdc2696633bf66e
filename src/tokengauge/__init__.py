from typing import TYPE_CHECKING

from .config import (
    ConfigError,
    EnabledProvider,
    ProviderConfig,
    TokenGaugeConfig,
    load_config,
    load_or_create_config,
)
from .orchestrator import fetch_all_providers, fetch_all_providers_sync
from .rows import ProviderRow, payload_to_rows, weighted_average
from .types import FetchResult, ProviderFetchError, ProviderPayload

# The refresh service pulls in aiofiles; load it on first use.
if TYPE_CHECKING:
    from .refresh import RefreshOutcome, refresh_snapshot, refresh_snapshot_sync

__all__ = [
    "ConfigError",
    "EnabledProvider",
    "ProviderConfig",
    "TokenGaugeConfig",
    "load_config",
    "load_or_create_config",
    "fetch_all_providers",
    "fetch_all_providers_sync",
    "ProviderRow",
    "payload_to_rows",
    "weighted_average",
    "FetchResult",
    "ProviderFetchError",
    "ProviderPayload",
    "RefreshOutcome",
    "refresh_snapshot",
    "refresh_snapshot_sync",
]


def __getattr__(name):
    """Lazy-load the refresh service to keep ``import tokengauge`` light."""
    if name in ("RefreshOutcome", "refresh_snapshot", "refresh_snapshot_sync"):
        from . import refresh

        return getattr(refresh, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
