"""
Projection of provider payloads into display rows.

Rows are rebuilt from payloads on every display and never stored.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from .config import TokenGaugeConfig
from .providers import provider_label
from .types import Credits, ProviderPayload, UsageWindow

PLACEHOLDER = "—"
MAX_PERCENT = 100


@dataclass
class ProviderRow:
    provider: str
    session_used: Optional[int]
    session_window_minutes: Optional[int]
    session_reset: str
    weekly_used: Optional[int]
    weekly_window_minutes: Optional[int]
    weekly_reset: str
    credits: str
    source: str
    updated: str


def clamp_percent(value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    return min(value, MAX_PERCENT)


def format_window(
    window: Optional[UsageWindow],
) -> Tuple[Optional[int], Optional[int], str]:
    """Return ``(used_percent, window_minutes, reset_text)`` for a window."""
    if window is None:
        return None, None, PLACEHOLDER
    reset = window.reset_description if window.reset_description is not None else PLACEHOLDER
    return clamp_percent(window.used_percent), window.window_minutes, reset


def format_updated(value: Optional[str]) -> str:
    """
    Render an update timestamp as local ``HH:MM``.

    Falls back to slicing the time part out of anything that looks like
    ``<date>T<time>``, and finally to the raw string.
    """
    if value is None:
        return PLACEHOLDER
    try:
        timestamp = datetime.fromisoformat(value)
    except ValueError:
        timestamp = None
    if timestamp is not None and timestamp.tzinfo is not None:
        return timestamp.astimezone().strftime("%H:%M")
    if "T" in value:
        time_part = value.split("T", 1)[1].rstrip("Z")
        return time_part[:5]
    return value


def format_credits(credits: Optional[Credits]) -> str:
    if credits is None or credits.remaining is None:
        return PLACEHOLDER
    return f"{credits.remaining:.2f}"


def format_source(version: Optional[str], source: Optional[str]) -> str:
    if version is not None and source is not None:
        return f"{version} ({source})"
    if version is not None:
        return version
    if source is not None:
        return source
    return PLACEHOLDER


def provider_to_row(payload: ProviderPayload) -> ProviderRow:
    usage = payload.usage
    if usage is not None:
        session_used, session_window, session_reset = format_window(usage.primary)
        weekly_used, weekly_window, weekly_reset = format_window(usage.secondary)
        updated = format_updated(usage.updated_at)
    else:
        session_used, session_window, session_reset = None, None, PLACEHOLDER
        weekly_used, weekly_window, weekly_reset = None, None, PLACEHOLDER
        updated = PLACEHOLDER

    return ProviderRow(
        provider=provider_label(payload.provider),
        session_used=session_used,
        session_window_minutes=session_window,
        session_reset=session_reset,
        weekly_used=weekly_used,
        weekly_window_minutes=weekly_window,
        weekly_reset=weekly_reset,
        credits=format_credits(payload.credits),
        source=format_source(payload.version, payload.source),
        updated=updated,
    )


def payload_to_rows(
    payloads: Iterable[ProviderPayload],
    config: Optional[TokenGaugeConfig] = None,
) -> List[ProviderRow]:
    """
    Build one row per successful payload.

    Payloads with an embedded error are dropped. With a config, payloads for
    providers that are no longer enabled (e.g. from an older cache) are
    dropped too.
    """
    rows = []
    for payload in payloads:
        if payload.has_error():
            continue
        if config is not None and not config.providers.is_enabled(payload.provider):
            continue
        rows.append(provider_to_row(payload))
    return rows


# =============================================================================
# WEIGHTED AVERAGE
# =============================================================================


def weighted_average(
    windows: Iterable[Tuple[Optional[int], Optional[int]]],
) -> Optional[int]:
    """
    Blend ``(used_percent, window_minutes)`` pairs into one percentage.

    Pairs without a percent or with a missing/non-positive window length
    are skipped. Each remaining percent is weighted by its window length.
    Returns None when nothing is left to weigh.
    """
    total_minutes = 0
    total_weighted = 0
    for used, minutes in windows:
        if used is None:
            continue
        if minutes is None or minutes <= 0:
            continue
        total_minutes += minutes
        total_weighted += used * minutes

    if total_minutes == 0:
        return None

    # Half-up rounding; round() would round 62.5 down to 62.
    average = math.floor(total_weighted / total_minutes + 0.5)
    return min(average, MAX_PERCENT)


def blended_percent(payload: ProviderPayload) -> Optional[int]:
    """Weighted average of a payload's primary and secondary windows."""
    if payload.usage is None:
        return None
    windows = []
    for window in (payload.usage.primary, payload.usage.secondary):
        if window is not None:
            windows.append((window.used_percent, window.window_minutes))
    return weighted_average(windows)
