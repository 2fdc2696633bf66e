"""
Waybar custom module.

Prints a single JSON object ``{"text", "tooltip", "class"}`` on stdout and
exits. Configure it in Waybar with ``"return-type": "json"``.
"""

import json
import logging
import sys
from typing import Any, Dict, List, Optional, Sequence

from tokengauge.cache import ensure_cache_dir
from tokengauge.config import ConfigError, TokenGaugeConfig, WaybarWindow, load_or_create_config
from tokengauge.providers import provider_label
from tokengauge.refresh import refresh_snapshot_sync
from tokengauge.rows import PLACEHOLDER, ProviderRow, blended_percent, provider_to_row
from tokengauge.types import FetchResult, ProviderFetchError, ProviderPayload

from .cli import parse_args, setup_logging

logger = logging.getLogger(__name__)

ERROR_TEXT = "⟂"
CLASS_OK = "tokengauge"
CLASS_EMPTY = "tokengauge-empty"
CLASS_ERROR = "tokengauge-error"


def error_output(message: str) -> Dict[str, str]:
    return {
        "text": ERROR_TEXT,
        "tooltip": f"TokenGauge: {message}",
        "class": CLASS_ERROR,
    }


def format_tooltip(row: ProviderRow) -> str:
    session = (
        f"Session {row.session_used}% used"
        if row.session_used is not None
        else f"Session {PLACEHOLDER}"
    )
    weekly = (
        f"Weekly {row.weekly_used}% used"
        if row.weekly_used is not None
        else f"Weekly {PLACEHOLDER}"
    )
    return (
        f"{row.provider}: {session} (resets {row.session_reset}) | "
        f"{weekly} (resets {row.weekly_reset})"
    )


def format_error_line(error: ProviderFetchError) -> str:
    return f"{provider_label(error.provider)}: {error.message}"


def _headline_percent(
    payload: ProviderPayload, row: ProviderRow, window: WaybarWindow
) -> Optional[int]:
    if window is WaybarWindow.WEEKLY:
        return row.weekly_used
    if window is WaybarWindow.BLENDED:
        return blended_percent(payload)
    return row.session_used


def build_output(result: FetchResult, config: TokenGaugeConfig) -> Dict[str, Any]:
    """
    Turn a snapshot into Waybar's JSON object.

    Providers are sorted by identifier since fetch order is not stable.
    """
    visible = sorted(
        (
            p
            for p in result.payloads
            if not p.has_error() and config.providers.is_enabled(p.provider)
        ),
        key=lambda p: p.provider,
    )
    errors = sorted(result.errors, key=lambda e: e.provider)
    error_lines = [format_error_line(error) for error in errors]

    if not visible:
        if error_lines:
            return {
                "text": ERROR_TEXT,
                "tooltip": "\n".join(["TokenGauge: all providers failed", *error_lines]),
                "class": CLASS_ERROR,
            }
        return {
            "text": PLACEHOLDER,
            "tooltip": "TokenGauge: no providers",
            "class": CLASS_EMPTY,
        }

    parts: List[str] = []
    tooltip_lines: List[str] = []
    for payload in visible:
        row = provider_to_row(payload)
        used = _headline_percent(payload, row, config.waybar.window)
        used_text = f"{used}%" if used is not None else PLACEHOLDER
        parts.append(f"{row.provider} {used_text}")
        tooltip_lines.append(format_tooltip(row))

    return {
        "text": "  ".join(parts),
        "tooltip": "\n".join(tooltip_lines + error_lines),
        "class": CLASS_OK,
    }


def run(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args("Waybar module for TokenGauge", argv)
    setup_logging()

    try:
        config = load_or_create_config(args.config)
    except ConfigError as e:
        print(json.dumps(error_output(str(e)), ensure_ascii=False))
        return 1

    try:
        ensure_cache_dir(config.cache_file)
    except OSError as e:
        logger.warning(f"Cannot create cache directory for {config.cache_file}: {e}")

    outcome = refresh_snapshot_sync(config)
    if outcome.cache_error:
        logger.warning(outcome.cache_error)

    print(json.dumps(build_output(outcome.result, config), ensure_ascii=False))
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
