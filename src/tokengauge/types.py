# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Type definitions for provider usage payloads.

This module contains the dataclasses that mirror the JSON emitted by the
external ``codexbar`` command and persisted in the cache file. Every type
converts to and from the external camelCase shape via ``from_dict`` /
``to_dict``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .error_handler import clean_error_message


class SnapshotParseError(ValueError):
    """Raised when JSON does not have the shape of a payload or snapshot."""


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return max(0, int(value))
    except (TypeError, ValueError, OverflowError):
        return None


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _expect_dict(value: Any, what: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise SnapshotParseError(f"expected {what} object, got {type(value).__name__}")
    return value


# =============================================================================
# ENUMS
# =============================================================================


class AuthMode(str, Enum):
    """How a provider authenticates when queried through codexbar."""

    OAUTH = "oauth"  # Delegated credentials owned by the provider's own app
    API_KEY = "api"  # Secret supplied via environment variable

    @property
    def source_argument(self) -> str:
        """Value passed to ``codexbar --source``."""
        return self.value


# =============================================================================
# USAGE TYPES
# =============================================================================


@dataclass
class UsageWindow:
    """One quota window (e.g. 5h session or weekly)."""

    used_percent: Optional[int] = None  # 0-100, clamped on display
    window_minutes: Optional[int] = None
    reset_description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "UsageWindow":
        data = _expect_dict(data, "usage window")
        return cls(
            used_percent=_optional_int(data.get("usedPercent")),
            window_minutes=_optional_int(data.get("windowMinutes")),
            reset_description=_optional_str(data.get("resetDescription")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "usedPercent": self.used_percent,
            "resetDescription": self.reset_description,
            "windowMinutes": self.window_minutes,
        }


@dataclass
class UsageSnapshot:
    """Primary and secondary windows reported by one provider."""

    primary: Optional[UsageWindow] = None
    secondary: Optional[UsageWindow] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "UsageSnapshot":
        data = _expect_dict(data, "usage")
        primary = data.get("primary")
        secondary = data.get("secondary")
        return cls(
            primary=UsageWindow.from_dict(primary) if primary is not None else None,
            secondary=(
                UsageWindow.from_dict(secondary) if secondary is not None else None
            ),
            updated_at=_optional_str(data.get("updatedAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary": self.primary.to_dict() if self.primary else None,
            "secondary": self.secondary.to_dict() if self.secondary else None,
            "updatedAt": self.updated_at,
        }


@dataclass
class Credits:
    remaining: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Credits":
        data = _expect_dict(data, "credits")
        return cls(remaining=_optional_float(data.get("remaining")))

    def to_dict(self) -> Dict[str, Any]:
        return {"remaining": self.remaining}


@dataclass
class ProviderErrorInfo:
    """Error reported in-band by the provider backend."""

    message: Optional[str] = None
    code: Optional[Union[int, str]] = None
    kind: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ProviderErrorInfo":
        if isinstance(data, str):
            return cls(message=data)
        data = _expect_dict(data, "error")
        code = data.get("code")
        if code is not None and not isinstance(code, (int, str)):
            code = str(code)
        return cls(
            message=_optional_str(data.get("message")),
            code=code,
            kind=_optional_str(data.get("kind")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "kind": self.kind}


@dataclass
class ProviderPayload:
    """
    One provider's report for a single fetch.

    A payload carrying ``error`` is never treated as successful, even when
    ``usage`` or ``credits`` are also populated.
    """

    provider: str
    version: Optional[str] = None
    source: Optional[str] = None
    usage: Optional[UsageSnapshot] = None
    credits: Optional[Credits] = None
    error: Optional[ProviderErrorInfo] = None

    def has_error(self) -> bool:
        return self.error is not None

    @classmethod
    def from_dict(cls, data: Any) -> "ProviderPayload":
        data = _expect_dict(data, "provider payload")
        provider = data.get("provider")
        if not isinstance(provider, str):
            raise SnapshotParseError("provider payload is missing 'provider'")
        usage = data.get("usage")
        credits = data.get("credits")
        error = data.get("error")
        return cls(
            provider=provider,
            version=_optional_str(data.get("version")),
            source=_optional_str(data.get("source")),
            usage=UsageSnapshot.from_dict(usage) if usage is not None else None,
            credits=Credits.from_dict(credits) if credits is not None else None,
            error=ProviderErrorInfo.from_dict(error) if error is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "provider": self.provider,
            "version": self.version,
            "source": self.source,
            "usage": self.usage.to_dict() if self.usage else None,
            "credits": self.credits.to_dict() if self.credits else None,
        }
        if self.error is not None:
            data["error"] = self.error.to_dict()
        return data


def parse_payload(value: Any) -> List[ProviderPayload]:
    """Parse decoded JSON into payloads; a bare object is a one-item list."""
    if isinstance(value, list):
        return [ProviderPayload.from_dict(item) for item in value]
    return [ProviderPayload.from_dict(value)]


# =============================================================================
# FETCH RESULT TYPES
# =============================================================================


@dataclass
class ProviderFetchError:
    """
    Transport-level failure for one provider (spawn, timeout, bad output),
    or an in-band provider error lifted out of its payload.
    """

    provider: str
    message: str
    raw_message: str

    @classmethod
    def from_raw(cls, provider: str, raw_message: str) -> "ProviderFetchError":
        return cls(
            provider=provider,
            message=clean_error_message(raw_message),
            raw_message=raw_message,
        )

    @classmethod
    def from_dict(cls, data: Any) -> "ProviderFetchError":
        data = _expect_dict(data, "fetch error")
        message = _optional_str(data.get("message")) or ""
        return cls(
            provider=_optional_str(data.get("provider")) or "unknown",
            message=message,
            raw_message=_optional_str(data.get("rawMessage")) or message,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "message": self.message,
            "rawMessage": self.raw_message,
        }


@dataclass
class FetchResult:
    """The ``(payloads, errors)`` pair produced by one refresh cycle."""

    payloads: List[ProviderPayload] = field(default_factory=list)
    errors: List[ProviderFetchError] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.payloads and not self.errors


# =============================================================================
# CACHED SNAPSHOT
# =============================================================================


@dataclass
class FullSnapshot:
    """Current cache layout: payloads plus fetch errors."""

    payload_list: List[ProviderPayload] = field(default_factory=list)
    error_list: List[ProviderFetchError] = field(default_factory=list)

    def payloads(self) -> List[ProviderPayload]:
        return self.payload_list

    def errors(self) -> List[ProviderFetchError]:
        return self.error_list


@dataclass
class LegacySnapshot:
    """Older cache layout: a bare payload array, no errors."""

    payload_list: List[ProviderPayload] = field(default_factory=list)

    def payloads(self) -> List[ProviderPayload]:
        return self.payload_list

    def errors(self) -> List[ProviderFetchError]:
        return []


CachedSnapshot = Union[FullSnapshot, LegacySnapshot]

FULL_SNAPSHOT_TAG = "Full"


def snapshot_from_json(value: Any) -> CachedSnapshot:
    """
    Decode cached JSON into a snapshot.

    The tagged ``{"Full": {...}}`` shape is tried first; anything else is
    read as the legacy payload-only layout.
    """
    if isinstance(value, dict) and FULL_SNAPSHOT_TAG in value:
        body = _expect_dict(value[FULL_SNAPSHOT_TAG], "snapshot")
        payloads = body.get("payloads", [])
        errors = body.get("errors", [])
        if not isinstance(payloads, list) or not isinstance(errors, list):
            raise SnapshotParseError("snapshot payloads/errors must be arrays")
        return FullSnapshot(
            payload_list=[ProviderPayload.from_dict(item) for item in payloads],
            error_list=[ProviderFetchError.from_dict(item) for item in errors],
        )
    return LegacySnapshot(payload_list=parse_payload(value))


def snapshot_to_json(
    payloads: List[ProviderPayload], errors: List[ProviderFetchError]
) -> Dict[str, Any]:
    return {
        FULL_SNAPSHOT_TAG: {
            "payloads": [payload.to_dict() for payload in payloads],
            "errors": [error.to_dict() for error in errors],
        }
    }
