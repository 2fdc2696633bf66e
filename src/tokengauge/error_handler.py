"""
Error types and message cleanup for provider fetches.

``clean_error_message`` turns whatever a failed ``codexbar`` run produced
(stderr dumps, JSON error bodies, timeouts) into a short line that fits a
status bar tooltip. It is a heuristic over free text and never raises.
"""

import re
from typing import Optional

# Prefix of every failure raised for a non-zero codexbar exit.
CODEXBAR_FAILURE_MARKER = "codexbar failed"

MAX_SHORT_MESSAGE = 60
MAX_JSON_MESSAGE = 80
ELLIPSIS = "..."

KNOWN_HTTP_STATUSES = ("401", "403", "404", "500", "502", "503")

_ERROR_FIELD_RE = re.compile(r'"error"\s*:\s*"((?:[^"\\]|\\.)*)"')
_MESSAGE_FIELD_RE = re.compile(r'"message"\s*:\s*"((?:[^"\\]|\\.)*)"')
_STATUS_RE = re.compile(r"(?<!\d)(" + "|".join(KNOWN_HTTP_STATUSES) + r")(?!\d)")
_API_ERROR_RE = re.compile(r"api error|returned status", re.IGNORECASE)


class FetchError(Exception):
    """Base class for transport-level failures while fetching one provider."""

    kind = "fetch"

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider
        self.message = message


class FetchSpawnError(FetchError):
    """The codexbar executable could not be started."""

    kind = "spawn"


class FetchTimeoutError(FetchError):
    """codexbar did not finish within the per-provider timeout."""

    kind = "timeout"


class FetchExitError(FetchError):
    """codexbar exited non-zero without printing usable JSON."""

    kind = "exit"

    def __init__(self, provider: str, message: str, returncode: Optional[int]):
        super().__init__(provider, message)
        self.returncode = returncode


class FetchParseError(FetchError):
    """codexbar printed something that is not a payload list."""

    kind = "parse"


def is_transport_error(e: Exception) -> bool:
    """Checks if the exception is any expected fetch failure."""
    return isinstance(e, FetchError)


def _unescape(value: str) -> str:
    return value.replace('\\"', '"').replace("\\\\", "\\")


def _find_status(raw: str) -> Optional[str]:
    match = _STATUS_RE.search(raw)
    return match.group(1) if match else None


def _extract_api_error(raw: str) -> Optional[str]:
    """Pull ``"error":"<text>"`` out of raw, tagged with an HTTP status if any."""
    match = _ERROR_FIELD_RE.search(raw)
    if not match:
        return None
    text = _unescape(match.group(1)).strip()
    if not text:
        return None
    status = _find_status(raw)
    if status:
        return f"{text} (HTTP {status})"
    return text


def _extract_json_message(raw: str) -> Optional[str]:
    match = _MESSAGE_FIELD_RE.search(raw)
    if not match:
        return None
    text = _unescape(match.group(1)).strip()
    if not text or len(text) > MAX_JSON_MESSAGE:
        return None
    return text


def _truncate(raw: str) -> str:
    if len(raw) <= MAX_SHORT_MESSAGE:
        return raw
    return raw[: MAX_SHORT_MESSAGE - len(ELLIPSIS)] + ELLIPSIS


def clean_error_message(raw: str) -> str:
    """
    Reduce a raw failure string to a short display message.

    Failures tagged by a non-zero codexbar exit are mined for an API error
    token, a "no available fetch strategy" notice, or a JSON ``message``
    field, and otherwise collapse to "API request failed". Untagged
    failures are checked for timeouts and API status errors, then shown
    verbatim if short, truncated to 60 characters if not.
    """
    if not isinstance(raw, str):
        raw = str(raw)
    lowered = raw.lower()

    if CODEXBAR_FAILURE_MARKER in lowered:
        api_error = _extract_api_error(raw)
        if api_error:
            return api_error
        if "no available fetch strategy" in lowered:
            return "No available fetch strategy"
        json_message = _extract_json_message(raw)
        if json_message:
            return json_message
        return "API request failed"

    if "timeout" in lowered:
        return "Request timed out"

    if _API_ERROR_RE.search(raw):
        api_error = _extract_api_error(raw)
        if api_error:
            return api_error
        status = _find_status(raw)
        return f"API error ({status})" if status else "API error"

    short = raw.strip()
    return _truncate(short)
