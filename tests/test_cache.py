import json
import os
import time
from pathlib import Path

import pytest

from conftest import payload_dict
from tokengauge.cache import (
    CacheParseError,
    is_cache_stale,
    read_cache,
    read_cache_async,
    write_cache,
    write_cache_async,
)
from tokengauge.types import (
    FullSnapshot,
    LegacySnapshot,
    ProviderErrorInfo,
    ProviderFetchError,
    ProviderPayload,
)


def _sample() -> tuple:
    payloads = [
        ProviderPayload.from_dict(payload_dict(provider="codex")),
        ProviderPayload.from_dict(payload_dict(provider="claude", credits=None)),
    ]
    errors = [
        ProviderFetchError.from_raw(
            "zai", 'codexbar failed (exit status: 1) - {"error":"Unauthorized"}'
        )
    ]
    return payloads, errors


def test_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "dir" / "usage.json"
    payloads, errors = _sample()

    write_cache(path, payloads, errors)
    snapshot = read_cache(path)

    assert isinstance(snapshot, FullSnapshot)
    assert snapshot.payloads() == payloads
    assert snapshot.errors() == errors


def test_written_layout_is_tagged(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    payloads, errors = _sample()

    write_cache(path, payloads, errors)
    data = json.loads(path.read_text(encoding="utf-8"))

    assert list(data) == ["Full"]
    assert data["Full"]["payloads"][0]["usage"]["primary"]["usedPercent"] == 30
    assert data["Full"]["payloads"][0]["usage"]["updatedAt"] == "2026-01-05T10:15:00Z"
    assert data["Full"]["errors"][0] == {
        "provider": "zai",
        "message": "Unauthorized",
        "rawMessage": 'codexbar failed (exit status: 1) - {"error":"Unauthorized"}',
    }
    assert not (tmp_path / "usage.json.tmp").exists()


def test_legacy_array_is_accepted(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    path.write_text(json.dumps([payload_dict(provider="codex")]), encoding="utf-8")

    snapshot = read_cache(path)

    assert isinstance(snapshot, LegacySnapshot)
    assert [p.provider for p in snapshot.payloads()] == ["codex"]
    assert snapshot.errors() == []


def test_payload_error_survives_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    payload = ProviderPayload.from_dict(payload_dict(provider="claude"))
    payload.error = ProviderErrorInfo(message="Token expired", code=401, kind="auth")

    write_cache(path, [payload], [])

    [restored] = read_cache(path).payloads()
    assert restored.has_error()
    assert restored.error == ProviderErrorInfo(message="Token expired", code=401, kind="auth")


@pytest.mark.parametrize("content", ["not json", '{"Full": 3}', '[{"usage": null}]', '"text"'])
def test_malformed_cache_raises_parse_error(tmp_path: Path, content: str) -> None:
    path = tmp_path / "usage.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(CacheParseError):
        read_cache(path)


def test_non_utf8_cache_raises_parse_error(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    path.write_bytes(b"\xff\xfe garbage")

    with pytest.raises(CacheParseError, match="not UTF-8"):
        read_cache(path)


@pytest.mark.asyncio
async def test_non_utf8_cache_raises_parse_error_async(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    path.write_bytes(b"\xff\xfe garbage")

    with pytest.raises(CacheParseError):
        await read_cache_async(path)


def test_infinite_number_in_cache_is_read(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    path.write_text(
        '{"Full": {"payloads": [{"provider": "codex", "usage": '
        '{"primary": {"usedPercent": 1e999}}}], "errors": []}}',
        encoding="utf-8",
    )

    [payload] = read_cache(path).payloads()

    assert payload.provider == "codex"
    assert payload.usage.primary.used_percent is None


def test_missing_cache_raises_not_found(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        read_cache(tmp_path / "missing.json")


@pytest.mark.asyncio
async def test_async_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "async" / "usage.json"
    payloads, errors = _sample()

    await write_cache_async(path, payloads, errors)
    snapshot = await read_cache_async(path)

    assert snapshot.payloads() == payloads
    assert snapshot.errors() == errors


def test_staleness(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    assert is_cache_stale(path, 600)

    path.write_text("[]", encoding="utf-8")
    modified = time.time() - 100
    os.utime(path, (modified, modified))

    assert not is_cache_stale(path, 600)
    assert is_cache_stale(path, 100, now=modified + 100)
    assert not is_cache_stale(path, 100, now=modified + 99)
    assert is_cache_stale(path, 600, now=modified - 10)
