import os
import time

import pytest

import tokengauge.refresh as refresh
from conftest import payload_dict
from tokengauge.cache import read_cache, write_cache
from tokengauge.refresh import load_cached_result, refresh_snapshot
from tokengauge.types import FetchResult, ProviderFetchError, ProviderPayload


@pytest.fixture
def fake_fetch(monkeypatch):
    calls = []
    result = FetchResult(
        payloads=[ProviderPayload.from_dict(payload_dict(provider="claude", primary=70))],
        errors=[ProviderFetchError.from_raw("codex", "timeout after 2s")],
    )

    async def fetch(config):
        calls.append(config)
        return result

    monkeypatch.setattr(refresh, "fetch_all_providers", fetch)
    return calls


def _age(path, seconds: float) -> None:
    stamp = time.time() - seconds
    os.utime(path, (stamp, stamp))


@pytest.mark.asyncio
async def test_fresh_cache_is_served_without_fetching(make_config, fake_fetch) -> None:
    config = make_config()
    cached = [ProviderPayload.from_dict(payload_dict(provider="codex"))]
    write_cache(config.cache_file, cached, [])

    outcome = await refresh_snapshot(config)

    assert outcome.from_cache
    assert outcome.result.payloads == cached
    assert outcome.result.errors == []
    assert fake_fetch == []


@pytest.mark.asyncio
async def test_stale_cache_is_refetched_and_rewritten(make_config, fake_fetch) -> None:
    config = make_config(refresh_secs=60)
    write_cache(config.cache_file, [ProviderPayload.from_dict(payload_dict())], [])
    _age(config.cache_file, 120)

    outcome = await refresh_snapshot(config)

    assert not outcome.from_cache
    assert outcome.cache_error is None
    assert len(fake_fetch) == 1
    snapshot = read_cache(config.cache_file)
    assert [p.provider for p in snapshot.payloads()] == ["claude"]
    assert [e.message for e in snapshot.errors()] == ["Request timed out"]


@pytest.mark.asyncio
async def test_force_skips_fresh_cache(make_config, fake_fetch) -> None:
    config = make_config()
    write_cache(config.cache_file, [], [])

    outcome = await refresh_snapshot(config, force=True)

    assert not outcome.from_cache
    assert len(fake_fetch) == 1


@pytest.mark.asyncio
async def test_corrupt_cache_falls_back_to_fetch(make_config, fake_fetch) -> None:
    config = make_config()
    config.cache_file.parent.mkdir(parents=True)
    config.cache_file.write_text("{broken", encoding="utf-8")

    outcome = await refresh_snapshot(config)

    assert not outcome.from_cache
    assert [p.provider for p in outcome.result.payloads] == ["claude"]


@pytest.mark.asyncio
async def test_non_utf8_cache_falls_back_to_fetch(make_config, fake_fetch) -> None:
    config = make_config()
    config.cache_file.parent.mkdir(parents=True)
    config.cache_file.write_bytes(b"\xff\xfe garbage")

    outcome = await refresh_snapshot(config)

    assert not outcome.from_cache
    assert len(fake_fetch) == 1
    assert [p.provider for p in outcome.result.payloads] == ["claude"]
    assert [p.provider for p in read_cache(config.cache_file).payloads()] == ["claude"]


def test_load_cached_result_ignores_non_utf8_cache(make_config) -> None:
    config = make_config()
    config.cache_file.parent.mkdir(parents=True)
    config.cache_file.write_bytes(b"\xff\xfe garbage")

    assert load_cached_result(config) is None


@pytest.mark.asyncio
async def test_write_failure_is_reported(make_config, fake_fetch, tmp_path) -> None:
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("", encoding="utf-8")
    config = make_config(cache_file=blocker / "usage.json")

    outcome = await refresh_snapshot(config)

    assert not outcome.from_cache
    assert outcome.cache_error is not None
    assert outcome.cache_error.startswith("failed to write cache")
    assert [p.provider for p in outcome.result.payloads] == ["claude"]


def test_load_cached_result(make_config) -> None:
    config = make_config()
    assert load_cached_result(config) is None

    write_cache(config.cache_file, [ProviderPayload.from_dict(payload_dict())], [])

    result = load_cached_result(config)
    assert [p.provider for p in result.payloads] == ["codex"]
