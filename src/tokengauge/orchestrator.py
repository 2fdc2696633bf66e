# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import asyncio
import logging
from typing import List, Union

from .config import TokenGaugeConfig
from .error_handler import FetchExitError, is_transport_error
from .failure_logger import log_fetch_failure
from .fetcher import fetch_single_provider
from .types import FetchResult, ProviderFetchError, ProviderPayload

lib_logger = logging.getLogger("tokengauge")

UNKNOWN_PROVIDER = "unknown"
CRASHED_TASK_MESSAGE = "thread panicked"

# Failure log kinds for errors that are not FetchError subclasses
PROVIDER_ERROR_KIND = "provider"
CRASH_KIND = "crash"


def _collect_outcome(
    result: FetchResult,
    outcome: Union[List[ProviderPayload], BaseException],
) -> None:
    """Fold one provider's outcome into the shared result."""
    if is_transport_error(outcome):
        error = ProviderFetchError.from_raw(outcome.provider, outcome.message)
        exit_status = outcome.returncode if isinstance(outcome, FetchExitError) else None
        result.errors.append(error)
        log_fetch_failure(error, outcome.kind, exit_status)
        return

    if isinstance(outcome, BaseException):
        # Anything other than a FetchError is a bug in the fetch task itself.
        lib_logger.error(f"Provider fetch task crashed: {outcome!r}")
        error = ProviderFetchError(
            provider=UNKNOWN_PROVIDER,
            message=CRASHED_TASK_MESSAGE,
            raw_message=repr(outcome),
        )
        result.errors.append(error)
        log_fetch_failure(error, CRASH_KIND)
        return

    for payload in outcome:
        if payload.has_error():
            message = payload.error.message or "Unknown error"
            error = ProviderFetchError.from_raw(payload.provider, message)
            result.errors.append(error)
            log_fetch_failure(error, PROVIDER_ERROR_KIND)
        else:
            result.payloads.append(payload)


async def fetch_all_providers(config: TokenGaugeConfig) -> FetchResult:
    """
    Fetch every enabled provider concurrently.

    Each provider gets its own timeout, so a slow one never holds up the
    rest. Partial failure is normal: failed providers show up in
    ``errors``, the rest in ``payloads``. Order of either list is not
    guaranteed to follow the configuration.
    """
    providers = config.providers.enabled_providers()
    if not providers:
        lib_logger.info("No providers enabled, nothing to fetch")
        return FetchResult()

    lib_logger.debug(
        f"Fetching {len(providers)} providers: {', '.join(p.name for p in providers)}"
    )

    tasks = [
        fetch_single_provider(config.codexbar_bin, provider, config.timeout_secs)
        for provider in providers
    ]
    outcomes = await asyncio.gather(*tasks, return_exceptions=True)

    result = FetchResult()
    for outcome in outcomes:
        _collect_outcome(result, outcome)

    lib_logger.info(
        f"Fetched {len(result.payloads)} payloads, {len(result.errors)} errors "
        f"from {len(providers)} providers"
    )
    return result


def fetch_all_providers_sync(config: TokenGaugeConfig) -> FetchResult:
    """Blocking wrapper for callers outside an event loop."""
    return asyncio.run(fetch_all_providers(config))
