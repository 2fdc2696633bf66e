# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Single-provider fetch through the external ``codexbar`` command.

The command is run as::

    codexbar usage --provider <id> --source <oauth|api> --format json --json-only

API-key providers get their credential in an environment variable that is
set on the child process only. The wait is bounded by a per-provider
timeout; when it expires the child and every process it started are
killed, and the child is reaped.
"""

import asyncio
import json
import logging
import os
import signal
from typing import Dict, List, Optional

from .config import EnabledProvider
from .error_handler import (
    CODEXBAR_FAILURE_MARKER,
    FetchExitError,
    FetchParseError,
    FetchSpawnError,
    FetchTimeoutError,
)
from .types import AuthMode, ProviderPayload, parse_payload

lib_logger = logging.getLogger("tokengauge")


def parse_payload_bytes(data: bytes) -> List[ProviderPayload]:
    """
    Decode codexbar stdout into payloads.

    Raises:
        ValueError: If the bytes are not JSON or not payload-shaped
    """
    value = json.loads(data.decode("utf-8", errors="replace"))
    return parse_payload(value)


def build_command(executable: str, provider: EnabledProvider) -> List[str]:
    return [
        executable,
        "usage",
        "--provider",
        provider.name,
        "--source",
        provider.auth_mode.source_argument,
        "--format",
        "json",
        "--json-only",
    ]


def build_env(provider: EnabledProvider) -> Optional[Dict[str, str]]:
    """
    Environment for the child process, or None to inherit unchanged.

    The credential lives only in this copy; it is never logged.
    """
    if provider.auth_mode is not AuthMode.API_KEY or not provider.env_var:
        return None
    if provider.api_key is None:
        return None
    env = dict(os.environ)
    env[provider.env_var] = provider.api_key
    return env


async def _terminate(process: asyncio.subprocess.Process) -> None:
    # codexbar runs as a session leader, so its pid is also its process group.
    # Killing the group takes down helpers still holding our pipes open.
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    await process.wait()


def _failure_detail(stdout: bytes, stderr: bytes) -> str:
    err = stderr.decode("utf-8", errors="replace").strip()
    if err:
        return err
    out = stdout.decode("utf-8", errors="replace").strip()
    if out:
        return out
    return "no error output"


async def fetch_single_provider(
    executable: str,
    provider: EnabledProvider,
    timeout: float,
) -> List[ProviderPayload]:
    """
    Run codexbar for one provider.

    Args:
        executable: Path or name of the codexbar binary
        provider: Provider to query, with credential for API-key mode
        timeout: Seconds to wait before killing the child

    Returns:
        Parsed payloads. On a non-zero exit whose stdout is still valid
        payload JSON, those payloads are returned; in-band errors are left
        on the payloads for the caller.

    Raises:
        FetchSpawnError: codexbar could not be started
        FetchTimeoutError: codexbar did not finish in time
        FetchExitError: non-zero exit without parseable JSON
        FetchParseError: zero exit but stdout is not payload JSON
    """
    command = build_command(executable, provider)
    lib_logger.debug(f"Running {' '.join(command)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=build_env(provider),
            start_new_session=True,
        )
    except OSError as e:
        raise FetchSpawnError(provider.name, f"failed to run {executable}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _terminate(process)
        lib_logger.warning(f"{provider.name}: codexbar timed out after {timeout:g}s")
        raise FetchTimeoutError(provider.name, f"timeout after {timeout:g}s") from None
    except asyncio.CancelledError:
        await _terminate(process)
        raise

    if process.returncode != 0:
        try:
            payloads = parse_payload_bytes(stdout)
        except ValueError:
            message = (
                f"{CODEXBAR_FAILURE_MARKER} (exit status: {process.returncode}) - "
                f"{_failure_detail(stdout, stderr)}"
            )
            raise FetchExitError(provider.name, message, process.returncode) from None
        lib_logger.debug(
            f"{provider.name}: codexbar exited {process.returncode} "
            f"but reported {len(payloads)} payload(s)"
        )
        return payloads

    try:
        payloads = parse_payload_bytes(stdout)
    except json.JSONDecodeError as e:
        raise FetchParseError(provider.name, f"codexbar output was not JSON: {e}") from e
    except ValueError as e:
        raise FetchParseError(
            provider.name, f"failed to parse provider payload: {e}"
        ) from e

    lib_logger.debug(f"{provider.name}: fetched {len(payloads)} payload(s)")
    return payloads
