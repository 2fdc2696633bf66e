# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Configuration for TokenGauge.

Loads ``config.toml`` into dataclasses, applies defaults for blank values
and lets a few environment variables override the file. Also resolves
which providers are enabled for a refresh.
"""

import json
import logging
import os
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .providers import PROVIDER_MAP, get_available_providers, get_provider_info
from .types import AuthMode

lib_logger = logging.getLogger("tokengauge")


DEFAULT_CODEXBAR_BIN = "codexbar"
DEFAULT_REFRESH_SECS = 600
DEFAULT_TIMEOUT_SECS = 2.0
DEFAULT_CACHE_FILE = Path("/tmp/tokengauge-usage.json")
DEFAULT_ENABLED_PROVIDERS = ("codex", "claude")


class ConfigError(RuntimeError):
    pass


class WaybarWindow(str, Enum):
    """Which usage window the status bar shows."""

    DAILY = "daily"  # primary / session window
    WEEKLY = "weekly"  # secondary window
    BLENDED = "blended"  # minutes-weighted average of both


# =============================================================================
# PROVIDER CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class EnabledProvider:
    """A provider selected for one refresh, with its credential if any."""

    name: str
    auth_mode: AuthMode
    api_key: Optional[str] = field(default=None, repr=False)
    env_var: Optional[str] = None


@dataclass
class ProviderConfig:
    """
    Per-provider enablement.

    OAuth providers are switched on by a boolean flag. API-key providers are
    switched on by having an entry in ``api_keys``; there is no separate flag.
    """

    flags: Dict[str, bool] = field(
        default_factory=lambda: {name: True for name in DEFAULT_ENABLED_PROVIDERS}
    )
    api_keys: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderConfig":
        config = cls()
        for name, value in data.items():
            if name == "api_keys":
                continue
            info = get_provider_info(name)
            if info is None or info.auth_mode is not AuthMode.OAUTH:
                lib_logger.warning(f"Ignoring unknown provider flag '{name}'")
                continue
            if not isinstance(value, bool):
                raise ConfigError(f"providers.{name} must be true or false")
            config.flags[info.name] = value

        api_keys = data.get("api_keys", {})
        if not isinstance(api_keys, dict):
            raise ConfigError("providers.api_keys must be a table")
        for name, value in api_keys.items():
            info = get_provider_info(name)
            if info is None or info.auth_mode is not AuthMode.API_KEY:
                lib_logger.warning(f"Ignoring API key for non API-key provider '{name}'")
                continue
            config.api_keys[info.name] = "" if value is None else str(value)
        return config

    def enabled_providers(self) -> List[EnabledProvider]:
        """Enabled providers in registry order."""
        enabled = []
        for name in get_available_providers():
            info = PROVIDER_MAP[name]
            if info.auth_mode is AuthMode.OAUTH:
                if self.flags.get(name, False):
                    enabled.append(EnabledProvider(name=name, auth_mode=AuthMode.OAUTH))
            elif name in self.api_keys:
                enabled.append(
                    EnabledProvider(
                        name=name,
                        auth_mode=AuthMode.API_KEY,
                        api_key=self.api_keys[name],
                        env_var=info.env_var,
                    )
                )
        return enabled

    def is_enabled(self, provider: str) -> bool:
        return any(p.name == provider for p in self.enabled_providers())

    def enabled_count(self) -> int:
        return len(self.enabled_providers())


# =============================================================================
# TOP-LEVEL CONFIGURATION
# =============================================================================


@dataclass
class WaybarConfig:
    window: WaybarWindow = WaybarWindow.DAILY


@dataclass
class TokenGaugeConfig:
    codexbar_bin: str = DEFAULT_CODEXBAR_BIN
    refresh_secs: int = DEFAULT_REFRESH_SECS
    timeout_secs: float = DEFAULT_TIMEOUT_SECS
    cache_file: Path = DEFAULT_CACHE_FILE
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    waybar: WaybarConfig = field(default_factory=WaybarConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenGaugeConfig":
        config = cls()
        config.codexbar_bin = str(data.get("codexbar_bin") or DEFAULT_CODEXBAR_BIN)
        config.refresh_secs = _positive_int(
            data.get("refresh_secs"), "refresh_secs", DEFAULT_REFRESH_SECS
        )
        config.timeout_secs = _positive_float(
            data.get("timeout_secs"), "timeout_secs", DEFAULT_TIMEOUT_SECS
        )
        cache_file = data.get("cache_file")
        if cache_file is not None and not isinstance(cache_file, str):
            raise ConfigError("cache_file must be a string path")
        config.cache_file = Path(cache_file) if cache_file else DEFAULT_CACHE_FILE

        providers = data.get("providers", {})
        if not isinstance(providers, dict):
            raise ConfigError("[providers] must be a table")
        config.providers = ProviderConfig.from_dict(providers)

        waybar = data.get("waybar", {})
        if not isinstance(waybar, dict):
            raise ConfigError("[waybar] must be a table")
        window = waybar.get("window", WaybarWindow.DAILY.value)
        try:
            config.waybar = WaybarConfig(window=WaybarWindow(str(window).lower()))
        except ValueError:
            raise ConfigError(
                f"waybar.window must be one of "
                f"{', '.join(w.value for w in WaybarWindow)}, got '{window}'"
            ) from None
        return config


def _positive_int(value: Any, name: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer")
    return value if value > 0 else default


def _positive_float(value: Any, name: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{name} must be a number")
    return float(value) if value > 0 else default


def _apply_env_overrides(config: TokenGaugeConfig) -> None:
    codexbar_bin = (os.getenv("TOKENGAUGE_CODEXBAR_BIN") or "").strip()
    if codexbar_bin:
        config.codexbar_bin = codexbar_bin

    env_refresh = os.getenv("TOKENGAUGE_REFRESH_SECS")
    if env_refresh:
        try:
            value = int(env_refresh)
            if value > 0:
                config.refresh_secs = value
        except ValueError:
            lib_logger.warning(f"Ignoring invalid TOKENGAUGE_REFRESH_SECS={env_refresh!r}")

    env_timeout = os.getenv("TOKENGAUGE_TIMEOUT_SECS")
    if env_timeout:
        try:
            value = float(env_timeout)
            if value > 0:
                config.timeout_secs = value
        except ValueError:
            lib_logger.warning(f"Ignoring invalid TOKENGAUGE_TIMEOUT_SECS={env_timeout!r}")


# =============================================================================
# FILE HANDLING
# =============================================================================


def default_config_path() -> Path:
    """``$XDG_CONFIG_HOME/tokengauge/config.toml``, falling back to ~/.config."""
    config_home = os.getenv("XDG_CONFIG_HOME")
    if config_home:
        base = Path(config_home)
    else:
        base = Path.home() / ".config"
    return base / "tokengauge" / "config.toml"


def load_config(path: Optional[Path] = None) -> TokenGaugeConfig:
    """
    Load configuration from a TOML file.

    Args:
        path: Config file; defaults to ``default_config_path()``

    Returns:
        Parsed config with defaults and environment overrides applied

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    path = Path(path) if path is not None else default_config_path()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"failed to read config at {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"failed to parse config at {path}: {e}") from e

    config = TokenGaugeConfig.from_dict(data)
    _apply_env_overrides(config)
    lib_logger.debug(
        f"Loaded config from {path}: {config.providers.enabled_count()} providers enabled"
    )
    return config


def render_config(config: TokenGaugeConfig) -> str:
    """Serialize a config as TOML. API keys are written as given."""

    def quote(value: str) -> str:
        return json.dumps(value)

    lines = [
        "# TokenGauge configuration",
        f"codexbar_bin = {quote(config.codexbar_bin)}",
        f"refresh_secs = {config.refresh_secs}",
        f"timeout_secs = {config.timeout_secs:g}",
        f"cache_file = {quote(str(config.cache_file))}",
        "",
        "[providers]",
    ]
    for name, enabled in config.providers.flags.items():
        lines.append(f"{name} = {'true' if enabled else 'false'}")
    lines += ["", "[providers.api_keys]"]
    if config.providers.api_keys:
        for name, key in config.providers.api_keys.items():
            lines.append(f"{name} = {quote(key)}")
    else:
        lines.append('# zai = "your-api-key"')
    lines += [
        "",
        "[waybar]",
        "# daily (primary window), weekly (secondary) or blended",
        f"window = {quote(config.waybar.window.value)}",
        "",
    ]
    return "\n".join(lines)


def ensure_config_dir(path: Path) -> None:
    """Create the directory holding ``path``. Failure is fatal."""
    parent = Path(path).parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigError(f"failed to create config directory {parent}: {e}") from e


def write_default_config(path: Path) -> None:
    ensure_config_dir(path)
    try:
        Path(path).write_text(render_config(TokenGaugeConfig()), encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to write config {path}: {e}") from e
    lib_logger.info(f"Wrote default config to {path}")


def load_or_create_config(path: Optional[Path] = None) -> TokenGaugeConfig:
    """Load the config, writing the default file first if it does not exist."""
    path = Path(path) if path is not None else default_config_path()
    if not path.exists():
        write_default_config(path)
    return load_config(path)
