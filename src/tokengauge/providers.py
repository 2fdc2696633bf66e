# src/tokengauge/providers.py

from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping, Optional

from .types import AuthMode


@dataclass(frozen=True)
class ProviderInfo:
    name: str
    auth_mode: AuthMode
    label: str
    env_var: Optional[str] = None  # API-key providers only


_PROVIDERS = (
    ProviderInfo("codex", AuthMode.OAUTH, "Codex"),
    ProviderInfo("claude", AuthMode.OAUTH, "Claude"),
    ProviderInfo("gemini", AuthMode.OAUTH, "Gemini"),
    ProviderInfo("antigravity", AuthMode.OAUTH, "Antigravity"),
    ProviderInfo("cursor", AuthMode.OAUTH, "Cursor"),
    ProviderInfo("factory", AuthMode.OAUTH, "Factory"),
    ProviderInfo("copilot", AuthMode.OAUTH, "Copilot"),
    ProviderInfo("kiro", AuthMode.OAUTH, "Kiro"),
    ProviderInfo("vertexai", AuthMode.OAUTH, "Vertex AI"),
    ProviderInfo("opencode", AuthMode.OAUTH, "OpenCode"),
    ProviderInfo("kimi", AuthMode.OAUTH, "Kimi"),
    ProviderInfo("zai", AuthMode.API_KEY, "z.ai", env_var="Z_AI_API_KEY"),
    ProviderInfo("minimax", AuthMode.API_KEY, "MiniMax", env_var="MINIMAX_API_KEY"),
    ProviderInfo("kimik2", AuthMode.API_KEY, "Kimi K2", env_var="KIMI_K2_API_KEY"),
)

PROVIDER_MAP: Mapping[str, ProviderInfo] = MappingProxyType(
    {info.name: info for info in _PROVIDERS}
)


def get_provider_info(provider_name: str) -> Optional[ProviderInfo]:
    """
    Returns the registry entry for a provider, or None if unknown.
    """
    return PROVIDER_MAP.get(provider_name.lower())


def get_available_providers() -> List[str]:
    """
    Returns a list of supported provider names in registry order.
    """
    return list(PROVIDER_MAP.keys())


def provider_label(provider_name: str) -> str:
    """Human label for a provider; unknown names pass through unchanged."""
    info = PROVIDER_MAP.get(provider_name)
    return info.label if info else provider_name
