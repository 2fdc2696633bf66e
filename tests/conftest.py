import os
import stat
import sys
import tempfile
from pathlib import Path
from typing import Callable

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Keep the JSON failure log out of the user's state directory
os.environ.setdefault("TOKENGAUGE_LOG_DIR", tempfile.mkdtemp(prefix="tokengauge-logs-"))

from tokengauge.config import ProviderConfig, TokenGaugeConfig


@pytest.fixture
def make_codexbar(tmp_path: Path) -> Callable[[str], Path]:
    """Write an executable Python script that stands in for codexbar."""

    def factory(body: str, name: str = "codexbar") -> Path:
        script = tmp_path / name
        script.write_text(f"#!{sys.executable}\n{body}", encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return factory


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., TokenGaugeConfig]:
    def factory(codexbar_bin: str = "codexbar", **overrides) -> TokenGaugeConfig:
        providers = overrides.pop("providers", None) or ProviderConfig()
        return TokenGaugeConfig(
            codexbar_bin=str(codexbar_bin),
            cache_file=overrides.pop("cache_file", tmp_path / "cache" / "usage.json"),
            providers=providers,
            **overrides,
        )

    return factory


def payload_dict(
    provider: str = "codex",
    primary: int = 30,
    secondary: int = 60,
    **extra,
) -> dict:
    data = {
        "provider": provider,
        "version": "2.1.12",
        "source": "oauth",
        "usage": {
            "primary": {
                "usedPercent": primary,
                "windowMinutes": 300,
                "resetDescription": "in 2h",
            },
            "secondary": {
                "usedPercent": secondary,
                "windowMinutes": 10080,
                "resetDescription": "Mon 09:00",
            },
            "updatedAt": "2026-01-05T10:15:00Z",
        },
        "credits": {"remaining": 12.5},
    }
    data.update(extra)
    return data
