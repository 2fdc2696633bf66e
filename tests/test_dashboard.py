import pytest
from rich.console import Console

from conftest import payload_dict
from tokengauge.config import TokenGaugeConfig
from tokengauge.refresh import RefreshOutcome
from tokengauge.types import FetchResult, ProviderFetchError, ProviderPayload
from tokengauge_app.dashboard import (
    AppState,
    apply_refresh_result,
    bar_text,
    percent_color,
    render,
)


@pytest.mark.parametrize(
    "left,color", [(100, "green"), (70, "green"), (69, "yellow"), (40, "yellow"), (25, "bright_red"), (5, "red")]
)
def test_percent_color(left: int, color: str) -> None:
    assert percent_color(left) == color


def test_bar_text() -> None:
    assert bar_text(30).plain == "███░░░░░░░  30%"
    assert bar_text(1).plain == "█░░░░░░░░░   1%"
    assert bar_text(150).plain == "██████████ 100%"
    assert bar_text(None).plain == "—"


def test_apply_refresh_result_sorts_and_projects() -> None:
    state = AppState(status_message="Refreshing…")
    outcome = RefreshOutcome(
        result=FetchResult(
            payloads=[
                ProviderPayload.from_dict(payload_dict(provider="codex")),
                ProviderPayload.from_dict(payload_dict(provider="claude")),
            ],
            errors=[ProviderFetchError.from_raw("zai", "timeout after 2s")],
        ),
        from_cache=False,
        cache_error="failed to write cache /tmp/x: denied",
    )

    apply_refresh_result(state, (TokenGaugeConfig(), outcome))

    assert [row.provider for row in state.rows] == ["Claude", "Codex"]
    assert [error.message for error in state.errors] == ["Request timed out"]
    assert state.last_error == "failed to write cache /tmp/x: denied"
    assert state.status_message is None


def test_apply_refresh_failure_clears_rows() -> None:
    state = AppState()
    apply_refresh_result(
        state,
        (TokenGaugeConfig(), RefreshOutcome(result=FetchResult(
            payloads=[ProviderPayload.from_dict(payload_dict())]), from_cache=True)),
    )

    apply_refresh_result(state, RuntimeError("config unreadable"))

    assert state.rows == []
    assert state.last_error == "config unreadable"


def test_render_shows_rows_and_errors() -> None:
    state = AppState()
    outcome = RefreshOutcome(
        result=FetchResult(
            payloads=[ProviderPayload.from_dict(payload_dict(provider="codex"))],
            errors=[ProviderFetchError.from_raw("claude", "timeout after 2s")],
        ),
        from_cache=True,
    )
    apply_refresh_result(state, (TokenGaugeConfig(), outcome))
    console = Console(width=160, height=30, record=True, color_system=None)

    console.print(render(state, is_refreshing=False))
    screen = console.export_text()

    assert "TokenGauge Usage" in screen
    assert "Codex" in screen
    assert "Claude: Request timed out" in screen


def test_render_empty_state_while_refreshing() -> None:
    console = Console(width=100, height=20, record=True, color_system=None)

    console.print(render(AppState(), is_refreshing=True))
    screen = console.export_text()

    assert "Refreshing" in screen
    assert "No providers returned" in screen
