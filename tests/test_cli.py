"""Tests for the fluentpro CLI."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from fluentpro.config import get_settings
from fluentpro.main import _basic_info_step, app
from onboarding.state import BasicInfoStep

runner = CliRunner()


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    monkeypatch.delenv("FLUENTPRO_API_TOKEN", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "FluentPro version 1.0.0" in result.output


def test_health():
    result = runner.invoke(app, ["health"])
    assert result.exit_code == 0
    assert "All checks passed" in result.output


def test_onboard_requires_token():
    result = runner.invoke(app, ["onboard"])
    assert result.exit_code == 1
    assert "No access token" in result.output


def test_onboard_uses_settings_for_backend():
    with patch("fluentpro.main._run_onboarding", new_callable=AsyncMock) as mock_run:
        result = runner.invoke(app, ["onboard", "--token", "abc"])

    assert result.exit_code == 0
    mock_run.assert_awaited_once_with("https://api.test.fluentpro.com/v1", "abc", 20.0)


def test_no_match_role_is_saved_under_spinner():
    session = MagicMock()
    session.current_basic_info_step = BasicInfoStep.ROLE_RESULT
    session.answers.matched_roles = []
    session.select_no_match = AsyncMock()

    with patch("fluentpro.main._spinner") as mock_spinner, patch("fluentpro.main.console") as mock_console:
        mock_console.input.return_value = ""
        asyncio.run(_basic_info_step(session))

    mock_spinner.assert_called_once_with("Saving...")
    session.select_no_match.assert_awaited_once()
    session.previous_basic_info_step.assert_not_called()
