"""Tests for model selection."""

from unittest.mock import patch

import pytest

from agentdesk.llm.models import ANTHROPIC_MODEL_MAP, ModelManager, friendly


@pytest.fixture(autouse=True)
def _reset_manager():
    ModelManager._reset()
    yield
    ModelManager._reset()


def _gemini_settings(mock_settings) -> None:
    mock_settings.llm_provider = "gemini"
    mock_settings.gemini_free_model = "gemini-2.5-flash"
    mock_settings.gemini_paid_model = "gemini-2.5-pro"


@patch("agentdesk.llm.models.settings")
def test_gemini_tiers(mock_settings) -> None:
    _gemini_settings(mock_settings)
    mm = ModelManager.get()
    assert mm.provider == "gemini"
    assert mm.model_for("free") == "gemini-2.5-flash"
    assert mm.model_for("premium") == "gemini-2.5-pro"
    assert mm.model_for("enterprise") == "gemini-2.5-pro"


@patch("agentdesk.llm.models.settings")
def test_unknown_plan_gets_free_model(mock_settings) -> None:
    _gemini_settings(mock_settings)
    assert ModelManager.get().model_for("gold") == "gemini-2.5-flash"


@patch("agentdesk.llm.models.settings")
def test_anthropic_friendly_names(mock_settings) -> None:
    mock_settings.llm_provider = "anthropic"
    mock_settings.anthropic_free_model = "haiku"
    mock_settings.anthropic_paid_model = "sonnet"
    mm = ModelManager.get()
    assert mm.model_for("free") == ANTHROPIC_MODEL_MAP["haiku"]
    assert mm.model_for("premium") == ANTHROPIC_MODEL_MAP["sonnet"]


@patch("agentdesk.llm.models.settings")
def test_anthropic_invalid_name_falls_back(mock_settings) -> None:
    mock_settings.llm_provider = "anthropic"
    mock_settings.anthropic_free_model = "gpt-4"
    mock_settings.anthropic_paid_model = ANTHROPIC_MODEL_MAP["opus"]
    mm = ModelManager.get()
    assert mm.model_for("free") == ANTHROPIC_MODEL_MAP["haiku"]
    assert mm.model_for("premium") == ANTHROPIC_MODEL_MAP["opus"]


@patch("agentdesk.llm.models.settings")
def test_unknown_provider_falls_back_to_gemini(mock_settings) -> None:
    _gemini_settings(mock_settings)
    mm = ModelManager(provider="OpenAI")
    assert mm.provider == "gemini"


def test_friendly() -> None:
    assert friendly(ANTHROPIC_MODEL_MAP["sonnet"]) == "sonnet"
    assert friendly("gemini-2.5-pro") == "gemini-2.5-pro"
