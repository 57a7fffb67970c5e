"""Tests for Settings configuration model."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from agentdesk.config import Settings


class TestDefaults:
    def test_delivery_delays(self):
        s = Settings()
        assert s.sent_delay == 0.5
        assert s.delivered_delay == 1.0

    def test_quota_defaults(self):
        s = Settings()
        assert s.free_conversation_limit == 100
        assert s.upgrade_nudge_at == 100

    def test_history_limit(self):
        assert Settings().history_limit == 50

    def test_llm_defaults(self):
        s = Settings()
        assert s.llm_provider == "gemini"
        assert s.gemini_free_model == "gemini-2.5-flash"
        assert s.gemini_paid_model == "gemini-2.5-pro"

    def test_default_voice(self):
        assert Settings().default_voice_id == "21m00TNDgl4p4hq6zOiq"

    def test_paths_are_paths(self):
        s = Settings()
        assert isinstance(s.database_path, Path)
        assert isinstance(s.media_dir, Path)


class TestOverrides:
    def test_init_values_win(self):
        s = Settings(port=9999, backend_url="http://api.example")
        assert s.port == 9999
        assert s.backend_url == "http://api.example"

    def test_unknown_key_is_rejected(self):
        with pytest.raises(ValidationError):
            Settings(not_a_setting="x")


class TestCorsHeaders:
    def test_uses_configured_origin(self):
        headers = Settings(cors_allow_origin="https://app.example").get_cors_headers()
        assert headers["Access-Control-Allow-Origin"] == "https://app.example"

    def test_allows_auth_and_content_type(self):
        headers = Settings().get_cors_headers()
        allowed = headers["Access-Control-Allow-Headers"]
        assert "authorization" in allowed
        assert "content-type" in allowed
        assert "OPTIONS" in headers["Access-Control-Allow-Methods"]
