"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """agentdesk configuration. All values come from environment variables."""

    # Chat client
    backend_url: str = Field(default="http://localhost:8080")
    request_timeout: float = Field(default=60.0)
    history_limit: int = Field(default=50)
    auto_speak_replies: bool = Field(default=False)

    # Delivery status simulation (seconds)
    sent_delay: float = Field(default=0.5)
    delivered_delay: float = Field(default=1.0)

    # Quota
    free_conversation_limit: int = Field(default=100)
    upgrade_nudge_at: int = Field(default=100)

    # Backend server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    public_base_url: str = Field(default="http://localhost:8080")

    # Database
    database_path: Path = Field(default=Path("data/agentdesk.db"))

    # Synthesized audio
    media_dir: Path = Field(default=Path("data/media"))

    # LLM
    llm_provider: str = Field(default="gemini")
    gemini_api_key: str = Field(default="")
    gemini_free_model: str = Field(default="gemini-2.5-flash")
    gemini_paid_model: str = Field(default="gemini-2.5-pro")
    anthropic_api_key: str = Field(default="")
    anthropic_free_model: str = Field(default="haiku")
    anthropic_paid_model: str = Field(default="sonnet")

    # ElevenLabs
    elevenlabs_api_key: str = Field(default="")
    default_voice_id: str = Field(default="21m00TNDgl4p4hq6zOiq")

    # CORS
    cors_allow_origin: str = Field(default="*")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def get_cors_headers(self) -> dict[str, str]:
        """Headers attached to every backend response."""
        return {
            "Access-Control-Allow-Origin": self.cors_allow_origin,
            "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
            "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        }


settings = Settings()
