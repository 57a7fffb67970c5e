"""Model selection per provider and subscription plan."""

import logging

from agentdesk.chat.models import Plan
from agentdesk.config import settings

logger = logging.getLogger(__name__)

PROVIDERS = ("gemini", "anthropic")

ANTHROPIC_MODEL_MAP: dict[str, str] = {
    "haiku": "claude-haiku-4-5-20251001",
    "sonnet": "claude-sonnet-4-5-20250929",
    "opus": "claude-opus-4-6-20250612",
}

# Reverse lookup: full model string → friendly name
FRIENDLY_NAMES: dict[str, str] = {v: k for k, v in ANTHROPIC_MODEL_MAP.items()}


def _resolve_anthropic(name_or_id: str) -> str | None:
    """Resolve a friendly name or full model ID. Returns full ID or None."""
    if name_or_id in ANTHROPIC_MODEL_MAP:
        return ANTHROPIC_MODEL_MAP[name_or_id]
    if name_or_id in FRIENDLY_NAMES:
        return name_or_id
    return None


def friendly(model_id: str) -> str:
    """Return the friendly name for a model ID, or the ID itself."""
    return FRIENDLY_NAMES.get(model_id, model_id)


class ModelManager:
    """Singleton that picks the provider and the model tier for each plan.

    Paid plans get the stronger model; the free plan gets the fast one.
    """

    _instance: "ModelManager | None" = None

    def __init__(self, provider: str | None = None) -> None:
        self.provider = (provider or settings.llm_provider).lower()
        if self.provider not in PROVIDERS:
            logger.warning("Unknown LLM provider %r, falling back to gemini", self.provider)
            self.provider = "gemini"

        if self.provider == "anthropic":
            self._free_model = (
                _resolve_anthropic(settings.anthropic_free_model) or ANTHROPIC_MODEL_MAP["haiku"]
            )
            self._paid_model = (
                _resolve_anthropic(settings.anthropic_paid_model) or ANTHROPIC_MODEL_MAP["sonnet"]
            )
        else:
            self._free_model = settings.gemini_free_model
            self._paid_model = settings.gemini_paid_model

        logger.info(
            "LLM provider=%s, free=%s, paid=%s",
            self.provider,
            friendly(self._free_model),
            friendly(self._paid_model),
        )

    @classmethod
    def get(cls) -> "ModelManager":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        cls._instance = None

    def model_for(self, plan: str) -> str:
        """Model ID to use for an account on *plan*."""
        try:
            paid = Plan(plan).is_paid
        except ValueError:
            paid = False
        return self._paid_model if paid else self._free_model
