"""
Model routing and provider construction.
"""
import logging
from functools import lru_cache
from typing import Optional

from toeic_api.core import config
from toeic_api.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

# Feature -> (model override, temperature)
MODEL_ROUTING = {
    "question_generation": (None, 0.8),
    "chat": (None, 0.7),
    "explanation": (None, 0.3),
    "word_definition": (None, 0.2),
}


def get_model_for_feature(feature: str) -> str:
    """Model identifier for a feature; defaults to OPENAI_MODEL."""
    model, _ = MODEL_ROUTING.get(feature, (None, 0.7))
    return model or config.OPENAI_MODEL


def get_temperature_for_feature(feature: str) -> float:
    _, temperature = MODEL_ROUTING.get(feature, (None, 0.7))
    return temperature


@lru_cache(maxsize=1)
def _build_provider() -> Optional[LLMProvider]:
    if not config.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY not configured - AI features disabled")
        return None
    from toeic_api.llm.openai_provider import OpenAIProvider
    return OpenAIProvider()


def get_llm_provider() -> Optional[LLMProvider]:
    """FastAPI dependency; None when no provider is configured."""
    return _build_provider()
