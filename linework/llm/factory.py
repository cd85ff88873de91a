# linework/llm/factory.py
"""Factory for creating the configured generation client."""

from linework.config.loader import resolve_api_key
from linework.config.schema import LineworkConfig

from .client import GenAIClient


def create_genai_client(config: LineworkConfig) -> GenAIClient:
    """
    Create a GenAIClient from config.

    Args:
        config: Root LineworkConfig

    Returns:
        GenAIClient wired with the configured models and retry policy
    """
    return GenAIClient(
        api_key=resolve_api_key(config),
        text_model=config.genai.text_model,
        image_model=config.genai.image_model,
        retry=config.retry,
        timeout=config.genai.timeout,
    )
