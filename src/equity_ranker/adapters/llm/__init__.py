# llm/__init__.py

from .errors import (
    LLMConfigurationError,
    LLMError,
    LLMTimeoutError,
    LLMTransportError,
    RunawayOutputError,
)
from .gemini import GeminiClient, GeminiConfig
from .protocol import LLMClient

__all__ = [
    # clients
    "GeminiClient",
    "GeminiConfig",
    "LLMClient",
    # errors
    "LLMConfigurationError",
    "LLMError",
    "LLMTimeoutError",
    "LLMTransportError",
    "RunawayOutputError",
]
