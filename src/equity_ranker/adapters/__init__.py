# adapters/__init__.py

from .llm import GeminiClient, LLMClient

__all__ = ["GeminiClient", "LLMClient"]
