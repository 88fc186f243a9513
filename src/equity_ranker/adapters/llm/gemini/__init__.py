# gemini/__init__.py

from .api import GeminiClient, generate
from .config import GeminiConfig

__all__ = ["GeminiClient", "GeminiConfig", "generate"]
