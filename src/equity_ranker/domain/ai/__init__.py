# ai/__init__.py

from .models import AIPipelineSettings, default_settings
from .parsing import ResponseParseError
from .prompts import build_retry_prompt
from .strategy import AIStrategy

__all__ = [
    "AIPipelineSettings",
    "AIStrategy",
    "ResponseParseError",
    "build_retry_prompt",
    "default_settings",
]
