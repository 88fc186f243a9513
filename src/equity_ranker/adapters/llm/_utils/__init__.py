# _utils/__init__.py

from .backoff import retry_pauses
from .client import make_client
from .loop_detector import LOOP_PATTERNS, LoopDetector

__all__ = [
    "LOOP_PATTERNS",
    "LoopDetector",
    "make_client",
    "retry_pauses",
]
