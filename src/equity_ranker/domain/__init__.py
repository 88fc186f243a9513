# domain/__init__.py

from .ai import AIStrategy
from .factory import (
    StrategyType,
    create_strategy,
    generate_rational,
    run_analysis,
    run_ranking,
    run_ranking_async,
)

__all__ = [
    "AIStrategy",
    "StrategyType",
    "create_strategy",
    "generate_rational",
    "run_analysis",
    "run_ranking",
    "run_ranking_async",
]
