# equity_ranker/__init__.py

from .domain import (
    AIStrategy,
    StrategyType,
    create_strategy,
    generate_rational,
    run_analysis,
    run_ranking,
    run_ranking_async,
)
from .domain.strategies import (
    AIParams,
    AssetType,
    BarsiParams,
    CompanySize,
    DividendYieldParams,
    FCDParams,
    FundamentalistParams,
    GordonParams,
    GrahamParams,
    LowPEParams,
    MagicFormulaParams,
    RangeFilter,
    ScreeningParams,
)
from .schemas import CompanyData, RankBuilderResult, StrategyAnalysis

__all__ = [
    # entry points
    "AIStrategy",
    "StrategyType",
    "create_strategy",
    "generate_rational",
    "run_analysis",
    "run_ranking",
    "run_ranking_async",
    # parameters
    "AIParams",
    "AssetType",
    "BarsiParams",
    "CompanySize",
    "DividendYieldParams",
    "FCDParams",
    "FundamentalistParams",
    "GordonParams",
    "GrahamParams",
    "LowPEParams",
    "MagicFormulaParams",
    "RangeFilter",
    "ScreeningParams",
    # records
    "CompanyData",
    "RankBuilderResult",
    "StrategyAnalysis",
]
