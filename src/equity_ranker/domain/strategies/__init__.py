# strategies/__init__.py

from .barsi import BarsiStrategy
from .base import BaseStrategy
from .dividend_yield import DividendYieldStrategy
from .fcd import FCDStrategy
from .fundamentalist import FundamentalistStrategy
from .gordon import GordonStrategy
from .graham import GrahamStrategy
from .low_pe import LowPEStrategy
from .magic_formula import MagicFormulaStrategy
from .params import (
    AIParams,
    AssetType,
    BarsiParams,
    CompanySize,
    DividendYieldParams,
    FCDParams,
    FundamentalistParams,
    GordonParams,
    GrahamParams,
    InvestmentFocus,
    LowPEParams,
    MagicFormulaParams,
    RangeFilter,
    RiskTolerance,
    ScreeningParams,
    StrategyParams,
    TimeHorizon,
)
from .screening import ScreeningStrategy

__all__ = [
    # strategies
    "BarsiStrategy",
    "BaseStrategy",
    "DividendYieldStrategy",
    "FCDStrategy",
    "FundamentalistStrategy",
    "GordonStrategy",
    "GrahamStrategy",
    "LowPEStrategy",
    "MagicFormulaStrategy",
    "ScreeningStrategy",
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
    "InvestmentFocus",
    "LowPEParams",
    "MagicFormulaParams",
    "RangeFilter",
    "RiskTolerance",
    "ScreeningParams",
    "StrategyParams",
    "TimeHorizon",
]
