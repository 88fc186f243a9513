# schemas/__init__.py

from .analysis import Criterion, KeyMetrics, RankBuilderResult, StrategyAnalysis
from .company import (
    CompanyData,
    DividendPayment,
    FinancialSnapshot,
    HistoricalSnapshot,
    Signal,
    TechnicalSignal,
)

__all__ = [
    # inbound company records
    "CompanyData",
    "DividendPayment",
    "FinancialSnapshot",
    "HistoricalSnapshot",
    "Signal",
    "TechnicalSignal",
    # strategy outputs
    "Criterion",
    "KeyMetrics",
    "RankBuilderResult",
    "StrategyAnalysis",
]
