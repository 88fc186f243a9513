# _utils/__init__.py

from .filters import (
    company_prefix,
    deduplicate_by_company,
    filter_by_asset_type,
    filter_by_overall_score,
    filter_by_size,
    filter_illiquid_classes,
    has_consistent_profits,
    is_bdr_ticker,
    is_financial_sector,
    market_cap_preference,
    prepare_universe,
    should_exclude,
)
from .formatting import (
    format_currency,
    format_number,
    format_percent,
    format_upside,
    or_benefit,
    or_missing,
)
from .metrics import (
    capped,
    graham_fair_value,
    historical_average,
    historical_values,
    indicator,
    or_zero,
    round_metric,
    upside_percent,
    validate_cagr,
)
from .technical import (
    apply_technical_prioritization,
    technical_score,
    technical_summary,
)

__all__ = [
    # filters
    "company_prefix",
    "deduplicate_by_company",
    "filter_by_asset_type",
    "filter_by_overall_score",
    "filter_by_size",
    "filter_illiquid_classes",
    "has_consistent_profits",
    "is_bdr_ticker",
    "is_financial_sector",
    "market_cap_preference",
    "prepare_universe",
    "should_exclude",
    # formatting
    "format_currency",
    "format_number",
    "format_percent",
    "format_upside",
    "or_benefit",
    "or_missing",
    # metrics
    "capped",
    "graham_fair_value",
    "historical_average",
    "historical_values",
    "indicator",
    "or_zero",
    "round_metric",
    "upside_percent",
    "validate_cagr",
    # technical
    "apply_technical_prioritization",
    "technical_score",
    "technical_summary",
]
