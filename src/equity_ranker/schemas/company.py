# schemas/company.py

import math
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _drop_non_finite(data: object) -> object:
    """
    Replace NaN, infinite and blank-string numeric values with None.

    Upstream records occasionally carry NaN or "" for fields that were never
    populated; treating them as missing keeps every accessor null-safe.

    Returns:
        object: The record with non-finite values nulled, or the input
            unchanged when it is not a mapping.
    """
    if not isinstance(data, dict):
        return data

    return {key: _nullify(value) for key, value in data.items()}


def _nullify(value: object) -> object:
    """
    Map a single non-finite or blank value to None.

    Returns:
        object: None for NaN, infinity or blank strings, otherwise the value.
    """
    if isinstance(value, str) and not value.strip():
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, Decimal) and not value.is_finite():
        return None
    return value


class FinancialSnapshot(BaseModel):
    """
    Current-period fundamentals for one company.

    Ratios are decimals (0.15 means 15%). Every field is optional: strategies
    give missing values the benefit of the doubt or skip the company.
    Upstream camelCase keys (``lpa``, ``liquidezCorrente``...) are accepted
    as aliases alongside the snake_case field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    # valuation
    eps: float | None = Field(default=None, alias="lpa")
    book_value_per_share: float | None = Field(default=None, alias="vpa")
    pe: float | None = Field(default=None, alias="pl")
    pb: float | None = Field(default=None, alias="pvp")
    psr: float | None = None
    ev_ebitda: float | None = Field(default=None, alias="evEbitda")
    earnings_yield: float | None = Field(default=None, alias="earningsYield")
    # dividends
    dividend_yield: float | None = Field(default=None, alias="dy")
    dividend_yield_12m: float | None = Field(default=None, alias="dividendYield12m")
    last_dividend: float | None = Field(default=None, alias="ultimoDividendo")
    payout: float | None = None
    # profitability
    roe: float | None = None
    roa: float | None = None
    roic: float | None = None
    net_margin: float | None = Field(default=None, alias="margemLiquida")
    ebitda_margin: float | None = Field(default=None, alias="margemEbitda")
    # liquidity and leverage
    current_ratio: float | None = Field(default=None, alias="liquidezCorrente")
    net_debt_to_equity: float | None = Field(default=None, alias="dividaLiquidaPl")
    net_debt_to_ebitda: float | None = Field(
        default=None,
        alias="dividaLiquidaEbitda",
    )
    liabilities_to_assets: float | None = Field(default=None, alias="passivoAtivos")
    # growth
    earnings_growth: float | None = Field(default=None, alias="crescimentoLucros")
    revenue_growth: float | None = Field(default=None, alias="crescimentoReceitas")
    earnings_cagr_5y: float | None = Field(default=None, alias="cagrLucros5a")
    revenue_cagr_5y: float | None = Field(default=None, alias="cagrReceitas5a")
    # size and cash flow
    market_cap: float | None = Field(default=None, alias="marketCap")
    total_revenue: float | None = Field(default=None, alias="receitaTotal")
    ebitda: float | None = None
    free_cash_flow: float | None = Field(default=None, alias="fluxoCaixaLivre")
    operating_cash_flow: float | None = Field(
        default=None,
        alias="fluxoCaixaOperacional",
    )
    shares_outstanding: float | None = Field(default=None, alias="sharesOutstanding")
    net_income: float | None = Field(default=None, alias="lucroLiquido")

    @model_validator(mode="before")
    def _normalise_fields(self: object) -> object:
        """
        Null out non-finite and blank values before field validation.

        Returns:
            object: The cleaned raw record.
        """
        return _drop_non_finite(self)


class HistoricalSnapshot(FinancialSnapshot):
    """
    One prior fiscal year of fundamentals, identified by its year.
    """

    year: int


class Signal(str, Enum):
    """
    Overall short-horizon technical signal.
    """

    OVERBOUGHT = "SOBRECOMPRA"
    OVERSOLD = "SOBREVENDA"
    NEUTRAL = "NEUTRO"


class TechnicalSignal(BaseModel):
    """
    Oscillator readings used to time entries within a fundamental ranking.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    rsi: float | None = None
    stochastic_k: float | None = Field(default=None, alias="stochasticK")
    stochastic_d: float | None = Field(default=None, alias="stochasticD")
    overall_signal: Signal | None = Field(default=None, alias="overallSignal")


class DividendPayment(BaseModel):
    """
    A cash distribution paid in a given calendar year.
    """

    model_config = ConfigDict(frozen=True)

    year: int
    amount: float


class CompanyData(BaseModel):
    """
    Analysable snapshot of one listed company.

    Owned by the caller and never mutated by the engine. ``historical_financials``
    is ordered most-recent-first and holds at most seven entries of interest.

    Args:
        ticker (str): Exchange symbol, unique within a ranking run.
        name (str): Company name.
        current_price (float): Last traded price; must be positive for any
            price-based verdict.
        financials (FinancialSnapshot): Current-period fundamentals.
        ...: Optional sector, logo, history, technicals and overall score.

    Returns:
        CompanyData: Immutable company record.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ticker: str
    name: str
    sector: str | None = None
    industry: str | None = None
    current_price: float = Field(alias="currentPrice")
    logo_url: str | None = Field(default=None, alias="logoUrl")
    financials: FinancialSnapshot = Field(default_factory=FinancialSnapshot)
    historical_financials: tuple[HistoricalSnapshot, ...] = Field(
        default=(),
        alias="historicalFinancials",
    )
    technical_analysis: TechnicalSignal | None = Field(
        default=None,
        alias="technicalAnalysis",
    )
    overall_score: float | None = Field(default=None, alias="overallScore")
    dividend_history: tuple[DividendPayment, ...] = Field(
        default=(),
        alias="dividendHistory",
    )

    @model_validator(mode="before")
    def _normalise_fields(self: object) -> object:
        """
        Upper-case the ticker and null out non-finite scalar values.

        Returns:
            object: The cleaned raw record.
        """
        cleaned = _drop_non_finite(self)
        if isinstance(cleaned, dict) and isinstance(cleaned.get("ticker"), str):
            cleaned["ticker"] = cleaned["ticker"].strip().upper()
        return cleaned
