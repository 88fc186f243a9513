# strategies/params.py

from dataclasses import dataclass
from enum import Enum


class CompanySize(str, Enum):
    """
    Market-capitalisation bands used to narrow a ranking universe.

    Attributes:
        ALL: No size restriction.
        SMALL_CAPS: Market cap below R$2B.
        MID_CAPS: Market cap between R$2B and R$10B.
        BLUE_CHIPS: Market cap of R$10B or more.
    """

    ALL = "all"
    SMALL_CAPS = "small_caps"
    MID_CAPS = "mid_caps"
    BLUE_CHIPS = "blue_chips"


class AssetType(str, Enum):
    """
    Listing types a ranking may be restricted to.

    Attributes:
        B3: Domestic B3 listings only.
        BDR: Foreign companies cross-listed as BDRs only.
        BOTH: Domestic listings and BDRs.
    """

    B3 = "b3"
    BDR = "bdr"
    BOTH = "both"


@dataclass(frozen=True)
class StrategyParams:
    """
    Parameters shared by every strategy.
    """

    # Maximum number of results returned by a ranking
    limit: int = 50
    # Market-cap band the ranking universe is restricted to
    company_size: CompanySize = CompanySize.ALL
    # Re-order ranked results by oversold signals within quality bands
    use_technical_analysis: bool = False
    # Average indicators over the current and up to seven prior years
    use_7_year_averages: bool = False
    # Listing types admitted to the ranking universe
    asset_type_filter: AssetType = AssetType.BOTH


@dataclass(frozen=True)
class GrahamParams(StrategyParams):
    # Minimum (fair value / price - 1) required in the ranking
    margin_of_safety: float = 0.20


@dataclass(frozen=True)
class DividendYieldParams(StrategyParams):
    # Dividend yield floor, the strategy's core thesis
    min_yield: float = 0.06


@dataclass(frozen=True)
class LowPEParams(StrategyParams):
    # Upper bound of the admissible P/L band
    max_pe: float = 15.0
    # Return-on-equity floor for domestic listings
    min_roe: float = 0.15
    use_7_year_averages: bool = True


@dataclass(frozen=True)
class MagicFormulaParams(StrategyParams):
    # Return-on-invested-capital floor
    min_roic: float = 0.15
    # Earnings-yield floor
    min_ey: float = 0.08
    use_7_year_averages: bool = True


@dataclass(frozen=True)
class FCDParams(StrategyParams):
    # Perpetual growth rate used for the terminal value
    growth_rate: float = 0.025
    # Discount rate (WACC) applied to domestic listings
    discount_rate: float = 0.10
    # Number of explicitly projected years
    years_projection: int = 5
    # Minimum upside, as a fraction, required for eligibility
    min_margin_of_safety: float = 0.20
    limit: int = 10


@dataclass(frozen=True)
class GordonParams(StrategyParams):
    # Required return on equity before sector adjustment
    discount_rate: float = 0.12
    # Long-run dividend growth before sector adjustment
    dividend_growth_rate: float = 0.05
    # Apply the sector discount/growth table
    use_sectoral_adjustment: bool = True
    # Manual adjustment added to the sector-adjusted discount rate
    sectoral_wacc_adjustment: float = 0.0


@dataclass(frozen=True)
class FundamentalistParams(StrategyParams):
    min_roe: float = 0.15
    min_roic: float = 0.15
    # Net debt / EBITDA above this disqualifies non-financial companies
    max_debt_to_ebitda: float = 3.0
    # Target payout band for the dividend bonus
    min_payout: float = 0.40
    max_payout: float = 0.80
    limit: int = 10


@dataclass(frozen=True)
class BarsiParams(StrategyParams):
    # Yield the investor wants on cost, used to derive the ceiling price
    target_dividend_yield: float = 0.06
    # Multiplier applied to the ceiling price
    max_price_to_pay_multiplier: float = 1.0
    # Years of dividend history inspected for consistency
    min_consecutive_dividends: int = 5
    max_debt_to_equity: float = 1.0
    min_roe: float = 0.10
    # Restrict to perennial sectors (banks, energy, sanitation, insurance...)
    focus_on_best: bool = True
    use_7_year_averages: bool = True


@dataclass(frozen=True)
class RangeFilter:
    """
    Inclusive numeric bounds for one screening indicator.
    """

    enabled: bool = True
    min: float | None = None
    max: float | None = None


@dataclass(frozen=True)
class ScreeningParams(StrategyParams):
    # valuation
    pl_filter: RangeFilter | None = None
    pvp_filter: RangeFilter | None = None
    ev_ebitda_filter: RangeFilter | None = None
    psr_filter: RangeFilter | None = None
    # profitability
    roe_filter: RangeFilter | None = None
    roic_filter: RangeFilter | None = None
    roa_filter: RangeFilter | None = None
    net_margin_filter: RangeFilter | None = None
    ebitda_margin_filter: RangeFilter | None = None
    # growth
    earnings_cagr_filter: RangeFilter | None = None
    revenue_cagr_filter: RangeFilter | None = None
    # dividends
    dy_filter: RangeFilter | None = None
    payout_filter: RangeFilter | None = None
    # leverage and liquidity
    net_debt_to_equity_filter: RangeFilter | None = None
    current_ratio_filter: RangeFilter | None = None
    net_debt_to_ebitda_filter: RangeFilter | None = None
    # size and composite scores
    market_cap_filter: RangeFilter | None = None
    overall_score_filter: RangeFilter | None = None
    graham_upside_filter: RangeFilter | None = None
    # classification
    selected_sectors: tuple[str, ...] = ()
    selected_industries: tuple[str, ...] = ()
    limit: int = 100


class RiskTolerance(str, Enum):
    CONSERVATIVE = "Conservador"
    MODERATE = "Moderado"
    AGGRESSIVE = "Agressivo"


class TimeHorizon(str, Enum):
    SHORT = "Curto Prazo"
    MEDIUM = "Médio Prazo"
    LONG = "Longo Prazo"


class InvestmentFocus(str, Enum):
    VALUE = "Valor"
    GROWTH = "Crescimento"
    DIVIDENDS = "Dividendos"
    GROWTH_AND_VALUE = "Crescimento e Valor"


@dataclass(frozen=True)
class AIParams(StrategyParams):
    """
    Investor profile and sizing for the AI-assisted ranking.
    """

    limit: int = 10
    risk_tolerance: RiskTolerance = RiskTolerance.MODERATE
    time_horizon: TimeHorizon = TimeHorizon.LONG
    focus: InvestmentFocus = InvestmentFocus.GROWTH_AND_VALUE
