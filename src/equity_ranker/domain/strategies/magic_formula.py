# strategies/magic_formula.py

from collections.abc import Sequence
from typing import NamedTuple

from equity_ranker.schemas import CompanyData, RankBuilderResult, StrategyAnalysis

from ._utils import (
    format_currency,
    format_number,
    format_percent,
    indicator,
    is_bdr_ticker,
    or_benefit,
    or_missing,
    or_zero,
)
from .base import (
    BaseStrategy,
    at_least,
    at_most,
    build_analysis,
    count_passed,
    criterion,
    metric_key,
    to_result,
)
from .params import MagicFormulaParams

MIN_REVENUE_GROWTH = -0.05
MIN_NET_MARGIN = 0.05
# Criteria that must pass out of eight
MIN_PASSED = 6


class Thresholds(NamedTuple):
    min_roic: float
    min_ey: float
    min_roe: float
    min_current_ratio: float
    max_net_debt_to_equity: float
    min_market_cap: float


# BDR floors: ROIC and earnings yield are raised to at least these values
BDR_ROIC_FLOOR = 0.12
BDR_EY_FLOOR = 0.05
BDR_MIN_ROE = 0.12
BDR_MIN_CURRENT_RATIO = 1.0
BDR_MAX_NET_DEBT_TO_EQUITY = 2.0
BDR_MIN_MARKET_CAP = 3_000_000_000

DOMESTIC_MIN_ROE = 0.15
DOMESTIC_MIN_CURRENT_RATIO = 1.2
DOMESTIC_MAX_NET_DEBT_TO_EQUITY = 1.5
DOMESTIC_MIN_MARKET_CAP = 1_000_000_000


def thresholds_for(ticker: str, params: MagicFormulaParams) -> Thresholds:
    """
    Resolve the thresholds applicable to a ticker.

    Returns:
        Thresholds: BDR-adjusted or domestic thresholds.
    """
    if is_bdr_ticker(ticker):
        return Thresholds(
            min_roic=max(params.min_roic, BDR_ROIC_FLOOR),
            min_ey=max(params.min_ey, BDR_EY_FLOOR),
            min_roe=BDR_MIN_ROE,
            min_current_ratio=BDR_MIN_CURRENT_RATIO,
            max_net_debt_to_equity=BDR_MAX_NET_DEBT_TO_EQUITY,
            min_market_cap=BDR_MIN_MARKET_CAP,
        )

    return Thresholds(
        min_roic=params.min_roic,
        min_ey=params.min_ey,
        min_roe=DOMESTIC_MIN_ROE,
        min_current_ratio=DOMESTIC_MIN_CURRENT_RATIO,
        max_net_debt_to_equity=DOMESTIC_MAX_NET_DEBT_TO_EQUITY,
        min_market_cap=DOMESTIC_MIN_MARKET_CAP,
    )


def magic_score(
    roic: float | None,
    earnings_yield: float | None,
    roe: float | None,
    net_margin: float | None,
    revenue_growth: float | None,
) -> float:
    """
    Greenblatt-style blend of business quality and cheapness.

    ROIC is capped at 50%, earnings yield at 25%, ROE and margin at 30%, so
    no single outlier dominates the ranking.

    Returns:
        float: Magic score capped at 100.
    """
    score = (
        min(or_zero(roic), 0.50) * 100
        + min(or_zero(earnings_yield), 0.25) * 200
        + min(or_zero(roe), 0.30) * 50
        + min(or_zero(net_margin), 0.30) * 50
        + max(0.0, or_zero(revenue_growth) + 0.05) * 80
    )
    return min(score, 100.0)


class MagicFormulaStrategy(BaseStrategy[MagicFormulaParams]):
    """
    Joel Greenblatt's magic formula: great businesses at fair prices.
    """

    name = "magicFormula"
    params_type = MagicFormulaParams

    def validate_company_data(
        self,
        company: CompanyData,
        params: MagicFormulaParams,
    ) -> bool:
        roic = company.financials.roic
        earnings_yield = company.financials.earnings_yield
        return (
            roic is not None
            and roic >= params.min_roic
            and earnings_yield is not None
            and earnings_yield >= params.min_ey
        )

    def run_analysis(
        self,
        company: CompanyData,
        params: MagicFormulaParams,
    ) -> StrategyAnalysis:
        averaged = params.use_7_year_averages
        limits = thresholds_for(company.ticker, params)
        tag = " (BDR)" if is_bdr_ticker(company.ticker) else ""

        roic = indicator(company, "roic", use_averages=averaged)
        earnings_yield = company.financials.earnings_yield
        roe = indicator(company, "roe", use_averages=averaged)
        revenue_growth = company.financials.revenue_growth
        net_margin = indicator(company, "net_margin", use_averages=averaged)
        current_ratio = company.financials.current_ratio
        net_debt_to_equity = indicator(
            company,
            "net_debt_to_equity",
            use_averages=averaged,
        )
        market_cap = company.financials.market_cap

        criteria = (
            criterion(
                f"ROIC >= {limits.min_roic:.0%}{tag}",
                roic is not None and roic >= limits.min_roic,
                f"ROIC: {or_missing(format_percent(roic))}",
            ),
            criterion(
                f"Earnings yield >= {limits.min_ey:.0%}{tag}",
                earnings_yield is not None and earnings_yield >= limits.min_ey,
                f"EY: {or_missing(format_percent(earnings_yield))}",
            ),
            criterion(
                f"ROE >= {limits.min_roe:.0%}{tag}",
                at_least(roe, limits.min_roe),
                f"ROE: {or_benefit(format_percent(roe))}",
            ),
            criterion(
                f"Revenue growth >= {MIN_REVENUE_GROWTH:.0%}",
                at_least(revenue_growth, MIN_REVENUE_GROWTH),
                f"Growth: {or_benefit(format_percent(revenue_growth))}",
            ),
            criterion(
                f"Net margin >= {MIN_NET_MARGIN:.0%}",
                at_least(net_margin, MIN_NET_MARGIN),
                f"Net margin: {or_benefit(format_percent(net_margin))}",
            ),
            criterion(
                f"Current ratio >= {limits.min_current_ratio:.1f}{tag}",
                at_least(current_ratio, limits.min_current_ratio),
                f"Current ratio: {or_benefit(format_number(current_ratio))}",
            ),
            criterion(
                f"Net debt/equity <= {limits.max_net_debt_to_equity:.0%}{tag}",
                at_most(net_debt_to_equity, limits.max_net_debt_to_equity),
                f"Net debt/equity: {or_benefit(format_number(net_debt_to_equity, 1))}",
            ),
            criterion(
                f"Market cap >= {format_currency(limits.min_market_cap)}{tag}",
                at_least(market_cap, limits.min_market_cap),
                f"Market cap: {or_benefit(format_currency(market_cap))}",
            ),
        )

        passed = count_passed(criteria)
        is_eligible = passed >= MIN_PASSED and roic is not None
        score = magic_score(roic, earnings_yield, roe, net_margin, revenue_growth)

        if is_eligible:
            reasoning = (
                f"Approved by the magic formula with ROIC {format_percent(roic)} "
                f"and EY {or_missing(format_percent(earnings_yield))}. Magic "
                f"score: {score:.1f}/100. Great business at a fair price."
            )
        else:
            reasoning = (
                "Does not meet the magic formula minimums "
                f"({passed}/{len(criteria)} criteria passed)."
            )

        return build_analysis(
            criteria,
            is_eligible=is_eligible,
            fair_value=None,
            upside=None,
            reasoning=reasoning,
            key_metrics={
                "roic": roic,
                "earnings_yield": earnings_yield,
                "magic_score": round(score, 1),
                "roe": roe,
                "net_margin": net_margin,
            },
        )

    def run_ranking(
        self,
        companies: Sequence[CompanyData],
        params: MagicFormulaParams,
    ) -> list[RankBuilderResult]:
        results = [
            _ranked(company, analysis)
            for company in self._universe(companies, params)
            if self.validate_company_data(company, params)
            and (analysis := self.run_analysis(company, params)).is_eligible
        ]

        return self._finalise(
            results,
            companies,
            params,
            sort_key=metric_key("magic_score"),
        )

    def generate_rational(self, params: MagicFormulaParams) -> str:
        technical = (
            " plus technical prioritisation (oversold assets first)"
            if params.use_technical_analysis
            else ""
        )
        return f"""# MAGIC FORMULA MODEL (Joel Greenblatt)

**Philosophy**: Find great businesses at fair prices: high operating quality and an \
attractive price.

## Core metrics

- **ROIC** >= {params.min_roic:.0%} (return on invested capital, business quality)
- **Earnings yield** >= {params.min_ey:.0%} (inverse of P/L, attractive price)

## Quality filters

- ROE >= 15% (consistent return on equity)
- Revenue growth >= -5% (no sharp operating decline)
- Net margin >= 5% (profitable and efficient)
- Current ratio >= 1.2 (short-term financial health)
- Net debt/equity <= 150% (balanced capital structure)
- Market cap >= R$ 1B (mid and large companies)

**Ordering**: By magic score, combining high ROIC and high earnings yield with \
complementary indicators{technical}.

**Goal**: Companies that are simultaneously great businesses (high ROIC) and sold at \
attractive prices (high EY)."""


def _ranked(company: CompanyData, analysis: StrategyAnalysis) -> RankBuilderResult:
    financials = company.financials
    metrics = analysis.key_metrics
    roic = or_zero(metrics["roic"])
    earnings_yield = or_zero(metrics["earnings_yield"])
    roe = or_zero(metrics["roe"])
    net_margin = or_zero(metrics["net_margin"])
    revenue_growth = or_zero(financials.revenue_growth)

    return to_result(
        company,
        rational=(
            f"Approved by the magic formula model with ROIC {roic * 100:.1f}% and "
            f"earnings yield {earnings_yield * 100:.1f}%. Solid ROE: "
            f"{roe * 100:.1f}%, net margin: {net_margin * 100:.1f}%. Revenue "
            f"growth: {revenue_growth * 100:.1f}%. Magic score: "
            f"{metrics['magic_score']}/100. Great business at a fair price."
        ),
        key_metrics={
            **metrics,
            "dividend_yield": financials.dividend_yield,
            "current_ratio": or_zero(financials.current_ratio),
            "revenue_growth": revenue_growth,
            "market_cap": financials.market_cap,
        },
    )
