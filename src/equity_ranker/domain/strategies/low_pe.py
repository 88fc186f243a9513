# strategies/low_pe.py

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
from .params import LowPEParams

# P/L at or below this is treated as a value-trap signal
MIN_PE = 3.0
MIN_REVENUE_GROWTH = -0.10
MIN_CURRENT_RATIO = 1.0
MIN_ROA = 0.05
# Criteria that must pass out of eight
MIN_PASSED = 6
# Rankings are capped here regardless of params.limit
RANKING_CAP = 50


class Thresholds(NamedTuple):
    """
    Listing-specific thresholds.

    Attributes:
        max_pe: Upper bound of the P/L band.
        min_roe: Return-on-equity floor.
        min_net_margin: Net margin floor.
        max_net_debt_to_equity: Leverage ceiling.
        min_market_cap: Size floor in reais.
        pe_weight: Penalty per P/L point in the value score.
    """

    max_pe: float
    min_roe: float
    min_net_margin: float
    max_net_debt_to_equity: float
    min_market_cap: float
    pe_weight: float


# BDRs trade at higher international multiples: P/L ceiling of at least 25,
# ROE floor of at least 12%, stricter margin and size, looser leverage
BDR_MIN_MAX_PE = 25.0
BDR_MIN_ROE_FLOOR = 0.12
BDR_NET_MARGIN = 0.05
BDR_NET_DEBT_TO_EQUITY = 2.5
BDR_MARKET_CAP = 2_000_000_000
BDR_PE_WEIGHT = 1.5

DOMESTIC_NET_MARGIN = 0.03
DOMESTIC_NET_DEBT_TO_EQUITY = 2.0
DOMESTIC_MARKET_CAP = 500_000_000
DOMESTIC_PE_WEIGHT = 2.0


def thresholds_for(ticker: str, params: LowPEParams) -> Thresholds:
    """
    Resolve the thresholds applicable to a ticker.

    Returns:
        Thresholds: BDR-adjusted or domestic thresholds.
    """
    if is_bdr_ticker(ticker):
        return Thresholds(
            max_pe=max(params.max_pe, BDR_MIN_MAX_PE),
            min_roe=max(params.min_roe, BDR_MIN_ROE_FLOOR),
            min_net_margin=BDR_NET_MARGIN,
            max_net_debt_to_equity=BDR_NET_DEBT_TO_EQUITY,
            min_market_cap=BDR_MARKET_CAP,
            pe_weight=BDR_PE_WEIGHT,
        )

    return Thresholds(
        max_pe=params.max_pe,
        min_roe=params.min_roe,
        min_net_margin=DOMESTIC_NET_MARGIN,
        max_net_debt_to_equity=DOMESTIC_NET_DEBT_TO_EQUITY,
        min_market_cap=DOMESTIC_MARKET_CAP,
        pe_weight=DOMESTIC_PE_WEIGHT,
    )


def value_score(
    pe: float | None,
    roe: float | None,
    roa: float | None,
    net_margin: float | None,
    revenue_growth: float | None,
    roic: float | None,
    *,
    pe_weight: float = DOMESTIC_PE_WEIGHT,
) -> float:
    """
    Reward a low P/L backed by quality.

    Returns:
        float: Value score capped at 100.
    """
    score = (
        max(0.0, 50 - or_zero(pe) * pe_weight)
        + min(or_zero(roe), 0.30) * 50
        + min(or_zero(roa), 0.20) * 100
        + min(or_zero(net_margin), 0.20) * 80
        + max(0.0, or_zero(revenue_growth) + 0.10) * 30
        + min(or_zero(roic), 0.25) * 40
    )
    return min(score, 100.0)


def _pe_in_band(pe: float | None, max_pe: float) -> bool:
    return pe is not None and MIN_PE < pe <= max_pe


class LowPEStrategy(BaseStrategy[LowPEParams]):
    """
    Value investing that screens out value traps.
    """

    name = "lowPE"
    params_type = LowPEParams

    def validate_company_data(self, company: CompanyData, params: LowPEParams) -> bool:
        limits = thresholds_for(company.ticker, params)
        return _pe_in_band(company.financials.pe, limits.max_pe)

    def run_analysis(
        self,
        company: CompanyData,
        params: LowPEParams,
    ) -> StrategyAnalysis:
        averaged = params.use_7_year_averages
        limits = thresholds_for(company.ticker, params)
        tag = " (BDR)" if is_bdr_ticker(company.ticker) else ""

        # P/L is always the current multiple; averaging would hide re-ratings
        pe = company.financials.pe
        roe = indicator(company, "roe", use_averages=averaged)
        revenue_growth = company.financials.revenue_growth
        net_margin = indicator(company, "net_margin", use_averages=averaged)
        current_ratio = indicator(company, "current_ratio", use_averages=averaged)
        roa = company.financials.roa
        net_debt_to_equity = indicator(
            company,
            "net_debt_to_equity",
            use_averages=averaged,
        )
        market_cap = company.financials.market_cap
        roic = indicator(company, "roic", use_averages=averaged)

        in_band = _pe_in_band(pe, limits.max_pe)

        criteria = (
            criterion(
                f"P/L between {MIN_PE:.0f} and {limits.max_pe:.0f}{tag}",
                in_band,
                f"P/L: {or_missing(format_number(pe, 1))}",
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
                f"Net margin >= {limits.min_net_margin:.0%}{tag}",
                at_least(net_margin, limits.min_net_margin),
                f"Net margin: {or_benefit(format_percent(net_margin))}",
            ),
            criterion(
                f"Current ratio >= {MIN_CURRENT_RATIO}",
                at_least(current_ratio, MIN_CURRENT_RATIO),
                f"Current ratio: {or_benefit(format_number(current_ratio))}",
            ),
            criterion(
                f"ROA >= {MIN_ROA:.0%}",
                at_least(roa, MIN_ROA),
                f"ROA: {or_benefit(format_percent(roa))}",
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
        is_eligible = passed >= MIN_PASSED and in_band
        score = value_score(
            pe,
            roe,
            roa,
            net_margin,
            revenue_growth,
            roic,
            pe_weight=limits.pe_weight,
        )

        if is_eligible:
            reasoning = (
                f"Approved by the value investing model with P/L {pe:.1f}. "
                f"Value score: {score:.1f}/100. Not a value trap."
            )
        else:
            reasoning = (
                f"Possible value trap ({passed}/{len(criteria)} criteria passed)."
            )

        return build_analysis(
            criteria,
            is_eligible=is_eligible,
            fair_value=None,
            upside=None,
            reasoning=reasoning,
            key_metrics={
                "pe": pe,
                "value_score": round(score, 1),
                "roe": roe,
                "roa": roa,
                "roic": roic,
            },
        )

    def run_ranking(
        self,
        companies: Sequence[CompanyData],
        params: LowPEParams,
    ) -> list[RankBuilderResult]:
        results: list[RankBuilderResult] = []

        for company in self._universe(companies, params):
            if not self.validate_company_data(company, params):
                continue

            limits = thresholds_for(company.ticker, params)
            roe = company.financials.roe
            if roe is None or roe < limits.min_roe:
                continue

            analysis = self.run_analysis(company, params)
            if analysis.is_eligible:
                results.append(_ranked(company, analysis))

        return self._finalise(
            results,
            companies,
            params,
            sort_key=metric_key("value_score"),
            limit=min(params.limit, RANKING_CAP),
        )

    def generate_rational(self, params: LowPEParams) -> str:
        technical = (
            " plus technical prioritisation (oversold assets first)"
            if params.use_technical_analysis
            else ""
        )
        return f"""# VALUE INVESTING MODEL

**Philosophy**: Classic value investing: cheap companies (low P/L) with proven quality.

**Strategy**: P/L <= {params.max_pe:.0f} + ROE >= {params.min_roe:.0%} + strict \
quality filters.

**Problem solved**: Avoids value traps, cheap shares that keep falling because of \
fundamental problems.

## Anti value-trap filters

- P/L > 3 (avoids suspiciously low prices)
- ROA >= 5% (efficient use of assets)
- Revenue growth >= -10% (no sharp operating decline)
- Net margin >= 3% (profitable, sustainable operation)
- Current ratio >= 1.0 (adequate financial position)
- Net debt/equity <= 200% (leverage under control)
- Market cap >= R$ 500M (minimum liquidity and stability)

**Ordering**: By value score (attractive price plus quality indicators){technical}.

**Goal**: Cheap companies that are genuinely good businesses, not problems in \
disguise."""


def _ranked(company: CompanyData, analysis: StrategyAnalysis) -> RankBuilderResult:
    financials = company.financials
    metrics = analysis.key_metrics
    roe = or_zero(metrics["roe"])
    roa = or_zero(metrics["roa"])
    net_margin = or_zero(financials.net_margin)
    revenue_growth = or_zero(financials.revenue_growth)

    return to_result(
        company,
        rational=(
            f"Approved by the value investing model with P/L {financials.pe:.1f}. "
            f"Quality company: ROE {roe * 100:.2f}%, ROA {roa * 100:.1f}%, net "
            f"margin {net_margin * 100:.2f}%. Revenue growth: "
            f"{revenue_growth * 100:.2f}%. Value score: {metrics['value_score']}/100. "
            "Not a value trap."
        ),
        key_metrics={
            **metrics,
            "dividend_yield": financials.dividend_yield,
            "current_ratio": or_zero(financials.current_ratio),
            "net_margin": net_margin,
            "revenue_growth": revenue_growth,
            "market_cap": financials.market_cap,
        },
    )
