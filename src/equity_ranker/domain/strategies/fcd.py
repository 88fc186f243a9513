# strategies/fcd.py

import math
from collections.abc import Sequence
from typing import NamedTuple

from equity_ranker.schemas import CompanyData, RankBuilderResult, StrategyAnalysis

from ._utils import (
    format_currency,
    format_number,
    format_percent,
    format_upside,
    is_bdr_ticker,
    or_benefit,
    or_missing,
    or_zero,
    upside_percent,
)
from .base import (
    BaseStrategy,
    at_least,
    build_analysis,
    count_passed,
    criterion,
    positive_or_missing,
    to_result,
)
from .params import FCDParams

# Without positive free cash flow, EBITDA x this ratio stands in as the base
EBITDA_CASH_CONVERSION = 0.6
# Early-year growth bonus, decaying as exp(-DECAY * year)
EARLY_GROWTH_BONUS = 0.05
GROWTH_DECAY = 0.5
# Foreign listings are discounted at a higher cost of capital
BDR_DISCOUNT_PREMIUM = 0.02

MIN_ROE = 0.12
MIN_EBITDA_MARGIN = 0.15
MIN_REVENUE_GROWTH = -0.10
MIN_CURRENT_RATIO = 1.2
MIN_MARKET_CAP = 2_000_000_000
# Criteria that must pass out of eight
MIN_PASSED = 6


class Valuation(NamedTuple):
    """
    Outcome of a discounted cash flow projection.

    Attributes:
        base_cash_flow: Year-zero cash flow the projection grows from.
        present_value_cash_flows: Sum of discounted explicit-period flows.
        present_value_terminal: Discounted terminal value.
        enterprise_value: Explicit plus terminal present values.
        fair_value: Enterprise value per share.
    """

    base_cash_flow: float
    present_value_cash_flows: float
    present_value_terminal: float
    enterprise_value: float
    fair_value: float


def base_cash_flow(ebitda: float | None, free_cash_flow: float | None) -> float:
    """
    Pick the cash flow the projection starts from.

    Returns:
        float: Free cash flow when positive, else a conservative share of
            EBITDA (zero when EBITDA is missing).
    """
    if free_cash_flow is not None and free_cash_flow > 0:
        return free_cash_flow
    return or_zero(ebitda) * EBITDA_CASH_CONVERSION


def project_valuation(
    base: float,
    shares_outstanding: float,
    *,
    growth_rate: float,
    discount_rate: float,
    years: int,
) -> Valuation | None:
    """
    Discount an explicit projection plus a Gordon terminal value.

    Growth in year ``y`` is ``growth_rate + 0.05 * exp(-0.5 * y)``, so early
    years grow faster and converge on the perpetual rate. No net debt is
    subtracted: the discount rate and cash flow base already carry the cost
    of financing.

    Args:
        base: Year-zero cash flow.
        shares_outstanding: Share count used to express value per share.
        growth_rate: Perpetual growth rate.
        discount_rate: Cost of capital.
        years: Length of the explicit projection.

    Returns:
        Valuation | None: The valuation, or None when any input makes the
            fair value undefined or non-positive.
    """
    if base <= 0 or shares_outstanding <= 0 or years < 1:
        return None
    if discount_rate <= growth_rate:
        return None

    cash_flow = base
    present_value_cash_flows = 0.0

    for year in range(1, years + 1):
        yearly_growth = growth_rate + EARLY_GROWTH_BONUS * math.exp(
            -GROWTH_DECAY * year,
        )
        cash_flow *= 1 + yearly_growth
        present_value_cash_flows += cash_flow / (1 + discount_rate) ** year

    terminal_value = cash_flow * (1 + growth_rate) / (discount_rate - growth_rate)
    present_value_terminal = terminal_value / (1 + discount_rate) ** years
    enterprise_value = present_value_cash_flows + present_value_terminal
    fair_value = enterprise_value / shares_outstanding

    if fair_value <= 0:
        return None

    return Valuation(
        base_cash_flow=base,
        present_value_cash_flows=present_value_cash_flows,
        present_value_terminal=present_value_terminal,
        enterprise_value=enterprise_value,
        fair_value=fair_value,
    )


def discount_rate_for(ticker: str, params: FCDParams) -> float:
    premium = BDR_DISCOUNT_PREMIUM if is_bdr_ticker(ticker) else 0.0
    return params.discount_rate + premium


def fcd_quality_score(
    roe: float | None,
    ebitda_margin: float | None,
    revenue_growth: float | None,
    current_ratio: float | None,
    upside: float | None,
) -> float:
    """
    Blend cash-generation quality with the valuation gap.

    Args:
        roe: Return on equity as a ratio.
        ebitda_margin: EBITDA margin as a ratio.
        revenue_growth: Revenue growth as a ratio.
        current_ratio: Current ratio.
        upside: Upside in percent.

    Returns:
        float: Quality score capped at 100.
    """
    score = (
        min(or_zero(roe), 0.4) * 100
        + min(or_zero(ebitda_margin), 0.5) * 80
        + max(0.0, or_zero(revenue_growth) + 0.2) * 50
        + min(or_zero(current_ratio), 3.0) * 5
        + min(or_zero(upside) / 100, 1.0) * 5
    )
    return min(score, 100.0)


class FCDStrategy(BaseStrategy[FCDParams]):
    """
    Discounted cash flow valuation with quality gates.
    """

    name = "fcd"
    params_type = FCDParams

    def validate_company_data(self, company: CompanyData, params: FCDParams) -> bool:
        ebitda = company.financials.ebitda
        shares = company.financials.shares_outstanding
        return ebitda is not None and ebitda > 0 and shares is not None and shares > 0

    def valuation(self, company: CompanyData, params: FCDParams) -> Valuation | None:
        """
        Value a company's shares from its projected cash flows.

        Returns:
            Valuation | None: The valuation, or None when the cash flow base
                or share count cannot support one.
        """
        financials = company.financials
        shares = financials.shares_outstanding
        if shares is None:
            return None

        return project_valuation(
            base_cash_flow(financials.ebitda, financials.free_cash_flow),
            shares,
            growth_rate=params.growth_rate,
            discount_rate=discount_rate_for(company.ticker, params),
            years=params.years_projection,
        )

    def run_analysis(self, company: CompanyData, params: FCDParams) -> StrategyAnalysis:
        financials = company.financials
        ebitda = financials.ebitda
        operating_cash_flow = financials.operating_cash_flow
        roe = financials.roe
        ebitda_margin = financials.ebitda_margin
        revenue_growth = financials.revenue_growth
        current_ratio = financials.current_ratio
        market_cap = financials.market_cap
        min_upside = params.min_margin_of_safety * 100

        valuation = self.valuation(company, params)
        fair_value = None if valuation is None else valuation.fair_value
        upside = upside_percent(fair_value, company.current_price)
        has_upside = upside is not None and upside >= min_upside

        criteria = (
            criterion(
                f"Upside >= {min_upside:.0f}%",
                has_upside,
                f"Upside: {or_missing(format_upside(upside))}",
            ),
            criterion(
                "EBITDA > 0",
                ebitda is not None and ebitda > 0,
                f"EBITDA: {or_missing(format_currency(ebitda))}",
            ),
            criterion(
                "Operating cash flow > 0",
                positive_or_missing(operating_cash_flow),
                "Operating cash flow: "
                f"{or_benefit(format_currency(operating_cash_flow))}",
            ),
            criterion(
                f"ROE >= {MIN_ROE:.0%}",
                at_least(roe, MIN_ROE),
                f"ROE: {or_benefit(format_percent(roe))}",
            ),
            criterion(
                f"EBITDA margin >= {MIN_EBITDA_MARGIN:.0%}",
                at_least(ebitda_margin, MIN_EBITDA_MARGIN),
                f"EBITDA margin: {or_benefit(format_percent(ebitda_margin))}",
            ),
            criterion(
                f"Revenue growth >= {MIN_REVENUE_GROWTH:.0%}",
                at_least(revenue_growth, MIN_REVENUE_GROWTH),
                f"Growth: {or_benefit(format_percent(revenue_growth))}",
            ),
            criterion(
                f"Current ratio >= {MIN_CURRENT_RATIO}",
                at_least(current_ratio, MIN_CURRENT_RATIO),
                f"Current ratio: {or_benefit(format_number(current_ratio))}",
            ),
            criterion(
                f"Market cap >= {format_currency(MIN_MARKET_CAP)}",
                at_least(market_cap, MIN_MARKET_CAP),
                f"Market cap: {or_benefit(format_currency(market_cap))}",
            ),
        )

        passed = count_passed(criteria)
        is_eligible = passed >= MIN_PASSED and fair_value is not None and has_upside
        quality = fcd_quality_score(
            roe,
            ebitda_margin,
            revenue_growth,
            current_ratio,
            upside,
        )

        summary = (
            f"DCF analysis: fair value {or_missing(format_currency(fair_value))} "
            f"vs current {format_currency(company.current_price)}. {passed} of "
            f"{len(criteria)} criteria passed (FCD score: {quality:.1f})."
        )
        if is_eligible:
            detail = (
                f"Potential upside of {upside:.1f}%. Strong cash generation with "
                "a robust margin of safety."
            )
        elif fair_value is None:
            detail = "Fair value could not be computed (insufficient cash flow data)."
        elif not has_upside:
            detail = (
                f"Insufficient upside ({or_missing(format_upside(upside))}). A "
                f"minimum margin of safety of {min_upside:.0f}% is required."
            )
        else:
            detail = f"Only {passed} criteria passed; quality filters not met."

        return build_analysis(
            criteria,
            is_eligible=is_eligible,
            fair_value=fair_value,
            upside=upside,
            reasoning=f"{summary} {detail}",
            key_metrics={
                "fair_value": fair_value,
                "fcd_quality_score": round(quality, 1),
                "ebitda": ebitda,
                "free_cash_flow": financials.free_cash_flow,
                "roe": roe,
                "ebitda_margin": ebitda_margin,
            },
        )

    def run_ranking(
        self,
        companies: Sequence[CompanyData],
        params: FCDParams,
    ) -> list[RankBuilderResult]:
        results: list[RankBuilderResult] = []

        for company in self._universe(companies, params):
            if not self.validate_company_data(company, params):
                continue

            valuation = self.valuation(company, params)
            if valuation is None:
                continue

            analysis = self.run_analysis(company, params)
            if analysis.is_eligible:
                results.append(_ranked(company, analysis, valuation, params))

        return self._finalise(
            results,
            companies,
            params,
            sort_key=_upside_key,
        )

    def generate_rational(self, params: FCDParams) -> str:
        technical = (
            "\n- Oversold assets are prioritised for better entry timing"
            if params.use_technical_analysis
            else ""
        )
        return f"""# DISCOUNTED CASH FLOW MODEL (FCD)

**Philosophy**: Intrinsic valuation from the company's capacity to generate cash, \
projecting future flows and discounting them to present value.

## Methodology

- **Base cash flow**: Free cash flow when positive, otherwise 60% of EBITDA
- **Projection**: {params.years_projection} years converging on \
{params.growth_rate:.1%} growth a year
- **Discount rate**: {params.discount_rate:.1%} (simplified WACC including Brazil \
risk; BDRs add {BDR_DISCOUNT_PREMIUM:.0%})
- **Terminal value**: Perpetual growth of {params.growth_rate:.1%} after the \
explicit period
- **Margin of safety**: At least {params.min_margin_of_safety:.0%}

## Quality filters

- EBITDA > 0 (operating cash generation)
- Operating cash flow > 0 (real generating capacity)
- ROE >= 12% (superior return on equity)
- EBITDA margin >= 15% (high operating efficiency)
- Revenue growth >= -10% (no severe operating decline)
- Current ratio >= 1.2 (solid financial position)
- Market cap >= R$ 2B (consolidated, liquid companies){technical}

**Result**: A fair value computed with the methodology professional analysts use, \
ranked by upside."""


def _upside_key(result: RankBuilderResult) -> float:
    return or_zero(result.upside)


def _ranked(
    company: CompanyData,
    analysis: StrategyAnalysis,
    valuation: Valuation,
    params: FCDParams,
) -> RankBuilderResult:
    financials = company.financials
    margin = valuation.fair_value / company.current_price - 1
    upside = margin * 100
    roe = or_zero(financials.roe)
    ebitda_margin = or_zero(financials.ebitda_margin)
    discount_rate = discount_rate_for(company.ticker, params)
    market_cap = financials.market_cap

    return to_result(
        company,
        rational=(
            f"Approved by the DCF model with a {upside:.1f}% margin of safety. "
            f"Fair value R$ {valuation.fair_value:.2f} vs current R$ "
            f"{company.current_price:.2f}. Base: cash flow R$ "
            f"{valuation.base_cash_flow / 1_000_000:.0f}M, growth "
            f"{params.growth_rate:.1%}, WACC {discount_rate:.1%}. Quality: ROE "
            f"{roe:.1%}, EBITDA margin {ebitda_margin:.1%}. FCD score: "
            f"{analysis.key_metrics['fcd_quality_score']}/100."
        ),
        fair_value=round(valuation.fair_value, 2),
        upside=round(upside, 2),
        margin_of_safety=round(upside, 2),
        key_metrics={
            "fair_value": round(valuation.fair_value, 2),
            "base_cash_flow_millions": round(valuation.base_cash_flow / 1e6, 1),
            "enterprise_value_billions": round(valuation.enterprise_value / 1e9, 2),
            "present_value_cash_flows_billions": round(
                valuation.present_value_cash_flows / 1e9,
                2,
            ),
            "present_value_terminal_billions": round(
                valuation.present_value_terminal / 1e9,
                2,
            ),
            "terminal_value_share": round(
                valuation.present_value_terminal / valuation.enterprise_value * 100,
                1,
            ),
            "discount_rate": discount_rate,
            "growth_rate": params.growth_rate,
            "projection_years": float(params.years_projection),
            "fcd_quality_score": analysis.key_metrics["fcd_quality_score"],
            "roe": roe,
            "ebitda_margin": ebitda_margin,
            "revenue_growth": or_zero(financials.revenue_growth),
            "current_ratio": or_zero(financials.current_ratio),
            "market_cap_billions": (
                None if market_cap is None else round(market_cap / 1e9, 1)
            ),
        },
    )
