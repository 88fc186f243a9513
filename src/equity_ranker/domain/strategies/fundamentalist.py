# strategies/fundamentalist.py

from collections.abc import Sequence
from typing import NamedTuple

from equity_ranker.schemas import CompanyData, RankBuilderResult, StrategyAnalysis

from ._utils import (
    format_number,
    format_percent,
    is_financial_sector,
    or_missing,
)
from .base import (
    BaseStrategy,
    build_analysis,
    criterion,
    metric_key,
    to_result,
)
from .params import CompanySize, FundamentalistParams

# Sub-score ceilings; they sum to 100
QUALITY_POINTS = 35
PRICE_POINTS = 30
LEVERAGE_POINTS = 20
DIVIDEND_POINTS = 15

# Sub-scores at or above these count as a passed criterion
QUALITY_PASS = 25
PRICE_PASS = 20
LEVERAGE_PASS = 15
DIVIDEND_PASS = 8

MIN_DIVIDEND_YIELD = 0.04
MIN_SECONDARY_YIELD = 0.02

_SIZE_DESCRIPTIONS = {
    CompanySize.ALL: "All companies",
    CompanySize.SMALL_CAPS: "Small caps (< R$ 2B)",
    CompanySize.MID_CAPS: "Mid caps (R$ 2-10B)",
    CompanySize.BLUE_CHIPS: "Blue chips (> R$ 10B)",
}


class Assessment(NamedTuple):
    """
    One sub-score of the 3+1 method.

    Attributes:
        indicator: Name of the indicator the sub-score was read from.
        value: The indicator's value, if any.
        points: Points awarded.
        note: Human-readable explanation.
        is_warning: True when the note is a concern rather than a strength.
        disqualifies: True when the reading rules the company out.
    """

    indicator: str
    value: float | None
    points: int
    note: str
    is_warning: bool = False
    disqualifies: bool = False


def has_relevant_debt(net_debt_to_ebitda: float | None) -> bool:
    return net_debt_to_ebitda is not None and net_debt_to_ebitda > 0


def assess_quality(
    company: CompanyData,
    params: FundamentalistParams,
    *,
    financial: bool,
    indebted: bool,
) -> Assessment:
    """
    Score business quality on ROE, or ROIC for indebted non-financials.

    Returns:
        Assessment: Up to 35 points; a missing or sub-5% reading disqualifies.
    """
    if financial or not indebted:
        name, value, floor = "ROE", company.financials.roe, params.min_roe
    else:
        name, value, floor = "ROIC", company.financials.roic, params.min_roic

    if value is None:
        return Assessment(name, None, 0, f"{name} not available", True, True)

    shown = format_percent(value)
    if value >= floor:
        return Assessment(name, value, QUALITY_POINTS, f"excellent {name} of {shown}")
    if value >= 0.10:
        return Assessment(name, value, 25, f"adequate {name} of {shown}")
    if value >= 0.05:
        return Assessment(name, value, 15, f"low {name} of {shown}", True)
    return Assessment(name, value, 5, f"very low {name} of {shown}", True, True)


def _pe_against_growth(pe: float, cagr: float | None) -> tuple[int, str, bool]:
    if cagr is not None and cagr > 0:
        growth = cagr * 100
        versus = f"P/L {pe:.1f}x vs 5y CAGR {growth:.1f}%"
        if pe <= growth * 0.8:
            return PRICE_POINTS, f"{versus}, very attractive", False
        if pe <= growth:
            return 25, f"{versus}, attractive", False
        if pe <= growth * 1.5:
            return 15, f"{versus}, moderate", False
        return 5, f"{versus}, expensive", True

    if pe <= 10:
        return 25, f"attractive P/L of {pe:.1f}x (no 5y CAGR)", False
    if pe <= 15:
        return 15, f"moderate P/L of {pe:.1f}x (no 5y CAGR)", False
    return 5, f"high P/L of {pe:.1f}x (no 5y CAGR)", True


def _tiered_multiple(name: str, value: float) -> tuple[int, str, bool]:
    # financials read P/L, indebted companies EV/EBITDA, on different scales
    tiers = (8, 12, 18, 25) if name == "P/L" else (6, 10, 15, 20)
    labels = (
        (PRICE_POINTS, "very attractive", False),
        (25, "attractive", False),
        (15, "moderate", False),
        (10, "high", True),
    )
    for ceiling, (points, label, warning) in zip(tiers, labels, strict=True):
        if value <= ceiling:
            return points, f"{label} {name} of {value:.1f}x", warning
    return 5, f"very high {name} of {value:.1f}x", True


def assess_price(
    company: CompanyData,
    *,
    financial: bool,
    indebted: bool,
) -> Assessment:
    """
    Score the share price on P/L (against growth when debt-free) or EV/EBITDA.

    Returns:
        Assessment: Up to 30 points; a missing or non-positive multiple
            disqualifies.
    """
    financials = company.financials

    if not financial and indebted:
        name, value = "EV/EBITDA", financials.ev_ebitda
    elif financial:
        name, value = "P/L", financials.pe
    else:
        name, value = "P/L vs 5y earnings CAGR", financials.pe

    if value is None or value <= 0:
        return Assessment(name, value, 0, f"{name} not available", True, True)

    if financial or indebted:
        points, note, warning = _tiered_multiple(name, value)
    else:
        points, note, warning = _pe_against_growth(value, financials.earnings_cagr_5y)

    return Assessment(name, value, points, note, warning)


def assess_leverage(
    company: CompanyData,
    params: FundamentalistParams,
    *,
    financial: bool,
) -> Assessment:
    """
    Score net debt over EBITDA. Not applicable to banks and insurers.

    Returns:
        Assessment: Up to 20 points; leverage above the ceiling disqualifies.
    """
    name = "Net debt/EBITDA"
    value = company.financials.net_debt_to_ebitda

    if financial:
        return Assessment(name, None, LEVERAGE_POINTS, "leverage not applicable")
    if value is None:
        return Assessment(name, None, 10, "leverage data not available", True)
    if value < 0:
        return Assessment(name, value, LEVERAGE_POINTS, "net cash position")
    if value <= 1:
        note = f"very low leverage: {value:.1f}x"
        return Assessment(name, value, LEVERAGE_POINTS, note)
    if value <= 2:
        return Assessment(name, value, 15, f"low leverage: {value:.1f}x")
    if value <= params.max_debt_to_ebitda:
        return Assessment(name, value, 10, f"moderate leverage: {value:.1f}x", True)
    return Assessment(name, value, 0, f"high leverage: {value:.1f}x", True, True)


def assess_dividends(
    company: CompanyData,
    params: FundamentalistParams,
) -> Assessment:
    """
    Bonus for sustainable dividends: payout inside the band plus yield.

    Returns:
        Assessment: Up to 15 points; never disqualifies.
    """
    name = "Dividends"
    payout = company.financials.payout
    dy = company.financials.dividend_yield

    if payout is not None and dy is not None:
        shown = f"payout {format_percent(payout)}, DY {format_percent(dy)}"
        in_band = params.min_payout <= payout <= params.max_payout
        if in_band and dy >= MIN_DIVIDEND_YIELD:
            note = f"excellent dividend payer: {shown}"
            return Assessment(name, dy, DIVIDEND_POINTS, note)
        if payout >= params.min_payout and dy >= MIN_SECONDARY_YIELD:
            return Assessment(name, dy, 10, f"good dividend payer: {shown}")
        if payout > 0 and dy > 0:
            return Assessment(name, dy, 5, f"moderate dividends: {shown}")
        return Assessment(name, dy, 0, "no dividends or very low payout", True)

    if dy is not None and dy >= MIN_DIVIDEND_YIELD:
        return Assessment(name, dy, 8, f"good dividend yield: {format_percent(dy)}")

    return Assessment(name, dy, 0, "dividend data insufficient", True)


class FundamentalistStrategy(BaseStrategy[FundamentalistParams]):
    """
    Simplified 3+1 fundamental analysis: quality, price, leverage, dividends.

    The quality and price indicators adapt to the company: debt-free companies
    are read on ROE and P/L against earnings growth, indebted ones on ROIC and
    EV/EBITDA, and banks and insurers on ROE and P/L with leverage skipped.
    """

    name = "fundamentalist"
    params_type = FundamentalistParams

    def validate_company_data(
        self,
        company: CompanyData,
        params: FundamentalistParams,
    ) -> bool:
        financials = company.financials
        has_return = financials.roe is not None or financials.roic is not None
        return company.current_price > 0 and has_return

    def run_analysis(
        self,
        company: CompanyData,
        params: FundamentalistParams,
    ) -> StrategyAnalysis:
        financial = is_financial_sector(company.sector)
        indebted = has_relevant_debt(company.financials.net_debt_to_ebitda)

        quality = assess_quality(
            company,
            params,
            financial=financial,
            indebted=indebted,
        )
        price = assess_price(company, financial=financial, indebted=indebted)
        leverage = assess_leverage(company, params, financial=financial)
        dividends = assess_dividends(company, params)
        assessments = (quality, price, leverage, dividends)

        score = float(min(sum(item.points for item in assessments), 100))
        is_eligible = not any(item.disqualifies for item in assessments)

        payout = company.financials.payout
        dy = company.financials.dividend_yield
        criteria = (
            criterion(
                "Company quality",
                quality.points >= QUALITY_PASS,
                f"{quality.indicator}: {or_missing(format_percent(quality.value))}",
            ),
            criterion(
                "Attractive price",
                price.points >= PRICE_PASS,
                f"{price.indicator}: {or_missing(_multiple(price.value))}",
            ),
            criterion(
                "Controlled leverage",
                leverage.points >= LEVERAGE_PASS,
                "N/A (bank/insurer)"
                if financial
                else f"Net debt/EBITDA: {or_missing(_multiple(leverage.value))}",
            ),
            criterion(
                "Dividends (bonus)",
                dividends.points >= DIVIDEND_PASS,
                f"Payout: {or_missing(format_percent(payout))}, "
                f"DY: {or_missing(format_percent(dy))}",
            ),
        )

        key_metrics: dict[str, float | None] = {
            "fundamentalist_score": score,
            "quality_indicator": quality.value,
            "price_indicator": price.value,
            "payout": payout,
            "dividend_yield": dy,
        }
        if not financial:
            key_metrics["net_debt_to_ebitda"] = company.financials.net_debt_to_ebitda
        if quality.indicator == "ROIC":
            key_metrics["roic"] = quality.value
        else:
            key_metrics["roe"] = quality.value
        if price.indicator == "EV/EBITDA":
            key_metrics["ev_ebitda"] = price.value
        else:
            key_metrics["pe"] = price.value
            if not financial:
                key_metrics["earnings_cagr_5y"] = company.financials.earnings_cagr_5y

        return build_analysis(
            criteria,
            is_eligible=is_eligible,
            fair_value=None,
            upside=None,
            reasoning=_reasoning(assessments, financial=financial, indebted=indebted),
            key_metrics=key_metrics,
            score=score,
        )

    def run_ranking(
        self,
        companies: Sequence[CompanyData],
        params: FundamentalistParams,
    ) -> list[RankBuilderResult]:
        results = [
            to_result(
                company,
                rational=analysis.reasoning,
                key_metrics=analysis.key_metrics,
            )
            for company in self._universe(companies, params)
            if self.validate_company_data(company, params)
            and (analysis := self.run_analysis(company, params)).is_eligible
        ]

        return self._finalise(
            results,
            companies,
            params,
            sort_key=metric_key("fundamentalist_score"),
        )

    def generate_rational(self, params: FundamentalistParams) -> str:
        return f"""# FUNDAMENTALIST 3+1 STRATEGY

**Philosophy**: Simplified fundamental analysis using only three essential \
indicators for fast, precise investment decisions.

## Adaptive methodology

- **Companies without relevant debt**: ROE + P/L vs 5y earnings CAGR + leverage
- **Companies with relevant debt**: ROIC + EV/EBITDA + leverage
- **Banks and insurers**: ROE + P/L (leverage not applicable)
- **Dividend bonus**: payout + dividend yield for passive income

## Parameters

- **Size filter**: {_SIZE_DESCRIPTIONS[params.company_size]}
- **Minimum ROE**: {params.min_roe:.0%} (debt-free companies)
- **Minimum ROIC**: {params.min_roic:.0%} (indebted companies)
- **Net debt/EBITDA**: at most {params.max_debt_to_ebitda:.1f}x
- **Ideal payout**: {params.min_payout:.0%} - {params.max_payout:.0%}

**Scoring**: quality {QUALITY_POINTS}, price {PRICE_POINTS}, leverage \
{LEVERAGE_POINTS}, dividend bonus {DIVIDEND_POINTS} points, capped at 100.

**Result**: Quality companies at attractive prices with controlled leverage, ranked \
by fundamentalist score."""


def _multiple(value: float | None) -> str | None:
    return None if value is None else f"{format_number(value, 1)}x"


def _reasoning(
    assessments: Sequence[Assessment],
    *,
    financial: bool,
    indebted: bool,
) -> str:
    if financial:
        profile = "bank/insurer"
    elif indebted:
        profile = "with debt"
    else:
        profile = "debt-free"

    strengths = [item.note for item in assessments if not item.is_warning]
    concerns = [item.note for item in assessments if item.is_warning]
    total = min(sum(item.points for item in assessments), 100)

    parts = [f"Fundamentalist 3+1 analysis ({profile}): score {total}/100."]
    if strengths:
        parts.append(f"Strengths: {', '.join(strengths[:2])}.")
    if concerns:
        parts.append(f"Attention: {', '.join(concerns[:2])}.")
    return " ".join(parts)
