# strategies/graham.py

from collections.abc import Sequence

from equity_ranker.schemas import CompanyData, RankBuilderResult, StrategyAnalysis

from ._utils import (
    format_currency,
    format_number,
    format_percent,
    format_upside,
    graham_fair_value,
    or_benefit,
    or_missing,
    or_zero,
    upside_percent,
)
from .base import (
    BaseStrategy,
    at_least,
    at_most,
    build_analysis,
    count_passed,
    criterion,
    metric_key,
    positive_or_missing,
    to_result,
)
from .params import GrahamParams

# Upside, in percent, the Graham fair value must offer
MIN_UPSIDE = 10.0
MIN_ROE = 0.10
MIN_CURRENT_RATIO = 1.0
MAX_NET_DEBT_TO_EQUITY = 1.5
MIN_EARNINGS_GROWTH = -0.15
MIN_MARKET_CAP = 2_000_000_000
# Criteria that must pass out of nine
MIN_PASSED = 7


def quality_score(
    roe: float | None,
    current_ratio: float | None,
    net_margin: float | None,
    earnings_growth: float | None,
) -> float:
    """
    Blend balance-sheet solidity into a 0-100 ranking key.

    Each input is capped before weighting so a single outlier cannot carry
    the score; declining earnings are penalised down to -15%.

    Returns:
        float: Quality score capped at 100.
    """
    score = (
        min(or_zero(roe), 0.25) * 40
        + min(or_zero(current_ratio), 2.5) * 20
        + min(or_zero(net_margin), 0.15) * 100
        + max(0.0, or_zero(earnings_growth) + 0.15) * 50
    )
    return min(score, 100.0)


class GrahamStrategy(BaseStrategy[GrahamParams]):
    """
    Benjamin Graham's intrinsic value with balance-sheet quality gates.
    """

    name = "graham"
    params_type = GrahamParams

    def validate_company_data(
        self,
        company: CompanyData,
        params: GrahamParams,
    ) -> bool:
        eps = company.financials.eps
        bvps = company.financials.book_value_per_share
        return eps is not None and eps > 0 and bvps is not None and bvps > 0

    def run_analysis(
        self,
        company: CompanyData,
        params: GrahamParams,
    ) -> StrategyAnalysis:
        financials = company.financials
        eps = financials.eps
        bvps = financials.book_value_per_share
        roe = financials.roe
        current_ratio = financials.current_ratio
        net_margin = financials.net_margin
        net_debt_to_equity = financials.net_debt_to_equity
        earnings_growth = financials.earnings_growth
        market_cap = financials.market_cap

        fair_value = graham_fair_value(eps, bvps)
        upside = upside_percent(fair_value, company.current_price)
        has_upside = upside is not None and upside >= MIN_UPSIDE

        criteria = (
            criterion(
                f"Upside >= {MIN_UPSIDE:.0f}%",
                has_upside,
                f"Upside: {or_missing(format_upside(upside))}",
            ),
            criterion(
                "Positive EPS",
                eps is not None and eps > 0,
                f"EPS: {or_missing(format_currency(eps))}",
            ),
            criterion(
                "Positive book value per share",
                bvps is not None and bvps > 0,
                f"BVPS: {or_missing(format_currency(bvps))}",
            ),
            criterion(
                f"ROE >= {MIN_ROE:.0%}",
                at_least(roe, MIN_ROE),
                f"ROE: {or_benefit(format_percent(roe))}",
            ),
            criterion(
                f"Current ratio >= {MIN_CURRENT_RATIO}",
                at_least(current_ratio, MIN_CURRENT_RATIO),
                f"Current ratio: {or_benefit(format_number(current_ratio))}",
            ),
            criterion(
                "Positive net margin",
                positive_or_missing(net_margin),
                f"Net margin: {or_benefit(format_percent(net_margin))}",
            ),
            criterion(
                f"Net debt/equity <= {MAX_NET_DEBT_TO_EQUITY:.0%}",
                at_most(net_debt_to_equity, MAX_NET_DEBT_TO_EQUITY),
                f"Net debt/equity: {or_benefit(format_number(net_debt_to_equity, 1))}",
            ),
            criterion(
                f"Earnings growth >= {MIN_EARNINGS_GROWTH:.0%}",
                at_least(earnings_growth, MIN_EARNINGS_GROWTH),
                f"Growth: {or_benefit(format_percent(earnings_growth))}",
            ),
            criterion(
                "Market cap >= R$ 2B",
                at_least(market_cap, MIN_MARKET_CAP),
                f"Market cap: {or_benefit(format_currency(market_cap))}",
            ),
        )

        passed = count_passed(criteria)
        is_eligible = passed >= MIN_PASSED and fair_value is not None and has_upside
        quality = quality_score(roe, current_ratio, net_margin, earnings_growth)

        if is_eligible:
            reasoning = (
                f"Approved by the Graham model with a {upside:.1f}% margin of "
                f"safety. Quality score: {quality:.1f}/100."
            )
        else:
            reasoning = "Fails the Graham criteria: " + ", ".join(
                _rejection_reasons(passed, len(criteria), fair_value, upside),
            ) + "."

        return build_analysis(
            criteria,
            is_eligible=is_eligible,
            fair_value=fair_value,
            upside=upside,
            reasoning=reasoning,
            key_metrics={
                "eps": eps,
                "bvps": bvps,
                "quality_score": round(quality, 1),
                "pe": financials.pe,
                "pb": financials.pb,
                "roe": roe,
            },
        )

    def run_ranking(
        self,
        companies: Sequence[CompanyData],
        params: GrahamParams,
    ) -> list[RankBuilderResult]:
        results: list[RankBuilderResult] = []

        for company in self._universe(companies, params):
            if not self.validate_company_data(company, params):
                continue

            market_cap = company.financials.market_cap
            if market_cap is None or market_cap < MIN_MARKET_CAP:
                continue

            analysis = self.run_analysis(company, params)
            if not analysis.is_eligible:
                continue

            margin = analysis.fair_value / company.current_price - 1
            if margin < params.margin_of_safety:
                continue

            results.append(_ranked(company, analysis, margin))

        return self._finalise(
            results,
            companies,
            params,
            sort_key=metric_key("quality_score"),
        )

    def generate_rational(self, params: GrahamParams) -> str:
        return f"""# ENHANCED GRAHAM MODEL

**Philosophy**: Benjamin Graham's classic formula for finding cheap shares of sound \
companies.

**Strategy**: Fair price = sqrt(22.5 x EPS x BVPS), requiring a \
{params.margin_of_safety:.0%} margin of safety.

## Quality filters

- ROE >= 10% (consistent profitability)
- Current ratio >= 1.0 (able to meet short-term obligations)
- Net margin > 0% (profitable)
- Earnings growth >= -15% (not in severe decline)
- Net debt/equity <= 150% (controlled leverage)

**Ordering**: By quality score (financial solidity plus margin of safety).

**Goal**: Undervalued companies that are also financially healthy, avoiding value \
traps."""


def _rejection_reasons(
    passed: int,
    total: int,
    fair_value: float | None,
    upside: float | None,
) -> list[str]:
    reasons: list[str] = []

    if passed < MIN_PASSED:
        reasons.append(f"insufficient fundamentals ({passed}/{total} passed)")
    if fair_value is None:
        reasons.append("fair value could not be computed")
    if upside is None:
        reasons.append("upside could not be computed")
    elif upside < MIN_UPSIDE:
        reasons.append(
            f"insufficient upside ({upside:.1f}%, minimum {MIN_UPSIDE:.0f}%)",
        )

    return reasons


def _ranked(
    company: CompanyData,
    analysis: StrategyAnalysis,
    margin: float,
) -> RankBuilderResult:
    financials = company.financials
    quality = analysis.key_metrics["quality_score"]
    roe = or_zero(financials.roe)
    current_ratio = or_zero(financials.current_ratio)
    net_margin = or_zero(financials.net_margin)

    return to_result(
        company,
        fair_value=round(analysis.fair_value, 2),
        upside=round(analysis.upside, 2),
        margin_of_safety=round(margin * 100, 2),
        rational=(
            f"Approved by the Graham quality model with a {margin * 100:.1f}% "
            f"margin of safety. Solid company: ROE {roe * 100:.1f}%, current "
            f"ratio {current_ratio:.2f}, net margin {net_margin * 100:.1f}%. "
            f"Quality score: {quality}/100."
        ),
        key_metrics={
            **analysis.key_metrics,
            "current_ratio": current_ratio,
            "net_margin": net_margin,
            "earnings_growth": or_zero(financials.earnings_growth),
            "market_cap": financials.market_cap,
        },
    )
