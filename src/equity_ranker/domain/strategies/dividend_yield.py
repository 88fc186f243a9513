# strategies/dividend_yield.py

from collections.abc import Sequence

from equity_ranker.schemas import (
    CompanyData,
    FinancialSnapshot,
    RankBuilderResult,
    StrategyAnalysis,
)

from ._utils import (
    format_currency,
    format_number,
    format_percent,
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
from .params import DividendYieldParams

MIN_ROE = 0.10
MIN_CURRENT_RATIO = 1.2
MAX_NET_DEBT_TO_EQUITY = 1.0
# Admissible P/L band in the per-company analysis
MIN_PE = 4.0
MAX_PE = 25.0
# The ranking rejects P/L below this stricter floor
RANKING_MIN_PE = 5.0
MIN_NET_MARGIN = 0.05
MIN_MARKET_CAP = 1_000_000_000
# Criteria that must pass out of seven
MIN_PASSED = 5


def sustainability_score(
    dividend_yield: float | None,
    roe: float | None,
    current_ratio: float | None,
    net_debt_to_equity: float | None,
    net_margin: float | None,
    roic: float | None,
) -> float:
    """
    Score how sustainable a dividend is, rather than how large.

    Rewards return on equity, liquidity, margin and ROIC, penalises leverage,
    and lets the yield contribute without dominating.

    Returns:
        float: Sustainability score capped at 100.
    """
    score = (
        min(or_zero(roe), 0.30) * 25
        + min(or_zero(current_ratio), 3.0) * 15
        + max(0.0, 50 - or_zero(net_debt_to_equity) * 50)
        + min(or_zero(net_margin), 0.20) * 75
        + min(or_zero(roic), 0.25) * 20
        + or_zero(dividend_yield) * 50
    )
    return min(score, 100.0)


class DividendYieldStrategy(BaseStrategy[DividendYieldParams]):
    """
    Anti dividend-trap model: high yield backed by a healthy business.
    """

    name = "dividendYield"
    params_type = DividendYieldParams

    def validate_company_data(
        self,
        company: CompanyData,
        params: DividendYieldParams,
    ) -> bool:
        dy = company.financials.dividend_yield
        return dy is not None and dy >= params.min_yield

    def run_analysis(
        self,
        company: CompanyData,
        params: DividendYieldParams,
    ) -> StrategyAnalysis:
        financials = company.financials
        min_yield = params.min_yield
        dy = financials.dividend_yield
        roe = financials.roe
        current_ratio = financials.current_ratio
        net_debt_to_equity = financials.net_debt_to_equity
        pe = financials.pe
        net_margin = financials.net_margin
        market_cap = financials.market_cap

        has_yield = dy is not None and dy >= min_yield

        criteria = (
            criterion(
                f"Dividend yield >= {min_yield:.0%}",
                has_yield,
                f"DY: {or_missing(format_percent(dy))}",
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
                f"Net debt/equity <= {MAX_NET_DEBT_TO_EQUITY:.0%}",
                at_most(net_debt_to_equity, MAX_NET_DEBT_TO_EQUITY),
                f"Net debt/equity: {or_benefit(format_number(net_debt_to_equity, 1))}",
            ),
            criterion(
                f"P/L between {MIN_PE:.0f} and {MAX_PE:.0f}",
                pe is None or MIN_PE <= pe <= MAX_PE,
                f"P/L: {or_benefit(format_number(pe, 1))}",
            ),
            criterion(
                f"Net margin >= {MIN_NET_MARGIN:.0%}",
                at_least(net_margin, MIN_NET_MARGIN),
                f"Net margin: {or_benefit(format_percent(net_margin))}",
            ),
            criterion(
                "Market cap >= R$ 1B",
                at_least(market_cap, MIN_MARKET_CAP),
                f"Market cap: {or_benefit(format_currency(market_cap))}",
            ),
        )

        passed = count_passed(criteria)
        is_eligible = passed >= MIN_PASSED and has_yield
        sustainability = sustainability_score(
            dy,
            roe,
            current_ratio,
            net_debt_to_equity,
            net_margin,
            financials.roic,
        )

        if is_eligible:
            reasoning = (
                f"Approved by the anti dividend-trap model with DY "
                f"{format_percent(dy)}. Sustainability score: "
                f"{sustainability:.1f}/100."
            )
        else:
            reasoning = (
                f"Possible dividend trap ({passed}/{len(criteria)} criteria passed)."
            )

        return build_analysis(
            criteria,
            is_eligible=is_eligible,
            fair_value=None,
            upside=None if dy is None else dy * 100,
            reasoning=reasoning,
            key_metrics={
                "dividend_yield": dy,
                "sustainability_score": round(sustainability, 1),
                "roe": roe,
                "pe": pe,
                "market_cap": market_cap,
            },
        )

    def run_ranking(
        self,
        companies: Sequence[CompanyData],
        params: DividendYieldParams,
    ) -> list[RankBuilderResult]:
        results: list[RankBuilderResult] = []

        for company in self._universe(companies, params):
            if not self.validate_company_data(company, params):
                continue
            if not _passes_strict_gates(company.financials, params.min_yield):
                continue

            analysis = self.run_analysis(company, params)
            if analysis.is_eligible:
                results.append(_ranked(company, analysis))

        return self._finalise(
            results,
            companies,
            params,
            sort_key=metric_key("sustainability_score"),
        )

    def generate_rational(self, params: DividendYieldParams) -> str:
        return f"""# ANTI DIVIDEND-TRAP MODEL

**Philosophy**: Sustainable passive income, avoiding companies that pay high \
dividends while in decline.

**Strategy**: Dividend yield >= {params.min_yield:.1%} plus strict sustainability \
filters.

**Problem solved**: Removes dividend traps, companies whose yield is inflated by a \
falling price or unsustainable payouts.

## Anti-trap filters

- ROE >= 10% (strong, consistent profitability)
- Current ratio >= 1.2 (real capacity to pay dividends)
- P/L between 5 and 25 (avoids artificial prices and overpriced companies)
- Net margin >= 5% (real, healthy profitability)
- Net debt/equity <= 100% (not compromised by debt)
- Market cap >= R$ 1B (adequate size and liquidity)

**Ordering**: By sustainability score (yield combined with financial health).

**Goal**: Quality passive income, not traps in disguise."""


def _passes_strict_gates(financials: FinancialSnapshot, min_yield: float) -> bool:
    """
    Ranking-only gates: every quality field must be present and in range.

    Leverage alone keeps the benefit of the doubt.

    Returns:
        bool: True if the company may enter the ranking.
    """
    required = (
        financials.dividend_yield,
        financials.roe,
        financials.current_ratio,
        financials.pe,
        financials.net_margin,
        financials.market_cap,
    )
    if any(value is None for value in required):
        return False

    return (
        financials.dividend_yield >= min_yield
        and financials.roe >= MIN_ROE
        and financials.current_ratio >= MIN_CURRENT_RATIO
        and at_most(financials.net_debt_to_equity, MAX_NET_DEBT_TO_EQUITY)
        and RANKING_MIN_PE <= financials.pe <= MAX_PE
        and financials.net_margin >= MIN_NET_MARGIN
        and financials.market_cap >= MIN_MARKET_CAP
    )


def _ranked(company: CompanyData, analysis: StrategyAnalysis) -> RankBuilderResult:
    financials = company.financials
    sustainability = analysis.key_metrics["sustainability_score"]

    return to_result(
        company,
        rational=(
            f"Approved by the anti dividend-trap model with DY "
            f"{format_percent(financials.dividend_yield)}. Sustainable company: "
            f"ROE {format_percent(financials.roe)}, current ratio "
            f"{financials.current_ratio:.2f}, net margin "
            f"{format_percent(financials.net_margin)}. Sustainability score: "
            f"{sustainability}/100."
        ),
        key_metrics={
            "dividend_yield": financials.dividend_yield,
            "sustainability_score": sustainability,
            "pe": financials.pe,
            "roe": financials.roe,
            "roic": or_zero(financials.roic),
            "current_ratio": financials.current_ratio,
            "net_debt_to_equity": or_zero(financials.net_debt_to_equity),
            "net_margin": financials.net_margin,
            "market_cap": financials.market_cap,
        },
    )
