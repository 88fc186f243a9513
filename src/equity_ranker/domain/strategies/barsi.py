# strategies/barsi.py

from collections import defaultdict
from collections.abc import Sequence
from statistics import fmean

from equity_ranker.schemas import (
    CompanyData,
    DividendPayment,
    RankBuilderResult,
    StrategyAnalysis,
)

from ._utils import (
    format_currency,
    format_number,
    format_percent,
    indicator,
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
    positive_or_missing,
    to_result,
)
from .params import BarsiParams

# Perennial sectors of the B.E.S.T. method plus gas
PERENNIAL_SECTORS: tuple[str, ...] = (
    "bancos",
    "energia elétrica",
    "saneamento",
    "seguros",
    "telecomunicações",
    "gás",
    "água e saneamento",
    "energia",
    "serviços financeiros",
    "utilities",
    "utilidade pública",
)

# Dividend history window, in calendar years back from the latest payment
DIVIDEND_LOOKBACK_YEARS = 6
# Fewer distinct paying years than this make the average unreliable
MIN_DIVIDEND_YEARS = 2
# Share of inspected years that must have paid a meaningful yield
CONSISTENCY_RATIO = 0.8
MIN_HISTORICAL_YIELD = 0.01
# Without enough history, a current yield above this counts as consistent
FALLBACK_YIELD = 0.03

MIN_PAYOUT = 0.20
MAX_PAYOUT = 0.95
MIN_MARKET_CAP = 1_000_000_000
# Criteria that must pass out of eight
MIN_PASSED = 6


def is_perennial_sector(sector: str | None) -> bool:
    if not sector:
        return False

    lowered = sector.lower()
    return any(
        marker in lowered or lowered in marker for marker in PERENNIAL_SECTORS
    )


def average_yearly_dividend(payments: Sequence[DividendPayment]) -> float | None:
    """
    Average the yearly dividend totals over the recent lookback window.

    Payments are summed per calendar year. The window is anchored on the
    latest year present so the result depends only on the history supplied.

    Returns:
        float | None: Mean yearly total, or None with fewer than two paying
            years in the window.
    """
    if not payments:
        return None

    latest = max(payment.year for payment in payments)
    cutoff = latest - DIVIDEND_LOOKBACK_YEARS

    totals: dict[int, float] = defaultdict(float)
    for payment in payments:
        if payment.year > cutoff:
            totals[payment.year] += payment.amount

    if len(totals) < MIN_DIVIDEND_YEARS:
        return None

    return fmean(totals.values())


def reference_dividend(company: CompanyData) -> float | None:
    """
    Dividend per share the ceiling price is built on.

    Returns:
        float | None: Historical yearly average, else the last dividend,
            else None.
    """
    average = average_yearly_dividend(company.dividend_history)
    if average is not None and average > 0:
        return average

    last = company.financials.last_dividend
    return last if last is not None and last > 0 else None


def ceiling_price(
    dividend: float | None,
    target_yield: float,
    multiplier: float = 1.0,
) -> float | None:
    """
    Highest price at which the dividend still delivers the target yield.

    Returns:
        float | None: ``dividend / target_yield * multiplier``, or None.
    """
    if dividend is None or dividend <= 0 or target_yield <= 0:
        return None
    return dividend / target_yield * multiplier


def has_consistent_dividends(company: CompanyData, min_years: int) -> bool:
    """
    Check the company kept paying a meaningful yield in recent years.

    With less history than ``min_years``, a current yield above 3% is taken
    as evidence of a regular payer.

    Returns:
        bool: True if at least 80% of the inspected years paid over 1%.
    """
    history = company.historical_financials
    if len(history) < min_years:
        dy = company.financials.dividend_yield
        return dy is not None and dy > FALLBACK_YIELD

    recent = sorted(history, key=lambda snapshot: snapshot.year, reverse=True)
    paying = sum(
        1
        for snapshot in recent[:min_years]
        if snapshot.dividend_yield is not None
        and snapshot.dividend_yield > MIN_HISTORICAL_YIELD
    )
    return paying >= int(min_years * CONSISTENCY_RATIO)


def barsi_score(
    discount: float | None,
    dividend_yield: float | None,
    consistent: bool,
    roe: float | None,
    current_ratio: float | None,
    net_margin: float | None,
) -> float:
    """
    Weight the discount to the ceiling 40, dividend quality 35, health 25.

    Args:
        discount: Discount from the ceiling price, in percent.
        dividend_yield: Current dividend yield as a ratio.
        consistent: Whether the dividend history is consistent.
        roe: Return on equity as a ratio.
        current_ratio: Current ratio.
        net_margin: Net margin as a ratio.

    Returns:
        float: Barsi score capped at 100.
    """
    discount_part = min(discount / 30 * 40, 40.0) if discount and discount > 0 else 0
    dividend_part = min(or_zero(dividend_yield) * 200 + (15 if consistent else 0), 35)
    health_part = min(
        min(or_zero(roe), 0.25) * 40
        + min(or_zero(current_ratio), 2.5) * 4
        + min(or_zero(net_margin), 0.15) * 33,
        25,
    )
    return min(discount_part + dividend_part + health_part, 100.0)


class BarsiStrategy(BaseStrategy[BarsiParams]):
    """
    Luiz Barsi's dividend buy-and-hold: perennial sectors below a ceiling price.
    """

    name = "barsi"
    params_type = BarsiParams

    def validate_company_data(self, company: CompanyData, params: BarsiParams) -> bool:
        dy = company.financials.dividend_yield
        last = company.financials.last_dividend
        return (
            dy is not None
            and dy > 0
            and last is not None
            and last > 0
            and company.current_price > 0
        )

    def run_analysis(
        self,
        company: CompanyData,
        params: BarsiParams,
    ) -> StrategyAnalysis:
        averaged = params.use_7_year_averages
        price = company.current_price

        dy = indicator(company, "dividend_yield", use_averages=averaged)
        roe = indicator(company, "roe", use_averages=averaged)
        net_debt_to_equity = indicator(
            company,
            "net_debt_to_equity",
            use_averages=averaged,
        )
        current_ratio = indicator(company, "current_ratio", use_averages=averaged)
        net_margin = indicator(company, "net_margin", use_averages=averaged)
        payout = company.financials.payout
        market_cap = company.financials.market_cap

        dividend = reference_dividend(company)
        ceiling = ceiling_price(
            dividend,
            params.target_dividend_yield,
            params.max_price_to_pay_multiplier,
        )
        under_ceiling = ceiling is not None and price <= ceiling
        discount = None if ceiling is None else (ceiling - price) / ceiling * 100

        perennial = is_perennial_sector(company.sector)
        consistent = has_consistent_dividends(company, params.min_consecutive_dividends)
        profitable = roe is not None and roe >= params.min_roe
        low_debt = at_most(net_debt_to_equity, params.max_debt_to_equity)
        reasonable_payout = payout is None or MIN_PAYOUT < payout < MAX_PAYOUT

        discount_text = "" if discount is None else f" ({discount:.1f}% discount)"
        criteria = (
            criterion(
                "Perennial sector (B.E.S.T.)"
                if params.focus_on_best
                else "Perennial sector (optional)",
                not params.focus_on_best or perennial,
                f"Sector: {or_missing(company.sector)}"
                f"{' (perennial)' if perennial else ' (not perennial)'}",
            ),
            criterion(
                f"Price <= ceiling (DY {params.target_dividend_yield:.1%})",
                under_ceiling,
                f"Price: {format_currency(price)} | Ceiling: "
                f"{or_missing(format_currency(ceiling))}{discount_text}",
            ),
            criterion(
                f"Consistent dividends ({params.min_consecutive_dividends}y)",
                consistent,
                f"History: {'consistent' if consistent else 'inconsistent'} | "
                f"Current DY: {or_missing(format_percent(dy))}",
            ),
            criterion(
                f"ROE >= {params.min_roe:.0%}",
                profitable,
                f"ROE: {or_missing(format_percent(roe))}",
            ),
            criterion(
                f"Net debt/equity <= {params.max_debt_to_equity:.0%}",
                low_debt,
                f"Net debt/equity: {or_missing(format_number(net_debt_to_equity, 1))}",
            ),
            criterion(
                "Positive net margin",
                positive_or_missing(net_margin),
                f"Net margin: {or_missing(format_percent(net_margin))}",
            ),
            criterion(
                f"Sustainable payout ({MIN_PAYOUT:.0%}-{MAX_PAYOUT:.0%})",
                reasonable_payout,
                f"Payout: {or_missing(format_percent(payout))}",
            ),
            criterion(
                f"Market cap >= {format_currency(MIN_MARKET_CAP)}",
                at_least(market_cap, MIN_MARKET_CAP),
                f"Market cap: {or_missing(format_currency(market_cap))}",
            ),
        )

        passed = count_passed(criteria)
        essentials = (under_ceiling, consistent, profitable, low_debt)
        is_eligible = all(essentials) and passed >= MIN_PASSED
        score = barsi_score(
            discount,
            dy,
            consistent,
            roe,
            current_ratio,
            net_margin,
        )

        if is_eligible:
            reasoning = (
                f"Approved by the Barsi method: price {format_currency(price)} is "
                f"{discount:.1f}% below the ceiling {format_currency(ceiling)} for "
                f"a {params.target_dividend_yield:.1%} yield. Barsi score: "
                f"{score:.1f}/100."
            )
        else:
            failures = [
                label
                for label, ok in zip(
                    (
                        "price above ceiling",
                        "inconsistent dividends",
                        "insufficient ROE",
                        "high leverage",
                    ),
                    essentials,
                    strict=True,
                )
                if not ok
            ]
            shortfall = ", ".join(failures) or "too few criteria met"
            reasoning = (
                f"Does not meet the Barsi method: {shortfall}. Criteria: "
                f"{passed}/{len(criteria)}."
            )

        return build_analysis(
            criteria,
            is_eligible=is_eligible,
            fair_value=ceiling,
            upside=discount,
            reasoning=reasoning,
            key_metrics={
                "ceiling_price": ceiling,
                "discount_from_ceiling": discount,
                "barsi_score": round(score, 1),
                "dividend_yield": dy,
                "average_dividend": dividend,
                "roe": roe,
                "payout": payout,
            },
        )

    def run_ranking(
        self,
        companies: Sequence[CompanyData],
        params: BarsiParams,
    ) -> list[RankBuilderResult]:
        results: list[RankBuilderResult] = []

        for company in self._universe(companies, params):
            if not self.validate_company_data(company, params):
                continue
            if params.focus_on_best and not is_perennial_sector(company.sector):
                continue

            analysis = self.run_analysis(company, params)
            if analysis.is_eligible:
                results.append(_ranked(company, analysis, params))

        return self._finalise(
            results,
            companies,
            params,
            sort_key=metric_key("barsi_score"),
        )

    def generate_rational(self, params: BarsiParams) -> str:
        focus = "ACTIVE" if params.focus_on_best else "OPTIONAL"
        technical = (
            " plus technical prioritisation (entry timing)"
            if params.use_technical_analysis
            else ""
        )
        return f"""# BARSI METHOD: DIVIDEND BUY AND HOLD

**Philosophy**: Luiz Barsi's strategy of building wealth through dividends from \
"perennial" sectors.

**Strategy**: Buy companies in essential sectors when the price is below the \
"ceiling price" implied by the target dividend yield.

## 1. Perennial sectors (B.E.S.T.), {focus}

- **B**anks
- **E**lectric energy
- **S**anitation and insurance (**S**eguros)
- **T**elecommunications
- Gas (additional)

## 2. Company quality

- ROE >= {params.min_roe:.0%} (consistent profit)
- Net debt/equity <= {params.max_debt_to_equity:.0%} (low leverage)
- Positive net margin
- {params.min_consecutive_dividends} years of dividend history

## 3. Ceiling price

**Formula**: ceiling = average yearly dividend / target DY \
({params.target_dividend_yield:.1%}), multiplier \
{params.max_price_to_pay_multiplier}x. Only buy when the current price is at or \
below the ceiling.

## Barsi score

- 40% discount to the ceiling price
- 35% dividend quality (yield and consistency)
- 25% financial health (ROE, liquidity, margin)

**Ordering**: By Barsi score{technical}.

**Goal**: Financial independence through growing, sustainable passive income."""


def _ranked(
    company: CompanyData,
    analysis: StrategyAnalysis,
    params: BarsiParams,
) -> RankBuilderResult:
    metrics = analysis.key_metrics
    ceiling = analysis.fair_value
    discount = analysis.upside
    roe = or_zero(metrics["roe"])

    return to_result(
        company,
        rational=(
            f"Approved by the Barsi method in the {or_missing(company.sector)} "
            f"sector. Price {format_currency(company.current_price)} is "
            f"{discount:.1f}% below the ceiling {format_currency(ceiling)} "
            f"(target DY {params.target_dividend_yield:.1%}). Average yearly "
            f"dividend: {or_missing(format_currency(metrics['average_dividend']))}. "
            f"Consistent dividends, ROE {roe:.1%}, low leverage. Barsi score: "
            f"{metrics['barsi_score']}/100. Suited to buy and hold with "
            "reinvestment."
        ),
        fair_value=round(ceiling, 2),
        upside=round(discount, 2),
        margin_of_safety=round(discount, 2),
        key_metrics={
            **metrics,
            "ceiling_price": round(ceiling, 2),
            "discount_from_ceiling": round(discount, 2),
        },
    )
