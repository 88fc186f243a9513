# strategies/gordon.py

from collections.abc import Sequence
from typing import NamedTuple

from equity_ranker.schemas import (
    CompanyData,
    Criterion,
    FinancialSnapshot,
    RankBuilderResult,
    StrategyAnalysis,
)

from ._utils import (
    format_number,
    format_percent,
    format_upside,
    or_benefit,
    or_missing,
    or_zero,
    upside_percent,
    validate_cagr,
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
from .params import GordonParams

MIN_UPSIDE = 15.0
MIN_DIVIDEND_YIELD = 0.04
MIN_DIVIDEND_YIELD_12M = 0.03
MAX_PAYOUT = 0.80
MIN_ROE = 0.12
MIN_EARNINGS_GROWTH = -0.20
MIN_CURRENT_RATIO = 1.2
MAX_NET_DEBT_TO_EQUITY = 1.0
# Criteria that must pass out of eight
MIN_PASSED = 6

# Safety clamps on sector-adjusted rates
MIN_DISCOUNT_RATE = 0.06
MAX_DISCOUNT_RATE = 0.25
MIN_GROWTH_RATE = 0.0
MAX_GROWTH_RATE = 0.12
# Growth always sits at least this far below the discount rate
RATE_SPREAD = 0.01


class SectorAdjustment(NamedTuple):
    wacc: float
    growth: float


class Rates(NamedTuple):
    discount_rate: float
    growth_rate: float


DEFAULT_ADJUSTMENT = SectorAdjustment(wacc=0.0, growth=0.03)

SECTOR_ADJUSTMENTS: dict[str, SectorAdjustment] = {
    # low risk: utilities and energy
    "Energia Elétrica": SectorAdjustment(wacc=-0.02, growth=0.02),
    "Saneamento": SectorAdjustment(wacc=-0.02, growth=0.02),
    "Água e Saneamento": SectorAdjustment(wacc=-0.02, growth=0.02),
    "Petróleo e Gás": SectorAdjustment(wacc=-0.01, growth=0.015),
    # financials
    "Bancos": SectorAdjustment(wacc=0.0, growth=0.03),
    "Seguros": SectorAdjustment(wacc=0.0, growth=0.025),
    "Serviços Financeiros": SectorAdjustment(wacc=0.0, growth=0.025),
    # consumer
    "Alimentos e Bebidas": SectorAdjustment(wacc=0.0, growth=0.035),
    "Comércio": SectorAdjustment(wacc=0.01, growth=0.03),
    "Consumo": SectorAdjustment(wacc=0.01, growth=0.03),
    # industrials
    "Siderurgia e Metalurgia": SectorAdjustment(wacc=0.015, growth=0.02),
    "Papel e Celulose": SectorAdjustment(wacc=0.01, growth=0.025),
    "Mineração": SectorAdjustment(wacc=0.02, growth=0.02),
    # high risk
    "Tecnologia": SectorAdjustment(wacc=0.03, growth=0.06),
    "Telecomunicações": SectorAdjustment(wacc=0.015, growth=0.02),
    "Saúde": SectorAdjustment(wacc=0.02, growth=0.04),
}


def adjusted_rates(sector: str | None, params: GordonParams) -> Rates:
    """
    Calibrate the discount and growth rates to the company's sector.

    The sector table shifts both rates, the manual WACC adjustment is added
    on top, and the results are clamped. Growth is kept at least one point
    below the discount rate both before and after clamping.

    Args:
        sector: Company sector, matched exactly against the table.
        params: Base rates and adjustment switches.

    Returns:
        Rates: The discount and growth rates to value the company with.
    """
    if not params.use_sectoral_adjustment:
        return Rates(params.discount_rate, params.dividend_growth_rate)

    adjustment = SECTOR_ADJUSTMENTS.get(sector or "", DEFAULT_ADJUSTMENT)

    discount_rate = params.discount_rate + adjustment.wacc
    growth_rate = min(
        params.dividend_growth_rate + adjustment.growth,
        discount_rate - RATE_SPREAD,
    )
    discount_rate += params.sectoral_wacc_adjustment

    discount_rate = max(MIN_DISCOUNT_RATE, min(discount_rate, MAX_DISCOUNT_RATE))
    growth_rate = max(MIN_GROWTH_RATE, min(growth_rate, MAX_GROWTH_RATE))
    growth_rate = min(growth_rate, discount_rate - RATE_SPREAD)

    return Rates(discount_rate, growth_rate)


def next_dividend(financials: FinancialSnapshot, price: float) -> float | None:
    """
    Estimate the next twelve months' dividend per share.

    Prefers the last declared dividend, then the trailing twelve-month yield
    applied to the price, then the headline yield applied to the price.

    Returns:
        float | None: Dividend per share, or None without a positive source.
    """
    if financials.last_dividend is not None and financials.last_dividend > 0:
        return financials.last_dividend

    if price <= 0:
        return None

    for dividend_yield in (financials.dividend_yield_12m, financials.dividend_yield):
        if dividend_yield is not None and dividend_yield > 0:
            return dividend_yield * price

    return None


def gordon_fair_value(
    dividend: float | None,
    discount_rate: float,
    growth_rate: float,
) -> float | None:
    """
    Gordon growth model, P = D / (k - g).

    Returns:
        float | None: Fair value per share, or None when the dividend is not
            positive or the discount rate does not exceed growth.
    """
    if dividend is None or dividend <= 0 or discount_rate <= growth_rate:
        return None

    fair_value = dividend / (discount_rate - growth_rate)
    return fair_value if fair_value > 0 else None


def peer_warnings(financials: FinancialSnapshot, upside: float | None) -> list[str]:
    """
    Flag valuations that look implausible against market multiples.

    Returns:
        list[str]: Human-readable warnings, empty when nothing looks off.
    """
    if upside is None:
        return []

    warnings: list[str] = []
    if upside > 100:
        warnings.append("upside above 100%, parameters may be optimistic")
    if financials.pe is not None and financials.pe < 5 and upside > 50:
        warnings.append("very low P/L with high upside, check earnings quality")
    if financials.pb is not None and financials.pb < 0.5 and upside > 30:
        warnings.append("very low P/VP, possible fundamental problems")
    return warnings


def composite_score(
    upside: float | None,
    dividend_yield: float | None,
    roe: float | None,
    payout: float | None,
) -> float:
    """
    Weight upside 40%, yield 30%, ROE 20% and payout headroom 10%.

    Each component saturates: upside at 50%, yield at 12%, ROE at 25%. A
    lower payout scores higher; a missing one scores zero.

    Returns:
        float: Composite score from 0 to 100.
    """
    upside_part = min(or_zero(upside) / 50, 1.0)
    yield_part = min(or_zero(dividend_yield) / 0.12, 1.0)
    roe_part = min(or_zero(roe) / 0.25, 1.0)
    payout_part = 0.0 if not payout else 1 - min(payout / MAX_PAYOUT, 1.0)

    return (
        upside_part * 0.4 + yield_part * 0.3 + roe_part * 0.2 + payout_part * 0.1
    ) * 100


class GordonStrategy(BaseStrategy[GordonParams]):
    """
    Dividend discount valuation with sector-calibrated rates.
    """

    name = "gordon"
    params_type = GordonParams

    def validate_company_data(
        self,
        company: CompanyData,
        params: GordonParams,
    ) -> bool:
        dividend_yield = company.financials.dividend_yield
        if dividend_yield is None or dividend_yield <= 0:
            return False
        if next_dividend(company.financials, company.current_price) is None:
            return False

        rates = adjusted_rates(company.sector, params)
        return rates.discount_rate > rates.growth_rate

    def run_analysis(
        self,
        company: CompanyData,
        params: GordonParams,
    ) -> StrategyAnalysis:
        financials = company.financials
        rates = adjusted_rates(company.sector, params)

        dividend_yield = financials.dividend_yield
        dividend_yield_12m = financials.dividend_yield_12m
        payout = financials.payout
        roe = financials.roe
        earnings_growth = validate_cagr(financials.earnings_growth)
        current_ratio = financials.current_ratio
        net_debt_to_equity = financials.net_debt_to_equity

        dividend = next_dividend(financials, company.current_price)
        fair_value = gordon_fair_value(dividend, *rates)
        upside = upside_percent(fair_value, company.current_price)
        has_upside = upside is not None and upside >= MIN_UPSIDE

        criteria = (
            criterion(
                f"Upside >= {MIN_UPSIDE:.0f}%",
                has_upside,
                f"Upside: {or_missing(format_upside(upside))}",
            ),
            criterion(
                f"Dividend yield >= {MIN_DIVIDEND_YIELD:.0%}",
                dividend_yield is not None and dividend_yield >= MIN_DIVIDEND_YIELD,
                f"DY: {or_missing(format_percent(dividend_yield))}",
            ),
            criterion(
                f"DY 12m >= {MIN_DIVIDEND_YIELD_12M:.0%}",
                at_least(dividend_yield_12m, MIN_DIVIDEND_YIELD_12M),
                f"DY 12m: {or_benefit(format_percent(dividend_yield_12m))}",
            ),
            criterion(
                f"Payout <= {MAX_PAYOUT:.0%}",
                at_most(payout, MAX_PAYOUT),
                f"Payout: {or_benefit(format_percent(payout))}",
            ),
            criterion(
                f"ROE >= {MIN_ROE:.0%}",
                at_least(roe, MIN_ROE),
                f"ROE: {or_benefit(format_percent(roe))}",
            ),
            criterion(
                f"Earnings growth >= {MIN_EARNINGS_GROWTH:.0%}",
                at_least(earnings_growth, MIN_EARNINGS_GROWTH),
                f"Growth: {or_benefit(format_percent(earnings_growth))}",
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
        )

        passed = count_passed(criteria)
        is_eligible = passed >= MIN_PASSED and fair_value is not None and has_upside
        warnings = peer_warnings(financials, upside)

        return build_analysis(
            criteria,
            is_eligible=is_eligible,
            fair_value=fair_value,
            upside=upside,
            reasoning=_reasoning(
                company,
                params,
                rates,
                criteria,
                fair_value=fair_value,
                upside=upside,
                is_eligible=is_eligible,
                warnings=warnings,
            ),
            key_metrics={
                "dividend_yield": dividend_yield,
                "next_dividend": dividend,
                "discount_rate": rates.discount_rate,
                "growth_rate": rates.growth_rate,
                "payout": payout,
                "roe": roe,
                "peer_warnings": float(len(warnings)),
            },
        )

    def run_ranking(
        self,
        companies: Sequence[CompanyData],
        params: GordonParams,
    ) -> list[RankBuilderResult]:
        results = [
            _ranked(company, analysis, params)
            for company in self._universe(companies, params)
            if self.validate_company_data(company, params)
            and (analysis := self.run_analysis(company, params)).is_eligible
        ]

        return self._finalise(
            results,
            companies,
            params,
            sort_key=metric_key("composite_score"),
        )

    def generate_rational(self, params: GordonParams) -> str:
        manual = (
            f"\n- **Manual WACC adjustment**: {params.sectoral_wacc_adjustment:+.1%}"
            if params.sectoral_wacc_adjustment
            else ""
        )
        if params.use_sectoral_adjustment:
            calibration = (
                "**Low risk sectors** (utilities, energy): lower WACC (-1% to -2%)\n"
                "**Financial sectors** (banks, insurers): standard WACC, "
                "ROE-driven growth\n"
                "**Industrial sectors**: moderate WACC (+1% to +1.5%)\n"
                "**High risk sectors** (technology): higher WACC (+3%), "
                "faster growth\n\n"
                "Rates are adjusted automatically from the company's sector, "
                f"clamped to a {MIN_DISCOUNT_RATE:.0%}-{MAX_DISCOUNT_RATE:.0%} "
                f"discount rate and {MIN_GROWTH_RATE:.0%}-{MAX_GROWTH_RATE:.0%} growth."
            )
        else:
            calibration = "Fixed rates, no sector adjustment."

        return f"""# GORDON GROWTH MODEL (Dividend Discount), CALIBRATED

**Philosophy**: Value companies from the sustainability and growth of their \
dividends, with rates calibrated per sector.

## Base parameters

- **Base discount rate**: {params.discount_rate:.1%}
- **Base growth rate**: {params.dividend_growth_rate:.1%}
- **Sector adjustment**: \
{"Enabled" if params.use_sectoral_adjustment else "Disabled"}{manual}

## Sector calibration

{calibration}

## Selection criteria

- Attractive dividend yield (>= 4%)
- Sustainable payout (<= 80%)
- Solid ROE (>= 12%)
- Upside potential (>= 15%)
- Peer multiple sanity check

## Peer check

- P/L and P/VP compared against the implied upside
- Warnings for excessive upsides (> 100%)

**Goal**: Companies that combine attractive dividends with sustainable growth, \
valued with realistic market-based rates."""


def _reasoning(
    company: CompanyData,
    params: GordonParams,
    rates: Rates,
    criteria: Sequence[Criterion],
    *,
    fair_value: float | None,
    upside: float | None,
    is_eligible: bool,
    warnings: Sequence[str],
) -> str:
    parts: list[str] = []
    passed = count_passed(criteria)
    sector = f" (sector: {company.sector})" if company.sector else ""
    rates_differ = rates != (params.discount_rate, params.dividend_growth_rate)

    if is_eligible:
        parts.append(
            f"Eligible under the Gordon model with {passed}/{len(criteria)} "
            f"criteria passed and upside of {format_upside(upside)}.",
        )

    if params.use_sectoral_adjustment and rates_differ:
        parts.append(
            f"Sector-adjusted rates{sector}: discount "
            f"{format_percent(rates.discount_rate)} (base "
            f"{format_percent(params.discount_rate)}), growth "
            f"{format_percent(rates.growth_rate)} (base "
            f"{format_percent(params.dividend_growth_rate)}).",
        )
    else:
        parts.append(
            f"Base rates used: discount {format_percent(rates.discount_rate)}, "
            f"growth {format_percent(rates.growth_rate)}{sector}.",
        )

    if passed < MIN_PASSED:
        failed = ", ".join(item.label for item in criteria if not item.passed)
        parts.append(
            f"Minimum criteria not met ({passed}/{len(criteria)}): {failed}.",
        )
    if fair_value is None:
        parts.append("Fair value could not be computed from dividends.")
    elif upside is not None and upside < MIN_UPSIDE:
        parts.append(f"Insufficient upside (< {MIN_UPSIDE:.0f}%).")

    if warnings:
        parts.append(f"Peer check warning: {'; '.join(warnings)}.")

    return " ".join(parts)


def _ranked(
    company: CompanyData,
    analysis: StrategyAnalysis,
    params: GordonParams,
) -> RankBuilderResult:
    financials = company.financials
    rates = adjusted_rates(company.sector, params)
    sector = f" ({company.sector})" if company.sector else ""
    score = composite_score(
        analysis.upside,
        financials.dividend_yield,
        financials.roe,
        financials.payout,
    )
    upside = analysis.upside

    return to_result(
        company,
        rational=(
            f"Gordon model{sector}: fair value R$ {analysis.fair_value:.2f} from "
            f"dividends. Rates: {format_percent(rates.discount_rate)} discount, "
            f"{format_percent(rates.growth_rate)} growth. DY: "
            f"{or_missing(format_percent(financials.dividend_yield))}, ROE: "
            f"{or_missing(format_percent(financials.roe))}, payout: "
            f"{or_missing(format_percent(financials.payout))}."
        ),
        fair_value=analysis.fair_value,
        upside=upside,
        margin_of_safety=upside if upside is not None and upside > 0 else None,
        key_metrics={
            "dividend_yield": or_zero(financials.dividend_yield),
            "roe": or_zero(financials.roe),
            "payout": or_zero(financials.payout),
            "composite_score": score,
            "discount_rate": rates.discount_rate,
            "growth_rate": rates.growth_rate,
            "peer_warnings": analysis.key_metrics["peer_warnings"],
        },
    )
