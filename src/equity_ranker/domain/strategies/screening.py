# strategies/screening.py

import logging
from collections.abc import Sequence
from enum import Enum
from typing import NamedTuple

from equity_ranker.schemas import (
    CompanyData,
    Criterion,
    RankBuilderResult,
    StrategyAnalysis,
)

from ._utils import (
    filter_by_asset_type,
    filter_by_size,
    format_currency,
    format_number,
    format_percent,
    format_upside,
    or_missing,
)
from .base import BaseStrategy, build_analysis, criterion, metric_key, to_result
from .graham import GrahamStrategy
from .params import RangeFilter, ScreeningParams

logger = logging.getLogger(__name__)

NO_ACTIVE_FILTERS = (
    "No active filters: configure at least one filter to run the screening."
)


class Unit(Enum):
    """
    How a screened indicator and its bounds are rendered.
    """

    MULTIPLE = "multiple"
    PERCENT = "percent"
    RATIO = "ratio"
    CURRENCY = "currency"
    SCORE = "score"
    UPSIDE = "upside"


class Section(Enum):
    VALUATION = "Valuation"
    PROFITABILITY = "Profitability"
    GROWTH = "Growth"
    DIVIDENDS = "Dividends"
    LEVERAGE = "Leverage & liquidity"
    SIZE = "Size"
    QUALITY = "Quality & opportunity"


class FilterSpec(NamedTuple):
    """
    Binds a range filter on the params to the indicator it screens.

    Attributes:
        param: Attribute on ``ScreeningParams`` holding the ``RangeFilter``.
        label: Display name of the indicator.
        unit: Rendering of values and bounds.
        section: Methodology section the filter is listed under.
        field: Attribute on ``FinancialSnapshot``, or None for derived values.
    """

    param: str
    label: str
    unit: Unit
    section: Section
    field: str | None = None


FILTER_SPECS: tuple[FilterSpec, ...] = (
    FilterSpec("pl_filter", "P/L", Unit.MULTIPLE, Section.VALUATION, "pe"),
    FilterSpec("pvp_filter", "P/VP", Unit.MULTIPLE, Section.VALUATION, "pb"),
    FilterSpec(
        "ev_ebitda_filter",
        "EV/EBITDA",
        Unit.MULTIPLE,
        Section.VALUATION,
        "ev_ebitda",
    ),
    FilterSpec("psr_filter", "PSR", Unit.MULTIPLE, Section.VALUATION, "psr"),
    FilterSpec("roe_filter", "ROE", Unit.PERCENT, Section.PROFITABILITY, "roe"),
    FilterSpec("roic_filter", "ROIC", Unit.PERCENT, Section.PROFITABILITY, "roic"),
    FilterSpec("roa_filter", "ROA", Unit.PERCENT, Section.PROFITABILITY, "roa"),
    FilterSpec(
        "net_margin_filter",
        "Net margin",
        Unit.PERCENT,
        Section.PROFITABILITY,
        "net_margin",
    ),
    FilterSpec(
        "ebitda_margin_filter",
        "EBITDA margin",
        Unit.PERCENT,
        Section.PROFITABILITY,
        "ebitda_margin",
    ),
    FilterSpec(
        "earnings_cagr_filter",
        "5y earnings CAGR",
        Unit.PERCENT,
        Section.GROWTH,
        "earnings_cagr_5y",
    ),
    FilterSpec(
        "revenue_cagr_filter",
        "5y revenue CAGR",
        Unit.PERCENT,
        Section.GROWTH,
        "revenue_cagr_5y",
    ),
    FilterSpec(
        "dy_filter",
        "Dividend yield",
        Unit.PERCENT,
        Section.DIVIDENDS,
        "dividend_yield",
    ),
    FilterSpec("payout_filter", "Payout", Unit.PERCENT, Section.DIVIDENDS, "payout"),
    FilterSpec(
        "net_debt_to_equity_filter",
        "Net debt/equity",
        Unit.PERCENT,
        Section.LEVERAGE,
        "net_debt_to_equity",
    ),
    FilterSpec(
        "current_ratio_filter",
        "Current ratio",
        Unit.RATIO,
        Section.LEVERAGE,
        "current_ratio",
    ),
    FilterSpec(
        "net_debt_to_ebitda_filter",
        "Net debt/EBITDA",
        Unit.MULTIPLE,
        Section.LEVERAGE,
        "net_debt_to_ebitda",
    ),
    FilterSpec(
        "market_cap_filter",
        "Market cap",
        Unit.CURRENCY,
        Section.SIZE,
        "market_cap",
    ),
    FilterSpec("overall_score_filter", "Overall score", Unit.SCORE, Section.QUALITY),
    FilterSpec("graham_upside_filter", "Graham upside", Unit.UPSIDE, Section.QUALITY),
)


def in_range(value: float | None, bounds: RangeFilter | None) -> bool:
    """
    Check a value against an optional range filter.

    Disabled or absent filters accept everything, and so do missing values.

    Returns:
        bool: True if the value passes the filter.
    """
    if bounds is None or not bounds.enabled or value is None:
        return True
    if bounds.min is not None and value < bounds.min:
        return False
    return not (bounds.max is not None and value > bounds.max)


def render(value: float | None, unit: Unit) -> str:
    """
    Render an indicator value or bound for display.

    Returns:
        str: The formatted value, or "N/A" when missing.
    """
    match unit:
        case Unit.PERCENT:
            text = format_percent(value)
        case Unit.CURRENCY:
            text = format_currency(value)
        case Unit.SCORE:
            text = format_number(value, 0)
        case Unit.UPSIDE:
            text = format_upside(value)
        case Unit.MULTIPLE:
            text = None if value is None else f"{value:.2f}x"
        case _:
            text = format_number(value)
    return or_missing(text)


def describe_range(bounds: RangeFilter, unit: Unit) -> str:
    parts = []
    if bounds.min is not None:
        parts.append(f">= {render(bounds.min, unit)}")
    if bounds.max is not None:
        parts.append(f"<= {render(bounds.max, unit)}")
    return " and ".join(parts) or "any value"


def active_filters(params: ScreeningParams) -> list[tuple[FilterSpec, RangeFilter]]:
    """
    Collect the enabled range filters, in display order.

    Returns:
        list[tuple[FilterSpec, RangeFilter]]: Each enabled filter with its spec.
    """
    pairs = ((spec, getattr(params, spec.param)) for spec in FILTER_SPECS)
    return [(spec, bounds) for spec, bounds in pairs if bounds and bounds.enabled]


def count_active_filters(params: ScreeningParams) -> int:
    selections = (params.selected_sectors, params.selected_industries)
    classification = sum(1 for selected in selections if selected)
    return len(active_filters(params)) + classification


class ScreeningStrategy(BaseStrategy[ScreeningParams]):
    """
    User-configurable screener over valuation, quality and size indicators.

    A company qualifies only when it passes every active filter. Missing
    readings pass, except Graham upside, which must be computable to pass.
    """

    name = "screening"
    params_type = ScreeningParams

    def __init__(self, graham: GrahamStrategy | None = None) -> None:
        self._graham = graham or GrahamStrategy()

    def validate_company_data(
        self,
        company: CompanyData,
        params: ScreeningParams,
    ) -> bool:
        market_cap = company.financials.market_cap
        return market_cap is not None and market_cap > 0

    def graham_upside(self, company: CompanyData) -> float | None:
        """
        Upside to the Graham fair value under default Graham parameters.

        Returns:
            float | None: Upside in percent, or None when not computable.
        """
        params = self._graham.default_params()
        if not self._graham.validate_company_data(company, params):
            return None
        return self._graham.run_analysis(company, params).upside

    def _value(self, spec: FilterSpec, company: CompanyData) -> float | None:
        if spec.field is not None:
            return getattr(company.financials, spec.field)
        if spec.param == "overall_score_filter":
            return company.overall_score
        return self.graham_upside(company)

    def _criteria(
        self,
        company: CompanyData,
        params: ScreeningParams,
    ) -> list[Criterion]:
        criteria: list[Criterion] = []

        for spec, bounds in active_filters(params):
            value = self._value(spec, company)
            if spec.unit is Unit.UPSIDE and value is None:
                passed, current = False, "N/A - rejected"
            else:
                passed, current = in_range(value, bounds), render(value, spec.unit)
            criteria.append(
                criterion(
                    spec.label,
                    passed,
                    f"{describe_range(bounds, spec.unit)} (current: {current})",
                ),
            )

        classifications = (
            ("Sector", params.selected_sectors, company.sector),
            ("Industry", params.selected_industries, company.industry),
        )
        for label, selected, actual in classifications:
            if not selected:
                continue
            criteria.append(
                criterion(
                    label,
                    not actual or actual in selected,
                    f"Selected: {', '.join(selected)} "
                    f"(company: {actual or 'N/A - filter ignored'})",
                ),
            )

        return criteria

    def run_analysis(
        self,
        company: CompanyData,
        params: ScreeningParams,
    ) -> StrategyAnalysis:
        financials = company.financials
        criteria = self._criteria(company, params)
        passed = [item.label for item in criteria if item.passed]
        failed = [item.label for item in criteria if not item.passed]
        is_eligible = bool(criteria) and not failed

        lines = [f"**Custom screening**: {len(criteria)} filters applied."]
        if is_eligible:
            lines.append(
                f"**Approved**: meets all {len(criteria)} configured criteria.",
            )
            lines.append(f"**Criteria met**: {', '.join(passed)}")
        else:
            lines.append(
                f"**Not approved**: meets {len(passed)} of {len(criteria)} criteria.",
            )
            if passed:
                lines.append(f"**Passed**: {', '.join(passed)}")
            if failed:
                lines.append(f"**Failed**: {', '.join(failed)}")

        return build_analysis(
            criteria,
            is_eligible=is_eligible,
            fair_value=None,
            upside=None,
            reasoning="\n\n".join(lines),
            key_metrics={
                "pe": financials.pe,
                "pb": financials.pb,
                "roe": financials.roe,
                "roic": financials.roic,
                "dividend_yield": financials.dividend_yield,
                "net_margin": financials.net_margin,
                "current_ratio": financials.current_ratio,
                "net_debt_to_equity": financials.net_debt_to_equity,
                "market_cap": financials.market_cap,
            },
        )

    def run_ranking(
        self,
        companies: Sequence[CompanyData],
        params: ScreeningParams,
    ) -> list[RankBuilderResult]:
        universe = filter_by_asset_type(companies, params.asset_type_filter)

        if count_active_filters(params) == 0:
            logger.warning("Screening requested with no active filters")
            results = [
                to_result(
                    company,
                    rational=NO_ACTIVE_FILTERS,
                    key_metrics={"market_cap": company.financials.market_cap},
                )
                for company in universe
            ]
            return self._finalise(
                results,
                companies,
                params,
                sort_key=metric_key("market_cap"),
            )

        results = [
            to_result(
                company,
                rational=_approval(company, analysis),
                key_metrics=analysis.key_metrics,
            )
            for company in filter_by_size(universe, params.company_size)
            if (analysis := self.run_analysis(company, params)).is_eligible
        ]

        return self._finalise(
            results,
            companies,
            params,
            sort_key=metric_key("market_cap"),
        )

    def generate_rational(self, params: ScreeningParams) -> str:
        header = "# CUSTOM STOCK SCREENING"
        if count_active_filters(params) == 0:
            return (
                f"{header}\n\n**Status**: No active filters\n\nConfigure at least "
                "one filter in the available categories to run the screening."
            )

        sections: dict[Section, list[str]] = {}
        for spec, bounds in active_filters(params):
            sections.setdefault(spec.section, []).append(
                f"- **{spec.label}**: {describe_range(bounds, spec.unit)}",
            )

        classification = []
        if params.selected_sectors:
            classification.append(
                f"- **Sectors**: {', '.join(params.selected_sectors)}",
            )
        if params.selected_industries:
            classification.append(
                f"- **Industries**: {', '.join(params.selected_industries)}",
            )

        blocks = [
            header,
            "**Philosophy**: Personalised search for shares matching your own "
            "investment criteria.",
            f"**Active filters**: {count_active_filters(params)}",
        ]
        blocks.extend(
            f"## {section.value}\n\n" + "\n".join(lines)
            for section, lines in sections.items()
        )
        if classification:
            blocks.append("## Sector filter\n\n" + "\n".join(classification))

        technical = (
            " with technical prioritisation" if params.use_technical_analysis else ""
        )
        blocks.append(
            "**Ordering**: Companies meeting ALL criteria, ordered by market cap"
            f"{technical}.",
        )
        return "\n\n".join(blocks)


def _approval(company: CompanyData, analysis: StrategyAnalysis) -> str:
    met = "\n".join(
        f"- {item.label}: {item.description}"
        for item in analysis.criteria
        if item.passed
    )
    return (
        f"**{company.ticker}** passed every configured filter.\n\n"
        f"**Criteria met**:\n{met}"
    )

