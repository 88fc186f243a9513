# _utils/filters.py

import logging
import re
from collections.abc import Callable, Sequence

from equity_ranker.schemas import CompanyData, RankBuilderResult

from ..params import AssetType, CompanySize

logger = logging.getLogger(__name__)

# Market-cap band boundaries in reais
SMALL_CAP_CEILING = 2_000_000_000
BLUE_CHIP_FLOOR = 10_000_000_000

# Companies whose supplied overall score does not exceed this are dropped
MIN_OVERALL_SCORE = 50.0

# BDR share classes end in these digits (after any ".SA" suffix)
BDR_SUFFIXES: tuple[str, ...] = ("34", "35")

# Domestic share classes ending in these digits trade too thinly to rank
ILLIQUID_CLASS_DIGITS = frozenset("56789")

# Substrings identifying banks, insurers and other financials by sector name
FINANCIAL_SECTOR_MARKERS: tuple[str, ...] = (
    "bancos",
    "banco",
    "seguradoras",
    "seguro",
    "previdência",
    "previdencia",
    "serviços financeiros",
    "intermediários financeiros",
    "financeiro",
)

_TICKER_CLASS_PATTERN = re.compile(r"[0-9]+[A-Z]*$")
_EXCHANGE_SUFFIX = ".SA"


def _bare_ticker(ticker: str) -> str:
    upper = ticker.strip().upper()
    return upper.removesuffix(_EXCHANGE_SUFFIX)


def is_bdr_ticker(ticker: str) -> bool:
    """
    Check whether a ticker denotes a BDR.

    Returns:
        bool: True for tickers ending in a BDR share-class suffix.
    """
    return _bare_ticker(ticker).endswith(BDR_SUFFIXES)


def is_financial_sector(sector: str | None) -> bool:
    """
    Check whether a sector name denotes a bank, insurer or other financial.

    Returns:
        bool: True if any financial marker occurs in the lower-cased sector.
    """
    if not sector:
        return False

    lowered = sector.lower()
    return any(marker in lowered for marker in FINANCIAL_SECTOR_MARKERS)


def company_prefix(ticker: str) -> str:
    """
    Strip the share-class suffix, leaving the underlying company code.

    For example PETR3 and PETR4 both map to PETR.

    Returns:
        str: The upper-cased company code.
    """
    return _TICKER_CLASS_PATTERN.sub("", _bare_ticker(ticker))


def filter_by_size(
    companies: Sequence[CompanyData],
    size: CompanySize,
) -> list[CompanyData]:
    """
    Keep companies whose market cap falls inside the requested band.

    Companies without a market cap are excluded from every band except ALL.

    Returns:
        list[CompanyData]: Companies in the requested band.
    """
    if size is CompanySize.ALL:
        return list(companies)

    return [company for company in companies if _in_size_band(company, size)]


def _in_size_band(company: CompanyData, size: CompanySize) -> bool:
    market_cap = company.financials.market_cap
    if market_cap is None:
        return False

    if size is CompanySize.SMALL_CAPS:
        return market_cap < SMALL_CAP_CEILING
    if size is CompanySize.MID_CAPS:
        return SMALL_CAP_CEILING <= market_cap < BLUE_CHIP_FLOOR
    return market_cap >= BLUE_CHIP_FLOOR


def filter_by_asset_type(
    companies: Sequence[CompanyData],
    asset_type: AssetType,
) -> list[CompanyData]:
    """
    Keep domestic listings, BDRs, or both.

    Returns:
        list[CompanyData]: Companies matching the asset type.
    """
    if asset_type is AssetType.BOTH:
        return list(companies)

    want_bdr = asset_type is AssetType.BDR
    return [
        company for company in companies if is_bdr_ticker(company.ticker) == want_bdr
    ]


def filter_illiquid_classes(
    companies: Sequence[CompanyData],
) -> list[CompanyData]:
    """
    Drop domestic share classes ending in 5 to 9.

    BDRs are kept regardless of their final digit.

    Returns:
        list[CompanyData]: Companies with liquid share classes.
    """
    return [
        company
        for company in companies
        if is_bdr_ticker(company.ticker)
        or _bare_ticker(company.ticker)[-1:] not in ILLIQUID_CLASS_DIGITS
    ]


def filter_by_overall_score(
    companies: Sequence[CompanyData],
    min_score: float = MIN_OVERALL_SCORE,
) -> list[CompanyData]:
    """
    Keep companies whose overall score exceeds the minimum.

    Companies without an overall score are kept.

    Returns:
        list[CompanyData]: Companies above the quality floor.
    """
    kept = [
        company
        for company in companies
        if company.overall_score is None or company.overall_score > min_score
    ]

    removed = len(companies) - len(kept)
    if removed:
        logger.debug(
            "Overall score filter removed %d companies scoring <= %.0f",
            removed,
            min_score,
        )

    return kept


def has_consistent_profits(company: CompanyData) -> bool:
    """
    Check the company's net-income track record.

    With fewer than three years of data every year must be profitable.
    Otherwise up to two loss years are tolerated over eight or more years,
    one over five to seven, and none below five. A company without any
    historical snapshot is judged on its current net income alone, which
    must be present and positive.

    Returns:
        bool: True if the loss-year count is within tolerance.
    """
    current = company.financials.net_income
    if not company.historical_financials:
        return current is not None and current > 0

    profits = [
        profit
        for profit in (
            current,
            *(snapshot.net_income for snapshot in company.historical_financials),
        )
        if profit is not None
    ]

    if len(profits) < 3:
        return all(profit > 0 for profit in profits)

    loss_years = sum(1 for profit in profits if profit <= 0)
    return loss_years <= _max_loss_years(len(profits))


def _max_loss_years(total_years: int) -> int:
    if total_years >= 8:
        return 2
    if total_years >= 5:
        return 1
    return 0


def should_exclude(company: CompanyData) -> bool:
    """
    Automatic exclusion rule applied before any ranking.

    A company is excluded when its profit history is inconsistent or its
    supplied overall score is below the quality floor.

    Returns:
        bool: True if the company must not be ranked.
    """
    if not has_consistent_profits(company):
        return True

    score = company.overall_score
    return score is not None and score < MIN_OVERALL_SCORE


def prepare_universe(
    companies: Sequence[CompanyData],
    *,
    asset_type: AssetType,
    size: CompanySize,
) -> list[CompanyData]:
    """
    Apply the universe filters shared by every ranking.

    Runs the overall-score floor, illiquid share-class exclusion, asset-type
    and size filters, then the automatic exclusion rule.

    Returns:
        list[CompanyData]: Companies eligible for per-company analysis.
    """
    universe = filter_by_overall_score(companies)
    universe = filter_illiquid_classes(universe)
    universe = filter_by_asset_type(universe, asset_type)
    universe = filter_by_size(universe, size)
    return [company for company in universe if not should_exclude(company)]


def deduplicate_by_company(
    results: Sequence[RankBuilderResult],
    preference: Callable[[RankBuilderResult], float],
) -> list[RankBuilderResult]:
    """
    Keep one result per underlying company.

    For each company code the result with the highest preference survives
    (the earliest on ties) and takes the position of the company's first
    appearance, so the incoming order is otherwise preserved.

    Args:
        results: Ordered ranking results.
        preference: Key deciding which ticker of a company survives.

    Returns:
        list[RankBuilderResult]: Results with unique company codes.
    """
    best: dict[str, RankBuilderResult] = {}
    order: list[str] = []

    for result in results:
        prefix = company_prefix(result.ticker)
        current = best.get(prefix)
        if current is None:
            order.append(prefix)
            best[prefix] = result
        elif preference(result) > preference(current):
            best[prefix] = result

    return [best[prefix] for prefix in order]


def market_cap_preference(
    companies: Sequence[CompanyData],
) -> Callable[[RankBuilderResult], float]:
    """
    Build a dedupe preference favouring the ticker with the largest market cap.

    Returns:
        Callable[[RankBuilderResult], float]: Market cap lookup, 0 if unknown.
    """
    caps = {company.ticker: company.financials.market_cap for company in companies}

    def _preference(result: RankBuilderResult) -> float:
        return caps.get(result.ticker) or 0.0

    return _preference
