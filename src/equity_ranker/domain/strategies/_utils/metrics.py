# _utils/metrics.py

from collections.abc import Sequence
from statistics import fmean

from equity_ranker.schemas import CompanyData, HistoricalSnapshot

# Trailing averages span the current period plus up to this many years
AVERAGE_WINDOW_YEARS = 7

# Earnings CAGR readings beyond +/-100% are treated as data errors
_CAGR_SANITY_LIMIT = 1.0
# Valid CAGR readings are clamped to +/-50%
_CAGR_CLAMP = 0.5


def historical_values(
    history: Sequence[HistoricalSnapshot],
    field: str,
) -> list[float]:
    """
    Extract a field from the most recent historical snapshots.

    Sorts the history by year, most recent first, keeps at most the trailing
    window and drops missing readings.

    Args:
        history: Prior annual snapshots in any order.
        field: Attribute name on the snapshot.

    Returns:
        list[float]: Non-null values, most recent first.
    """
    recent = sorted(history, key=lambda snapshot: snapshot.year, reverse=True)
    values = (getattr(snapshot, field) for snapshot in recent[:AVERAGE_WINDOW_YEARS])
    return [value for value in values if value is not None]


def historical_average(
    current: float | None,
    history: Sequence[float],
) -> float | None:
    """
    Average the current value with its trailing history.

    The current reading anchors the average: when it is missing the result
    is missing too, so a stale history never stands in for today's figure.

    Args:
        current: Current-period value.
        history: Prior values, most recent first.

    Returns:
        float | None: Mean over at most seven values, or None.
    """
    if current is None:
        return None

    return fmean([current, *history][:AVERAGE_WINDOW_YEARS])


def indicator(
    company: CompanyData,
    field: str,
    *,
    use_averages: bool = False,
) -> float | None:
    """
    Read an indicator, optionally as a trailing multi-year average.

    Args:
        company: Company whose financials are read.
        field: Attribute name on ``FinancialSnapshot``.
        use_averages: Average with up to seven prior years when True.

    Returns:
        float | None: The current or averaged value, or None when missing.
    """
    current = getattr(company.financials, field)
    if not use_averages or not company.historical_financials:
        return current

    return historical_average(
        current,
        historical_values(company.historical_financials, field),
    )


def validate_cagr(value: float | None) -> float | None:
    """
    Discard implausible growth readings and clamp the rest.

    Returns:
        float | None: Growth clamped to [-0.5, 0.5], or None when the input
            is missing or beyond +/-100%.
    """
    if value is None or abs(value) > _CAGR_SANITY_LIMIT:
        return None

    return max(-_CAGR_CLAMP, min(value, _CAGR_CLAMP))


def upside_percent(fair_value: float | None, price: float) -> float | None:
    """
    Percentage difference between fair value and current price.

    Returns:
        float | None: ``(fair_value / price - 1) * 100``, or None when either
            side is unusable.
    """
    if fair_value is None or price <= 0:
        return None

    return (fair_value - price) / price * 100


def graham_fair_value(eps: float | None, bvps: float | None) -> float | None:
    """
    Benjamin Graham's intrinsic value, sqrt(22.5 x EPS x BVPS).

    Returns:
        float | None: Fair value per share, or None unless both inputs are
            strictly positive.
    """
    if eps is None or bvps is None or eps <= 0 or bvps <= 0:
        return None

    return (22.5 * eps * bvps) ** 0.5


def or_zero(value: float | None) -> float:
    return 0.0 if value is None else value


def capped(value: float, ceiling: float = 100.0) -> float:
    return min(value, ceiling)


def round_metric(value: float | None, digits: int = 1) -> float | None:
    return None if value is None else round(value, digits)
