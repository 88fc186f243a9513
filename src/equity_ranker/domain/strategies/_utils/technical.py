# _utils/technical.py

from collections.abc import Sequence

from equity_ranker.schemas import (
    CompanyData,
    RankBuilderResult,
    Signal,
    TechnicalSignal,
)

# Re-ordering never crosses these quality bands: ~20% of the list, min 3
_MIN_GROUP_SIZE = 3
_GROUP_FRACTION = 5

# (upper bound inclusive, points) for RSI oversold readings
_RSI_OVERSOLD_POINTS: tuple[tuple[float, int], ...] = (
    (25, 5),
    (30, 4),
    (40, 2),
    (50, 1),
)
# (lower bound inclusive, penalty) for RSI overbought readings
_RSI_OVERBOUGHT_PENALTY: tuple[tuple[float, int], ...] = ((75, -3), (70, -1))

_STOCHASTIC_OVERSOLD_POINTS: tuple[tuple[float, int], ...] = (
    (15, 4),
    (20, 3),
    (30, 2),
)
_STOCHASTIC_OVERBOUGHT_PENALTY: tuple[tuple[float, int], ...] = ((85, -3), (80, -1))

_SIGNAL_POINTS: dict[Signal, int] = {
    Signal.OVERSOLD: 3,
    Signal.OVERBOUGHT: -2,
    Signal.NEUTRAL: 0,
}


def technical_score(signal: TechnicalSignal | None) -> int:
    """
    Score near-term entry timing from oscillator readings.

    Oversold RSI and stochastic readings and an oversold overall signal add
    points; overbought readings subtract them.

    Args:
        signal: Technical readings for the company, if any.

    Returns:
        int: Timing score, 0 when no readings are available.
    """
    if signal is None:
        return 0

    score = 0

    if signal.rsi is not None:
        score += _oscillator_points(
            signal.rsi,
            _RSI_OVERSOLD_POINTS,
            _RSI_OVERBOUGHT_PENALTY,
        )

    stochastic = _stochastic_average(signal)
    if stochastic is not None:
        score += _oscillator_points(
            stochastic,
            _STOCHASTIC_OVERSOLD_POINTS,
            _STOCHASTIC_OVERBOUGHT_PENALTY,
        )

    if signal.overall_signal is not None:
        score += _SIGNAL_POINTS[signal.overall_signal]

    return score


def _oscillator_points(
    value: float,
    oversold: tuple[tuple[float, int], ...],
    overbought: tuple[tuple[float, int], ...],
) -> int:
    for ceiling, points in oversold:
        if value <= ceiling:
            return points
    for floor, penalty in overbought:
        if value >= floor:
            return penalty
    return 0


def _stochastic_average(signal: TechnicalSignal) -> float | None:
    if signal.stochastic_k is None or signal.stochastic_d is None:
        return None
    return (signal.stochastic_k + signal.stochastic_d) / 2


def technical_summary(signal: TechnicalSignal) -> str:
    """
    Describe oscillator readings in one line.

    Returns:
        str: Comma-separated RSI, stochastic and signal descriptions.
    """
    parts: list[str] = []

    if signal.rsi is not None:
        parts.append(f"RSI {signal.rsi:.1f} ({_rsi_status(signal.rsi)})")

    stochastic = _stochastic_average(signal)
    if stochastic is not None:
        parts.append(f"Stochastic {stochastic:.1f} ({_stochastic_status(stochastic)})")

    if signal.overall_signal is not None:
        parts.append(f"Signal: {_signal_text(signal.overall_signal)}")

    return ", ".join(parts) if parts else "No technical data available"


def _rsi_status(rsi: float) -> str:
    if rsi <= 30:
        return "strongly oversold"
    if rsi <= 40:
        return "oversold"
    if rsi >= 70:
        return "overbought"
    return "neutral"


def _stochastic_status(value: float) -> str:
    if value <= 20:
        return "strongly oversold"
    if value <= 30:
        return "oversold"
    if value >= 80:
        return "overbought"
    return "neutral"


def _signal_text(signal: Signal) -> str:
    if signal is Signal.OVERSOLD:
        return "entry opportunity"
    if signal is Signal.OVERBOUGHT:
        return "possible exit"
    return "neutral"


def apply_technical_prioritization(
    results: Sequence[RankBuilderResult],
    companies: Sequence[CompanyData],
    *,
    enabled: bool,
) -> list[RankBuilderResult]:
    """
    Re-order a ranking by entry timing within fundamental quality bands.

    The list is cut into consecutive groups of about a fifth of its length
    (at least three). Inside each group results are stably sorted by technical
    score, so membership and the relative order of groups never change. Results
    with technical data get a summary appended to their rational.

    Args:
        results: Ranking already ordered by the strategy's own key.
        companies: Universe supplying technical readings by ticker.
        enabled: Returns the input unchanged when False.

    Returns:
        list[RankBuilderResult]: The re-ordered ranking.
    """
    if not enabled:
        return list(results)

    signals = {
        company.ticker: company.technical_analysis
        for company in companies
        if company.technical_analysis is not None
    }

    annotated = [
        (technical_score(signals.get(result.ticker)), _annotate(result, signals))
        for result in results
    ]

    group_size = max(_MIN_GROUP_SIZE, len(results) // _GROUP_FRACTION)
    reordered: list[RankBuilderResult] = []

    for start in range(0, len(annotated), group_size):
        group = annotated[start : start + group_size]
        group.sort(key=lambda item: item[0], reverse=True)
        reordered.extend(result for _, result in group)

    return reordered


def _annotate(
    result: RankBuilderResult,
    signals: dict[str, TechnicalSignal],
) -> RankBuilderResult:
    signal = signals.get(result.ticker)
    if signal is None:
        return result

    rational = f"{result.rational}\n\nTechnical analysis: {technical_summary(signal)}"
    return result.model_copy(update={"rational": rational})
