# ai/fallback.py

import logging
import random
from collections.abc import Sequence
from itertools import combinations
from statistics import fmean

from equity_ranker.schemas import CompanyData, RankBuilderResult, StrategyAnalysis

from ..strategies._utils import upside_percent
from ..strategies.params import AIParams, RiskTolerance
from .models import STRATEGY_LABELS, AIPipelineSettings, CompanyEvaluation

logger = logging.getLogger(__name__)

# Composite for a company no strategy approved: half its mean strategy score
NO_ELIGIBLE_DISCOUNT = 0.5

OPENINGS: tuple[str, ...] = (
    "{ticker} stands out in the deterministic analysis",
    "Fundamental screening places {ticker} among the candidates",
    "The combined strategy results favour {ticker}",
    "{ticker} shows a balanced quantitative profile",
)

# Lower-cased sector fragments and the commentary they trigger
SECTOR_COMMENTARY: tuple[tuple[str, str], ...] = (
    ("banco", "Banks tend to benefit from high interest rates and steady credit."),
    ("financ", "Financial services depend on the credit cycle and interest rates."),
    ("segur", "Insurers combine predictable premiums with float income."),
    ("energia", "Power utilities offer regulated, predictable cash flows."),
    ("elétric", "Power utilities offer regulated, predictable cash flows."),
    ("saneamento", "Sanitation enjoys inelastic demand and long concessions."),
    ("petróleo", "Oil and gas results follow commodity prices and the exchange rate."),
    ("mineração", "Mining results follow global commodity demand."),
    ("varejo", "Retail is sensitive to household income and credit conditions."),
    ("tecnologia", "Technology offers growth with higher valuation risk."),
)

CLOSINGS: dict[RiskTolerance, str] = {
    RiskTolerance.CONSERVATIVE: (
        "Fits a conservative profile that prioritises capital preservation."
    ),
    RiskTolerance.MODERATE: "Fits a moderate profile balancing risk and return.",
    RiskTolerance.AGGRESSIVE: (
        "Fits an aggressive profile seeking higher appreciation potential."
    ),
}

HIGH_LEVERAGE = 1.0
LOW_LEVERAGE = 0.5
STRONG_MARGIN = 0.15
THIN_MARGIN = 0.05


def _weighted_mean(
    keys: Sequence[str],
    analyses: dict[str, StrategyAnalysis],
    weights: dict[str, float],
) -> float:
    total_weight = sum(weights.get(key, 0.0) for key in keys)
    if total_weight > 0:
        return (
            sum(weights.get(key, 0.0) * analyses[key].score for key in keys)
            / total_weight
        )
    return fmean(analyses[key].score for key in keys)


def _consistency_bonus(count: int, settings: AIPipelineSettings) -> float:
    return min(count * settings.consistency_bonus, settings.max_consistency_bonus)


def composite_score(
    evaluation: CompanyEvaluation,
    settings: AIPipelineSettings,
    rng: random.Random,
) -> float:
    """
    Heuristic composite used when the model cannot score the batch.

    Each group of eligible strategies is worth the weighted mean of its
    scores, with the weights renormalised over that group, plus a bonus
    proportional to its size bounded by ``max_consistency_bonus``. The
    company is credited with its best group, so approval by one more
    strategy never lowers the composite. The floor, and the whole composite
    when nothing is eligible, is ``NO_ELIGIBLE_DISCOUNT`` times the mean
    score of every strategy. A perturbation drawn uniformly from +/-
    ``jitter`` is added last.

    Returns:
        float: The composite, clamped to 0-100.
    """
    analyses = evaluation.analyses
    eligible = [key for key, analysis in analyses.items() if analysis.is_eligible]

    scores = [analysis.score for analysis in analyses.values()]
    base = fmean(scores) * NO_ELIGIBLE_DISCOUNT if scores else 0.0

    if eligible:
        base = max(
            base,
            *(
                _weighted_mean(group, analyses, settings.strategy_weights)
                + _consistency_bonus(size, settings)
                for size in range(1, len(eligible) + 1)
                for group in combinations(eligible, size)
            ),
        )

    noise = rng.uniform(-settings.jitter, settings.jitter) if settings.jitter else 0.0

    return min(max(base + noise, 0.0), 100.0)


def fallback_fair_value(evaluation: CompanyEvaluation) -> float | None:
    """
    Mean fair value across eligible strategies that produced one.

    Returns:
        float | None: The mean, or None when no eligible strategy has one.
    """
    values = [
        analysis.fair_value
        for analysis in evaluation.analyses.values()
        if analysis.is_eligible and analysis.fair_value is not None
    ]
    return fmean(values) if values else None


def sector_commentary(sector: str | None) -> str | None:
    if not sector:
        return None

    lowered = sector.lower()
    return next(
        (comment for fragment, comment in SECTOR_COMMENTARY if fragment in lowered),
        None,
    )


def _callouts(company: CompanyData) -> list[str]:
    callouts: list[str] = []
    leverage = company.financials.net_debt_to_equity
    margin = company.financials.net_margin

    if leverage is not None and leverage > HIGH_LEVERAGE:
        callouts.append(
            f"Leverage deserves attention (net debt/equity {leverage:.2f}).",
        )
    elif leverage is not None and leverage < LOW_LEVERAGE:
        callouts.append("Conservative balance sheet with low leverage.")

    if margin is not None and margin > STRONG_MARGIN:
        callouts.append(f"Strong net margin of {margin:.1%}.")
    elif margin is not None and margin < THIN_MARGIN:
        callouts.append(f"Thin net margin of {margin:.1%} limits the buffer.")

    return callouts


def fallback_narrative(
    evaluation: CompanyEvaluation,
    params: AIParams,
    rng: random.Random,
) -> str:
    """
    Templated narrative for a fallback-ranked company.

    Returns:
        str: Opening, strengths, sector comment, callouts and a closing
            matched to the investor's risk tolerance.
    """
    company = evaluation.company
    strengths = [
        STRATEGY_LABELS.get(key, key)
        for key, analysis in evaluation.analyses.items()
        if analysis.is_eligible
    ]

    parts = [rng.choice(OPENINGS).format(ticker=company.ticker) + "."]
    if strengths:
        parts.append(
            f"Approved by {len(strengths)} strategies: {', '.join(strengths)}.",
        )
    else:
        parts.append("No deterministic strategy fully approved it yet.")

    commentary = sector_commentary(company.sector)
    if commentary:
        parts.append(commentary)

    parts.extend(_callouts(company))
    parts.append(CLOSINGS[params.risk_tolerance])
    return " ".join(parts)


def _fallback_result(
    evaluation: CompanyEvaluation,
    params: AIParams,
    settings: AIPipelineSettings,
    rng: random.Random,
) -> RankBuilderResult:
    company = evaluation.company
    score = composite_score(evaluation, settings, rng)
    fair_value = fallback_fair_value(evaluation)

    return RankBuilderResult(
        ticker=company.ticker,
        name=company.name,
        sector=company.sector,
        current_price=company.current_price,
        logo_url=company.logo_url,
        fair_value=fair_value,
        upside=upside_percent(fair_value, company.current_price),
        margin_of_safety=None,
        rational=fallback_narrative(evaluation, params, rng),
        key_metrics={
            "composite_score": round(score, 1),
            "confidence_level": 0.5,
            "eligible_strategies": float(evaluation.eligible_count),
            "ai_score": None,
        },
    )


def _minimal_result(company: CompanyData) -> RankBuilderResult:
    return RankBuilderResult(
        ticker=company.ticker,
        name=company.name,
        sector=company.sector,
        current_price=company.current_price,
        logo_url=company.logo_url,
        rational=f"{company.ticker} kept in the ranking without a full analysis.",
        key_metrics={"composite_score": 0.0, "eligible_strategies": 0.0},
    )


def fallback_ranking(
    evaluations: Sequence[CompanyEvaluation],
    params: AIParams,
    settings: AIPipelineSettings,
    rng: random.Random,
) -> list[RankBuilderResult]:
    """
    Rank companies without the model, by heuristic composite.

    This is the pipeline's safety net: a company whose result cannot be
    built is kept with a zero composite instead of aborting the ranking.

    Returns:
        list[RankBuilderResult]: Results sorted by composite, descending.
    """
    results: list[RankBuilderResult] = []

    for evaluation in evaluations:
        try:
            results.append(_fallback_result(evaluation, params, settings, rng))
        except Exception as error:
            logger.error(
                "Fallback result failed for %s: %s",
                evaluation.company.ticker,
                error,
                exc_info=True,
            )
            results.append(_minimal_result(evaluation.company))

    logger.info("Fallback ranking built for %d companies", len(results))
    return sorted(
        results,
        key=lambda result: result.key_metrics.get("composite_score") or 0.0,
        reverse=True,
    )
