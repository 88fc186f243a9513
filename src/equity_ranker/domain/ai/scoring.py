# ai/scoring.py

import asyncio
import logging
from collections.abc import Sequence

from pydantic import ValidationError

from equity_ranker.adapters.llm import LLMClient, LLMError
from equity_ranker.schemas import CompanyData, RankBuilderResult, StrategyAnalysis

from ..strategies.base import BaseStrategy
from ..strategies.dividend_yield import DividendYieldStrategy
from ..strategies.fcd import FCDStrategy
from ..strategies.fundamentalist import FundamentalistStrategy
from ..strategies.gordon import GordonStrategy
from ..strategies.graham import GrahamStrategy
from ..strategies.low_pe import LowPEStrategy
from ..strategies.magic_formula import MagicFormulaStrategy
from ..strategies.params import (
    AIParams,
    DividendYieldParams,
    FCDParams,
    FundamentalistParams,
    GordonParams,
    GrahamParams,
    LowPEParams,
    MagicFormulaParams,
    StrategyParams,
)
from .calls import complete_with_timeout
from .models import STRATEGY_KEYS, AIPipelineSettings, CompanyEvaluation, ScoredCompany
from .parsing import ResponseParseError, parse_batch_response
from .prompts import (
    BATCH_FORMAT_GUIDANCE,
    build_batch_prompt,
    build_retry_prompt,
    technical_guidance,
)
from .validation import validate_batch

logger = logging.getLogger(__name__)

# Strategies run for every shortlisted company, with the parameters used there
STRATEGY_RUNS: dict[str, tuple[BaseStrategy, StrategyParams]] = {
    "graham": (GrahamStrategy(), GrahamParams(margin_of_safety=0.20)),
    "dividend_yield": (DividendYieldStrategy(), DividendYieldParams(min_yield=0.04)),
    "low_pe": (LowPEStrategy(), LowPEParams(max_pe=15.0, min_roe=0.12)),
    "magic_formula": (
        MagicFormulaStrategy(),
        MagicFormulaParams(min_roic=0.15, min_ey=0.08),
    ),
    "fcd": (FCDStrategy(), FCDParams(min_margin_of_safety=0.15)),
    "gordon": (GordonStrategy(), GordonParams()),
    "fundamentalist": (FundamentalistStrategy(), FundamentalistParams()),
}

_FAILED_REASONING = "Analysis failed"


def evaluate_company(company: CompanyData) -> CompanyEvaluation:
    """
    Run every deterministic strategy against one company.

    Returns:
        CompanyEvaluation: The company with one verdict per strategy.
    """
    return CompanyEvaluation(
        company=company,
        analyses={
            key: strategy.run_analysis(company, params)
            for key, (strategy, params) in STRATEGY_RUNS.items()
        },
    )


def placeholder_evaluation(company: CompanyData) -> CompanyEvaluation:
    """
    All-ineligible stand-in for a company whose analysis raised.

    Returns:
        CompanyEvaluation: Zero-score, ineligible verdicts for every strategy.
    """
    failed = StrategyAnalysis(
        is_eligible=False,
        score=0.0,
        fair_value=None,
        upside=None,
        reasoning=_FAILED_REASONING,
        criteria=(),
        key_metrics={},
    )
    return CompanyEvaluation(
        company=company,
        analyses=dict.fromkeys(STRATEGY_KEYS, failed),
    )


async def execute_strategies(
    companies: Sequence[CompanyData],
    settings: AIPipelineSettings,
) -> list[CompanyEvaluation]:
    """
    Evaluate companies in concurrent waves of worker threads.

    Outcomes are collected with ``return_exceptions=True`` so one company's
    failure only replaces that company's verdicts with a placeholder.

    Returns:
        list[CompanyEvaluation]: One evaluation per company, in input order.
    """
    evaluations: list[CompanyEvaluation] = []

    for start in range(0, len(companies), settings.wave_size):
        wave = companies[start : start + settings.wave_size]
        outcomes = await asyncio.gather(
            *(asyncio.to_thread(evaluate_company, company) for company in wave),
            return_exceptions=True,
        )

        for company, outcome in zip(wave, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Strategy execution failed for %s: %s",
                    company.ticker,
                    outcome,
                    exc_info=outcome,
                )
                evaluations.append(placeholder_evaluation(company))
            else:
                evaluations.append(outcome)

    logger.info("Strategies executed for %d companies", len(evaluations))
    return evaluations


def to_ranked(
    scored: ScoredCompany,
    evaluation: CompanyEvaluation,
) -> RankBuilderResult:
    """
    Merge a model score with the company record it refers to.

    Returns:
        RankBuilderResult: The ranking entry.
    """
    company = evaluation.company
    confidence = min(max(scored.confidence, 0.0), 1.0)

    return RankBuilderResult(
        ticker=company.ticker,
        name=company.name,
        sector=company.sector,
        current_price=company.current_price,
        logo_url=company.logo_url,
        fair_value=scored.fair_value,
        upside=scored.upside,
        margin_of_safety=None,
        rational=scored.reasoning,
        key_metrics={
            "composite_score": scored.score,
            "confidence_level": confidence,
            "eligible_strategies": float(evaluation.eligible_count),
            "ai_score": scored.score,
        },
    )


async def score_batch(
    evaluations: Sequence[CompanyEvaluation],
    params: AIParams,
    client: LLMClient,
    settings: AIPipelineSettings,
) -> list[RankBuilderResult] | None:
    """
    Ask the model to score every shortlisted company in one call.

    Parse and validation failures are fed back as corrective guidance for
    the next attempt. Model failures never propagate.

    Returns:
        list[RankBuilderResult] | None: Scored results, or None once every
            attempt has failed.
    """
    base_prompt = build_batch_prompt(evaluations, params)
    by_ticker = {evaluation.company.ticker: evaluation for evaluation in evaluations}
    expected = list(by_ticker)
    errors: list[str] = []

    for attempt in range(1, settings.max_attempts + 1):
        prompt = build_retry_prompt(base_prompt, errors)
        try:
            response = await complete_with_timeout(
                client,
                prompt,
                use_search=True,
                timeout=settings.scoring_timeout,
            )
            records = parse_batch_response(response)
        except ResponseParseError as error:
            logger.warning("Batch attempt %d unparseable: %s", attempt, error)
            errors.append(BATCH_FORMAT_GUIDANCE)
            continue
        except LLMError as error:
            logger.warning("Batch attempt %d failed: %s", attempt, error)
            errors.append(technical_guidance(error, "JSON"))
            continue

        problems = validate_batch(records, expected)
        if problems:
            logger.warning(
                "Batch attempt %d invalid: %s",
                attempt,
                " | ".join(problems),
            )
            errors.extend(problems)
            continue

        try:
            scored = [ScoredCompany.model_validate(_normalised(r)) for r in records]
        except ValidationError as error:
            logger.warning("Batch attempt %d malformed: %s", attempt, error)
            errors.append(BATCH_FORMAT_GUIDANCE)
            continue

        logger.info("Model scored %d companies on attempt %d", len(scored), attempt)
        return [to_ranked(entry, by_ticker[entry.ticker]) for entry in scored]

    logger.warning("Batch scoring failed after %d attempts", settings.max_attempts)
    return None


def _normalised(record: dict) -> dict:
    return {**record, "ticker": str(record["ticker"]).strip().upper()}
