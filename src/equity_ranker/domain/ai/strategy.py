# ai/strategy.py

import logging
import random
from collections.abc import Sequence
from typing import ClassVar

from equity_ranker.adapters.llm import GeminiClient, LLMClient
from equity_ranker.schemas import (
    CompanyData,
    Criterion,
    RankBuilderResult,
    StrategyAnalysis,
)

from ..strategies._utils import apply_technical_prioritization, deduplicate_by_company
from ..strategies.base import metric_key
from ..strategies.params import AIParams
from .fallback import fallback_ranking
from .models import AIPipelineSettings, CompanyEvaluation, default_settings
from .scoring import execute_strategies, score_batch
from .selection import (
    prefilter,
    select_companies,
    selection_target,
    weighted_random_selection,
)

logger = logging.getLogger(__name__)

_composite = metric_key("composite_score")


class AIStrategy:
    """
    Model-assisted ranking that orchestrates the deterministic strategies.

    The pipeline pre-filters the universe, asks the model for a shortlist,
    runs seven deterministic strategies on it, asks the model to score the
    shortlist and finally deduplicates, technically prioritises and caps the
    result. Any model failure degrades to a deterministic fallback, so
    ``run_ranking`` never raises for remote errors.

    Args:
        client (LLMClient | None): Model client; Gemini when omitted.
        settings (AIPipelineSettings | None): Pipeline limits.
        rng (random.Random | None): Source of every random choice, so tests
            can seed it.
    """

    name: ClassVar[str] = "ai"
    params_type: ClassVar[type[AIParams]] = AIParams

    def __init__(
        self,
        client: LLMClient | None = None,
        *,
        settings: AIPipelineSettings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._client = client or GeminiClient()
        self._settings = settings or default_settings()
        self._rng = rng or random.Random()

    def default_params(self) -> AIParams:
        return AIParams()

    def validate_company_data(self, company: CompanyData, params: AIParams) -> bool:
        return True

    def run_analysis(self, company: CompanyData, params: AIParams) -> StrategyAnalysis:
        """
        Single-company analysis is not offered by this strategy.

        Returns:
            StrategyAnalysis: An ineligible verdict explaining why.
        """
        return StrategyAnalysis(
            is_eligible=False,
            score=0.0,
            fair_value=None,
            upside=None,
            reasoning="The AI strategy is only available as a full ranking.",
            criteria=(
                Criterion(
                    label="Ranking only",
                    passed=False,
                    description="This strategy only works in full ranking mode",
                ),
            ),
            key_metrics={},
        )

    async def run_ranking(
        self,
        companies: Sequence[CompanyData],
        params: AIParams,
    ) -> list[RankBuilderResult]:
        """
        Run the full model-assisted ranking pipeline.

        Returns:
            list[RankBuilderResult]: Deduplicated results, best composite
                first, capped at ``params.limit``.
        """
        logger.info("AI ranking started for %d companies", len(companies))

        candidates = prefilter(companies, params, self._settings)
        if not candidates:
            logger.info("AI ranking has no candidates after pre-filtering")
            return []

        selected = await self._select(candidates, params)
        evaluations = await execute_strategies(selected, self._settings)
        results = await self._score(evaluations, params)

        ordered = sorted(results, key=_composite, reverse=True)
        unique = deduplicate_by_company(ordered, _composite)
        prioritised = apply_technical_prioritization(
            unique,
            selected,
            enabled=params.use_technical_analysis,
        )
        final = prioritised[: params.limit]

        logger.info(
            "AI ranking finished: %d results (%s)",
            len(final),
            ", ".join(result.ticker for result in final[:3]),
        )
        return final

    async def _select(
        self,
        candidates: list[CompanyData],
        params: AIParams,
    ) -> list[CompanyData]:
        try:
            return await select_companies(
                candidates,
                params,
                self._client,
                self._settings,
                self._rng,
            )
        except Exception as error:
            logger.error("Model selection crashed: %s", error, exc_info=True)
            target = selection_target(params.limit, self._settings)
            return weighted_random_selection(candidates, target, self._rng)

    async def _score(
        self,
        evaluations: list[CompanyEvaluation],
        params: AIParams,
    ) -> list[RankBuilderResult]:
        try:
            scored = await score_batch(
                evaluations,
                params,
                self._client,
                self._settings,
            )
        except Exception as error:
            logger.error("Batch scoring crashed: %s", error, exc_info=True)
            scored = None

        if scored is not None:
            return scored

        logger.warning("Using deterministic fallback ranking")
        return fallback_ranking(evaluations, params, self._settings, self._rng)

    def generate_rational(self, params: AIParams) -> str:
        technical = (
            "\n- **Technical prioritisation**: oversold readings (RSI, "
            "stochastic) refine entry timing"
            if params.use_technical_analysis
            else ""
        )
        return f"""# AI-ASSISTED PREDICTIVE RANKING

**Philosophy**: A language model synthesises the results of every \
deterministic strategy into one comprehensive, predictive assessment.

## Methodology

- **Smart selection**: a first model call shortlists companies for the \
investor profile
- **Multi-strategy analysis**: runs Graham, Dividend Yield, Low P/E, Magic \
Formula, DCF, Gordon and Fundamentalist 3+1 on each shortlisted company
- **Live research**: the scoring call searches the web for recent news
- **Batch scoring**: a second model call scores every company at once
- **Safety net**: when the model fails, a weighted composite of the \
strategies ranks the shortlist deterministically{technical}

## Parameters

- **Risk tolerance**: {params.risk_tolerance.value}
- **Horizon**: {params.time_horizon.value}
- **Focus**: {params.focus.value}

## Quality filters

- Only profitable companies (ROE > 0 and net margin > 0)
- Banks and insurers judged on ROE alone
- Overall score above 50

> **IMPORTANT**: model output may vary slightly between runs.

**Result**: A predictive ranking tailored to your risk profile and goals."""
