# ai/models.py

from dataclasses import dataclass, field
from typing import NamedTuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from equity_ranker.schemas import CompanyData, StrategyAnalysis

# Strategy keys, in the order they are run and presented to the model
STRATEGY_KEYS: tuple[str, ...] = (
    "graham",
    "dividend_yield",
    "low_pe",
    "magic_formula",
    "fcd",
    "gordon",
    "fundamentalist",
)

STRATEGY_LABELS: dict[str, str] = {
    "graham": "Graham",
    "dividend_yield": "Dividend Yield",
    "low_pe": "Low P/E",
    "magic_formula": "Magic Formula",
    "fcd": "DCF",
    "gordon": "Gordon",
    "fundamentalist": "Fundamentalist 3+1",
}


def _default_weights() -> dict[str, float]:
    return {
        "graham": 0.15,
        "dividend_yield": 0.15,
        "low_pe": 0.10,
        "magic_formula": 0.15,
        "fcd": 0.15,
        "gordon": 0.10,
        "fundamentalist": 0.20,
    }


@dataclass(frozen=True, slots=True)
class AIPipelineSettings:
    """
    Tunable limits of the AI-assisted ranking pipeline.

    Returns:
        AIPipelineSettings: Immutable pipeline settings.
    """

    # wall-clock limits, in seconds, for each model call
    selection_timeout: float = 90.0
    scoring_timeout: float = 240.0

    # attempts per model-backed stage, counting the first
    max_attempts: int = 3

    # companies analysed concurrently per wave
    wave_size: int = 10

    # candidates kept after the quality pre-filter
    max_candidates: int = 50

    # selection target = min(limit + headroom, cap)
    selection_headroom: int = 5
    selection_cap: int = 15

    # overall score a candidate must exceed
    min_overall_score: float = 50.0

    # fallback composite: per-strategy weights over eligible strategies
    strategy_weights: dict[str, float] = field(default_factory=_default_weights)

    # fallback composite: bonus per eligible strategy and its ceiling
    consistency_bonus: float = 2.0
    max_consistency_bonus: float = 10.0

    # fallback composite: bound of the random perturbation
    jitter: float = 1.5


def default_settings() -> AIPipelineSettings:
    """
    Build the production pipeline settings.

    Returns:
        AIPipelineSettings: Settings with every field at its default.
    """
    return AIPipelineSettings()


class CompanyEvaluation(NamedTuple):
    """
    A company with the verdict of every deterministic strategy.
    """

    company: CompanyData
    analyses: dict[str, StrategyAnalysis]

    @property
    def eligible_count(self) -> int:
        return sum(1 for analysis in self.analyses.values() if analysis.is_eligible)


class ScoredCompany(BaseModel):
    """
    One validated entry of the model's batch-scoring response.

    Accepts the camelCase keys requested in the prompt.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ticker: str
    score: float = Field(ge=0, le=100)
    fair_value: float | None = Field(
        default=None,
        validation_alias=AliasChoices("fairValue", "fair_value"),
    )
    upside: float | None = None
    confidence: float = Field(
        default=0.5,
        validation_alias=AliasChoices("confidenceLevel", "confidence"),
    )
    reasoning: str
