# schemas/analysis.py

from pydantic import BaseModel, ConfigDict, Field

KeyMetrics = dict[str, float | None]


class Criterion(BaseModel):
    """
    A single evaluated rule within a strategy verdict.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    label: str
    passed: bool
    description: str


class StrategyAnalysis(BaseModel):
    """
    Single-company verdict produced by one strategy.

    ``score`` is the fraction of satisfied criteria scaled to 0-100. ``upside``
    is only set when a fair value exists and the current price is positive.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    is_eligible: bool
    score: float = Field(ge=0, le=100)
    fair_value: float | None
    upside: float | None
    reasoning: str
    criteria: tuple[Criterion, ...]
    key_metrics: KeyMetrics


class RankBuilderResult(BaseModel):
    """
    One company's position in a ranking output.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    ticker: str
    name: str
    sector: str | None
    current_price: float
    logo_url: str | None = None
    fair_value: float | None = None
    upside: float | None = None
    margin_of_safety: float | None = None
    rational: str
    key_metrics: KeyMetrics = Field(default_factory=dict)
