# strategies/base.py

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import ClassVar, Generic, TypeVar

from equity_ranker.schemas import (
    CompanyData,
    Criterion,
    KeyMetrics,
    RankBuilderResult,
    StrategyAnalysis,
)

from ._utils import (
    apply_technical_prioritization,
    deduplicate_by_company,
    market_cap_preference,
    prepare_universe,
)
from .params import StrategyParams

P = TypeVar("P", bound=StrategyParams)


class BaseStrategy(ABC, Generic[P]):
    """
    Shared contract for every deterministic valuation strategy.

    Strategies are stateless: every method is a pure function of its
    arguments, so one instance may be shared across threads and calls.
    """

    name: ClassVar[str]
    params_type: ClassVar[type[StrategyParams]]

    @abstractmethod
    def validate_company_data(self, company: CompanyData, params: P) -> bool:
        """
        Cheap pre-filter run before analysis in a ranking.

        Returns:
            bool: True only if the fields needed for a verdict are present.
        """

    @abstractmethod
    def run_analysis(self, company: CompanyData, params: P) -> StrategyAnalysis:
        """
        Evaluate one company against the strategy's ordered criteria.

        Returns:
            StrategyAnalysis: The verdict for the company.
        """

    @abstractmethod
    def run_ranking(
        self,
        companies: Sequence[CompanyData],
        params: P,
    ) -> list[RankBuilderResult]:
        """
        Rank a universe of companies by the strategy's composite key.

        Returns:
            list[RankBuilderResult]: Ordered, deduplicated, capped results.
        """

    @abstractmethod
    def generate_rational(self, params: P) -> str:
        """
        Describe the strategy's methodology for the given parameters.

        Returns:
            str: Markdown methodology text.
        """

    def default_params(self) -> P:
        """
        Build the strategy's default parameters.

        Returns:
            P: Parameters with every field at its default.
        """
        return self.params_type()

    def _universe(
        self,
        companies: Sequence[CompanyData],
        params: P,
    ) -> list[CompanyData]:
        return prepare_universe(
            companies,
            asset_type=params.asset_type_filter,
            size=params.company_size,
        )

    def _finalise(
        self,
        results: Sequence[RankBuilderResult],
        companies: Sequence[CompanyData],
        params: P,
        *,
        sort_key: Callable[[RankBuilderResult], float],
        limit: int | None = None,
    ) -> list[RankBuilderResult]:
        """
        Sort, deduplicate, truncate and optionally technically prioritise.

        Args:
            results: Unordered eligible results.
            companies: Universe used for market caps and technical readings.
            params: Ranking parameters.
            sort_key: Composite ranking key, sorted descending.
            limit: Overrides ``params.limit`` when given.

        Returns:
            list[RankBuilderResult]: The final ranking.
        """
        ordered = sorted(results, key=sort_key, reverse=True)
        unique = deduplicate_by_company(ordered, market_cap_preference(companies))
        capped_results = unique[: params.limit if limit is None else limit]

        return apply_technical_prioritization(
            capped_results,
            companies,
            enabled=params.use_technical_analysis,
        )


def criterion(label: str, passed: bool, description: str) -> Criterion:
    return Criterion(label=label, passed=passed, description=description)


def count_passed(criteria: Sequence[Criterion]) -> int:
    return sum(1 for item in criteria if item.passed)


def at_least(value: float | None, floor: float) -> bool:
    """
    Benefit-of-the-doubt lower bound: missing values pass.

    Returns:
        bool: True if the value is missing or at least ``floor``.
    """
    return value is None or value >= floor


def at_most(value: float | None, ceiling: float) -> bool:
    """
    Benefit-of-the-doubt upper bound: missing values pass.

    Returns:
        bool: True if the value is missing or at most ``ceiling``.
    """
    return value is None or value <= ceiling


def positive_or_missing(value: float | None) -> bool:
    return value is None or value > 0


def build_analysis(
    criteria: Sequence[Criterion],
    *,
    is_eligible: bool,
    fair_value: float | None,
    upside: float | None,
    reasoning: str,
    key_metrics: KeyMetrics,
    score: float | None = None,
) -> StrategyAnalysis:
    """
    Assemble a verdict, scoring it as the share of criteria passed.

    Args:
        score: Overrides the pass-rate score for strategies that weight
            their criteria.

    Returns:
        StrategyAnalysis: The immutable verdict.
    """
    if score is None:
        score = count_passed(criteria) / len(criteria) * 100 if criteria else 0.0

    return StrategyAnalysis(
        is_eligible=is_eligible,
        score=score,
        fair_value=fair_value,
        upside=upside,
        reasoning=reasoning,
        criteria=tuple(criteria),
        key_metrics=dict(key_metrics),
    )


def to_result(
    company: CompanyData,
    *,
    rational: str,
    key_metrics: KeyMetrics,
    fair_value: float | None = None,
    upside: float | None = None,
    margin_of_safety: float | None = None,
) -> RankBuilderResult:
    """
    Wrap a company and its ranking outcome in a result record.

    Returns:
        RankBuilderResult: The ranking entry.
    """
    return RankBuilderResult(
        ticker=company.ticker,
        name=company.name,
        sector=company.sector,
        current_price=company.current_price,
        logo_url=company.logo_url,
        fair_value=fair_value,
        upside=upside,
        margin_of_safety=margin_of_safety,
        rational=rational,
        key_metrics=dict(key_metrics),
    )


def metric_key(name: str) -> Callable[[RankBuilderResult], float]:
    """
    Sort key reading a numeric key metric, missing values sorting last.

    Returns:
        Callable[[RankBuilderResult], float]: Key function for ``sorted``.
    """

    def _key(result: RankBuilderResult) -> float:
        value = result.key_metrics.get(name)
        return float("-inf") if value is None else value

    return _key
