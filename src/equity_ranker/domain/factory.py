# domain/factory.py

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum

from equity_ranker.schemas import CompanyData, RankBuilderResult, StrategyAnalysis

from .ai import AIStrategy
from .strategies import (
    BarsiStrategy,
    BaseStrategy,
    DividendYieldStrategy,
    FCDStrategy,
    FundamentalistStrategy,
    GordonStrategy,
    GrahamStrategy,
    LowPEStrategy,
    MagicFormulaStrategy,
    ScreeningStrategy,
    StrategyParams,
)

logger = logging.getLogger(__name__)


class StrategyType(str, Enum):
    """
    Closed set of strategy identifiers accepted by the factory.
    """

    GRAHAM = "graham"
    FCD = "fcd"
    DIVIDEND_YIELD = "dividendYield"
    LOW_PE = "lowPE"
    MAGIC_FORMULA = "magicFormula"
    GORDON = "gordon"
    FUNDAMENTALIST = "fundamentalist"
    BARSI = "barsi"
    SCREENING = "screening"
    AI = "ai"


Strategy = BaseStrategy | AIStrategy

_DETERMINISTIC: dict[StrategyType, type[BaseStrategy]] = {
    StrategyType.GRAHAM: GrahamStrategy,
    StrategyType.FCD: FCDStrategy,
    StrategyType.DIVIDEND_YIELD: DividendYieldStrategy,
    StrategyType.LOW_PE: LowPEStrategy,
    StrategyType.MAGIC_FORMULA: MagicFormulaStrategy,
    StrategyType.GORDON: GordonStrategy,
    StrategyType.FUNDAMENTALIST: FundamentalistStrategy,
    StrategyType.BARSI: BarsiStrategy,
    StrategyType.SCREENING: ScreeningStrategy,
}


def resolve_strategy_type(token: StrategyType | str) -> StrategyType:
    """
    Map a strategy token to its enum member.

    Returns:
        StrategyType: The matching strategy type.

    Raises:
        ValueError: When the token names no known strategy.
    """
    try:
        return StrategyType(token)
    except ValueError:
        raise ValueError(f"Unknown strategy type: {token}") from None


def create_strategy(token: StrategyType | str) -> Strategy:
    """
    Build the strategy registered for a token.

    Args:
        token: A ``StrategyType`` or its string value, e.g. ``"lowPE"``.

    Returns:
        Strategy: A fresh strategy instance.

    Raises:
        ValueError: When the token names no known strategy.
    """
    strategy_type = resolve_strategy_type(token)
    if strategy_type is StrategyType.AI:
        return AIStrategy()
    return _DETERMINISTIC[strategy_type]()


def _checked_params(
    strategy: Strategy,
    params: StrategyParams | None,
) -> StrategyParams:
    if params is None:
        return strategy.default_params()
    if not isinstance(params, strategy.params_type):
        raise TypeError(
            f"{strategy.name} expects {strategy.params_type.__name__}, "
            f"got {type(params).__name__}",
        )
    return params


def run_analysis(
    token: StrategyType | str,
    company: CompanyData,
    params: StrategyParams | None = None,
) -> StrategyAnalysis:
    """
    Analyse one company with the strategy named by ``token``.

    Returns:
        StrategyAnalysis: The strategy's verdict.
    """
    strategy = create_strategy(token)
    return strategy.run_analysis(company, _checked_params(strategy, params))


def run_ranking(
    token: StrategyType | str,
    companies: Sequence[CompanyData],
    params: StrategyParams | None = None,
) -> list[RankBuilderResult]:
    """
    Rank companies with a deterministic strategy.

    Returns:
        list[RankBuilderResult]: The strategy's ranking.

    Raises:
        ValueError: For the AI strategy, which is only available through
            ``run_ranking_async``.
    """
    strategy = create_strategy(token)
    if isinstance(strategy, AIStrategy):
        raise ValueError(
            "The ai strategy ranks asynchronously; use run_ranking_async",
        )
    return strategy.run_ranking(companies, _checked_params(strategy, params))


async def run_ranking_async(
    token: StrategyType | str,
    companies: Sequence[CompanyData],
    params: StrategyParams | None = None,
) -> list[RankBuilderResult]:
    """
    Rank companies with any strategy from async code.

    Deterministic strategies run in a worker thread so the event loop stays
    responsive; the AI strategy runs its own async pipeline.

    Returns:
        list[RankBuilderResult]: The strategy's ranking.
    """
    strategy = create_strategy(token)
    checked = _checked_params(strategy, params)
    logger.debug("Running %s ranking over %d companies", strategy.name, len(companies))

    if isinstance(strategy, AIStrategy):
        return await strategy.run_ranking(companies, checked)
    return await asyncio.to_thread(strategy.run_ranking, companies, checked)


def generate_rational(
    token: StrategyType | str,
    params: StrategyParams | None = None,
) -> str:
    """
    Methodology text of the strategy named by ``token``.

    Returns:
        str: Markdown methodology.
    """
    strategy = create_strategy(token)
    return strategy.generate_rational(_checked_params(strategy, params))
