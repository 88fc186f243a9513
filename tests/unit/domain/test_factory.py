# domain/test_factory.py

import pytest

from equity_ranker.domain.ai import AIStrategy
from equity_ranker.domain.factory import (
    StrategyType,
    create_strategy,
    generate_rational,
    resolve_strategy_type,
    run_analysis,
    run_ranking,
    run_ranking_async,
)
from equity_ranker.domain.strategies import GrahamParams, LowPEStrategy
from equity_ranker.domain.strategies.params import AIParams
from equity_ranker.schemas import CompanyData

pytestmark = pytest.mark.unit


def _company(ticker: str = "ABCD3") -> CompanyData:
    """
    Build a sound company with a Graham fair value well above its price.
    """
    return CompanyData(
        ticker=ticker,
        name=f"{ticker} SA",
        current_price=15.0,
        financials={
            "eps": 2.0,
            "net_income": 5e8,
            "book_value_per_share": 10.0,
            "roe": 0.15,
            "current_ratio": 1.5,
            "net_margin": 0.10,
            "net_debt_to_equity": 0.5,
            "earnings_growth": 0.05,
            "market_cap": 5e9,
        },
    )


def test_resolve_strategy_type_accepts_camel_case_token() -> None:
    """
    ARRANGE: the dividend yield token
    ACT:     resolve_strategy_type
    ASSERT:  the matching enum member
    """
    actual = resolve_strategy_type("dividendYield")

    assert actual is StrategyType.DIVIDEND_YIELD


def test_resolve_strategy_type_rejects_unknown_token() -> None:
    """
    ARRANGE: an unknown token
    ACT:     resolve_strategy_type
    ASSERT:  ValueError naming the token
    """
    with pytest.raises(ValueError, match="Unknown strategy type: momentum"):
        resolve_strategy_type("momentum")


def test_create_strategy_builds_registered_class() -> None:
    """
    ARRANGE: the low P/E token
    ACT:     create_strategy
    ASSERT:  a LowPEStrategy
    """
    actual = create_strategy("lowPE")

    assert isinstance(actual, LowPEStrategy)


def test_create_strategy_builds_ai_strategy() -> None:
    """
    ARRANGE: the ai enum member
    ACT:     create_strategy
    ASSERT:  an AIStrategy
    """
    actual = create_strategy(StrategyType.AI)

    assert isinstance(actual, AIStrategy)


def test_every_strategy_type_is_constructible() -> None:
    """
    ARRANGE: every strategy type
    ACT:     create_strategy for each
    ASSERT:  each strategy reports a name
    """
    actual = [create_strategy(token).name for token in StrategyType]

    assert len(actual) == len(StrategyType)


def test_run_analysis_defaults_params() -> None:
    """
    ARRANGE: a sound company and no params
    ACT:     run_analysis with graham
    ASSERT:  eligible verdict
    """
    actual = run_analysis("graham", _company())

    assert actual.is_eligible is True


def test_run_analysis_rejects_mismatched_params() -> None:
    """
    ARRANGE: Graham params for the low P/E strategy
    ACT:     run_analysis
    ASSERT:  TypeError
    """
    with pytest.raises(TypeError):
        run_analysis("lowPE", _company(), GrahamParams())


def test_run_ranking_rejects_ai_strategy() -> None:
    """
    ARRANGE: the ai token
    ACT:     run_ranking synchronously
    ASSERT:  ValueError
    """
    with pytest.raises(ValueError):
        run_ranking("ai", [_company()], AIParams())


def test_run_ranking_ranks_with_deterministic_strategy() -> None:
    """
    ARRANGE: one sound company
    ACT:     run_ranking with graham
    ASSERT:  the company is ranked
    """
    actual = run_ranking("graham", [_company()])

    assert [r.ticker for r in actual] == ["ABCD3"]


async def test_run_ranking_async_runs_deterministic_strategy() -> None:
    """
    ARRANGE: one sound company
    ACT:     run_ranking_async with graham
    ASSERT:  the same ranking as the sync path
    """
    actual = await run_ranking_async("graham", [_company()])

    assert [r.ticker for r in actual] == ["ABCD3"]


async def test_run_ranking_async_ai_with_empty_universe() -> None:
    """
    ARRANGE: no companies
    ACT:     run_ranking_async with ai
    ASSERT:  empty ranking without contacting the model
    """
    actual = await run_ranking_async("ai", [])

    assert actual == []


def test_generate_rational_uses_params() -> None:
    """
    ARRANGE: a 30% Graham margin of safety
    ACT:     generate_rational
    ASSERT:  the margin appears in the text
    """
    actual = generate_rational("graham", GrahamParams(margin_of_safety=0.3))

    assert "30%" in actual
