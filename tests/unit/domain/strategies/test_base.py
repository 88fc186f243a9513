# strategies/test_base.py

import pytest

from equity_ranker.domain.strategies import (
    BarsiStrategy,
    DividendYieldStrategy,
    FCDStrategy,
    FundamentalistStrategy,
    GordonStrategy,
    GrahamStrategy,
    LowPEStrategy,
    MagicFormulaStrategy,
)
from equity_ranker.domain.strategies.base import (
    build_analysis,
    count_passed,
    criterion,
)
from equity_ranker.domain.strategies.params import (
    BarsiParams,
    DividendYieldParams,
    FCDParams,
    FundamentalistParams,
    GordonParams,
    GrahamParams,
    LowPEParams,
    MagicFormulaParams,
)
from equity_ranker.schemas import CompanyData

pytestmark = pytest.mark.unit

_STRATEGIES = [
    pytest.param(GrahamStrategy(), GrahamParams(), id="graham"),
    pytest.param(DividendYieldStrategy(), DividendYieldParams(), id="dividend_yield"),
    pytest.param(LowPEStrategy(), LowPEParams(), id="low_pe"),
    pytest.param(MagicFormulaStrategy(), MagicFormulaParams(), id="magic_formula"),
    pytest.param(FCDStrategy(), FCDParams(), id="fcd"),
    pytest.param(GordonStrategy(), GordonParams(), id="gordon"),
    pytest.param(FundamentalistStrategy(), FundamentalistParams(), id="fundamentalist"),
    pytest.param(BarsiStrategy(), BarsiParams(), id="barsi"),
]


def _full_company() -> CompanyData:
    """
    Build a utility with every indicator, three years of history and five
    years of dividends.
    """
    financials = {
        "eps": 3.0,
        "book_value_per_share": 20.0,
        "pe": 10.0,
        "pb": 1.5,
        "psr": 1.2,
        "ev_ebitda": 6.0,
        "earnings_yield": 0.12,
        "dividend_yield": 0.07,
        "dividend_yield_12m": 0.065,
        "last_dividend": 2.1,
        "payout": 0.6,
        "roe": 0.18,
        "roa": 0.08,
        "roic": 0.16,
        "net_margin": 0.20,
        "ebitda_margin": 0.35,
        "current_ratio": 1.6,
        "net_debt_to_equity": 0.6,
        "net_debt_to_ebitda": 1.8,
        "liabilities_to_assets": 0.5,
        "earnings_growth": 0.06,
        "revenue_growth": 0.05,
        "earnings_cagr_5y": 0.08,
        "revenue_cagr_5y": 0.06,
        "market_cap": 6e9,
        "total_revenue": 3e9,
        "ebitda": 1e9,
        "free_cash_flow": 4e8,
        "operating_cash_flow": 8e8,
        "shares_outstanding": 2e8,
        "net_income": 6e8,
    }
    return CompanyData(
        ticker="CPFE3",
        name="CPFE3 SA",
        sector="Energia Elétrica",
        current_price=30.0,
        financials=financials,
        historical_financials=[
            {"year": 2023 - offset, "net_income": 5e8, "dividend_yield": dy}
            for offset, dy in enumerate((0.07, 0.06, 0.065))
        ],
        dividend_history=[
            {"year": 2019 + offset, "amount": amount}
            for offset, amount in enumerate((1.8, 1.9, 2.0, 2.1, 2.2))
        ],
    )


def _empty_company() -> CompanyData:
    """
    Build a company carrying nothing but its identity and price.
    """
    return CompanyData(ticker="ABCD3", name="ABCD", current_price=10.0)


def test_count_passed_counts_satisfied_criteria() -> None:
    """
    ARRANGE: two passing criteria and one failing
    ACT:     count_passed
    ASSERT:  two
    """
    criteria = (
        criterion("ROE", True, "ROE: 18%"),
        criterion("P/E", False, "P/E: 30"),
        criterion("Payout", True, "Payout: 60%"),
    )

    actual = count_passed(criteria)

    assert actual == 2


def test_build_analysis_scores_pass_rate() -> None:
    """
    ARRANGE: three of four criteria passing
    ACT:     build_analysis without an explicit score
    ASSERT:  a score of 75
    """
    criteria = [criterion(str(index), index < 3, "") for index in range(4)]

    actual = build_analysis(
        criteria,
        is_eligible=True,
        fair_value=None,
        upside=None,
        reasoning="Checked.",
        key_metrics={},
    )

    assert actual.score == 75.0


def test_build_analysis_without_criteria_scores_zero() -> None:
    """
    ARRANGE: no criteria
    ACT:     build_analysis without an explicit score
    ASSERT:  a score of zero
    """
    actual = build_analysis(
        (),
        is_eligible=False,
        fair_value=None,
        upside=None,
        reasoning="Nothing to check.",
        key_metrics={},
    )

    assert actual.score == 0.0


@pytest.mark.parametrize(("strategy", "params"), _STRATEGIES)
def test_run_analysis_criteria_count_ignores_missing_data(strategy, params) -> None:
    """
    ARRANGE: a fully populated company and one with no indicators
    ACT:     run_analysis on both
    ASSERT:  the same number of criteria is reported for each
    """
    full = strategy.run_analysis(_full_company(), params)
    empty = strategy.run_analysis(_empty_company(), params)

    assert len(full.criteria) == len(empty.criteria) > 0


@pytest.mark.parametrize(("strategy", "params"), _STRATEGIES)
@pytest.mark.parametrize(
    "company",
    [_full_company(), _empty_company()],
    ids=["full", "empty"],
)
def test_run_analysis_score_within_bounds(strategy, params, company) -> None:
    """
    ARRANGE: a fully populated or an empty company
    ACT:     run_analysis
    ASSERT:  the score lies within 0 to 100
    """
    actual = strategy.run_analysis(company, params)

    assert 0.0 <= actual.score <= 100.0


@pytest.mark.parametrize(("strategy", "params"), _STRATEGIES)
@pytest.mark.parametrize(
    "company",
    [_full_company(), _empty_company()],
    ids=["full", "empty"],
)
def test_run_analysis_is_repeatable(strategy, params, company) -> None:
    """
    ARRANGE: a fully populated or an empty company
    ACT:     run_analysis twice
    ASSERT:  identical verdicts and an untouched company
    """
    before = company.model_dump()

    first = strategy.run_analysis(company, params)
    second = strategy.run_analysis(company, params)

    assert first == second
    assert company.model_dump() == before
