# strategies/test_magic_formula.py

import pytest

from equity_ranker.domain.strategies.magic_formula import (
    MagicFormulaStrategy,
    magic_score,
    thresholds_for,
)
from equity_ranker.domain.strategies.params import MagicFormulaParams
from equity_ranker.schemas import CompanyData

pytestmark = pytest.mark.unit


def _company(ticker: str = "WEGE3", **overrides) -> CompanyData:
    """
    Build a high-ROIC business with a 10% earnings yield.
    """
    financials = {
        "net_income": 5e8,
        "roic": 0.20,
        "earnings_yield": 0.10,
        "roe": 0.18,
        "revenue_growth": 0.03,
        "net_margin": 0.12,
        "current_ratio": 1.5,
        "net_debt_to_equity": 0.5,
        "market_cap": 2e9,
        **overrides,
    }
    return CompanyData(
        ticker=ticker,
        name=f"{ticker} SA",
        current_price=40.0,
        financials=financials,
    )


def test_magic_score_blends_quality_and_price() -> None:
    """
    ARRANGE: ROIC 20%, EY 10%, ROE 18%, margin 12%, growth 3%
    ACT:     magic_score
    ASSERT:  20 + 20 + 9 + 6 + 6.4
    """
    actual = magic_score(0.20, 0.10, 0.18, 0.12, 0.03)

    assert actual == pytest.approx(61.4)


def test_magic_score_caps_outlier_roic() -> None:
    """
    ARRANGE: a 300% ROIC and nothing else
    ACT:     magic_score
    ASSERT:  ROIC contributes at most 50 points
    """
    actual = magic_score(3.0, None, None, None, -0.05)

    assert actual == pytest.approx(50.0)


def test_thresholds_for_bdr_use_floors() -> None:
    """
    ARRANGE: a BDR with an 8% ROIC floor requested
    ACT:     thresholds_for
    ASSERT:  the floor is raised to 12%
    """
    actual = thresholds_for("MSFT34", MagicFormulaParams(min_roic=0.08))

    assert actual.min_roic == 0.12


def test_analysis_eligible_for_quality_business() -> None:
    """
    ARRANGE: a high-ROIC business
    ACT:     run_analysis
    ASSERT:  eligible
    """
    actual = MagicFormulaStrategy().run_analysis(_company(), MagicFormulaParams())

    assert actual.is_eligible is True


def test_analysis_missing_roic_is_ineligible() -> None:
    """
    ARRANGE: a business without ROIC
    ACT:     run_analysis
    ASSERT:  ineligible even with other criteria passing
    """
    actual = MagicFormulaStrategy().run_analysis(
        _company(roic=None),
        MagicFormulaParams(),
    )

    assert actual.is_eligible is False


def test_validate_company_data_requires_earnings_yield() -> None:
    """
    ARRANGE: earnings yield below the floor
    ACT:     validate_company_data
    ASSERT:  False
    """
    actual = MagicFormulaStrategy().validate_company_data(
        _company(earnings_yield=0.05),
        MagicFormulaParams(),
    )

    assert actual is False


def test_ranking_orders_by_magic_score() -> None:
    """
    ARRANGE: two businesses, the second with a higher earnings yield
    ACT:     run_ranking
    ASSERT:  the cheaper business leads
    """
    companies = [_company("WEGE3"), _company("RADL3", earnings_yield=0.15)]

    actual = MagicFormulaStrategy().run_ranking(companies, MagicFormulaParams())

    assert [r.ticker for r in actual] == ["RADL3", "WEGE3"]


def test_ranking_keeps_one_ticker_per_company() -> None:
    """
    ARRANGE: two share classes of one company, the second larger
    ACT:     run_ranking
    ASSERT:  only the larger class remains
    """
    companies = [_company("ITSA3", market_cap=2e9), _company("ITSA4", market_cap=4e9)]

    actual = MagicFormulaStrategy().run_ranking(companies, MagicFormulaParams())

    assert [r.ticker for r in actual] == ["ITSA4"]
