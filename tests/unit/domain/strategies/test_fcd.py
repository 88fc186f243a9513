# strategies/test_fcd.py

import math

import pytest

from equity_ranker.domain.strategies.fcd import (
    FCDStrategy,
    base_cash_flow,
    discount_rate_for,
    project_valuation,
)
from equity_ranker.domain.strategies.params import FCDParams
from equity_ranker.schemas import CompanyData

pytestmark = pytest.mark.unit


def _company(ticker: str = "EGIE3", price: float = 10.0, **overrides) -> CompanyData:
    """
    Build a cash-generative company: EBITDA R$ 1B over 200M shares.
    """
    financials = {
        "net_income": 5e8,
        "ebitda": 1e9,
        "shares_outstanding": 2e8,
        "operating_cash_flow": 8e8,
        "roe": 0.15,
        "ebitda_margin": 0.30,
        "revenue_growth": 0.05,
        "current_ratio": 1.5,
        "market_cap": 2e9,
        **overrides,
    }
    return CompanyData(
        ticker=ticker,
        name=f"{ticker} SA",
        current_price=price,
        financials=financials,
    )


def test_base_cash_flow_prefers_positive_free_cash_flow() -> None:
    """
    ARRANGE: positive free cash flow and EBITDA
    ACT:     base_cash_flow
    ASSERT:  the free cash flow
    """
    actual = base_cash_flow(1e9, 4e8)

    assert actual == 4e8


def test_base_cash_flow_falls_back_to_ebitda_share() -> None:
    """
    ARRANGE: EBITDA of R$ 1B and no free cash flow
    ACT:     base_cash_flow
    ASSERT:  60% of EBITDA
    """
    actual = base_cash_flow(1e9, None)

    assert actual == pytest.approx(6e8)


def test_project_valuation_single_year() -> None:
    """
    ARRANGE: a one-year projection from a R$ 600M base
    ACT:     project_valuation
    ASSERT:  explicit plus terminal value per share
    """
    growth = 0.025 + 0.05 * math.exp(-0.5)
    flow = 6e8 * (1 + growth)
    terminal = flow * 1.025 / (0.10 - 0.025)
    expected = (flow / 1.10 + terminal / 1.10) / 2e8

    actual = project_valuation(
        6e8,
        2e8,
        growth_rate=0.025,
        discount_rate=0.10,
        years=1,
    )

    assert actual.fair_value == pytest.approx(expected)


def test_project_valuation_rejects_discount_below_growth() -> None:
    """
    ARRANGE: a discount rate equal to the growth rate
    ACT:     project_valuation
    ASSERT:  no valuation
    """
    actual = project_valuation(
        6e8,
        2e8,
        growth_rate=0.05,
        discount_rate=0.05,
        years=5,
    )

    assert actual is None


def test_project_valuation_rejects_non_positive_base() -> None:
    """
    ARRANGE: a zero cash flow base
    ACT:     project_valuation
    ASSERT:  no valuation
    """
    actual = project_valuation(
        0.0,
        2e8,
        growth_rate=0.025,
        discount_rate=0.10,
        years=5,
    )

    assert actual is None


def test_discount_rate_for_bdr_adds_premium() -> None:
    """
    ARRANGE: a BDR ticker
    ACT:     discount_rate_for
    ASSERT:  the base rate plus two points
    """
    actual = discount_rate_for("AAPL34", FCDParams(discount_rate=0.10))

    assert actual == pytest.approx(0.12)


def test_valuation_uses_ebitda_base_without_free_cash_flow() -> None:
    """
    ARRANGE: EBITDA R$ 1B and no free cash flow
    ACT:     valuation
    ASSERT:  base cash flow of R$ 600M
    """
    actual = FCDStrategy().valuation(_company(), FCDParams())

    assert actual.base_cash_flow == pytest.approx(6e8)


def test_valuation_five_year_fair_value() -> None:
    """
    ARRANGE: EBITDA R$ 1B over 200M shares, growth 2.5%, discount 10%
    ACT:     valuation over five years
    ASSERT:  the fair value per share of the decaying-growth projection
    """
    cash_flow = 6e8
    explicit = 0.0
    for year in range(1, 6):
        cash_flow *= 1 + 0.025 + 0.05 * math.exp(-0.5 * year)
        explicit += cash_flow / 1.10**year
    terminal = cash_flow * 1.025 / (0.10 - 0.025) / 1.10**5

    actual = FCDStrategy().valuation(_company(), FCDParams())

    assert actual.fair_value == pytest.approx((explicit + terminal) / 2e8)
    assert actual.fair_value == pytest.approx(43.689, abs=1e-3)


def test_analysis_eligible_with_large_upside() -> None:
    """
    ARRANGE: a cash-generative company priced at 10
    ACT:     run_analysis
    ASSERT:  eligible with a positive upside
    """
    actual = FCDStrategy().run_analysis(_company(), FCDParams())

    assert actual.is_eligible is True and actual.upside > 20


def test_analysis_without_shares_has_no_fair_value() -> None:
    """
    ARRANGE: a company without a share count
    ACT:     run_analysis
    ASSERT:  ineligible with no fair value
    """
    company = _company(shares_outstanding=None)

    actual = FCDStrategy().run_analysis(company, FCDParams())

    assert (actual.is_eligible, actual.fair_value) == (False, None)


def test_analysis_expensive_company_is_ineligible() -> None:
    """
    ARRANGE: the same company priced far above its fair value
    ACT:     run_analysis
    ASSERT:  ineligible with negative upside
    """
    actual = FCDStrategy().run_analysis(_company(price=500.0), FCDParams())

    assert actual.is_eligible is False and actual.upside < 0


def test_ranking_orders_by_upside() -> None:
    """
    ARRANGE: two identical businesses priced at 10 and 20
    ACT:     run_ranking
    ASSERT:  the cheaper leads
    """
    companies = [_company("DEAR3", price=20.0), _company("CHEA3", price=10.0)]

    actual = FCDStrategy().run_ranking(companies, FCDParams())

    assert [r.ticker for r in actual] == ["CHEA3", "DEAR3"]


def test_ranking_reports_projection_years() -> None:
    """
    ARRANGE: a three-year projection
    ACT:     run_ranking
    ASSERT:  projection_years key metric is 3
    """
    actual = FCDStrategy().run_ranking([_company()], FCDParams(years_projection=3))

    assert actual[0].key_metrics["projection_years"] == 3.0


def test_ranking_defaults_to_ten_results() -> None:
    """
    ARRANGE: default parameters
    ACT:     default_params
    ASSERT:  ranking limit of ten
    """
    actual = FCDStrategy().default_params()

    assert actual.limit == 10
