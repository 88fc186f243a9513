# strategies/test_graham.py

import pytest

from equity_ranker.domain.strategies.graham import GrahamStrategy, quality_score
from equity_ranker.domain.strategies.params import GrahamParams
from equity_ranker.schemas import CompanyData

pytestmark = pytest.mark.unit


def _company(ticker: str = "ABCD3", price: float = 15.0, **overrides) -> CompanyData:
    """
    Build a financially sound company with Graham inputs EPS 2 and BVPS 10.
    """
    financials = {
        "net_income": 5e8,
        "eps": 2.0,
        "book_value_per_share": 10.0,
        "roe": 0.15,
        "current_ratio": 1.5,
        "net_margin": 0.10,
        "net_debt_to_equity": 0.5,
        "earnings_growth": 0.05,
        "market_cap": 5e9,
        **overrides,
    }
    return CompanyData(
        ticker=ticker,
        name=f"{ticker} SA",
        current_price=price,
        financials=financials,
    )


def test_quality_score_blends_capped_inputs() -> None:
    """
    ARRANGE: ROE 15%, current ratio 1.5, margin 10%, growth 5%
    ACT:     quality_score
    ASSERT:  6 + 30 + 10 + 10
    """
    actual = quality_score(0.15, 1.5, 0.10, 0.05)

    assert actual == pytest.approx(56.0)


def test_analysis_computes_graham_fair_value() -> None:
    """
    ARRANGE: EPS 2 and BVPS 10
    ACT:     run_analysis
    ASSERT:  fair value sqrt(450)
    """
    actual = GrahamStrategy().run_analysis(_company(), GrahamParams())

    assert actual.fair_value == pytest.approx(21.2132, rel=1e-4)


def test_analysis_eligible_when_every_criterion_passes() -> None:
    """
    ARRANGE: a sound company priced at 15
    ACT:     run_analysis
    ASSERT:  eligible with a perfect score
    """
    actual = GrahamStrategy().run_analysis(_company(), GrahamParams())

    assert (actual.is_eligible, actual.score) == (True, 100.0)


def test_analysis_ineligible_with_insufficient_upside() -> None:
    """
    ARRANGE: the same company priced at 20 (about 6% upside)
    ACT:     run_analysis
    ASSERT:  ineligible
    """
    actual = GrahamStrategy().run_analysis(_company(price=20.0), GrahamParams())

    assert actual.is_eligible is False


def test_analysis_missing_roe_gets_benefit_of_the_doubt() -> None:
    """
    ARRANGE: a company without ROE
    ACT:     run_analysis
    ASSERT:  the ROE criterion passes
    """
    analysis = GrahamStrategy().run_analysis(_company(roe=None), GrahamParams())

    actual = next(c for c in analysis.criteria if c.label.startswith("ROE"))

    assert actual.passed is True


def test_analysis_negative_eps_has_no_fair_value() -> None:
    """
    ARRANGE: a loss-making company
    ACT:     run_analysis
    ASSERT:  no fair value and no upside
    """
    actual = GrahamStrategy().run_analysis(_company(eps=-1.0), GrahamParams())

    assert (actual.fair_value, actual.upside) == (None, None)


def test_validate_company_data_requires_positive_inputs() -> None:
    """
    ARRANGE: a company with zero book value
    ACT:     validate_company_data
    ASSERT:  False
    """
    company = _company(book_value_per_share=0.0)

    actual = GrahamStrategy().validate_company_data(company, GrahamParams())

    assert actual is False


def test_ranking_excludes_companies_below_margin_of_safety() -> None:
    """
    ARRANGE: one cheap company and one priced near fair value
    ACT:     run_ranking with a 20% margin of safety
    ASSERT:  only the cheap company is ranked
    """
    companies = [_company("CHEA3", price=15.0), _company("FAIR3", price=19.0)]

    actual = GrahamStrategy().run_ranking(companies, GrahamParams())

    assert [r.ticker for r in actual] == ["CHEA3"]


def test_ranking_orders_by_quality_score() -> None:
    """
    ARRANGE: two eligible companies, the second with higher ROE
    ACT:     run_ranking
    ASSERT:  higher quality ranks first
    """
    companies = [_company("LOWQ3"), _company("HIGQ3", roe=0.25)]

    actual = GrahamStrategy().run_ranking(companies, GrahamParams())

    assert [r.ticker for r in actual] == ["HIGQ3", "LOWQ3"]


def test_ranking_skips_small_companies() -> None:
    """
    ARRANGE: an otherwise eligible company worth R$ 1B
    ACT:     run_ranking
    ASSERT:  empty ranking
    """
    actual = GrahamStrategy().run_ranking([_company(market_cap=1e9)], GrahamParams())

    assert actual == []


def test_ranking_reports_margin_of_safety_in_percent() -> None:
    """
    ARRANGE: fair value 21.21 against price 15
    ACT:     run_ranking
    ASSERT:  margin of safety of about 41.42%
    """
    actual = GrahamStrategy().run_ranking([_company()], GrahamParams())

    assert actual[0].margin_of_safety == pytest.approx(41.42, abs=0.01)


def test_rational_mentions_margin_of_safety() -> None:
    """
    ARRANGE: a 30% margin of safety
    ACT:     generate_rational
    ASSERT:  rendered in the methodology
    """
    actual = GrahamStrategy().generate_rational(GrahamParams(margin_of_safety=0.3))

    assert "30% margin of safety" in actual
