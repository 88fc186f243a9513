# ai/test_fallback.py

import random

import pytest

from equity_ranker.domain.ai.fallback import (
    composite_score,
    fallback_fair_value,
    fallback_narrative,
    fallback_ranking,
    sector_commentary,
)
from equity_ranker.domain.ai.models import (
    STRATEGY_KEYS,
    AIPipelineSettings,
    CompanyEvaluation,
)
from equity_ranker.domain.strategies.params import AIParams, RiskTolerance
from equity_ranker.schemas import CompanyData, StrategyAnalysis

pytestmark = pytest.mark.unit

_SETTINGS = AIPipelineSettings(jitter=0.0)


def _analysis(
    score: float,
    eligible: bool,
    fair_value: float | None = None,
) -> StrategyAnalysis:
    return StrategyAnalysis(
        is_eligible=eligible,
        score=score,
        fair_value=fair_value,
        upside=None,
        reasoning="Checked.",
        criteria=(),
        key_metrics={},
    )


def _evaluation(
    ticker: str = "WEGE3",
    *,
    eligible: tuple[str, ...] = (),
    score: float = 40.0,
    sector: str | None = "Industrial",
    **financials: float,
) -> CompanyEvaluation:
    company = CompanyData(
        ticker=ticker,
        name=f"{ticker} SA",
        sector=sector,
        current_price=20.0,
        financials=financials,
    )
    analyses = {
        key: _analysis(80.0 if key in eligible else score, key in eligible, 25.0)
        for key in STRATEGY_KEYS
    }
    return CompanyEvaluation(company=company, analyses=analyses)


def _scored(
    scores: dict[str, float],
    eligible: tuple[str, ...],
    default: float = 71.4,
) -> CompanyEvaluation:
    company = CompanyData(ticker="WEGE3", name="WEGE3 SA", current_price=20.0)
    analyses = {
        key: _analysis(scores.get(key, default), key in eligible)
        for key in STRATEGY_KEYS
    }
    return CompanyEvaluation(company=company, analyses=analyses)


def test_composite_score_weights_eligible_strategies() -> None:
    """
    ARRANGE: Graham and Fundamentalist approving at 80
    ACT:     composite_score without jitter
    ASSERT:  weighted mean 80 plus a bonus of 2 per strategy
    """
    evaluation = _evaluation(eligible=("graham", "fundamentalist"))

    actual = composite_score(evaluation, _SETTINGS, random.Random(0))

    assert actual == pytest.approx(84.0)


def test_composite_score_discounts_when_nothing_is_eligible() -> None:
    """
    ARRANGE: every strategy rejecting at 40
    ACT:     composite_score without jitter
    ASSERT:  half the mean score
    """
    actual = composite_score(_evaluation(), _SETTINGS, random.Random(0))

    assert actual == pytest.approx(20.0)


def test_composite_score_rewards_more_eligible_strategies() -> None:
    """
    ARRANGE: identical scores, one versus three approving strategies
    ACT:     composite_score without jitter
    ASSERT:  the broader approval ranks higher
    """
    narrow = _evaluation(eligible=("graham",))
    broad = _evaluation(eligible=("graham", "low_pe", "gordon"))

    assert composite_score(broad, _SETTINGS, random.Random(0)) > composite_score(
        narrow,
        _SETTINGS,
        random.Random(0),
    )


def test_composite_score_bonus_is_capped() -> None:
    """
    ARRANGE: all seven strategies approving at 80
    ACT:     composite_score without jitter
    ASSERT:  80 plus the maximum bonus of 10
    """
    actual = composite_score(
        _evaluation(eligible=STRATEGY_KEYS),
        _SETTINGS,
        random.Random(0),
    )

    assert actual == pytest.approx(90.0)


def test_composite_score_extra_approval_never_lowers_composite() -> None:
    """
    ARRANGE: Graham at 100 and every other strategy at 71.4, Graham approving
             alone versus Graham and Dividend Yield approving
    ACT:     composite_score without jitter
    ASSERT:  the broader approval scores at least as high
    """
    scores = {"graham": 100.0}
    narrow = _scored(scores, ("graham",))
    broad = _scored(scores, ("graham", "dividend_yield"))

    narrow_score = composite_score(narrow, _SETTINGS, random.Random(0))
    broad_score = composite_score(broad, _SETTINGS, random.Random(0))

    assert broad_score >= narrow_score


def test_composite_score_keeps_best_group_below_ceiling() -> None:
    """
    ARRANGE: Graham at 90 and Dividend Yield at 60, Graham approving alone
             versus both approving
    ACT:     composite_score without jitter
    ASSERT:  both score Graham plus one bonus, 92
    """
    scores = {"graham": 90.0, "dividend_yield": 60.0}

    narrow = composite_score(_scored(scores, ("graham",)), _SETTINGS, random.Random(0))
    broad = composite_score(
        _scored(scores, ("graham", "dividend_yield")),
        _SETTINGS,
        random.Random(0),
    )

    assert (narrow, broad) == (pytest.approx(92.0), pytest.approx(92.0))


def test_composite_score_is_monotone_as_approvals_accumulate() -> None:
    """
    ARRANGE: differing scores per strategy, approvals added one at a time
    ACT:     composite_score without jitter after each addition
    ASSERT:  the composite never decreases
    """
    scores = {
        "graham": 88.0,
        "dividend_yield": 35.0,
        "low_pe": 64.0,
        "magic_formula": 12.0,
        "fcd": 97.0,
        "gordon": 50.0,
        "fundamentalist": 71.0,
    }

    actual = [
        composite_score(
            _scored(scores, STRATEGY_KEYS[:count]),
            _SETTINGS,
            random.Random(0),
        )
        for count in range(len(STRATEGY_KEYS) + 1)
    ]

    assert actual == sorted(actual)


def test_composite_score_low_scoring_approval_keeps_discounted_floor() -> None:
    """
    ARRANGE: Graham at 0 and every other strategy at 100, nothing approving
             versus Graham approving
    ACT:     composite_score without jitter
    ASSERT:  both keep half the mean score
    """
    scores = {"graham": 0.0}
    expected = 600.0 / 7 * 0.5

    none = composite_score(_scored(scores, (), 100.0), _SETTINGS, random.Random(0))
    one = composite_score(
        _scored(scores, ("graham",), 100.0),
        _SETTINGS,
        random.Random(0),
    )

    assert (none, one) == (pytest.approx(expected), pytest.approx(expected))


def test_composite_score_jitter_stays_within_bound() -> None:
    """
    ARRANGE: default jitter of 1.5
    ACT:     composite_score
    ASSERT:  within 1.5 of the unperturbed composite
    """
    evaluation = _evaluation(eligible=("graham",))

    actual = composite_score(evaluation, AIPipelineSettings(), random.Random(3))

    assert abs(actual - 82.0) <= 1.5


def test_fallback_fair_value_averages_eligible_values() -> None:
    """
    ARRANGE: two eligible strategies valuing the company at 25
    ACT:     fallback_fair_value
    ASSERT:  25
    """
    actual = fallback_fair_value(_evaluation(eligible=("graham", "fcd")))

    assert actual == 25.0


def test_fallback_fair_value_without_eligible_strategies() -> None:
    """
    ARRANGE: no eligible strategy
    ACT:     fallback_fair_value
    ASSERT:  None
    """
    assert fallback_fair_value(_evaluation()) is None


def test_sector_commentary_matches_fragment() -> None:
    """
    ARRANGE: a bank sector name
    ACT:     sector_commentary
    ASSERT:  the bank commentary
    """
    actual = sector_commentary("Bancos")

    assert actual.startswith("Banks tend to benefit")


def test_sector_commentary_unknown_sector() -> None:
    """
    ARRANGE: an unlisted sector
    ACT:     sector_commentary
    ASSERT:  None
    """
    assert sector_commentary("Agronegócio") is None


def test_fallback_narrative_reflects_profile_and_callouts() -> None:
    """
    ARRANGE: a levered company and a conservative investor
    ACT:     fallback_narrative
    ASSERT:  leverage callout and conservative closing
    """
    evaluation = _evaluation(eligible=("graham",), net_debt_to_equity=1.8)
    params = AIParams(risk_tolerance=RiskTolerance.CONSERVATIVE)

    actual = fallback_narrative(evaluation, params, random.Random(0))

    assert "Leverage deserves attention (net debt/equity 1.80)." in actual
    assert actual.endswith("prioritises capital preservation.")


def test_fallback_ranking_orders_by_composite() -> None:
    """
    ARRANGE: a weak and a strong company
    ACT:     fallback_ranking
    ASSERT:  strong first, without a model score
    """
    evaluations = [
        _evaluation("AAAA3"),
        _evaluation("BBBB3", eligible=("graham", "fcd", "gordon")),
    ]

    actual = fallback_ranking(evaluations, AIParams(), _SETTINGS, random.Random(0))

    assert [result.ticker for result in actual] == ["BBBB3", "AAAA3"]
    assert actual[0].key_metrics["ai_score"] is None


def test_fallback_ranking_keeps_unbuildable_company() -> None:
    """
    ARRANGE: an evaluation whose analyses are unusable
    ACT:     fallback_ranking
    ASSERT:  the company is kept with a zero composite
    """
    broken = CompanyEvaluation(
        company=_evaluation("CCCC3").company,
        analyses={"graham": None},
    )

    actual = fallback_ranking([broken], AIParams(), _SETTINGS, random.Random(0))

    assert actual[0].key_metrics["composite_score"] == 0.0
