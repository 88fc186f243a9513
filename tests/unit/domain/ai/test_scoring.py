# ai/test_scoring.py

import json

import pytest

from equity_ranker.adapters.llm import LLMTimeoutError
from equity_ranker.domain.ai import scoring
from equity_ranker.domain.ai.models import (
    STRATEGY_KEYS,
    AIPipelineSettings,
    CompanyEvaluation,
    ScoredCompany,
)
from equity_ranker.domain.ai.scoring import (
    evaluate_company,
    execute_strategies,
    placeholder_evaluation,
    score_batch,
    to_ranked,
)
from equity_ranker.domain.strategies.params import AIParams
from equity_ranker.schemas import CompanyData

pytestmark = pytest.mark.unit

_SETTINGS = AIPipelineSettings(wave_size=2, jitter=0.0)


class ScriptedClient:
    """
    Model client returning queued responses, raising queued exceptions.
    """

    def __init__(self, *responses: str | Exception) -> None:
        self._responses = list(responses)
        self.prompts: list[str] = []
        self.search_flags: list[bool] = []

    async def complete(self, prompt: str, *, use_search: bool = False) -> str:
        self.prompts.append(prompt)
        self.search_flags.append(use_search)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _company(ticker: str) -> CompanyData:
    return CompanyData(
        ticker=ticker,
        name=f"{ticker} SA",
        sector="Industrial",
        current_price=20.0,
        overall_score=70.0,
        financials={
            "eps": 2.5,
            "book_value_per_share": 15.0,
            "pe": 8.0,
            "roe": 0.18,
            "net_margin": 0.12,
            "dividend_yield": 0.06,
            "market_cap": 8e9,
        },
    )


def _response(*entries: dict) -> str:
    return json.dumps({"results": list(entries)})


def _entry(ticker: str, score: float) -> dict:
    return {
        "ticker": ticker,
        "score": score,
        "fairValue": 30.0,
        "upside": 50.0,
        "confidenceLevel": 0.8,
        "reasoning": f"{ticker} looks undervalued.",
    }


def test_evaluate_company_runs_every_strategy() -> None:
    """
    ARRANGE: a company with core indicators
    ACT:     evaluate_company
    ASSERT:  one verdict per strategy key
    """
    actual = evaluate_company(_company("WEGE3"))

    assert tuple(actual.analyses) == STRATEGY_KEYS


def test_placeholder_evaluation_is_all_ineligible() -> None:
    """
    ARRANGE: a company
    ACT:     placeholder_evaluation
    ASSERT:  no strategy is eligible
    """
    actual = placeholder_evaluation(_company("WEGE3"))

    assert actual.eligible_count == 0


async def test_execute_strategies_keeps_input_order() -> None:
    """
    ARRANGE: three companies and waves of two
    ACT:     execute_strategies
    ASSERT:  evaluations in input order
    """
    companies = [_company("AAAA3"), _company("BBBB3"), _company("CCCC3")]

    actual = await execute_strategies(companies, _SETTINGS)

    assert [evaluation.company.ticker for evaluation in actual] == [
        "AAAA3",
        "BBBB3",
        "CCCC3",
    ]


async def test_execute_strategies_isolates_failures(monkeypatch) -> None:
    """
    ARRANGE: strategy evaluation raising for one company
    ACT:     execute_strategies
    ASSERT:  that company gets the placeholder, the other is evaluated
    """
    real = scoring.evaluate_company

    def flaky(company: CompanyData) -> CompanyEvaluation:
        if company.ticker == "BBBB3":
            raise ZeroDivisionError("bad data")
        return real(company)

    monkeypatch.setattr(scoring, "evaluate_company", flaky)

    actual = await execute_strategies([_company("AAAA3"), _company("BBBB3")], _SETTINGS)

    assert actual[1].analyses["graham"].reasoning == "Analysis failed"


def test_to_ranked_clamps_confidence() -> None:
    """
    ARRANGE: a model score with confidence above one
    ACT:     to_ranked
    ASSERT:  confidence is clamped to one
    """
    scored = ScoredCompany(ticker="WEGE3", score=80, confidence=1.7, reasoning="ok")

    actual = to_ranked(scored, placeholder_evaluation(_company("WEGE3")))

    assert actual.key_metrics["confidence_level"] == 1.0


async def test_score_batch_returns_model_scores() -> None:
    """
    ARRANGE: a model scoring both companies
    ACT:     score_batch
    ASSERT:  results carry the model's score and fair value
    """
    evaluations = [
        placeholder_evaluation(_company("AAAA3")),
        placeholder_evaluation(_company("BBBB3")),
    ]
    client = ScriptedClient(_response(_entry("AAAA3", 85), _entry("BBBB3", 60)))

    actual = await score_batch(evaluations, AIParams(), client, _SETTINGS)

    assert [(result.ticker, result.key_metrics["ai_score"]) for result in actual] == [
        ("AAAA3", 85.0),
        ("BBBB3", 60.0),
    ]


async def test_score_batch_enables_web_search() -> None:
    """
    ARRANGE: a model scoring one company
    ACT:     score_batch
    ASSERT:  the call asks for search grounding
    """
    client = ScriptedClient(_response(_entry("AAAA3", 70)))

    await score_batch(
        [placeholder_evaluation(_company("AAAA3"))],
        AIParams(),
        client,
        _SETTINGS,
    )

    assert client.search_flags == [True]


async def test_score_batch_normalises_ticker_case() -> None:
    """
    ARRANGE: a model answering with a lower-case ticker
    ACT:     score_batch
    ASSERT:  the result is matched to the company
    """
    client = ScriptedClient(_response(_entry("aaaa3", 70)))

    actual = await score_batch(
        [placeholder_evaluation(_company("AAAA3"))],
        AIParams(),
        client,
        _SETTINGS,
    )

    assert actual[0].ticker == "AAAA3"


async def test_score_batch_retries_missing_company() -> None:
    """
    ARRANGE: a first answer missing one company, then a complete one
    ACT:     score_batch
    ASSERT:  success, with the missing ticker named in the retry prompt
    """
    evaluations = [
        placeholder_evaluation(_company("AAAA3")),
        placeholder_evaluation(_company("BBBB3")),
    ]
    client = ScriptedClient(
        _response(_entry("AAAA3", 85)),
        _response(_entry("AAAA3", 85), _entry("BBBB3", 60)),
    )

    actual = await score_batch(evaluations, AIParams(), client, _SETTINGS)

    assert len(actual) == 2
    assert "Missing: BBBB3." in client.prompts[1]


async def test_score_batch_returns_none_when_attempts_run_out() -> None:
    """
    ARRANGE: a model failing in three different ways
    ACT:     score_batch
    ASSERT:  None after three calls
    """
    client = ScriptedClient(
        "not json",
        LLMTimeoutError("Model call exceeded 240s"),
        _response(_entry("ZZZZ3", 50)),
    )

    actual = await score_batch(
        [placeholder_evaluation(_company("AAAA3"))],
        AIParams(),
        client,
        _SETTINGS,
    )

    assert actual is None
    assert len(client.prompts) == 3
