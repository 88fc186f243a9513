# ai/test_parsing.py

import pytest

from equity_ranker.domain.ai.parsing import (
    ResponseParseError,
    parse_batch_response,
    parse_from_results_token,
    parse_incremental,
    parse_ticker_list,
)

pytestmark = pytest.mark.unit

_RESULTS = '{"results": [{"ticker": "PETR4", "score": 80}]}'


def test_parse_from_results_token_skips_leading_prose() -> None:
    """
    ARRANGE: prose before the results object
    ACT:     parse_from_results_token
    ASSERT:  the decoded object
    """
    actual = parse_from_results_token(f"Here is the ranking: {_RESULTS} Done.")

    assert actual["results"][0]["ticker"] == "PETR4"


def test_parse_from_results_token_raises_without_token() -> None:
    """
    ARRANGE: text without a results object
    ACT:     parse_from_results_token
    ASSERT:  ValueError
    """
    with pytest.raises(ValueError):
        parse_from_results_token('{"ranking": []}')


def test_parse_incremental_ignores_braces_inside_strings() -> None:
    """
    ARRANGE: an object whose string value holds an unbalanced brace
    ACT:     parse_incremental
    ASSERT:  the whole object is decoded
    """
    text = 'Answer: {"results": [{"ticker": "ITUB4", "reasoning": "a } b"}]} end'

    actual = parse_incremental(text)

    assert actual["results"][0]["reasoning"] == "a } b"


def test_parse_batch_response_handles_fenced_json() -> None:
    """
    ARRANGE: a response wrapped in a ```json fence
    ACT:     parse_batch_response
    ASSERT:  the results list
    """
    text = f"```json\n{_RESULTS}\n```"

    actual = parse_batch_response(text)

    assert actual == [{"ticker": "PETR4", "score": 80}]


def test_parse_batch_response_wraps_bare_array() -> None:
    """
    ARRANGE: a bare array of result objects
    ACT:     parse_batch_response
    ASSERT:  the objects as results
    """
    text = '[{"ticker": "VALE3", "score": 70}, {"ticker": "WEGE3", "score": 60}]'

    actual = parse_batch_response(text)

    assert [entry["ticker"] for entry in actual] == ["VALE3", "WEGE3"]


def test_parse_batch_response_drops_non_object_entries() -> None:
    """
    ARRANGE: a results list mixing objects and strings
    ACT:     parse_batch_response
    ASSERT:  only the objects survive
    """
    text = '{"results": [{"ticker": "PETR4"}, "noise"]}'

    actual = parse_batch_response(text)

    assert actual == [{"ticker": "PETR4"}]


def test_parse_batch_response_raises_when_every_parser_fails() -> None:
    """
    ARRANGE: prose with no JSON at all
    ACT:     parse_batch_response
    ASSERT:  ResponseParseError naming the parser count
    """
    with pytest.raises(ResponseParseError, match="JSON parse failed after 5 parsers"):
        parse_batch_response("I could not analyse these companies.")


def test_parse_batch_response_with_custom_parsers() -> None:
    """
    ARRANGE: a single parser returning a fixed object
    ACT:     parse_batch_response with that parser
    ASSERT:  its results
    """

    def fixed(text: str) -> dict:
        return {"results": [{"ticker": "BBAS3"}]}

    actual = parse_batch_response("anything", parsers=(fixed,))

    assert actual == [{"ticker": "BBAS3"}]


def test_parse_ticker_list_reads_json_array() -> None:
    """
    ARRANGE: a JSON array with a lower-case ticker
    ACT:     parse_ticker_list
    ASSERT:  upper-cased tickers
    """
    actual = parse_ticker_list('["petr4", "VALE3"]')

    assert actual == ["PETR4", "VALE3"]


def test_parse_ticker_list_falls_back_to_ticker_pattern() -> None:
    """
    ARRANGE: prose naming tickers, one twice
    ACT:     parse_ticker_list
    ASSERT:  distinct tickers in order
    """
    actual = parse_ticker_list("I pick PETR4, then VALE3 and again PETR4.")

    assert actual == ["PETR4", "VALE3"]


def test_parse_ticker_list_raises_without_tickers() -> None:
    """
    ARRANGE: prose without tickers
    ACT:     parse_ticker_list
    ASSERT:  ResponseParseError
    """
    with pytest.raises(ResponseParseError):
        parse_ticker_list("No suitable companies found.")
