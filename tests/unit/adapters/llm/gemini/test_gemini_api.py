# gemini/test_gemini_api.py

import asyncio
import json
from collections.abc import Callable

import httpx
import pytest

from equity_ranker.adapters.llm.errors import (
    LLMConfigurationError,
    LLMError,
    LLMTimeoutError,
    LLMTransportError,
    RunawayOutputError,
)
from equity_ranker.adapters.llm.gemini.api import (
    GeminiClient,
    build_request_body,
    generate,
    parse_event,
    resolve_api_key,
)
from equity_ranker.adapters.llm.gemini.config import GeminiConfig

pytestmark = pytest.mark.unit

_CONFIG = GeminiConfig(backoff_base=0.0)


def make_client_factory(handler: Callable) -> Callable[[], httpx.AsyncClient]:
    """
    Build a client factory whose clients are served by ``handler``.
    """

    def factory() -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory


def _event(text: str, *, thought: bool = False) -> str:
    part: dict[str, object] = {"text": text}
    if thought:
        part["thought"] = True
    payload = {"candidates": [{"content": {"parts": [part]}}]}
    return f"data: {json.dumps(payload)}\n\n"


def _stream(*texts: str) -> str:
    return "".join(_event(text) for text in texts)


@pytest.fixture(autouse=True)
def _api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")


def test_parse_event_extracts_text_parts() -> None:
    """
    ARRANGE: an SSE data line with one text part
    ACT:     parse_event
    ASSERT:  the text
    """
    actual = parse_event(_event("hello").strip())

    assert actual == "hello"


def test_parse_event_skips_thought_parts() -> None:
    """
    ARRANGE: an SSE data line carrying a thought part
    ACT:     parse_event
    ASSERT:  empty string
    """
    actual = parse_event(_event("hidden", thought=True).strip())

    assert actual == ""


def test_parse_event_ignores_non_data_lines() -> None:
    """
    ARRANGE: an SSE comment line
    ACT:     parse_event
    ASSERT:  empty string
    """
    actual = parse_event(": keep-alive")

    assert actual == ""


def test_parse_event_ignores_undecodable_payload() -> None:
    """
    ARRANGE: a data line with broken JSON
    ACT:     parse_event
    ASSERT:  empty string
    """
    actual = parse_event("data: {not json")

    assert actual == ""


def test_build_request_body_adds_search_tool() -> None:
    """
    ARRANGE: a prompt with search enabled
    ACT:     build_request_body
    ASSERT:  the google_search tool is declared
    """
    actual = build_request_body("prompt", use_search=True, config=_CONFIG)

    assert actual["tools"] == [{"google_search": {}}]


def test_build_request_body_disables_thinking_by_default() -> None:
    """
    ARRANGE: the default configuration
    ACT:     build_request_body
    ASSERT:  thinking budget of zero and no tools
    """
    actual = build_request_body("prompt", use_search=False, config=_CONFIG)

    assert actual["generationConfig"] == {"thinkingConfig": {"thinkingBudget": 0}}
    assert "tools" not in actual


def test_resolve_api_key_raises_when_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    ARRANGE: no API key in the environment
    ACT:     resolve_api_key
    ASSERT:  LLMConfigurationError
    """
    monkeypatch.delenv("GEMINI_API_KEY")

    with pytest.raises(LLMConfigurationError):
        resolve_api_key(_CONFIG)


async def test_generate_concatenates_streamed_chunks() -> None:
    """
    ARRANGE: a stream of two text events
    ACT:     generate
    ASSERT:  the concatenated text
    """

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=_stream('["PETR4", ', '"VALE3"]'))

    actual = await generate(
        "prompt",
        config=_CONFIG,
        client_factory=make_client_factory(handler),
    )

    assert actual == '["PETR4", "VALE3"]'


async def test_generate_sends_key_header_and_sse_flag() -> None:
    """
    ARRANGE: a handler recording the request
    ACT:     generate
    ASSERT:  API key header and alt=sse query parameter are sent
    """
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=_stream("ok"))

    await generate(
        "prompt",
        config=_CONFIG,
        client_factory=make_client_factory(handler),
    )

    actual = seen[0]

    assert actual.headers["x-goog-api-key"] == "test-key"
    assert actual.url.params["alt"] == "sse"


async def test_generate_retries_transient_status() -> None:
    """
    ARRANGE: a handler failing once with 503, then succeeding
    ACT:     generate
    ASSERT:  the successful text after two calls
    """
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        if len(calls) == 1:
            return httpx.Response(503)
        return httpx.Response(200, text=_stream("recovered"))

    actual = await generate(
        "prompt",
        config=_CONFIG,
        client_factory=make_client_factory(handler),
    )

    assert (actual, len(calls)) == ("recovered", 2)


async def test_generate_gives_up_after_retry_budget() -> None:
    """
    ARRANGE: a handler always answering 429
    ACT:     generate
    ASSERT:  LLMTransportError after the first attempt plus three retries
    """
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(429)

    with pytest.raises(LLMTransportError):
        await generate(
            "prompt",
            config=_CONFIG,
            client_factory=make_client_factory(handler),
        )

    assert len(calls) == 4


async def test_generate_does_not_retry_client_errors() -> None:
    """
    ARRANGE: a handler answering 400
    ACT:     generate
    ASSERT:  LLMTransportError after a single call
    """
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(400, text="bad request")

    with pytest.raises(LLMTransportError):
        await generate(
            "prompt",
            config=_CONFIG,
            client_factory=make_client_factory(handler),
        )

    assert len(calls) == 1


async def test_generate_retries_connection_errors() -> None:
    """
    ARRANGE: a handler raising ConnectError once
    ACT:     generate
    ASSERT:  the text of the second attempt
    """
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        if len(calls) == 1:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, text=_stream("second"))

    actual = await generate(
        "prompt",
        config=_CONFIG,
        client_factory=make_client_factory(handler),
    )

    assert actual == "second"


async def test_generate_rejects_empty_response() -> None:
    """
    ARRANGE: a stream with no text parts
    ACT:     generate
    ASSERT:  LLMError
    """

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="data: [DONE]\n\n")

    with pytest.raises(LLMError):
        await generate(
            "prompt",
            config=_CONFIG,
            client_factory=make_client_factory(handler),
        )


async def test_generate_aborts_looping_output() -> None:
    """
    ARRANGE: a stream repeating the same sentence
    ACT:     generate
    ASSERT:  RunawayOutputError
    """
    sentence = "The same sentence keeps coming back again and again forever. "

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=_stream(*[sentence] * 8))

    with pytest.raises(RunawayOutputError):
        await generate(
            "prompt",
            config=_CONFIG,
            client_factory=make_client_factory(handler),
        )


async def test_generate_times_out_slow_responses() -> None:
    """
    ARRANGE: a handler slower than the request timeout
    ACT:     generate
    ASSERT:  LLMTimeoutError
    """

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1.0)
        return httpx.Response(200, text=_stream("late"))

    config = GeminiConfig(backoff_base=0.0, request_timeout=0.01)

    with pytest.raises(LLMTimeoutError):
        await generate(
            "prompt",
            config=config,
            client_factory=make_client_factory(handler),
        )


async def test_gemini_client_complete_forwards_search_flag() -> None:
    """
    ARRANGE: a client whose handler records the request body
    ACT:     complete with search enabled
    ASSERT:  the request declares the search tool
    """
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, text=_stream("ok"))

    client = GeminiClient(_CONFIG, client_factory=make_client_factory(handler))

    await client.complete("prompt", use_search=True)

    assert bodies[0]["tools"] == [{"google_search": {}}]
