# gemini/api.py

import asyncio
import json
import logging
import os
from collections.abc import Callable

import httpx

from .._utils import LoopDetector, make_client, retry_pauses
from ..errors import (
    LLMConfigurationError,
    LLMError,
    LLMTimeoutError,
    LLMTransportError,
)
from .config import GeminiConfig

logger = logging.getLogger(__name__)

_config = GeminiConfig()

_RETRYABLE_STATUS_CODES: frozenset[int] = frozenset(
    {
        httpx.codes.TOO_MANY_REQUESTS,  # 429
        httpx.codes.INTERNAL_SERVER_ERROR,  # 500
        httpx.codes.BAD_GATEWAY,  # 502
        httpx.codes.SERVICE_UNAVAILABLE,  # 503
        httpx.codes.GATEWAY_TIMEOUT,  # 504
    },
)

_SSE_PREFIX = "data:"


class _RetryableStatusError(Exception):
    """
    Internal signal that the endpoint answered with a transient status.
    """

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Gemini API returned HTTP {status_code}")
        self.status_code = status_code


def resolve_api_key(config: GeminiConfig = _config) -> str:
    """
    Read the API key from the environment.

    Returns:
        str: The configured API key.

    Raises:
        LLMConfigurationError: When the variable is unset or blank.
    """
    api_key = os.environ.get(config.api_key_env, "").strip()
    if not api_key:
        raise LLMConfigurationError(
            f"{config.api_key_env} is not set; configure it to enable AI ranking",
        )
    return api_key


def build_request_body(
    prompt: str,
    *,
    use_search: bool,
    config: GeminiConfig = _config,
) -> dict[str, object]:
    """
    Build the JSON body for a single-turn generation request.

    Returns:
        dict[str, object]: Contents, generation config and optional tools.
    """
    body: dict[str, object] = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "thinkingConfig": {"thinkingBudget": config.thinking_budget},
        },
    }
    if use_search:
        body["tools"] = [{"google_search": {}}]
    return body


async def generate(
    prompt: str,
    *,
    use_search: bool = False,
    config: GeminiConfig = _config,
    client_factory: Callable[[], httpx.AsyncClient] | None = None,
) -> str:
    """
    Stream a completion from Gemini and return the concatenated text.

    Each attempt races response collection against the configured wall-clock
    timeout. Transport errors and transient statuses are retried with
    exponential backoff; timeouts and runaway output fail immediately.

    Args:
        prompt (str): The full prompt text.
        use_search (bool): Enable Google Search grounding.
        config (GeminiConfig): Endpoint, model and call discipline.
        client_factory: Builds the HTTP client; defaults to ``make_client``.

    Returns:
        str: The stripped, non-empty response text.

    Raises:
        LLMConfigurationError: When no API key is configured.
        LLMTimeoutError: When an attempt exceeds the wall-clock timeout.
        LLMTransportError: When the channel fails beyond the retry budget.
        RunawayOutputError: When the streamed output starts looping.
        LLMError: When the model returns an empty response.
    """
    api_key = resolve_api_key(config)
    body = build_request_body(prompt, use_search=use_search, config=config)
    headers = {"x-goog-api-key": api_key}

    factory = client_factory or make_client
    retries = config.max_transport_retries
    delays = retry_pauses(retries, base=config.backoff_base)
    last_error: Exception | None = None

    async with factory() as client:
        for attempt, delay in enumerate(delays):
            if delay > 0:
                logger.debug(
                    "Gemini request paused. Retrying in %.1fs (attempt %d/%d)",
                    delay,
                    attempt,
                    retries,
                )
                await asyncio.sleep(delay)

            try:
                return await asyncio.wait_for(
                    _collect(client, config.stream_url, body, headers),
                    timeout=config.request_timeout,
                )
            except TimeoutError as error:
                raise LLMTimeoutError(
                    f"Gemini call exceeded {config.request_timeout:.0f}s",
                ) from error
            except (httpx.TransportError, _RetryableStatusError) as error:
                last_error = error
                logger.warning(
                    "Gemini transport failure on attempt %d/%d: %s",
                    attempt + 1,
                    len(delays),
                    error,
                )

    raise LLMTransportError(
        f"Gemini API unreachable after {len(delays)} attempts: {last_error}",
    ) from last_error


async def _collect(
    client: httpx.AsyncClient,
    url: str,
    body: dict[str, object],
    headers: dict[str, str],
) -> str:
    """
    Stream one response, scanning it for runaway repetition as it arrives.

    Returns:
        str: The stripped concatenated text.
    """
    detector = LoopDetector()
    chunks: list[str] = []

    async with client.stream(
        "POST",
        url,
        params={"alt": "sse"},
        json=body,
        headers=headers,
    ) as response:
        if response.status_code in _RETRYABLE_STATUS_CODES:
            raise _RetryableStatusError(response.status_code)
        if response.is_error:
            await response.aread()
            raise LLMTransportError(
                f"Gemini API returned HTTP {response.status_code}: "
                f"{response.text[:200]}",
            )

        async for line in response.aiter_lines():
            text = parse_event(line)
            if text:
                detector.feed(text)
                chunks.append(text)

    text = "".join(chunks).strip()
    if not text:
        raise LLMError("Empty response from Gemini API")
    return text


def parse_event(line: str) -> str:
    """
    Extract the text carried by one server-sent-events line.

    Non-data lines, keep-alives and undecodable payloads yield an empty
    string. Thought parts are skipped.

    Returns:
        str: The concatenated text parts of the event.
    """
    if not line.startswith(_SSE_PREFIX):
        return ""

    payload = line[len(_SSE_PREFIX) :].strip()
    if not payload or payload == "[DONE]":
        return ""

    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug("Skipping undecodable Gemini event: %.80s", payload)
        return ""

    if not isinstance(event, dict):
        return ""

    return "".join(
        part["text"]
        for candidate in event.get("candidates") or []
        for part in (candidate.get("content") or {}).get("parts") or []
        if isinstance(part.get("text"), str) and not part.get("thought")
    )


class GeminiClient:
    """
    ``LLMClient`` implementation backed by the Gemini streaming API.

    Args:
        config (GeminiConfig | None): Endpoint and call settings.
        client_factory: Builds the HTTP client for each call.
    """

    def __init__(
        self,
        config: GeminiConfig | None = None,
        *,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self._config = config or _config
        self._client_factory = client_factory

    async def complete(self, prompt: str, *, use_search: bool = False) -> str:
        return await generate(
            prompt,
            use_search=use_search,
            config=self._config,
            client_factory=self._client_factory,
        )
