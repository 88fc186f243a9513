# ai/parsing.py

import json
import logging
import re
from collections.abc import Callable

logger = logging.getLogger(__name__)

_RESULTS_START = '{"results"'
_RESULTS_OBJECT = re.compile(r'\{"results":\s*\[[\s\S]*?\]\s*\}')
_LAST_OBJECT = re.compile(r"\{[\s\S]*?\}(?=\s*$|$)")
_RESULTS_ARRAY = re.compile(r'\[[\s\S]*?\{[\s\S]*?"ticker"[\s\S]*?\}[\s\S]*?\]')
_FIRST_ARRAY = re.compile(r"\[[\s\S]*?\]")
_TICKER = re.compile(r"\b[A-Z]{4}[0-9]{1,2}\b")

Parser = Callable[[str], dict]


class ResponseParseError(ValueError):
    """
    Raised when no parser recovers structured data from a model response.
    """


def parse_from_results_token(text: str) -> dict:
    """
    Brace-match from the first ``{"results"`` token.

    Returns:
        dict: The decoded object.
    """
    start = text.find(_RESULTS_START)
    if start == -1:
        raise ValueError("results token not found")

    depth = 0
    for index in range(start, len(text)):
        if text[index] == "{":
            depth += 1
        elif text[index] == "}":
            depth -= 1
            if depth == 0:
                return json.loads(text[start : index + 1])

    raise ValueError("unbalanced braces after results token")


def parse_results_regex(text: str) -> dict:
    match = _RESULTS_OBJECT.search(text)
    if match is None:
        raise ValueError("results object not found")
    return json.loads(match.group(0))


def parse_stripped(text: str) -> dict:
    """
    Strip fences and surrounding prose, then match the trailing object.

    Returns:
        dict: The decoded object.
    """
    cleaned = re.sub(r"```json", "", text, flags=re.IGNORECASE).replace("```", "")
    cleaned = re.sub(r"^[^{]*", "", cleaned)
    cleaned = re.sub(r"\}[^}]*$", "}", cleaned)

    match = _LAST_OBJECT.search(cleaned)
    if match is None:
        raise ValueError("no object left after stripping")
    return json.loads(match.group(0))


def parse_incremental(text: str) -> dict:
    """
    Scan characters, counting braces outside string literals.

    Returns:
        dict: The first balanced object in the text.
    """
    start: int | None = None
    depth = 0
    in_string = False
    escaped = False

    for index, char in enumerate(text):
        if start is None:
            if char != "{":
                continue
            start = index

        if escaped:
            escaped = False
            continue
        if in_string:
            if char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return json.loads(text[start : index + 1])

    raise ValueError("no balanced object found")


def parse_results_array(text: str) -> dict:
    match = _RESULTS_ARRAY.search(text)
    if match is None:
        raise ValueError("results array not found")
    return {"results": json.loads(match.group(0))}


# Tried in order; the first parser yielding a results list wins
BATCH_PARSERS: tuple[Parser, ...] = (
    parse_from_results_token,
    parse_results_regex,
    parse_stripped,
    parse_incremental,
    parse_results_array,
)


def parse_batch_response(
    text: str,
    parsers: tuple[Parser, ...] = BATCH_PARSERS,
) -> list[dict]:
    """
    Recover the ``results`` array from a batch-scoring response.

    Each parser is independent and total: it either returns a decoded
    object or raises, leaving nothing behind for the next one.

    Args:
        text (str): Raw model response.
        parsers: Ordered parsing strategies.

    Returns:
        list[dict]: The entries of the results array that are objects.

    Raises:
        ResponseParseError: When every parser fails.
    """
    failures: list[str] = []

    for position, parser in enumerate(parsers, start=1):
        try:
            parsed = parser(text)
        except ValueError as error:
            failures.append(f"{parser.__name__}: {error}")
            continue

        results = parsed.get("results") if isinstance(parsed, dict) else None
        if not isinstance(results, list):
            failures.append(f"{parser.__name__}: no results list")
            continue

        logger.debug("Batch response parsed by parser %d/%d", position, len(parsers))
        return [entry for entry in results if isinstance(entry, dict)]

    raise ResponseParseError(
        f"JSON parse failed after {len(parsers)} parsers: {'; '.join(failures)}",
    )


def parse_ticker_list(text: str) -> list[str]:
    """
    Recover the ticker list from a selection response.

    Prefers the first JSON array; falls back to scanning for ticker-shaped
    tokens, deduplicated in order of appearance.

    Returns:
        list[str]: Upper-cased tickers.

    Raises:
        ResponseParseError: When no ticker can be recovered.
    """
    match = _FIRST_ARRAY.search(text)
    if match is not None:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            tickers = [
                item.strip().upper()
                for item in parsed
                if isinstance(item, str) and item.strip()
            ]
            if tickers:
                return tickers

    found = list(dict.fromkeys(_TICKER.findall(text)))
    if not found:
        raise ResponseParseError("JSON parse failed: no tickers in selection response")
    return found
