# ai/validation.py

import re
from collections import Counter
from collections.abc import Sequence

from equity_ranker.schemas import CompanyData

from ..strategies._utils import company_prefix

_NAME_SUFFIX = re.compile(
    r"\s+(S\.?A\.?|SA|LTDA|ON|PN|UNT|PARTICIPACOES|PARTICIPAÇÕES)\b.*$",
    re.IGNORECASE,
)


def base_company_name(name: str) -> str:
    """
    Normalise a company name by dropping legal and share-class suffixes.

    Returns:
        str: The lower-cased base name.
    """
    stripped = _NAME_SUFFIX.sub("", name)
    return " ".join(stripped.split()).lower()


def duplicate_companies(
    tickers: Sequence[str],
    companies: Sequence[CompanyData],
) -> list[str]:
    """
    Find tickers that repeat an underlying company already selected.

    Two tickers are the same company when they share a ticker prefix or a
    normalised base name. Unknown tickers are ignored here.

    Returns:
        list[str]: Offending tickers, in selection order.
    """
    by_ticker = {company.ticker: company for company in companies}
    seen_prefixes: set[str] = set()
    seen_names: set[str] = set()
    duplicates: list[str] = []

    for ticker in tickers:
        company = by_ticker.get(ticker)
        if company is None:
            continue

        prefix = company_prefix(ticker)
        name = base_company_name(company.name)
        if prefix in seen_prefixes or name in seen_names:
            duplicates.append(ticker)
        seen_prefixes.add(prefix)
        seen_names.add(name)

    return duplicates


def validate_selection(
    tickers: Sequence[str],
    candidates: Sequence[CompanyData],
    target: int,
) -> list[str]:
    """
    Check a model's ticker selection against the candidate universe.

    Returns:
        list[str]: Corrective instructions; empty when the selection is valid.
    """
    errors: list[str] = []

    duplicates = duplicate_companies(tickers, candidates)
    if duplicates:
        errors.append(
            "Do NOT select more than one ticker of the same company "
            f"({', '.join(duplicates)}). Pick ONE ticker per company, preferably "
            "the one with the largest market cap.",
        )

    if len(tickers) != target:
        errors.append(
            f"Select EXACTLY {target} tickers. You selected {len(tickers)}. "
            f"Count carefully and return only {target} tickers in the JSON array.",
        )

    known = {company.ticker for company in candidates}
    invalid = [ticker for ticker in tickers if ticker not in known]
    if invalid:
        errors.append(
            f"Invalid tickers found: {', '.join(invalid)}. Use ONLY tickers "
            "from the list provided.",
        )

    return errors


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def validate_batch(
    records: Sequence[dict],
    expected_tickers: Sequence[str],
) -> list[str]:
    """
    Check parsed batch-scoring records against the companies sent.

    Every record needs a ticker, a numeric score in 0-100, a numeric fair
    value and a non-empty reasoning.

    Returns:
        list[str]: Corrective instructions; empty when the batch is valid.
    """
    errors: list[str] = []
    tickers = [str(record.get("ticker") or "").strip().upper() for record in records]

    repeated = [ticker for ticker, count in Counter(tickers).items() if count > 1]
    if repeated:
        errors.append(
            f"Do NOT repeat tickers. Duplicates found: {', '.join(repeated)}. "
            "Each ticker must appear ONLY ONCE.",
        )

    missing = [ticker for ticker in expected_tickers if ticker not in tickers]
    extra = [ticker for ticker in tickers if ticker and ticker not in expected_tickers]
    if len(records) != len(expected_tickers) or missing or extra:
        message = f"Include EXACTLY {len(expected_tickers)} companies in the result."
        if missing:
            message += f" Missing: {', '.join(missing)}."
        if extra:
            message += f" Invalid extras: {', '.join(extra)}."
        errors.append(message)

    invalid = [
        ticker or "no ticker"
        for ticker, record in zip(tickers, records, strict=True)
        if not _is_complete(ticker, record)
    ]
    if invalid:
        errors.append(
            "Every result needs: ticker (string), score (number 0-100), "
            "fairValue (number) and reasoning (text). Invalid results: "
            f"{', '.join(invalid)}.",
        )

    return errors


def _is_complete(ticker: str, record: dict) -> bool:
    score = record.get("score")
    reasoning = record.get("reasoning")
    return (
        bool(ticker)
        and _is_number(score)
        and 0 <= score <= 100
        and _is_number(record.get("fairValue", record.get("fair_value")))
        and isinstance(reasoning, str)
        and bool(reasoning.strip())
    )
