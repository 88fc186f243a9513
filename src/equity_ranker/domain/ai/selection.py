# ai/selection.py

import logging
import random
from collections.abc import Sequence

from equity_ranker.adapters.llm import LLMClient, LLMError
from equity_ranker.schemas import CompanyData

from ..strategies._utils import (
    company_prefix,
    filter_by_asset_type,
    filter_by_size,
    filter_illiquid_classes,
    is_financial_sector,
    should_exclude,
)
from ..strategies.params import AIParams
from .calls import complete_with_timeout
from .models import AIPipelineSettings
from .parsing import ResponseParseError, parse_ticker_list
from .prompts import (
    SELECTION_FORMAT_GUIDANCE,
    build_retry_prompt,
    build_selection_prompt,
    technical_guidance,
)
from .validation import validate_selection

logger = logging.getLogger(__name__)

# Weight given to candidates without an overall score
DEFAULT_SELECTION_WEIGHT = 50.0


def selection_target(limit: int, settings: AIPipelineSettings) -> int:
    """
    Number of companies the selection stage asks for.

    Returns:
        int: min(limit + headroom, cap).
    """
    return min(limit + settings.selection_headroom, settings.selection_cap)


def is_profitable(company: CompanyData) -> bool:
    """
    Profitability gate on current (not averaged) figures.

    Banks and insurers are judged on ROE alone. Missing readings pass.

    Returns:
        bool: True if ROE and, where relevant, net margin are not negative.
    """
    roe = company.financials.roe
    if roe is not None and roe <= 0:
        return False
    if is_financial_sector(company.sector):
        return True

    net_margin = company.financials.net_margin
    return net_margin is None or net_margin > 0


def prefilter(
    companies: Sequence[CompanyData],
    params: AIParams,
    settings: AIPipelineSettings,
) -> list[CompanyData]:
    """
    Narrow the universe to the candidates offered to the model.

    Applies the asset-type, illiquid-class and exclusion filters, then keeps
    companies scoring above the overall-score floor that fit the size band
    and are profitable. At most ``max_candidates`` survive, best overall
    score first.

    Returns:
        list[CompanyData]: Candidate companies.
    """
    universe = filter_by_asset_type(companies, params.asset_type_filter)
    universe = filter_illiquid_classes(universe)
    universe = [company for company in universe if not should_exclude(company)]
    logger.info("AI universe: %d of %d companies", len(universe), len(companies))

    candidates = [
        company
        for company in filter_by_size(universe, params.company_size)
        if company.overall_score is not None
        and company.overall_score > settings.min_overall_score
        and is_profitable(company)
    ]
    logger.info("AI quality pre-filter kept %d companies", len(candidates))

    if len(candidates) > settings.max_candidates:
        candidates = sorted(
            candidates,
            key=lambda company: company.overall_score or 0.0,
            reverse=True,
        )[: settings.max_candidates]

    return candidates


def one_per_company(candidates: Sequence[CompanyData]) -> list[CompanyData]:
    """
    Keep the first ticker seen for each underlying company.

    Returns:
        list[CompanyData]: Candidates with unique company codes, in order.
    """
    seen: set[str] = set()
    unique: list[CompanyData] = []
    for company in candidates:
        prefix = company_prefix(company.ticker)
        if prefix not in seen:
            seen.add(prefix)
            unique.append(company)
    return unique


def weighted_random_selection(
    candidates: Sequence[CompanyData],
    target: int,
    rng: random.Random,
) -> list[CompanyData]:
    """
    Draw up to ``target`` companies without replacement, biased to quality.

    Each draw picks a remaining candidate with probability proportional to
    its overall score; every other ticker of the drawn company is then
    removed, so at most one ticker per company is returned.

    Returns:
        list[CompanyData]: Selected companies in draw order.
    """
    pool = list(candidates)
    selected: list[CompanyData] = []

    while pool and len(selected) < target:
        weights = [
            max(company.overall_score or DEFAULT_SELECTION_WEIGHT, 1.0)
            for company in pool
        ]
        chosen = rng.choices(pool, weights=weights, k=1)[0]
        selected.append(chosen)
        prefix = company_prefix(chosen.ticker)
        pool = [company for company in pool if company_prefix(company.ticker) != prefix]

    return selected


async def select_companies(
    candidates: Sequence[CompanyData],
    params: AIParams,
    client: LLMClient,
    settings: AIPipelineSettings,
    rng: random.Random,
) -> list[CompanyData]:
    """
    Ask the model for a shortlist, correcting it until it validates.

    Each failed attempt adds a corrective instruction to the next prompt.
    When the attempts run out the shortlist is drawn by
    ``weighted_random_selection`` instead. Never raises for model failures.

    Returns:
        list[CompanyData]: The shortlist, in the model's order when it succeeded.
    """
    target = selection_target(params.limit, settings)
    if len(candidates) <= target:
        logger.info(
            "Only %d candidates for a target of %d; skipping model selection",
            len(candidates),
            target,
        )
        return one_per_company(candidates)

    base_prompt = build_selection_prompt(candidates, params, target)
    by_ticker = {company.ticker: company for company in candidates}
    errors: list[str] = []

    for attempt in range(1, settings.max_attempts + 1):
        prompt = build_retry_prompt(base_prompt, errors)
        try:
            response = await complete_with_timeout(
                client,
                prompt,
                use_search=False,
                timeout=settings.selection_timeout,
            )
            tickers = parse_ticker_list(response)
        except ResponseParseError as error:
            logger.warning("Selection attempt %d unparseable: %s", attempt, error)
            errors.append(SELECTION_FORMAT_GUIDANCE)
            continue
        except LLMError as error:
            logger.warning("Selection attempt %d failed: %s", attempt, error)
            errors.append(technical_guidance(error, "JSON array"))
            continue

        problems = validate_selection(tickers, candidates, target)
        if problems:
            logger.warning(
                "Selection attempt %d invalid: %s",
                attempt,
                " | ".join(problems),
            )
            errors.extend(problems)
            continue

        logger.info("Model selected %d companies on attempt %d", len(tickers), attempt)
        return [by_ticker[ticker] for ticker in tickers]

    logger.warning(
        "Model selection failed after %d attempts; using weighted random draw",
        settings.max_attempts,
    )
    return weighted_random_selection(candidates, target, rng)

