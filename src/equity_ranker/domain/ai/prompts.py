# ai/prompts.py

from collections.abc import Sequence

from equity_ranker.schemas import CompanyData

from ..strategies._utils import indicator
from ..strategies.params import AIParams, CompanySize, RiskTolerance
from .models import STRATEGY_KEYS, STRATEGY_LABELS, CompanyEvaluation

SIZE_DESCRIPTIONS: dict[CompanySize, str] = {
    CompanySize.ALL: "All companies",
    CompanySize.SMALL_CAPS: "Small caps (< R$ 2B)",
    CompanySize.MID_CAPS: "Mid caps (R$ 2-10B)",
    CompanySize.BLUE_CHIPS: "Blue chips (> R$ 10B)",
}

PROFILE_CRITERIA: dict[RiskTolerance, str] = {
    RiskTolerance.CONSERVATIVE: "ROE >= 12%, P/L <= 20, DY >= 3%, controlled debt",
    RiskTolerance.MODERATE: (
        "ROE >= 8%, P/L <= 25, adequate liquidity, consistent growth"
    ),
    RiskTolerance.AGGRESSIVE: (
        "growth >= 15%, innovation, disruptive potential, flexible P/L"
    ),
}

SELECTION_FORMAT_GUIDANCE = (
    'FORMAT ERROR: Return ONLY a valid JSON array: ["TICKER1", "TICKER2"]. '
    "Do NOT add text before or after the array. Do NOT use ```json. "
    "STOP right after the closing ]."
)

BATCH_FORMAT_GUIDANCE = (
    'FORMAT ERROR: Return ONLY valid JSON: {"results": [{"ticker": "TICKER1", '
    '"score": 85, "fairValue": 25.50, "upside": 15.2, "confidenceLevel": 0.8, '
    '"reasoning": "text"}]}. Do NOT add text before or after the JSON. '
    "Do NOT use ```json. STOP right after the closing }."
)


def technical_guidance(error: Exception, expected: str) -> str:
    """
    Corrective instruction for a call that failed for non-format reasons.

    Returns:
        str: Guidance asking for a simpler response.
    """
    return (
        f"Technical error: {error}. Simplify the response and focus only on "
        f"the requested {expected}."
    )


def build_retry_prompt(base: str, errors: Sequence[str]) -> str:
    """
    Append accumulated corrective guidance to a base prompt.

    Pure: the same base and errors always produce the same prompt, and no
    errors leave the base untouched.

    Args:
        base (str): The stage's original prompt.
        errors: Corrections gathered from earlier attempts, oldest first.

    Returns:
        str: The prompt for the next attempt.
    """
    if not errors:
        return base

    numbered = "\n".join(
        f"{position}. {error}" for position, error in enumerate(errors, start=1)
    )
    return (
        f"{base}\n\n## CRITICAL CORRECTIONS (from previous errors):\n{numbered}\n\n"
        "**IMPORTANT**: Fix these problems in your answer!"
    )


def _profile(params: AIParams) -> str:
    return (
        f"- **Risk tolerance**: {params.risk_tolerance.value}\n"
        f"- **Horizon**: {params.time_horizon.value}\n"
        f"- **Focus**: {params.focus.value}"
    )


def _candidate_line(company: CompanyData, use_averages: bool) -> str:
    def read(field: str) -> float:
        return indicator(company, field, use_averages=use_averages) or 0.0

    market_cap = company.financials.market_cap or 0.0
    return (
        f"{company.ticker} ({company.name}) - Sector: "
        f"{company.sector or 'Not informed'} | Price: R$ "
        f"{company.current_price:.2f} | Market cap: R$ "
        f"{market_cap / 1_000_000_000:.1f}B | ROE: {read('roe') * 100:.1f}% | "
        f"P/L: {read('pe'):.1f} | DY: {read('dividend_yield') * 100:.1f}% | "
        f"Current ratio: {read('current_ratio'):.2f} | Margin: "
        f"{read('net_margin') * 100:.1f}%"
    )


def build_selection_prompt(
    candidates: Sequence[CompanyData],
    params: AIParams,
    target: int,
) -> str:
    """
    Prompt asking the model to pick a diversified shortlist of tickers.

    Args:
        candidates: Pre-filtered companies the model may choose from.
        params: Investor profile and sizing.
        target (int): Exact number of tickers requested.

    Returns:
        str: The selection prompt.
    """
    listing = "\n".join(
        _candidate_line(company, params.use_7_year_averages) for company in candidates
    )
    profile_rules = "\n".join(
        f"- **{tolerance.value}**: {rule}"
        for tolerance, rule in PROFILE_CRITERIA.items()
    )

    return f"""# SMART COMPANY SELECTION FOR PREDICTIVE ANALYSIS

## GOAL
Select the {target} best B3 companies for the investor's criteria, for a \
detailed predictive analysis.

## INVESTOR PROFILE
{_profile(params)}
- **Size filter**: {SIZE_DESCRIPTIONS[params.company_size]}

## MINIMUM QUALITY CRITERIA
**PRE-APPLIED FILTERS**: Only PROFITABLE companies (ROE > 0 and net margin > 0). \
Banks and insurers: only ROE > 0.

{profile_rules}
- **Dividends focus**: DY >= 4%, consistent history, sustainable payout

## AVAILABLE COMPANIES
{listing}

## DIVERSIFICATION
Build a DIVERSIFIED ranking, as if assembling a portfolio:
- **Sector diversification**: at most 30% in any one sector
- **One ticker per company**: when a company has several tickers (e.g. POMO3, \
POMO4), choose only ONE, preferring the largest market cap
- **Solid companies**: prefer consistent fundamentals and market cap > R$ 1B
- **Profile fit**: respect the investor parameters strictly

## REQUIRED ANSWER
Be DIRECT. Do NOT repeat analyses or explanations.

Return ONLY a JSON list with the selected tickers:
["TICKER1", "TICKER2", "TICKER3", ...]

**CRITICAL RULES**:
- Select exactly {target} DIVERSIFIED companies
- NEVER repeat a ticker
- NEVER include several tickers of the same company
- The answer must be ONLY the JSON array, with no markdown and no ```json
- STOP immediately after closing the array with ]"""


def _strategy_line(key: str, evaluation: CompanyEvaluation) -> str:
    analysis = evaluation.analyses[key]
    mark = "PASS" if analysis.is_eligible else "FAIL"
    return (
        f"- {STRATEGY_LABELS[key]}: {mark} (score {analysis.score:.0f}) - "
        f"{analysis.reasoning}"
    )


def _company_block(evaluation: CompanyEvaluation) -> str:
    company = evaluation.company
    strategies = "\n".join(_strategy_line(key, evaluation) for key in STRATEGY_KEYS)
    return (
        f"**{company.ticker} ({company.name})**\n"
        f"Sector: {company.sector or 'Not informed'} | Price: R$ "
        f"{company.current_price:.2f}\n"
        f"Eligible strategies: {evaluation.eligible_count}/{len(STRATEGY_KEYS)}\n"
        f"{strategies}"
    )


def build_batch_prompt(
    evaluations: Sequence[CompanyEvaluation],
    params: AIParams,
) -> str:
    """
    Prompt asking the model to score every shortlisted company at once.

    Args:
        evaluations: Shortlisted companies with their strategy verdicts.
        params: Investor profile.

    Returns:
        str: The batch-scoring prompt.
    """
    companies = "\n\n".join(_company_block(evaluation) for evaluation in evaluations)

    return f"""# BATCH PREDICTIVE ANALYSIS

## INVESTOR PROFILE
{_profile(params)}

## INSTRUCTIONS
**PRE-FILTERED COMPANIES**: every company below is profitable (ROE > 0 and net \
margin > 0; banks and insurers only ROE > 0).

Analyse ALL companies below together and build a predictive ranking weighing:
1. **Strategic consistency**: how many strategies approved each company
2. **Fundamental quality**: ROE, margins, growth, leverage
3. **Upside potential**: based on the computed fair values
4. **Profile fit**: alignment with risk tolerance and focus
5. **Sector context**: outlook for each company's sector

**IMPORTANT**: SEARCH the web for up-to-date information on each company \
before analysing it.

## COMPANIES
{companies}

## REQUIRED ANSWER
Return JSON ranking ALL {len(evaluations)} companies:

{{
  "results": [
    {{
      "ticker": "TICKER1",
      "score": 85,
      "fairValue": 25.50,
      "upside": 15.2,
      "confidenceLevel": 0.8,
      "reasoning": "Detailed analysis weighing strategies, fundamentals and \
current context."
    }}
  ]
}}

**ANTI-LOOP RULES**:
- Be DIRECT, avoid repetition
- Do NOT analyse the same company more than once
- Order by score (0-100), descending
- Include EVERY company exactly ONCE

**MANDATORY FORMAT**:
- Answer ONLY with the JSON, no markdown (```json), no text before or after
- Exact format: {{"results": [...]}}
- STOP immediately after the final closing brace }}"""
