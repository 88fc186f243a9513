# _utils/test_formatting.py

import pytest

from equity_ranker.domain.strategies._utils import (
    format_currency,
    format_percent,
    or_benefit,
    or_missing,
)

pytestmark = pytest.mark.unit


def test_format_percent_scales_ratio() -> None:
    """
    ARRANGE: a 12.5% ratio
    ACT:     format_percent
    ASSERT:  "12.5%"
    """
    actual = format_percent(0.125)

    assert actual == "12.5%"


def test_format_currency_abbreviates_billions() -> None:
    """
    ARRANGE: 3.2 billion
    ACT:     format_currency
    ASSERT:  "R$ 3.2B"
    """
    actual = format_currency(3_200_000_000)

    assert actual == "R$ 3.2B"


def test_format_currency_keeps_cents_for_prices() -> None:
    """
    ARRANGE: a share price
    ACT:     format_currency
    ASSERT:  two decimals
    """
    actual = format_currency(12.3)

    assert actual == "R$ 12.30"


def test_or_benefit_marks_missing_values() -> None:
    """
    ARRANGE: a missing formatted value
    ACT:     or_benefit
    ASSERT:  the benefit-of-the-doubt marker
    """
    actual = or_benefit(format_percent(None))

    assert actual == "N/A - benefit of the doubt"


def test_or_missing_passes_text_through() -> None:
    """
    ARRANGE: a formatted value
    ACT:     or_missing
    ASSERT:  unchanged
    """
    actual = or_missing("1.00")

    assert actual == "1.00"
