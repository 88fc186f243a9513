# _utils/formatting.py

NOT_AVAILABLE = "N/A"
BENEFIT_OF_DOUBT = "N/A - benefit of the doubt"


def format_percent(value: float | None, digits: int = 1) -> str | None:
    """
    Render a decimal ratio as a percentage string.

    Returns:
        str | None: e.g. "12.5%" for 0.125, or None when missing.
    """
    if value is None:
        return None
    return f"{value * 100:.{digits}f}%"


def format_currency(value: float | None) -> str | None:
    """
    Render a monetary amount in reais, abbreviating large magnitudes.

    Returns:
        str | None: e.g. "R$ 12.34", "R$ 3.2B", or None when missing.
    """
    if value is None:
        return None

    magnitude = abs(value)
    if magnitude >= 1_000_000_000:
        return f"R$ {value / 1_000_000_000:.1f}B"
    if magnitude >= 1_000_000:
        return f"R$ {value / 1_000_000:.0f}M"
    return f"R$ {value:.2f}"


def format_number(value: float | None, digits: int = 2) -> str | None:
    return None if value is None else f"{value:.{digits}f}"


def or_benefit(text: str | None) -> str:
    """
    Fall back to the benefit-of-the-doubt marker for missing readings.

    Returns:
        str: The formatted value, or the benefit-of-the-doubt marker.
    """
    return BENEFIT_OF_DOUBT if text is None else text


def or_missing(text: str | None) -> str:
    return NOT_AVAILABLE if text is None else text


def format_upside(value: float | None) -> str | None:
    """
    Render a value already expressed in percent.

    Returns:
        str | None: e.g. "23.4%", or None when missing.
    """
    return None if value is None else f"{value:.1f}%"
