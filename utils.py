"""
Utility functions and helpers.
"""

import logging

from constants import LimitsAndConstraints

logger = logging.getLogger(__name__)


def validate_ticker_symbol(ticker: str) -> str:
    """
    Validates and normalizes a single ticker symbol.

    This is the centralized ticker validation logic used across the application.

    Args:
        ticker (str): The ticker symbol to validate.

    Returns:
        str: The validated and normalized ticker symbol (uppercased and stripped).

    Raises:
        ValueError: If the ticker is invalid (empty, wrong length, invalid characters, or suspicious name).

    Examples:
        >>> validate_ticker_symbol("aapl")
        'AAPL'
        >>> validate_ticker_symbol("BRK.B")
        'BRK.B'
        >>> validate_ticker_symbol("^gspc")
        '^GSPC'
    """
    if not isinstance(ticker, str):
        raise ValueError(f"Ticker must be a string, got {type(ticker).__name__}")

    # Strip whitespace and convert to uppercase
    ticker = ticker.strip().upper()

    if not ticker:
        raise ValueError("Ticker cannot be empty")

    if len(ticker) > LimitsAndConstraints.MAX_TICKER_LENGTH:
        raise ValueError(
            f"Ticker '{ticker}' has invalid length "
            f"(must be 1-{LimitsAndConstraints.MAX_TICKER_LENGTH} characters)"
        )

    # Alphanumeric plus dots, hyphens and a leading caret for index symbols
    body = ticker[1:] if ticker.startswith("^") else ticker
    if not body or not all(c.isalnum() or c in ".-" for c in body):
        raise ValueError(
            f"Invalid characters in ticker '{ticker}'. Only alphanumeric, dots, and hyphens allowed."
        )

    if ticker.lower() in ["test", "null", "none", "undefined"]:
        raise ValueError(f"Suspicious ticker name: '{ticker}'")

    return ticker


def format_currency(value: float) -> str:
    """
    Formats a dollar amount with thousands separators and two decimals.

    Examples:
        >>> format_currency(1234.5)
        '$1,234.50'
        >>> format_currency(-12)
        '-$12.00'
    """
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_percent(value: float) -> str:
    """
    Formats a percentage (already multiplied by 100) with an explicit sign.

    Examples:
        >>> format_percent(12.3456)
        '+12.35%'
        >>> format_percent(-3)
        '-3.00%'
    """
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.2f}%"
