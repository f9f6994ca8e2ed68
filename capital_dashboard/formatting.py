"""Formatting utilities for Brazilian currency, percentages and dates."""

from __future__ import annotations

from datetime import date
from typing import Union


def _swap_separators(text: str) -> str:
    # "1,234.56" -> "1.234,56"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_currency(amount: Union[float, int], include_sign: bool = True) -> str:
    """Format an amount in Brazilian reais.

    Args:
        amount: The amount to format
        include_sign: Whether to include the ``R$`` prefix

    Returns:
        Formatted currency string (e.g., "R$ 1.234,56" or "1.234,56")

    Example:
        >>> format_currency(1234.56)
        'R$ 1.234,56'
        >>> format_currency(-50)
        '-R$ 50,00'
    """
    formatted = _swap_separators(f"{abs(amount):,.2f}")
    if include_sign:
        formatted = f"R$ {formatted}"
    return f"-{formatted}" if amount < 0 else formatted


def format_percent(value: Union[float, int], decimals: int = 1, signed: bool = False) -> str:
    """Format a percentage with a decimal comma, e.g. ``12,5%``."""
    spec = f"{'+' if signed else ''},.{decimals}f"
    return f"{_swap_separators(format(value, spec))}%"


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")
