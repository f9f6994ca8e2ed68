"""Input validation applied before anything reaches the store.

The calculators assume clean, typed input.  Forms and scripts run their
raw values through these helpers, which raise :class:`ValidationError`
with a message that can be shown to the user as is.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Optional

from .goals import GOAL_CATEGORIES
from .investments import INVESTMENT_OPTIONS
from .transactions import TRANSACTION_TYPES


class ValidationError(ValueError):
    """Raised when user input cannot be accepted."""


def parse_amount(value: Any) -> Optional[float]:
    """Convert different textual amount representations into floats.

    Accepts plain numbers and strings such as ``"12.5"``, ``"12,50"``,
    ``"R$ 1.234,56"`` or ``"1,234.56"``. Returns ``None`` when the value
    is empty or not a number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if value != value else float(value)

    cleaned = str(value).strip().replace('R$', '').replace('$', '').replace(' ', '')
    if not cleaned:
        return None
    if ',' in cleaned and '.' in cleaned:
        # Whichever separator comes last is the decimal one
        if cleaned.rfind(',') > cleaned.rfind('.'):
            cleaned = cleaned.replace('.', '').replace(',', '.')
        else:
            cleaned = cleaned.replace(',', '')
    elif ',' in cleaned:
        cleaned = cleaned.replace(',', '.')
    if not re.fullmatch(r'-?\d+(\.\d+)?', cleaned):
        return None
    return float(cleaned)


def require_text(value: Any, field_name: str) -> str:
    text = str(value).strip() if value is not None else ''
    if not text:
        raise ValidationError(f"{field_name} is required")
    return text


def require_amount(value: Any, field_name: str, *, allow_zero: bool = False) -> float:
    amount = parse_amount(value)
    if amount is None:
        raise ValidationError(f"{field_name} must be a number")
    if amount < 0 or (amount == 0 and not allow_zero):
        qualifier = "zero or more" if allow_zero else "greater than zero"
        raise ValidationError(f"{field_name} must be {qualifier}")
    return amount


def require_date(value: Any, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(require_text(value, field_name)[:10])
    except ValueError as e:
        raise ValidationError(f"{field_name} must be a date in YYYY-MM-DD format") from e


def require_goal_category(value: Any) -> str:
    category = require_text(value, "Goal category")
    if category not in GOAL_CATEGORIES:
        raise ValidationError(f"Unknown goal category '{category}'")
    return category


def require_investment_type(value: Any) -> str:
    kind = require_text(value, "Investment type")
    if kind not in INVESTMENT_OPTIONS:
        raise ValidationError(f"Unknown investment type '{kind}'")
    return kind


def require_transaction_type(value: Any) -> str:
    kind = require_text(value, "Transaction type")
    if kind not in TRANSACTION_TYPES:
        raise ValidationError(f"Transaction type must be one of {', '.join(TRANSACTION_TYPES)}")
    return kind
