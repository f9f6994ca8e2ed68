"""Monthly budget categories, expenses and their derived status.

Categories carry a monthly spending limit; expenses are charged against a
category.  Everything here is a pure calculation over the lists the
caller passes in.  Callers choose the period explicitly with
:func:`month_bounds` and :func:`expenses_in_period` instead of relying on
the system clock.
"""

from __future__ import annotations

import calendar
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .config import EXCEEDED_THRESHOLD, WARNING_THRESHOLD
from .formatting import format_currency

STATUS_OK = 'ok'
STATUS_WARNING = 'warning'
STATUS_EXCEEDED = 'exceeded'

Period = Tuple[date, date]

DEFAULT_BUDGET_CATEGORIES: List[Dict[str, str]] = [
    {'name': 'Gastos Fixos', 'icon': '🏠', 'color': '#ef4444',
     'description': 'Aluguel, condomínio, financiamentos, etc.'},
    {'name': 'Alimentação', 'icon': '🍽️', 'color': '#f59e0b',
     'description': 'Supermercado, restaurantes, delivery'},
    {'name': 'Transporte', 'icon': '🚗', 'color': '#3b82f6',
     'description': 'Combustível, transporte público, manutenção'},
    {'name': 'Lazer', 'icon': '🎮', 'color': '#8b5cf6',
     'description': 'Cinema, jogos, viagens, entretenimento'},
    {'name': 'Educação', 'icon': '📚', 'color': '#06b6d4',
     'description': 'Cursos, livros, materiais educativos'},
    {'name': 'Saúde', 'icon': '⚕️', 'color': '#10b981',
     'description': 'Plano de saúde, medicamentos, consultas'},
    {'name': 'Emergência', 'icon': '🚨', 'color': '#dc2626',
     'description': 'Gastos inesperados e emergenciais'},
    {'name': 'Investimentos', 'icon': '💰', 'color': '#059669',
     'description': 'Aplicações, poupança, ações'},
]


def _to_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass(frozen=True)
class BudgetCategory:
    """A named monthly spending bucket with a limit."""
    id: str
    name: str
    monthly_limit: float
    created_at: str
    updated_at: str
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BudgetCategory':
        return cls(
            id=str(data['id']),
            name=data['name'],
            monthly_limit=float(data.get('monthly_limit') or 0.0),
            created_at=data.get('created_at') or '',
            updated_at=data.get('updated_at') or '',
            description=data.get('description'),
            icon=data.get('icon'),
            color=data.get('color'),
        )


@dataclass(frozen=True)
class BudgetExpense:
    """An outflow attributed to a budget category."""
    id: str
    category_id: str
    amount: float
    description: str
    date: date
    transaction_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['date'] = self.date.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BudgetExpense':
        return cls(
            id=str(data['id']),
            category_id=str(data['category_id']),
            amount=float(data['amount']),
            description=data.get('description') or '',
            date=_to_date(data['date']),
            transaction_id=data.get('transaction_id'),
        )


@dataclass(frozen=True)
class CategoryBudgetStatus:
    category: BudgetCategory
    monthly_limit: float
    current_spent: float
    remaining_budget: float
    percent_used: float
    status: str
    expenses: List[BudgetExpense] = field(default_factory=list)


@dataclass(frozen=True)
class BudgetSummary:
    total_budget: float = 0.0
    total_spent: float = 0.0
    total_remaining: float = 0.0
    percent_used: float = 0.0
    categories_count: int = 0
    categories_ok: int = 0
    categories_warning: int = 0
    categories_exceeded: int = 0


def month_bounds(reference: date) -> Period:
    """Return the first and last day of the calendar month containing ``reference``.

    Example:
        >>> month_bounds(date(2024, 2, 10))
        (datetime.date(2024, 2, 1), datetime.date(2024, 2, 29))
    """
    last_day = calendar.monthrange(reference.year, reference.month)[1]
    return reference.replace(day=1), reference.replace(day=last_day)


def expenses_in_period(expenses: Iterable[BudgetExpense], start: date, end: date) -> List[BudgetExpense]:
    """Keep expenses dated within ``[start, end]`` (both inclusive)."""
    return [expense for expense in expenses if start <= expense.date <= end]


def status_for_percent(percent_used: float) -> str:
    """Map a percent of the limit to ok/warning/exceeded.

    Both thresholds belong to the more severe bucket: exactly 80% is a
    warning and exactly 100% is exceeded.
    """
    if percent_used >= EXCEEDED_THRESHOLD:
        return STATUS_EXCEEDED
    if percent_used >= WARNING_THRESHOLD:
        return STATUS_WARNING
    return STATUS_OK


def compute_category_status(
    category: BudgetCategory,
    expenses: Iterable[BudgetExpense],
) -> CategoryBudgetStatus:
    """Compute spend, remaining budget and status for a single category.

    Args:
        category: Category to evaluate
        expenses: Expenses already restricted to the period of interest.
            Expenses of other categories are ignored.

    Returns:
        CategoryBudgetStatus for the category. A category with a zero
        limit always reports 0% used and ``ok``.

    Example:
        >>> status = compute_category_status(groceries, [e300, e500])  # limit 1000
        >>> status.percent_used, status.status, status.remaining_budget
        (80.0, 'warning', 200.0)
    """
    matching = [expense for expense in expenses if expense.category_id == category.id]
    current_spent = float(sum(expense.amount for expense in matching))
    limit = category.monthly_limit
    percent_used = (current_spent / limit * 100.0) if limit > 0 else 0.0

    return CategoryBudgetStatus(
        category=category,
        monthly_limit=limit,
        current_spent=current_spent,
        remaining_budget=limit - current_spent,
        percent_used=percent_used,
        status=status_for_percent(percent_used),
        expenses=matching,
    )


def compute_categories_status(
    categories: Sequence[BudgetCategory],
    expenses: Iterable[BudgetExpense],
    period: Optional[Period] = None,
) -> List[CategoryBudgetStatus]:
    """Run :func:`compute_category_status` for every category, in input order."""
    scoped = expenses_in_period(expenses, *period) if period else list(expenses)
    return [compute_category_status(category, scoped) for category in categories]


def compute_budget_summary(
    categories: Sequence[BudgetCategory],
    expenses: Iterable[BudgetExpense],
    period: Optional[Period] = None,
) -> BudgetSummary:
    """Roll per-category statuses into a portfolio-level summary.

    The summary is always recomputed from scratch from both lists so the
    aggregate can never drift from the per-category figures. Spend only
    counts expenses that belong to one of ``categories``.

    Args:
        categories: Budget categories
        expenses: Expenses of any period
        period: Optional ``(start, end)`` restricting the expenses counted

    Returns:
        BudgetSummary with totals and per-status counts
    """
    statuses = compute_categories_status(categories, expenses, period)
    total_budget = float(sum(category.monthly_limit for category in categories))
    total_spent = float(sum(status.current_spent for status in statuses))
    percent_used = (total_spent / total_budget * 100.0) if total_budget > 0 else 0.0

    return BudgetSummary(
        total_budget=total_budget,
        total_spent=total_spent,
        total_remaining=total_budget - total_spent,
        percent_used=percent_used,
        categories_count=len(categories),
        categories_ok=sum(1 for s in statuses if s.status == STATUS_OK),
        categories_warning=sum(1 for s in statuses if s.status == STATUS_WARNING),
        categories_exceeded=sum(1 for s in statuses if s.status == STATUS_EXCEEDED),
    )


def budget_status_frame(statuses: Sequence[CategoryBudgetStatus]) -> pd.DataFrame:
    """Tabulate category statuses for display.

    Returns:
        DataFrame with columns: Category, Limit, Spent, Remaining,
        Percent Used, Status, Expenses
    """
    columns = ['Category', 'Limit', 'Spent', 'Remaining', 'Percent Used', 'Status', 'Expenses']
    if not statuses:
        return pd.DataFrame(columns=columns)

    rows = [
        {
            'Category': status.category.name,
            'Limit': status.monthly_limit,
            'Spent': status.current_spent,
            'Remaining': status.remaining_budget,
            'Percent Used': round(status.percent_used, 1),
            'Status': status.status,
            'Expenses': len(status.expenses),
        }
        for status in statuses
    ]
    return pd.DataFrame(rows, columns=columns)


@dataclass(frozen=True)
class BudgetAlert:
    level: str
    title: str
    message: str


def budget_alerts(statuses: Sequence[CategoryBudgetStatus]) -> List[BudgetAlert]:
    """Turn category statuses into user-facing notices.

    Every exceeded category gets its own alert with the overspend.
    Warnings are grouped into a single alert, and only raised when no
    category is exceeded.
    """
    exceeded = [s for s in statuses if s.status == STATUS_EXCEEDED]
    warning = [s for s in statuses if s.status == STATUS_WARNING]

    alerts = [
        BudgetAlert(
            level=STATUS_EXCEEDED,
            title="Orçamento Estourado!",
            message=(
                f'A categoria "{s.category.name}" ultrapassou o limite em '
                f'{format_currency(s.current_spent - s.monthly_limit)}'
            ),
        )
        for s in exceeded
    ]
    if warning and not exceeded:
        names = ", ".join(s.category.name for s in warning)
        if len(warning) == 1:
            message = f"A categoria {names} está próxima do limite mensal"
        else:
            message = f"As categorias {names} estão próximas do limite mensal"
        alerts.append(BudgetAlert(level=STATUS_WARNING, title="Atenção ao Orçamento", message=message))
    return alerts
