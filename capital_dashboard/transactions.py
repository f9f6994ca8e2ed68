"""Income and expense ledger and the balances derived from it.

A transaction is either income (``receita``) or an expense
(``despesa``).  The ledger feeds two calculations: the monthly summary
shown on the dashboard and the available balance that may fund a goal
when investments cannot.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from .budgets import month_bounds
from .investments import Investment, investment_value, total_allocated_to_goals

TYPE_INCOME = 'receita'
TYPE_EXPENSE = 'despesa'
TRANSACTION_TYPES = (TYPE_INCOME, TYPE_EXPENSE)

SOURCE_MANUAL = 'manual'
TRANSACTION_SOURCES = (SOURCE_MANUAL, 'open-finance', 'importacao')

TOP_EXPENSE_CATEGORIES = 5

TRANSACTION_CATEGORIES: Dict[str, Dict[str, str]] = {
    'salario': {'name': 'Salário', 'type': TYPE_INCOME, 'icon': '💼'},
    'freelance': {'name': 'Freelance', 'type': TYPE_INCOME, 'icon': '💻'},
    'investimentos': {'name': 'Rendimentos', 'type': TYPE_INCOME, 'icon': '📈'},
    'outros-receitas': {'name': 'Outras Receitas', 'type': TYPE_INCOME, 'icon': '💰'},
    'alimentacao': {'name': 'Alimentação', 'type': TYPE_EXPENSE, 'icon': '🍽️'},
    'transporte': {'name': 'Transporte', 'type': TYPE_EXPENSE, 'icon': '🚗'},
    'moradia': {'name': 'Moradia', 'type': TYPE_EXPENSE, 'icon': '🏠'},
    'saude': {'name': 'Saúde', 'type': TYPE_EXPENSE, 'icon': '⚕️'},
    'educacao': {'name': 'Educação', 'type': TYPE_EXPENSE, 'icon': '📚'},
    'entretenimento': {'name': 'Entretenimento', 'type': TYPE_EXPENSE, 'icon': '🎬'},
    'compras': {'name': 'Compras', 'type': TYPE_EXPENSE, 'icon': '🛍️'},
    'servicos': {'name': 'Serviços', 'type': TYPE_EXPENSE, 'icon': '🔧'},
    'outros-despesas': {'name': 'Outras Despesas', 'type': TYPE_EXPENSE, 'icon': '📝'},
}


def categories_for_type(transaction_type: str) -> List[str]:
    return [key for key, meta in TRANSACTION_CATEGORIES.items() if meta['type'] == transaction_type]


def category_label(category: str) -> str:
    meta = TRANSACTION_CATEGORIES.get(category)
    return f"{meta['icon']} {meta['name']}" if meta else category


def _to_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass(frozen=True)
class Transaction:
    """A single income or expense entry."""
    id: str
    type: str
    category: str
    description: str
    amount: float
    date: date
    created_at: str
    updated_at: str
    source: str = SOURCE_MANUAL
    tags: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_income(self) -> bool:
        return self.type == TYPE_INCOME

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['date'] = self.date.isoformat()
        data['tags'] = list(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        tags = data.get('tags') or ()
        if isinstance(tags, str):
            tags = [tag for tag in tags.split(',') if tag]
        return cls(
            id=str(data['id']),
            type=data['type'],
            category=data.get('category') or '',
            description=data.get('description') or '',
            amount=float(data['amount']),
            date=_to_date(data['date']),
            created_at=data.get('created_at') or '',
            updated_at=data.get('updated_at') or '',
            source=data.get('source') or SOURCE_MANUAL,
            tags=tuple(tags),
        )


@dataclass(frozen=True)
class CategorySpend:
    category: str
    amount: float
    percentage: float


@dataclass(frozen=True)
class TransactionSummary:
    total_income: float = 0.0
    total_expenses: float = 0.0
    balance: float = 0.0
    monthly_variation: float = 0.0
    top_expenses: List[CategorySpend] = field(default_factory=list)


@dataclass(frozen=True)
class BalanceSummary:
    total_income: float = 0.0
    total_expenses: float = 0.0
    balance: float = 0.0
    investments_value: float = 0.0
    allocated_to_goals: float = 0.0
    available_balance: float = 0.0


def _totals(transactions: Iterable[Transaction]) -> Tuple[float, float]:
    income = 0.0
    expenses = 0.0
    for transaction in transactions:
        if transaction.type == TYPE_INCOME:
            income += transaction.amount
        elif transaction.type == TYPE_EXPENSE:
            expenses += transaction.amount
    return income, expenses


def transactions_in_month(transactions: Iterable[Transaction], reference: date) -> List[Transaction]:
    start, end = month_bounds(reference)
    return [t for t in transactions if start <= t.date <= end]


def _previous_month(reference: date) -> date:
    first = reference.replace(day=1)
    if first.month == 1:
        return first.replace(year=first.year - 1, month=12)
    return first.replace(month=first.month - 1)


def transaction_summary(transactions: Sequence[Transaction], reference: date) -> TransactionSummary:
    """Summarise the month containing ``reference``.

    ``monthly_variation`` is the percent change of expenses against the
    previous month, 0 when the previous month had none.  ``top_expenses``
    lists the five largest expense categories of the month with their
    share of the month's expenses.
    """
    current = transactions_in_month(transactions, reference)
    previous = transactions_in_month(transactions, _previous_month(reference))
    income, expenses = _totals(current)
    _, previous_expenses = _totals(previous)

    variation = ((expenses - previous_expenses) / previous_expenses * 100.0) if previous_expenses > 0 else 0.0

    by_category: Dict[str, float] = {}
    for transaction in current:
        if transaction.type == TYPE_EXPENSE:
            by_category[transaction.category] = by_category.get(transaction.category, 0.0) + transaction.amount
    ranked = sorted(by_category.items(), key=lambda item: item[1], reverse=True)[:TOP_EXPENSE_CATEGORIES]

    return TransactionSummary(
        total_income=income,
        total_expenses=expenses,
        balance=income - expenses,
        monthly_variation=variation,
        top_expenses=[
            CategorySpend(category, amount, (amount / expenses * 100.0) if expenses > 0 else 0.0)
            for category, amount in ranked
        ],
    )


def balance_summary(transactions: Iterable[Transaction], investments: Sequence[Investment]) -> BalanceSummary:
    """All-time balance plus the portfolio, minus what is earmarked for goals.

    Example:
        >>> balance_summary([income_5000, expense_1200], [lot_worth_1000_with_300_allocated])
        BalanceSummary(total_income=5000.0, total_expenses=1200.0, balance=3800.0,
                       investments_value=1000.0, allocated_to_goals=300.0, available_balance=4500.0)
    """
    income, expenses = _totals(transactions)
    invested = float(sum(investment_value(investment) for investment in investments))
    allocated = total_allocated_to_goals(investments)
    balance = income - expenses
    return BalanceSummary(
        total_income=income,
        total_expenses=expenses,
        balance=balance,
        investments_value=invested,
        allocated_to_goals=allocated,
        available_balance=balance + invested - allocated,
    )
