"""Application state and its transitions.

``FinanceState`` is an immutable snapshot of everything a user owns.
Each mutation is described by an action record and applied by the pure
:func:`reduce` function, which always returns a new state.  The
:class:`Store` owns the current state for a session and calls a
caller-supplied hook after every transition so persistence stays out of
the calculations.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from . import allocation as alloc
from .budgets import (
    DEFAULT_BUDGET_CATEGORIES,
    BudgetCategory,
    BudgetExpense,
    BudgetSummary,
    CategoryBudgetStatus,
    compute_budget_summary,
    compute_categories_status,
    month_bounds,
)
from .goals import Goal, GoalSummary, GoalWithStatus, compute_goal_status, compute_goal_summary
from .investments import Investment, InvestmentSummary, Quote, revalue, summarize
from .transactions import (
    TYPE_EXPENSE,
    BalanceSummary,
    Transaction,
    TransactionSummary,
    balance_summary,
    transaction_summary,
)


@dataclass(frozen=True)
class FinanceState:
    categories: Tuple[BudgetCategory, ...] = ()
    expenses: Tuple[BudgetExpense, ...] = ()
    goals: Tuple[Goal, ...] = ()
    investments: Tuple[Investment, ...] = ()
    quotes: Mapping[str, Quote] = field(default_factory=dict)
    last_quote_update: Optional[str] = None
    transactions: Tuple[Transaction, ...] = ()


# --- Actions ---

@dataclass(frozen=True)
class LoadState:
    state: FinanceState


@dataclass(frozen=True)
class AddTransaction:
    transaction: Transaction


@dataclass(frozen=True)
class UpdateTransaction:
    transaction: Transaction


@dataclass(frozen=True)
class DeleteTransaction:
    transaction_id: str


@dataclass(frozen=True)
class AddCategory:
    category: BudgetCategory


@dataclass(frozen=True)
class UpdateCategory:
    category: BudgetCategory


@dataclass(frozen=True)
class DeleteCategory:
    category_id: str


@dataclass(frozen=True)
class SeedDefaultCategories:
    timestamp: str


@dataclass(frozen=True)
class AddExpense:
    expense: BudgetExpense


@dataclass(frozen=True)
class UpdateExpense:
    expense: BudgetExpense


@dataclass(frozen=True)
class DeleteExpense:
    expense_id: str


@dataclass(frozen=True)
class DeleteExpensesByTransaction:
    transaction_id: str


@dataclass(frozen=True)
class AddGoal:
    goal: Goal


@dataclass(frozen=True)
class UpdateGoal:
    goal: Goal


@dataclass(frozen=True)
class DeleteGoal:
    goal_id: str


@dataclass(frozen=True)
class UpdateGoalAmount:
    goal_id: str
    amount: float
    timestamp: str


@dataclass(frozen=True)
class AddInvestment:
    investment: Investment


@dataclass(frozen=True)
class UpdateInvestment:
    investment: Investment


@dataclass(frozen=True)
class DeleteInvestment:
    investment_id: str


@dataclass(frozen=True)
class SetQuotes:
    quotes: Mapping[str, Quote]
    timestamp: str


@dataclass(frozen=True)
class ApplyAllocation:
    result: alloc.GoalAllocationResult


@dataclass(frozen=True)
class RemoveGoalAllocation:
    goal_id: str


def new_id() -> str:
    return str(uuid.uuid4())


def _replace_by_id(items: Tuple[Any, ...], item: Any) -> Tuple[Any, ...]:
    return tuple(item if existing.id == item.id else existing for existing in items)


def _seed_categories(timestamp: str) -> Tuple[BudgetCategory, ...]:
    return tuple(
        BudgetCategory(
            id=new_id(),
            name=entry['name'],
            monthly_limit=0.0,
            created_at=timestamp,
            updated_at=timestamp,
            description=entry['description'],
            icon=entry['icon'],
            color=entry['color'],
        )
        for entry in DEFAULT_BUDGET_CATEGORIES
    )


def _sync_linked_expenses(expenses: Tuple[BudgetExpense, ...], transaction: Transaction) -> Tuple[BudgetExpense, ...]:
    if transaction.type != TYPE_EXPENSE:
        return tuple(e for e in expenses if e.transaction_id != transaction.id)
    return tuple(
        replace(e, amount=transaction.amount, description=transaction.description, date=transaction.date)
        if e.transaction_id == transaction.id else e
        for e in expenses
    )


def reduce(state: FinanceState, action: Any) -> FinanceState:
    """Return the state that results from applying ``action`` to ``state``.

    Deleting a category also drops its expenses, deleting a goal also
    drops its allocation records from every lot, and deleting a
    transaction drops the budget expenses charged from it, so no orphan
    records survive a transition.  Budget expenses linked to an edited
    transaction follow its amount, description and date, and are
    dropped if it stops being an expense.

    Raises:
        TypeError: If ``action`` is not a known action record
    """
    if isinstance(action, LoadState):
        return action.state

    if isinstance(action, AddTransaction):
        return replace(state, transactions=state.transactions + (action.transaction,))
    if isinstance(action, UpdateTransaction):
        return replace(
            state,
            transactions=_replace_by_id(state.transactions, action.transaction),
            expenses=_sync_linked_expenses(state.expenses, action.transaction),
        )
    if isinstance(action, DeleteTransaction):
        return replace(
            state,
            transactions=tuple(t for t in state.transactions if t.id != action.transaction_id),
            expenses=tuple(e for e in state.expenses if e.transaction_id != action.transaction_id),
        )

    if isinstance(action, AddCategory):
        return replace(state, categories=state.categories + (action.category,))
    if isinstance(action, UpdateCategory):
        return replace(state, categories=_replace_by_id(state.categories, action.category))
    if isinstance(action, DeleteCategory):
        return replace(
            state,
            categories=tuple(c for c in state.categories if c.id != action.category_id),
            expenses=tuple(e for e in state.expenses if e.category_id != action.category_id),
        )
    if isinstance(action, SeedDefaultCategories):
        # Fresh ids, so expenses of the replaced categories would be orphaned
        return replace(state, categories=_seed_categories(action.timestamp), expenses=())

    if isinstance(action, AddExpense):
        return replace(state, expenses=state.expenses + (action.expense,))
    if isinstance(action, UpdateExpense):
        return replace(state, expenses=_replace_by_id(state.expenses, action.expense))
    if isinstance(action, DeleteExpense):
        return replace(state, expenses=tuple(e for e in state.expenses if e.id != action.expense_id))
    if isinstance(action, DeleteExpensesByTransaction):
        return replace(
            state,
            expenses=tuple(e for e in state.expenses if e.transaction_id != action.transaction_id),
        )

    if isinstance(action, AddGoal):
        return replace(state, goals=state.goals + (action.goal,))
    if isinstance(action, UpdateGoal):
        return replace(state, goals=_replace_by_id(state.goals, action.goal))
    if isinstance(action, DeleteGoal):
        return replace(
            state,
            goals=tuple(g for g in state.goals if g.id != action.goal_id),
            investments=tuple(alloc.remove_goal_allocation(action.goal_id, state.investments)),
        )
    if isinstance(action, UpdateGoalAmount):
        goals = tuple(
            replace(g, current_amount=action.amount, updated_at=action.timestamp)
            if g.id == action.goal_id else g
            for g in state.goals
        )
        return replace(state, goals=goals)

    if isinstance(action, AddInvestment):
        return replace(state, investments=state.investments + (action.investment,))
    if isinstance(action, UpdateInvestment):
        return replace(state, investments=_replace_by_id(state.investments, action.investment))
    if isinstance(action, DeleteInvestment):
        return replace(
            state,
            investments=tuple(i for i in state.investments if i.id != action.investment_id),
        )
    if isinstance(action, SetQuotes):
        return replace(
            state,
            investments=tuple(revalue(state.investments, action.quotes, now=action.timestamp)),
            quotes=dict(action.quotes),
            last_quote_update=action.timestamp,
        )

    if isinstance(action, ApplyAllocation):
        result = action.result
        if not result.success:
            return state
        return replace(
            state,
            goals=_replace_by_id(state.goals, result.goal),
            investments=tuple(result.investments),
        )
    if isinstance(action, RemoveGoalAllocation):
        return replace(
            state,
            investments=tuple(alloc.remove_goal_allocation(action.goal_id, state.investments)),
        )

    raise TypeError(f"Unknown action: {type(action).__name__}")


ChangeHook = Callable[[FinanceState, Any], None]


class Store:
    """Owns the current :class:`FinanceState` of one session."""

    def __init__(self, state: Optional[FinanceState] = None, on_change: Optional[ChangeHook] = None):
        """Initialize the store.

        Args:
            state: Initial state, empty when omitted
            on_change: Called with ``(new_state, action)`` after every
                dispatched transition
        """
        self.state = state or FinanceState()
        self.on_change = on_change

    def dispatch(self, action: Any) -> FinanceState:
        self.state = reduce(self.state, action)
        if self.on_change is not None:
            self.on_change(self.state, action)
        return self.state

    def goal_by_id(self, goal_id: str) -> Optional[Goal]:
        return next((g for g in self.state.goals if g.id == goal_id), None)

    def category_by_id(self, category_id: str) -> Optional[BudgetCategory]:
        return next((c for c in self.state.categories if c.id == category_id), None)

    def investment_by_id(self, investment_id: str) -> Optional[Investment]:
        return next((i for i in self.state.investments if i.id == investment_id), None)

    def transaction_by_id(self, transaction_id: str) -> Optional[Transaction]:
        return next((t for t in self.state.transactions if t.id == transaction_id), None)

    def allocate_to_goal(
        self,
        goal_id: str,
        amount: float,
        available_balance: float,
    ) -> alloc.GoalAllocationResult:
        """Fund a goal with the two-tier policy and apply the outcome.

        Raises:
            KeyError: If ``goal_id`` is unknown
        """
        goal = self.goal_by_id(goal_id)
        if goal is None:
            raise KeyError(goal_id)
        result = alloc.allocate_to_goal(amount, goal, self.state.investments, available_balance)
        if result.success:
            self.dispatch(ApplyAllocation(result))
        return result


# --- Derived views ---

def budget_view(state: FinanceState, reference: date) -> Tuple[List[CategoryBudgetStatus], BudgetSummary]:
    """Per-category statuses and summary for the month containing ``reference``."""
    period = month_bounds(reference)
    statuses = compute_categories_status(state.categories, state.expenses, period)
    summary = compute_budget_summary(state.categories, state.expenses, period)
    return statuses, summary


def goal_view(state: FinanceState, today: date) -> Tuple[List[GoalWithStatus], GoalSummary]:
    statuses = [compute_goal_status(goal, today) for goal in state.goals]
    return statuses, compute_goal_summary(state.goals, today)


def investment_view(state: FinanceState) -> InvestmentSummary:
    return summarize(state.investments)


def transaction_view(state: FinanceState, reference: date) -> TransactionSummary:
    return transaction_summary(state.transactions, reference)


def balance_view(state: FinanceState) -> BalanceSummary:
    return balance_summary(state.transactions, state.investments)


# --- Snapshot serialization ---

def state_to_dict(state: FinanceState) -> Dict[str, Any]:
    return {
        'categories': [c.to_dict() for c in state.categories],
        'expenses': [e.to_dict() for e in state.expenses],
        'goals': [g.to_dict() for g in state.goals],
        'investments': [i.to_dict() for i in state.investments],
        'quotes': {kind: quote.to_dict() for kind, quote in state.quotes.items()},
        'last_quote_update': state.last_quote_update,
        'transactions': [t.to_dict() for t in state.transactions],
    }


def state_from_dict(data: Mapping[str, Any]) -> FinanceState:
    return FinanceState(
        categories=tuple(BudgetCategory.from_dict(c) for c in data.get('categories') or []),
        expenses=tuple(BudgetExpense.from_dict(e) for e in data.get('expenses') or []),
        goals=tuple(Goal.from_dict(g) for g in data.get('goals') or []),
        investments=tuple(Investment.from_dict(i) for i in data.get('investments') or []),
        quotes={kind: Quote.from_dict(q) for kind, q in (data.get('quotes') or {}).items()},
        last_quote_update=data.get('last_quote_update'),
        transactions=tuple(Transaction.from_dict(t) for t in data.get('transactions') or []),
    )
