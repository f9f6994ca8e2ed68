"""One user's working session: validation, state, persistence and quotes.

``FinanceSession`` is what the UI and scripts talk to.  It validates raw
input, turns it into actions for the :class:`~capital_dashboard.state.Store`
and, after every transition, writes the change to SQLite and refreshes
the local JSON snapshot.  When the database cannot be reached the
session keeps working from the snapshot.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

from . import db, persistent_cache
from .allocation import GoalAllocationResult
from .budgets import BudgetCategory, BudgetExpense, BudgetSummary, CategoryBudgetStatus
from .config import QUOTE_REFRESH_SECONDS
from .goals import Goal, GoalProjection, GoalSummary, GoalWithStatus, project_goal
from .investments import Investment, InvestmentSummary, Quote, investment_value, revalue, total_allocated
from .quotes import QuoteService
from .state import (
    AddCategory,
    AddExpense,
    AddGoal,
    AddInvestment,
    AddTransaction,
    ApplyAllocation,
    DeleteCategory,
    DeleteExpense,
    DeleteExpensesByTransaction,
    DeleteGoal,
    DeleteInvestment,
    DeleteTransaction,
    FinanceState,
    LoadState,
    RemoveGoalAllocation,
    SeedDefaultCategories,
    SetQuotes,
    Store,
    UpdateCategory,
    UpdateExpense,
    UpdateGoal,
    UpdateGoalAmount,
    UpdateInvestment,
    UpdateTransaction,
    balance_view,
    budget_view,
    goal_view,
    investment_view,
    new_id,
    transaction_view,
)
from .transactions import (
    SOURCE_MANUAL,
    TRANSACTION_SOURCES,
    TYPE_EXPENSE,
    BalanceSummary,
    Transaction,
    TransactionSummary,
)
from .validation import (
    ValidationError,
    parse_amount,
    require_amount,
    require_date,
    require_goal_category,
    require_investment_type,
    require_text,
    require_transaction_type,
)

logger = logging.getLogger(__name__)

_STORAGE_ERRORS = (sqlite3.Error, OSError)


def _now_iso() -> str:
    return datetime.utcnow().isoformat()


class FinanceSession:
    """Validated operations on one user's budget, goals and investments."""

    def __init__(
        self,
        user_id: str,
        quote_service: Optional[QuoteService] = None,
        cache_dir: Optional[Path] = None,
        use_database: bool = True,
        refresh_seconds: float = QUOTE_REFRESH_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.user_id = require_text(user_id, "User id")
        self.quote_service = quote_service or QuoteService()
        self.cache_dir = cache_dir
        self.use_database = use_database
        self.database_available = use_database
        self.refresh_seconds = refresh_seconds
        self.clock = clock
        self.last_quote_refresh: Optional[float] = None
        self.store = Store(on_change=self._persist)

    @property
    def state(self) -> FinanceState:
        return self.store.state

    # --- Loading and persistence ---

    def load(self) -> FinanceState:
        """Load the user's data, from the database or else the local snapshot."""
        state: Optional[FinanceState] = None
        if self.use_database:
            try:
                state = db.load_state(self.user_id)
                self.database_available = True
            except _STORAGE_ERRORS as e:
                logger.warning("Database unavailable, loading local snapshot: %s", e)
                self.database_available = False
        if state is None:
            state = persistent_cache.load_snapshot(self.user_id, self.cache_dir)
        return self.store.dispatch(LoadState(state))

    def _persist(self, state: FinanceState, action: Any) -> None:
        if self.use_database and not isinstance(action, LoadState):
            try:
                self._write_through(state, action)
                self.database_available = True
            except _STORAGE_ERRORS as e:
                logger.warning(
                    "Could not save %s to the database, keeping local snapshot: %s",
                    type(action).__name__, e,
                )
                self.database_available = False
        try:
            persistent_cache.save_snapshot(self.user_id, state, self.cache_dir)
        except OSError as e:
            logger.warning("Could not write local snapshot: %s", e)

    def _write_through(self, state: FinanceState, action: Any) -> None:
        user = self.user_id
        if isinstance(action, AddTransaction):
            db.save_transaction(user, action.transaction)
        elif isinstance(action, UpdateTransaction):
            db.save_transaction(user, action.transaction)
            db.delete_expenses_by_transaction(user, action.transaction.id)
            for expense in state.expenses:
                if expense.transaction_id == action.transaction.id:
                    db.save_expense(user, expense)
        elif isinstance(action, DeleteTransaction):
            db.delete_transaction(user, action.transaction_id)
        elif isinstance(action, (AddCategory, UpdateCategory)):
            db.save_category(user, action.category)
        elif isinstance(action, DeleteCategory):
            db.delete_category(user, action.category_id)
        elif isinstance(action, SeedDefaultCategories):
            db.seed_default_categories(user, state.categories)
        elif isinstance(action, (AddExpense, UpdateExpense)):
            db.save_expense(user, action.expense)
        elif isinstance(action, DeleteExpense):
            db.delete_expense(user, action.expense_id)
        elif isinstance(action, DeleteExpensesByTransaction):
            db.delete_expenses_by_transaction(user, action.transaction_id)
        elif isinstance(action, (AddGoal, UpdateGoal)):
            db.save_goal(user, action.goal)
        elif isinstance(action, UpdateGoalAmount):
            goal = self.store.goal_by_id(action.goal_id)
            if goal is not None:
                db.save_goal(user, goal)
        elif isinstance(action, DeleteGoal):
            db.delete_goal(user, action.goal_id)
        elif isinstance(action, (AddInvestment, UpdateInvestment)):
            db.save_investment(user, action.investment)
        elif isinstance(action, DeleteInvestment):
            db.delete_investment(user, action.investment_id)
        elif isinstance(action, ApplyAllocation):
            db.save_goal(user, action.result.goal)
            for investment in state.investments:
                db.save_investment(user, investment)
        elif isinstance(action, (SetQuotes, RemoveGoalAllocation)):
            for investment in state.investments:
                db.save_investment(user, investment)

    # --- Transactions ---

    def add_transaction(
        self,
        transaction_type: Any,
        category: Any,
        amount: Any,
        description: Any,
        transaction_date: Any,
        source: str = SOURCE_MANUAL,
        tags: Optional[List[str]] = None,
        budget_category_id: Optional[str] = None,
    ) -> Transaction:
        """Record income or an expense, optionally charging it to a budget category."""
        if source not in TRANSACTION_SOURCES:
            raise ValidationError(f"Unknown transaction source '{source}'")
        stamp = _now_iso()
        transaction = Transaction(
            id=new_id(),
            type=require_transaction_type(transaction_type),
            category=require_text(category, "Category"),
            description=require_text(description, "Description"),
            amount=require_amount(amount, "Amount"),
            date=require_date(transaction_date, "Date"),
            created_at=stamp,
            updated_at=stamp,
            source=source,
            tags=tuple(tag.strip() for tag in tags or () if tag.strip()),
        )
        if budget_category_id:
            self._category(budget_category_id)
            if transaction.type != TYPE_EXPENSE:
                raise ValidationError("Only expense transactions can be charged to a budget category")
        self.store.dispatch(AddTransaction(transaction))
        if budget_category_id:
            self.add_expense_from_transaction(transaction.id, budget_category_id)
        return transaction

    def update_transaction(self, transaction_id: str, transaction_type: Any = None, category: Any = None,
                           amount: Any = None, description: Any = None,
                           transaction_date: Any = None) -> Transaction:
        transaction = self._transaction(transaction_id)
        changes = {'updated_at': _now_iso()}
        if transaction_type is not None:
            changes['type'] = require_transaction_type(transaction_type)
        if category is not None:
            changes['category'] = require_text(category, "Category")
        if amount is not None:
            changes['amount'] = require_amount(amount, "Amount")
        if description is not None:
            changes['description'] = require_text(description, "Description")
        if transaction_date is not None:
            changes['date'] = require_date(transaction_date, "Date")
        updated = replace(transaction, **changes)
        self.store.dispatch(UpdateTransaction(updated))
        return updated

    def delete_transaction(self, transaction_id: str) -> None:
        self._transaction(transaction_id)
        self.store.dispatch(DeleteTransaction(transaction_id))

    def transactions_summary(self, reference: Optional[date] = None) -> TransactionSummary:
        return transaction_view(self.state, reference or date.today())

    def balance(self) -> BalanceSummary:
        return balance_view(self.state)

    # --- Budget ---

    def add_category(
        self,
        name: Any,
        monthly_limit: Any,
        description: Optional[str] = None,
        icon: Optional[str] = None,
        color: Optional[str] = None,
    ) -> BudgetCategory:
        stamp = _now_iso()
        category = BudgetCategory(
            id=new_id(),
            name=require_text(name, "Category name"),
            monthly_limit=require_amount(monthly_limit, "Monthly limit", allow_zero=True),
            created_at=stamp,
            updated_at=stamp,
            description=description or None,
            icon=icon or None,
            color=color or None,
        )
        self.store.dispatch(AddCategory(category))
        return category

    def update_category(self, category_id: str, name: Any = None, monthly_limit: Any = None,
                        description: Optional[str] = None) -> BudgetCategory:
        category = self._category(category_id)
        changes = {'updated_at': _now_iso()}
        if name is not None:
            changes['name'] = require_text(name, "Category name")
        if monthly_limit is not None:
            changes['monthly_limit'] = require_amount(monthly_limit, "Monthly limit", allow_zero=True)
        if description is not None:
            changes['description'] = description or None
        updated = replace(category, **changes)
        self.store.dispatch(UpdateCategory(updated))
        return updated

    def delete_category(self, category_id: str) -> None:
        self._category(category_id)
        self.store.dispatch(DeleteCategory(category_id))

    def initialize_default_categories(self) -> None:
        self.store.dispatch(SeedDefaultCategories(_now_iso()))

    def add_expense(
        self,
        category_id: str,
        amount: Any,
        description: Any,
        expense_date: Any,
        transaction_id: Optional[str] = None,
    ) -> BudgetExpense:
        self._category(category_id)
        expense = BudgetExpense(
            id=new_id(),
            category_id=category_id,
            amount=require_amount(amount, "Amount"),
            description=str(description or '').strip(),
            date=require_date(expense_date, "Date"),
            transaction_id=transaction_id,
        )
        self.store.dispatch(AddExpense(expense))
        return expense

    def add_expense_from_transaction(self, transaction_id: str, category_id: str) -> BudgetExpense:
        """Charge an expense transaction to a category, replacing any earlier charge of it."""
        transaction = self._transaction(transaction_id)
        if transaction.type != TYPE_EXPENSE:
            raise ValidationError("Only expense transactions can be charged to a budget category")
        self._category(category_id)
        if any(e.transaction_id == transaction.id for e in self.state.expenses):
            self.store.dispatch(DeleteExpensesByTransaction(transaction.id))
        return self.add_expense(
            category_id, transaction.amount, transaction.description, transaction.date, transaction.id,
        )

    def update_expense(self, expense_id: str, amount: Any = None, description: Any = None,
                       expense_date: Any = None, category_id: Optional[str] = None) -> BudgetExpense:
        expense = next((e for e in self.state.expenses if e.id == expense_id), None)
        if expense is None:
            raise ValidationError(f"Expense '{expense_id}' not found")
        changes = {}
        if amount is not None:
            changes['amount'] = require_amount(amount, "Amount")
        if description is not None:
            changes['description'] = str(description).strip()
        if expense_date is not None:
            changes['date'] = require_date(expense_date, "Date")
        if category_id is not None:
            changes['category_id'] = self._category(category_id).id
        updated = replace(expense, **changes)
        self.store.dispatch(UpdateExpense(updated))
        return updated

    def delete_expense(self, expense_id: str) -> None:
        self.store.dispatch(DeleteExpense(expense_id))

    def remove_expenses_by_transaction(self, transaction_id: str) -> None:
        self.store.dispatch(DeleteExpensesByTransaction(transaction_id))

    def budget(self, reference: Optional[date] = None) -> Tuple[List[CategoryBudgetStatus], BudgetSummary]:
        return budget_view(self.state, reference or date.today())

    # --- Goals ---

    def add_goal(self, name: Any, category: Any, target_amount: Any, deadline: Any,
                 description: Optional[str] = None) -> Goal:
        stamp = _now_iso()
        goal = Goal(
            id=new_id(),
            name=require_text(name, "Goal name"),
            category=require_goal_category(category),
            target_amount=require_amount(target_amount, "Target amount"),
            current_amount=0.0,
            deadline=require_date(deadline, "Deadline"),
            created_at=stamp,
            updated_at=stamp,
            description=description or None,
        )
        self.store.dispatch(AddGoal(goal))
        return goal

    def update_goal(self, goal_id: str, name: Any = None, category: Any = None, target_amount: Any = None,
                    deadline: Any = None, description: Optional[str] = None) -> Goal:
        goal = self._goal(goal_id)
        changes = {'updated_at': _now_iso()}
        if name is not None:
            changes['name'] = require_text(name, "Goal name")
        if category is not None:
            changes['category'] = require_goal_category(category)
        if target_amount is not None:
            changes['target_amount'] = require_amount(target_amount, "Target amount")
        if deadline is not None:
            changes['deadline'] = require_date(deadline, "Deadline")
        if description is not None:
            changes['description'] = description or None
        updated = replace(goal, **changes)
        self.store.dispatch(UpdateGoal(updated))
        return updated

    def update_goal_amount(self, goal_id: str, new_amount: Any) -> None:
        self._goal(goal_id)
        amount = require_amount(new_amount, "Current amount", allow_zero=True)
        self.store.dispatch(UpdateGoalAmount(goal_id, amount, _now_iso()))

    def contribute_to_goal(self, goal_id: str, amount: Any) -> None:
        """Add a direct contribution to a goal's saved amount."""
        goal = self._goal(goal_id)
        contribution = require_amount(amount, "Contribution")
        self.store.dispatch(UpdateGoalAmount(goal_id, goal.current_amount + contribution, _now_iso()))

    def delete_goal(self, goal_id: str) -> None:
        self._goal(goal_id)
        self.store.dispatch(DeleteGoal(goal_id))

    def allocate_to_goal(self, goal_id: str, amount: Any, available_balance: Any = None) -> GoalAllocationResult:
        """Fund a goal from investments first, else from the cash balance.

        The balance defaults to the ledger's available balance: income
        minus expenses plus the portfolio, less what goals already hold.
        """
        self._goal(goal_id)
        value = require_amount(amount, "Amount")
        if available_balance is None:
            balance = self.balance().available_balance
        else:
            balance = parse_balance(available_balance)
        result = self.store.allocate_to_goal(goal_id, value, balance)
        logger.info("Allocation of %.2f to goal %s: %s", value, goal_id, result.outcome.value)
        return result

    def remove_goal_allocation(self, goal_id: str) -> None:
        self.store.dispatch(RemoveGoalAllocation(goal_id))

    def goals(self, today: Optional[date] = None) -> Tuple[List[GoalWithStatus], GoalSummary]:
        return goal_view(self.state, today or date.today())

    def goal_projection(self, goal_id: str, monthly_income: Any = None, monthly_expenses: Any = None,
                        today: Optional[date] = None) -> GoalProjection:
        """Project a goal, defaulting income and expenses to this month's ledger totals."""
        goal = self._goal(goal_id)
        today = today or date.today()
        month = self.transactions_summary(today)
        income = (
            month.total_income if monthly_income is None
            else require_amount(monthly_income, "Monthly income", allow_zero=True)
        )
        expenses = (
            month.total_expenses if monthly_expenses is None
            else require_amount(monthly_expenses, "Monthly expenses", allow_zero=True)
        )
        return project_goal(goal, income, expenses, today)

    # --- Investments ---

    def add_investment(self, investment_type: Any, name: Any, quantity: Any, purchase_price: Any,
                       purchase_date: Any) -> Investment:
        stamp = _now_iso()
        kind = require_investment_type(investment_type)
        investment = Investment(
            id=new_id(),
            type=kind,
            name=str(name or '').strip() or kind,
            quantity=require_amount(quantity, "Quantity"),
            purchase_price=require_amount(purchase_price, "Purchase price"),
            purchase_date=require_date(purchase_date, "Purchase date"),
            created_at=stamp,
            updated_at=stamp,
        )
        self.store.dispatch(AddInvestment(investment))
        return investment

    def update_investment(self, investment_id: str, name: Any = None, quantity: Any = None,
                          purchase_price: Any = None, purchase_date: Any = None) -> Investment:
        investment = self.store.investment_by_id(investment_id)
        if investment is None:
            raise ValidationError(f"Investment '{investment_id}' not found")
        changes = {'updated_at': _now_iso()}
        if name is not None:
            changes['name'] = require_text(name, "Investment name")
        if quantity is not None:
            changes['quantity'] = require_amount(quantity, "Quantity")
        if purchase_price is not None:
            changes['purchase_price'] = require_amount(purchase_price, "Purchase price")
        if purchase_date is not None:
            changes['purchase_date'] = require_date(purchase_date, "Purchase date")
        updated = replace(investment, **changes)
        if updated.current_price is None:
            updated = replace(updated, current_value=None, profit_loss=None, profit_loss_percent=None)
        else:
            # Value and profit follow the new quantity and cost at the last known price
            quote = Quote(updated.type, updated.current_price, changes['updated_at'])
            updated = revalue([updated], {updated.type: quote}, now=changes['updated_at'])[0]

        allocated = total_allocated(updated)
        if allocated > investment_value(updated):
            logger.warning(
                "Investment %s is now worth %.2f but %.2f of it is allocated to goals",
                updated.id, investment_value(updated), allocated,
            )
        self.store.dispatch(UpdateInvestment(updated))
        return updated

    def delete_investment(self, investment_id: str) -> None:
        self.store.dispatch(DeleteInvestment(investment_id))

    def quotes_due(self, now: Optional[float] = None) -> bool:
        if not self.state.investments:
            return False
        if self.last_quote_refresh is None:
            return True
        current = self.clock() if now is None else now
        return current - self.last_quote_refresh >= self.refresh_seconds

    def refresh_quotes(self, force: bool = False) -> bool:
        """Fetch quotes for every held type and revalue the portfolio.

        Returns:
            True if a refresh happened
        """
        if not force and not self.quotes_due():
            return False
        kinds = list(dict.fromkeys(investment.type for investment in self.state.investments))
        if not kinds:
            return False
        quotes = self.quote_service.get_multiple_quotes(kinds)
        self.store.dispatch(SetQuotes(quotes, _now_iso()))
        self.last_quote_refresh = self.clock()
        return True

    def portfolio(self) -> InvestmentSummary:
        return investment_view(self.state)

    # --- Lookups ---

    def _category(self, category_id: str) -> BudgetCategory:
        category = self.store.category_by_id(category_id)
        if category is None:
            raise ValidationError(f"Category '{category_id}' not found")
        return category

    def _transaction(self, transaction_id: str) -> Transaction:
        transaction = self.store.transaction_by_id(transaction_id)
        if transaction is None:
            raise ValidationError(f"Transaction '{transaction_id}' not found")
        return transaction

    def _goal(self, goal_id: str) -> Goal:
        goal = self.store.goal_by_id(goal_id)
        if goal is None:
            raise ValidationError(f"Goal '{goal_id}' not found")
        return goal


def parse_balance(value: Any) -> float:
    """Cash balance may be zero or negative; only its numeric form is checked."""
    balance = parse_amount(value)
    if balance is None:
        raise ValidationError("Available balance must be a number")
    return balance
