from datetime import date

import pytest

from capital_dashboard import config
from capital_dashboard.budgets import BudgetCategory, BudgetExpense
from capital_dashboard.goals import Goal
from capital_dashboard.investments import Investment
from capital_dashboard.transactions import Transaction

STAMP = '2024-01-01T00:00:00'


@pytest.fixture
def storage(tmp_path, monkeypatch):
    """Point the database and snapshot cache at a temporary directory."""
    data_dir = tmp_path / 'data'
    monkeypatch.setattr(config, 'DATA_DIR', data_dir)
    monkeypatch.setattr(config, 'CACHE_DIR', data_dir / 'cache')
    monkeypatch.setattr(config, 'DB_PATH', data_dir / 'capital.db')
    return data_dir


def make_category(category_id='c1', name='Alimentação', monthly_limit=1000.0):
    return BudgetCategory(
        id=category_id, name=name, monthly_limit=monthly_limit, created_at=STAMP, updated_at=STAMP,
    )


def make_expense(expense_id, amount, category_id='c1', when=date(2024, 3, 10), transaction_id=None):
    return BudgetExpense(
        id=expense_id,
        category_id=category_id,
        amount=amount,
        description=f'expense {expense_id}',
        date=when,
        transaction_id=transaction_id,
    )


def make_goal(goal_id='g1', target=12000.0, current=3000.0, deadline=date(2024, 4, 1), category='viagem'):
    return Goal(
        id=goal_id,
        name=f'Goal {goal_id}',
        category=category,
        target_amount=target,
        current_amount=current,
        deadline=deadline,
        created_at=STAMP,
        updated_at=STAMP,
    )


def make_investment(investment_id='i1', kind='bitcoin', quantity=1.0, price=100.0, current_value=None,
                    profit_loss_percent=None, allocations=()):
    return Investment(
        id=investment_id,
        type=kind,
        name=f'Lot {investment_id}',
        quantity=quantity,
        purchase_price=price,
        purchase_date=date(2024, 1, 15),
        created_at=STAMP,
        updated_at=STAMP,
        current_value=current_value,
        profit_loss_percent=profit_loss_percent,
        goal_allocations=tuple(allocations),
    )


def make_transaction(transaction_id, kind, amount, category='outros-despesas', when=date(2024, 3, 10)):
    return Transaction(
        id=transaction_id,
        type=kind,
        category=category,
        description=f'tx {transaction_id}',
        amount=amount,
        date=when,
        created_at=STAMP,
        updated_at=STAMP,
    )
