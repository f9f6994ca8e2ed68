from dataclasses import replace
from datetime import date

import pytest

from capital_dashboard.allocation import AllocationOutcome
from capital_dashboard.budgets import DEFAULT_BUDGET_CATEGORIES
from capital_dashboard.investments import GoalAllocation, Quote
from capital_dashboard.state import (
    AddCategory,
    AddExpense,
    AddGoal,
    AddInvestment,
    AddTransaction,
    DeleteCategory,
    DeleteExpensesByTransaction,
    DeleteGoal,
    DeleteTransaction,
    FinanceState,
    RemoveGoalAllocation,
    SeedDefaultCategories,
    SetQuotes,
    Store,
    UpdateGoalAmount,
    UpdateTransaction,
    balance_view,
    budget_view,
    goal_view,
    investment_view,
    reduce,
    state_from_dict,
    state_to_dict,
    transaction_view,
)

from conftest import make_category, make_expense, make_goal, make_investment, make_transaction

NOW = '2024-03-01T12:00:00'


def _populated():
    state = FinanceState(
        categories=(make_category('c1'), make_category('c2', name='Lazer')),
        expenses=(
            make_expense('e1', 100.0, 'c1', transaction_id='t1'),
            make_expense('e2', 50.0, 'c2'),
            make_expense('e3', 25.0, 'c1'),
        ),
        goals=(make_goal('g1'), make_goal('g2')),
        investments=(
            make_investment('i1', current_value=100.0, allocations=[
                GoalAllocation('g1', 'Goal g1', 40.0, NOW),
                GoalAllocation('g2', 'Goal g2', 10.0, NOW),
            ]),
        ),
    )
    return state


def test_reduce_returns_new_state():
    state = FinanceState()
    new_state = reduce(state, AddCategory(make_category()))
    assert state.categories == ()
    assert [c.id for c in new_state.categories] == ['c1']


def test_deleting_category_drops_its_expenses():
    state = reduce(_populated(), DeleteCategory('c1'))
    assert [c.id for c in state.categories] == ['c2']
    assert [e.id for e in state.expenses] == ['e2']


def test_deleting_goal_drops_its_allocations():
    state = reduce(_populated(), DeleteGoal('g1'))
    assert [g.id for g in state.goals] == ['g2']
    assert [a.goal_id for a in state.investments[0].goal_allocations] == ['g2']


def test_delete_expenses_by_transaction():
    state = reduce(_populated(), DeleteExpensesByTransaction('t1'))
    assert [e.id for e in state.expenses] == ['e2', 'e3']


def test_seed_default_categories_have_zero_limit():
    state = reduce(_populated(), SeedDefaultCategories(NOW))
    assert [c.name for c in state.categories] == [entry['name'] for entry in DEFAULT_BUDGET_CATEGORIES]
    assert all(c.monthly_limit == 0.0 for c in state.categories)
    assert state.expenses == ()
    assert len({c.id for c in state.categories}) == len(DEFAULT_BUDGET_CATEGORIES)


def test_update_goal_amount():
    state = reduce(_populated(), UpdateGoalAmount('g2', 4500.0, NOW))
    goal = state.goals[1]
    assert goal.current_amount == 4500.0
    assert goal.updated_at == NOW
    assert state.goals[0].current_amount == 3000.0


def test_remove_goal_allocation_leaves_goal_amount():
    state = reduce(_populated(), RemoveGoalAllocation('g2'))
    assert [a.goal_id for a in state.investments[0].goal_allocations] == ['g1']
    assert state.goals[1].current_amount == 3000.0


def test_set_quotes_revalues_lots():
    state = reduce(FinanceState(investments=(make_investment(quantity=2.0, price=100.0),)),
                   SetQuotes({'bitcoin': Quote('BITCOIN', 150.0, NOW)}, NOW))
    assert state.investments[0].current_value == 300.0
    assert state.last_quote_update == NOW
    assert state.quotes['bitcoin'].price == 150.0


def test_unknown_action_raises():
    with pytest.raises(TypeError):
        reduce(FinanceState(), object())


def test_store_calls_hook_after_each_transition():
    calls = []
    store = Store(on_change=lambda state, action: calls.append((state, action)))
    action = AddGoal(make_goal())
    store.dispatch(action)

    assert len(calls) == 1
    assert calls[0][0] is store.state
    assert calls[0][1] is action
    assert store.goal_by_id('g1') is not None


def test_store_allocate_to_goal_applies_success():
    calls = []
    store = Store(on_change=lambda state, action: calls.append(action))
    store.dispatch(AddGoal(make_goal(current=0.0)))
    store.dispatch(AddInvestment(make_investment(current_value=100.0)))

    result = store.allocate_to_goal('g1', 60.0, available_balance=0.0)

    assert result.outcome is AllocationOutcome.ALLOCATED_FROM_INVESTMENTS
    assert store.goal_by_id('g1').current_amount == 60.0
    assert store.investment_by_id('i1').goal_allocations[0].allocated_amount == 60.0
    assert len(calls) == 3


def test_store_allocate_to_goal_failure_keeps_state():
    store = Store(FinanceState(goals=(make_goal(),)))
    before = store.state
    result = store.allocate_to_goal('g1', 60.0, available_balance=10.0)
    assert not result.success
    assert store.state is before


def test_store_allocate_to_unknown_goal():
    with pytest.raises(KeyError):
        Store().allocate_to_goal('missing', 10.0, 100.0)


def test_views_use_the_reference_month():
    state = reduce(_populated(), AddExpense(make_expense('april', 500.0, 'c1', when=date(2024, 4, 2))))
    statuses, summary = budget_view(state, date(2024, 3, 20))
    assert summary.total_spent == 175.0
    assert statuses[0].current_spent == 125.0

    goals, goal_summary = goal_view(state, date(2024, 1, 1))
    assert [g.id for g in goals] == ['g1', 'g2']
    assert goal_summary.total_goals == 2
    assert investment_view(state).current_value == 100.0


def test_snapshot_dict_round_trip():
    state = reduce(_populated(), SetQuotes({'bitcoin': Quote('BITCOIN', 150.0, NOW, 1.5)}, NOW))
    state = reduce(state, AddTransaction(replace(make_transaction('t1', 'despesa', 100.0), tags=('casa',))))
    assert state_from_dict(state_to_dict(state)) == state


def test_deleting_transaction_drops_its_budget_expenses():
    state = reduce(_populated(), AddTransaction(make_transaction('t1', 'despesa', 100.0)))
    state = reduce(state, DeleteTransaction('t1'))
    assert state.transactions == ()
    assert [e.id for e in state.expenses] == ['e2', 'e3']


def test_linked_expenses_follow_edited_transaction():
    tx = make_transaction('t1', 'despesa', 100.0)
    state = reduce(_populated(), AddTransaction(tx))

    edited = replace(tx, amount=140.0, description='Mercado', date=date(2024, 3, 12))
    state = reduce(state, UpdateTransaction(edited))
    linked = [e for e in state.expenses if e.transaction_id == 't1']
    assert [(e.amount, e.description, e.date) for e in linked] == [(140.0, 'Mercado', date(2024, 3, 12))]

    state = reduce(state, UpdateTransaction(replace(edited, type='receita')))
    assert [e.id for e in state.expenses] == ['e2', 'e3']
    assert state.transactions[0].type == 'receita'


def test_ledger_views():
    state = reduce(_populated(), AddTransaction(make_transaction('t9', 'receita', 1000.0, 'salario')))
    assert transaction_view(state, date(2024, 3, 1)).total_income == 1000.0

    balance = balance_view(state)
    assert balance.investments_value == 100.0
    assert balance.allocated_to_goals == 50.0
    assert balance.available_balance == 1050.0
