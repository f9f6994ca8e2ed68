import math

import pytest

from capital_dashboard.investments import (
    GoalAllocation,
    Investment,
    Quote,
    allocations_for_goal,
    available_value,
    investment_value,
    revalue,
    summarize,
    total_allocated_to_goals,
    total_available,
)

from conftest import make_investment

NOW = '2024-03-01T12:00:00'


def _quote(price):
    return Quote(symbol='X', price=price, last_update=NOW)


def test_revalue_with_quote():
    lot = make_investment(quantity=2.0, price=100.0)
    [result] = revalue([lot], {'bitcoin': _quote(130.0)}, now=NOW)

    assert result.current_price == 130.0
    assert result.current_value == 260.0
    assert result.profit_loss == 60.0
    assert result.profit_loss_percent == pytest.approx(30.0)
    assert result.updated_at == NOW


def test_revalue_without_quote_keeps_cached_value():
    lot = make_investment(quantity=2.0, price=100.0, current_value=180.0)
    [result] = revalue([lot], {}, now=NOW)
    assert result.current_value == 180.0
    assert result.current_price == 100.0
    assert result.updated_at == lot.updated_at


def test_revalue_never_quoted_falls_back_to_purchase():
    [result] = revalue([make_investment(quantity=3.0, price=10.0)], {'ethereum': _quote(1.0)}, now=NOW)
    assert result.current_value == 30.0
    assert result.current_price == 10.0
    assert result.profit_loss is None


def test_revalue_zero_cost_lot():
    [result] = revalue([make_investment(quantity=1.0, price=0.0)], {'bitcoin': _quote(50.0)}, now=NOW)
    assert result.profit_loss == 50.0
    assert result.profit_loss_percent == 0.0


def test_revalue_does_not_mutate_input():
    lot = make_investment()
    revalue([lot], {'bitcoin': _quote(500.0)}, now=NOW)
    assert lot.current_value is None


def test_summary_picks_best_and_worst():
    lots = [
        make_investment('a', quantity=1.0, price=100.0, current_value=120.0, profit_loss_percent=20.0),
        make_investment('b', quantity=1.0, price=100.0, current_value=90.0, profit_loss_percent=-10.0),
        make_investment('c', quantity=1.0, price=100.0),
    ]
    summary = summarize(lots)

    assert summary.total_invested == 300.0
    assert summary.current_value == 310.0
    assert summary.total_profit_loss == 10.0
    assert summary.total_profit_loss_percent == pytest.approx(10.0 / 3.0)
    assert summary.best_performer.id == 'a'
    assert summary.worst_performer.id == 'b'


def test_summary_ties_go_to_first_lot():
    lots = [
        make_investment('first', profit_loss_percent=5.0),
        make_investment('second', profit_loss_percent=5.0),
    ]
    summary = summarize(lots)
    assert summary.best_performer.id == 'first'
    assert summary.worst_performer.id == 'first'


def test_summary_without_rated_lots():
    summary = summarize([make_investment()])
    assert summary.best_performer is None
    assert summary.worst_performer is None
    assert summarize([]).total_profit_loss_percent == 0.0


def test_available_value_subtracts_allocations():
    allocations = [
        GoalAllocation('g1', 'Trip', 30.0, NOW),
        GoalAllocation('g2', 'Car', 50.0, NOW),
    ]
    lot = make_investment(current_value=100.0, allocations=allocations)
    over = make_investment('i2', current_value=40.0, allocations=[GoalAllocation('g1', 'Trip', 60.0, NOW)])

    assert investment_value(lot) == 100.0
    assert available_value(lot) == 20.0
    assert available_value(over) == 0.0
    assert total_available([lot, over]) == 20.0
    assert total_allocated_to_goals([lot, over]) == 140.0
    assert [(inv.id, a.allocated_amount) for inv, a in allocations_for_goal([lot, over], 'g1')] == [
        ('i1', 30.0), ('i2', 60.0),
    ]


def test_from_dict_reads_nan_as_missing():
    lot = Investment.from_dict({
        'id': 'i1', 'type': 'cdb', 'name': 'CDB', 'quantity': 10, 'purchase_price': 1.0,
        'purchase_date': '2024-01-15', 'current_value': math.nan, 'profit_loss_percent': None,
        'goal_allocations': [{'goal_id': 'g1', 'goal_name': 'Trip', 'allocated_amount': 3, 'allocated_at': NOW}],
    })
    assert lot.current_value is None
    assert lot.goal_allocations[0].allocated_amount == 3.0
    assert Investment.from_dict(lot.to_dict()) == lot
