from capital_dashboard.allocation import (
    AllocationOutcome,
    allocate,
    allocate_to_goal,
    remove_goal_allocation,
)
from capital_dashboard.investments import GoalAllocation, available_value, total_available

from conftest import make_goal, make_investment

NOW = '2024-03-01T12:00:00'


def _lots():
    return [
        make_investment('i1', current_value=100.0),
        make_investment('i2', current_value=50.0),
    ]


def test_water_fill_in_list_order():
    result = allocate(120.0, 'g1', 'G', _lots(), allocated_at=NOW)

    assert result.success
    first, second = result.investments
    assert [a.allocated_amount for a in first.goal_allocations] == [100.0]
    assert [a.allocated_amount for a in second.goal_allocations] == [20.0]
    assert available_value(first) == 0.0
    assert available_value(second) == 30.0
    assert first.goal_allocations[0] == GoalAllocation('g1', 'G', 100.0, NOW)


def test_order_of_lots_decides_who_pays():
    result = allocate(40.0, 'g1', 'G', list(reversed(_lots())), allocated_at=NOW)
    small, big = result.investments
    assert [a.allocated_amount for a in small.goal_allocations] == [40.0]
    assert big.goal_allocations == ()


def test_amount_above_available_fails_without_changes():
    lots = _lots()
    result = allocate(200.0, 'g1', 'G', lots)

    assert not result.success
    assert result.investments == lots
    assert all(not inv.goal_allocations for inv in result.investments)


def test_non_positive_amount_or_no_lots_fails():
    assert not allocate(0.0, 'g1', 'G', _lots()).success
    assert not allocate(-5.0, 'g1', 'G', _lots()).success
    assert not allocate(10.0, 'g1', 'G', []).success


def test_exhausted_lots_are_skipped():
    lots = [
        make_investment('full', current_value=30.0, allocations=[GoalAllocation('g0', 'Old', 30.0, NOW)]),
        make_investment('free', current_value=50.0),
    ]
    result = allocate(50.0, 'g1', 'G', lots, allocated_at=NOW)

    assert result.success
    full, free = result.investments
    assert len(full.goal_allocations) == 1
    assert [a.allocated_amount for a in free.goal_allocations] == [50.0]


def test_lot_can_hold_several_goals():
    first = allocate(30.0, 'g1', 'A', _lots(), allocated_at=NOW)
    second = allocate(30.0, 'g2', 'B', first.investments, allocated_at=NOW)

    lot = second.investments[0]
    assert [a.goal_id for a in lot.goal_allocations] == ['g1', 'g2']
    assert available_value(lot) == 40.0


def test_remove_allocation_frees_value():
    allocated = allocate(120.0, 'g1', 'G', _lots(), allocated_at=NOW).investments
    allocated = allocate(10.0, 'g2', 'H', allocated, allocated_at=NOW).investments

    cleaned = remove_goal_allocation('g1', allocated)
    assert total_available(cleaned) == 140.0
    assert [a.goal_id for inv in cleaned for a in inv.goal_allocations] == ['g2']


def test_two_tier_prefers_investments():
    goal = make_goal(target=1000.0, current=100.0)
    result = allocate_to_goal(120.0, goal, _lots(), available_balance=1000.0, allocated_at=NOW)

    assert result.outcome is AllocationOutcome.ALLOCATED_FROM_INVESTMENTS
    assert result.success
    assert result.goal.current_amount == 220.0
    assert total_available(result.investments) == 30.0


def test_two_tier_falls_back_to_balance():
    goal = make_goal(current=0.0)
    lots = _lots()
    result = allocate_to_goal(200.0, goal, lots, available_balance=500.0, allocated_at=NOW)

    assert result.outcome is AllocationOutcome.ALLOCATED_FROM_BALANCE
    assert result.goal.current_amount == 200.0
    assert result.investments == lots


def test_two_tier_insufficient_funds():
    goal = make_goal(current=10.0)
    lots = _lots()
    result = allocate_to_goal(200.0, goal, lots, available_balance=100.0)

    assert result.outcome is AllocationOutcome.INSUFFICIENT_FUNDS
    assert not result.success
    assert result.goal == goal
    assert result.investments == lots
