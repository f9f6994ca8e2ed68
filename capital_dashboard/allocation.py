"""Earmarking money for savings goals.

Funds for a goal are drawn from investment lots first.  The distributor
walks the lots in their stored order and fills each lot's free value
before moving to the next one (a water-fill in list order, not
proportional and not best-fit).  When the lots cannot cover the full
amount, nothing is allocated from them and the goal may instead be
funded from the cash balance.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional, Sequence

from .goals import Goal
from .investments import GoalAllocation, Investment, available_value, total_available

logger = logging.getLogger(__name__)


class AllocationOutcome(enum.Enum):
    ALLOCATED_FROM_INVESTMENTS = 'allocated_from_investments'
    ALLOCATED_FROM_BALANCE = 'allocated_from_balance'
    INSUFFICIENT_FUNDS = 'insufficient_funds'


@dataclass(frozen=True)
class AllocationResult:
    success: bool
    investments: List[Investment]


@dataclass(frozen=True)
class GoalAllocationResult:
    outcome: AllocationOutcome
    amount: float
    goal: Goal
    investments: List[Investment]

    @property
    def success(self) -> bool:
        return self.outcome is not AllocationOutcome.INSUFFICIENT_FUNDS


def allocate(
    amount: float,
    goal_id: str,
    goal_name: str,
    investments: Sequence[Investment],
    allocated_at: Optional[str] = None,
) -> AllocationResult:
    """Distribute ``amount`` across lots in list order.

    Args:
        amount: Amount to earmark, must be positive
        goal_id: Goal receiving the funds
        goal_name: Goal name stored on each allocation record
        investments: Lots to draw from, in the order they are consumed
        allocated_at: Timestamp for the new records

    Returns:
        AllocationResult. On failure (non-positive amount, no lots, or
        amount above the total available value) the input lots are
        returned untouched. On success each lot drawn from gets exactly
        one new GoalAllocation, lots with no free value are skipped,
        and the new records add up to ``amount``.

    Example:
        >>> result = allocate(120, 'g1', 'G', [lot_100_free, lot_50_free])
        >>> [a.allocated_amount for inv in result.investments for a in inv.goal_allocations]
        [100.0, 20.0]
    """
    lots = list(investments)
    if amount <= 0 or not lots:
        return AllocationResult(success=False, investments=lots)
    if amount > total_available(lots):
        return AllocationResult(success=False, investments=lots)

    stamp = allocated_at or datetime.utcnow().isoformat()
    remaining = amount
    updated: List[Investment] = []
    for investment in lots:
        free = available_value(investment)
        if remaining <= 0 or free <= 0:
            updated.append(investment)
            continue

        share = min(remaining, free)
        remaining -= share
        record = GoalAllocation(
            goal_id=goal_id,
            goal_name=goal_name,
            allocated_amount=share,
            allocated_at=stamp,
        )
        updated.append(replace(
            investment,
            goal_allocations=investment.goal_allocations + (record,),
            updated_at=stamp,
        ))

    return AllocationResult(success=True, investments=updated)


def remove_goal_allocation(goal_id: str, investments: Sequence[Investment]) -> List[Investment]:
    """Drop every allocation record of ``goal_id`` from every lot.

    The goal's own ``current_amount`` is left as is; adjusting it is up
    to the caller.
    """
    cleaned: List[Investment] = []
    for investment in investments:
        kept = tuple(a for a in investment.goal_allocations if a.goal_id != goal_id)
        if len(kept) == len(investment.goal_allocations):
            cleaned.append(investment)
        else:
            cleaned.append(replace(investment, goal_allocations=kept))
    return cleaned


def allocate_to_goal(
    amount: float,
    goal: Goal,
    investments: Sequence[Investment],
    available_balance: float,
    allocated_at: Optional[str] = None,
) -> GoalAllocationResult:
    """Fund a goal from investments, falling back to the cash balance.

    Returns:
        GoalAllocationResult tagged with how the goal was funded. On
        either success the returned goal has ``amount`` added to its
        current amount; on INSUFFICIENT_FUNDS goal and lots are returned
        unchanged.
    """
    lots = list(investments)
    if amount <= 0:
        return GoalAllocationResult(AllocationOutcome.INSUFFICIENT_FUNDS, amount, goal, lots)

    stamp = allocated_at or datetime.utcnow().isoformat()
    result = allocate(amount, goal.id, goal.name, lots, allocated_at=stamp)
    if result.success:
        outcome = AllocationOutcome.ALLOCATED_FROM_INVESTMENTS
        lots = result.investments
    elif amount <= available_balance:
        outcome = AllocationOutcome.ALLOCATED_FROM_BALANCE
    else:
        logger.info(
            "Cannot fund goal %s with %.2f: balance %.2f is not enough",
            goal.id, amount, available_balance,
        )
        return GoalAllocationResult(AllocationOutcome.INSUFFICIENT_FUNDS, amount, goal, lots)

    funded = replace(goal, current_amount=goal.current_amount + amount, updated_at=stamp)
    return GoalAllocationResult(outcome, amount, funded, lots)
