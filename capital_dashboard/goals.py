"""Savings goals and their lifecycle status."""

from __future__ import annotations

import calendar
import math
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .config import DAYS_PER_MONTH

STATUS_IN_PROGRESS = 'em_andamento'
STATUS_COMPLETED = 'concluido'
STATUS_OVERDUE = 'atrasado'

GOAL_CATEGORIES: Dict[str, Dict[str, str]] = {
    'viagem': {'name': 'Viagem', 'description': 'Viagens e turismo', 'icon': '✈️', 'color': '#3B82F6'},
    'emergencia': {'name': 'Emergência', 'description': 'Reserva de emergência', 'icon': '🆘', 'color': '#EF4444'},
    'carro': {'name': 'Carro', 'description': 'Veículo próprio', 'icon': '🚗', 'color': '#8B5CF6'},
    'imovel': {'name': 'Imóvel', 'description': 'Casa própria ou investimento', 'icon': '🏠', 'color': '#10B981'},
    'educacao': {'name': 'Educação', 'description': 'Cursos e formação', 'icon': '📚', 'color': '#F59E0B'},
    'saude': {'name': 'Saúde', 'description': 'Tratamentos e bem-estar', 'icon': '⚕️', 'color': '#EC4899'},
    'aposentadoria': {'name': 'Aposentadoria', 'description': 'Reserva para o futuro', 'icon': '🏖️', 'color': '#6366F1'},
    'wedding': {'name': 'Casamento', 'description': 'Cerimônia e lua de mel', 'icon': '💒', 'color': '#F97316'},
    'tecnologia': {'name': 'Tecnologia', 'description': 'Gadgets e equipamentos', 'icon': '💻', 'color': '#06B6D4'},
    'outros': {'name': 'Outros', 'description': 'Outros objetivos', 'icon': '🎯', 'color': '#64748B'},
}


def goal_category(category_id: str) -> Optional[Dict[str, str]]:
    """Look up display metadata for a goal category id."""
    return GOAL_CATEGORIES.get(category_id)


@dataclass(frozen=True)
class Goal:
    """A savings target with a deadline."""
    id: str
    name: str
    category: str
    target_amount: float
    current_amount: float
    deadline: date
    created_at: str
    updated_at: str
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['deadline'] = self.deadline.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Goal':
        deadline = data['deadline']
        if not isinstance(deadline, date):
            deadline = date.fromisoformat(str(deadline)[:10])
        category = data.get('category') or 'outros'
        return cls(
            id=str(data['id']),
            name=data['name'],
            category=category if category in GOAL_CATEGORIES else 'outros',
            target_amount=float(data.get('target_amount') or 0.0),
            current_amount=float(data.get('current_amount') or 0.0),
            deadline=deadline,
            created_at=data.get('created_at') or '',
            updated_at=data.get('updated_at') or '',
            description=data.get('description'),
        )


@dataclass(frozen=True)
class GoalWithStatus:
    goal: Goal
    status: str
    progress_percent: float
    remaining_amount: float
    days_remaining: int
    is_overdue: bool
    months_remaining: int
    monthly_savings_needed: float

    @property
    def id(self) -> str:
        return self.goal.id

    @property
    def name(self) -> str:
        return self.goal.name


@dataclass(frozen=True)
class GoalSummary:
    total_goals: int = 0
    completed_goals: int = 0
    in_progress_goals: int = 0
    overdue_goals: int = 0
    total_target_amount: float = 0.0
    total_current_amount: float = 0.0
    average_progress: float = 0.0


def compute_goal_status(goal: Goal, today: Optional[date] = None) -> GoalWithStatus:
    """Derive progress, savings plan and lifecycle status for a goal.

    Args:
        goal: The goal to evaluate
        today: Reference date; defaults to the local current date

    Returns:
        GoalWithStatus. ``progress_percent`` is clamped to 100 but the
        unclamped ratio decides completion, and completion wins over
        being overdue. ``months_remaining`` uses 30-day months and is
        never below 1, so past deadlines still yield a savings figure.

    Example:
        >>> status = compute_goal_status(goal, today)  # 12000 target, 3000 saved, 90 days
        >>> status.months_remaining, status.monthly_savings_needed
        (3, 3000.0)
    """
    today = today or date.today()
    target = goal.target_amount
    raw_progress = (goal.current_amount / target * 100.0) if target > 0 else 0.0
    remaining_amount = max(0.0, target - goal.current_amount)

    # Whole calendar days, so no partial day is left to round up
    days_remaining = (goal.deadline - today).days
    is_overdue = days_remaining < 0
    months_remaining = max(1, math.ceil(days_remaining / DAYS_PER_MONTH))
    monthly_savings_needed = remaining_amount / months_remaining if remaining_amount > 0 else 0.0

    if raw_progress >= 100:
        status = STATUS_COMPLETED
    elif is_overdue:
        status = STATUS_OVERDUE
    else:
        status = STATUS_IN_PROGRESS

    return GoalWithStatus(
        goal=goal,
        status=status,
        progress_percent=min(100.0, raw_progress),
        remaining_amount=remaining_amount,
        days_remaining=days_remaining,
        is_overdue=is_overdue,
        months_remaining=months_remaining,
        monthly_savings_needed=monthly_savings_needed,
    )


def compute_goal_summary(goals: Sequence[Goal], today: Optional[date] = None) -> GoalSummary:
    """Count goals per status and total their amounts."""
    statuses = [compute_goal_status(goal, today) for goal in goals]
    total = len(goals)
    average = sum(s.progress_percent for s in statuses) / total if total else 0.0
    return GoalSummary(
        total_goals=total,
        completed_goals=sum(1 for s in statuses if s.status == STATUS_COMPLETED),
        in_progress_goals=sum(1 for s in statuses if s.status == STATUS_IN_PROGRESS),
        overdue_goals=sum(1 for s in statuses if s.status == STATUS_OVERDUE),
        total_target_amount=float(sum(goal.target_amount for goal in goals)),
        total_current_amount=float(sum(goal.current_amount for goal in goals)),
        average_progress=average,
    )


def goals_by_category(goals: Iterable[Goal], today: Optional[date] = None) -> Dict[str, List[GoalWithStatus]]:
    grouped: Dict[str, List[GoalWithStatus]] = {}
    for goal in goals:
        grouped.setdefault(goal.category, []).append(compute_goal_status(goal, today))
    return grouped


@dataclass(frozen=True)
class GoalProjection:
    """Whether a goal can be met from monthly income minus expenses."""
    is_viable: bool
    monthly_savings: float
    months_remaining: int
    total_projected: float
    months_to_reach_goal: int
    monthly_income_needed: Optional[float] = None
    alternative_date: Optional[date] = None


def months_between(start: date, end: date) -> int:
    """Whole calendar months from ``start`` to ``end``, truncated toward zero."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if months > 0 and end.day < start.day:
        months -= 1
    elif months < 0 and end.day > start.day:
        months += 1
    return months


def add_months(value: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the target month's length."""
    index = value.month - 1 + months
    year, month = value.year + index // 12, index % 12 + 1
    return value.replace(year=year, month=month, day=min(value.day, calendar.monthrange(year, month)[1]))


def project_goal(
    goal: Goal,
    monthly_income: float,
    monthly_expenses: float,
    today: Optional[date] = None,
) -> GoalProjection:
    """Project a goal's balance at its deadline from a steady monthly surplus.

    The current month counts, so there is always at least one month.  A
    goal is viable when the projection reaches the target and the
    surplus is not negative; a viable goal also reports how many months
    it really needs.  A goal that is not viable gets the income that
    would make it viable and, when there is a positive surplus, the date
    it would be reached instead.

    Example:
        >>> p = project_goal(goal, 5000, 4000, date(2024, 1, 1))  # 12000 target, 3000 saved, due 2024-12-31
        >>> p.is_viable, p.months_remaining, p.months_to_reach_goal
        (True, 12, 9)
    """
    today = today or date.today()
    monthly_savings = monthly_income - monthly_expenses
    months_remaining = max(1, months_between(today, goal.deadline) + 1)
    remaining_amount = max(0.0, goal.target_amount - goal.current_amount)
    total_projected = goal.current_amount + monthly_savings * months_remaining
    is_viable = total_projected >= goal.target_amount and monthly_savings >= 0

    months_to_reach = months_remaining
    if is_viable and monthly_savings > 0 and remaining_amount > 0:
        months_to_reach = math.ceil(remaining_amount / monthly_savings)
        if months_to_reach <= months_remaining:
            total_projected = goal.target_amount

    if is_viable:
        return GoalProjection(True, monthly_savings, months_remaining, total_projected, months_to_reach)

    alternative = None
    if monthly_savings > 0:
        alternative = add_months(today, math.ceil(remaining_amount / monthly_savings))
    return GoalProjection(
        is_viable=False,
        monthly_savings=monthly_savings,
        months_remaining=months_remaining,
        total_projected=total_projected,
        months_to_reach_goal=months_to_reach,
        monthly_income_needed=monthly_expenses + remaining_amount / months_remaining,
        alternative_date=alternative,
    )
