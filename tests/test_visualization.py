from datetime import date, timedelta

import plotly.graph_objects as go

from capital_dashboard.budgets import compute_categories_status
from capital_dashboard.goals import compute_goal_status
from capital_dashboard.visualization import (
    STATUS_COLORS,
    create_budget_status_pie,
    create_budget_usage_chart,
    create_goal_progress_chart,
    create_investment_allocation_chart,
)

from conftest import make_category, make_expense, make_goal, make_investment


def test_empty_inputs_give_placeholder_figures():
    for fig in (
        create_budget_usage_chart([]),
        create_budget_status_pie([]),
        create_goal_progress_chart([]),
        create_investment_allocation_chart([]),
    ):
        assert isinstance(fig, go.Figure)
        assert fig.layout.title.text == "No data to display"


def test_budget_usage_bars_are_coloured_by_status():
    statuses = compute_categories_status(
        [make_category('a', 'A', 100.0), make_category('b', 'B', 100.0), make_category('c', 'C', 100.0)],
        [make_expense('e1', 10.0, 'a'), make_expense('e2', 85.0, 'b'), make_expense('e3', 120.0, 'c')],
    )
    fig = create_budget_usage_chart(statuses)

    bar = fig.data[0]
    assert list(bar.y) == ['A', 'B', 'C']
    assert list(bar.marker.color) == [STATUS_COLORS['ok'], STATUS_COLORS['warning'], STATUS_COLORS['exceeded']]


def test_status_pie_counts_categories():
    statuses = compute_categories_status(
        [make_category('a', 'A', 100.0), make_category('b', 'B', 0.0)], [make_expense('e1', 90.0, 'a')]
    )
    fig = create_budget_status_pie(statuses)
    assert sorted(fig.data[0].values) == [1, 1]


def test_goal_progress_chart_stacks_saved_and_remaining():
    today = date(2024, 1, 1)
    goals = [compute_goal_status(make_goal(target=1000.0, current=250.0, deadline=today + timedelta(days=60)), today)]
    fig = create_goal_progress_chart(goals)
    assert {trace.name for trace in fig.data} == {'Saved', 'Remaining'}


def test_investment_chart_groups_by_type():
    fig = create_investment_allocation_chart([
        make_investment('i1', 'bitcoin', current_value=100.0),
        make_investment('i2', 'bitcoin', current_value=50.0),
        make_investment('i3', 'cdb', quantity=10.0, price=2.0),
    ])
    pie = fig.data[0]
    values = dict(zip(pie.labels, pie.values))
    assert values == {'Bitcoin': 150.0, 'CDB': 20.0}
