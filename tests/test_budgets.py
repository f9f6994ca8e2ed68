from datetime import date

import pytest

from capital_dashboard.budgets import (
    STATUS_EXCEEDED,
    STATUS_OK,
    STATUS_WARNING,
    budget_alerts,
    budget_status_frame,
    compute_budget_summary,
    compute_categories_status,
    compute_category_status,
    expenses_in_period,
    month_bounds,
    status_for_percent,
)

from conftest import make_category, make_expense


def test_category_status_at_warning_threshold():
    category = make_category(monthly_limit=1000.0)
    status = compute_category_status(category, [make_expense('e1', 300.0), make_expense('e2', 500.0)])

    assert status.current_spent == 800.0
    assert status.percent_used == pytest.approx(80.0)
    assert status.status == STATUS_WARNING
    assert status.remaining_budget == 200.0
    assert [e.id for e in status.expenses] == ['e1', 'e2']


def test_spend_equal_to_limit_is_exceeded():
    status = compute_category_status(make_category(monthly_limit=500.0), [make_expense('e1', 500.0)])
    assert status.status == STATUS_EXCEEDED
    assert status.remaining_budget == 0.0


def test_overspend_gives_negative_remaining():
    status = compute_category_status(make_category(monthly_limit=100.0), [make_expense('e1', 150.0)])
    assert status.remaining_budget == -50.0
    assert status.percent_used == pytest.approx(150.0)


def test_zero_limit_is_always_ok():
    status = compute_category_status(make_category(monthly_limit=0.0), [make_expense('e1', 9999.0)])
    assert status.percent_used == 0.0
    assert status.status == STATUS_OK
    assert status.current_spent == 9999.0


def test_empty_expenses_is_ok():
    status = compute_category_status(make_category(), [])
    assert status.current_spent == 0.0
    assert status.status == STATUS_OK


def test_other_categories_are_ignored():
    status = compute_category_status(
        make_category('c1'), [make_expense('e1', 100.0, 'c1'), make_expense('e2', 400.0, 'c2')]
    )
    assert status.current_spent == 100.0


@pytest.mark.parametrize('percent, expected', [
    (0.0, STATUS_OK),
    (79.99, STATUS_OK),
    (80.0, STATUS_WARNING),
    (99.99, STATUS_WARNING),
    (100.0, STATUS_EXCEEDED),
    (250.0, STATUS_EXCEEDED),
])
def test_status_thresholds(percent, expected):
    assert status_for_percent(percent) == expected


def test_month_bounds_handles_leap_february():
    assert month_bounds(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(date(2023, 12, 31)) == (date(2023, 12, 1), date(2023, 12, 31))


def test_period_is_inclusive_on_both_ends():
    expenses = [
        make_expense('before', 1.0, when=date(2024, 2, 29)),
        make_expense('first', 1.0, when=date(2024, 3, 1)),
        make_expense('last', 1.0, when=date(2024, 3, 31)),
        make_expense('after', 1.0, when=date(2024, 4, 1)),
    ]
    kept = expenses_in_period(expenses, date(2024, 3, 1), date(2024, 3, 31))
    assert [e.id for e in kept] == ['first', 'last']


def test_summary_totals_and_counts():
    categories = [
        make_category('food', monthly_limit=1000.0),
        make_category('fun', monthly_limit=200.0),
        make_category('home', monthly_limit=500.0),
    ]
    expenses = [
        make_expense('e1', 850.0, 'food'),
        make_expense('e2', 250.0, 'fun'),
        make_expense('e3', 100.0, 'home'),
        make_expense('e4', 70.0, 'unknown'),
        make_expense('old', 999.0, 'home', when=date(2024, 2, 15)),
    ]
    summary = compute_budget_summary(categories, expenses, month_bounds(date(2024, 3, 5)))

    assert summary.total_budget == 1700.0
    assert summary.total_spent == 1200.0
    assert summary.total_remaining == 500.0
    assert summary.percent_used == pytest.approx(1200.0 / 1700.0 * 100)
    assert summary.categories_count == 3
    assert (summary.categories_ok, summary.categories_warning, summary.categories_exceeded) == (1, 1, 1)


def test_summary_is_independent_of_input_order():
    categories = [make_category('a', monthly_limit=100.0), make_category('b', monthly_limit=300.0)]
    expenses = [make_expense('e1', 90.0, 'a'), make_expense('e2', 20.0, 'b'), make_expense('e3', 5.0, 'a')]

    forward = compute_budget_summary(categories, expenses)
    backward = compute_budget_summary(list(reversed(categories)), list(reversed(expenses)))
    assert forward == backward


def test_summary_of_nothing_is_zero():
    summary = compute_budget_summary([], [])
    assert summary.total_budget == 0.0
    assert summary.percent_used == 0.0
    assert summary.categories_count == 0


def test_categories_status_keeps_input_order():
    categories = [make_category('b'), make_category('a')]
    statuses = compute_categories_status(categories, [], month_bounds(date(2024, 3, 1)))
    assert [s.category.id for s in statuses] == ['b', 'a']


def test_status_frame_columns():
    statuses = compute_categories_status([make_category(monthly_limit=300.0)], [make_expense('e1', 100.0)])
    frame = budget_status_frame(statuses)

    assert list(frame.columns) == ['Category', 'Limit', 'Spent', 'Remaining', 'Percent Used', 'Status', 'Expenses']
    assert frame.loc[0, 'Percent Used'] == 33.3
    assert frame.loc[0, 'Expenses'] == 1
    assert budget_status_frame([]).empty


def test_each_exceeded_category_gets_an_alert():
    categories = [make_category('c1', 'Alimentação', 1000.0), make_category('c2', 'Lazer', 200.0),
                  make_category('c3', 'Transporte', 100.0)]
    expenses = [make_expense('e1', 1250.5, 'c1'), make_expense('e2', 200.0, 'c2'), make_expense('e3', 90.0, 'c3')]
    alerts = budget_alerts(compute_categories_status(categories, expenses))

    assert [(a.level, a.title) for a in alerts] == [
        (STATUS_EXCEEDED, 'Orçamento Estourado!'),
        (STATUS_EXCEEDED, 'Orçamento Estourado!'),
    ]
    assert alerts[0].message == 'A categoria "Alimentação" ultrapassou o limite em R$ 250,50'
    assert alerts[1].message == 'A categoria "Lazer" ultrapassou o limite em R$ 0,00'


def test_warnings_are_grouped_into_one_alert():
    categories = [make_category('c1', 'Alimentação', 1000.0), make_category('c2', 'Lazer', 100.0)]
    expenses = [make_expense('e1', 850.0, 'c1'), make_expense('e2', 80.0, 'c2')]
    [alert] = budget_alerts(compute_categories_status(categories, expenses))

    assert alert.level == STATUS_WARNING
    assert alert.title == 'Atenção ao Orçamento'
    assert alert.message == 'As categorias Alimentação, Lazer estão próximas do limite mensal'

    [single] = budget_alerts(compute_categories_status(categories[:1], expenses))
    assert single.message == 'A categoria Alimentação está próxima do limite mensal'


def test_no_alerts_when_everything_is_ok():
    assert budget_alerts(compute_categories_status([make_category()], [make_expense('e1', 10.0)])) == []
