#!/usr/bin/env python3
"""Print a month's ledger, budget, goal and portfolio report for a user."""

from __future__ import annotations

import argparse
import sys
from datetime import date, datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from capital_dashboard import config
from capital_dashboard.budgets import budget_alerts, budget_status_frame
from capital_dashboard.formatting import format_currency, format_date, format_percent
from capital_dashboard.session import FinanceSession


def _parse_month(value: str) -> date:
    try:
        return datetime.strptime(value, '%Y-%m').date()
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM, got '{value}'") from e


def main(user_id: str, reference: date, refresh_quotes: bool = False) -> None:
    session = FinanceSession(user_id)
    session.load()
    if refresh_quotes:
        session.refresh_quotes(force=True)

    month = session.transactions_summary(reference)
    balance = session.balance()
    print(f"Ledger for {reference:%m/%Y}")
    print(
        f"  Income {format_currency(month.total_income)}, expenses {format_currency(month.total_expenses)} "
        f"({format_percent(month.monthly_variation, signed=True)} vs last month), "
        f"balance {format_currency(month.balance)}"
    )
    print(f"  Available balance: {format_currency(balance.available_balance)}")

    statuses, summary = session.budget(reference)
    print(f"\nBudget for {reference:%m/%Y}")
    if statuses:
        print(budget_status_frame(statuses).to_string(index=False))
    else:
        print("No budget categories.")
    print(
        f"\nTotal: {format_currency(summary.total_spent)} of {format_currency(summary.total_budget)} "
        f"({format_percent(summary.percent_used)}), "
        f"{summary.categories_warning} warning, {summary.categories_exceeded} exceeded"
    )
    for alert in budget_alerts(statuses):
        print(f"  {alert.title} {alert.message}")

    goals, goal_summary = session.goals()
    print(f"\nGoals: {goal_summary.completed_goals}/{goal_summary.total_goals} completed, "
          f"{goal_summary.overdue_goals} overdue")
    for item in goals:
        print(
            f"  {item.name}: {format_currency(item.goal.current_amount)} / "
            f"{format_currency(item.goal.target_amount)} ({format_percent(item.progress_percent)}) "
            f"due {format_date(item.goal.deadline)}, {item.status}"
        )

    portfolio = session.portfolio()
    print(
        f"\nPortfolio: {format_currency(portfolio.current_value)} "
        f"(invested {format_currency(portfolio.total_invested)}, "
        f"{format_percent(portfolio.total_profit_loss_percent, signed=True)})"
    )
    if portfolio.best_performer is not None:
        print(f"  Best: {portfolio.best_performer.name}  Worst: {portfolio.worst_performer.name}")


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Print a monthly finance report.')
    parser.add_argument('--user', default=config.DEFAULT_USER_ID, help='User id to report on')
    parser.add_argument('--month', type=_parse_month, default=date.today(), help='Month as YYYY-MM')
    parser.add_argument('--refresh-quotes', action='store_true', help='Fetch current quotes first')
    args = parser.parse_args()
    config.configure_logging()
    main(args.user, args.month, refresh_quotes=args.refresh_quotes)
