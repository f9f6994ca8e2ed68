from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional

import pandas as pd

from . import config
from .budgets import BudgetCategory, BudgetExpense
from .goals import Goal
from .investments import Investment
from .state import FinanceState
from .transactions import Transaction

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('receita', 'despesa')),
    category TEXT,
    description TEXT,
    amount REAL NOT NULL,
    date TEXT NOT NULL,
    source TEXT NOT NULL DEFAULT 'manual',
    tags TEXT,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS budget_categories (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    monthly_limit REAL NOT NULL DEFAULT 0,
    description TEXT,
    icon TEXT,
    color TEXT,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS budget_expenses (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    category_id TEXT NOT NULL REFERENCES budget_categories(id) ON DELETE CASCADE,
    amount REAL NOT NULL,
    description TEXT,
    date TEXT NOT NULL,
    transaction_id TEXT
);

CREATE TABLE IF NOT EXISTS goals (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    category TEXT NOT NULL DEFAULT 'outros',
    target_amount REAL NOT NULL,
    current_amount REAL NOT NULL DEFAULT 0,
    deadline TEXT NOT NULL,
    description TEXT,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS investments (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL,
    name TEXT,
    quantity REAL NOT NULL,
    purchase_price REAL NOT NULL,
    purchase_date TEXT NOT NULL,
    current_price REAL,
    current_value REAL,
    profit_loss REAL,
    profit_loss_percent REAL,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS goal_allocations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    investment_id TEXT NOT NULL REFERENCES investments(id) ON DELETE CASCADE,
    goal_id TEXT NOT NULL,
    goal_name TEXT,
    allocated_amount REAL NOT NULL,
    allocated_at TEXT
);

CREATE INDEX IF NOT EXISTS ix_tx_user_date ON transactions (user_id, date);
CREATE INDEX IF NOT EXISTS ix_cat_user ON budget_categories (user_id);
CREATE INDEX IF NOT EXISTS ix_exp_user_date ON budget_expenses (user_id, date);
CREATE INDEX IF NOT EXISTS ix_exp_category ON budget_expenses (category_id);
CREATE INDEX IF NOT EXISTS ix_goal_user ON goals (user_id);
CREATE INDEX IF NOT EXISTS ix_inv_user ON investments (user_id);
CREATE INDEX IF NOT EXISTS ix_alloc_goal ON goal_allocations (goal_id);
"""

# Rows of other users are never overwritten by an upsert
_UPSERT = (
    "INSERT INTO {table} ({columns}) VALUES ({placeholders}) "
    "ON CONFLICT(id) DO UPDATE SET {assignments} WHERE {table}.user_id = excluded.user_id"
)


@contextmanager
def connect() -> Iterator[sqlite3.Connection]:
    config.ensure_data_directories()
    config.DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(config.DB_PATH))
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


def init_db() -> None:
    with connect() as conn:
        conn.executescript(SCHEMA_SQL)
        conn.commit()


def _upsert(conn: sqlite3.Connection, table: str, row: Dict[str, Any]) -> None:
    columns = list(row)
    sql = _UPSERT.format(
        table=table,
        columns=", ".join(columns),
        placeholders=", ".join("?" for _ in columns),
        assignments=", ".join(f"{c} = excluded.{c}" for c in columns if c != 'id'),
    )
    conn.execute(sql, [row[c] for c in columns])


def _records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Turn a frame into plain dicts, with SQL NULLs as ``None``."""
    if df.empty:
        return []
    cleaned = df.astype(object).where(df.notna(), None)
    return cleaned.to_dict('records')


def _read(sql: str, params: Iterable[Any]) -> pd.DataFrame:
    with connect() as conn:
        return pd.read_sql_query(sql, conn, params=list(params))


# --- Transactions ---

def fetch_transactions(user_id: str, start_date: Optional[str] = None, end_date: Optional[str] = None) -> pd.DataFrame:
    where = ["user_id = ?"]
    params: List[Any] = [user_id]
    if start_date:
        where.append("date >= ?")
        params.append(start_date)
    if end_date:
        where.append("date <= ?")
        params.append(end_date)
    sql = (
        "SELECT id, type, category, description, amount, date, source, tags, created_at, updated_at "
        "FROM transactions WHERE " + " AND ".join(where) + " ORDER BY date DESC, created_at DESC"
    )
    return _read(sql, params)


def load_transactions(user_id: str) -> List[Transaction]:
    return [Transaction.from_dict(row) for row in _records(fetch_transactions(user_id))]


def save_transaction(user_id: str, transaction: Transaction) -> None:
    row = {'user_id': user_id, **transaction.to_dict()}
    row['tags'] = ",".join(transaction.tags) or None
    with connect() as conn:
        _upsert(conn, 'transactions', row)
        conn.commit()


def delete_transaction(user_id: str, transaction_id: str) -> bool:
    """Delete a transaction and the budget expenses charged from it."""
    with connect() as conn:
        conn.execute(
            "DELETE FROM budget_expenses WHERE user_id = ? AND transaction_id = ?",
            (user_id, transaction_id),
        )
        cursor = conn.execute(
            "DELETE FROM transactions WHERE user_id = ? AND id = ?", (user_id, transaction_id)
        )
        conn.commit()
        return cursor.rowcount > 0


# --- Budget categories ---

def fetch_categories(user_id: str) -> pd.DataFrame:
    return _read(
        "SELECT id, name, monthly_limit, description, icon, color, created_at, updated_at "
        "FROM budget_categories WHERE user_id = ? ORDER BY created_at ASC, name ASC",
        [user_id],
    )


def load_categories(user_id: str) -> List[BudgetCategory]:
    return [BudgetCategory.from_dict(row) for row in _records(fetch_categories(user_id))]


def save_category(user_id: str, category: BudgetCategory) -> None:
    row = {'user_id': user_id, **category.to_dict()}
    with connect() as conn:
        _upsert(conn, 'budget_categories', row)
        conn.commit()


def seed_default_categories(user_id: str, categories: Iterable[BudgetCategory]) -> None:
    """Replace the user's categories (and so their expenses) with ``categories``."""
    with connect() as conn:
        conn.execute("DELETE FROM budget_expenses WHERE user_id = ?", (user_id,))
        conn.execute("DELETE FROM budget_categories WHERE user_id = ?", (user_id,))
        for category in categories:
            _upsert(conn, 'budget_categories', {'user_id': user_id, **category.to_dict()})
        conn.commit()


def delete_category(user_id: str, category_id: str) -> bool:
    """Delete a category together with every expense charged to it."""
    with connect() as conn:
        conn.execute(
            "DELETE FROM budget_expenses WHERE user_id = ? AND category_id = ?",
            (user_id, category_id),
        )
        cursor = conn.execute(
            "DELETE FROM budget_categories WHERE user_id = ? AND id = ?",
            (user_id, category_id),
        )
        conn.commit()
        return cursor.rowcount > 0


# --- Budget expenses ---

def fetch_expenses(user_id: str, start_date: Optional[str] = None, end_date: Optional[str] = None) -> pd.DataFrame:
    where = ["user_id = ?"]
    params: List[Any] = [user_id]
    if start_date:
        where.append("date >= ?")
        params.append(start_date)
    if end_date:
        where.append("date <= ?")
        params.append(end_date)
    sql = (
        "SELECT id, category_id, amount, description, date, transaction_id FROM budget_expenses "
        "WHERE " + " AND ".join(where) + " ORDER BY date ASC, id ASC"
    )
    return _read(sql, params)


def load_expenses(user_id: str) -> List[BudgetExpense]:
    return [BudgetExpense.from_dict(row) for row in _records(fetch_expenses(user_id))]


def save_expense(user_id: str, expense: BudgetExpense) -> None:
    row = {'user_id': user_id, **expense.to_dict()}
    with connect() as conn:
        _upsert(conn, 'budget_expenses', row)
        conn.commit()


def delete_expense(user_id: str, expense_id: str) -> bool:
    with connect() as conn:
        cursor = conn.execute(
            "DELETE FROM budget_expenses WHERE user_id = ? AND id = ?", (user_id, expense_id)
        )
        conn.commit()
        return cursor.rowcount > 0


def delete_expenses_by_transaction(user_id: str, transaction_id: str) -> int:
    with connect() as conn:
        cursor = conn.execute(
            "DELETE FROM budget_expenses WHERE user_id = ? AND transaction_id = ?",
            (user_id, transaction_id),
        )
        conn.commit()
        return cursor.rowcount


# --- Goals ---

def fetch_goals(user_id: str) -> pd.DataFrame:
    return _read(
        "SELECT id, name, category, target_amount, current_amount, deadline, description, "
        "created_at, updated_at FROM goals WHERE user_id = ? ORDER BY deadline ASC, name ASC",
        [user_id],
    )


def load_goals(user_id: str) -> List[Goal]:
    return [Goal.from_dict(row) for row in _records(fetch_goals(user_id))]


def save_goal(user_id: str, goal: Goal) -> None:
    row = {'user_id': user_id, **goal.to_dict()}
    with connect() as conn:
        _upsert(conn, 'goals', row)
        conn.commit()


def delete_goal(user_id: str, goal_id: str) -> bool:
    """Delete a goal and every allocation earmarked for it."""
    with connect() as conn:
        conn.execute(
            "DELETE FROM goal_allocations WHERE goal_id = ? AND investment_id IN "
            "(SELECT id FROM investments WHERE user_id = ?)",
            (goal_id, user_id),
        )
        cursor = conn.execute("DELETE FROM goals WHERE user_id = ? AND id = ?", (user_id, goal_id))
        conn.commit()
        return cursor.rowcount > 0


# --- Investments ---

def fetch_investments(user_id: str) -> pd.DataFrame:
    return _read(
        "SELECT id, type, name, quantity, purchase_price, purchase_date, current_price, current_value, "
        "profit_loss, profit_loss_percent, created_at, updated_at FROM investments "
        "WHERE user_id = ? ORDER BY created_at ASC, id ASC",
        [user_id],
    )


def fetch_goal_allocations(user_id: str) -> pd.DataFrame:
    return _read(
        "SELECT a.investment_id, a.goal_id, a.goal_name, a.allocated_amount, a.allocated_at "
        "FROM goal_allocations a JOIN investments i ON i.id = a.investment_id "
        "WHERE i.user_id = ? ORDER BY a.id ASC",
        [user_id],
    )


def load_investments(user_id: str) -> List[Investment]:
    allocations: Dict[str, List[Dict[str, Any]]] = {}
    for row in _records(fetch_goal_allocations(user_id)):
        allocations.setdefault(row.pop('investment_id'), []).append(row)

    investments = []
    for row in _records(fetch_investments(user_id)):
        row['goal_allocations'] = allocations.get(row['id'], [])
        investments.append(Investment.from_dict(row))
    return investments


def save_investment(user_id: str, investment: Investment) -> None:
    """Upsert a lot and rewrite its allocation rows."""
    row = {'user_id': user_id, **investment.to_dict()}
    allocations = row.pop('goal_allocations')
    with connect() as conn:
        _upsert(conn, 'investments', row)
        conn.execute("DELETE FROM goal_allocations WHERE investment_id = ?", (investment.id,))
        conn.executemany(
            "INSERT INTO goal_allocations (investment_id, goal_id, goal_name, allocated_amount, allocated_at) "
            "VALUES (?, ?, ?, ?, ?)",
            [
                (investment.id, a['goal_id'], a['goal_name'], a['allocated_amount'], a['allocated_at'])
                for a in allocations
            ],
        )
        conn.commit()


def delete_investment(user_id: str, investment_id: str) -> bool:
    with connect() as conn:
        cursor = conn.execute(
            "DELETE FROM investments WHERE user_id = ? AND id = ?", (user_id, investment_id)
        )
        conn.commit()
        return cursor.rowcount > 0


# --- Whole-user helpers ---

def load_state(user_id: str) -> FinanceState:
    init_db()
    state = FinanceState(
        categories=tuple(load_categories(user_id)),
        expenses=tuple(load_expenses(user_id)),
        goals=tuple(load_goals(user_id)),
        investments=tuple(load_investments(user_id)),
        transactions=tuple(load_transactions(user_id)),
    )
    logger.info(
        "Loaded user %s: %d transactions, %d categories, %d expenses, %d goals, %d investments",
        user_id, len(state.transactions), len(state.categories), len(state.expenses),
        len(state.goals), len(state.investments),
    )
    return state


def clear_user_data(user_id: str) -> None:
    with connect() as conn:
        conn.execute(
            "DELETE FROM goal_allocations WHERE investment_id IN (SELECT id FROM investments WHERE user_id = ?)",
            (user_id,),
        )
        for table in ('budget_expenses', 'budget_categories', 'goals', 'investments', 'transactions'):
            conn.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))
        conn.commit()
