"""Plotly visualisation helpers for the capital dashboard.

Each function takes the derived records produced by :mod:`budgets`,
:mod:`goals` or :mod:`investments` and returns a
`plotly.graph_objects.Figure` that Streamlit renders via
``st.plotly_chart``.  Empty input yields an empty figure titled
"No data to display" so pages never need a special case.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .budgets import STATUS_EXCEEDED, STATUS_OK, STATUS_WARNING, CategoryBudgetStatus
from .config import EXCEEDED_THRESHOLD, WARNING_THRESHOLD
from .goals import GoalWithStatus
from .investments import INVESTMENT_OPTIONS, Investment, investment_value

STATUS_COLORS = {
    STATUS_OK: '#22c55e',
    STATUS_WARNING: '#f59e0b',
    STATUS_EXCEEDED: '#ef4444',
}


def _empty_figure(title: str = "No data to display") -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title=title)
    return fig


def create_budget_usage_chart(
    statuses: Sequence[CategoryBudgetStatus], title: str | None = None
) -> go.Figure:
    """Horizontal bars of percent used per category, coloured by status.

    Parameters
    ----------
    statuses : sequence of CategoryBudgetStatus
        Output of :func:`budgets.compute_categories_status`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Bar chart with reference lines at the warning and exceeded
        thresholds.
    """
    if not statuses:
        return _empty_figure()
    percent = np.array([s.percent_used for s in statuses], dtype=float)
    colors = np.select(
        [percent >= EXCEEDED_THRESHOLD, percent >= WARNING_THRESHOLD],
        [STATUS_COLORS[STATUS_EXCEEDED], STATUS_COLORS[STATUS_WARNING]],
        default=STATUS_COLORS[STATUS_OK],
    )
    fig = go.Figure(
        go.Bar(
            x=percent,
            y=[s.category.name for s in statuses],
            orientation='h',
            marker_color=list(colors),
            text=[f"{p:.0f}%" for p in percent],
            textposition='auto',
        )
    )
    for threshold in (WARNING_THRESHOLD, EXCEEDED_THRESHOLD):
        fig.add_vline(x=threshold, line_dash='dash', line_color='gray')
    fig.update_layout(
        title=title or "Budget usage by category",
        xaxis_title="% of monthly limit",
        yaxis_title="Category",
    )
    return fig


def create_budget_status_pie(statuses: Sequence[CategoryBudgetStatus], title: str | None = None) -> go.Figure:
    """Share of categories in each status."""
    if not statuses:
        return _empty_figure()
    counts = pd.Series([s.status for s in statuses]).value_counts()
    df = counts.rename_axis("Status").reset_index(name="Categories")
    fig = px.pie(
        df,
        names="Status",
        values="Categories",
        color="Status",
        color_discrete_map=STATUS_COLORS,
    )
    fig.update_layout(title=title or "Categories by status")
    return fig


def create_goal_progress_chart(goals: Sequence[GoalWithStatus], title: str | None = None) -> go.Figure:
    if not goals:
        return _empty_figure()
    df = pd.DataFrame(
        {
            "Goal": [g.name for g in goals],
            "Saved": [g.goal.current_amount for g in goals],
            "Remaining": [g.remaining_amount for g in goals],
        }
    )
    long_df = df.melt(id_vars="Goal", var_name="Amount", value_name="Value")
    fig = px.bar(long_df, x="Value", y="Goal", color="Amount", orientation='h', barmode='stack')
    fig.update_layout(
        title=title or "Progress towards goals",
        xaxis_title="R$",
        yaxis_title="Goal",
    )
    return fig


def create_investment_allocation_chart(investments: Sequence[Investment], title: str | None = None) -> go.Figure:
    """Portfolio value grouped by investment type."""
    if not investments:
        return _empty_figure()
    df = pd.DataFrame(
        {
            "Type": [INVESTMENT_OPTIONS.get(i.type, {}).get('name') or i.type for i in investments],
            "Value": [investment_value(i) for i in investments],
        }
    )
    df = df.groupby("Type", as_index=False)["Value"].sum()
    if df["Value"].sum() <= 0:
        return _empty_figure()
    fig = px.pie(df, names="Type", values="Value", hole=0.4)
    fig.update_layout(title=title or "Portfolio by type")
    return fig
