"""Main entry point for the Streamlit app.

Renders the ledger, budgets, goals and investments for the configured
user in four tabs.  All figures are recomputed from the session state on
each rerun; quotes are refreshed when the refresh interval has elapsed.
"""

from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import streamlit as st

# Add project root to path for imports
project_root = Path(__file__).parent.parent.resolve()
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from capital_dashboard import config
from capital_dashboard.allocation import AllocationOutcome
from capital_dashboard.budgets import budget_alerts, budget_status_frame
from capital_dashboard.formatting import format_currency, format_date, format_percent
from capital_dashboard.goals import GOAL_CATEGORIES, goal_category
from capital_dashboard.investments import INVESTMENT_OPTIONS, available_value, investment_value
from capital_dashboard.session import FinanceSession
from capital_dashboard.transactions import (
    TRANSACTION_CATEGORIES,
    TYPE_EXPENSE,
    TYPE_INCOME,
    categories_for_type,
    category_label,
)
from capital_dashboard.validation import ValidationError
from capital_dashboard.visualization import (
    create_budget_status_pie,
    create_budget_usage_chart,
    create_goal_progress_chart,
    create_investment_allocation_chart,
)

SESSION_KEY = 'finance_session'

STATUS_LABELS = {
    'ok': '🟢 Dentro do orçamento',
    'warning': '🟡 Atenção',
    'exceeded': '🔴 Excedido',
    'em_andamento': 'Em andamento',
    'concluido': '✅ Concluída',
    'atrasado': '⚠️ Atrasada',
}

TYPE_LABELS = {TYPE_INCOME: '💚 Receita', TYPE_EXPENSE: '🔻 Despesa'}

ALERT_ICONS = {'exceeded': '🚨', 'warning': '⚠️'}

ALLOCATION_MESSAGES = {
    AllocationOutcome.ALLOCATED_FROM_INVESTMENTS: "Valor alocado a partir dos investimentos.",
    AllocationOutcome.ALLOCATED_FROM_BALANCE: "Investimentos insuficientes: valor alocado a partir do saldo.",
}


def _get_session() -> FinanceSession:
    """Return this browser session's FinanceSession, loading it on first use."""
    session = st.session_state.get(SESSION_KEY)
    if session is None:
        session = FinanceSession(config.DEFAULT_USER_ID)
        session.load()
        st.session_state[SESSION_KEY] = session
    return session


def _refresh_quotes(session: FinanceSession) -> None:
    if session.quotes_due():
        with st.spinner("Atualizando cotações..."):
            session.refresh_quotes()


def _render_budget_alerts(statuses) -> None:
    for alert in budget_alerts(statuses):
        st.warning(f"**{alert.title}** {alert.message}", icon=ALERT_ICONS[alert.level])


def _allocate(session: FinanceSession, goal_id: str, amount) -> None:
    """Fund a goal and rerun so every tab shows the new balances."""
    try:
        result = session.allocate_to_goal(goal_id, amount)
    except ValidationError as e:
        st.error(str(e))
        return
    if not result.success:
        st.error("Saldo insuficiente para esta alocação.")
        return
    st.toast(ALLOCATION_MESSAGES[result.outcome])
    st.rerun()


def render_ledger_tab(session: FinanceSession, reference: date) -> None:
    balance = session.balance()
    month = session.transactions_summary(reference)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Receitas do mês", format_currency(month.total_income))
    col2.metric(
        "Despesas do mês",
        format_currency(month.total_expenses),
        format_percent(month.monthly_variation, signed=True),
        delta_color="inverse",
    )
    col3.metric("Saldo do mês", format_currency(month.balance))
    col4.metric("Saldo disponível", format_currency(balance.available_balance))
    st.caption(
        f"Saldo {format_currency(balance.balance)} + investimentos "
        f"{format_currency(balance.investments_value)} − alocado em metas "
        f"{format_currency(balance.allocated_to_goals)}"
    )

    if month.top_expenses:
        st.subheader("Maiores gastos")
        st.dataframe(
            [
                {
                    "Categoria": category_label(item.category),
                    "Valor": format_currency(item.amount),
                    "Participação": format_percent(item.percentage),
                }
                for item in month.top_expenses
            ],
            hide_index=True,
            use_container_width=True,
        )

    with st.expander("Nova transação"):
        kind = st.radio("Tipo", list(TYPE_LABELS), format_func=TYPE_LABELS.get, horizontal=True)
        budget_names = {c.id: c.name for c in session.state.categories}
        with st.form("new_transaction", clear_on_submit=True):
            category = st.selectbox("Categoria", categories_for_type(kind), format_func=category_label)
            amount = st.text_input("Valor (R$)")
            description = st.text_input("Descrição")
            when = st.date_input("Data", value=reference, format="DD/MM/YYYY")
            budget_id = None
            if kind == TYPE_EXPENSE and budget_names:
                budget_id = st.selectbox(
                    "Lançar no orçamento", [None] + list(budget_names),
                    format_func=lambda c: "Não lançar" if c is None else budget_names[c],
                )
            if st.form_submit_button("Registrar"):
                try:
                    session.add_transaction(kind, category, amount, description, when,
                                            budget_category_id=budget_id)
                    st.rerun()
                except ValidationError as e:
                    st.error(str(e))

    transactions = sorted(session.state.transactions, key=lambda t: t.date, reverse=True)
    for tx in transactions:
        title = f"{format_date(tx.date)} · {tx.description} · {TYPE_LABELS[tx.type]} {format_currency(tx.amount)}"
        with st.expander(title):
            with st.form(f"edit_tx_{tx.id}"):
                options = list(TRANSACTION_CATEGORIES)
                category = st.selectbox(
                    "Categoria", options, format_func=category_label,
                    index=options.index(tx.category) if tx.category in options else 0,
                )
                amount = st.text_input("Valor (R$)", value=f"{tx.amount:.2f}")
                description = st.text_input("Descrição", value=tx.description)
                when = st.date_input("Data", value=tx.date, format="DD/MM/YYYY")
                if st.form_submit_button("Salvar"):
                    try:
                        session.update_transaction(tx.id, category=category, amount=amount,
                                                   description=description, transaction_date=when)
                        st.rerun()
                    except ValidationError as e:
                        st.error(str(e))
            if tx.type == TYPE_EXPENSE and budget_names:
                target = st.selectbox("Categoria do orçamento", list(budget_names),
                                      format_func=budget_names.get, key=f"link_{tx.id}")
                if st.button("Lançar no orçamento", key=f"link_btn_{tx.id}"):
                    session.add_expense_from_transaction(tx.id, target)
                    st.rerun()
            if st.button("Excluir transação", key=f"delete_tx_{tx.id}"):
                session.delete_transaction(tx.id)
                st.rerun()


def render_budget_tab(session: FinanceSession, reference: date) -> None:
    statuses, summary = session.budget(reference)

    _render_budget_alerts(statuses)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Orçamento total", format_currency(summary.total_budget))
    col2.metric("Gasto", format_currency(summary.total_spent))
    col3.metric("Restante", format_currency(summary.total_remaining))
    col4.metric("Utilizado", format_percent(summary.percent_used))

    if not session.state.categories:
        st.info("Nenhuma categoria cadastrada.")
        if st.button("Criar categorias padrão"):
            session.initialize_default_categories()
            st.rerun()
    else:
        chart_col, pie_col = st.columns([2, 1])
        chart_col.plotly_chart(create_budget_usage_chart(statuses), use_container_width=True)
        pie_col.plotly_chart(create_budget_status_pie(statuses), use_container_width=True)
        frame = budget_status_frame(statuses)
        frame['Status'] = frame['Status'].map(STATUS_LABELS)
        st.dataframe(frame, hide_index=True, use_container_width=True)

    names = {c.id: c.name for c in session.state.categories}
    for status in statuses:
        category = status.category
        with st.expander(f"{category.icon or '📁'} {category.name} · {STATUS_LABELS[status.status]}"):
            with st.form(f"edit_category_{category.id}"):
                name = st.text_input("Nome", value=category.name)
                limit = st.text_input("Limite mensal (R$)", value=f"{category.monthly_limit:.2f}")
                description = st.text_input("Descrição", value=category.description or "")
                if st.form_submit_button("Salvar categoria"):
                    try:
                        session.update_category(category.id, name, limit, description=description)
                        st.rerun()
                    except ValidationError as e:
                        st.error(str(e))
            if st.button("Excluir categoria", key=f"delete_category_{category.id}"):
                session.delete_category(category.id)
                st.rerun()

            for expense in status.expenses:
                st.markdown(
                    f"**{format_date(expense.date)}** · {expense.description or 'Sem descrição'} · "
                    f"{format_currency(expense.amount)}"
                )
                with st.form(f"edit_expense_{expense.id}"):
                    amount = st.text_input("Valor (R$)", value=f"{expense.amount:.2f}")
                    description = st.text_input("Descrição", value=expense.description)
                    expense_date = st.date_input("Data", value=expense.date, format="DD/MM/YYYY")
                    category_id = st.selectbox(
                        "Categoria", list(names), format_func=names.get,
                        index=list(names).index(expense.category_id),
                    )
                    if st.form_submit_button("Salvar despesa"):
                        try:
                            session.update_expense(expense.id, amount, description, expense_date, category_id)
                            st.rerun()
                        except ValidationError as e:
                            st.error(str(e))
                if st.button("Excluir despesa", key=f"delete_expense_{expense.id}"):
                    session.delete_expense(expense.id)
                    st.rerun()

    with st.expander("Nova categoria"):
        with st.form("new_category", clear_on_submit=True):
            name = st.text_input("Nome")
            limit = st.text_input("Limite mensal (R$)", value="0")
            description = st.text_input("Descrição")
            if st.form_submit_button("Adicionar"):
                try:
                    session.add_category(name, limit, description=description)
                    st.rerun()
                except ValidationError as e:
                    st.error(str(e))

    if session.state.categories:
        with st.expander("Nova despesa"):
            with st.form("new_expense", clear_on_submit=True):
                category_id = st.selectbox("Categoria", list(names), format_func=names.get)
                amount = st.text_input("Valor (R$)")
                description = st.text_input("Descrição")
                expense_date = st.date_input("Data", value=reference, format="DD/MM/YYYY")
                if st.form_submit_button("Registrar"):
                    try:
                        session.add_expense(category_id, amount, description, expense_date)
                        st.rerun()
                    except ValidationError as e:
                        st.error(str(e))


def render_goals_tab(session: FinanceSession) -> None:
    goals, summary = session.goals()
    available = session.balance().available_balance

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Metas", summary.total_goals)
    col2.metric("Concluídas", summary.completed_goals)
    col3.metric("Atrasadas", summary.overdue_goals)
    col4.metric("Progresso médio", format_percent(summary.average_progress))

    if goals:
        st.plotly_chart(create_goal_progress_chart(goals), use_container_width=True)

    for item in goals:
        category = goal_category(item.goal.category) or {}
        with st.expander(f"{category.get('icon', '')} {item.name} · {STATUS_LABELS[item.status]}"):
            st.progress(min(item.progress_percent, 100.0) / 100)
            left, right = st.columns(2)
            left.metric("Guardado", format_currency(item.goal.current_amount))
            left.metric("Meta", format_currency(item.goal.target_amount))
            right.metric("Prazo", format_date(item.goal.deadline), f"{item.days_remaining} dias")
            right.metric("Por mês", format_currency(item.monthly_savings_needed))

            with st.form(f"allocate_{item.id}", clear_on_submit=True):
                st.caption(f"Saldo disponível: {format_currency(available)}")
                amount = st.text_input("Valor a alocar (R$)")
                if st.form_submit_button("Alocar"):
                    _allocate(session, item.id, amount)

            with st.form(f"contribute_{item.id}", clear_on_submit=True):
                contribution = st.text_input("Aporte direto (R$)")
                if st.form_submit_button("Registrar aporte"):
                    try:
                        session.contribute_to_goal(item.id, contribution)
                        st.rerun()
                    except ValidationError as e:
                        st.error(str(e))

            with st.form(f"project_{item.id}"):
                month = session.transactions_summary()
                income = st.text_input("Receita mensal (R$)", value=f"{month.total_income:.2f}")
                expenses = st.text_input("Gastos mensais (R$)", value=f"{month.total_expenses:.2f}")
                if st.form_submit_button("Calcular projeção"):
                    try:
                        projection = session.goal_projection(item.id, income, expenses)
                    except ValidationError as e:
                        st.error(str(e))
                    else:
                        if projection.is_viable:
                            st.success(
                                f"Meta viável: {format_currency(projection.monthly_savings)} por mês "
                                f"atinge o objetivo em {projection.months_to_reach_goal} meses."
                            )
                        else:
                            st.warning(
                                "Meta inviável no prazo. Receita necessária: "
                                f"{format_currency(projection.monthly_income_needed)} por mês."
                            )
                            if projection.alternative_date is not None:
                                st.info(f"Data alternativa: {format_date(projection.alternative_date)}")

            if st.button("Liberar alocações", key=f"release_{item.id}"):
                session.remove_goal_allocation(item.id)
                st.rerun()
            if st.button("Excluir meta", key=f"delete_goal_{item.id}"):
                session.delete_goal(item.id)
                st.rerun()

    with st.expander("Nova meta"):
        with st.form("new_goal", clear_on_submit=True):
            name = st.text_input("Nome")
            category_id = st.selectbox(
                "Categoria",
                list(GOAL_CATEGORIES),
                format_func=lambda c: f"{GOAL_CATEGORIES[c]['icon']} {GOAL_CATEGORIES[c]['name']}",
            )
            target = st.text_input("Valor alvo (R$)")
            deadline = st.date_input("Prazo", format="DD/MM/YYYY")
            if st.form_submit_button("Criar meta"):
                try:
                    session.add_goal(name, category_id, target, deadline)
                    st.rerun()
                except ValidationError as e:
                    st.error(str(e))


def render_investments_tab(session: FinanceSession) -> None:
    summary = session.portfolio()

    col1, col2, col3 = st.columns(3)
    col1.metric("Investido", format_currency(summary.total_invested))
    col2.metric("Valor atual", format_currency(summary.current_value))
    col3.metric(
        "Resultado",
        format_currency(summary.total_profit_loss),
        format_percent(summary.total_profit_loss_percent, signed=True),
    )
    if summary.best_performer is not None and summary.worst_performer is not None:
        st.caption(
            f"Melhor: {summary.best_performer.name} · Pior: {summary.worst_performer.name}"
        )
    if session.state.last_quote_update:
        st.caption(f"Cotações atualizadas em {session.state.last_quote_update[:19]}")

    investments = session.state.investments
    if investments:
        st.plotly_chart(create_investment_allocation_chart(investments), use_container_width=True)
        st.dataframe(
            [
                {
                    "Ativo": i.name,
                    "Quantidade": i.quantity,
                    "Valor atual": format_currency(investment_value(i)),
                    "Livre": format_currency(available_value(i)),
                    "Resultado": format_percent(i.profit_loss_percent or 0.0, signed=True),
                }
                for i in investments
            ],
            hide_index=True,
            use_container_width=True,
        )
        if st.button("Atualizar cotações"):
            session.refresh_quotes(force=True)
            st.rerun()

    for lot in investments:
        option = INVESTMENT_OPTIONS.get(lot.type) or {}
        with st.expander(f"{option.get('icon', '')} {lot.name} · {format_currency(investment_value(lot))}"):
            for allocation in lot.goal_allocations:
                st.caption(f"🎯 {allocation.goal_name}: {format_currency(allocation.allocated_amount)}")
            with st.form(f"edit_investment_{lot.id}"):
                name = st.text_input("Nome", value=lot.name)
                quantity = st.text_input("Quantidade", value=f"{lot.quantity:g}")
                price = st.text_input("Preço de compra (R$)", value=f"{lot.purchase_price:.2f}")
                purchase_date = st.date_input("Data da compra", value=lot.purchase_date, format="DD/MM/YYYY")
                if st.form_submit_button("Salvar investimento"):
                    try:
                        session.update_investment(lot.id, name, quantity, price, purchase_date)
                        st.rerun()
                    except ValidationError as e:
                        st.error(str(e))
            if st.button("Excluir investimento", key=f"delete_investment_{lot.id}"):
                session.delete_investment(lot.id)
                st.rerun()

    with st.expander("Novo investimento"):
        with st.form("new_investment", clear_on_submit=True):
            kind = st.selectbox(
                "Tipo",
                list(INVESTMENT_OPTIONS),
                format_func=lambda k: f"{INVESTMENT_OPTIONS[k]['icon']} {INVESTMENT_OPTIONS[k]['name']}",
            )
            name = st.text_input("Nome")
            quantity = st.text_input("Quantidade")
            price = st.text_input("Preço de compra (R$)")
            purchase_date = st.date_input("Data da compra", format="DD/MM/YYYY")
            if st.form_submit_button("Adicionar"):
                try:
                    session.add_investment(kind, name, quantity, price, purchase_date)
                    session.refresh_quotes(force=True)
                    st.rerun()
                except ValidationError as e:
                    st.error(str(e))


def main():
    """Render the dashboard."""
    st.set_page_config(page_title="Capital", page_icon="💰", layout="wide")
    config.configure_logging()

    session = _get_session()
    _refresh_quotes(session)

    st.title("💰 Capital")
    if not session.database_available:
        st.warning("Banco de dados indisponível: alterações salvas apenas localmente.")

    reference = st.sidebar.date_input("Mês de referência", value=date.today(), format="DD/MM/YYYY")

    ledger_tab, budget_tab, goals_tab, investments_tab = st.tabs(
        ["💳 Transações", "📋 Orçamento", "🎯 Metas", "📈 Investimentos"]
    )
    with ledger_tab:
        render_ledger_tab(session, reference)
    with budget_tab:
        render_budget_tab(session, reference)
    with goals_tab:
        render_goals_tab(session)
    with investments_tab:
        render_investments_tab(session)


if __name__ == "__main__":
    main()
