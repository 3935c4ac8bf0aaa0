"""
Dashboard page for the finance ledger application.
Monthly income/expense totals, spending ratio and month-end projection.
"""

import streamlit as st
import plotly.express as px
import pandas as pd
import logging
import sys
from pathlib import Path

# Add src directory to path
src_path = Path(__file__).parent.parent
sys.path.insert(0, str(src_path))

from ledger.algorithms import AnalyticsEngine
from ledger.exceptions import SourceUnavailable
from ledger.models import TransactionType
from ui.components import display_month_selector, format_currency, MONTH_NAMES

logger = logging.getLogger(__name__)


def main():
    """Main function for the Dashboard page."""
    st.set_page_config(
        page_title="Dashboard - Finanças Pessoais",
        page_icon="📊",
        layout="wide"
    )

    st.title("📊 Dashboard")

    if 'db_manager' not in st.session_state:
        st.error("Banco de dados não iniciado. Volte para a página inicial.")
        return

    if 'analytics_engine' not in st.session_state:
        st.session_state.analytics_engine = AnalyticsEngine(st.session_state.db_manager)

    analytics_engine = st.session_state.analytics_engine
    user_id = st.session_state.settings.user_id

    with st.sidebar:
        st.header("📅 Período")
        selector = display_month_selector("dashboard")

    st.markdown(f"Resumo de **{MONTH_NAMES[selector.mes - 1]} de {selector.ano}**")

    try:
        overview = analytics_engine.monthly_overview(user_id, selector)
        expense_breakdown = analytics_engine.category_breakdown(user_id, selector, TransactionType.EXPENSE)
        income_breakdown = analytics_engine.category_breakdown(user_id, selector, TransactionType.INCOME)
    except SourceUnavailable as e:
        logger.error(f"Error loading dashboard: {str(e)}")
        st.error(f"Não foi possível carregar os dados: {str(e)}")
        return

    summary = overview["summary"]

    st.subheader("📈 Resumo do mês")
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Receitas", format_currency(summary.total_income))
    with col2:
        st.metric("Despesas", format_currency(summary.total_expense))
    with col3:
        st.metric("Saldo", format_currency(summary.net_balance))

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric(
            "Gasto da renda",
            f"{overview['spending_ratio']}%",
            help="Despesas como percentual das receitas"
        )
    with col2:
        st.metric(
            "Projeção de despesas",
            format_currency(overview["projection"]),
            help="Média diária de gastos estendida até o fim do mês"
        )
    with col3:
        st.metric("Saldo projetado", format_currency(overview["projected_balance"]))

    if summary.total_income > 0 and overview["spending_ratio"] > 100:
        st.warning("⚠️ As despesas do mês já superam as receitas.")
    elif overview["projected_balance"] < 0:
        st.warning("⚠️ No ritmo atual, o mês deve fechar no negativo.")

    difference = overview["fixed_income_difference"]
    if difference is not None:
        st.markdown("---")
        st.subheader("💰 Ganho fixo mensal")
        col1, col2 = st.columns(2)
        with col1:
            st.metric("Ganho fixo", format_currency(overview["fixed_income"]))
        with col2:
            sign = "+" if difference >= 0 else ""
            st.metric(
                "Receitas vs. ganho fixo",
                f"{sign}{format_currency(difference)}",
                delta=float(difference),
                help="Receitas do mês menos o ganho fixo configurado",
            )
    else:
        st.caption("Configure o ganho fixo mensal na página Contas para compará-lo às receitas.")

    st.markdown("---")
    st.subheader("🏷️ Por categoria")

    col1, col2 = st.columns(2)
    for column, breakdown, title in (
        (col1, expense_breakdown, "Despesas por categoria"),
        (col2, income_breakdown, "Receitas por categoria"),
    ):
        with column:
            if breakdown:
                df = pd.DataFrame([
                    {"Categoria": name, "Valor": float(amount)}
                    for name, amount in breakdown.items()
                ])
                fig_pie = px.pie(df, values="Valor", names="Categoria", title=title)
                fig_pie.update_traces(textposition='inside', textinfo='percent+label')
                st.plotly_chart(fig_pie, use_container_width=True)
            else:
                st.info(f"Sem dados para {title.lower()}")


if __name__ == "__main__":
    main()
