"""
Recurring expenses page for the finance ledger application.
Registers monthly bills and records this month's occurrence as a transaction.
"""

import streamlit as st
import pandas as pd
import logging
from decimal import Decimal
import sys
from pathlib import Path

# Add src directory to path
src_path = Path(__file__).parent.parent
sys.path.insert(0, str(src_path))

from ledger.exceptions import LedgerError
from ledger.models import (
    RecurrenceFrequency, RecurringExpenseCreate, RecurringExpenseUpdate, TransactionType,
)
from ledger.recurring import RecurringExpenseManager
from ui.components import format_currency, select_bank_and_card

logger = logging.getLogger(__name__)

FREQUENCY_LABELS = {
    RecurrenceFrequency.MONTHLY: "Mensal",
    RecurrenceFrequency.WEEKLY: "Semanal",
    RecurrenceFrequency.BIWEEKLY: "Quinzenal",
    RecurrenceFrequency.YEARLY: "Anual",
}


def main():
    """Main function for the Recurring expenses page."""
    st.set_page_config(
        page_title="Recorrentes - Finanças Pessoais",
        page_icon="🔁",
        layout="wide"
    )

    st.title("🔁 Gastos recorrentes")

    if 'db_manager' not in st.session_state:
        st.error("Banco de dados não iniciado. Volte para a página inicial.")
        return

    db_manager = st.session_state.db_manager
    user_id = st.session_state.settings.user_id

    if 'recurring_manager' not in st.session_state:
        st.session_state.recurring_manager = RecurringExpenseManager(db_manager)
    manager = st.session_state.recurring_manager

    categories = db_manager.list_categories(user_id, TransactionType.EXPENSE)
    banks = db_manager.list_banks(user_id)
    cards = db_manager.list_cards(user_id, active=True)

    with st.sidebar:
        st.header("🔍 Filtros")
        only_active = st.checkbox("Somente ativos", value=True)

    with st.expander("➕ Novo gasto recorrente", expanded=False):
        with st.form("add_recurring", clear_on_submit=True):
            col1, col2 = st.columns(2)
            with col1:
                description = st.text_input("Descrição")
                amount = st.number_input("Valor (R$)", min_value=0.0, step=0.01, format="%.2f")
                due_day = st.number_input("Dia de vencimento", min_value=1, max_value=31, value=10, step=1)
                frequency = st.selectbox(
                    "Frequência",
                    list(RecurrenceFrequency),
                    format_func=lambda f: FREQUENCY_LABELS[f],
                )
            with col2:
                category = st.selectbox(
                    "Categoria",
                    [None] + categories,
                    format_func=lambda c: c.name if c else "Sem categoria",
                )
                bank_id, card_id = select_bank_and_card(banks, cards, key="add_recurring")
                notes = st.text_area("Observações")

            if st.form_submit_button("💾 Adicionar", type="primary"):
                try:
                    expense_id = manager.add_expense(user_id, RecurringExpenseCreate(
                        description=description,
                        amount=Decimal(str(amount)),
                        due_day=int(due_day),
                        frequency=frequency,
                        category_id=category.id if category else None,
                        bank_id=bank_id,
                        card_id=card_id,
                        notes=notes or None,
                    ))
                except ValueError as e:
                    st.error(f"Dados inválidos: {e}")
                except LedgerError as e:
                    st.error(str(e))
                else:
                    st.success(f"✅ Gasto recorrente #{expense_id} adicionado")
                    st.rerun()

    expenses = manager.list_expenses(user_id, active=True if only_active else None)
    if not expenses:
        st.info("Nenhum gasto recorrente cadastrado.")
        return

    st.metric("Compromisso mensal", format_currency(manager.monthly_commitment(user_id)))

    df = pd.DataFrame([
        {
            "ID": e.id,
            "Dia": e.due_day,
            "Descrição": e.description,
            "Valor": format_currency(e.amount),
            "Frequência": FREQUENCY_LABELS[e.frequency],
            "Categoria": e.category_name or "Sem categoria",
            "Banco": e.bank_name or "-",
            "Cartão": e.card_name or "-",
            "Ativo": "Sim" if e.active else "Não",
        }
        for e in expenses
    ])
    st.dataframe(df, use_container_width=True, hide_index=True)

    for expense in expenses:
        with st.container(border=True):
            col1, col2, col3, col4 = st.columns([3, 1, 1, 1])
            with col1:
                st.markdown(f"**{expense.description}** · dia {expense.due_day} · {format_currency(expense.amount)}")
            with col2:
                if st.button("🧾 Gerar transação", key=f"generate_{expense.id}", disabled=not expense.active):
                    try:
                        transaction = manager.generate_transaction(expense.id, user_id)
                    except LedgerError as e:
                        st.error(str(e))
                    else:
                        st.success(
                            f"✅ Transação #{transaction.id} lançada em "
                            f"{transaction.occurred_on.strftime('%d/%m/%Y')}"
                        )
            with col3:
                label = "⏸️ Desativar" if expense.active else "▶️ Ativar"
                if st.button(label, key=f"toggle_{expense.id}"):
                    manager.update_expense(
                        expense.id, user_id, RecurringExpenseUpdate(active=not expense.active)
                    )
                    st.rerun()
            with col4:
                if st.button("🗑️ Excluir", key=f"delete_recurring_{expense.id}"):
                    manager.delete_expense(expense.id, user_id)
                    logger.info(f"Deleted recurring expense {expense.id}")
                    st.rerun()


if __name__ == "__main__":
    main()
