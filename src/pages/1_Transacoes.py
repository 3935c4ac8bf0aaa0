"""
Transactions page for the finance ledger application.
Lists a month's transactions with filters, and adds, edits or deletes entries and categories.
"""

import streamlit as st
import pandas as pd
import logging
from datetime import date
from decimal import Decimal
import sys
from pathlib import Path

# Add src directory to path
src_path = Path(__file__).parent.parent
sys.path.insert(0, str(src_path))

from ledger.exceptions import LedgerError
from ledger.models import (
    CategoryCreate, CategoryUpdate, TransactionCreate, TransactionFilters, TransactionType,
    TransactionUpdate,
)
from ui.components import (
    display_month_selector, format_currency, select_bank_and_card, TYPE_LABELS,
)

logger = logging.getLogger(__name__)


def main():
    """Main function for the Transactions page."""
    st.set_page_config(
        page_title="Transações - Finanças Pessoais",
        page_icon="💸",
        layout="wide"
    )

    st.title("💸 Transações")

    if 'db_manager' not in st.session_state:
        st.error("Banco de dados não iniciado. Volte para a página inicial.")
        return

    db_manager = st.session_state.db_manager
    user_id = st.session_state.settings.user_id

    with st.sidebar:
        st.header("🔍 Filtros")
        selector = display_month_selector("transactions")

        type_filter = st.selectbox(
            "Tipo",
            options=[None] + list(TransactionType),
            format_func=lambda t: TYPE_LABELS[t] if t else "Todos",
        )

        categories = db_manager.list_categories(user_id)
        category_filter = st.selectbox(
            "Categoria",
            options=[None] + categories,
            format_func=lambda c: c.name if c else "Todas",
        )

        banks = db_manager.list_banks(user_id)
        bank_filter = st.selectbox(
            "Banco",
            options=[None] + banks,
            format_func=lambda b: b.name if b else "Todos",
        )
        cards = db_manager.list_cards(user_id)

        st.markdown("---")
        display_category_manager(db_manager, user_id)

    filters = TransactionFilters(
        period=selector,
        type=type_filter,
        category_id=category_filter.id if category_filter else None,
        bank_id=bank_filter.id if bank_filter else None,
    )

    display_add_form(db_manager, user_id, categories, banks, cards)

    st.markdown("---")

    try:
        transactions = db_manager.list_transactions(user_id, filters)
    except LedgerError as e:
        logger.error(f"Error loading transactions: {str(e)}")
        st.error(f"Erro ao carregar transações: {str(e)}")
        return

    if not transactions:
        st.info("Nenhuma transação encontrada para os filtros selecionados.")
        return

    income = sum((t.amount for t in transactions if t.type == TransactionType.INCOME), Decimal("0"))
    expense = sum((t.amount for t in transactions if t.type == TransactionType.EXPENSE), Decimal("0"))

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Transações", len(transactions))
    with col2:
        st.metric("Receitas", format_currency(income))
    with col3:
        st.metric("Despesas", format_currency(expense))

    df = pd.DataFrame([
        {
            "ID": t.id,
            "Data": t.occurred_on.strftime("%d/%m/%Y"),
            "Tipo": TYPE_LABELS[t.type],
            "Descrição": t.description,
            "Categoria": t.category_name or "Sem categoria",
            "Banco": t.bank_name or "-",
            "Cartão": t.card_name or "-",
            "Valor": format_currency(t.amount),
        }
        for t in transactions
    ])

    st.subheader("📋 Lançamentos")
    st.dataframe(df, use_container_width=True, height=400, hide_index=True)

    selected = st.selectbox(
        "Selecionar transação",
        options=[None] + transactions,
        format_func=lambda t: f"#{t.id} - {t.description} ({format_currency(t.amount)})" if t else "-",
    )
    if selected:
        display_edit_form(selected, db_manager, user_id, categories, banks, cards)


def display_add_form(db_manager, user_id: int, categories, banks, cards):
    """Form for a manual transaction."""
    with st.expander("➕ Nova transação", expanded=False):
        with st.form("add_transaction", clear_on_submit=True):
            col1, col2 = st.columns(2)
            with col1:
                description = st.text_input("Descrição")
                amount = st.number_input("Valor (R$)", min_value=0.0, step=0.01, format="%.2f")
                occurred_on = st.date_input("Data", value=date.today())
            with col2:
                tx_type = st.selectbox(
                    "Tipo",
                    list(TransactionType),
                    index=1,
                    format_func=lambda t: TYPE_LABELS[t],
                )
                category = st.selectbox(
                    "Categoria",
                    [None] + categories,
                    format_func=lambda c: f"{c.name} ({TYPE_LABELS[c.type]})" if c else "Sem categoria",
                )
                bank_id, card_id = select_bank_and_card(banks, cards, key="add")

            if st.form_submit_button("💾 Adicionar", type="primary"):
                try:
                    transaction_id = db_manager.add_transaction(user_id, TransactionCreate(
                        type=tx_type,
                        description=description,
                        amount=Decimal(str(amount)),
                        occurred_on=occurred_on,
                        category_id=category.id if category else None,
                        bank_id=bank_id,
                        card_id=card_id,
                    ))
                except ValueError as e:
                    st.error(f"Dados inválidos: {e}")
                except LedgerError as e:
                    st.error(str(e))
                else:
                    st.success(f"✅ Transação #{transaction_id} adicionada")
                    st.rerun()


def display_edit_form(transaction, db_manager, user_id: int, categories, banks, cards):
    """Edit or delete the selected transaction.

    Args:
        transaction: Transaction to edit
        db_manager: Database manager instance
        user_id: Owner of the transaction
        categories: The user's categories
        banks: The user's banks
        cards: The user's cards
    """
    with st.form(f"edit_transaction_{transaction.id}"):
        st.subheader(f"✏️ Transação #{transaction.id}")

        col1, col2 = st.columns(2)
        with col1:
            description = st.text_input("Descrição", value=transaction.description)
            amount = st.number_input(
                "Valor (R$)",
                value=float(transaction.amount),
                min_value=0.01,
                step=0.01,
                format="%.2f",
            )
            occurred_on = st.date_input("Data", value=transaction.occurred_on)
        with col2:
            types = list(TransactionType)
            tx_type = st.selectbox(
                "Tipo",
                types,
                index=types.index(transaction.type),
                format_func=lambda t: TYPE_LABELS[t],
            )
            options = [None] + categories
            current = next((c for c in categories if c.id == transaction.category_id), None)
            category = st.selectbox(
                "Categoria",
                options,
                index=options.index(current),
                format_func=lambda c: f"{c.name} ({TYPE_LABELS[c.type]})" if c else "Sem categoria",
            )
            bank_id, card_id = select_bank_and_card(
                banks, cards, key=f"edit_{transaction.id}",
                bank_id=transaction.bank_id, card_id=transaction.card_id,
            )

        col1, col2 = st.columns(2)
        with col1:
            save_button = st.form_submit_button("💾 Salvar", type="primary")
        with col2:
            delete_button = st.form_submit_button("🗑️ Excluir")

        if save_button:
            try:
                updates = TransactionUpdate(
                    type=tx_type,
                    description=description.strip(),
                    amount=Decimal(str(amount)),
                    occurred_on=occurred_on,
                    category_id=category.id if category else None,
                    bank_id=bank_id,
                    card_id=card_id,
                )
                if db_manager.update_transaction(transaction.id, user_id, updates):
                    st.success("✅ Transação atualizada")
                    st.rerun()
                else:
                    st.error("Transação não encontrada")
            except ValueError as e:
                st.error(f"Dados inválidos: {e}")
            except LedgerError as e:
                st.error(str(e))

        elif delete_button:
            if db_manager.delete_transaction(transaction.id, user_id):
                st.success("🗑️ Transação excluída")
                st.rerun()
            else:
                st.error("Transação não encontrada")


def display_category_manager(db_manager, user_id: int):
    """Sidebar controls to add, edit and remove categories."""
    with st.expander("🏷️ Categorias"):
        with st.form("add_category", clear_on_submit=True):
            name = st.text_input("Nome")
            category_type = st.selectbox(
                "Tipo",
                list(TransactionType),
                index=1,
                format_func=lambda t: TYPE_LABELS[t],
            )
            color = st.color_picker("Cor", value="#6366f1")

            if st.form_submit_button("Adicionar"):
                try:
                    db_manager.add_category(user_id, CategoryCreate(
                        name=name, type=category_type, color=color,
                    ))
                except ValueError as e:
                    st.error(f"Dados inválidos: {e}")
                except LedgerError as e:
                    st.error(str(e))
                else:
                    st.rerun()

        categories = db_manager.list_categories(user_id)
        if categories:
            display_category_editor(db_manager, user_id, categories)

        for category in categories:
            col1, col2 = st.columns([4, 1])
            with col1:
                st.markdown(
                    f"<span style='color:{category.color}'>●</span> {category.name} "
                    f"({TYPE_LABELS[category.type]})",
                    unsafe_allow_html=True,
                )
            with col2:
                if st.button("✖", key=f"delete_category_{category.id}"):
                    try:
                        db_manager.delete_category(category.id, user_id)
                    except LedgerError as e:
                        st.error(str(e))
                    else:
                        st.rerun()


def display_category_editor(db_manager, user_id: int, categories):
    with st.form("edit_category"):
        category = st.selectbox(
            "Editar",
            categories,
            format_func=lambda c: f"{c.name} ({TYPE_LABELS[c.type]})",
        )
        name = st.text_input("Novo nome", placeholder="Manter o atual")
        color = st.color_picker("Nova cor", value="#6366f1")
        keep_color = st.checkbox("Manter a cor atual", value=True)

        if st.form_submit_button("Salvar categoria"):
            fields = {}
            if name.strip():
                fields['name'] = name
            if not keep_color:
                fields['color'] = color
            try:
                updated = db_manager.update_category(category.id, user_id, CategoryUpdate(**fields))
            except ValueError as e:
                st.error(f"Dados inválidos: {e}")
            except LedgerError as e:
                st.error(str(e))
            else:
                if updated:
                    st.rerun()
                st.error("Categoria não encontrada")


if __name__ == "__main__":
    main()
