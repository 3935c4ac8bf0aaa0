"""
Accounts page for the finance ledger application.
Manages banks, their cards, and the fixed monthly income shown on the dashboard.
"""

import streamlit as st
import logging
from decimal import Decimal
import sys
from pathlib import Path

# Add src directory to path
src_path = Path(__file__).parent.parent
sys.path.insert(0, str(src_path))

from ledger.exceptions import LedgerError
from ledger.models import (
    BankCreate, BankType, CardCreate, CardType, CardUpdate, UserProfileUpdate,
)
from ui.components import format_currency

logger = logging.getLogger(__name__)

BANK_TYPE_LABELS = {
    BankType.BANK: "Banco",
    BankType.WALLET: "Carteira",
    BankType.INVESTMENT: "Investimento",
    BankType.OTHER: "Outro",
}

CARD_TYPE_LABELS = {
    CardType.CREDIT: "Crédito",
    CardType.DEBIT: "Débito",
    CardType.PREPAID: "Pré-pago",
}


def main():
    """Main function for the Accounts page."""
    st.set_page_config(
        page_title="Contas - Finanças Pessoais",
        page_icon="🏦",
        layout="wide"
    )

    st.title("🏦 Contas")

    if 'db_manager' not in st.session_state:
        st.error("Banco de dados não iniciado. Volte para a página inicial.")
        return

    db_manager = st.session_state.db_manager
    user_id = st.session_state.settings.user_id

    display_profile_section(db_manager, user_id)
    st.markdown("---")
    display_banks_section(db_manager, user_id)


def display_profile_section(db_manager, user_id: int):
    """Name and fixed monthly income."""
    profile = db_manager.get_profile(user_id)

    st.subheader("💰 Ganho fixo mensal")
    with st.form("profile"):
        col1, col2 = st.columns(2)
        with col1:
            name = st.text_input("Nome", value=profile.name or "")
        with col2:
            fixed_income = st.number_input(
                "Ganho fixo mensal (R$)",
                value=float(profile.fixed_monthly_income),
                min_value=0.0,
                step=100.0,
                format="%.2f",
            )

        if st.form_submit_button("💾 Salvar", type="primary"):
            fields = {'fixed_monthly_income': Decimal(str(fixed_income))}
            if name.strip():
                fields['name'] = name
            try:
                db_manager.update_profile(user_id, UserProfileUpdate(**fields))
            except ValueError as e:
                st.error(f"Dados inválidos: {e}")
            else:
                st.success("✅ Perfil atualizado")
                st.rerun()


def display_banks_section(db_manager, user_id: int):
    st.subheader("🏦 Bancos e cartões")

    with st.expander("➕ Novo banco", expanded=False):
        with st.form("add_bank", clear_on_submit=True):
            col1, col2 = st.columns(2)
            with col1:
                name = st.text_input("Nome")
                bank_type = st.selectbox(
                    "Tipo", list(BankType), format_func=lambda t: BANK_TYPE_LABELS[t],
                )
            with col2:
                initial_balance = st.number_input("Saldo inicial (R$)", step=100.0, format="%.2f")
                color = st.color_picker("Cor", value="#6366f1")
            notes = st.text_area("Observações")

            if st.form_submit_button("💾 Adicionar banco"):
                try:
                    db_manager.add_bank(user_id, BankCreate(
                        name=name,
                        type=bank_type,
                        initial_balance=Decimal(str(initial_balance)),
                        color=color,
                        notes=notes or None,
                    ))
                except ValueError as e:
                    st.error(f"Dados inválidos: {e}")
                else:
                    st.rerun()

    banks = db_manager.list_banks(user_id)
    if not banks:
        st.info("Nenhum banco cadastrado.")
        return

    for bank in banks:
        with st.container(border=True):
            col1, col2, col3 = st.columns([3, 2, 1])
            with col1:
                st.markdown(
                    f"<span style='color:{bank.color}'>●</span> **{bank.name}** "
                    f"({BANK_TYPE_LABELS[bank.type]})",
                    unsafe_allow_html=True,
                )
                if bank.notes:
                    st.caption(bank.notes)
            with col2:
                st.metric("Saldo atual", format_currency(bank.current_balance))
            with col3:
                if st.button("🗑️ Excluir", key=f"delete_bank_{bank.id}"):
                    try:
                        db_manager.delete_bank(bank.id, user_id)
                    except LedgerError as e:
                        st.error(str(e))
                    else:
                        st.rerun()

            display_cards(db_manager, user_id, bank)


def display_cards(db_manager, user_id: int, bank):
    """Cards of one bank, with add, toggle and delete controls."""
    for card in db_manager.list_cards(user_id, bank_id=bank.id):
        col1, col2, col3 = st.columns([3, 1, 1])
        with col1:
            limit = f" · limite {format_currency(card.credit_limit)}" if card.credit_limit is not None else ""
            due = f" · vence dia {card.due_day}" if card.due_day else ""
            status = "" if card.active else " · inativo"
            st.write(f"💳 {card.name} ({CARD_TYPE_LABELS[card.type]}){limit}{due}{status}")
        with col2:
            label = "Desativar" if card.active else "Ativar"
            if st.button(label, key=f"toggle_card_{card.id}"):
                db_manager.update_card(card.id, user_id, CardUpdate(active=not card.active))
                st.rerun()
        with col3:
            if st.button("✖", key=f"delete_card_{card.id}"):
                try:
                    db_manager.delete_card(card.id, user_id)
                except LedgerError as e:
                    st.error(str(e))
                else:
                    st.rerun()

    with st.expander("➕ Novo cartão"):
        with st.form(f"add_card_{bank.id}", clear_on_submit=True):
            col1, col2 = st.columns(2)
            with col1:
                name = st.text_input("Nome do cartão", key=f"card_name_{bank.id}")
                card_type = st.selectbox(
                    "Tipo",
                    list(CardType),
                    format_func=lambda t: CARD_TYPE_LABELS[t],
                    key=f"card_type_{bank.id}",
                )
                credit_limit = st.number_input(
                    "Limite (R$)", min_value=0.0, step=100.0, format="%.2f", key=f"card_limit_{bank.id}",
                )
            with col2:
                closing_day = st.number_input(
                    "Dia de fechamento", min_value=1, max_value=31, value=1, key=f"card_closing_{bank.id}",
                )
                due_day = st.number_input(
                    "Dia de vencimento", min_value=1, max_value=31, value=10, key=f"card_due_{bank.id}",
                )

            if st.form_submit_button("💾 Adicionar cartão"):
                try:
                    db_manager.add_card(user_id, CardCreate(
                        bank_id=bank.id,
                        name=name,
                        type=card_type,
                        credit_limit=Decimal(str(credit_limit)) if credit_limit else None,
                        closing_day=int(closing_day),
                        due_day=int(due_day),
                    ))
                except ValueError as e:
                    st.error(f"Dados inválidos: {e}")
                except LedgerError as e:
                    st.error(str(e))
                else:
                    st.rerun()


if __name__ == "__main__":
    main()
