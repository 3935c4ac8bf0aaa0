"""
Savings goals page for the finance ledger application.
"""

import streamlit as st
import logging
from datetime import date, timedelta
from decimal import Decimal
import sys
from pathlib import Path

# Add src directory to path
src_path = Path(__file__).parent.parent
sys.path.insert(0, str(src_path))

from ledger.exceptions import LedgerError
from ledger.models import GoalStatus, SavingsGoalCreate, SavingsGoalUpdate
from ui.components import format_currency

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    GoalStatus.ACTIVE: "Ativa",
    GoalStatus.COMPLETED: "Concluída",
    GoalStatus.CANCELLED: "Cancelada",
}


def main():
    """Main function for the Goals page."""
    st.set_page_config(
        page_title="Metas - Finanças Pessoais",
        page_icon="🎯",
        layout="wide"
    )

    st.title("🎯 Metas de economia")

    if 'db_manager' not in st.session_state:
        st.error("Banco de dados não iniciado. Volte para a página inicial.")
        return

    db_manager = st.session_state.db_manager
    user_id = st.session_state.settings.user_id

    with st.sidebar:
        st.header("🔍 Filtros")
        status_filter = st.selectbox(
            "Situação",
            options=[None] + list(GoalStatus),
            format_func=lambda s: STATUS_LABELS[s] if s else "Todas",
        )

    with st.expander("➕ Nova meta", expanded=False):
        with st.form("add_goal", clear_on_submit=True):
            title = st.text_input("Título")
            description = st.text_area("Descrição")
            col1, col2, col3 = st.columns(3)
            with col1:
                target = st.number_input("Valor alvo (R$)", min_value=0.0, step=10.0, format="%.2f")
            with col2:
                start_date = st.date_input("Início", value=date.today())
            with col3:
                end_date = st.date_input("Fim", value=date.today() + timedelta(days=180))

            if st.form_submit_button("💾 Criar meta", type="primary"):
                try:
                    goal_id = db_manager.add_goal(user_id, SavingsGoalCreate(
                        title=title,
                        description=description or None,
                        target_amount=Decimal(str(target)),
                        start_date=start_date,
                        end_date=end_date,
                    ))
                except ValueError as e:
                    st.error(f"Dados inválidos: {e}")
                except LedgerError as e:
                    st.error(str(e))
                else:
                    st.success(f"✅ Meta #{goal_id} criada")
                    st.rerun()

    goals = db_manager.list_goals(user_id, status_filter)
    if not goals:
        st.info("Nenhuma meta cadastrada.")
        return

    for goal in goals:
        with st.container(border=True):
            col1, col2 = st.columns([3, 1])
            with col1:
                st.subheader(goal.title)
                if goal.description:
                    st.caption(goal.description)
                st.progress(min(goal.progress, 100.0) / 100)
                st.write(
                    f"{format_currency(goal.current_amount)} de {format_currency(goal.target_amount)} "
                    f"({goal.progress:.1f}%) · até {goal.end_date.strftime('%d/%m/%Y')}"
                )
            with col2:
                st.metric("Situação", STATUS_LABELS[goal.status])

            if goal.status == GoalStatus.ACTIVE:
                with st.form(f"contribute_{goal.id}", clear_on_submit=True):
                    col1, col2 = st.columns([3, 1])
                    with col1:
                        amount = st.number_input(
                            "Adicionar valor (R$)", min_value=0.0, step=10.0, format="%.2f",
                            key=f"contribution_{goal.id}",
                        )
                    with col2:
                        contribute = st.form_submit_button("➕ Adicionar")

                    if contribute:
                        try:
                            updated = db_manager.contribute_to_goal(goal.id, user_id, Decimal(str(amount)))
                        except (ValueError, LedgerError) as e:
                            st.error(str(e))
                        else:
                            if updated.status == GoalStatus.COMPLETED:
                                st.balloons()
                            st.rerun()

            display_goal_editor(db_manager, user_id, goal)


def display_goal_editor(db_manager, user_id: int, goal):
    """Edit, cancel, reopen or delete a goal in any status."""
    with st.expander("✏️ Editar meta"):
        with st.form(f"edit_goal_{goal.id}"):
            title = st.text_input("Título", value=goal.title, key=f"title_{goal.id}")
            col1, col2, col3 = st.columns(3)
            with col1:
                target = st.number_input(
                    "Valor alvo (R$)",
                    value=float(goal.target_amount),
                    min_value=0.01,
                    step=10.0,
                    format="%.2f",
                    key=f"target_{goal.id}",
                )
            with col2:
                end_date = st.date_input("Fim", value=goal.end_date, key=f"end_{goal.id}")
            with col3:
                statuses = list(GoalStatus)
                status = st.selectbox(
                    "Situação",
                    statuses,
                    index=statuses.index(goal.status),
                    format_func=lambda s: STATUS_LABELS[s],
                    key=f"status_{goal.id}",
                )

            col1, col2 = st.columns(2)
            with col1:
                save = st.form_submit_button("💾 Salvar")
            with col2:
                delete = st.form_submit_button("🗑️ Excluir meta")

            if save:
                try:
                    db_manager.update_goal(goal.id, user_id, SavingsGoalUpdate(
                        title=title,
                        target_amount=Decimal(str(target)),
                        end_date=end_date,
                        status=status,
                    ))
                except (ValueError, LedgerError) as e:
                    st.error(str(e))
                else:
                    st.success("✅ Meta atualizada")
                    st.rerun()
            elif delete:
                db_manager.delete_goal(goal.id, user_id)
                logger.info(f"Deleted goal {goal.id}")
                st.rerun()


if __name__ == "__main__":
    main()
