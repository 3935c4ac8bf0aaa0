"""
UI components for the finance ledger application.
Provides reusable interface elements for receipt upload, month selection and data display.
"""

import streamlit as st
import logging
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List, Dict, Any, Tuple
from pathlib import Path
from uuid import uuid4

from ledger.algorithms import AnalyticsEngine
from ledger.exceptions import LedgerError, ExtractionFailure
from ledger.models import (
    ExtractionResult, MonthSelector, TransactionCreate, TransactionType,
)

logger = logging.getLogger(__name__)

MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10MB

MONTH_NAMES = [
    "Janeiro", "Fevereiro", "Março", "Abril", "Maio", "Junho",
    "Julho", "Agosto", "Setembro", "Outubro", "Novembro", "Dezembro",
]

TYPE_LABELS = {
    TransactionType.INCOME: "Receita",
    TransactionType.EXPENSE: "Despesa",
}


def format_currency(amount: Optional[Decimal]) -> str:
    """Format an amount as Brazilian reais (R$ 1.234,56)."""
    if amount is None:
        return "-"
    formatted = f"{Decimal(amount):,.2f}"
    return "R$ " + formatted.replace(",", "_").replace(".", ",").replace("_", ".")


def setup_sidebar():
    """Setup the main sidebar with the current month's figures."""
    with st.sidebar:
        st.header("💰 Finanças Pessoais")

        if 'db_manager' in st.session_state:
            try:
                today = date.today()
                engine = AnalyticsEngine(st.session_state.db_manager)
                summary = engine.period_summary(
                    st.session_state.settings.user_id,
                    MonthSelector(mes=today.month, ano=today.year),
                )

                st.markdown("---")
                st.subheader(f"📊 {MONTH_NAMES[today.month - 1]}/{today.year}")
                st.metric("Receitas", format_currency(summary.total_income))
                st.metric("Despesas", format_currency(summary.total_expense))
                st.metric("Saldo", format_currency(summary.net_balance))

            except LedgerError as e:
                logger.error(f"Error loading sidebar stats: {e}")
                st.error("Erro ao carregar o resumo do mês")

        st.markdown("---")

        st.markdown("""
        ### 📍 Navegação
        - **Início**: Enviar comprovantes
        - **Transações**: Lançar e filtrar
        - **Dashboard**: Resumo mensal
        - **Metas**: Metas de economia
        - **Recorrentes**: Contas do mês
        - **Contas**: Bancos, cartões e ganho fixo
        """)

        with st.expander("❓ Dicas"):
            st.markdown("""
            **Formatos aceitos:** PNG, JPG, JPEG, BMP, TIFF, WEBP

            **Melhores resultados:**
            - Foto nítida e bem iluminada
            - Comprovante reto, sem dobras
            - Valor total visível
            """)


def display_month_selector(key: str = "month") -> MonthSelector:
    """Month/year pickers defaulting to the current month."""
    today = date.today()
    col1, col2 = st.columns(2)
    with col1:
        mes = st.selectbox(
            "Mês",
            options=list(range(1, 13)),
            index=today.month - 1,
            format_func=lambda m: MONTH_NAMES[m - 1],
            key=f"{key}_mes",
        )
    with col2:
        ano = st.number_input(
            "Ano",
            min_value=2000,
            max_value=2100,
            value=today.year,
            step=1,
            key=f"{key}_ano",
        )
    return MonthSelector(mes=mes, ano=int(ano))


def validate_file_upload(uploaded_file) -> Tuple[bool, str]:
    """Validate uploaded file for processing.

    Args:
        uploaded_file: Streamlit uploaded file object

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not uploaded_file:
        return False, "Nenhum arquivo enviado"

    if uploaded_file.size > MAX_UPLOAD_SIZE:
        return False, f"Arquivo de {uploaded_file.size:,} bytes excede o limite de 10MB"

    if not st.session_state.extractor.is_supported(uploaded_file.name):
        file_ext = Path(uploaded_file.name).suffix.lower()
        return False, f"Formato '{file_ext}' não suportado"

    return True, ""


def display_upload_section():
    """Display the receipt upload section."""
    st.subheader("📷 Enviar comprovante")

    uploaded_files = st.file_uploader(
        "Escolha as fotos dos comprovantes",
        type=['png', 'jpg', 'jpeg', 'bmp', 'tiff', 'tif', 'webp'],
        accept_multiple_files=True,
        help="O valor, a descrição e o tipo são extraídos automaticamente",
    )

    if uploaded_files:
        st.success(f"✅ {len(uploaded_files)} arquivo(s) selecionado(s)")

        if st.button("🚀 Processar", type="primary"):
            process_uploaded_files(uploaded_files)

    pending = st.session_state.get('pending_extractions', [])
    if pending:
        st.markdown("---")
        st.subheader("🔍 Revisar antes de salvar")
        for item in list(pending):
            display_review_form(item)


def process_uploaded_files(uploaded_files: List):
    """Run extraction on each upload and queue the results for review.

    Args:
        uploaded_files: List of uploaded file objects
    """
    extractor = st.session_state.extractor
    st.session_state.setdefault('pending_extractions', [])
    st.session_state.setdefault('processed_files', [])

    progress_bar = st.progress(0)
    status_text = st.empty()

    for i, uploaded_file in enumerate(uploaded_files):
        progress_bar.progress((i + 1) / len(uploaded_files))
        status_text.text(f"Processando {uploaded_file.name}... ({i + 1}/{len(uploaded_files)})")

        file_info = {
            'filename': uploaded_file.name,
            'timestamp': datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            'size': f"{uploaded_file.size} bytes",
        }

        is_valid, error = validate_file_upload(uploaded_file)
        if not is_valid:
            file_info.update(status='Failed', error=error)
            st.session_state.processed_files.append(file_info)
            continue

        try:
            result = extractor.process_receipt(uploaded_file.getvalue())
        except ExtractionFailure as e:
            logger.error(f"Error processing {uploaded_file.name}: {str(e)}")
            file_info.update(status='Failed', error=str(e))
            st.session_state.processed_files.append(file_info)
            continue

        file_info.update(status='Success', extracted_data=result.to_api_dict())
        st.session_state.processed_files.append(file_info)
        queue_extraction(st.session_state.pending_extractions, uploaded_file.name, result)

    progress_bar.empty()
    status_text.empty()


def queue_extraction(queue: List[Dict[str, Any]], filename: str,
                     result: ExtractionResult) -> Dict[str, Any]:
    """Append an extraction to the review queue under a fresh id.

    The same file may be uploaded twice, so items are keyed by id, not filename.
    """
    item = {'id': uuid4().hex, 'filename': filename, 'result': result}
    queue.append(item)
    return item


def remove_pending(queue: List[Dict[str, Any]], item_id: str) -> bool:
    """Drop the queued item with this id. Returns False if it was already gone."""
    for index, item in enumerate(queue):
        if item['id'] == item_id:
            del queue[index]
            return True
    return False


def display_review_form(item: Dict[str, Any]):
    """Editable preview of one extraction; saving creates the transaction.

    "Salvar direto" stores the extraction as read, with the first category
    of the detected type.

    Args:
        item: Queue entry with its id, filename and ExtractionResult
    """
    result: ExtractionResult = item['result']
    item_id = item['id']
    db_manager = st.session_state.db_manager
    user_id = st.session_state.settings.user_id

    st.markdown(f"**📄 {item['filename']}** (confiança: {result.confidence:.0%})")
    if result.value is None:
        st.warning("Nenhum valor encontrado; informe o valor manualmente.")

    with st.form(f"review_{item_id}"):
        col1, col2 = st.columns(2)

        with col1:
            description = st.text_input("Descrição", value=result.description, key=f"desc_{item_id}")
            amount = st.number_input(
                "Valor (R$)",
                value=float(result.value) if result.value is not None else 0.0,
                min_value=0.0,
                step=0.01,
                format="%.2f",
                key=f"amount_{item_id}",
            )
            occurred_on = st.date_input("Data", value=date.today(), key=f"date_{item_id}")

        with col2:
            types = list(TransactionType)
            tx_type = st.selectbox(
                "Tipo",
                types,
                index=types.index(result.type),
                format_func=lambda t: TYPE_LABELS[t],
                key=f"type_{item_id}",
            )
            categories = db_manager.list_categories(user_id)
            category = st.selectbox(
                "Categoria",
                [None] + categories,
                format_func=lambda c: f"{c.name} ({TYPE_LABELS[c.type]})" if c else "Sem categoria",
                key=f"category_{item_id}",
            )

        with st.expander("Texto reconhecido"):
            st.text(result.raw_text)

        col1, col2, col3 = st.columns(3)
        with col1:
            save_button = st.form_submit_button("💾 Salvar", type="primary")
        with col2:
            quick_save_button = st.form_submit_button(
                "⚡ Salvar direto", disabled=result.value is None,
            )
        with col3:
            discard_button = st.form_submit_button("🗑️ Descartar")

        if save_button:
            try:
                transaction = TransactionCreate(
                    type=tx_type,
                    description=description,
                    amount=Decimal(str(amount)),
                    occurred_on=occurred_on,
                    category_id=category.id if category else None,
                )
                transaction_id = db_manager.add_transaction(user_id, transaction)
            except ValueError as e:
                st.error(f"Dados inválidos: {e}")
            except LedgerError as e:
                logger.error(f"Error saving reviewed transaction: {str(e)}")
                display_error_message("Erro ao salvar a transação", str(e))
            else:
                remove_pending(st.session_state.pending_extractions, item_id)
                st.success(f"✅ Transação salva com ID {transaction_id}")
                st.rerun()

        elif quick_save_button:
            try:
                saved = db_manager.create_transaction_from_extraction(
                    user_id, result, occurred_on=occurred_on,
                )
            except LedgerError as e:
                logger.error(f"Error saving extraction {item['filename']}: {str(e)}")
                display_error_message("Erro ao salvar a transação", str(e))
            else:
                remove_pending(st.session_state.pending_extractions, item_id)
                if saved is not None:
                    st.success(f"✅ Transação salva com ID {saved.id}")
                st.rerun()

        elif discard_button:
            remove_pending(st.session_state.pending_extractions, item_id)
            st.rerun()


def display_error_message(error: str, details: Optional[str] = None):
    """Display formatted error message.

    Args:
        error: Main error message
        details: Optional detailed error information
    """
    st.error(f"❌ {error}")

    if details:
        with st.expander("🔍 Detalhes"):
            st.code(details, language="text")


def select_bank_and_card(banks: List, cards: List, key: str,
                         bank_id: Optional[int] = None,
                         card_id: Optional[int] = None) -> Tuple[Optional[int], Optional[int]]:
    """Optional bank and card pickers; returns the chosen ids.

    Every card is listed with its bank. A card from another bank is rejected
    when the record is saved.
    """
    bank_names = {b.id: b.name for b in banks}
    bank_options = [None] + [b.id for b in banks]
    card_options = [None] + [c.id for c in cards]
    card_labels = {c.id: f"{c.name} ({bank_names.get(c.bank_id, '?')})" for c in cards}

    chosen_bank = st.selectbox(
        "Banco",
        bank_options,
        index=bank_options.index(bank_id) if bank_id in bank_options else 0,
        format_func=lambda i: bank_names[i] if i else "Nenhum",
        key=f"bank_{key}",
    )
    chosen_card = st.selectbox(
        "Cartão",
        card_options,
        index=card_options.index(card_id) if card_id in card_options else 0,
        format_func=lambda i: card_labels[i] if i else "Nenhum",
        key=f"card_{key}",
    )
    return chosen_bank, chosen_card
