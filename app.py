"""
Personal Finance Ledger - Main Entry Point
Receipt upload and monthly bookkeeping using Streamlit.
"""

import streamlit as st
import sys
import logging
from pathlib import Path

# Add src directory to Python path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from ledger.config import AppSettings
from ledger.database import DatabaseManager
from ledger.parsing import ReceiptExtractor
from ui.components import setup_sidebar, display_upload_section

settings = AppSettings.from_env()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(settings.log_file),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)


def initialize_app():
    """Initialize the application and database."""
    try:
        if 'settings' not in st.session_state:
            st.session_state.settings = settings

        if 'db_manager' not in st.session_state:
            db_manager = DatabaseManager(settings.db_path)
            db_manager.initialize_database()
            st.session_state.db_manager = db_manager

        if 'extractor' not in st.session_state:
            st.session_state.extractor = ReceiptExtractor(
                language=settings.ocr_language,
                temp_dir=settings.temp_dir,
            )

        if 'processed_files' not in st.session_state:
            st.session_state.processed_files = []

        logger.info("Application initialized successfully")

    except Exception as e:
        logger.error(f"Failed to initialize application: {str(e)}")
        st.error(f"Falha ao iniciar a aplicação: {str(e)}")
        st.stop()


def main():
    """Main application function."""
    st.set_page_config(
        page_title="Finanças Pessoais",
        page_icon="💰",
        layout="wide",
        initial_sidebar_state="expanded"
    )

    initialize_app()

    st.title("💰 Finanças Pessoais")
    st.markdown("---")

    col1, col2 = st.columns([2, 1])

    with col1:
        st.markdown("""
        ## Controle de receitas e despesas

        Envie a foto de um comprovante e o valor, a descrição e o tipo da
        transação são preenchidos automaticamente. Revise os dados e salve.
        """)

    with col2:
        if not st.session_state.extractor.tesseract_available:
            st.warning("Tesseract não encontrado: a leitura de comprovantes está desativada.")
        st.info("""
        **Como usar:**
        1. Envie as fotos dos comprovantes
        2. Revise o que foi extraído
        3. Acompanhe o mês no Dashboard
        """)

    setup_sidebar()

    display_upload_section()

    if st.session_state.processed_files:
        st.markdown("---")
        st.subheader("📈 Atividade recente")

        recent_files = st.session_state.processed_files[-5:]
        for file_info in reversed(recent_files):
            with st.expander(f"📁 {file_info['filename']} - {file_info['status']}"):
                col1, col2 = st.columns(2)
                with col1:
                    st.write(f"**Processado:** {file_info['timestamp']}")
                with col2:
                    st.write(f"**Tamanho:** {file_info.get('size', 'N/A')}")

                if 'error' in file_info:
                    st.error(file_info['error'])
                if 'extracted_data' in file_info:
                    st.json(file_info['extracted_data'])


if __name__ == "__main__":
    main()
