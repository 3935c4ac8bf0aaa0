"""Application settings loaded from the environment."""

import os
import tempfile
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


@dataclass
class AppSettings:
    """Application-wide settings."""

    db_path: str = "ledger.db"
    ocr_language: str = "por"
    temp_dir: Optional[str] = None
    log_level: str = "INFO"
    log_file: str = "ledger.log"
    user_id: int = 1

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "AppSettings":
        """Load settings from environment variables (and a .env file if present)."""
        load_dotenv(dotenv_path)

        return cls(
            db_path=os.getenv("LEDGER_DB_PATH", cls.db_path),
            ocr_language=os.getenv("LEDGER_OCR_LANGUAGE", cls.ocr_language),
            temp_dir=os.getenv("LEDGER_TEMP_DIR") or tempfile.gettempdir(),
            log_level=os.getenv("LEDGER_LOG_LEVEL", cls.log_level).upper(),
            log_file=os.getenv("LEDGER_LOG_FILE", cls.log_file),
            user_id=int(os.getenv("LEDGER_USER_ID", str(cls.user_id))),
        )
