"""
Receipt processing and data extraction for the finance ledger.
Runs OCR on receipt photos and turns the recognized text into a draft transaction.
"""

import os
import io
import re
import asyncio
import cv2
import numpy as np
import pytesseract
import logging
import tempfile
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Union
from pathlib import Path
from PIL import Image

from .exceptions import ExtractionFailure
from .models import ExtractionResult, TransactionType

logger = logging.getLogger(__name__)

# Brazilian format: "." groups thousands, "," separates cents (1.234,56)
NUMBER = r'(?:\d{1,3}(?:\.\d{3})+|\d+)(?:,\d{2})?'
# Without a currency or keyword anchor only money-shaped numbers count: a
# decimal comma or thousands groups. Plain digit runs are IDs and codes.
BARE_NUMBER = r'(?:\d{1,3}(?:\.\d{3})+(?:,\d{2})?|\d+,\d{2})'


class ReceiptExtractor:
    """Extracts value, description and type from receipt images."""

    SUPPORTED_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.bmp', '.tiff', '.tif', '.webp'}

    # Scanned in order; every match of every pattern is a candidate
    VALUE_PATTERNS = [
        rf'R\$\s*({NUMBER})',  # R$ 12,34
        rf'({NUMBER})\s*R\$',  # 12,34 R$
        rf'\btotal[:\s]*(?:R\$)?\s*({NUMBER})',  # Total: R$ 12,34
        rf'\bvalor[:\s]*(?:R\$)?\s*({NUMBER})',  # Valor: 12,34
        rf'(?<![\d.,])({BARE_NUMBER})(?!\d|[.,]\d)',  # bare 12,34 or 1.234
    ]

    # Dates and times look like amounts to the bare pattern
    NOISE_PATTERNS = [
        r'\b\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}\b',  # 15/03/2024
        r'\b\d{4}-\d{1,2}-\d{1,2}\b',  # 2024-03-15
        r'\b\d{1,2}:\d{2}(?::\d{2})?\b',  # 10:30:00
    ]

    MONEY_STRIP_PATTERNS = [
        rf'R\$\s*{NUMBER}',
        NUMBER,
    ]

    MAX_VALUE = Decimal('1000000')

    DESCRIPTION_KEYWORDS = [
        'compra', 'pagamento', 'nota fiscal', 'cupom fiscal',
        'produto', 'item', 'servico', 'serviço', 'mercado', 'supermercado',
        'restaurante', 'combustivel', 'combustível', 'farmacia', 'farmácia',
    ]

    INCOME_KEYWORDS = [
        'deposito', 'depósito', 'transferencia', 'transferência',
        'recebido', 'pagamento recebido',
    ]

    DEFAULT_DESCRIPTION = 'Compra identificada'
    MAX_DESCRIPTION_LENGTH = 100

    CONFIDENCE_WITH_VALUE = 0.8
    CONFIDENCE_WITHOUT_VALUE = 0.5

    SHARPEN_KERNEL = np.array([[0, -1, 0], [-1, 5, -1], [0, -1, 0]], dtype=np.float32)

    def __init__(self, language: str = 'por', temp_dir: Optional[str] = None):
        """Initialize the extractor.

        Args:
            language: Tesseract language code used for recognition
            temp_dir: Directory for the temporary normalized image
        """
        self.logger = logger
        self.language = language
        self.temp_dir = temp_dir

        try:
            pytesseract.get_tesseract_version()
            self.tesseract_available = True
            self.logger.info("Tesseract OCR is available")
        except (pytesseract.TesseractNotFoundError, OSError) as e:
            self.tesseract_available = False
            self.logger.warning(f"Tesseract OCR not available: {e}")

    def is_supported(self, filename: str) -> bool:
        """Check whether a file name has an image extension we accept."""
        return Path(filename).suffix.lower() in self.SUPPORTED_EXTENSIONS

    def process_receipt(self, image_bytes: bytes) -> ExtractionResult:
        """Run OCR on a receipt photo and extract a draft transaction.

        Args:
            image_bytes: Raw image content (JPEG, PNG, ...)

        Returns:
            ExtractionResult with the recognized text and extracted fields

        Raises:
            ExtractionFailure: If the image cannot be read or the OCR engine fails
        """
        if not self.tesseract_available:
            raise ExtractionFailure("OCR not available - Tesseract not installed")

        start_time = datetime.now()

        try:
            image = Image.open(io.BytesIO(image_bytes))
            image.load()
        except (OSError, ValueError) as e:
            self.logger.error(f"Could not read image: {e}")
            raise ExtractionFailure(f"Could not read image: {e}") from e

        artifact_path = None
        try:
            artifact_path = self._normalize_image(image)
            text = self._recognize(artifact_path or image)
        finally:
            if artifact_path:
                self._remove_artifact(artifact_path)

        result = self.extract(text)

        processing_time = (datetime.now() - start_time).total_seconds()
        self.logger.info(
            f"Processed receipt in {processing_time:.2f} seconds "
            f"(value={result.value}, type={result.type.value})"
        )
        return result

    async def process_receipt_async(self, image_bytes: bytes) -> ExtractionResult:
        """Run process_receipt in a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.process_receipt, image_bytes)

    def extract(self, text: str) -> ExtractionResult:
        """Apply the extraction heuristics to already recognized text."""
        text = text or ''
        value = self.extract_value(text)
        return ExtractionResult(
            raw_text=text,
            value=value,
            description=self.extract_description(text),
            type=self.classify_type(text),
            confidence=self.compute_confidence(value),
        )

    def extract_value(self, text: str) -> Optional[Decimal]:
        """Find the largest plausible monetary value in the text.

        Args:
            text: Raw OCR text

        Returns:
            The maximum value below one million, or None if nothing usable was found
        """
        if not text:
            return None

        cleaned = text
        for pattern in self.NOISE_PATTERNS:
            cleaned = re.sub(pattern, ' ', cleaned)

        candidates = []
        for pattern in self.VALUE_PATTERNS:
            for match in re.findall(pattern, cleaned, re.IGNORECASE):
                value = self._parse_brazilian_number(match)
                if value is not None and value < self.MAX_VALUE:
                    candidates.append(value)

        if not candidates:
            return None

        best = max(candidates)
        return best if best > 0 else None

    def extract_description(self, text: str) -> str:
        """Build a short description from the non-monetary lines of the text."""
        if not text:
            return self.DEFAULT_DESCRIPTION

        stripped = text
        for pattern in self.MONEY_STRIP_PATTERNS:
            stripped = re.sub(pattern, '', stripped, flags=re.IGNORECASE)

        relevant = []
        for line in stripped.split('\n'):
            line = line.strip()
            lowered = line.lower()
            if len(line) <= 5:
                continue
            if any(keyword in lowered for keyword in self.DESCRIPTION_KEYWORDS) or len(line) > 10:
                relevant.append(' '.join(line.split()))

        description = ' '.join(relevant[:3]).strip()
        if description:
            return description[:self.MAX_DESCRIPTION_LENGTH]

        words = [word for word in text.split() if len(word) > 3][:5]
        return ' '.join(words) or self.DEFAULT_DESCRIPTION

    def classify_type(self, text: str) -> TransactionType:
        """Guess whether the document records income or an expense.

        Receipts are expenses unless a deposit/transfer keyword shows up.
        """
        lowered = (text or '').lower()
        if any(keyword in lowered for keyword in self.INCOME_KEYWORDS):
            return TransactionType.INCOME
        return TransactionType.EXPENSE

    def compute_confidence(self, value: Optional[Decimal]) -> float:
        return self.CONFIDENCE_WITH_VALUE if value is not None else self.CONFIDENCE_WITHOUT_VALUE

    def _parse_brazilian_number(self, raw: str) -> Optional[Decimal]:
        """Convert "1.234,56" to Decimal("1234.56")."""
        normalized = raw.replace(' ', '').replace('.', '').replace(',', '.')
        try:
            return Decimal(normalized)
        except InvalidOperation:
            return None

    def _normalize_image(self, image: Image.Image) -> Optional[str]:
        """Write a greyscale, contrast-normalized, sharpened copy of the image.

        Args:
            image: Decoded receipt image

        Returns:
            Path of the temporary PNG, or None if normalization failed
        """
        path = None
        try:
            rgb = np.array(image.convert('RGB'))
            gray = cv2.cvtColor(rgb, cv2.COLOR_RGB2GRAY)
            normalized = cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX)
            sharpened = cv2.filter2D(normalized, -1, self.SHARPEN_KERNEL)

            fd, path = tempfile.mkstemp(prefix='receipt-', suffix='.png', dir=self.temp_dir)
            os.close(fd)
            if not cv2.imwrite(path, sharpened):
                raise OSError(f"Could not write normalized image to {path}")
            return path

        except Exception as e:
            self.logger.warning(f"Image normalization failed, using original: {str(e)}")
            if path:
                self._remove_artifact(path)
            return None

    def _recognize(self, source: Union[str, Image.Image]) -> str:
        """Run Tesseract on an image path or PIL image."""
        try:
            text = pytesseract.image_to_string(source, lang=self.language)
        except (pytesseract.TesseractError, OSError, RuntimeError) as e:
            self.logger.error(f"OCR engine failed: {str(e)}")
            raise ExtractionFailure(f"OCR engine failed: {str(e)}") from e

        self.logger.debug(f"Recognized text: {text[:200]!r}")
        return text

    def _remove_artifact(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.error(f"Failed to delete temporary image {path}: {str(e)}")
