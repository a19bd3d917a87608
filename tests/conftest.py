# tests/conftest.py

from pathlib import Path
from typing import Sequence
from unittest.mock import MagicMock

import fitz  # PyMuPDF
import pytest

from device_spec_analyzer.adapters.secondary.in_memory_repository_adapter import InMemoryDocumentRepository
from device_spec_analyzer.domain.models import PageContent, PdfExtractionResult


POCT1A_SPEC_TEXT = """POCT1-A version 2.0 Connectivity Specification
Message format: HEL.R01
HEL.R01 description: Device hello message sent when a session opens
Field control_id (Integer): Unique message identifier
Field device_id: Device MAC address
The device communicates with the data manager over TCP/IP using port 5000.
"""

ASTM_SPEC_TEXT = """ASTM E1394-97 Laboratory Interface
Record format overview for the analyzer.
1. Header Record
H Record format defines the sender name. The header carries delimiters.
2. Result Record
R Record structure holds the analyte and value.
Serial link runs at 9600 baud.
"""

UNKNOWN_TEXT = "Quarterly gardening newsletter about tomatoes and roses in the greenhouse."


def make_pdf(path: Path, pages: Sequence[str]) -> Path:
    """주어진 페이지 텍스트로 실제 PDF 파일을 만든다."""
    document = fitz.open()
    for text in pages:
        page = document.new_page()
        page.insert_text((72, 72), text, fontsize=10)
    document.save(str(path))
    document.close()
    return path


def extraction_of(text: str, page_keywords: Sequence[str] = ()) -> PdfExtractionResult:
    return PdfExtractionResult(
        success=True,
        extracted_text=text,
        page_count=1,
        word_count=len(text.split()),
        pages=[PageContent(page_number=1, text=text, word_count=len(text.split()), keywords=list(page_keywords))],
    )


# ---------------------------------------------------------------------------
# FIXTURES
# ---------------------------------------------------------------------------


@pytest.fixture
def repository():
    return InMemoryDocumentRepository()


@pytest.fixture
def mock_extractor():
    """Extractor port mock that accepts every file and returns POCT1-A spec text."""
    extractor = MagicMock()
    extractor.is_pdf_file.return_value = True
    extractor.is_pdf_valid.return_value = True
    extractor.extract_text.return_value = extraction_of(POCT1A_SPEC_TEXT)
    return extractor


@pytest.fixture
def pdf_file(tmp_path):
    return make_pdf(tmp_path / "spec.pdf", [POCT1A_SPEC_TEXT, "Appendix\nExample HEL.R01 message"])
