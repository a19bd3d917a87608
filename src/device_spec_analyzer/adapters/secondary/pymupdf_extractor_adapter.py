# src/device_spec_analyzer/adapters/secondary/pymupdf_extractor_adapter.py

import logging
import os
import re
from collections import Counter
from typing import Any, BinaryIO, Dict, List, Union

import fitz  # PyMuPDF

from device_spec_analyzer.domain.models import PageContent, PdfExtractionResult
from device_spec_analyzer.ports.output_ports import PdfTextExtractionPort

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"  # 0x25 0x50 0x44 0x46

_WORD_PATTERN = re.compile(r"\b\w+\b")
_PROTOCOL_KEYWORD_PATTERN = re.compile(
    r"\b(?:POCT1?-?A|ASTM|HL7|TCP|IP|UDP|Serial|RS232|Ethernet|Message|Header|Field|Record|Frame"
    r"|ACK|NAK|ENQ|EOT|STX|ETX|LF|CR)\b",
    re.IGNORECASE,
)
_COMMON_WORDS = frozenset({
    "THE", "AND", "OR", "BUT", "IN", "ON", "AT", "TO", "FOR", "OF", "WITH", "BY", "FROM", "THIS", "THAT",
    "IS", "ARE", "WAS", "WERE", "BE", "BEEN", "BEING", "HAVE", "HAS", "HAD", "DO", "DOES", "DID", "WILL",
    "WOULD", "COULD", "SHOULD", "MAY", "MIGHT", "CAN", "SHALL",
})
MAX_FREQUENT_WORDS = 20

# PyMuPDF 메타데이터 키 -> 결과 메타데이터 키
_METADATA_KEYS = (
    ("title", "Title"),
    ("author", "Author"),
    ("subject", "Subject"),
    ("creator", "Creator"),
    ("producer", "Producer"),
    ("creationDate", "CreationDate"),
    ("modDate", "ModifiedDate"),
)


# --- 어댑터 특정 예외 정의 ---
class PdfExtractionError(Exception):
    """Represents an error while reading a PDF with PyMuPDF."""
    pass


def clean_text(text: str) -> str:
    """줄바꿈 정규화, 탭 -> 공백, 각 줄 trim, 빈 줄 제거, 연속 공백 축약."""
    if not text or not text.strip():
        return ""
    cleaned = text.replace("\r\n", "\n").replace("\r", "\n").replace("\t", " ")
    lines = [re.sub(r"\s+", " ", line.strip()) for line in cleaned.split("\n")]
    return "\n".join(line for line in lines if line)


def count_words(text: str) -> int:
    if not text or not text.strip():
        return 0
    return len(_WORD_PATTERN.findall(text))


def extract_keywords(text: str) -> List[str]:
    """
    페이지 키워드: 프로토콜 용어(대문자, 중복 제거) 다음에
    두 번 이상 등장한 4글자 이상 단어 중 빈도 상위 20개.
    """
    if not text or not text.strip():
        return []

    keywords: List[str] = []
    for match in _PROTOCOL_KEYWORD_PATTERN.finditer(text):
        keyword = match.group(0).upper()
        if keyword not in keywords:
            keywords.append(keyword)

    words = Counter(
        word for word in _WORD_PATTERN.findall(text.upper())
        if len(word) > 3 and word not in _COMMON_WORDS
    )
    frequent = [word for word, count in words.most_common() if count > 1][:MAX_FREQUENT_WORDS]
    for word in frequent:
        if word not in keywords:
            keywords.append(word)
    return keywords


class PyMuPdfExtractorAdapter(PdfTextExtractionPort):
    """
    PyMuPDF(fitz)를 이용해 PDF에서 페이지별 텍스트를 추출하는 어댑터.

    라이브러리 오류는 PdfExtractionError 로 감싼 뒤 실패 결과로 변환되며,
    호출자에게 예외를 던지지 않습니다.
    """

    def __init__(self):
        logger.info("PyMuPdfExtractorAdapter initialized.")

    def extract_text(self, source: Union[str, bytes, BinaryIO]) -> PdfExtractionResult:
        try:
            pdf_document = self._open(source)
        except PdfExtractionError as e:
            logger.error(f"PDF extraction failed: {e}")
            return PdfExtractionResult(success=False, error_message=str(e))

        try:
            with pdf_document:
                pages = []
                for page_index in range(len(pdf_document)):
                    page = pdf_document.load_page(page_index)
                    page_text = clean_text(page.get_text("text"))
                    pages.append(PageContent(
                        page_number=page_index + 1,
                        text=page_text,
                        word_count=count_words(page_text),
                        keywords=extract_keywords(page_text),
                    ))

                full_text = "".join(page.text + "\n" for page in pages)
                result = PdfExtractionResult(
                    success=True,
                    extracted_text=full_text,
                    page_count=len(pdf_document),
                    word_count=count_words(full_text),
                    pages=pages,
                    metadata=self._metadata(pdf_document),
                )
        except Exception as e:
            logger.error(f"PDF extraction failed: {e}")
            return PdfExtractionResult(success=False, error_message=str(e))

        logger.info(f"Extracted {result.page_count} pages, {result.word_count} words from PDF")
        return result

    def is_pdf_file(self, file_path: str) -> bool:
        if not os.path.isfile(file_path):
            return False
        if os.path.splitext(file_path)[1].lower() != ".pdf":
            return False
        try:
            with open(file_path, "rb") as f:
                return f.read(len(PDF_MAGIC)) == PDF_MAGIC
        except OSError as e:
            logger.warning(f"Could not read PDF header of {file_path}: {e}")
            return False

    def is_pdf_valid(self, file_path: str) -> bool:
        if not self.is_pdf_file(file_path):
            return False
        try:
            with fitz.open(file_path) as pdf_document:
                if len(pdf_document) == 0:
                    return False
                pdf_document.load_page(0)
            return True
        except Exception as e:
            logger.warning(f"PDF validation failed for {file_path}: {e}")
            return False

    @staticmethod
    def _open(source: Union[str, bytes, BinaryIO]) -> "fitz.Document":
        try:
            if isinstance(source, (str, os.PathLike)):
                if not os.path.isfile(source):
                    raise PdfExtractionError("File not found")
                return fitz.open(source)
            if isinstance(source, (bytes, bytearray)):
                return fitz.open(stream=bytes(source), filetype="pdf")
            if hasattr(source, "read"):
                return fitz.open(stream=source.read(), filetype="pdf")
        except PdfExtractionError:
            raise
        except Exception as e:
            raise PdfExtractionError(f"Cannot open PDF: {e}") from e
        raise PdfExtractionError(f"Unsupported PDF source type: {type(source).__name__}")

    @staticmethod
    def _metadata(pdf_document: "fitz.Document") -> Dict[str, Any]:
        metadata: Dict[str, Any] = {}
        info = pdf_document.metadata or {}
        for source_key, target_key in _METADATA_KEYS:
            value = info.get(source_key)
            if value:
                metadata[target_key] = value
        metadata["PageCount"] = len(pdf_document)
        metadata["Version"] = info.get("format") or "PDF"
        return metadata
