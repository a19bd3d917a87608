# src/device_spec_analyzer/application/tfidf.py

import logging
import math
import re
from collections import Counter
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by", "from",
    "this", "that", "these", "those", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could", "should", "may",
    "might", "can", "shall", "must", "a", "an", "as", "if", "then", "than", "when", "where",
    "while", "how", "what", "which", "who", "whom", "whose", "why", "so", "up", "out", "off",
    "over", "under", "again", "further", "once",
})

TECHNICAL_TERMS = (
    "POCT1A", "ASTM", "HL7", "TCP", "IP", "UDP", "Serial", "RS232", "RS485", "Ethernet", "USB",
    "Message", "Header", "Field", "Record", "Frame", "ACK", "NAK", "ENQ", "EOT", "STX", "ETX",
    "LF", "CR", "CRLF", "ASCII", "Unicode", "UTF8", "XML", "JSON", "CSV", "Protocol",
    "Communication", "Interface", "Device", "Analyzer", "Laboratory", "Patient", "Result",
    "Order", "Observation", "Segment", "Component", "Value", "Units", "Reference", "Range",
    "Normal", "Abnormal", "Critical", "Panic", "High", "Low", "Positive", "Negative",
    "Calibration", "Quality", "Control", "QC", "Error", "Status", "Code", "ID", "Name", "Date",
    "Time", "Timestamp", "Version", "Manufacturer", "Model", "Software", "Hardware",
)

# 소문자 -> 표기 형태 ("astm" -> "ASTM")
_CANONICAL_TERMS = {term.lower(): term for term in TECHNICAL_TERMS}

_WORD_PATTERN = re.compile(r"\b[a-zA-Z][a-zA-Z0-9]*\b")

# 어휘에 남길 문서 빈도 비율 범위
MIN_DOCUMENT_FREQUENCY_RATIO = 0.05
MAX_DOCUMENT_FREQUENCY_RATIO = 0.8
MIN_TERM_LENGTH = 3


def is_technical_term(term: str) -> bool:
    return term.lower() in _CANONICAL_TERMS


class TfIdfVectorizer:
    """
    텍스트를 희소 term -> weight 맵으로 바꾸는 벡터라이저.

    용어 추출 규칙:
      - 소문자로 바꾼 뒤 영문자로 시작하는 단어만 취합니다.
      - 두 글자 미만, 불용어, 숫자로만 된 용어는 버립니다.
      - 기술 용어는 정해진 표기(예: "ASTM")로 맞춥니다.
    """

    def extract_terms(self, text: Optional[str]) -> List[str]:
        if not text or not text.strip():
            return []

        terms = []
        for match in _WORD_PATTERN.finditer(text.lower()):
            term = match.group(0)
            if len(term) < 2 or term in STOP_WORDS or term.isdigit():
                continue
            terms.append(_CANONICAL_TERMS.get(term, term))
        return terms

    def get_term_frequency(self, text: Optional[str]) -> Dict[str, int]:
        return dict(Counter(self.extract_terms(text)))

    def create_vector(self, text: Optional[str], vocabulary: Optional[Iterable[str]] = None) -> Dict[str, float]:
        """
        텍스트의 term-frequency 벡터를 만듭니다 (용어 수 / 전체 용어 수).

        Args:
            text: 벡터화할 텍스트.
            vocabulary: 주어지면 벡터의 키를 이 어휘로 제한하고, 텍스트에 없는 용어는 0.0 으로 채웁니다.

        Returns:
            term -> tf 딕셔너리.
        """
        frequencies = self.get_term_frequency(text)
        total_terms = sum(frequencies.values())

        if vocabulary is None:
            return {term: count / total_terms for term, count in frequencies.items()}

        vector = {}
        for term in vocabulary:
            count = frequencies.get(term)
            vector[term] = count / total_terms if count else 0.0
        return vector

    def extract_vocabulary(self, documents: Iterable[str]) -> List[str]:
        """
        코퍼스에서 어휘를 추출합니다.

        기술 용어이거나, 문서 빈도 비율이 [0.05, 0.8] 안에 있고 길이가 3 이상인 용어만 남깁니다.
        결과는 정렬되어 있어 문서 순서와 무관하게 같습니다.
        """
        documents = list(documents)
        document_frequency: Counter = Counter()
        for document in documents:
            document_frequency.update(set(self.extract_terms(document)))

        document_count = len(documents)
        vocabulary = []
        for term, frequency in document_frequency.items():
            ratio = frequency / document_count
            if is_technical_term(term) or (
                MIN_DOCUMENT_FREQUENCY_RATIO <= ratio <= MAX_DOCUMENT_FREQUENCY_RATIO
                and len(term) >= MIN_TERM_LENGTH
            ):
                vocabulary.append(term)

        return sorted(vocabulary)

    def calculate_tfidf(self, text: str, corpus: Iterable[str]) -> Dict[str, float]:
        """
        코퍼스 기준 TF-IDF 가중치를 계산합니다.

        문서 수에는 text 자신이 포함되며, idf = ln(N / df) 입니다. 가중치가 0 인 용어는 제외됩니다.
        """
        all_documents = list(corpus) + [text]
        document_count = len(all_documents)

        document_frequency: Counter = Counter()
        for document in all_documents:
            document_frequency.update(set(self.extract_terms(document)))

        frequencies = self.get_term_frequency(text)
        total_terms = sum(frequencies.values())

        weights = {}
        for term, count in frequencies.items():
            tf = count / total_terms
            idf = math.log(document_count / document_frequency.get(term, 1))
            weight = tf * idf
            if weight > 0:
                weights[term] = weight

        logger.debug(f"TF-IDF computed over {document_count} documents: {len(weights)} weighted terms")
        return weights
