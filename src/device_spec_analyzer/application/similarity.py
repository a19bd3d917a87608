# src/device_spec_analyzer/application/similarity.py

import logging
from typing import Dict, Iterable, List, Optional

import numpy as np

from device_spec_analyzer.application.tfidf import TfIdfVectorizer
from device_spec_analyzer.domain.models import Document, DocumentSection, SimilarityResult, TfIdfVector

logger = logging.getLogger(__name__)

COMPARISON_METHOD = "TF-IDF Cosine Similarity"

# 의미 유사도 신호에 쓰는 고정 용어 (NLP 모델이 아님)
SEMANTIC_TERMS = ("message", "field", "record", "data", "protocol", "communication", "device", "interface")

# 구조 유사도 가중치
PROTOCOL_WEIGHT = 0.5
MANUFACTURER_WEIGHT = 0.3
PAGE_WEIGHT = 0.2

MAX_VECTOR_TEXT_LENGTH = 1000


def magnitude(vector: Dict[str, float]) -> float:
    if not vector:
        return 0.0
    return float(np.linalg.norm(np.fromiter(vector.values(), dtype=float)))


def cosine_similarity(vector1: Dict[str, float], vector2: Dict[str, float]) -> float:
    """
    두 희소 벡터의 코사인 유사도. 한쪽에만 있는 키는 0 으로 취급하고,
    어느 한쪽의 크기가 0 이면 0.0 을 반환합니다.
    """
    terms = list(vector1.keys() | vector2.keys())
    if not terms:
        return 0.0

    values1 = np.array([vector1.get(term, 0.0) for term in terms], dtype=float)
    values2 = np.array([vector2.get(term, 0.0) for term in terms], dtype=float)
    norm1 = np.linalg.norm(values1)
    norm2 = np.linalg.norm(values2)
    if norm1 == 0.0 or norm2 == 0.0:
        return 0.0
    return float(np.dot(values1, values2) / (norm1 * norm2))


def _keyword_set(keywords: Optional[str]) -> set:
    if not keywords:
        return set()
    return {k.strip().lower() for k in keywords.split(",") if k.strip()}


def keyword_similarity(keywords1: Optional[str], keywords2: Optional[str]) -> float:
    """쉼표로 구분된 두 키워드 집합의 Jaccard 지수."""
    set1 = _keyword_set(keywords1)
    set2 = _keyword_set(keywords2)
    if not set1 or not set2:
        return 0.0
    return len(set1 & set2) / len(set1 | set2)


def _same(value1: Optional[str], value2: Optional[str]) -> bool:
    if value1 is None or value2 is None:
        return value1 is None and value2 is None
    return value1.lower() == value2.lower()


def structural_similarity(doc1: Document, doc2: Document) -> float:
    protocol_match = 1.0 if _same(doc1.protocol, doc2.protocol) else 0.0
    manufacturer_match = 1.0 if _same(doc1.manufacturer, doc2.manufacturer) else 0.0

    page_difference = 0
    if doc1.content is not None and doc2.content is not None:
        page_difference = abs(doc1.content.page_count - doc2.content.page_count)
    page_score = 1.0 - page_difference / 20.0 if page_difference <= 5 else 0.5

    return (protocol_match * PROTOCOL_WEIGHT
            + manufacturer_match * MANUFACTURER_WEIGHT
            + page_score * PAGE_WEIGHT)


def semantic_similarity(text1: str, text2: str) -> float:
    text1 = text1.lower()
    text2 = text2.lower()
    matches = sum(1 for term in SEMANTIC_TERMS if term in text1 and term in text2)
    return matches / len(SEMANTIC_TERMS)


def matched_sections(sections1: List[DocumentSection], sections2: List[DocumentSection]) -> Optional[str]:
    if not sections1 or not sections2:
        return None
    other_types = {section.section_type for section in sections2}
    common = []
    for section in sections1:
        if section.section_type in other_types and section.section_type.value not in common:
            common.append(section.section_type.value)
    return ", ".join(common) if common else None


class SimilarityCalculator:
    """
    문서 쌍의 유사도를 계산하는 서비스.

    overall 점수는 두 텍스트로 만든 어휘 위의 TF 벡터 코사인 유사도이고,
    키워드/구조/의미 유사도는 별도로 계산되어 같은 결과에 담깁니다.
    """

    def __init__(self, vectorizer: Optional[TfIdfVectorizer] = None):
        self._vectorizer = vectorizer or TfIdfVectorizer()

    def calculate_cosine_similarity(self, text1: Optional[str], text2: Optional[str]) -> float:
        if not text1 or not text1.strip() or not text2 or not text2.strip():
            return 0.0

        try:
            vocabulary = self._vectorizer.extract_vocabulary([text1, text2])
            vector1 = self._vectorizer.create_vector(text1, vocabulary)
            vector2 = self._vectorizer.create_vector(text2, vocabulary)
            if magnitude(vector1) == 0.0 or magnitude(vector2) == 0.0:
                # 어휘 필터가 공통 용어를 모두 걸러낸 경우 (예: 같은 텍스트 두 개)
                vector1 = self._vectorizer.create_vector(text1)
                vector2 = self._vectorizer.create_vector(text2)
            return cosine_similarity(vector1, vector2)
        except Exception as e:
            logger.error(f"Error calculating cosine similarity: {e}")
            return 0.0

    def compare_documents(self, source: Document, target: Document) -> SimilarityResult:
        result = SimilarityResult(
            source_document_id=source.id,
            target_document_id=target.id,
            comparison_method=COMPARISON_METHOD,
        )

        if source.content is None or target.content is None:
            logger.warning(f"Cannot compare documents without content. Source: {source.id}, Target: {target.id}")
            return result

        source_text = source.content.extracted_text
        target_text = target.content.extracted_text
        if not source_text or not source_text.strip() or not target_text or not target_text.strip():
            return result

        result.overall_similarity_score = self.calculate_cosine_similarity(source_text, target_text)
        result.keyword_similarity = keyword_similarity(source.content.keywords, target.content.keywords)
        result.structural_similarity = structural_similarity(source, target)
        result.semantic_similarity = semantic_similarity(source_text, target_text)
        result.matched_sections = matched_sections(source.sections, target.sections)
        result.notes = self._generate_notes(source, target, result)

        logger.info(f"Document comparison completed. Source: {source.id}, Target: {target.id}, "
                    f"Similarity: {result.overall_similarity_score:.3f}")
        return result

    def find_similar_documents(self, source: Document, candidates: Iterable[Document],
                               threshold: float = 0.1) -> List[SimilarityResult]:
        """
        source 와 후보 문서들을 비교해 overall 점수가 threshold 이상인 결과를 내림차순으로 반환합니다.

        Args:
            source: 기준 문서.
            candidates: 비교 대상 문서들. 같은 ID 이거나 내용이 없는 문서는 건너뜁니다.
            threshold: 최소 overall 점수.

        Returns:
            SimilarityResult 목록 (overall_similarity_score 내림차순).
        """
        if source.content is None:
            logger.warning(f"Cannot find similar documents for document without content: {source.id}")
            return []

        results = []
        for candidate in candidates:
            if candidate.id == source.id or candidate.content is None:
                continue
            try:
                result = self.compare_documents(source, candidate)
            except Exception as e:
                logger.warning(f"Error comparing document {source.id} with candidate {candidate.id}: {e}")
                continue
            if result.overall_similarity_score >= threshold:
                results.append(result)

        results.sort(key=lambda r: r.overall_similarity_score, reverse=True)
        return results

    def create_tfidf_vector(self, text: str, vocabulary: Optional[Iterable[str]] = None) -> TfIdfVector:
        vector = self._vectorizer.create_vector(text, vocabulary)
        if vocabulary is None:
            term_count = len(vector)
        else:
            term_count = sum(1 for value in vector.values() if value > 0)

        text = text or ""
        if len(text) > MAX_VECTOR_TEXT_LENGTH:
            text = text[:MAX_VECTOR_TEXT_LENGTH] + "..."

        return TfIdfVector(terms=vector, magnitude=magnitude(vector), term_count=term_count, source_text=text)

    @staticmethod
    def _generate_notes(source: Document, target: Document, result: SimilarityResult) -> str:
        score = result.overall_similarity_score
        if score > 0.8:
            notes = ["Very high similarity - documents are very similar"]
        elif score > 0.6:
            notes = ["High similarity - documents share many common features"]
        elif score > 0.3:
            notes = ["Moderate similarity - documents have some common features"]
        else:
            notes = ["Low similarity - documents are quite different"]

        if source.protocol and _same(source.protocol, target.protocol):
            notes.append(f"Same protocol: {source.protocol}")
        if source.manufacturer and _same(source.manufacturer, target.manufacturer):
            notes.append(f"Same manufacturer: {source.manufacturer}")
        if result.keyword_similarity > 0.5:
            notes.append("High keyword overlap")

        return "; ".join(notes)
