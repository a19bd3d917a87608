# src/device_spec_analyzer/adapters/secondary/in_memory_repository_adapter.py

import copy
import itertools
import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

from device_spec_analyzer.domain.models import Document, DocumentStatus, SimilarityResult, utcnow
from device_spec_analyzer.ports.output_ports import DocumentRepositoryPort

logger = logging.getLogger(__name__)


# --- 어댑터 특정 예외 정의 ---
class RepositoryError(Exception):
    """Represents an error in the document repository."""
    pass


class DocumentNotFoundError(RepositoryError):
    """Raised when an update targets a document that does not exist."""
    pass


class InMemoryDocumentRepository(DocumentRepositoryPort):
    """
    프로세스 메모리에 문서와 유사도 결과를 보관하는 저장소 어댑터.

    - 모든 연산은 하나의 Lock 으로 직렬화됩니다 (감시자 스레드풀에서 동시에 호출됨).
    - 저장/조회 시 깊은 복사를 사용하므로 호출자가 받은 객체를 수정해도
      update() 를 호출하기 전까지 저장소 상태는 바뀌지 않습니다.
    - 파일명은 유일하며, 유사도 결과는 (source, target) 쌍마다 하나만 유지됩니다.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._documents: Dict[int, Document] = {}
        self._similarity: Dict[Tuple[int, int], SimilarityResult] = {}
        self._document_ids = itertools.count(1)
        self._similarity_ids = itertools.count(1)
        logger.info("InMemoryDocumentRepository initialized.")

    # --- 조회 ---

    def get_by_id(self, document_id: int) -> Optional[Document]:
        with self._lock:
            document = self._documents.get(document_id)
            return copy.deepcopy(document) if document else None

    def get_by_file_name(self, file_name: str) -> Optional[Document]:
        return self._find_one(lambda d: d.file_name == file_name)

    def get_by_hash(self, file_hash: str) -> Optional[Document]:
        return self._find_one(lambda d: d.file_hash == file_hash)

    def get_all(self) -> List[Document]:
        return self._find_all(lambda d: True)

    def get_by_protocol(self, protocol: str) -> List[Document]:
        return self._find_all(lambda d: d.protocol == protocol)

    def get_by_manufacturer(self, manufacturer: str) -> List[Document]:
        return self._find_all(lambda d: d.manufacturer == manufacturer)

    def get_by_status(self, status: DocumentStatus) -> List[Document]:
        return self._find_all(lambda d: d.status == status)

    def search(self, search_term: str) -> List[Document]:
        term = (search_term or "").strip().lower()
        if not term:
            return self.get_all()

        def matches(document: Document) -> bool:
            haystack = [document.file_name, document.manufacturer, document.device_name, document.protocol]
            if document.content is not None:
                haystack.append(document.content.keywords)
            return any(value and term in value.lower() for value in haystack)

        return self._find_all(matches)

    def get_recent(self, count: int = 10) -> List[Document]:
        return self.get_all()[:max(count, 0)]

    def exists_by_file_name(self, file_name: str) -> bool:
        return self.get_by_file_name(file_name) is not None

    def exists_by_hash(self, file_hash: str) -> bool:
        return self.get_by_hash(file_hash) is not None

    def count_by_status(self) -> Dict[DocumentStatus, int]:
        with self._lock:
            counts = {status: 0 for status in DocumentStatus}
            for document in self._documents.values():
                counts[document.status] += 1
            return counts

    # --- 변경 ---

    def add(self, document: Document) -> Document:
        with self._lock:
            if any(d.file_name == document.file_name for d in self._documents.values()):
                raise RepositoryError(f"Document with file name '{document.file_name}' already exists")

            stored = copy.deepcopy(document)
            stored.id = next(self._document_ids)
            self._stamp_children(stored)
            self._documents[stored.id] = stored
            logger.debug(f"Added document {stored.id}: {stored.file_name}")
            return copy.deepcopy(stored)

    def update(self, document: Document) -> Document:
        with self._lock:
            if document.id not in self._documents:
                raise DocumentNotFoundError(f"Document {document.id} does not exist")
            if any(d.file_name == document.file_name and d.id != document.id for d in self._documents.values()):
                raise RepositoryError(f"Document with file name '{document.file_name}' already exists")

            stored = copy.deepcopy(document)
            stored.updated_at = utcnow()
            self._stamp_children(stored)
            self._documents[stored.id] = stored
            return copy.deepcopy(stored)

    def delete(self, document_id: int) -> bool:
        with self._lock:
            if self._documents.pop(document_id, None) is None:
                return False
            for key in [k for k in self._similarity if document_id in k]:
                del self._similarity[key]
            logger.debug(f"Deleted document {document_id}")
            return True

    # --- 유사도 결과 ---

    def save_similarity_results(self, results: List[SimilarityResult]) -> None:
        with self._lock:
            self._validate_similarity(results)
            for result in results:
                self._store_similarity(result)

    def replace_similarity_results(self, source_document_id: int, results: List[SimilarityResult]) -> None:
        with self._lock:
            self._validate_similarity(results)
            if any(r.source_document_id != source_document_id for r in results):
                raise RepositoryError(f"Similarity results must all belong to source document {source_document_id}")

            previous = {k: v for k, v in self._similarity.items() if k[0] == source_document_id}
            for key in previous:
                del self._similarity[key]
            for result in results:
                self._store_similarity(result, previous)
            logger.debug(f"Replaced similarity results for document {source_document_id}: "
                         f"{len(previous)} -> {len(results)}")

    def get_similarity_results(self, source_document_id: int) -> List[SimilarityResult]:
        with self._lock:
            results = [copy.deepcopy(r) for (source, _), r in self._similarity.items() if source == source_document_id]
        results.sort(key=lambda r: r.overall_similarity_score, reverse=True)
        return results

    # --- 내부 헬퍼 ---

    @staticmethod
    def _validate_similarity(results: List[SimilarityResult]) -> None:
        if any(None in (r.source_document_id, r.target_document_id) for r in results):
            raise RepositoryError("Similarity results must reference stored documents")

    def _store_similarity(self, result: SimilarityResult,
                          previous: Optional[Dict[Tuple[int, int], SimilarityResult]] = None) -> None:
        # 호출자가 self._lock 을 잡고 있어야 함
        key = (result.source_document_id, result.target_document_id)
        stored = copy.deepcopy(result)
        existing = self._similarity.get(key) or (previous or {}).get(key)
        # 같은 순서쌍의 이전 결과는 교체 (ID 유지)
        stored.id = existing.id if existing else next(self._similarity_ids)
        self._similarity[key] = stored

    def _find_one(self, predicate: Callable[[Document], bool]) -> Optional[Document]:
        with self._lock:
            for document in self._documents.values():
                if predicate(document):
                    return copy.deepcopy(document)
        return None

    def _find_all(self, predicate: Callable[[Document], bool]) -> List[Document]:
        with self._lock:
            documents = [copy.deepcopy(d) for d in self._documents.values() if predicate(d)]
        # 업로드 시각 역순, 같으면 나중에 추가된 문서가 먼저
        documents.sort(key=lambda d: (d.uploaded_at, d.id), reverse=True)
        return documents

    @staticmethod
    def _stamp_children(document: Document) -> None:
        if document.content is not None:
            document.content.document_id = document.id
        for section in document.sections:
            section.document_id = document.id
        for driver in document.device_drivers:
            driver.document_id = document.id
