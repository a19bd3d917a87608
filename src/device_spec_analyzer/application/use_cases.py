# src/device_spec_analyzer/application/use_cases.py

import hashlib
import json
import logging
import os
import time
from typing import List, Optional, Sequence

from device_spec_analyzer.application import document_metadata
from device_spec_analyzer.application.similarity import SimilarityCalculator
from device_spec_analyzer.domain.models import (
    Document,
    DocumentContent,
    DocumentStatus,
    PdfExtractionResult,
    ProcessingResult,
    ProtocolParseResult,
    utcnow,
)
from device_spec_analyzer.ports.input_ports import DocumentProcessingInputPort
from device_spec_analyzer.ports.output_ports import (
    DocumentRepositoryPort,
    PdfTextExtractionPort,
    ProtocolParserPort,
)

logger = logging.getLogger(__name__)

MAX_KEYWORDS = 50
HASH_CHUNK_SIZE = 64 * 1024


def calculate_file_hash(file_path: str) -> str:
    """파일 내용의 SHA-256 16진 문자열."""
    digest = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _dedup(values, limit: int) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
            if len(seen) >= limit:
                break
    return seen


def parse_result_keywords(parse_result: ProtocolParseResult) -> str:
    """메시지 형식 이름/구조와 데이터 필드 이름으로 만든 키워드 문자열 (최대 50개, 중복 제거)."""
    candidates = []
    for message_format in parse_result.message_formats:
        candidates.extend([message_format.name, message_format.structure])
    candidates.extend(f.name for f in parse_result.data_fields)
    return ", ".join(_dedup(candidates, MAX_KEYWORDS))


def page_keywords(extraction: PdfExtractionResult) -> str:
    return ", ".join(_dedup((k for page in extraction.pages for k in page.keywords), MAX_KEYWORDS))


def generate_summary(parse_result: ProtocolParseResult) -> str:
    summary = f"{parse_result.protocol} specification"
    if parse_result.version:
        summary += f" version {parse_result.version}"
    if parse_result.message_formats:
        summary += f" with {len(parse_result.message_formats)} message formats"
    if parse_result.data_fields:
        summary += f" and {len(parse_result.data_fields)} data fields"
    return summary + "."


# 유스케이스는 입력 포트 인터페이스를 구현합니다.
class DocumentProcessingUseCase(DocumentProcessingInputPort):
    """
    PDF 파일 하나를 추출 -> 프로토콜 탐지 -> 파싱 -> 저장 -> 유사도 분석까지 처리하는 유스케이스.

    문서 상태 전이: Uploaded -> Processing -> {Processed, Failed}.
    Processed 문서는 파일이 바뀌면 다시 Processing 으로 돌아갈 수 있습니다.
    """

    def __init__(
        self,
        pdf_extractor: PdfTextExtractionPort,
        repository: DocumentRepositoryPort,
        protocol_parsers: Sequence[ProtocolParserPort],
        similarity_calculator: Optional[SimilarityCalculator] = None,
        similarity_threshold: float = 0.1,
    ):
        """
        DocumentProcessingUseCase 초기화 및 필요한 출력 포트 구현체들을 주입받습니다.

        Args:
            pdf_extractor: PdfTextExtractionPort 를 구현한 어댑터 (예: PyMuPdfExtractorAdapter).
            repository: DocumentRepositoryPort 를 구현한 저장소 어댑터.
            protocol_parsers: 등록 순서대로 검사되는 프로토콜 파서 목록. CanParse 가 처음 참인 파서가 선택됩니다.
            similarity_calculator: 문서 간 유사도 계산 서비스. None 이면 기본 인스턴스를 생성합니다.
            similarity_threshold: 유사 문서로 기록할 최소 overall 점수.
        """
        self._pdf_extractor = pdf_extractor
        self._repository = repository
        self._protocol_parsers: List[ProtocolParserPort] = list(protocol_parsers)
        self._similarity_calculator = similarity_calculator or SimilarityCalculator()
        self._similarity_threshold = similarity_threshold
        logger.info(f"DocumentProcessingUseCase initialized with {len(self._protocol_parsers)} protocol parsers: "
                    f"{[p.protocol_name for p in self._protocol_parsers]}")

    def process_new_document(self, file_path: str) -> bool:
        try:
            if not os.path.isfile(file_path):
                logger.warning(f"File not found: {file_path}")
                return False

            file_name = os.path.basename(file_path)
            if self._repository.exists_by_file_name(file_name):
                logger.info(f"Document already exists, skipping: {file_name}")
                return False

            file_hash = calculate_file_hash(file_path)
            if self._repository.exists_by_hash(file_hash):
                logger.info(f"Document with same content already exists, skipping: {file_name}")
                return False

            result = self.process_document(file_path)
            if result.success:
                logger.info(f"Successfully processed new document: {file_name} (ID: {result.document_id})")
                return True

            logger.error(f"Failed to process new document: {file_name}. Error: {result.error_message}")
            return False
        except Exception as e:
            logger.error(f"Error processing new document {file_path}: {e}", exc_info=True)
            return False

    def process_document_update(self, file_path: str) -> bool:
        try:
            file_name = os.path.basename(file_path)
            existing = self._repository.get_by_file_name(file_name)
            if existing is None:
                logger.info(f"Document not found in repository, treating as new: {file_name}")
                return self.process_new_document(file_path)

            if existing.file_hash == calculate_file_hash(file_path):
                logger.debug(f"Document unchanged, skipping: {file_name}")
                return True

            existing.status = DocumentStatus.PROCESSING
            self._repository.update(existing)

            result = self.process_document(file_path)
            if result.success and result.document_id is not None:
                logger.info(f"Successfully updated document: {file_name} (ID: {result.document_id})")
                return True

            # 실패: 이전 내용은 유지하고 상태와 오류만 기록
            failed = self._repository.get_by_id(existing.id) or existing
            failed.status = DocumentStatus.FAILED
            failed.processing_error = result.error_message
            self._repository.update(failed)
            logger.error(f"Failed to update document: {file_name}. Error: {result.error_message}")
            return False
        except Exception as e:
            logger.error(f"Error processing document update {file_path}: {e}", exc_info=True)
            return False

    def process_document_deletion(self, file_path: str) -> bool:
        try:
            file_name = os.path.basename(file_path)
            existing = self._repository.get_by_file_name(file_name)
            if existing is None:
                logger.warning(f"Document not found in repository for deletion: {file_name}")
                return False

            self._repository.delete(existing.id)
            logger.info(f"Deleted document from repository: {file_name} (ID: {existing.id})")
            return True
        except Exception as e:
            logger.error(f"Error processing document deletion {file_path}: {e}", exc_info=True)
            return False

    def process_document(self, file_path: str) -> ProcessingResult:
        started = time.perf_counter()
        result = ProcessingResult()
        logger.info(f"[USECASE] Starting document processing: {file_path}")

        try:
            # 1. 입력 검증
            if not self._pdf_extractor.is_pdf_file(file_path):
                result.error_message = "File is not a valid PDF"
                return result
            if not self._pdf_extractor.is_pdf_valid(file_path):
                result.error_message = "PDF file is corrupted or invalid"
                return result

            # 2. 해시 및 문서 레코드 생성/갱신
            file_name = os.path.basename(file_path)
            document = self._upsert_document(file_path, file_name, calculate_file_hash(file_path))

            # 3. 텍스트 추출
            extraction = self._pdf_extractor.extract_text(file_path)
            if not extraction.success:
                document.status = DocumentStatus.FAILED
                document.processing_error = extraction.error_message
                self._repository.update(document)
                result.error_message = extraction.error_message
                return result

            text = extraction.extracted_text
            document.content = DocumentContent(
                extracted_text=text,
                word_count=extraction.word_count,
                page_count=extraction.page_count,
                document_id=document.id,
            )

            # 4. 가벼운 메타데이터 추정
            document.protocol, document.version = document_metadata.detect_protocol(text)
            document.manufacturer = document_metadata.detect_manufacturer(text)
            document.device_name = document_metadata.detect_device_name(text)

            # 5. 프로토콜 파서 (등록 순서상 첫 번째 일치)
            self._apply_protocol_parser(document, extraction)

            vector = self._similarity_calculator.create_tfidf_vector(text)
            document.content.vector_data = json.dumps(vector.terms, sort_keys=True)

            # 6. 완료 처리
            document.status = DocumentStatus.PROCESSED
            document.processed_at = utcnow()
            document = self._repository.update(document)

            # 7. 유사도 분석 (실패해도 문서 상태에는 영향 없음)
            self._perform_similarity_analysis(document)

            result.success = True
            result.document_id = document.id
            result.metadata = {
                "PageCount": extraction.page_count,
                "WordCount": extraction.word_count,
                "Protocol": document.protocol or "Unknown",
                "SectionCount": len(document.sections),
            }
            logger.info(f"[USECASE] Successfully processed document: {file_name} "
                        f"(ID: {document.id}, Protocol: {document.protocol})")
        except Exception as e:
            logger.error(f"Error processing document {file_path}: {e}", exc_info=True)
            result.error_message = str(e)
        finally:
            result.processing_time = time.perf_counter() - started

        return result

    def _upsert_document(self, file_path: str, file_name: str, file_hash: str) -> Document:
        file_size = os.path.getsize(file_path)
        existing = self._repository.get_by_file_name(file_name)

        if existing is None:
            document = self._repository.add(Document(
                file_name=file_name,
                file_path=os.path.abspath(file_path),
                file_size_bytes=file_size,
                file_hash=file_hash,
                status=DocumentStatus.PROCESSING,
            ))
            logger.debug(f"Created new document record: {document.id}")
            return document

        existing.file_path = os.path.abspath(file_path)
        existing.file_size_bytes = file_size
        existing.file_hash = file_hash
        existing.status = DocumentStatus.PROCESSING
        existing.processing_error = None
        document = self._repository.update(existing)
        logger.debug(f"Updated existing document record: {document.id}")
        return document

    def _apply_protocol_parser(self, document: Document, extraction: PdfExtractionResult) -> None:
        text = extraction.extracted_text
        parser = next((p for p in self._protocol_parsers if p.can_parse(text)), None)

        if parser is None:
            logger.debug(f"No protocol parser matched document {document.id}; using page keywords")
            document.content.keywords = page_keywords(extraction)
            document.sections = []
            return

        logger.debug(f"Using protocol parser: {parser.protocol_name}")
        parse_result = parser.parse(text)
        if parse_result.success:
            document.content.keywords = parse_result_keywords(parse_result)
            document.content.summary = generate_summary(parse_result)
        else:
            logger.warning(f"{parser.protocol_name} parser failed for document {document.id}: "
                           f"{parse_result.error_message}")
        document.sections = parser.extract_sections(text, document.id)

    def _perform_similarity_analysis(self, document: Document) -> None:
        try:
            candidates = [
                d for d in self._repository.get_by_status(DocumentStatus.PROCESSED)
                if d.id != document.id and d.content is not None
            ]
            similar = []
            if candidates:
                similar = self._similarity_calculator.find_similar_documents(
                    document, candidates, self._similarity_threshold)
            else:
                logger.debug(f"No existing documents to compare against for document {document.id}")

            # 재계산 결과가 이전 결과 전체를 대체 (임계값 아래로 떨어진 쌍은 삭제)
            self._repository.replace_similarity_results(document.id, similar)
            logger.info(f"Found {len(similar)} similar documents for document {document.id}")
        except Exception as e:
            logger.warning(f"Error performing similarity analysis for document {document.id}: {e}")
