# src/device_spec_analyzer/ports/output_ports.py

from abc import ABC, abstractmethod
from typing import BinaryIO, Dict, List, Optional, Union

# 이 포트들이 입/출력 데이터 타입으로 사용할 도메인 모델들입니다.
from device_spec_analyzer.domain.models import (
    Document,
    DocumentSection,
    DocumentStatus,
    PdfExtractionResult,
    ProtocolParseResult,
    SimilarityResult,
)

class PdfTextExtractionPort(ABC):
    """
    애플리케이션 코어가 PDF 파일에서 페이지 단위 텍스트를 얻기 위해 사용하는 출력 포트.
    이 포트는 외부 PDF 라이브러리 어댑터(예: PyMuPDF 추출 어댑터)에 의해 구현됩니다.
    """

    @abstractmethod
    def extract_text(self, source: Union[str, bytes, BinaryIO]) -> PdfExtractionResult:
        """
        주어진 PDF에서 텍스트와 단어/키워드 통계를 추출합니다.

        Args:
            source: PDF 파일 경로, 바이트 또는 바이너리 스트림.

        Returns:
            PdfExtractionResult. 라이브러리 오류는 예외 대신 success=False 로 반환됩니다.
        """
        pass

    @abstractmethod
    def is_pdf_file(self, file_path: str) -> bool:
        """
        확장자와 매직 바이트(%PDF)로 PDF 파일 여부를 확인합니다.
        """
        pass

    @abstractmethod
    def is_pdf_valid(self, file_path: str) -> bool:
        """
        PDF를 실제로 열 수 있고 페이지가 한 장 이상 있는지 확인합니다.
        """
        pass


class DocumentRepositoryPort(ABC):
    """
    애플리케이션 코어가 문서 레코드와 유사도 결과를 저장/조회하기 위해 사용하는 출력 포트.

    이 포트는 실제 저장소 어댑터(예: InMemoryDocumentRepository)에 의해 구현됩니다.
    파일명은 유일하며, 내용 해시로도 조회할 수 있어야 합니다.
    """

    @abstractmethod
    def get_by_id(self, document_id: int) -> Optional[Document]:
        pass

    @abstractmethod
    def get_by_file_name(self, file_name: str) -> Optional[Document]:
        pass

    @abstractmethod
    def get_by_hash(self, file_hash: str) -> Optional[Document]:
        pass

    @abstractmethod
    def get_all(self) -> List[Document]:
        """
        모든 문서를 업로드 시각 역순으로 반환합니다.
        """
        pass

    @abstractmethod
    def get_by_protocol(self, protocol: str) -> List[Document]:
        pass

    @abstractmethod
    def get_by_manufacturer(self, manufacturer: str) -> List[Document]:
        pass

    @abstractmethod
    def get_by_status(self, status: DocumentStatus) -> List[Document]:
        pass

    @abstractmethod
    def search(self, search_term: str) -> List[Document]:
        """
        파일명, 제조사, 장비명, 프로토콜, 키워드에서 대소문자 구분 없이 검색합니다.

        Args:
            search_term: 검색어.

        Returns:
            검색어를 포함하는 문서 목록 (업로드 시각 역순).
        """
        pass

    @abstractmethod
    def get_recent(self, count: int = 10) -> List[Document]:
        pass

    @abstractmethod
    def add(self, document: Document) -> Document:
        """
        새 문서를 저장하고 ID가 할당된 문서를 반환합니다.

        Raises:
            RepositoryError: 같은 파일명의 문서가 이미 있을 때
                             (이 포트를 구현하는 어댑터에서 이 예외를 정의하고 발생시킬 수 있습니다).
        """
        pass

    @abstractmethod
    def update(self, document: Document) -> Document:
        pass

    @abstractmethod
    def delete(self, document_id: int) -> bool:
        """
        문서와 그 문서를 참조하는 유사도 결과를 삭제합니다.

        Returns:
            삭제할 문서가 있었으면 True.
        """
        pass

    @abstractmethod
    def exists_by_file_name(self, file_name: str) -> bool:
        pass

    @abstractmethod
    def exists_by_hash(self, file_hash: str) -> bool:
        pass

    @abstractmethod
    def count_by_status(self) -> Dict[DocumentStatus, int]:
        pass

    @abstractmethod
    def save_similarity_results(self, results: List[SimilarityResult]) -> None:
        """
        유사도 결과를 저장합니다. 같은 (source, target) 쌍의 이전 결과는 교체됩니다.
        """
        pass

    @abstractmethod
    def replace_similarity_results(self, source_document_id: int, results: List[SimilarityResult]) -> None:
        """
        source 문서의 기존 유사도 결과를 모두 지우고 주어진 결과로 바꿉니다.

        Args:
            source_document_id: 다시 계산된 문서의 ID.
            results: 새로 계산된 결과 목록. 비어 있으면 이전 결과만 삭제됩니다.
        """
        pass

    @abstractmethod
    def get_similarity_results(self, source_document_id: int) -> List[SimilarityResult]:
        pass


class ProtocolParserPort(ABC):
    """
    특정 프로토콜(POCT1-A, ASTM, HL7) 명세 텍스트에서 구조화된 정보를 뽑아내는 출력 포트.

    유스케이스는 등록 순서대로 can_parse 를 호출해 처음으로 True 를 반환한 파서를 사용합니다.
    """

    @property
    @abstractmethod
    def protocol_name(self) -> str:
        pass

    @abstractmethod
    def can_parse(self, text: str) -> bool:
        """
        프로토콜 이름 패턴과 메시지/필드 형식 패턴이 모두 일치할 때만 True 를 반환합니다.
        """
        pass

    @abstractmethod
    def parse(self, text: str) -> ProtocolParseResult:
        """
        버전, 메시지 형식, 데이터 필드, 통신 방식, 예시, 목차를 추출합니다.

        Args:
            text: 문서 전체 텍스트.

        Returns:
            ProtocolParseResult. 내부 오류는 예외로 던지지 않고 success=False 로 반환합니다.
        """
        pass

    @abstractmethod
    def extract_sections(self, text: str, document_id: Optional[int]) -> List[DocumentSection]:
        """
        섹션 유형별 패턴으로 텍스트를 다시 훑어 순서가 매겨진 DocumentSection 목록을 만듭니다.
        50자 이하의 후보는 버립니다.
        """
        pass
