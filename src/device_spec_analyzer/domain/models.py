# src/device_spec_analyzer/domain/models.py

from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# 문서 처리 상태: Uploaded -> Processing -> {Processed, Failed}
class DocumentStatus(str, Enum):
    UPLOADED = "Uploaded"
    PROCESSING = "Processing"
    PROCESSED = "Processed"
    FAILED = "Failed"


class SectionType(str, Enum):
    MESSAGE_FORMAT = "MessageFormat"
    DATA_FIELDS = "DataFields"
    COMMUNICATION = "Communication"
    EXAMPLES = "Examples"
    INTRODUCTION = "Introduction"
    APPENDIX = "Appendix"
    UNKNOWN = "Unknown"


class FileChangeType(str, Enum):
    CREATED = "Created"
    MODIFIED = "Modified"
    DELETED = "Deleted"
    RENAMED = "Renamed"


# DocumentContent: 추출된 텍스트와 파생 정보 (문서와 1:1)
@dataclass
class DocumentContent:
    """
    PDF에서 추출된 전체 텍스트와 통계, 키워드, 요약을 담는 도메인 모델.
    재처리 시 통째로 교체됩니다.
    """
    extracted_text: str
    word_count: int = 0
    page_count: int = 0
    keywords: Optional[str] = None # 쉼표로 구분된 키워드 문자열
    summary: Optional[str] = None
    vector_data: Optional[str] = None # 직렬화된 TF-IDF 벡터 (선택)
    document_id: Optional[int] = None
    extracted_at: datetime = field(default_factory=utcnow)


# DocumentSection: 프로토콜 파서가 잘라낸 문서의 한 구간
@dataclass
class DocumentSection:
    """
    섹션 유형이 태그된 문서의 연속된 발췌 구간.
    """
    section_type: SectionType
    content: str
    order_index: int = 0
    title: Optional[str] = None
    page_number: Optional[int] = None
    document_id: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class DeviceDriver:
    """문서를 근거로 작성된 장비 드라이버 참조."""
    name: str
    version: Optional[str] = None
    description: Optional[str] = None
    source_path: Optional[str] = None
    document_id: Optional[int] = None


# Document: 저장소에서 관리되는 명세 문서 한 건
@dataclass
class Document:
    """
    저장소 디렉토리의 PDF 파일 하나에 대응하는 도메인 모델.

    파일이 처음 발견될 때 생성되고, 처리 파이프라인의 각 단계에서 갱신되며,
    원본 파일이 삭제될 때에만 제거됩니다.
    """
    file_name: str
    file_hash: str = ""
    file_size_bytes: int = 0
    file_path: Optional[str] = None
    id: Optional[int] = None

    # 텍스트에서 추정한 정보
    manufacturer: Optional[str] = None
    device_name: Optional[str] = None
    protocol: Optional[str] = None
    version: Optional[str] = None

    status: DocumentStatus = DocumentStatus.UPLOADED
    processing_error: Optional[str] = None
    uploaded_by: Optional[str] = None

    uploaded_at: datetime = field(default_factory=utcnow)
    processed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    content: Optional[DocumentContent] = None
    sections: List[DocumentSection] = field(default_factory=list)
    device_drivers: List[DeviceDriver] = field(default_factory=list)


# SimilarityResult: 두 문서 사이의 비교 결과 (source -> target 방향)
@dataclass
class SimilarityResult:
    """
    두 문서 간 유사도 비교 결과.

    네 개의 점수는 서로 독립적으로 계산되며 합산되지 않습니다.
    overall_similarity_score 는 TF-IDF 코사인 유사도입니다.
    """
    source_document_id: Optional[int]
    target_document_id: Optional[int]
    overall_similarity_score: float = 0.0
    keyword_similarity: float = 0.0
    structural_similarity: float = 0.0
    semantic_similarity: float = 0.0
    comparison_method: str = ""
    matched_sections: Optional[str] = None
    notes: Optional[str] = None
    calculated_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None

    def __post_init__(self):
        if (self.source_document_id is not None
                and self.source_document_id == self.target_document_id):
            raise ValueError(f"A document cannot be compared with itself (id={self.source_document_id})")


@dataclass
class TfIdfVector:
    terms: Dict[str, float] = field(default_factory=dict)
    magnitude: float = 0.0
    term_count: int = 0
    source_text: str = ""


# ProcessingResult: 파일 하나를 파이프라인에 통과시킨 결과
@dataclass
class ProcessingResult:
    success: bool = False
    document_id: Optional[int] = None
    error_message: Optional[str] = None
    processing_time: float = 0.0 # 초 단위
    metadata: Dict[str, Any] = field(default_factory=dict) # PageCount, WordCount, Protocol, SectionCount


@dataclass
class FileChangedEvent:
    file_path: str
    change_type: FileChangeType
    timestamp: datetime = field(default_factory=utcnow)
    file_size: int = 0
    file_hash: Optional[str] = None


# --- PDF 텍스트 추출 결과 ---
@dataclass
class PageContent:
    page_number: int
    text: str = ""
    word_count: int = 0
    keywords: List[str] = field(default_factory=list)


@dataclass
class PdfExtractionResult:
    """
    PDF 추출기가 반환하는 페이지 단위 텍스트와 통계.
    실패 시 success=False 와 error_message 가 채워집니다.
    """
    success: bool = False
    extracted_text: str = ""
    page_count: int = 0
    word_count: int = 0
    pages: List[PageContent] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None


# --- 프로토콜 파서 결과 ---
@dataclass
class DataField:
    name: str
    type: str = "String"
    description: str = ""
    length: Optional[int] = None
    required: bool = False
    default_value: Optional[str] = None
    valid_values: List[str] = field(default_factory=list)


@dataclass
class MessageFormat:
    name: str
    description: str = ""
    structure: str = ""
    fields: List[DataField] = field(default_factory=list)


@dataclass
class CommunicationDetail:
    type: str
    protocol: str = ""
    description: str = ""
    parameters: Dict[str, str] = field(default_factory=dict)


@dataclass
class ProtocolParseResult:
    protocol: str
    success: bool = False
    version: str = "Unknown"
    message_formats: List[MessageFormat] = field(default_factory=list)
    data_fields: List[DataField] = field(default_factory=list)
    communication_details: List[CommunicationDetail] = field(default_factory=list)
    examples: List[str] = field(default_factory=list)
    key_sections: Dict[str, str] = field(default_factory=dict) # 목차 번호 -> 제목
    error_message: Optional[str] = None
