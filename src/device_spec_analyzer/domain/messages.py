# src/device_spec_analyzer/domain/messages.py

from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum


class ProtocolType(str, Enum):
    POCT1A = "POCT1A"
    ASTM = "ASTM"
    HL7 = "HL7"
    UNKNOWN = "Unknown"


class MessageDirection(str, Enum):
    DEVICE_TO_SYSTEM = "DeviceToSystem"
    SYSTEM_TO_DEVICE = "SystemToDevice"
    BIDIRECTIONAL = "Bidirectional"


class MessageCategory(str, Enum):
    BASIC_PROFILE = "BasicProfile"
    DIRECTIVE = "Directive"
    VENDOR_SPECIFIC = "VendorSpecific"
    UNKNOWN = "Unknown"


class DocumentType(str, Enum):
    UNKNOWN = "Unknown"
    SPECIFICATION = "Specification"
    TRACE_LOG = "TraceLog"
    MIXED = "Mixed"


# MessageProfile: 알려진 POCT1-A 메시지 유형의 정적 카탈로그 항목 (불변)
@dataclass(frozen=True)
class MessageProfile:
    message_type: str
    name: str
    description: str
    direction: MessageDirection
    category: MessageCategory
    purpose: str = ""
    key_fields: Tuple[str, ...] = ()
    is_conversation_starter: bool = False
    requires_acknowledgment: bool = False
    related_messages: Tuple[str, ...] = ()


@dataclass
class MessageField:
    field_id: str
    name: str
    value: str = ""
    description: str = ""
    is_required: bool = False


@dataclass
class MessageSegment:
    """
    메시지의 하위 구조 (XML 요소 경로 묶음 또는 파이프 구분 레코드 한 줄).
    """
    segment_id: str
    name: str
    description: str = ""
    raw_segment: str = ""
    fields: List[MessageField] = field(default_factory=list)


# ParsedMessage: 문서 텍스트에서 찾은 프로토콜 메시지 인스턴스 하나 (저장하지 않음)
@dataclass
class ParsedMessage:
    """
    문서 텍스트에 포함된 프로토콜 메시지 한 건의 파싱 결과.

    명세 문서로 분류된 경우 대표 메시지의 examples 에 같은 유형의
    나머지 인스턴스가 붙고, 해당 인스턴스들은 is_specification_example 이 True 가 됩니다.
    """
    raw_content: str
    protocol: ProtocolType = ProtocolType.UNKNOWN
    message_type: str = ""
    segments: List[MessageSegment] = field(default_factory=list)
    is_valid: bool = False
    errors: List[str] = field(default_factory=list)
    profile: Optional[MessageProfile] = None
    key_values: Dict[str, str] = field(default_factory=dict)
    examples: List["ParsedMessage"] = field(default_factory=list)
    is_specification_example: bool = False


@dataclass
class DocumentParsingResult:
    document_type: DocumentType = DocumentType.UNKNOWN
    messages: List[ParsedMessage] = field(default_factory=list) # 파싱된 전체 메시지
    message_types: List[ParsedMessage] = field(default_factory=list) # 명세 문서는 유형별 대표 메시지만
    total_examples: int = 0
    message_type_counts: Dict[str, int] = field(default_factory=dict)
    analysis_summary: str = ""
