# src/device_spec_analyzer/application/message_parsing.py

import logging
import re
import xml.etree.ElementTree as ET
from collections import OrderedDict
from typing import List, Optional

from device_spec_analyzer.application.message_profiles import MessageProfileService
from device_spec_analyzer.domain.definitions import ASTM_FIELDS, ASTM_SEGMENTS, POCT1A_FIELD_DESCRIPTIONS
from device_spec_analyzer.domain.messages import (
    DocumentParsingResult,
    DocumentType,
    MessageField,
    MessageSegment,
    ParsedMessage,
    ProtocolType,
)

logger = logging.getLogger(__name__)

XML_MESSAGE_PATTERN = re.compile(r"<[A-Z]{3}\.R\d{2}[\s\S]*?</[A-Z]{3}\.R\d{2}>", re.MULTILINE)
ASTM_MESSAGE_PATTERN = re.compile(r"H\|\\\^&.*?L\|\d+\|N", re.MULTILINE | re.DOTALL)
ASTM_HEADER_LINE_PATTERN = re.compile(r"H\|[^\r\n]+", re.MULTILINE)
POCT1A_OPEN_TAG_PATTERN = re.compile(r"<[A-Z]{3}\.R\d{2}>")
POCT1A_TYPE_PATTERN = re.compile(r"<([A-Z]{3}\.R\d{2})")
XML_DECLARATION_PATTERN = re.compile(r"^\s*<\?xml[^>]*\?>")

SPECIFICATION_INDICATORS = (
    "specification", "protocol", "standard", "message profile", "message catalog",
    "interface control document", "icd", "communication protocol",
    "page ", "section ", "example", "table ", "figure ", "appendix",
    "specification version", "document version", "revision",
    "connectivity protocol", "interface specification", "manual", "guide",
    "implementation", "requirements", "overview", "description",
    "vendor", "manufacturer", "device", "instrument",
)

TRACE_INDICATORS = (
    "timestamp", "trace", "log", "session", "connection established",
    "transmission", "received", "sent", "sequence number",
    "real-time", "captured", "monitoring", "data flow", "datetime",
    "logged", "recording",
)

# ASTM 예시 블록 안에서 허용되는 주석 줄 접두어
ASTM_ANNOTATION_PREFIXES = ("Example", "Sofia:", "LIS:")
ASTM_BODY_PREFIXES = ("P|", "O|", "C|", "R|")

FIELD_DESCRIPTION_NOT_AVAILABLE = "Field description not available"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def format_field_name(element_name: str) -> str:
    """XML 요소 이름을 사람이 읽기 쉬운 형태로 (device_id -> Device Id)."""
    parts = [p for p in element_name.split("_") if p]
    return " ".join(p[0].upper() + p[1:].lower() for p in parts)


class MessageParsingService:
    """
    문서 텍스트 안에 들어있는 POCT1-A(XML) / ASTM(파이프 구분) 메시지 인스턴스를 찾아 파싱하고,
    문서가 명세서인지 트레이스 로그인지 분류하는 서비스.

    어떤 프로토콜 파서가 선택되었는지와 무관하게 원문 텍스트만으로 동작합니다.
    """

    def __init__(self, profile_service: Optional[MessageProfileService] = None):
        self._profile_service = profile_service or MessageProfileService()

    # --- 단일 메시지 ---

    def detect_protocol(self, message_content: str) -> ProtocolType:
        if message_content.lstrip().startswith("<?xml") or POCT1A_OPEN_TAG_PATTERN.search(message_content):
            return ProtocolType.POCT1A
        if message_content.startswith("H|") and "\\^&" in message_content:
            return ProtocolType.ASTM
        return ProtocolType.UNKNOWN

    def parse_message(self, message_content: str, forced_protocol: Optional[ProtocolType] = None) -> ParsedMessage:
        """
        메시지 하나를 파싱합니다.

        Args:
            message_content: 메시지 원문.
            forced_protocol: 지정하면 자동 감지를 건너뜁니다.

        Returns:
            ParsedMessage. 파싱 오류는 예외가 아니라 is_valid=False 와 errors 로 표현됩니다.
        """
        protocol = forced_protocol or self.detect_protocol(message_content)

        if protocol == ProtocolType.POCT1A:
            return self._parse_poct1a_message(message_content)
        if protocol == ProtocolType.ASTM:
            return self._parse_astm_message(message_content)

        return ParsedMessage(
            raw_content=message_content,
            protocol=ProtocolType.UNKNOWN,
            is_valid=False,
            errors=["Unable to detect message protocol"],
        )

    def _parse_poct1a_message(self, xml_content: str) -> ParsedMessage:
        message = ParsedMessage(raw_content=xml_content, protocol=ProtocolType.POCT1A)

        try:
            clean_xml = XML_DECLARATION_PATTERN.sub("", xml_content, count=1).strip()
            root = ET.fromstring(clean_xml)
        except (ET.ParseError, ValueError) as e:
            message.errors.append(f"XML parsing error: {e}")
            return message

        message.message_type = _local_name(root.tag)
        profile = self._profile_service.get_profile(message.message_type)
        message.profile = profile

        if profile is None:
            message.errors.append(f"Unknown POCT1-A message type: {message.message_type}")
            return message

        main_segment = MessageSegment(
            segment_id=message.message_type,
            name=profile.name,
            description=profile.description,
            raw_segment=xml_content,
        )
        self._flatten_elements(root, main_segment.fields, "")
        message.segments.append(main_segment)
        message.key_values = self._profile_service.extract_key_values(message)
        message.is_valid = True
        return message

    def _flatten_elements(self, element: ET.Element, fields: List[MessageField], parent_path: str) -> None:
        for child in element:
            name = _local_name(child.tag)
            # POCT1-A 요소 이름은 이미 세그먼트로 한정되어 있음 (HDR.control_id)
            field_path = f"{parent_path}.{name}" if parent_path and "." not in name else name

            if len(child):
                self._flatten_elements(child, fields, field_path)
                continue

            value = child.get("V")
            if value is None:
                value = child.text or ""
            fields.append(MessageField(
                field_id=field_path,
                name=format_field_name(name),
                value=value,
                description=POCT1A_FIELD_DESCRIPTIONS.get(field_path, FIELD_DESCRIPTION_NOT_AVAILABLE),
            ))

    def _parse_astm_message(self, astm_content: str) -> ParsedMessage:
        message = ParsedMessage(raw_content=astm_content, protocol=ProtocolType.ASTM, message_type="ASTM Message")

        try:
            for line in re.split(r"[\r\n]+", astm_content):
                if not line.strip():
                    continue
                record_type = line[0]
                segment_info = ASTM_SEGMENTS.get(record_type)
                if segment_info is None:
                    continue

                segment = MessageSegment(
                    segment_id=record_type,
                    name=segment_info[0],
                    description=segment_info[1],
                    raw_segment=line,
                )
                # 필드 정의 순서와 '|' 분할 순서를 1:1 로 맞춤
                for definition, value in zip(ASTM_FIELDS.get(record_type, ()), line.split("|")):
                    segment.fields.append(MessageField(
                        field_id=definition.field_id,
                        name=definition.name,
                        value=value,
                        description=definition.description,
                        is_required=definition.required,
                    ))
                message.segments.append(segment)

            message.is_valid = bool(message.segments)
        except Exception as e:
            message.errors.append(f"ASTM parsing error: {e}")

        return message

    # --- 문서 단위 ---

    def parse_document_messages(self, document_text: str) -> List[ParsedMessage]:
        """
        문서 텍스트에서 유효한 메시지 인스턴스를 모두 찾아 원문 길이 오름차순으로 반환합니다.
        """
        messages: List[ParsedMessage] = []

        for match in XML_MESSAGE_PATTERN.finditer(document_text):
            parsed = self.parse_message(match.group(0), ProtocolType.POCT1A)
            if parsed.is_valid:
                messages.append(parsed)

        for match in ASTM_MESSAGE_PATTERN.finditer(document_text):
            parsed = self.parse_message(match.group(0), ProtocolType.ASTM)
            if parsed.is_valid:
                messages.append(parsed)

        self._extract_example_messages(document_text, messages)

        messages.sort(key=lambda m: len(m.raw_content))
        logger.debug(f"Found {len(messages)} embedded protocol messages")
        return messages

    def _extract_example_messages(self, document_text: str, messages: List[ParsedMessage]) -> None:
        for match in XML_MESSAGE_PATTERN.finditer(document_text):
            candidate = match.group(0).strip()
            if any(m.raw_content.strip() == candidate for m in messages):
                continue
            parsed = self.parse_message(match.group(0), ProtocolType.POCT1A)
            if parsed.is_valid:
                messages.append(parsed)

        for match in ASTM_HEADER_LINE_PATTERN.finditer(document_text):
            full_message = self._extract_full_astm_message(document_text, match.start())
            if not full_message or any(full_message in m.raw_content for m in messages):
                continue
            parsed = self.parse_message(full_message, ProtocolType.ASTM)
            if parsed.is_valid:
                messages.append(parsed)

    @staticmethod
    def _extract_full_astm_message(text: str, start_index: int) -> str:
        """H 레코드부터 L 레코드까지 줄 단위로 모아 하나의 ASTM 메시지로 만듭니다."""
        text_lines = text.split("\n")
        line_index = text.count("\n", 0, start_index)

        lines = []
        in_message = False
        for raw_line in text_lines[line_index:]:
            line = raw_line.strip()
            if line.startswith("H|"):
                in_message = True
                lines.append(line)
            elif in_message and line.startswith(ASTM_BODY_PREFIXES):
                lines.append(line)
            elif in_message and line.startswith("L|"):
                lines.append(line)
                break
            elif in_message and line and not line.startswith(ASTM_ANNOTATION_PREFIXES):
                break

        return "\n".join(lines)

    def detect_document_type(self, document_text: str) -> DocumentType:
        """
        점수 기반으로 문서 유형을 분류합니다.

        명세/트레이스 지표 단어 존재 여부로 기본 점수를 매기고,
        POCT1-A 메시지 유형 다양성과 메시지 밀도(텍스트 1000자당 개수)로 보정합니다.
        점수가 비슷하면 Specification 쪽으로 기웁니다.
        """
        if not document_text or not document_text.strip():
            return DocumentType.UNKNOWN

        text = document_text.lower()
        spec_score = sum(1 for indicator in SPECIFICATION_INDICATORS if indicator in text)
        trace_score = sum(1 for indicator in TRACE_INDICATORS if indicator in text)

        xml_matches = [m.group(0) for m in XML_MESSAGE_PATTERN.finditer(document_text)]
        message_count = len(xml_matches)
        message_density = message_count / len(document_text) * 1000

        message_types = set()
        for raw in xml_matches:
            type_match = POCT1A_TYPE_PATTERN.search(raw)
            if type_match:
                message_types.add(type_match.group(1))
        distinct_types = len(message_types)

        if distinct_types >= 5:
            spec_score += 3
        elif distinct_types >= 3:
            spec_score += 2
        elif message_count > 50:
            trace_score += 2

        if message_density > 1.0:
            trace_score += 3
        elif message_density > 0.5:
            trace_score += 2
        elif message_density < 0.1:
            spec_score += 2

        logger.debug(f"Document classification scores: spec={spec_score}, trace={trace_score}, "
                     f"types={distinct_types}, density={message_density:.3f}")

        if spec_score > trace_score and spec_score > 3:
            return DocumentType.SPECIFICATION
        if trace_score > spec_score and trace_score > 3:
            return DocumentType.TRACE_LOG
        if spec_score > trace_score:
            return DocumentType.SPECIFICATION
        if trace_score > spec_score:
            return DocumentType.TRACE_LOG
        if spec_score > 0 or trace_score > 0:
            return DocumentType.MIXED
        return DocumentType.UNKNOWN

    def parse_document_messages_advanced(self, document_text: str) -> DocumentParsingResult:
        """
        문서를 분류한 뒤 메시지를 파싱합니다.

        명세 문서면 메시지 유형별로 묶어 첫 인스턴스를 대표로 삼고 나머지를 examples 에 붙입니다.
        그 외에는 모든 인스턴스를 그대로 유지합니다.
        """
        result = DocumentParsingResult(document_type=self.detect_document_type(document_text))

        all_messages = self.parse_document_messages(document_text)
        result.messages = all_messages
        result.total_examples = len(all_messages)

        if result.document_type == DocumentType.SPECIFICATION:
            groups: "OrderedDict[str, List[ParsedMessage]]" = OrderedDict()
            for message in all_messages:
                if message.is_valid:
                    groups.setdefault(message.message_type, []).append(message)

            for message_type, instances in groups.items():
                result.message_type_counts[message_type] = len(instances)
                representative = instances[0]
                representative.examples = instances[1:]
                representative.is_specification_example = False
                for example in instances[1:]:
                    example.is_specification_example = True
                result.message_types.append(representative)

            result.analysis_summary = (f"Specification document with {len(result.message_types)} message types "
                                       f"and {result.total_examples} examples total.")
        else:
            result.message_types = list(all_messages)
            result.analysis_summary = f"Trace log with {len(all_messages)} message instances."

        logger.info(f"Message analysis: {result.document_type.value} - {result.analysis_summary}")
        return result
