# src/device_spec_analyzer/adapters/secondary/parsers/base_parser.py

import logging
import re
from typing import Dict, Iterable, List, Optional, Pattern, Tuple

from device_spec_analyzer.domain.models import (
    CommunicationDetail,
    DataField,
    DocumentSection,
    MessageFormat,
    ProtocolParseResult,
    SectionType,
)
from device_spec_analyzer.ports.output_ports import ProtocolParserPort

logger = logging.getLogger(__name__)

# 이 길이 이하의 섹션 후보는 잡음으로 간주
MIN_SECTION_LENGTH = 50


# --- 어댑터 특정 예외 정의 ---
class ProtocolParsingError(Exception):
    """Represents an error inside a protocol parser. Never leaves the parser boundary."""
    pass


class RegexProtocolParser(ProtocolParserPort):
    """
    정규식 기반 프로토콜 파서의 공통 뼈대.

    하위 클래스는 탐지 패턴과 각 추출 단계(_extract_*)를 구현합니다.
    parse() 는 모든 단계를 독립적으로 실행하고, 어떤 예외도 호출자에게 던지지 않습니다.
    """

    PROTOCOL_NAME = ""

    @property
    def protocol_name(self) -> str:
        return self.PROTOCOL_NAME

    def can_parse(self, text: str) -> bool:
        if not text or not text.strip():
            return False
        return self._matches_protocol(text) and self._matches_format(text)

    def parse(self, text: str) -> ProtocolParseResult:
        try:
            if not text or not text.strip():
                raise ProtocolParsingError("No text to parse")

            result = ProtocolParseResult(
                protocol=self.protocol_name,
                success=True,
                version=self._extract_version(text),
                message_formats=self._extract_message_formats(text),
                data_fields=self._extract_data_fields(text),
                communication_details=self._extract_communication_details(text),
                examples=self._extract_examples(text),
                key_sections=self._extract_key_sections(text),
            )
            logger.info(f"Successfully parsed {self.protocol_name} content. "
                        f"Messages: {len(result.message_formats)}, Fields: {len(result.data_fields)}")
            return result
        except Exception as e:
            logger.error(f"Error parsing {self.protocol_name} content: {e}")
            return ProtocolParseResult(protocol=self.protocol_name, success=False, error_message=str(e))

    def extract_sections(self, text: str, document_id: Optional[int]) -> List[DocumentSection]:
        sections: List[DocumentSection] = []
        if not text:
            return sections

        for section_type, title, pattern in self._section_patterns():
            for match in pattern.finditer(text):
                if len(match.group(0)) <= MIN_SECTION_LENGTH:
                    continue
                sections.append(DocumentSection(
                    section_type=section_type,
                    title=title,
                    content=match.group(0).strip(),
                    order_index=len(sections),
                    document_id=document_id,
                ))
        return sections

    # --- 하위 클래스 구현 지점 ---

    def _matches_protocol(self, text: str) -> bool:
        raise NotImplementedError

    def _matches_format(self, text: str) -> bool:
        raise NotImplementedError

    def _section_patterns(self) -> Iterable[Tuple[SectionType, Optional[str], Pattern]]:
        raise NotImplementedError

    def _extract_version(self, text: str) -> str:
        raise NotImplementedError

    def _extract_message_formats(self, text: str) -> List[MessageFormat]:
        raise NotImplementedError

    def _extract_data_fields(self, text: str) -> List[DataField]:
        raise NotImplementedError

    def _extract_communication_details(self, text: str) -> List[CommunicationDetail]:
        raise NotImplementedError

    def _extract_examples(self, text: str) -> List[str]:
        raise NotImplementedError

    def _extract_key_sections(self, text: str) -> Dict[str, str]:
        raise NotImplementedError


def numbered_outline(text: str, pattern: Pattern, max_title_length: Optional[int] = None) -> Dict[str, str]:
    """목차 번호 -> 제목. 같은 번호는 처음 나온 것만 유지합니다."""
    outline: Dict[str, str] = {}
    for match in pattern.finditer(text):
        number = match.group(1).strip()
        title = match.group(2).strip()
        if max_title_length is not None and len(title) >= max_title_length:
            continue
        outline.setdefault(number, title)
    return outline


def compile_section(pattern: str) -> Pattern:
    return re.compile(pattern, re.IGNORECASE | re.DOTALL)
