# src/device_spec_analyzer/adapters/secondary/parsers/astm_parser_adapter.py

import re
from typing import Dict, List

from device_spec_analyzer.adapters.secondary.parsers.base_parser import (
    RegexProtocolParser,
    compile_section,
    numbered_outline,
)
from device_spec_analyzer.domain.models import CommunicationDetail, DataField, MessageFormat, SectionType

_PROTOCOL_PATTERN = re.compile(r"\b(?:ASTM|E\d+|laboratory|LIS)\b", re.IGNORECASE)
_MESSAGE_PATTERN = re.compile(r"(?:record|message|frame)\s+(?:type|format|structure)", re.IGNORECASE)
_VERSION_PATTERN = re.compile(r"(?:ASTM\s+)?(?:E\d+-?\d*|\d+\.\d+)", re.IGNORECASE)

_DATA_FIELD_PATTERN = re.compile(r"(?:field\s+)?(\d+)[\.\)]\s+([^\n\(]+)(?:\s*\(([^)]+)\))?", re.IGNORECASE)
_BAUD_PATTERN = re.compile(r"(\d+)\s*baud", re.IGNORECASE)
_EXAMPLE_PATTERN = re.compile(r"(?:example|sample)[:\s]*([^\n]*(?:\n[^\n]*){0,5})", re.IGNORECASE)
_OUTLINE_PATTERN = re.compile(r"^\s*(\d+\.?\d*)\s+([A-Z][A-Za-z\s]+)$", re.MULTILINE)

# 레코드 유형 -> 이름 (E1394 레코드 순서)
RECORD_TYPES = (
    ("H", "Header"),
    ("P", "Patient"),
    ("O", "Order"),
    ("R", "Result"),
    ("C", "Comment"),
    ("M", "Manufacturer"),
    ("S", "Scientific"),
    ("L", "Terminator"),
)

_RECORD_FORMAT_PATTERNS = tuple(
    (record_type, name, re.compile(record_type + r"\s+Record.*?(?:format|structure)([^\.]*\.)", re.IGNORECASE | re.DOTALL))
    for record_type, name in RECORD_TYPES
)

_SECTION_PATTERNS = tuple(
    (SectionType.MESSAGE_FORMAT, f"{name} Record",
     compile_section(record_type + r"\s+Record.*?(?=\n\s*[A-Z]\s+Record|\n\s*\d+\.|\Z)"))
    for record_type, name in RECORD_TYPES
) + (
    (SectionType.DATA_FIELDS, "Field Definitions",
     compile_section(r"field\s+definitions?.*?(?=\n\s*\d+\.|\n\s*[A-Z][A-Z\s]+\n|\Z)")),
)


class AstmParserAdapter(RegexProtocolParser):
    """ASTM E1381/E1394 (LIS 연동) 명세서 파서."""

    PROTOCOL_NAME = "ASTM"

    def _matches_protocol(self, text: str) -> bool:
        return bool(_PROTOCOL_PATTERN.search(text))

    def _matches_format(self, text: str) -> bool:
        return bool(_MESSAGE_PATTERN.search(text))

    def _section_patterns(self):
        return _SECTION_PATTERNS

    def _extract_version(self, text: str) -> str:
        # 캡처 그룹 없이 전체 일치 문자열 (예: "ASTM E1394-97")
        match = _VERSION_PATTERN.search(text)
        return match.group(0) if match else "Unknown"

    def _extract_message_formats(self, text: str) -> List[MessageFormat]:
        formats = []
        for record_type, name, pattern in _RECORD_FORMAT_PATTERNS:
            match = pattern.search(text)
            if match:
                formats.append(MessageFormat(
                    name=f"{name} Record",
                    structure=record_type,
                    description=match.group(1).strip(),
                ))
        return formats

    def _extract_data_fields(self, text: str) -> List[DataField]:
        fields = []
        for match in _DATA_FIELD_PATTERN.finditer(text):
            number = match.group(1)
            name = match.group(2).strip()
            if name and len(name) < 100:
                fields.append(DataField(
                    name=f"Field {number}: {name}",
                    type=match.group(3).strip() if match.group(3) else "String",
                    description=name,
                ))
        return fields

    def _extract_communication_details(self, text: str) -> List[CommunicationDetail]:
        lowered = text.lower()
        details = []
        serial = None
        if "serial" in lowered:
            serial = CommunicationDetail(type="Serial", protocol="RS232/RS485",
                                         description="Serial communication interface")
            details.append(serial)
        if "tcp" in lowered or "ethernet" in lowered:
            details.append(CommunicationDetail(type="Network", protocol="TCP/IP",
                                               description="Network communication interface"))

        baud_match = _BAUD_PATTERN.search(text)
        if baud_match and serial is not None:
            serial.parameters["BaudRate"] = baud_match.group(1)
        return details

    def _extract_examples(self, text: str) -> List[str]:
        examples = []
        for match in _EXAMPLE_PATTERN.finditer(text):
            example = match.group(1).strip()
            if 10 < len(example) < 500:
                examples.append(example)
        return examples

    def _extract_key_sections(self, text: str) -> Dict[str, str]:
        return numbered_outline(text, _OUTLINE_PATTERN, max_title_length=100)
