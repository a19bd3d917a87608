# src/device_spec_analyzer/adapters/secondary/parsers/poct1a_parser_adapter.py

import re
from typing import Dict, List

from device_spec_analyzer.adapters.secondary.parsers.base_parser import (
    RegexProtocolParser,
    compile_section,
    numbered_outline,
)
from device_spec_analyzer.domain.models import CommunicationDetail, DataField, MessageFormat, SectionType

_PROTOCOL_PATTERN = re.compile(r"\b(?:POCT1?-?A|Point.of.Care|POC)\b", re.IGNORECASE)
_MESSAGE_PATTERN = re.compile(r"(?:message|frame|record|header|data)\s+(?:format|structure|layout|definition)", re.IGNORECASE)
_FIELD_PATTERN = re.compile(r"(?:field|element|component|parameter)\s+(?:name|type|description|definition)", re.IGNORECASE)
_VERSION_PATTERN = re.compile(r"POCT1?-?A\s+(?:version\s+)?(\d+\.?\d*)", re.IGNORECASE)

_MESSAGE_NAME_PATTERN = re.compile(r"(?:message|frame|record)\s+(?:type|format|name):\s*([^\n]+)", re.IGNORECASE)
_DATA_FIELD_PATTERN = re.compile(r"(?:field|element)\s+(\w+)(?:\s*\(([^)]+)\))?\s*:\s*([^\n]+)", re.IGNORECASE)
_TCP_PATTERN = re.compile(r"TCP/IP.*?port\s+(\d+)", re.IGNORECASE)
_SERIAL_PATTERN = re.compile(r"serial.*?(?:RS232|COM\d+)", re.IGNORECASE)
_EXAMPLE_PATTERN = re.compile(r"(?:example|sample)[\s\S]*?(?=\n\s*(?:\d+\.|\w+:)|\Z)", re.IGNORECASE)
_OUTLINE_PATTERN = re.compile(r"^\s*(\d+\.?\d*)\s+([A-Z][A-Z\s]+)$", re.MULTILINE)

_SECTION_END = r"(?=\n\s*\d+\.|\n\s*[A-Z][A-Z\s]+\n|\Z)"
_SECTION_PATTERNS = (
    (SectionType.MESSAGE_FORMAT, None, compile_section(r"(?:message|frame)\s+(?:format|structure).*?" + _SECTION_END)),
    (SectionType.DATA_FIELDS, None, compile_section(r"(?:data\s+)?fields?.*?" + _SECTION_END)),
    (SectionType.COMMUNICATION, None, compile_section(r"communication.*?" + _SECTION_END)),
    (SectionType.EXAMPLES, None, compile_section(r"examples?.*?" + _SECTION_END)),
)


class Poct1AParserAdapter(RegexProtocolParser):
    """POCT1-A (Point of Care) 연결 명세서 파서."""

    PROTOCOL_NAME = "POCT1-A"

    def _matches_protocol(self, text: str) -> bool:
        return bool(_PROTOCOL_PATTERN.search(text))

    def _matches_format(self, text: str) -> bool:
        return bool(_MESSAGE_PATTERN.search(text) or _FIELD_PATTERN.search(text))

    def _section_patterns(self):
        return _SECTION_PATTERNS

    def _extract_version(self, text: str) -> str:
        match = _VERSION_PATTERN.search(text)
        return match.group(1) if match else "Unknown"

    def _extract_message_formats(self, text: str) -> List[MessageFormat]:
        formats = []
        for match in _MESSAGE_NAME_PATTERN.finditer(text):
            name = match.group(1).strip()
            if name:
                formats.append(MessageFormat(name=name, description=self._describe(text, name)))
        return formats

    @staticmethod
    def _describe(text: str, message_name: str) -> str:
        pattern = re.compile(re.escape(message_name) + r".*?(?:description|purpose):\s*([^\n]+)", re.IGNORECASE)
        match = pattern.search(text)
        return match.group(1).strip() if match else ""

    def _extract_data_fields(self, text: str) -> List[DataField]:
        return [
            DataField(
                name=match.group(1).strip(),
                type=match.group(2).strip() if match.group(2) else "String",
                description=match.group(3).strip(),
            )
            for match in _DATA_FIELD_PATTERN.finditer(text)
        ]

    def _extract_communication_details(self, text: str) -> List[CommunicationDetail]:
        details = []
        tcp_match = _TCP_PATTERN.search(text)
        if tcp_match:
            details.append(CommunicationDetail(
                type="TCP/IP",
                protocol="TCP",
                description="TCP/IP network communication",
                parameters={"Port": tcp_match.group(1)},
            ))
        if _SERIAL_PATTERN.search(text):
            details.append(CommunicationDetail(
                type="Serial",
                protocol="RS232",
                description="Serial port communication",
            ))
        return details

    def _extract_examples(self, text: str) -> List[str]:
        examples = []
        for match in _EXAMPLE_PATTERN.finditer(text):
            example = match.group(0).strip()
            if 20 < len(example) < 1000:
                examples.append(example)
        return examples

    def _extract_key_sections(self, text: str) -> Dict[str, str]:
        return numbered_outline(text, _OUTLINE_PATTERN)
