# src/device_spec_analyzer/adapters/secondary/parsers/hl7_parser_adapter.py

import re
from typing import Dict, List

from device_spec_analyzer.adapters.secondary.parsers.base_parser import (
    RegexProtocolParser,
    compile_section,
    numbered_outline,
)
from device_spec_analyzer.domain.models import CommunicationDetail, DataField, MessageFormat, SectionType

_PROTOCOL_PATTERN = re.compile(r"\b(?:HL7|Health\s+Level\s+Seven|FHIR|MLLP)\b", re.IGNORECASE)
_MESSAGE_PATTERN = re.compile(r"(?:message|segment|field)\s+(?:type|format|structure)", re.IGNORECASE)
_VERSION_PATTERN = re.compile(r"HL7\s+(?:version\s+)?(\d+\.?\d*)", re.IGNORECASE)

_DATA_FIELD_PATTERN = re.compile(r"(\w{2,3})\s*[\.\-]\s*(\d+)\s+([^\n\(]+)(?:\s*\(([^)]+)\))?", re.IGNORECASE)
_DATA_TYPE_PATTERN = re.compile(r"(?:data\s+type|field\s+type):\s*(\w+)\s*[:\-]\s*([^\n]+)", re.IGNORECASE)
_PORT_PATTERN = re.compile(r"port\s+(\d+)", re.IGNORECASE)
_WIRE_MESSAGE_PATTERN = re.compile(r"MSH\|[^\r\n]*(?:\r?\n[A-Z]{2,3}\|[^\r\n]*)*", re.MULTILINE)
_EXAMPLE_PATTERN = re.compile(r"(?:example|sample)[:\s]*([^\n]*(?:\n[^\n]*){1,10})", re.IGNORECASE)
_OUTLINE_PATTERN = re.compile(r"^\s*(\d+\.?\d*)\s+([A-Z][A-Za-z\s]+)$", re.MULTILINE)

MESSAGE_TYPES = (
    ("ADT", "Admit/Discharge/Transfer"),
    ("ORU", "Observation Result"),
    ("ORM", "Order Message"),
    ("ACK", "Acknowledgment"),
    ("QRY", "Query"),
    ("DSR", "Display Response"),
)
DESCRIBED_SEGMENTS = ("MSH", "PID", "PV1", "OBR", "OBX", "NTE")
SECTION_SEGMENTS = DESCRIBED_SEGMENTS + ("MSA", "ERR")

# 텍스트에 키워드가 있으면 목차에 추가하는 고정 항목
STANDARD_OUTLINE = (
    ("Message", "HL7 Message Structure"),
    ("Segment", "Segment Definitions"),
    ("Field", "Field Definitions"),
    ("DataType", "Data Type Definitions"),
    ("Acknowledgment", "Acknowledgment Processing"),
)

_MESSAGE_FORMAT_PATTERNS = tuple(
    (code, name, re.compile(code + r".*?(?:message|format)([^\.]*\.)", re.IGNORECASE | re.DOTALL))
    for code, name in MESSAGE_TYPES
)
_SEGMENT_FORMAT_PATTERNS = tuple(
    (segment, re.compile(segment + r"\s+(?:segment|field).*?(?:description|definition)[:\s]*([^\n]*(?:\n[^\n]*)?)",
                         re.IGNORECASE))
    for segment in DESCRIBED_SEGMENTS
)

_SECTION_END = r"(?=\n\s*[A-Z]{3}\s+|\n\s*\d+\.|\Z)"
_SECTION_PATTERNS = tuple(
    (SectionType.MESSAGE_FORMAT, f"{segment} Segment",
     compile_section(segment + r"\s+(?:segment|message).*?" + _SECTION_END))
    for segment in SECTION_SEGMENTS
) + tuple(
    (SectionType.MESSAGE_FORMAT, f"{code} Message Type",
     compile_section(code + r".*?message.*?" + _SECTION_END))
    for code, _ in MESSAGE_TYPES
)


class Hl7ParserAdapter(RegexProtocolParser):
    """HL7 v2.x / FHIR 인터페이스 명세서 파서."""

    PROTOCOL_NAME = "HL7"

    def _matches_protocol(self, text: str) -> bool:
        return bool(_PROTOCOL_PATTERN.search(text))

    def _matches_format(self, text: str) -> bool:
        return bool(_MESSAGE_PATTERN.search(text))

    def _section_patterns(self):
        return _SECTION_PATTERNS

    def _extract_version(self, text: str) -> str:
        match = _VERSION_PATTERN.search(text)
        if match:
            return match.group(1)
        if "fhir" in text.lower():
            return "FHIR"
        return "2.x"

    def _extract_message_formats(self, text: str) -> List[MessageFormat]:
        formats = []
        for code, name, pattern in _MESSAGE_FORMAT_PATTERNS:
            match = pattern.search(text)
            if match:
                formats.append(MessageFormat(name=name, structure=code, description=match.group(1).strip()))

        for segment, pattern in _SEGMENT_FORMAT_PATTERNS:
            match = pattern.search(text)
            if match:
                formats.append(MessageFormat(name=f"{segment} Segment", structure=segment,
                                             description=match.group(1).strip()))
        return formats

    def _extract_data_fields(self, text: str) -> List[DataField]:
        fields = []
        for match in _DATA_FIELD_PATTERN.finditer(text):
            segment, number = match.group(1), match.group(2)
            name = match.group(3).strip()
            if name and len(name) < 100:
                fields.append(DataField(
                    name=f"{segment}.{number} {name}",
                    type=match.group(4).strip() if match.group(4) else "String",
                    description=name,
                ))

        for match in _DATA_TYPE_PATTERN.finditer(text):
            type_name = match.group(1).strip()
            if not any(f.type == type_name for f in fields):
                fields.append(DataField(name=type_name, type="DataType", description=match.group(2).strip()))
        return fields

    def _extract_communication_details(self, text: str) -> List[CommunicationDetail]:
        lowered = text.lower()
        details = []
        mllp = None
        if "mllp" in lowered:
            mllp = CommunicationDetail(type="MLLP", protocol="TCP/IP",
                                       description="Minimal Lower Layer Protocol over TCP/IP")
            details.append(mllp)
        if "http" in lowered or "fhir" in lowered:
            details.append(CommunicationDetail(type="HTTP", protocol="REST",
                                               description="RESTful web services (typically for FHIR)"))

        port_match = _PORT_PATTERN.search(text)
        if port_match and mllp is not None:
            mllp.parameters["Port"] = port_match.group(1)
        return details

    def _extract_examples(self, text: str) -> List[str]:
        examples = []
        for match in _WIRE_MESSAGE_PATTERN.finditer(text):
            example = match.group(0).strip()
            if 50 < len(example) < 2000:
                examples.append(example)

        for match in _EXAMPLE_PATTERN.finditer(text):
            example = match.group(1).strip()
            if 20 < len(example) < 1000 and example not in examples:
                examples.append(example)
        return examples

    def _extract_key_sections(self, text: str) -> Dict[str, str]:
        outline = numbered_outline(text, _OUTLINE_PATTERN, max_title_length=100)
        lowered = text.lower()
        for key, title in STANDARD_OUTLINE:
            if key.lower() in lowered and title not in outline.values():
                outline[key] = title
        return outline
