# src/device_spec_analyzer/application/document_metadata.py
"""
문서 원문에서 프로토콜/버전/제조사/장비명을 가볍게 추정하는 함수들.

고정 키워드 표를 순서대로 검사하며, 처음 일치한 항목이 선택됩니다.
"""

import re
from typing import Optional, Pattern, Tuple

UNKNOWN = "Unknown"

# (프로토콜 이름, 탐지 키워드, 버전 패턴)
PROTOCOL_RULES: Tuple[Tuple[str, Tuple[str, ...], Pattern], ...] = (
    ("POCT1-A", ("poct1", "poct-1", "point of care"),
     re.compile(r"poct1?-?a\s+(?:version\s+)?(\d+\.?\d*)", re.IGNORECASE)),
    ("ASTM", ("astm", "e1381", "e1394"),
     re.compile(r"(?:astm\s+)?(?:e\d+-?\d*|\d+\.\d+)", re.IGNORECASE)),
    ("HL7", ("hl7", "health level", "fhir"),
     re.compile(r"hl7\s+(?:version\s+)?(\d+\.?\d*)", re.IGNORECASE)),
)

MANUFACTURERS = (
    "Abbott", "Siemens", "Roche", "Beckman", "Ortho", "Alere", "Quidel", "Nova", "Radiometer",
    "Instrumentation Laboratory",
)

DEVICE_NAMES = ("Afinion", "i-STAT", "ID Now", "BNP", "Stratus", "Triage", "Piccolo", "EPOC", "ABL", "GEM")


def extract_version(text: str, pattern: Pattern) -> str:
    """첫 번째 캡처 그룹을 버전으로 사용합니다. 일치가 없거나 캡처 그룹이 없으면 "Unknown"."""
    match = pattern.search(text)
    if match is None or pattern.groups < 1 or not match.group(1):
        return UNKNOWN
    return match.group(1)


def detect_protocol(text: str) -> Tuple[str, str]:
    lowered = text.lower()
    for protocol, keywords, version_pattern in PROTOCOL_RULES:
        if any(keyword in lowered for keyword in keywords):
            return protocol, extract_version(text, version_pattern)
    return UNKNOWN, UNKNOWN


def _first_contained(text: str, candidates: Tuple[str, ...]) -> Optional[str]:
    lowered = text.lower()
    for candidate in candidates:
        if candidate.lower() in lowered:
            return candidate
    return None


def detect_manufacturer(text: str) -> Optional[str]:
    return _first_contained(text, MANUFACTURERS)


def detect_device_name(text: str) -> Optional[str]:
    return _first_contained(text, DEVICE_NAMES)
