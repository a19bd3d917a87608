"""
Unit Tests for message parsing and document classification

POCT1-A XML and ASTM pipe-delimited message parsing, embedded message discovery,
specification vs. trace-log classification and the message profile catalog.
"""

import pytest

from device_spec_analyzer.application.message_parsing import MessageParsingService, format_field_name
from device_spec_analyzer.application.message_profiles import MessageProfileService
from device_spec_analyzer.domain.messages import (
    DocumentType,
    MessageCategory,
    MessageDirection,
    ProtocolType,
)

HELLO_MESSAGE = (
    '<HEL.R01><HDR><HDR.control_id V="10001"/><HDR.version_id V="POCT1"/></HDR>'
    '<DEV><DEV.device_id V="00:0A:1B"/><DEV.sw_version V="2.1"/>'
    '<DEV.manufacturer_name V="Quidel"/></DEV></HEL.R01>'
)

ASTM_MESSAGE = (
    "H|\\^&|||Sofia^1234|||||||P|1.0|20240101\n"
    "R|1|Flu A|Negative||||||F\n"
    "L|1|N"
)

SPEC_MESSAGES = [
    '<HEL.R01><HDR><HDR.control_id V="1"/></HDR></HEL.R01>',
    '<DST.R01><HDR><HDR.control_id V="2"/></HDR></DST.R01>',
    '<OBS.R01><HDR><HDR.control_id V="3"/></HDR></OBS.R01>',
    '<ACK.R01><ACK><ACK.type_cd V="AA"/></ACK></ACK.R01>',
    '<REQ.R01><HDR><HDR.control_id V="5"/></HDR></REQ.R01>',
    '<END.R01><HDR><HDR.control_id V="6"/></HDR></END.R01>',
    '<OBS.R01><HDR><HDR.control_id V="7"/></HDR><PT><PT.patient_id V="P-7"/></PT></OBS.R01>',
]

SPEC_TEXT = (
    "POCT1-A Connectivity Protocol Specification\n"
    "Section 3 Message Profile Overview\n"
    "This specification covers the communication protocol between the device and the data manager.\n"
    "Example messages for each profile are listed in the table below.\n"
    + "\n".join(SPEC_MESSAGES)
)


def trace_text(repeats=80):
    lines = ["Trace log captured from the analyzer: timestamp, session and sequence number per line"]
    for i in range(repeats):
        lines.append(f"2024-01-01 10:{i // 60:02d}:{i % 60:02d} session 42 sequence number {i} received")
        lines.append(f'<OBS.R01><HDR><HDR.control_id V="{i}"/></HDR></OBS.R01>')
    return "\n".join(lines)


@pytest.fixture
def service():
    return MessageParsingService()


# ---------------------------------------------------------------------------
# SINGLE MESSAGES
# ---------------------------------------------------------------------------


class TestParseMessage:

    def test_detect_protocol(self, service):
        assert service.detect_protocol(HELLO_MESSAGE) == ProtocolType.POCT1A
        assert service.detect_protocol('<?xml version="1.0"?><X/>') == ProtocolType.POCT1A
        assert service.detect_protocol(ASTM_MESSAGE) == ProtocolType.ASTM
        assert service.detect_protocol("plain text") == ProtocolType.UNKNOWN

    def test_poct1a_message_with_profile_and_key_values(self, service):
        message = service.parse_message(HELLO_MESSAGE)

        assert message.is_valid
        assert message.protocol == ProtocolType.POCT1A
        assert message.message_type == "HEL.R01"
        assert message.profile.name == "Hello Message"
        assert message.key_values == {
            "HDR.control_id": "10001",
            "DEV.device_id": "00:0A:1B",
            "DEV.sw_version": "2.1",
            "DEV.manufacturer_name": "Quidel",
        }
        fields = {f.field_id: f for f in message.segments[0].fields}
        assert "DEV.sw_version" in fields
        assert fields["HDR.control_id"].description == "Unique message identifier"

    def test_xml_declaration_is_ignored(self, service):
        message = service.parse_message('<?xml version="1.0" encoding="UTF-8"?>' + HELLO_MESSAGE)
        assert message.is_valid
        assert message.message_type == "HEL.R01"

    def test_malformed_xml_is_reported_not_raised(self, service):
        message = service.parse_message("<HEL.R01><HDR>", ProtocolType.POCT1A)
        assert not message.is_valid
        assert message.errors[0].startswith("XML parsing error")

    def test_unknown_poct1a_message_type(self, service):
        message = service.parse_message("<ZZZ.R01></ZZZ.R01>")
        assert not message.is_valid
        assert message.errors == ["Unknown POCT1-A message type: ZZZ.R01"]

    def test_undetectable_protocol(self, service):
        message = service.parse_message("nothing to see")
        assert not message.is_valid
        assert message.errors == ["Unable to detect message protocol"]

    def test_astm_message_segments_and_fields(self, service):
        message = service.parse_message(ASTM_MESSAGE)

        assert message.is_valid
        assert message.message_type == "ASTM Message"
        assert [s.segment_id for s in message.segments] == ["H", "R", "L"]
        result_fields = {f.name: f.value for f in message.segments[1].fields}
        assert result_fields["Analyte Name"] == "Flu A"
        assert result_fields["Result Value"] == "Negative"
        assert message.segments[2].fields == []

    def test_forced_protocol_bypasses_detection(self, service):
        message = service.parse_message("  " + ASTM_MESSAGE, ProtocolType.ASTM)
        assert message.protocol == ProtocolType.ASTM

    def test_format_field_name(self):
        assert format_field_name("device_id") == "Device Id"
        assert format_field_name("sw_version") == "Sw Version"


# ---------------------------------------------------------------------------
# DOCUMENT LEVEL
# ---------------------------------------------------------------------------


class TestDocumentMessages:

    def test_embedded_messages_sorted_by_length(self, service):
        text = "Intro\n" + HELLO_MESSAGE + "\nSome words\n" + ASTM_MESSAGE + "\nEnd"
        messages = service.parse_document_messages(text)

        assert {m.protocol for m in messages} == {ProtocolType.POCT1A, ProtocolType.ASTM}
        lengths = [len(m.raw_content) for m in messages]
        assert lengths == sorted(lengths)

    def test_astm_example_with_annotations(self, service):
        text = (
            "Example exchange\n"
            "H|\\^&|||Sofia^99|||||||P|1.0|20240101\n"
            "Sofia: sends result\n"
            "R|1|Strep A|Positive||||||F\n"
            "Closing line without terminator\n"
        )
        messages = service.parse_document_messages(text)
        assert len(messages) == 1
        assert [s.segment_id for s in messages[0].segments] == ["H", "R"]

    def test_empty_document(self, service):
        assert service.parse_document_messages("") == []
        assert service.detect_document_type("") == DocumentType.UNKNOWN


class TestClassification:

    def test_specification_with_six_message_types(self, service):
        assert service.detect_document_type(SPEC_TEXT) == DocumentType.SPECIFICATION

        result = service.parse_document_messages_advanced(SPEC_TEXT)

        assert result.document_type == DocumentType.SPECIFICATION
        assert len(result.message_types) == 6
        assert result.total_examples == 7
        assert result.message_type_counts["OBS.R01"] == 2
        observation = next(m for m in result.message_types if m.message_type == "OBS.R01")
        assert len(observation.examples) == 1
        assert observation.examples[0].is_specification_example
        assert not observation.is_specification_example
        assert result.analysis_summary == "Specification document with 6 message types and 7 examples total."

    def test_trace_log_with_repeated_messages(self, service):
        text = trace_text()
        assert service.detect_document_type(text) == DocumentType.TRACE_LOG

        result = service.parse_document_messages_advanced(text)

        assert result.document_type == DocumentType.TRACE_LOG
        assert len(result.message_types) == 80
        assert result.analysis_summary == "Trace log with 80 message instances."


# ---------------------------------------------------------------------------
# PROFILE CATALOG
# ---------------------------------------------------------------------------


class TestMessageProfileService:

    @pytest.fixture
    def profiles(self):
        return MessageProfileService()

    def test_catalog_size_and_lookup(self, profiles):
        assert len(profiles.get_all_profiles()) == 18
        assert profiles.get_profile("OBS.R01").name == "Patient Observation Data"
        assert profiles.get_profile("XYZ.R99") is None

    def test_only_hello_starts_a_conversation(self, profiles):
        assert [p.message_type for p in profiles.get_conversation_starters()] == ["HEL.R01"]

    def test_filters(self, profiles):
        assert all(p.category == MessageCategory.VENDOR_SPECIFIC
                   for p in profiles.get_profiles_by_category(MessageCategory.VENDOR_SPECIFIC))
        assert "REQ.R01" in [p.message_type for p in profiles.get_profiles_by_direction(MessageDirection.SYSTEM_TO_DEVICE)]

    def test_related_messages(self, profiles):
        assert [p.message_type for p in profiles.get_related_messages("OBS.R01")] == ["REQ.R01", "ACK.R01"]
        assert profiles.get_related_messages("XYZ.R99") == []

    def test_request_response_pairs(self, profiles):
        assert profiles.is_request_response_pair("HEL.R01", "ACK.R01")
        assert profiles.is_request_response_pair("ACK.R01", "HEL.R01")
        assert not profiles.is_request_response_pair("HEL.R01", "XYZ.R99")

    def test_direction_symbols(self):
        assert MessageProfileService.direction_symbol(MessageDirection.DEVICE_TO_SYSTEM) == "→"
        assert MessageProfileService.direction_symbol(MessageDirection.SYSTEM_TO_DEVICE) == "←"
        assert MessageProfileService.direction_symbol(MessageDirection.BIDIRECTIONAL) == "↔"
