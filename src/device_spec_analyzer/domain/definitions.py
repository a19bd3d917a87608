# src/device_spec_analyzer/domain/definitions.py
"""
POCT1-A / ASTM 메시지 참조 카탈로그.

모듈 로드 시 한 번 만들어지며 MappingProxyType 으로 감싸 읽기 전용으로 노출합니다.
"""

from collections import namedtuple
from types import MappingProxyType

from device_spec_analyzer.domain.messages import MessageProfile, MessageDirection, MessageCategory

FieldDefinition = namedtuple("FieldDefinition", ["field_id", "name", "description", "required"])

_D2S = MessageDirection.DEVICE_TO_SYSTEM
_S2D = MessageDirection.SYSTEM_TO_DEVICE
_BI = MessageDirection.BIDIRECTIONAL

_PROFILES = (
    MessageProfile(
        message_type="HEL.R01",
        name="Hello Message",
        description="Initiate communication",
        direction=_D2S,
        category=MessageCategory.BASIC_PROFILE,
        purpose="Initiates communication and provides device identification including vendor ID, "
                "device name, software version, and supported capabilities",
        key_fields=("HDR.control_id", "DEV.device_id", "DEV.sw_version", "DEV.manufacturer_name"),
        is_conversation_starter=True,
        requires_acknowledgment=True,
        related_messages=("ACK.R01",),
    ),
    MessageProfile(
        message_type="ACK.R01",
        name="Message ACK",
        description="Message acknowledgement response",
        direction=_BI,
        category=MessageCategory.BASIC_PROFILE,
        purpose="Acknowledges receipt of messages and indicates success or failure of processing",
        key_fields=("ACK.type_cd", "ACK.ack_control_id"),
    ),
    MessageProfile(
        message_type="DST.R01",
        name="Device Status",
        description="Device status message",
        direction=_D2S,
        category=MessageCategory.BASIC_PROFILE,
        purpose="Reports current device status including new observation counts, device events, "
                "and instrument condition (ready/locked)",
        key_fields=("DST.new_observations_qty", "DST.new_events_qty", "DST.condition_cd"),
        requires_acknowledgment=True,
        related_messages=("ACK.R01",),
    ),
    MessageProfile(
        message_type="OBS.R01",
        name="Patient Observation Data",
        description="Patient observation data",
        direction=_D2S,
        category=MessageCategory.BASIC_PROFILE,
        purpose="Transmits patient test results including analyte values, patient ID, operator, "
                "and reagent information",
        key_fields=("PT.patient_id", "OBS.observation_id", "OBS.value", "SVC.observation_dttm"),
        requires_acknowledgment=True,
        related_messages=("REQ.R01", "ACK.R01"),
    ),
    MessageProfile(
        message_type="OBS.R02",
        name="Control Observation Data",
        description="Control observation data",
        direction=_D2S,
        category=MessageCategory.BASIC_PROFILE,
        purpose="Transmits quality control test results including control lot information, "
                "expected ranges, and QC values",
        key_fields=("CTC.name", "CTC.lot_number", "OBS.value", "OBS.normal_lo_hi_limit"),
        requires_acknowledgment=True,
        related_messages=("REQ.R01", "ACK.R01"),
    ),
    MessageProfile(
        message_type="REQ.R01",
        name="Request Data",
        description="Request data",
        direction=_S2D,
        category=MessageCategory.BASIC_PROFILE,
        purpose="Requests specific data from device (new observations, all observations, "
                "device events, or device status)",
        key_fields=("REQ.request_cd",),
        related_messages=("OBS.R01", "OBS.R02", "EVS.R01", "DST.R01"),
    ),
    MessageProfile(
        message_type="END.R01",
        name="Terminate Conversation",
        description="Terminate conversation",
        direction=_S2D,
        category=MessageCategory.BASIC_PROFILE,
        purpose="Terminates the current conversation session with the device",
        key_fields=("TRM.reason_cd",),
    ),
    MessageProfile(
        message_type="ESC.R01",
        name="Escape Message",
        description="Escape message",
        direction=_BI,
        category=MessageCategory.BASIC_PROFILE,
        purpose="Indicates device cannot process incoming messages (e.g., assay running)",
        key_fields=("ESC.detail_cd", "ESC.note_txt"),
    ),
    MessageProfile(
        message_type="EVS.R01",
        name="Device Events",
        description="Device event information and errors",
        direction=_D2S,
        category=MessageCategory.BASIC_PROFILE,
        purpose="Reports device events and error conditions including patient context and assay information",
        key_fields=("EVT.description", "EVT.severity_cd", "EVT.event_dttm", "EVT.assay_type"),
        requires_acknowledgment=True,
        related_messages=("REQ.R01", "ACK.R01"),
    ),
    MessageProfile(
        message_type="DTV.R01",
        name="Simple Directive",
        description="Simple directive",
        direction=_S2D,
        category=MessageCategory.DIRECTIVE,
        purpose="Sends simple commands to device without additional data",
        key_fields=("DTV.command_cd",),
        requires_acknowledgment=True,
        related_messages=("ACK.R01",),
    ),
    MessageProfile(
        message_type="DTV.R02",
        name="Complex Directive",
        description="Complex directive with additional data",
        direction=_S2D,
        category=MessageCategory.DIRECTIVE,
        purpose="Sends complex commands with additional data (e.g., set time, operator lists)",
        key_fields=("DTV.command_cd",),
        requires_acknowledgment=True,
        related_messages=("ACK.R01",),
    ),
    MessageProfile(
        message_type="OPL.R01",
        name="New Operator List",
        description="Complete operator list update",
        direction=_S2D,
        category=MessageCategory.DIRECTIVE,
        purpose="Replaces entire operator list in device with new operators and permissions",
        key_fields=("OPR.operator_id", "ACC.method_cd", "ACC.permission_level_cd"),
        requires_acknowledgment=True,
        related_messages=("ACK.R01", "EOT.R01"),
    ),
    MessageProfile(
        message_type="OPL.R02",
        name="Incremental Operator List",
        description="Incremental operator list update",
        direction=_S2D,
        category=MessageCategory.DIRECTIVE,
        purpose="Adds or removes specific operators from device without replacing entire list",
        key_fields=("UPD.action_cd", "OPR.operator_id"),
        requires_acknowledgment=True,
        related_messages=("ACK.R01",),
    ),
    MessageProfile(
        message_type="DTV.ALERE.AXIS.LQCSET",
        name="Liquid QC Lot Setup",
        description="Liquid control lot information Add/clear list",
        direction=_S2D,
        category=MessageCategory.VENDOR_SPECIFIC,
        purpose="Manages liquid QC control lot information including expected ranges and expiration dates",
        key_fields=("name", "lot_number", "level_cd", "expiration_date"),
        requires_acknowledgment=True,
        related_messages=("ACK.R01",),
    ),
    MessageProfile(
        message_type="DTV.ALERE.AXIS.DVCSET",
        name="Device Setup",
        description="Device setup configuration",
        direction=_S2D,
        category=MessageCategory.VENDOR_SPECIFIC,
        purpose="Configures device settings including QC lockout, operator lockout, and connection timing",
        key_fields=("operator_lockout", "qc_lockout", "connection.connect_dly"),
        requires_acknowledgment=True,
        related_messages=("ACK.R01",),
    ),
    MessageProfile(
        message_type="ALERE.AXIS.LOCKSTATUS",
        name="Lockout Status",
        description="Lockout status information",
        direction=_D2S,
        category=MessageCategory.VENDOR_SPECIFIC,
        purpose="Reports current lockout status for QC and operator restrictions",
        key_fields=("qc_lockout", "operator_lockout"),
        requires_acknowledgment=True,
        related_messages=("REQ.R01",),
    ),
    MessageProfile(
        message_type="DTV.AFINION.SWU",
        name="Software Upgrade Directive",
        description="Software upgrade directive",
        direction=_S2D,
        category=MessageCategory.VENDOR_SPECIFIC,
        purpose="Initiates software upgrade process with image size and segment information",
        key_fields=("SWU.image_size", "SWU.segment_size", "SWU.auto_update"),
        requires_acknowledgment=True,
        related_messages=("ACK.R01", "SWU.SEGMENT"),
    ),
    MessageProfile(
        message_type="SWU.SEGMENT",
        name="Software Upgrade Segment",
        description="Software upgrade segment data",
        direction=_S2D,
        category=MessageCategory.VENDOR_SPECIFIC,
        purpose="Transmits individual segments of software upgrade image with checksums",
        key_fields=("SEG.size", "SEG.seq", "SEG.crc"),
        requires_acknowledgment=True,
        related_messages=("ACK.R01", "EOT.R01"),
    ),
)

# 메시지 유형 -> 프로파일 (등록 순서 유지)
POCT1A_MESSAGE_PROFILES = MappingProxyType({p.message_type: p for p in _PROFILES})

# ASTM 레코드 유형 -> (이름, 설명)
ASTM_SEGMENTS = MappingProxyType({
    "H": ("Header", "Message header with analyzer identification"),
    "P": ("Patient", "Patient identification information"),
    "O": ("Order", "Test order and sample information"),
    "C": ("Comment", "Additional comments and sample information"),
    "R": ("Result", "Test result data and values"),
    "L": ("Terminator", "Message termination marker"),
})

POCT1A_FIELDS = MappingProxyType({
    "HEL.R01": (
        FieldDefinition("HDR.control_id", "Control ID", "Unique message identifier", True),
        FieldDefinition("HDR.version_id", "Version ID", "Protocol version (POCT1)", True),
        FieldDefinition("HDR.creation_dttm", "Creation DateTime", "Message creation timestamp", True),
        FieldDefinition("DEV.device_id", "Device ID", "Device MAC address", True),
        FieldDefinition("DEV.serial_id", "Serial Number", "Device serial number", True),
        FieldDefinition("DEV.manufacturer_name", "Manufacturer", "Device manufacturer name", True),
        FieldDefinition("DEV.device_name", "Device Name", "Device model name", True),
        FieldDefinition("DEV.sw_version", "Software Version", "Device software version", True),
    ),
    "OBS.R01": (
        FieldDefinition("HDR.control_id", "Control ID", "Unique message identifier", True),
        FieldDefinition("SVC.role_cd", "Role Code", "Service role (OBS for observations)", True),
        FieldDefinition("SVC.observation_dttm", "Observation DateTime", "When test was completed", True),
        FieldDefinition("PT.patient_id", "Patient ID", "Patient identifier", True),
        FieldDefinition("OBS.observation_id", "Observation ID", "Analyte name", True),
        FieldDefinition("OBS.qualitative_value", "Result Value", "Test result (positive/negative)", True),
        FieldDefinition("OPR.operator_id", "Operator ID", "Operator who performed test", False),
        FieldDefinition("RGT.name", "Reagent Name", "Test cartridge/reagent name", True),
        FieldDefinition("RGT.lot_number", "Lot Number", "Reagent lot number", True),
    ),
})

# ASTM 레코드 유형별 필드 정의 ('|' 로 나눈 순서와 1:1 대응)
ASTM_FIELDS = MappingProxyType({
    "H": (
        FieldDefinition("H-1", "Record Type", "Always 'H' for header", True),
        FieldDefinition("H-2", "Delimiters", "Field delimiters (|\\^&)", True),
        FieldDefinition("H-5.1", "Analyzer Name", "Device name", True),
        FieldDefinition("H-5.2", "Serial Number", "Device serial number", True),
        FieldDefinition("H-12", "Processing ID", "Always 'P' for production", True),
        FieldDefinition("H-13", "Version", "Software version", True),
        FieldDefinition("H-14", "DateTime", "Message creation time", True),
    ),
    "R": (
        FieldDefinition("R-1", "Record Type", "Always 'R' for result", True),
        FieldDefinition("R-2", "Sequence Number", "Result sequence number", True),
        FieldDefinition("R-3", "Analyte Name", "Test analyte identifier", True),
        FieldDefinition("R-4", "Result Value", "Test result value", True),
        FieldDefinition("R-7", "Test Flag", "Result interpretation flag", False),
        FieldDefinition("R-9", "Result Type", "F=Final, R=Retransmitted", True),
        FieldDefinition("R-13", "DateTime", "Test completion time", True),
    ),
})

_FIELD_DESCRIPTIONS = {}
for _definitions in POCT1A_FIELDS.values():
    for _definition in _definitions:
        _FIELD_DESCRIPTIONS.setdefault(_definition.field_id, _definition.description)

# 필드 경로 -> 설명 (먼저 정의된 메시지 우선)
POCT1A_FIELD_DESCRIPTIONS = MappingProxyType(_FIELD_DESCRIPTIONS)
