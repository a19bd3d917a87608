# src/device_spec_analyzer/application/message_profiles.py

from typing import Dict, List, Mapping, Optional

from device_spec_analyzer.domain.definitions import POCT1A_MESSAGE_PROFILES
from device_spec_analyzer.domain.messages import (
    MessageCategory,
    MessageDirection,
    MessageProfile,
    MessageSegment,
    ParsedMessage,
)

DIRECTION_SYMBOLS = {
    MessageDirection.DEVICE_TO_SYSTEM: "→",
    MessageDirection.SYSTEM_TO_DEVICE: "←",
    MessageDirection.BIDIRECTIONAL: "↔",
}


class MessageProfileService:
    """POCT1-A 메시지 프로파일 카탈로그 조회 서비스."""

    def __init__(self, profiles: Optional[Mapping[str, MessageProfile]] = None):
        self._profiles = profiles if profiles is not None else POCT1A_MESSAGE_PROFILES

    def get_profile(self, message_type: str) -> Optional[MessageProfile]:
        return self._profiles.get(message_type)

    def get_all_profiles(self) -> List[MessageProfile]:
        return list(self._profiles.values())

    def get_profiles_by_category(self, category: MessageCategory) -> List[MessageProfile]:
        return [p for p in self._profiles.values() if p.category == category]

    def get_profiles_by_direction(self, direction: MessageDirection) -> List[MessageProfile]:
        return [p for p in self._profiles.values() if p.direction == direction]

    def get_conversation_starters(self) -> List[MessageProfile]:
        return [p for p in self._profiles.values() if p.is_conversation_starter]

    def get_related_messages(self, message_type: str) -> List[MessageProfile]:
        profile = self.get_profile(message_type)
        if profile is None:
            return []
        # 카탈로그에 없는 관련 메시지(EOT.R01 등)는 건너뜀
        return [self._profiles[m] for m in profile.related_messages if m in self._profiles]

    @staticmethod
    def direction_symbol(direction: MessageDirection) -> str:
        return DIRECTION_SYMBOLS.get(direction, "")

    def extract_key_values(self, message: ParsedMessage) -> Dict[str, str]:
        """
        메시지 프로파일의 key_fields 각각에 대해 세그먼트들에서 처음 발견되는 비어있지 않은 값을 모읍니다.
        필드 ID 또는 이름을 대소문자 구분 없이 비교합니다.
        """
        profile = self.get_profile(message.message_type)
        if profile is None:
            return {}

        key_values = {}
        for key_field in profile.key_fields:
            value = self._find_field_value(message.segments, key_field)
            if value:
                key_values[key_field] = value
        return key_values

    def is_request_response_pair(self, first_type: str, second_type: str) -> bool:
        first = self.get_profile(first_type)
        second = self.get_profile(second_type)
        if first is None or second is None:
            return False
        return second_type in first.related_messages or first_type in second.related_messages

    @staticmethod
    def _find_field_value(segments: List[MessageSegment], field_id: str) -> Optional[str]:
        wanted = field_id.lower()
        for segment in segments:
            for message_field in segment.fields:
                if message_field.field_id.lower() == wanted or message_field.name.lower() == wanted:
                    if message_field.value and message_field.value.strip():
                        return message_field.value
                    # 첫 번째로 일치한 필드만 본다
                    break
        return None
