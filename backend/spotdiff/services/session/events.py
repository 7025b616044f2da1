"""
Pydantic schemas for the Socket.IO and REST payloads.

Inbound events are validated here before they reach the session controller;
outbound events are built here so every broadcast has one fixed shape.
Wire names are camelCase, attribute names are snake_case.
"""

from typing import Any, ClassVar, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .errors import MalformedEvent


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
        frozen=True,
    )


# ---- Inbound ----

class RoomEvent(WireModel):
    room_code: str = Field(min_length=1, max_length=16)

    @field_validator('room_code')
    @classmethod
    def upper_room_code(cls, value: str) -> str:
        return value.upper()


class JoinRoom(RoomEvent):
    player_id: Optional[str] = Field(default=None, max_length=36)
    nickname: str = Field(min_length=1, max_length=64)
    avatar: Optional[str] = Field(default=None, max_length=64)


class StartMatch(RoomEvent):
    pass


class ClaimDifference(RoomEvent):
    image_id: str = Field(min_length=1)
    difference_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices('differenceId', 'diffId', 'difference_id'),
    )


class CloseRoom(RoomEvent):
    pass


INBOUND_EVENTS: Dict[str, type] = {
    'join_room': JoinRoom,
    'admin_start_match': StartMatch,
    'player_found_diff': ClaimDifference,
    'admin_close_room': CloseRoom,
}


def parse_inbound(name: str, data: Any) -> RoomEvent:
    """Validate a raw Socket.IO payload into its event model.

    Raises MalformedEvent for unknown event names and invalid payloads.
    """
    model = INBOUND_EVENTS.get(name)
    if model is None:
        raise MalformedEvent(name, 'unknown event')
    if not isinstance(data, dict):
        raise MalformedEvent(name, 'payload must be an object')
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise MalformedEvent(name, f'{exc.error_count()} invalid field(s)') from exc


class SettingsIn(WireModel):
    timer_per_image_seconds: Optional[int] = Field(
        default=None,
        gt=0,
        le=3600,
        validation_alias=AliasChoices('timerPerImageSeconds', 'timerPerImage', 'timer_per_image_seconds'),
    )


class CreateRoomRequest(WireModel):
    admin_id: Optional[str] = None
    image_ids: List[str] = Field(min_length=1)
    settings: Optional[SettingsIn] = None


# ---- Outbound ----

class OutboundEvent(WireModel):
    event_name: ClassVar[str]

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class RoomState(OutboundEvent):
    event_name: ClassVar[str] = 'room_state'
    players: List[Dict[str, Any]]
    status: str
    image_queue: List[Dict[str, Any]]
    current_image_index: int

    @classmethod
    def of(cls, room) -> 'RoomState':
        return cls(
            players=[p.to_dict() for p in room.players.online()],
            status=room.status.value,
            image_queue=[image.to_dict() for image in room.image_queue],
            current_image_index=room.current_image_index,
        )


class GameStart(OutboundEvent):
    event_name: ClassVar[str] = 'game_start'
    start_time: int
    current_image: Dict[str, Any]
    timer_seconds: int


class DiffFound(OutboundEvent):
    event_name: ClassVar[str] = 'diff_found'
    player_id: str
    player_name: str
    difference_id: str
    new_score: int
    all_scores: List[Dict[str, Any]]


class DiffAlreadyFound(OutboundEvent):
    event_name: ClassVar[str] = 'diff_already_found'
    difference_id: str


class ImageChange(OutboundEvent):
    event_name: ClassVar[str] = 'image_change'
    current_image: Dict[str, Any]
    timer_seconds: int
    image_index: int


class GameOver(OutboundEvent):
    event_name: ClassVar[str] = 'game_over'
    final_scores: List[Dict[str, Any]]


class RoomClosed(OutboundEvent):
    event_name: ClassVar[str] = 'room_closed'


class Joined(OutboundEvent):
    event_name: ClassVar[str] = 'joined'
    player_id: str
    room_code: str
    reconnected: bool = False


class ErrorMessage(OutboundEvent):
    event_name: ClassVar[str] = 'error'
    code: str
    message: str
