from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence
import random
import threading

from .errors import DuplicateRoomCode
from .ledger import DifferenceLedger
from .players import PlayerSet
from .state import Image, RoomSettings, RoomStatus
from .timer import ProgressionTimer

# No 0/O or 1/I
ROOM_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
ROOM_CODE_LENGTH = 6


def generate_room_code(rng=random) -> str:
    return ''.join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


@dataclass(eq=False)
class Room:
    code: str
    id: str
    image_queue: tuple
    settings: RoomSettings
    timer: ProgressionTimer
    status: RoomStatus = RoomStatus.LOBBY
    current_image_index: int = 0
    players: PlayerSet = field(default_factory=PlayerSet)
    ledger: DifferenceLedger = field(default_factory=DifferenceLedger)
    # Serializes every mutation of this room, timer expiries included
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @property
    def current_image(self) -> Optional[Image]:
        if 0 <= self.current_image_index < len(self.image_queue):
            return self.image_queue[self.current_image_index]
        return None

    def snapshot(self):
        return {
            'id': self.id,
            'code': self.code,
            'status': self.status.value,
            'imageQueue': [image.to_dict() for image in self.image_queue],
            'currentImageIndex': self.current_image_index,
            'settings': self.settings.to_dict(),
            'players': [p.to_dict() for p in self.players],
            'timerDeadline': self.timer.deadline,
        }


class RoomRegistry:
    """Live rooms of this process, keyed by room code."""

    def __init__(self, timer_factory: Callable[[], ProgressionTimer]):
        self._timer_factory = timer_factory
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._rooms)

    def __contains__(self, code):
        return code in self._rooms

    def create_room(self, code: str, room_id: str, image_queue: Sequence[Image], settings: RoomSettings) -> Room:
        with self._lock:
            if code in self._rooms:
                raise DuplicateRoomCode(f'Room code {code} already in use')
            room = Room(
                code=code,
                id=room_id,
                image_queue=tuple(image_queue),
                settings=settings,
                timer=self._timer_factory(),
            )
            self._rooms[code] = room
            return room

    def get(self, code: Optional[str]) -> Optional[Room]:
        if not code:
            return None
        return self._rooms.get(code)

    def find_by_id(self, room_id: str) -> Optional[Room]:
        for room in self.rooms():
            if room.id == room_id:
                return room
        return None

    def remove(self, code: str) -> Optional[Room]:
        with self._lock:
            return self._rooms.pop(code, None)

    def rooms(self) -> List[Room]:
        with self._lock:
            return list(self._rooms.values())
