"""Immutable room content: images, their differences, and room settings."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class RoomStatus(str, Enum):
    LOBBY = 'LOBBY'
    PLAYING = 'PLAYING'
    FINISHED = 'FINISHED'
    CLOSED = 'CLOSED'


@dataclass(frozen=True)
class Difference:
    id: str
    # Geometry and any other annotation fields, passed through to clients as-is
    region: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.region, 'id': self.id}


@dataclass(frozen=True)
class Image:
    id: str
    original_url: str
    modified_url: str
    differences: Tuple[Difference, ...] = ()

    @property
    def difference_ids(self) -> List[str]:
        return [d.id for d in self.differences]

    def has_difference(self, difference_id: str) -> bool:
        return any(d.id == difference_id for d in self.differences)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'originalUrl': self.original_url,
            'modifiedUrl': self.modified_url,
            'differences': [d.to_dict() for d in self.differences],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Image':
        """Build an image from a stored row or a client payload.

        Accepts both snake_case (database) and camelCase (wire) url keys.
        A difference stored without an id is identified by its position.
        """
        differences = []
        for index, raw in enumerate(data.get('differences') or []):
            raw = dict(raw) if isinstance(raw, dict) else {}
            diff_id = raw.pop('id', None)
            differences.append(Difference(id=str(diff_id if diff_id is not None else index), region=raw))
        return cls(
            id=str(data['id']),
            original_url=data.get('original_url') or data.get('originalUrl') or '',
            modified_url=data.get('modified_url') or data.get('modifiedUrl') or '',
            differences=tuple(differences),
        )


@dataclass(frozen=True)
class RoomSettings:
    timer_per_image_seconds: int = 60

    def to_dict(self) -> Dict[str, Any]:
        return {'timerPerImageSeconds': self.timer_per_image_seconds}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], default_timer: int = 60) -> 'RoomSettings':
        data = data or {}
        timer = data.get('timerPerImageSeconds', data.get('timerPerImage', default_timer))
        return cls(timer_per_image_seconds=int(timer))
