"""Errors raised by the session layer.

Every error carries a short ``code`` so transport handlers can forward it to
the originating connection without inspecting the type.
"""


class SessionError(Exception):
    code = 'session_error'

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or self.__class__.__doc__ or self.code


class RoomNotFound(SessionError):
    """Room not found"""
    code = 'room_not_found'

    def __init__(self, room_code):
        super().__init__(f'Room {room_code} not found')
        self.room_code = room_code


class AlreadyClaimed(SessionError):
    """Difference already found"""
    code = 'already_claimed'

    def __init__(self, difference_id, claimant_id=None):
        super().__init__(f'Difference {difference_id} already found')
        self.difference_id = difference_id
        self.claimant_id = claimant_id


class DuplicateRoomCode(SessionError):
    """Room code already in use"""
    code = 'duplicate_room_code'


class InvalidTransition(SessionError):
    """Operation not allowed in the room's current state"""
    code = 'invalid_transition'


class MalformedEvent(SessionError):
    """Event payload is missing fields or has the wrong shape"""
    code = 'malformed_event'

    def __init__(self, event_name, detail=None):
        super().__init__(f'Malformed {event_name} event' + (f': {detail}' if detail else ''))
        self.event_name = event_name


class PersistenceWriteFailed(SessionError):
    """Store write failed"""
    code = 'persistence_write_failed'
