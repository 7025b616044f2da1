from flask import current_app, request
from flask_socketio import emit

from spotdiff import socketio, SOCKET_NAMESPACE
from spotdiff.services.session.errors import AlreadyClaimed, MalformedEvent, SessionError
from spotdiff.services.session.events import DiffAlreadyFound, ErrorMessage, parse_inbound


def _controller():
    return current_app.extensions['session_controller']


def _get_sid() -> str:
    return request.sid  # type: ignore[attr-defined]


def _reply(event):
    emit(event.event_name, event.payload())


def handle_connect(auth=None):
    emit('connected', {'message': f'Connected to {SOCKET_NAMESPACE}'})


def handle_disconnect(reason=None):
    _controller().disconnect(_get_sid())


def _join(controller, event):
    controller.join(event.room_code, _get_sid(), event.nickname, event.avatar, player_id=event.player_id)


def _start(controller, event):
    controller.start_match(event.room_code)


def _claim(controller, event):
    controller.claim_difference(event.room_code, _get_sid(), event.image_id, event.difference_id)


def _close(controller, event):
    controller.close_room(event.room_code)


def _handler(name, action):
    """Validate the payload, run the controller action, answer errors to the sender only."""
    def handler(data=None):
        try:
            event = parse_inbound(name, data)
        except MalformedEvent as exc:
            current_app.logger.warning(f"[event-dropped] sid={_get_sid()} event={name} reason={exc}")
            return
        try:
            action(_controller(), event)
        except AlreadyClaimed as exc:
            _reply(DiffAlreadyFound(difference_id=exc.difference_id))
        except SessionError as exc:
            current_app.logger.info(f"[event-rejected] sid={_get_sid()} event={name} code={exc.code}")
            _reply(ErrorMessage(code=exc.code, message=exc.message))
    handler.__name__ = f"handle_{name}"
    return handler


handle_join_room = _handler('join_room', _join)
handle_start_match = _handler('admin_start_match', _start)
handle_found_diff = _handler('player_found_diff', _claim)
handle_close_room = _handler('admin_close_room', _close)


def register_socketio_handlers() -> None:
    socketio.on_event('connect', handle_connect, namespace=SOCKET_NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=SOCKET_NAMESPACE)
    socketio.on_event('join_room', handle_join_room, namespace=SOCKET_NAMESPACE)
    socketio.on_event('admin_start_match', handle_start_match, namespace=SOCKET_NAMESPACE)
    socketio.on_event('player_found_diff', handle_found_diff, namespace=SOCKET_NAMESPACE)
    socketio.on_event('admin_close_room', handle_close_room, namespace=SOCKET_NAMESPACE)
