from flask import Blueprint, jsonify, request, current_app
from pydantic import ValidationError

from spotdiff.services.session.errors import DuplicateRoomCode, PersistenceWriteFailed
from spotdiff.services.session.events import CreateRoomRequest


rooms = Blueprint('rooms', __name__)


def _controller():
    return current_app.extensions['session_controller']


@rooms.route('/images', methods=['GET'])
def list_images():
    return jsonify(_controller().store.list_images())


@rooms.route('/rooms', methods=['POST'])
def create_room():
    data = request.get_json(silent=True) or {}
    try:
        req = CreateRoomRequest.model_validate(data)
    except ValidationError as exc:
        return jsonify({'error': 'Invalid room request', 'details': exc.errors(include_url=False, include_context=False)}), 400

    settings = None
    if req.settings and req.settings.timer_per_image_seconds is not None:
        settings = {'timerPerImageSeconds': req.settings.timer_per_image_seconds}

    try:
        room = _controller().create_room(req.image_ids, settings=settings, admin_id=req.admin_id)
    except (DuplicateRoomCode, PersistenceWriteFailed) as exc:
        current_app.logger.error(f"[create-failed] error={exc}")
        return jsonify({'error': 'Failed to create room'}), 500

    payload = room.snapshot()
    payload['joinUrl'] = f"/join/{room.code}"
    return jsonify(payload), 201


@rooms.route('/rooms/<string:code>', methods=['GET'])
def get_room(code):
    code = code.upper()
    room = _controller().get_room(code)
    if room:
        with room.lock:
            return jsonify(room.snapshot())
    record = _controller().store.get_room(code)
    if record:
        return jsonify(record)
    return jsonify({'error': 'Room not found'}), 404


@rooms.route('/rooms/<string:room_id>', methods=['DELETE'])
def delete_room(room_id):
    controller = _controller()
    controller.close_room_by_id(room_id)
    try:
        controller.store.delete_room(room_id)
    except PersistenceWriteFailed as exc:
        current_app.logger.error(f"[delete-failed] room_id={room_id} error={exc}")
        return jsonify({'error': 'Failed to delete room'}), 500
    return '', 204


@rooms.route('/rooms/<string:room_id>/players', methods=['DELETE'])
def clear_players(room_id):
    try:
        _controller().store.delete_players(room_id)
    except PersistenceWriteFailed as exc:
        current_app.logger.error(f"[clear-players-failed] room_id={room_id} error={exc}")
        return jsonify({'error': 'Failed to clear players'}), 500
    return '', 204
