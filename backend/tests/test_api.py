from spotdiff import db
from spotdiff.models import PlayerRecord, RoomRecord


def _create(client, image_ids, **extra):
    return client.post('/api/rooms', json={'imageIds': image_ids, **extra})


def test_health(client):
    res = client.get('/health')
    assert res.status_code == 200
    assert res.get_json()['status'] == 'ok'


def test_list_images(client, seeded_images):
    res = client.get('/api/images')
    assert res.status_code == 200
    assert {image['id'] for image in res.get_json()} == {'img-a', 'img-b'}


def test_create_room(client, seeded_images):
    res = _create(client, ['img-b', 'img-a'], adminId='admin-1', settings={'timerPerImage': 45})
    assert res.status_code == 201
    room = res.get_json()
    assert len(room['code']) == 6
    assert room['joinUrl'] == f"/join/{room['code']}"
    assert room['status'] == 'LOBBY'
    assert [image['id'] for image in room['imageQueue']] == ['img-b', 'img-a']
    assert room['settings'] == {'timerPerImageSeconds': 45}

    record = RoomRecord.query.filter_by(code=room['code']).one()
    assert record.admin_id == 'admin-1'
    assert record.id == room['id']


def test_create_room_uses_default_timer(client, seeded_images):
    room = _create(client, ['img-a']).get_json()
    assert room['settings'] == {'timerPerImageSeconds': 60}


def test_create_room_validation(client):
    assert _create(client, []).status_code == 400
    assert client.post('/api/rooms', json={'settings': {}}).status_code == 400
    assert _create(client, ['img-a'], settings={'timerPerImage': 0}).status_code == 400


def test_get_room_live_then_stored(client, flask_app, seeded_images):
    room = _create(client, ['img-a']).get_json()
    res = client.get(f"/api/rooms/{room['code'].lower()}")
    assert res.status_code == 200
    assert res.get_json()['code'] == room['code']

    # Once the live room is gone, the stored record is served
    flask_app.extensions['session_controller'].close_room(room['code'])
    db.session.expire_all()
    res = client.get(f"/api/rooms/{room['code']}")
    assert res.status_code == 200
    assert res.get_json()['status'] == 'CLOSED'


def test_get_unknown_room(client):
    res = client.get('/api/rooms/ZZZZZZ')
    assert res.status_code == 404
    assert res.get_json()['error'] == 'Room not found'


def test_delete_room_closes_live_room(client, flask_app, seeded_images):
    room = _create(client, ['img-a']).get_json()
    db.session.add(PlayerRecord(id='p1', room_id=room['id'], nickname='Alice'))
    db.session.commit()

    res = client.delete(f"/api/rooms/{room['id']}")
    assert res.status_code == 204
    assert flask_app.extensions['session_controller'].get_room(room['code']) is None
    db.session.expire_all()
    assert db.session.get(RoomRecord, room['id']) is None
    assert PlayerRecord.query.filter_by(room_id=room['id']).count() == 0


def test_clear_players(client, seeded_images):
    room = _create(client, ['img-a']).get_json()
    db.session.add_all([
        PlayerRecord(id='p1', room_id=room['id'], nickname='Alice'),
        PlayerRecord(id='p2', room_id=room['id'], nickname='Bob'),
    ])
    db.session.commit()
    res = client.delete(f"/api/rooms/{room['id']}/players")
    assert res.status_code == 204
    db.session.expire_all()
    assert PlayerRecord.query.filter_by(room_id=room['id']).count() == 0
