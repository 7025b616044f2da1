import heapq
import itertools
import logging
import os
import sys
from types import SimpleNamespace

import pytest

# Ensure the backend root (containing the `spotdiff` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from spotdiff import create_app, db, socketio
from spotdiff.services.session.controller import SessionController
from spotdiff.services.session.errors import DuplicateRoomCode
from spotdiff.services.session.registry import RoomRegistry
from spotdiff.services.session.state import Difference, Image
from spotdiff.services.session.timer import ProgressionTimer


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    FRONTEND_URL = 'http://localhost:5173'
    TIMER_PER_IMAGE_SEC = 60
    POINTS_PER_DIFFERENCE = 10
    FINISHED_ROOM_TTL_SEC = 0
    ROOM_CODE_ATTEMPTS = 10
    PERSISTENCE_SYNC_INLINE = True


class ManualScheduler:
    """Deterministic stand-in for the background scheduler.

    Deferred calls only run when a test moves the clock with ``advance``.
    """

    def __init__(self):
        self.now = 0.0
        self._pending = []
        self._seq = itertools.count()

    def spawn(self, fn, *args, **kwargs):
        return fn(*args, **kwargs)

    def call_later(self, delay, fn, *args, cancelled=None):
        heapq.heappush(self._pending, (self.now + delay, next(self._seq), fn, args, cancelled))

    def advance(self, seconds):
        target = self.now + seconds
        while self._pending and self._pending[0][0] <= target:
            due, _, fn, args, cancelled = heapq.heappop(self._pending)
            self.now = due
            if cancelled is not None and cancelled():
                continue
            fn(*args)
        self.now = target

    @property
    def pending(self):
        return len(self._pending)


class FakeBroadcaster:
    def __init__(self):
        self.events = []
        self.subscriptions = {}
        self.closed = []

    def subscribe(self, connection, room_code):
        self.subscriptions.setdefault(room_code, set()).add(connection)

    def unsubscribe(self, connection, room_code):
        self.subscriptions.get(room_code, set()).discard(connection)

    def broadcast(self, room_code, event):
        self.events.append(('room', room_code, event.event_name, event.payload()))

    def send(self, connection, event):
        self.events.append(('direct', connection, event.event_name, event.payload()))

    def close_channel(self, room_code):
        self.subscriptions.pop(room_code, None)
        self.closed.append(room_code)

    def names(self):
        return [e[2] for e in self.events]

    def payloads(self, name):
        return [e[3] for e in self.events if e[2] == name]


class RecordingPersistence:
    def __init__(self):
        self.calls = []

    def player_changed(self, room, player):
        self.calls.append(('upsert-player', player.id, player.score, player.is_online))

    def room_changed(self, room_code, status=None, current_image_index=None):
        self.calls.append(('update-room', room_code, status, current_image_index))

    def room_closed(self, room):
        self.calls.append(('close-room', room.code))


class FakeStore:
    def __init__(self, images):
        self.images = {image.id: image for image in images}
        self.codes = set()

    def select_images(self, image_ids):
        return [self.images[i] for i in image_ids if i in self.images]

    def insert_room(self, code, images, settings, admin_id=None):
        if code in self.codes:
            raise DuplicateRoomCode(code)
        self.codes.add(code)
        return SimpleNamespace(id=f'room-{len(self.codes)}', code=code)


def make_image(image_id, *difference_ids):
    return Image(
        id=image_id,
        original_url=f'/img/{image_id}-a.png',
        modified_url=f'/img/{image_id}-b.png',
        differences=tuple(Difference(id=d, region={'x': 1, 'y': 2, 'radius': 3}) for d in difference_ids),
    )


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def broadcaster():
    return FakeBroadcaster()


@pytest.fixture()
def persistence():
    return RecordingPersistence()


@pytest.fixture()
def images():
    return [
        make_image('img-a', 'a1', 'a2'),
        make_image('img-b'),
        make_image('img-c', 'c1', 'c2', 'c3'),
    ]


@pytest.fixture()
def controller_factory(scheduler, broadcaster, persistence, images):
    def build(**overrides):
        options = dict(
            points_per_difference=10,
            default_timer_seconds=60,
            finished_room_ttl_seconds=0,
            room_code_attempts=10,
        )
        options.update(overrides)
        return SessionController(
            registry=RoomRegistry(timer_factory=lambda: ProgressionTimer(scheduler)),
            broadcaster=broadcaster,
            persistence=persistence,
            store=FakeStore(images),
            scheduler=scheduler,
            logger=logging.getLogger('spotdiff.tests'),
            **options,
        )
    return build


@pytest.fixture()
def controller(controller_factory):
    return controller_factory()


@pytest.fixture()
def flask_app(scheduler):
    application = create_app(TestConfig, scheduler=scheduler)
    with application.app_context():
        # Ensure models are imported so tables are created
        import spotdiff.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def seeded_images(flask_app):
    from spotdiff.models import MasterImage
    rows = [
        MasterImage(id='img-a', name='A', original_url='/a1.png', modified_url='/a2.png',
                    differences=[{'id': 'a1', 'x': 10, 'y': 10, 'radius': 5}, {'id': 'a2', 'x': 50, 'y': 60, 'radius': 5}]),
        MasterImage(id='img-b', name='B', original_url='/b1.png', modified_url='/b2.png', differences=[]),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return [r.id for r in rows]


@pytest.fixture()
def sio_client_factory(flask_app):
    clients = []

    def connect():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws'
        )
        clients.append(test_client)
        return test_client

    yield connect
    for test_client in clients:
        try:
            if test_client.is_connected('/ws'):
                test_client.disconnect(namespace='/ws')
        except Exception:
            pass
