"""Game session services: room registry, players, ledger, timers.

This package holds the in-memory authority for live rooms. HTTP routes and
socket handlers call into the SessionController built here; transport and
storage are reached only through the broadcaster and persistence adapters.
"""

from .broadcast import SocketIOBroadcaster
from .controller import SessionController
from .persistence import PersistenceSync, RoomStore
from .registry import RoomRegistry
from .scheduler import BackgroundScheduler
from .timer import ProgressionTimer


def build_session_controller(app, socketio, scheduler=None, namespace='/ws'):
    cfg = app.config
    scheduler = scheduler or BackgroundScheduler(socketio)
    store = RoomStore()
    persistence = PersistenceSync(app, store, scheduler, inline=cfg.get('PERSISTENCE_SYNC_INLINE', False))
    registry = RoomRegistry(timer_factory=lambda: ProgressionTimer(scheduler))
    return SessionController(
        registry=registry,
        broadcaster=SocketIOBroadcaster(socketio, namespace=namespace),
        persistence=persistence,
        store=store,
        scheduler=scheduler,
        logger=app.logger,
        points_per_difference=int(cfg.get('POINTS_PER_DIFFERENCE', 10)),
        default_timer_seconds=int(cfg.get('TIMER_PER_IMAGE_SEC', 60)),
        finished_room_ttl_seconds=int(cfg.get('FINISHED_ROOM_TTL_SEC', 0)),
        room_code_attempts=int(cfg.get('ROOM_CODE_ATTEMPTS', 10)),
    )
