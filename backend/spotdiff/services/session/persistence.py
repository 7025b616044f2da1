"""Store access for rooms, players and images.

RoomStore runs synchronous SQLAlchemy operations. PersistenceSync mirrors the
in-memory rooms to the store on a background writer: failures are logged and
never reach gameplay.
"""

import queue
import threading
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from spotdiff import db
from spotdiff.models import MasterImage, PlayerRecord, RoomRecord
from .errors import DuplicateRoomCode, PersistenceWriteFailed
from .state import Image


class RoomStore:

    def list_images(self) -> List[dict]:
        rows = MasterImage.query.order_by(MasterImage.created_at.desc()).all()
        return [row.to_dict() for row in rows]

    def select_images(self, image_ids) -> List[Image]:
        """Load images keeping the requested order; unknown ids are skipped."""
        if not image_ids:
            return []
        rows = MasterImage.query.filter(MasterImage.id.in_(list(image_ids))).all()
        by_id = {row.id: row for row in rows}
        return [Image.from_dict(by_id[i].to_dict()) for i in image_ids if i in by_id]

    def insert_room(self, code, images, settings, admin_id=None) -> RoomRecord:
        record = RoomRecord(
            code=code,
            status='LOBBY',
            admin_id=admin_id,
            image_queue=[image.to_dict() for image in images],
            settings=settings.to_dict(),
            current_image_idx=0,
        )
        try:
            db.session.add(record)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise DuplicateRoomCode(f'Room code {code} already in use') from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceWriteFailed(f'insert room {code}: {exc}') from exc
        return record

    def get_room(self, code) -> Optional[dict]:
        record = RoomRecord.query.filter_by(code=code).first()
        return record.to_dict() if record else None

    def upsert_player(self, player_id, room_id, nickname, avatar, score, is_online, socket_id=None):
        def _write():
            record = db.session.get(PlayerRecord, player_id)
            if record is None:
                record = PlayerRecord(id=player_id)
            record.room_id = room_id
            record.nickname = nickname
            record.avatar_id = avatar
            record.socket_id = socket_id
            record.score = score
            record.is_online = is_online
            db.session.add(record)
        self._commit(f'upsert player {player_id}', _write)

    def update_room(self, code, status=None, current_image_index=None):
        def _write():
            record = RoomRecord.query.filter_by(code=code).first()
            if record is None:
                return
            if status is not None:
                record.status = status
            if current_image_index is not None:
                record.current_image_idx = current_image_index
            db.session.add(record)
        self._commit(f'update room {code}', _write)

    def delete_players(self, room_id):
        self._commit(f'delete players of {room_id}',
                     lambda: PlayerRecord.query.filter_by(room_id=room_id).delete())

    def delete_room(self, room_id):
        def _write():
            # Manual cascade; SQLite does not enforce the FK by default
            PlayerRecord.query.filter_by(room_id=room_id).delete()
            RoomRecord.query.filter_by(id=room_id).delete()
        self._commit(f'delete room {room_id}', _write)

    def close_room(self, code, room_id):
        def _write():
            RoomRecord.query.filter_by(code=code).update({'status': 'CLOSED'})
            PlayerRecord.query.filter_by(room_id=room_id).delete()
        self._commit(f'close room {code}', _write)

    @staticmethod
    def _commit(label, write):
        try:
            write()
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceWriteFailed(f'{label}: {exc}') from exc


class PersistenceSync:
    """Best-effort, ordered mirroring of room state to the store.

    Writes are queued and drained by one background task inside an app
    context, so they keep submission order and never hold a room lock.
    """

    def __init__(self, app, store: RoomStore, scheduler, inline=False, logger=None):
        self.app = app
        self.store = store
        self.scheduler = scheduler
        self.inline = inline
        self.logger = logger or app.logger
        self._queue = queue.Queue()
        self._worker_started = False
        self._worker_lock = threading.Lock()

    def player_changed(self, room, player):
        self._submit('upsert-player', self.store.upsert_player, player.id, room.id, player.nickname,
                     player.avatar, player.score, player.is_online, player.connection)

    def room_changed(self, room_code, status=None, current_image_index=None):
        self._submit('update-room', self.store.update_room, room_code,
                     status=status, current_image_index=current_image_index)

    def room_closed(self, room):
        self._submit('close-room', self.store.close_room, room.code, room.id)

    def _submit(self, label, fn, *args, **kwargs):
        job = (label, fn, args, kwargs)
        if self.inline:
            self._run(job)
            return
        self._queue.put(job)
        with self._worker_lock:
            if not self._worker_started:
                self._worker_started = True
                self.scheduler.spawn(self._drain)

    def _drain(self):
        while True:
            self._run(self._queue.get())

    def _run(self, job):
        label, fn, args, kwargs = job
        try:
            with self.app.app_context():
                fn(*args, **kwargs)
        except PersistenceWriteFailed as exc:
            self.logger.warning(f"[persist-failed] op={label} error={exc}")
        except Exception:
            self.logger.exception(f"[persist-failed] op={label} unexpected error")
