import time
from contextlib import contextmanager
from functools import partial

from .errors import AlreadyClaimed, DuplicateRoomCode, InvalidTransition, RoomNotFound
from .events import (
    DiffFound,
    GameOver,
    GameStart,
    ImageChange,
    Joined,
    RoomClosed,
    RoomState,
)
from .registry import generate_room_code
from .state import RoomSettings, RoomStatus


class SessionController:
    """Authoritative state machine for every live room of this process.

    Each operation takes the room's lock for its whole transition, then
    broadcasts and queues store writes. The in-memory room is the source of
    truth; the store only mirrors it. A room is owned by exactly one process.
    """

    def __init__(self, registry, broadcaster, persistence, store, scheduler, logger,
                 points_per_difference=10, default_timer_seconds=60,
                 finished_room_ttl_seconds=0, room_code_attempts=10):
        self.registry = registry
        self.broadcaster = broadcaster
        self.persistence = persistence
        self.store = store
        self.scheduler = scheduler
        self.logger = logger
        self.points_per_difference = points_per_difference
        self.default_timer_seconds = default_timer_seconds
        self.finished_room_ttl_seconds = finished_room_ttl_seconds
        self.room_code_attempts = room_code_attempts

    @contextmanager
    def _room(self, code):
        room = self.registry.get(code)
        if room is None:
            raise RoomNotFound(code)
        with room.lock:
            # Closed while we were waiting for the lock
            if room.status is RoomStatus.CLOSED:
                raise RoomNotFound(code)
            yield room

    # ---- Room lifecycle ----

    def create_room(self, image_ids, settings=None, admin_id=None):
        images = self.store.select_images(image_ids)
        room_settings = RoomSettings.from_dict(settings, default_timer=self.default_timer_seconds)
        for attempt in range(self.room_code_attempts):
            code = generate_room_code()
            if code in self.registry:
                continue
            try:
                record = self.store.insert_room(code, images, room_settings, admin_id)
                room = self.registry.create_room(code, record.id, images, room_settings)
            except DuplicateRoomCode:
                self.logger.info(f"[room-code-retry] code={code} attempt={attempt + 1}")
                continue
            self.logger.info(f"[create] room={code} images={len(images)} timer={room_settings.timer_per_image_seconds}s")
            return room
        raise DuplicateRoomCode(f'No free room code after {self.room_code_attempts} attempts')

    def get_room(self, code):
        return self.registry.get(code)

    def close_room(self, code) -> bool:
        """Close a room. Returns False when it was already gone."""
        room = self.registry.get(code)
        if room is None:
            return False
        with room.lock:
            if room.status is RoomStatus.CLOSED:
                return False
            try:
                self.broadcaster.broadcast(code, RoomClosed())
            finally:
                room.timer.cancel()
                room.status = RoomStatus.CLOSED
                self.registry.remove(code)
                self.broadcaster.close_channel(code)
                room.players.clear()
            self.persistence.room_closed(room)
        self.logger.info(f"[close] room={code}")
        return True

    def close_room_by_id(self, room_id) -> bool:
        room = self.registry.find_by_id(room_id)
        return self.close_room(room.code) if room else False

    # ---- Players ----

    def join(self, code, connection, nickname, avatar=None, player_id=None):
        with self._room(code) as room:
            existing = room.players.get(player_id) if player_id else None
            replaced = existing.connection if existing and existing.connection != connection else None
            player, reconnected = room.players.join(player_id, nickname, avatar, connection)
            if replaced:
                # The seat moved; the old socket stops hearing this room
                self.broadcaster.unsubscribe(replaced, code)
            self.broadcaster.subscribe(connection, code)
            self.broadcaster.send(connection, Joined(player_id=player.id, room_code=code, reconnected=reconnected))
            self.broadcaster.broadcast(code, RoomState.of(room))
            self.persistence.player_changed(room, player)
        self.logger.info(f"[join] room={code} player={player.id} nickname={player.nickname} reconnected={reconnected}")
        return player

    def disconnect(self, connection):
        """Take the connection's seats offline in every room it joined.

        Offline seats keep their score until the room is closed, so a rejoin
        with the same player id picks up where it left off.
        """
        left = []
        for room in self.registry.rooms():
            with room.lock:
                if room.status is RoomStatus.CLOSED:
                    continue
                player = room.players.leave(connection)
                if not player:
                    continue
                self.broadcaster.broadcast(room.code, RoomState.of(room))
                self.persistence.player_changed(room, player)
                left.append((room.code, player))
        for code, player in left:
            self.logger.info(f"[leave] room={code} player={player.id} nickname={player.nickname}")
        return left

    # ---- Gameplay ----

    def start_match(self, code):
        with self._room(code) as room:
            if room.status is not RoomStatus.LOBBY:
                raise InvalidTransition(f'Room {code} is {room.status.value}, not LOBBY')
            if not room.image_queue:
                raise InvalidTransition(f'Room {code} has no images')
            room.status = RoomStatus.PLAYING
            room.current_image_index = 0
            room.ledger.clear()
            self._arm_timer(room)
            self.broadcaster.broadcast(code, GameStart(
                start_time=int(time.time() * 1000),
                current_image=room.current_image.to_dict(),
                timer_seconds=room.settings.timer_per_image_seconds,
            ))
            self.persistence.room_changed(code, status=RoomStatus.PLAYING.value, current_image_index=0)
        self.logger.info(f"[start] room={code} images={len(room.image_queue)}")

    def claim_difference(self, code, connection, image_id, difference_id):
        """Record a found difference for the player on this connection.

        Returns the accepted claim, or None when the claim does not apply
        (not playing, unknown player, stale image or unknown difference).
        Raises AlreadyClaimed when someone else got there first.
        """
        with self._room(code) as room:
            if room.status is not RoomStatus.PLAYING:
                return None
            player = room.players.by_connection(connection)
            image = room.current_image
            if player is None or image is None:
                return None
            if image.id != image_id or not image.has_difference(difference_id):
                self.logger.info(f"[claim-ignored] room={code} image={image_id} diff={difference_id} current={image.id}")
                return None

            result = room.ledger.claim(image_id, difference_id, player.id)
            if not result.accepted:
                raise AlreadyClaimed(difference_id, result.claim.player_id)

            player.score += self.points_per_difference
            self.logger.info(f"[claim] room={code} image={image_id} diff={difference_id} player={player.id} score={player.score}")
            self.broadcaster.broadcast(code, DiffFound(
                player_id=player.id,
                player_name=player.nickname,
                difference_id=difference_id,
                new_score=player.score,
                all_scores=room.players.scores(),
            ))
            self.persistence.player_changed(room, player)

            if room.ledger.is_complete(image):
                self.logger.info(f"[image-complete] room={code} image={image_id}")
                self._advance(room)
            return result.claim

    def advance(self, code):
        with self._room(code) as room:
            self._advance(room)

    def _advance(self, room):
        if room.status is not RoomStatus.PLAYING:
            return
        room.timer.cancel()
        room.current_image_index += 1

        if room.current_image_index >= len(room.image_queue):
            room.current_image_index = len(room.image_queue)
            room.status = RoomStatus.FINISHED
            self.logger.info(f"[finish] room={room.code} players={len(room.players)}")
            self.broadcaster.broadcast(room.code, GameOver(final_scores=room.players.final_scores()))
            self.persistence.room_changed(room.code, status=RoomStatus.FINISHED.value)
            if self.finished_room_ttl_seconds > 0:
                self.scheduler.call_later(self.finished_room_ttl_seconds, self._expire_finished, room.code, room.id)
            return

        # Re-arm first: a PLAYING room always holds a deadline
        self._arm_timer(room)
        self.logger.info(f"[advance] room={room.code} index={room.current_image_index}")
        self.broadcaster.broadcast(room.code, ImageChange(
            current_image=room.current_image.to_dict(),
            timer_seconds=room.settings.timer_per_image_seconds,
            image_index=room.current_image_index,
        ))
        self.persistence.room_changed(room.code, current_image_index=room.current_image_index)

    def _arm_timer(self, room):
        duration = room.settings.timer_per_image_seconds
        index = room.current_image_index
        room.timer.start(duration, partial(self._on_timer_expired, room.code, index))
        self.logger.info(f"[timer-set] room={room.code} index={index} duration={duration}s")

    def _on_timer_expired(self, code, expected_index):
        room = self.registry.get(code)
        if room is None:
            self.logger.info(f"[timer-abort] room={code} gone")
            return
        try:
            with room.lock:
                if room.status is not RoomStatus.PLAYING or room.current_image_index != expected_index:
                    self.logger.info(f"[timer-abort] room={code} expected_index={expected_index} "
                                     f"actual_index={room.current_image_index} status={room.status.value}")
                    return
                self.logger.info(f"[timer-fire] room={code} index={expected_index}")
                self._advance(room)
        except Exception:
            self.logger.exception(f"[timer-error] room={code} index={expected_index}")

    def _expire_finished(self, code, room_id):
        room = self.registry.get(code)
        if room is None or room.id != room_id or room.status is not RoomStatus.FINISHED:
            return
        self.logger.info(f"[finished-expired] room={code}")
        self.close_room(code)
