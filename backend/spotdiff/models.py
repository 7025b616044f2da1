from spotdiff import db
from datetime import datetime, timezone
import uuid


def _new_id():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class MasterImage(db.Model):
    __tablename__ = 'master_images'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(128), nullable=False, default='')
    original_url = db.Column(db.Text, nullable=False)
    modified_url = db.Column(db.Text, nullable=False)
    differences = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'original_url': self.original_url,
            'modified_url': self.modified_url,
            'differences': self.differences or [],
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class RoomRecord(db.Model):
    __tablename__ = 'rooms'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    code = db.Column(db.String(6), unique=True, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default='LOBBY')  # LOBBY, PLAYING, FINISHED, CLOSED
    admin_id = db.Column(db.String(36), nullable=True)
    image_queue = db.Column(db.JSON, nullable=False, default=list)
    settings = db.Column(db.JSON, nullable=False, default=dict)
    current_image_idx = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    players = db.relationship('PlayerRecord', back_populates='room', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'status': self.status,
            'admin_id': self.admin_id,
            'image_queue': self.image_queue or [],
            'settings': self.settings or {},
            'current_image_idx': self.current_image_idx,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class PlayerRecord(db.Model):
    __tablename__ = 'players'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    room_id = db.Column(db.String(36), db.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False, index=True)
    nickname = db.Column(db.String(64), nullable=False)
    avatar_id = db.Column(db.String(64), nullable=True)
    socket_id = db.Column(db.String(64), nullable=True)
    score = db.Column(db.Integer, nullable=False, default=0)
    is_online = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    room = db.relationship('RoomRecord', back_populates='players')

    def to_dict(self):
        return {
            'id': self.id,
            'room_id': self.room_id,
            'nickname': self.nickname,
            'avatar_id': self.avatar_id,
            'score': self.score,
            'is_online': self.is_online,
        }
