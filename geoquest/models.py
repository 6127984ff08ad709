from geoquest import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
import json
import time
import uuid

ROLES = ('admin', 'player')
DIFFICULTIES = ('easy', 'medium', 'hard')
CHALLENGE_TYPES = ('trivia', 'word_puzzle', 'photo_proof')
ROOM_STATUSES = ('waiting', 'active', 'completed')


def generate_id(prefix):
    """Generate a string id like ``room_1718000000000_3f9a1c2b7``."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def utcnow():
    # Naive UTC so values compare cleanly after a SQLite round trip
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.String(64), primary_key=True, default=lambda: generate_id('user'))
    username = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    role = db.Column(db.String(16), nullable=False, default='player')
    password_hash = db.Column(db.String(256), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    total_points = db.Column(db.Integer, nullable=False, default=0)
    games_played = db.Column(db.Integer, nullable=False, default=0)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        if not self.password_hash:
            return True
        if not password:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == 'admin'

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'role': self.role,
            'created_at': _iso(self.created_at),
            'total_points': self.total_points or 0,
            'games_played': self.games_played or 0,
        }


class Route(db.Model):
    __tablename__ = 'route'
    id = db.Column(db.String(64), primary_key=True, default=lambda: generate_id('route'))
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    city = db.Column(db.String(120), nullable=False, default='')
    theme = db.Column(db.String(120), nullable=False, default='')
    duration = db.Column(db.Integer, nullable=False, default=30)  # minutes
    difficulty = db.Column(db.String(16), nullable=False, default='medium')
    created_by = db.Column(db.String(64), db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    checkpoints = db.relationship(
        'Checkpoint', back_populates='route', order_by='Checkpoint.order_index'
    )

    @property
    def total_points(self):
        return sum(cp.points or 0 for cp in self.checkpoints)

    def to_dict(self, include_checkpoints=True, include_answers=False):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'city': self.city,
            'theme': self.theme,
            'duration': self.duration,
            'difficulty': self.difficulty,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
            'is_active': self.is_active,
            'total_points': self.total_points,
        }
        if include_checkpoints:
            data['checkpoints'] = [cp.to_dict(include_answer=include_answers) for cp in self.checkpoints]
        return data


class Checkpoint(db.Model):
    __tablename__ = 'checkpoint'
    id = db.Column(db.String(64), primary_key=True, default=lambda: generate_id('checkpoint'))
    route_id = db.Column(db.String(64), db.ForeignKey('route.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    points = db.Column(db.Integer, nullable=False, default=10)
    challenge_type = db.Column(db.String(32), nullable=False, default='trivia')
    challenge_question = db.Column(db.Text, nullable=True)
    challenge_answer = db.Column(db.Text, nullable=True)
    challenge_options = db.Column(db.Text, nullable=True)  # JSON-encoded list of strings
    challenge_hint = db.Column(db.Text, nullable=True)
    challenge_photo_prompt = db.Column(db.Text, nullable=True)
    route = db.relationship('Route', back_populates='checkpoints')

    @property
    def options(self):
        try:
            return json.loads(self.challenge_options) if self.challenge_options else None
        except ValueError:
            return None

    @options.setter
    def options(self, value):
        if value and not isinstance(value, (list, tuple)):
            raise ValueError('Challenge options must be a list')
        self.challenge_options = json.dumps(list(value)) if value else None

    @property
    def challenge(self):
        """The challenge descriptor consumed by ValidationService."""
        return {
            'type': self.challenge_type,
            'question': self.challenge_question,
            'answer': self.challenge_answer,
            'options': self.options,
            'hint': self.challenge_hint,
            'photo_prompt': self.challenge_photo_prompt,
        }

    def to_dict(self, include_answer=False):
        challenge = self.challenge
        if not include_answer:
            challenge.pop('answer')
        return {
            'id': self.id,
            'route_id': self.route_id,
            'name': self.name,
            'description': self.description,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'order_index': self.order_index,
            'points': self.points,
            'challenge': challenge,
        }


class RoomPlayer(db.Model):
    __tablename__ = 'room_player'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.String(64), db.ForeignKey('room.id'), nullable=False, index=True)
    user_id = db.Column(db.String(64), db.ForeignKey('user.id'), nullable=False)
    joined_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    __table_args__ = (db.UniqueConstraint('room_id', 'user_id', name='uq_room_player'),)

    user = db.relationship('User')


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.String(64), primary_key=True, default=lambda: generate_id('room'))
    route_id = db.Column(db.String(64), db.ForeignKey('route.id'), nullable=False)
    code = db.Column(db.String(16), unique=True, nullable=False, index=True)
    created_by = db.Column(db.String(64), db.ForeignKey('user.id'), nullable=True)
    status = db.Column(db.String(16), nullable=False, default='waiting')  # waiting, active, completed
    max_players = db.Column(db.Integer, nullable=False, default=10)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    started_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    route = db.relationship('Route')
    memberships = db.relationship(
        'RoomPlayer', order_by='RoomPlayer.id', cascade='all, delete-orphan'
    )

    @property
    def players(self):
        return [m.user_id for m in self.memberships]

    def to_dict(self):
        return {
            'id': self.id,
            'route_id': self.route_id,
            'code': self.code,
            'created_by': self.created_by,
            'status': self.status,
            'max_players': self.max_players,
            'created_at': _iso(self.created_at),
            'started_at': _iso(self.started_at),
            'completed_at': _iso(self.completed_at),
            'players': self.players,
        }


class Submission(db.Model):
    __tablename__ = 'submission'
    id = db.Column(db.String(64), primary_key=True, default=lambda: generate_id('submission'))
    room_id = db.Column(db.String(64), db.ForeignKey('room.id'), nullable=False, index=True)
    player_id = db.Column(db.String(64), db.ForeignKey('user.id'), nullable=False, index=True)
    checkpoint_id = db.Column(db.String(64), db.ForeignKey('checkpoint.id'), nullable=False)
    answer = db.Column(db.Text, nullable=True)
    photo_url = db.Column(db.String(512), nullable=True)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    points = db.Column(db.Integer, nullable=False, default=0)
    submitted_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'room_id': self.room_id,
            'player_id': self.player_id,
            'checkpoint_id': self.checkpoint_id,
            'answer': self.answer,
            'photo_url': self.photo_url,
            'is_correct': self.is_correct,
            'points': self.points,
            'submitted_at': _iso(self.submitted_at),
        }


class PlayerPosition(db.Model):
    __tablename__ = 'player_position'
    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.String(64), db.ForeignKey('user.id'), nullable=False)
    room_id = db.Column(db.String(64), db.ForeignKey('room.id'), nullable=False, index=True)
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    accuracy = db.Column(db.Float, nullable=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow)
    __table_args__ = (db.UniqueConstraint('player_id', 'room_id', name='uq_player_position'),)

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'room_id': self.room_id,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'accuracy': self.accuracy,
            'timestamp': _iso(self.timestamp),
        }
