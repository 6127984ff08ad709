import random
import string
from typing import Dict, List, Optional

from flask import current_app

from geoquest import db
from geoquest.models import (
    User, Route, Checkpoint, Room, RoomPlayer, Submission, PlayerPosition, utcnow,
)
from .errors import ServiceError

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_room_code(length: int = 6, max_attempts: int = 10) -> str:
    """Generate a unique room code, giving up after ``max_attempts`` collisions."""
    for _ in range(max_attempts):
        code = ''.join(random.choices(ROOM_CODE_ALPHABET, k=length))
        if not Room.query.filter_by(code=code).first():
            return code
    raise ServiceError('Failed to generate unique room code', status_code=503)


class DatabaseService:
    # User operations
    @staticmethod
    def create_user(username: str, email: str, role: str = 'player', password: Optional[str] = None) -> User:
        if DatabaseService.get_user_by_email(email):
            raise ServiceError('User with this email already exists', status_code=400)
        user = User(username=username, email=email.strip().lower(), role=role)
        if password:
            user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    @staticmethod
    def get_user(user_id: str) -> Optional[User]:
        if not user_id:
            return None
        return db.session.get(User, user_id)

    @staticmethod
    def get_user_by_email(email: str) -> Optional[User]:
        if not email:
            return None
        return User.query.filter_by(email=email.strip().lower()).first()

    @staticmethod
    def update_user(user_id: str, **updates) -> Optional[User]:
        user = DatabaseService.get_user(user_id)
        if not user:
            return None
        for key, value in updates.items():
            setattr(user, key, value)
        db.session.add(user)
        db.session.commit()
        return user

    # Route operations
    @staticmethod
    def create_route(**fields) -> Route:
        route = Route(**fields)
        db.session.add(route)
        db.session.commit()
        return route

    @staticmethod
    def get_route(route_id: str) -> Optional[Route]:
        if not route_id:
            return None
        return db.session.get(Route, route_id)

    @staticmethod
    def get_routes_by_user(user_id: str) -> List[Route]:
        return (Route.query.filter_by(created_by=user_id)
                .order_by(Route.created_at.desc(), Route.id.desc()).all())

    @staticmethod
    def get_all_routes() -> List[Route]:
        return (Route.query.filter_by(is_active=True)
                .order_by(Route.created_at.desc(), Route.id.desc()).all())

    # Checkpoint operations
    @staticmethod
    def create_checkpoint(route_id: str, options=None, question=None, answer=None,
                          hint=None, photo_prompt=None, **fields) -> Checkpoint:
        checkpoint = Checkpoint(
            route_id=route_id,
            challenge_question=question,
            challenge_answer=answer,
            challenge_hint=hint,
            challenge_photo_prompt=photo_prompt,
            **fields,
        )
        checkpoint.options = options
        db.session.add(checkpoint)
        db.session.commit()
        return checkpoint

    @staticmethod
    def get_checkpoints_by_route(route_id: str) -> List[Checkpoint]:
        return (Checkpoint.query.filter_by(route_id=route_id)
                .order_by(Checkpoint.order_index.asc()).all())

    @staticmethod
    def get_checkpoint(checkpoint_id: str) -> Optional[Checkpoint]:
        if not checkpoint_id:
            return None
        return db.session.get(Checkpoint, checkpoint_id)

    # Room operations
    @staticmethod
    def create_room(route_id: str, created_by: Optional[str] = None, max_players: Optional[int] = None,
                    status: str = 'waiting') -> Room:
        cfg = current_app.config
        code = generate_room_code(
            length=int(cfg.get('ROOM_CODE_LENGTH', 6)),
            max_attempts=int(cfg.get('ROOM_CODE_MAX_ATTEMPTS', 10)),
        )
        room = Room(
            route_id=route_id,
            code=code,
            created_by=created_by,
            status=status,
            max_players=max_players or int(cfg.get('DEFAULT_MAX_PLAYERS', 10)),
        )
        db.session.add(room)
        db.session.commit()
        current_app.logger.info(f"[room-create] room={room.id} code={room.code} route={route_id}")
        return room

    @staticmethod
    def get_room(room_id: str) -> Optional[Room]:
        if not room_id:
            return None
        return db.session.get(Room, room_id)

    @staticmethod
    def get_room_by_code(code: str) -> Optional[Room]:
        if not code:
            return None
        return Room.query.filter_by(code=code.strip().upper()).first()

    @staticmethod
    def update_room(room_id: str, **updates) -> Optional[Room]:
        room = DatabaseService.get_room(room_id)
        if not room:
            return None
        for key, value in updates.items():
            setattr(room, key, value)
        db.session.add(room)
        db.session.commit()
        return room

    @staticmethod
    def get_active_rooms() -> List[Room]:
        return Room.query.filter_by(status='active').order_by(Room.created_at.desc()).all()

    @staticmethod
    def add_player_to_room(room_id: str, player_id: str) -> bool:
        room = DatabaseService.get_room(room_id)
        if not room:
            return False
        if player_id in room.players:
            return True
        if len(room.players) >= room.max_players:
            return False
        db.session.add(RoomPlayer(room_id=room.id, user_id=player_id))
        db.session.commit()
        return True

    @staticmethod
    def remove_player_from_room(room_id: str, player_id: str) -> bool:
        membership = RoomPlayer.query.filter_by(room_id=room_id, user_id=player_id).first()
        if not membership:
            return False
        db.session.delete(membership)
        db.session.commit()
        return True

    @staticmethod
    def get_room_players(room_id: str) -> List[str]:
        room = DatabaseService.get_room(room_id)
        return room.players if room else []

    # Submission operations
    @staticmethod
    def create_submission(room_id: str, player_id: str, checkpoint_id: str, is_correct: bool,
                          points: int, answer: Optional[str] = None, photo_url: Optional[str] = None) -> Submission:
        submission = Submission(
            room_id=room_id,
            player_id=player_id,
            checkpoint_id=checkpoint_id,
            answer=answer,
            photo_url=photo_url,
            is_correct=bool(is_correct),
            points=int(points or 0),
        )
        db.session.add(submission)
        db.session.commit()
        return submission

    @staticmethod
    def get_submissions_by_room(room_id: str) -> List[Submission]:
        return (Submission.query.filter_by(room_id=room_id)
                .order_by(Submission.submitted_at.desc(), Submission.id.desc()).all())

    @staticmethod
    def get_submissions_by_player(player_id: str) -> List[Submission]:
        return (Submission.query.filter_by(player_id=player_id)
                .order_by(Submission.submitted_at.desc(), Submission.id.desc()).all())

    # Player position operations
    @staticmethod
    def update_player_position(player_id: str, room_id: str, latitude: float, longitude: float,
                               accuracy: Optional[float] = None, timestamp=None) -> PlayerPosition:
        position = PlayerPosition.query.filter_by(player_id=player_id, room_id=room_id).first()
        if not position:
            position = PlayerPosition(player_id=player_id, room_id=room_id)
        position.latitude = float(latitude)
        position.longitude = float(longitude)
        position.accuracy = float(accuracy) if accuracy is not None else None
        position.timestamp = timestamp or utcnow()
        db.session.add(position)
        db.session.commit()
        return position

    @staticmethod
    def get_player_position(player_id: str, room_id: str) -> Optional[PlayerPosition]:
        return PlayerPosition.query.filter_by(player_id=player_id, room_id=room_id).first()

    @staticmethod
    def get_room_player_positions(room_id: str) -> List[PlayerPosition]:
        return PlayerPosition.query.filter_by(room_id=room_id).all()

    # Leaderboard operations
    @staticmethod
    def get_leaderboard(limit: int = 10) -> List[Dict]:
        users = User.query.order_by(User.total_points.desc(), User.created_at.asc()).limit(limit).all()
        return [
            {
                'user': user,
                'total_points': user.total_points or 0,
                'games_played': user.games_played or 0,
                'average_score': (user.total_points / user.games_played) if user.games_played else 0,
            }
            for user in users
        ]
