"""Live room updates.

A process-wide ``RealtimeService`` keeps in-process listeners and fans
every position update and game event out to the Socket.IO room of the
game room (``room:<room_id>`` on the ``/ws`` namespace).
"""

from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from flask import current_app

from geoquest import socketio
from geoquest.models import utcnow
from .database import DatabaseService
from .errors import ServiceError
from .geo import distance_m

GAME_EVENT_TYPES = (
    'player_joined',
    'player_left',
    'checkpoint_reached',
    'challenge_completed',
    'game_started',
    'game_ended',
)


def socket_room(room_id: str) -> str:
    return f"room:{room_id}"


class RealtimeService:
    _instance: Optional['RealtimeService'] = None

    def __init__(self):
        self._listeners: Dict[str, List[Callable[[Any], None]]] = defaultdict(list)
        self._recent_events: List[Dict[str, Any]] = []
        self._reached: Set[Tuple[str, str, str]] = set()  # (room_id, player_id, checkpoint_id)

    @classmethod
    def get_instance(cls) -> 'RealtimeService':
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    # Event subscription
    def subscribe(self, event_type: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        listeners = self._listeners[event_type]
        listeners.append(callback)

        def unsubscribe():
            if callback in listeners:
                listeners.remove(callback)
        return unsubscribe

    def _emit(self, event_type: str, data: Any) -> None:
        for callback in list(self._listeners.get(event_type, ())):
            try:
                callback(data)
            except Exception:
                current_app.logger.exception(f"[realtime] listener failed for {event_type}")

    def broadcast_state(self, room) -> None:
        socketio.emit('state_update', {'room_id': room.id, 'code': room.code, 'status': room.status},
                      to=socket_room(room.id), namespace='/ws')

    # Position tracking
    def update_player_position(self, player_id: str, room_id: str, latitude: float, longitude: float,
                               accuracy: Optional[float] = None) -> Dict[str, Any]:
        room = DatabaseService.get_room(room_id)
        if not room:
            raise ServiceError('Room not found', status_code=404)
        position = DatabaseService.update_player_position(player_id, room_id, latitude, longitude, accuracy)
        payload = position.to_dict()

        self._emit('position_update', payload)
        self._emit(f'room_{room_id}_positions', payload)
        socketio.emit('position_update', payload, to=socket_room(room_id), namespace='/ws')

        if room.status == 'active':
            self._check_checkpoints_reached(room, player_id, position.latitude, position.longitude)
        return payload

    def _mark_reached(self, room_id, player_id, checkpoint_id) -> bool:
        key = (room_id, player_id, checkpoint_id)
        if key in self._reached:
            return False
        self._reached.add(key)
        return True

    def _check_checkpoints_reached(self, room, player_id: str, latitude: float, longitude: float) -> None:
        radius = float(current_app.config.get('CHECKPOINT_RADIUS_M', 100))
        completed = {
            s.checkpoint_id for s in DatabaseService.get_submissions_by_room(room.id)
            if s.player_id == player_id and s.is_correct
        }
        for checkpoint in DatabaseService.get_checkpoints_by_route(room.route_id):
            if checkpoint.id in completed:
                continue
            distance = distance_m(latitude, longitude, checkpoint.latitude, checkpoint.longitude)
            if distance <= radius and self._mark_reached(room.id, player_id, checkpoint.id):
                self.emit_game_event('checkpoint_reached', room.id, player_id=player_id, data={
                    'checkpoint_id': checkpoint.id,
                    'checkpoint_name': checkpoint.name,
                    'distance_m': round(distance, 1),
                })

    def get_player_positions(self, room_id: str) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in DatabaseService.get_room_player_positions(room_id)]

    # Game events
    def emit_game_event(self, event_type: str, room_id: str, player_id: Optional[str] = None,
                        data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if event_type not in GAME_EVENT_TYPES:
            raise ServiceError(f'Unknown event type: {event_type}', status_code=400)
        event = {
            'type': event_type,
            'room_id': room_id,
            'player_id': player_id,
            'data': data or {},
            'timestamp': utcnow().isoformat(),
        }
        limit = int(current_app.config.get('RECENT_EVENTS_LIMIT', 50))
        self._recent_events.append(event)
        if len(self._recent_events) > limit:
            del self._recent_events[:-limit]

        current_app.logger.info(f"[event] type={event_type} room={room_id} player={player_id}")
        self._emit('game_event', event)
        self._emit(f'room_{room_id}_events', event)
        socketio.emit('game_event', event, to=socket_room(room_id), namespace='/ws')
        return event

    # Room statistics
    def get_room_stats(self, room_id: str) -> Dict[str, Any]:
        room = DatabaseService.get_room(room_id)
        if not room:
            raise ServiceError('Room not found', status_code=404)
        checkpoints = DatabaseService.get_checkpoints_by_route(room.route_id)
        submissions = DatabaseService.get_submissions_by_room(room.id)
        player_ids = room.players

        leaderboard = []
        completed_pairs = 0
        for player_id in player_ids:
            player = DatabaseService.get_user(player_id)
            correct = [s for s in submissions if s.player_id == player_id and s.is_correct]
            completed = len({s.checkpoint_id for s in correct})
            completed_pairs += completed
            leaderboard.append({
                'player_id': player_id,
                'username': player.username if player else None,
                'points': sum(s.points or 0 for s in correct),
                'completed_checkpoints': completed,
            })
        leaderboard.sort(key=lambda e: (-e['points'], -e['completed_checkpoints']))

        total = len(checkpoints) * len(player_ids)
        return {
            'room_id': room.id,
            'active_players': len(player_ids),
            'completed_checkpoints': completed_pairs,
            'total_checkpoints': total,
            'game_progress': round(completed_pairs / total * 100, 2) if total else 0,
            'leaderboard': leaderboard,
        }

    # Admin monitoring
    def get_admin_dashboard_data(self) -> Dict[str, Any]:
        active_rooms = DatabaseService.get_active_rooms()
        players = set()
        for room in active_rooms:
            players.update(room.players)
        return {
            'active_rooms': len(active_rooms),
            'total_players': len(players),
            'recent_events': list(reversed(self._recent_events)),
        }

    def reset_room(self, room_id: str) -> None:
        self._reached = {key for key in self._reached if key[0] != room_id}

    def destroy(self) -> None:
        self._listeners.clear()
        self._recent_events.clear()
        self._reached.clear()
