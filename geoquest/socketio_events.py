from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from flask_login import current_user
from typing import Dict, Any

from geoquest.services.database import DatabaseService
from geoquest.services.errors import ServiceError
from geoquest.services.realtime import RealtimeService, socket_room

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore


def _payload(data) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if ctx:
        current_app.logger.info(f"[ws-disconnect] room={ctx.get('room_id')} player={ctx.get('player_id')}")


def handle_join_room(data):
    room_id = _payload(data).get('room_id')
    if not room_id:
        emit('error', {'message': 'room_id is required'})
        return
    if not current_user.is_authenticated:
        emit('error', {'message': 'Authentication required'})
        return
    room = DatabaseService.get_room(room_id)
    if not room:
        emit('error', {'message': 'Room not found'})
        return
    # Admins and room members only
    if current_user.role != 'admin' and current_user.id not in room.players:
        emit('error', {'message': 'You are not a player in this room'})
        return
    join_room(socket_room(room.id))
    player_id = current_user.id
    _sid_to_ctx[_get_sid()] = {'room_id': room.id, 'player_id': player_id}
    emit('joined', {'room': socket_room(room.id), 'room_id': room.id, 'status': room.status})


def handle_leave_room(data):
    room_id = _payload(data).get('room_id')
    if not room_id:
        emit('error', {'message': 'room_id is required'})
        return
    leave_room(socket_room(room_id))
    _sid_to_ctx.pop(_get_sid(), None)
    emit('left', {'room': socket_room(room_id)})


def handle_position_update(data):
    data = _payload(data)
    if not current_user.is_authenticated:
        emit('error', {'message': 'Authentication required'})
        return
    room_id = data.get('room_id')
    room = DatabaseService.get_room(room_id) if room_id else None
    if not room or current_user.id not in room.players:
        emit('error', {'message': 'You are not a player in this room'})
        return
    try:
        latitude = float(data['latitude'])
        longitude = float(data['longitude'])
        accuracy = float(data['accuracy']) if data.get('accuracy') is not None else None
    except (KeyError, TypeError, ValueError):
        emit('error', {'message': 'latitude and longitude are required'})
        return
    try:
        RealtimeService.get_instance().update_player_position(current_user.id, room.id, latitude, longitude, accuracy)
    except ServiceError as exc:
        emit('error', {'message': exc.message})


def handle_ping(data):
    emit('pong', _payload(data))


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from geoquest import socketio

    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_room', handle_join_room, namespace=namespace)
        socketio.on_event('leave_room', handle_leave_room, namespace=namespace)
        socketio.on_event('position_update', handle_position_update, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
