from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user, login_required

from geoquest import json_body
from geoquest.models import utcnow
from geoquest.services.auth import AuthService, admin_required
from geoquest.services.database import DatabaseService
from geoquest.services.geo import proximity
from geoquest.services.photos import PhotoService
from geoquest.services.realtime import RealtimeService
from geoquest.services.scoring import ScoringService
from geoquest.services.validation import ValidationService

rooms = Blueprint('rooms', __name__)


def _realtime():
    return RealtimeService.get_instance()


def _get_room_or_404(room_id):
    room = DatabaseService.get_room(room_id)
    if not room:
        return None, (jsonify({'error': 'Room not found'}), 404)
    return room, None


def _can_view(room):
    return AuthService.is_admin() or current_user.id in room.players


def _checkpoint_status(checkpoint, submissions):
    """completed / failed / locked from the player's submissions for a checkpoint."""
    attempts = [s for s in submissions if s.checkpoint_id == checkpoint.id]
    if not attempts:
        return 'locked'
    return 'completed' if any(s.is_correct for s in attempts) else 'failed'


def _known_position(room_id, player_id, data):
    """Position sent with the request, else the last tracked one."""
    try:
        if data.get('latitude') is not None and data.get('longitude') is not None:
            return float(data['latitude']), float(data['longitude'])
    except (TypeError, ValueError):
        pass
    position = DatabaseService.get_player_position(player_id, room_id)
    if position:
        return position.latitude, position.longitude
    return None, None


@rooms.route('/create', methods=['POST'])
@admin_required
def create_room():
    data = json_body()
    route = DatabaseService.get_route(data.get('route_id'))
    if not route:
        return jsonify({'error': 'Please select a route'}), 400
    max_players = data.get('max_players')
    try:
        max_players = int(max_players) if max_players is not None else None
    except (TypeError, ValueError):
        return jsonify({'error': 'max_players must be a number'}), 400
    if max_players is not None and max_players < 1:
        return jsonify({'error': 'max_players must be at least 1'}), 400
    room = DatabaseService.create_room(route.id, created_by=current_user.id, max_players=max_players)
    return jsonify({
        'message': 'New room created!',
        'room': room.to_dict(),
    }), 201


@rooms.route('/active', methods=['GET'])
@admin_required
def get_active_rooms():
    return jsonify([r.to_dict() for r in DatabaseService.get_active_rooms()])


@rooms.route('/dashboard', methods=['GET'])
@admin_required
def admin_dashboard():
    return jsonify(_realtime().get_admin_dashboard_data())


@rooms.route('/code/<string:room_code>', methods=['GET'])
@login_required
def lookup_room(room_code):
    room = DatabaseService.get_room_by_code(room_code)
    if not room:
        return jsonify({'error': 'Room not found. Please check the code and try again.'}), 404
    payload = room.to_dict()
    route = DatabaseService.get_route(room.route_id)
    payload['route'] = route.to_dict(include_checkpoints=False) if route else None
    return jsonify(payload)


@rooms.route('/join', methods=['POST'])
@login_required
def join_room():
    data = json_body()
    room_code = (data.get('room_code') or '').strip()
    if not room_code:
        return jsonify({'error': 'Please enter a room code'}), 400

    room = DatabaseService.get_room_by_code(room_code)
    if not room:
        return jsonify({'error': 'Room not found. Please check the code and try again.'}), 404
    if current_user.id in room.players:
        return jsonify(room.to_dict())
    if room.status != 'waiting':
        return jsonify({'error': 'This room is not accepting new players.'}), 403
    if not DatabaseService.add_player_to_room(room.id, current_user.id):
        return jsonify({'error': 'This room is full.'}), 403

    room = DatabaseService.get_room(room.id)
    _realtime().emit_game_event('player_joined', room.id, player_id=current_user.id,
                                data={'username': current_user.username})
    _realtime().broadcast_state(room)
    return jsonify(room.to_dict())


@rooms.route('/<string:room_id>/leave', methods=['POST'])
@login_required
def leave_room(room_id):
    room, error = _get_room_or_404(room_id)
    if error:
        return error
    if not DatabaseService.remove_player_from_room(room.id, current_user.id):
        return jsonify({'error': 'You are not in this room'}), 404
    _realtime().emit_game_event('player_left', room.id, player_id=current_user.id)
    _realtime().broadcast_state(room)
    return jsonify({'message': 'You have left the room.'})


@rooms.route('/<string:room_id>/state', methods=['GET'])
@login_required
def get_room_state(room_id):
    room, error = _get_room_or_404(room_id)
    if error:
        return error
    if not _can_view(room):
        return jsonify({'error': 'You are not a player in this room'}), 403
    route = DatabaseService.get_route(room.route_id)
    mine = [s for s in DatabaseService.get_submissions_by_room(room.id) if s.player_id == current_user.id]
    latitude, longitude = _known_position(room.id, current_user.id, request.args)
    radius = float(current_app.config.get('CHECKPOINT_RADIUS_M', 100))

    checkpoints = []
    for checkpoint in (route.checkpoints if route else []):
        entry = checkpoint.to_dict(include_answer=AuthService.is_admin())
        entry['status'] = _checkpoint_status(checkpoint, mine)
        entry['distance'] = proximity(checkpoint, latitude, longitude, radius)
        checkpoints.append(entry)

    payload = room.to_dict()
    payload['route'] = route.to_dict(include_checkpoints=False) if route else None
    payload['checkpoints'] = checkpoints
    payload['submissions'] = [s.to_dict() for s in mine]
    payload['points'] = sum(s.points for s in mine if s.is_correct)
    return jsonify(payload)


@rooms.route('/<string:room_id>/start', methods=['POST'])
@admin_required
def start_room(room_id):
    room, error = _get_room_or_404(room_id)
    if error:
        return error
    if room.status == 'active':
        # Idempotent start: already started
        return jsonify(room.to_dict())
    if room.status != 'waiting':
        return jsonify({'error': 'Room is not waiting for players'}), 400
    room = DatabaseService.update_room(room.id, status='active', started_at=utcnow())
    current_app.logger.info(f"[room-start] room={room.id} players={len(room.players)}")
    _realtime().emit_game_event('game_started', room.id)
    _realtime().broadcast_state(room)
    return jsonify(room.to_dict())


@rooms.route('/<string:room_id>/end', methods=['POST'])
@admin_required
def end_room(room_id):
    room, error = _get_room_or_404(room_id)
    if error:
        return error
    if room.status == 'completed':
        return jsonify(room.to_dict())
    if room.status != 'active':
        return jsonify({'error': 'Game is not in progress'}), 400
    room = DatabaseService.update_room(room.id, status='completed', completed_at=utcnow())

    # Fold this game's scores into the players' lifetime stats
    results = ScoringService.calculate_room_results(room.id)
    for player_score in results['player_scores']:
        ScoringService.update_player_stats(player_score['player_id'], player_score)

    current_app.logger.info(f"[room-end] room={room.id} duration={results['game_duration']}m")
    _realtime().emit_game_event('game_ended', room.id, data={'winner': (
        results['player_scores'][0]['player_id'] if results['player_scores'] else None
    )})
    _realtime().reset_room(room.id)
    _realtime().broadcast_state(room)
    return jsonify(room.to_dict())


@rooms.route('/<string:room_id>/checkpoints/<string:checkpoint_id>/submit', methods=['POST'])
@login_required
def submit_answer(room_id, checkpoint_id):
    room, error = _get_room_or_404(room_id)
    if error:
        return error
    if current_user.id not in room.players:
        return jsonify({'error': 'You are not a player in this room'}), 403
    if room.status != 'active':
        return jsonify({'error': 'This room is not accepting answers right now'}), 400

    checkpoint = DatabaseService.get_checkpoint(checkpoint_id)
    if not checkpoint or checkpoint.route_id != room.route_id:
        return jsonify({'error': 'Checkpoint not found'}), 404

    mine = [s for s in DatabaseService.get_submissions_by_room(room.id)
            if s.player_id == current_user.id and s.checkpoint_id == checkpoint.id]
    if any(s.is_correct for s in mine):
        return jsonify({'error': 'Checkpoint already completed'}), 400

    data = json_body() or request.form.to_dict()
    latitude, longitude = _known_position(room.id, current_user.id, data)
    radius = float(current_app.config.get('CHECKPOINT_RADIUS_M', 100))
    if proximity(checkpoint, latitude, longitude, radius) == 'far':
        return jsonify({'error': 'You need to get closer to this checkpoint to unlock it!'}), 403

    photo_url = None
    if checkpoint.challenge_type == 'photo_proof' and 'photo' in request.files:
        photo_url = PhotoService.upload_photo(request.files['photo'])['url']

    answer = data.get('answer')
    result = ValidationService.validate_submission(checkpoint.challenge, answer=answer, photo_url=photo_url)
    points = ValidationService.calculate_score(checkpoint.points, result)
    try:
        time_taken = float(data['time_taken']) if data.get('time_taken') is not None else None
    except (TypeError, ValueError):
        time_taken = None
    feedback = ValidationService.generate_feedback(result, time_taken)

    submission = DatabaseService.create_submission(
        room_id=room.id,
        player_id=current_user.id,
        checkpoint_id=checkpoint.id,
        answer=answer,
        photo_url=photo_url,
        is_correct=result['is_correct'],
        points=points,
    )
    current_app.logger.info(
        f"[submit] room={room.id} player={current_user.id} checkpoint={checkpoint.id} "
        f"correct={submission.is_correct} points={submission.points}"
    )
    if submission.is_correct:
        _realtime().emit_game_event('challenge_completed', room.id, player_id=current_user.id, data={
            'checkpoint_id': checkpoint.id,
            'points': submission.points,
        })
    _realtime().broadcast_state(room)

    return jsonify({
        'submission': submission.to_dict(),
        'is_correct': submission.is_correct,
        'points': submission.points,
        'feedback': feedback,
        'details': result.get('details'),
    }), 201


@rooms.route('/<string:room_id>/position', methods=['POST'])
@login_required
def update_position(room_id):
    room, error = _get_room_or_404(room_id)
    if error:
        return error
    if current_user.id not in room.players:
        return jsonify({'error': 'You are not a player in this room'}), 403
    data = json_body()
    try:
        latitude = float(data['latitude'])
        longitude = float(data['longitude'])
        accuracy = float(data['accuracy']) if data.get('accuracy') is not None else None
    except (KeyError, TypeError, ValueError):
        return jsonify({'error': 'latitude and longitude are required'}), 400
    position = _realtime().update_player_position(current_user.id, room.id, latitude, longitude, accuracy)
    return jsonify(position)


@rooms.route('/<string:room_id>/positions', methods=['GET'])
@login_required
def get_positions(room_id):
    room, error = _get_room_or_404(room_id)
    if error:
        return error
    if not _can_view(room):
        return jsonify({'error': 'You are not a player in this room'}), 403
    return jsonify(_realtime().get_player_positions(room.id))


@rooms.route('/<string:room_id>/stats', methods=['GET'])
@login_required
def get_room_stats(room_id):
    room, error = _get_room_or_404(room_id)
    if error:
        return error
    if not _can_view(room):
        return jsonify({'error': 'You are not a player in this room'}), 403
    return jsonify(_realtime().get_room_stats(room.id))


@rooms.route('/<string:room_id>/results', methods=['GET'])
@login_required
def get_results(room_id):
    room, error = _get_room_or_404(room_id)
    if error:
        return error
    if not _can_view(room):
        return jsonify({'error': 'You are not a player in this room'}), 403
    results = ScoringService.calculate_room_results(room.id)
    for player_score in results['player_scores']:
        player_score['breakdown'] = ScoringService.generate_score_breakdown(player_score)
    return jsonify(results)
