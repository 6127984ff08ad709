from flask import Blueprint, jsonify, current_app
from flask_login import current_user

from geoquest import json_body
from geoquest.models import CHALLENGE_TYPES, DIFFICULTIES
from geoquest.services.ai import AIService
from geoquest.services.auth import AuthService, admin_required
from geoquest.services.database import DatabaseService

routes = Blueprint('routes', __name__)


def _checkpoint_fields(data, order_index):
    """Normalize a checkpoint payload into DatabaseService.create_checkpoint kwargs.

    Accepts the challenge either nested under ``challenge`` (the shape the
    AI generator returns) or flattened with ``challenge_`` prefixes.
    """
    if not isinstance(data, dict):
        return None, 'Each checkpoint must be an object'
    challenge = data.get('challenge') or {}
    if not isinstance(challenge, dict):
        return None, 'Checkpoint challenge must be an object'
    challenge_type = challenge.get('type') or data.get('challenge_type')
    if challenge_type not in CHALLENGE_TYPES:
        return None, f'Invalid challenge type: {challenge_type}'
    try:
        latitude = float(data['latitude'])
        longitude = float(data['longitude'])
    except (KeyError, TypeError, ValueError):
        return None, 'Checkpoint latitude and longitude are required'
    if not data.get('name'):
        return None, 'Checkpoint name is required'
    try:
        points = int(data.get('points', 10))
    except (TypeError, ValueError):
        return None, 'Checkpoint points must be a number'
    try:
        order_index = int(data.get('order_index', order_index))
    except (TypeError, ValueError):
        return None, 'Checkpoint order_index must be a number'
    options = challenge.get('options', data.get('challenge_options'))
    if options is not None and not isinstance(options, list):
        return None, 'Challenge options must be a list'
    return {
        'name': data['name'],
        'description': data.get('description') or '',
        'latitude': latitude,
        'longitude': longitude,
        'order_index': order_index,
        'points': points,
        'challenge_type': challenge_type,
        'question': challenge.get('question', data.get('challenge_question')),
        'answer': challenge.get('answer', data.get('challenge_answer')),
        'options': options,
        'hint': challenge.get('hint', data.get('challenge_hint')),
        'photo_prompt': challenge.get('photo_prompt', data.get('challenge_photo_prompt')),
    }, None


@routes.route('', methods=['GET'])
def list_routes():
    return jsonify([r.to_dict(include_checkpoints=False) for r in DatabaseService.get_all_routes()])


@routes.route('/mine', methods=['GET'])
@admin_required
def list_my_routes():
    return jsonify([r.to_dict(include_checkpoints=False) for r in DatabaseService.get_routes_by_user(current_user.id)])


@routes.route('', methods=['POST'])
@admin_required
def create_route():
    data = json_body()
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'Route name is required'}), 400
    difficulty = data.get('difficulty') or 'medium'
    if difficulty not in DIFFICULTIES:
        return jsonify({'error': f'Invalid difficulty: {difficulty}'}), 400
    try:
        duration = int(data.get('duration', 30))
    except (TypeError, ValueError):
        return jsonify({'error': 'Duration must be a number of minutes'}), 400

    # Validate all checkpoints before anything is written
    checkpoints = data.get('checkpoints') or []
    if not isinstance(checkpoints, list):
        return jsonify({'error': 'Checkpoints must be a list'}), 400
    checkpoint_fields = []
    for index, cp in enumerate(checkpoints):
        fields, error = _checkpoint_fields(cp, index)
        if error:
            return jsonify({'error': error}), 400
        checkpoint_fields.append(fields)

    route = DatabaseService.create_route(
        name=name,
        description=data.get('description') or '',
        city=data.get('city') or '',
        theme=data.get('theme') or '',
        duration=duration,
        difficulty=difficulty,
        created_by=current_user.id,
        is_active=bool(data.get('is_active', True)),
    )
    for fields in checkpoint_fields:
        DatabaseService.create_checkpoint(route.id, **fields)
    current_app.logger.info(f"[route-create] route={route.id} checkpoints={len(checkpoint_fields)}")
    route = DatabaseService.get_route(route.id)
    return jsonify(route.to_dict(include_answers=True)), 201


@routes.route('/<string:route_id>', methods=['GET'])
def get_route(route_id):
    route = DatabaseService.get_route(route_id)
    if not route:
        return jsonify({'error': 'Route not found'}), 404
    # Answers only go to admins
    return jsonify(route.to_dict(include_answers=AuthService.is_admin()))


@routes.route('/<string:route_id>/checkpoints', methods=['POST'])
@admin_required
def add_checkpoint(route_id):
    route = DatabaseService.get_route(route_id)
    if not route:
        return jsonify({'error': 'Route not found'}), 404
    data = json_body()
    fields, error = _checkpoint_fields(data, len(route.checkpoints))
    if error:
        return jsonify({'error': error}), 400
    checkpoint = DatabaseService.create_checkpoint(route.id, **fields)
    return jsonify(checkpoint.to_dict(include_answer=True)), 201


@routes.route('/generate', methods=['POST'])
@admin_required
def generate_route():
    data = json_body()
    city = (data.get('city') or '').strip()
    theme = (data.get('theme') or '').strip()
    if not city or not theme:
        return jsonify({'error': 'Please provide city and theme for AI generation'}), 400
    try:
        duration = int(data.get('duration', 30))
    except (TypeError, ValueError):
        return jsonify({'error': 'Duration must be a number of minutes'}), 400
    generated = AIService.generate_route(city, theme, duration, data.get('difficulty') or 'medium')
    generated.update(city=city, theme=theme, duration=duration, difficulty=data.get('difficulty') or 'medium')
    return jsonify(generated)


@routes.route('/challenges/generate', methods=['POST'])
@admin_required
def generate_challenge():
    data = json_body()
    location = (data.get('location') or '').strip()
    if not location:
        return jsonify({'error': 'Location is required'}), 400
    challenge = AIService.generate_challenge(location, data.get('theme') or 'general', data.get('type') or 'trivia')
    return jsonify(challenge)
