from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from geoquest import json_body
from geoquest.services.auth import AuthService
from geoquest.services.database import DatabaseService
from geoquest.services.scoring import ScoringService

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the GeoQuest game server!'})

@main.route('/register', methods=['POST'])
def register():
    data = json_body()
    email = (data.get('email') or '').strip()
    username = (data.get('username') or '').strip()
    if not email or not username:
        return jsonify({"success": False, "error": "Email and username are required"}), 400
    user = AuthService.sign_up(email, username, data.get('role') or 'player', password=data.get('password'))
    return jsonify({"success": True, "user": user.to_dict()}), 201

@main.route('/login', methods=['POST'])
def login():
    data = json_body()
    if not data.get('email'):
        return jsonify({"success": False, "error": "Email is required"}), 400
    user = AuthService.sign_in(data['email'], data.get('password'))
    return jsonify({"success": True, "user": user.to_dict()})

@main.route('/check_login', methods=['GET'])
@login_required
def check_login():
    return jsonify({"success": True, "user": current_user.to_dict()})

@main.route('/logout', methods=['POST'])
@login_required
def logout():
    AuthService.sign_out()
    return jsonify({"success": True})

@main.route('/leaderboard', methods=['GET'])
def leaderboard():
    limit = request.args.get('limit', 10, type=int)
    return jsonify(ScoringService.get_player_leaderboard(max(1, min(limit, 100))))

@main.route('/me/submissions', methods=['GET'])
@login_required
def my_submissions():
    return jsonify([s.to_dict() for s in DatabaseService.get_submissions_by_player(current_user.id)])
