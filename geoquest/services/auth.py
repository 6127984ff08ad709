from functools import wraps
from typing import Optional

from flask import current_app, jsonify
from flask_login import current_user, login_user, logout_user

from geoquest.models import ROLES, User
from .database import DatabaseService
from .errors import ServiceError


class AuthService:
    """Session identity on top of Flask-Login."""

    @staticmethod
    def sign_up(email: str, username: str, role: str = 'player', password: Optional[str] = None) -> User:
        if role not in ROLES:
            raise ServiceError(f'Invalid role: {role}', status_code=400)
        if DatabaseService.get_user_by_email(email):
            raise ServiceError('User with this email already exists', status_code=400)
        user = DatabaseService.create_user(username, email, role, password=password)
        login_user(user, remember=True)
        current_app.logger.info(f"[signup] user={user.id} role={user.role}")
        return user

    @staticmethod
    def sign_in(email: str, password: Optional[str] = None) -> User:
        user = DatabaseService.get_user_by_email(email)
        if not user:
            raise ServiceError('User not found', status_code=401)
        if not user.check_password(password):
            raise ServiceError('Invalid email or password', status_code=401)
        login_user(user, remember=True)
        return user

    @staticmethod
    def sign_out() -> None:
        logout_user()

    @staticmethod
    def get_current_user() -> Optional[User]:
        return current_user if current_user.is_authenticated else None

    @staticmethod
    def is_authenticated() -> bool:
        return bool(current_user.is_authenticated)

    @staticmethod
    def is_admin() -> bool:
        return AuthService.is_authenticated() and current_user.role == 'admin'

    @staticmethod
    def is_player() -> bool:
        return AuthService.is_authenticated() and current_user.role == 'player'

    @staticmethod
    def require_auth() -> User:
        if not AuthService.is_authenticated():
            raise ServiceError('Authentication required', status_code=401)
        return current_user

    @staticmethod
    def require_admin() -> User:
        user = AuthService.require_auth()
        if user.role != 'admin':
            raise ServiceError('Admin access required', status_code=403)
        return user


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not AuthService.is_authenticated():
            return jsonify({'error': 'Authentication required'}), 401
        if not AuthService.is_admin():
            return jsonify({'error': 'Admin access required'}), 403
        return view(*args, **kwargs)
    return wrapped
