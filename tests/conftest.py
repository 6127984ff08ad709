import os
import sys
import pytest

# Ensure the project root (containing the `geoquest` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from geoquest import create_app, db, socketio
from geoquest.services.realtime import RealtimeService


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    AUTO_CREATE_TABLES = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    OPENAI_API_KEY = 'test-key'
    CHECKPOINT_RADIUS_M = 100.0


FERRY_BUILDING = (37.7955, -122.3937)
COIT_TOWER = (37.8024, -122.4058)
LOMBARD_STREET = (37.8021, -122.4187)


@pytest.fixture()
def flask_app(tmp_path):
    TestConfig.UPLOAD_FOLDER = str(tmp_path / 'uploads')
    RealtimeService._instance = None
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import geoquest.models  # noqa: F401
        db.create_all()
    # Requests push their own app context so each one gets a fresh flask.g
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()
    RealtimeService._instance = None


@pytest.fixture()
def app_ctx(flask_app):
    with flask_app.app_context():
        yield flask_app
        db.session.remove()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def register(client, email, username, role='player', password=None):
    payload = {'email': email, 'username': username, 'role': role}
    if password:
        payload['password'] = password
    res = client.post('/register', json=payload)
    assert res.status_code == 201, res.get_json()
    return res.get_json()['user']


@pytest.fixture()
def admin_client(flask_app):
    c = flask_app.test_client()
    c.user = register(c, 'admin@example.com', 'admin', role='admin')
    return c


@pytest.fixture()
def make_player(flask_app):
    counter = {'n': 0}

    def _make(name=None):
        counter['n'] += 1
        name = name or f"player{counter['n']}"
        c = flask_app.test_client()
        c.user = register(c, f'{name}@example.com', name)
        return c
    return _make


@pytest.fixture()
def route(admin_client):
    res = admin_client.post('/api/routes', json={
        'name': 'Waterfront Walk',
        'description': 'Three stops along the bay',
        'city': 'San Francisco',
        'theme': 'history',
        'duration': 30,
        'difficulty': 'easy',
        'checkpoints': [
            {
                'name': 'Ferry Building', 'description': 'Clock tower',
                'latitude': FERRY_BUILDING[0], 'longitude': FERRY_BUILDING[1], 'points': 10,
                'challenge': {'type': 'trivia', 'question': 'Opening year?', 'answer': '1898',
                              'options': ['1898', '1906', '1915', '1888']},
            },
            {
                'name': 'Coit Tower', 'description': 'Telegraph Hill',
                'latitude': COIT_TOWER[0], 'longitude': COIT_TOWER[1], 'points': 15,
                'challenge': {'type': 'word_puzzle', 'question': 'Unscramble LEGTRHAPE',
                              'answer': 'Telegraph'},
            },
            {
                'name': 'Lombard Street', 'description': 'Crooked street',
                'latitude': LOMBARD_STREET[0], 'longitude': LOMBARD_STREET[1], 'points': 20,
                'challenge': {'type': 'photo_proof', 'photo_prompt': 'The hairpin turns'},
            },
        ],
    })
    assert res.status_code == 201, res.get_json()
    return res.get_json()


@pytest.fixture()
def room(admin_client, route):
    res = admin_client.post('/api/rooms/create', json={'route_id': route['id'], 'max_players': 3})
    assert res.status_code == 201
    return res.get_json()['room']


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
