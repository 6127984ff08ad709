from flask import Flask, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def json_body():
    """The request JSON object, or {} when the body is missing or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import and register blueprints here
    from geoquest.main import main
    flask_app.register_blueprint(main)

    from geoquest.api.routes import routes
    flask_app.register_blueprint(routes, url_prefix='/api/routes')

    from geoquest.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from geoquest.api.photos import photos
    flask_app.register_blueprint(photos, url_prefix='/photos')

    from geoquest.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from geoquest.services.errors import ServiceError

    @flask_app.errorhandler(ServiceError)
    def handle_service_error(exc):
        return jsonify(exc.payload), exc.status_code

    # Flask-Login user loader
    from geoquest.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Authentication required'}), 401

    if flask_app.config.get('AUTO_CREATE_TABLES'):
        with flask_app.app_context():
            db.create_all()

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from geoquest.services.database import DatabaseService
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            admin = DatabaseService.create_user('admin', 'admin@example.com', 'admin', password='password')
            for name in ['player1', 'player2', 'player3']:
                DatabaseService.create_user(name, f'{name}@example.com', 'player', password='password')

            route = DatabaseService.create_route(
                name='Historic Downtown Adventure',
                description='A short walk past the landmarks of the old town',
                city='San Francisco',
                theme='history',
                duration=30,
                difficulty='easy',
                created_by=admin.id,
            )
            DatabaseService.create_checkpoint(
                route.id, name='Ferry Building', description='Clock tower on the Embarcadero',
                latitude=37.7955, longitude=-122.3937, order_index=0, points=10,
                challenge_type='trivia', question='What year did the Ferry Building open?',
                answer='1898', options=['1898', '1906', '1915', '1888'],
                hint='Before the great earthquake',
            )
            DatabaseService.create_checkpoint(
                route.id, name='Coit Tower', description='Art deco tower on Telegraph Hill',
                latitude=37.8024, longitude=-122.4058, order_index=1, points=15,
                challenge_type='word_puzzle', question='Unscramble: LEGTRHAPE LIHL',
                answer='Telegraph Hill', hint='Where you are standing',
            )
            DatabaseService.create_checkpoint(
                route.id, name='Lombard Street', description='The crooked street',
                latitude=37.8021, longitude=-122.4187, order_index=2, points=20,
                challenge_type='photo_proof', photo_prompt='Photograph the hairpin turns from the top',
                hint='Stand at the Hyde Street end',
            )
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
