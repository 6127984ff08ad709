import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # In-memory by default: rooms and submissions are lost on restart
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    AUTO_CREATE_TABLES = os.environ.get('AUTO_CREATE_TABLES', '1') == '1'
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    CORS_ORIGINS = [o for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000'
    ).split(',') if o]
    # Rooms
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
    ROOM_CODE_MAX_ATTEMPTS = int(os.environ.get('ROOM_CODE_MAX_ATTEMPTS', '10'))
    DEFAULT_MAX_PLAYERS = int(os.environ.get('DEFAULT_MAX_PLAYERS', '10'))
    # Checkpoints unlock within this distance (metres)
    CHECKPOINT_RADIUS_M = float(os.environ.get('CHECKPOINT_RADIUS_M', '100'))
    # Word puzzle answer matching
    FUZZY_MATCH_THRESHOLD = float(os.environ.get('FUZZY_MATCH_THRESHOLD', '0.9'))
    NEAR_MISS_THRESHOLD = float(os.environ.get('NEAR_MISS_THRESHOLD', '0.8'))
    # Realtime event history kept for the admin monitor
    RECENT_EVENTS_LIMIT = int(os.environ.get('RECENT_EVENTS_LIMIT', '50'))
    # Photo uploads
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or os.path.join(os.getcwd(), 'uploads')
    MAX_PHOTO_BYTES = int(os.environ.get('MAX_PHOTO_BYTES', str(10 * 1024 * 1024)))
    PHOTO_MAX_WIDTH = int(os.environ.get('PHOTO_MAX_WIDTH', '1920'))
    PHOTO_QUALITY = int(os.environ.get('PHOTO_QUALITY', '80'))
    # AI route generation
    OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY', '')
    OPENAI_MODEL = os.environ.get('OPENAI_MODEL', 'gpt-4')
